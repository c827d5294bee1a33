"""
파이프라인 로깅 설정 모듈입니다.

역할:
- 콘솔 로그는 stderr로만 출력 (stdout은 전사 텍스트 전용)
- python-json-logger 기반 JSON 포맷 또는 텍스트 포맷 선택
- RotatingFileHandler로 log_dir/livescribe.log 순환 기록 (10MB, 5개 보존)
- 모든 레코드에 session_id와 스레드 역할(role: main/capture/worker) 부여
- 모델 다운로드 등 서드파티 로거의 소음 억제

사용 예시:
    >>> session_id = setup_logging(config)
    >>> logging.getLogger(__name__).info("청크 전사", extra={"chunk_id": 3})
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
import threading
import uuid
from pathlib import Path
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

from livescribe.config.schema import AppConfig

LOG_FILE_NAME = "livescribe.log"

# 로그 파일 순환 설정
_MAX_LOG_BYTES = 10 * 1024 * 1024
_LOG_BACKUP_COUNT = 5

# 스레드 이름 → 파이프라인 역할
_THREAD_ROLES = {
    "inference_worker": "worker",
    "file_mock_producer": "capture",
}

# 모델 로드 시 DEBUG 로그를 쏟아내는 서드파티 로거
_NOISY_LOGGERS = ("urllib3", "huggingface_hub", "filelock", "onnxruntime")

_session_id: str = ""


def thread_role(thread_name: Optional[str] = None) -> str:
    """
    스레드 이름을 파이프라인 역할 이름으로 변환합니다.

    sounddevice 콜백은 PortAudio가 만든 이름 없는 스레드("Dummy-N")에서 실행되므로
    메인/워커/파일 재생 스레드가 아니면 capture로 분류합니다.
    """
    name = thread_name if thread_name is not None else threading.current_thread().name
    if name == "MainThread":
        return "main"
    if name in _THREAD_ROLES:
        return _THREAD_ROLES[name]
    if name.startswith("Dummy-"):
        return "capture"
    return name


class PipelineContextFilter(logging.Filter):
    """레코드에 session_id, role 속성을 추가하는 필터입니다."""

    def __init__(self, session_id: str) -> None:
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self.session_id
        record.role = thread_role(record.threadName)
        return True


def build_formatter(log_format: str) -> logging.Formatter:
    """log_format("json" | "text")에 맞는 포맷터를 생성합니다."""
    if log_format == "json":
        return JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(role)s %(session_id)s %(message)s",
            rename_fields={"levelname": "level", "name": "module"},
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    return logging.Formatter(
        fmt="%(asctime)s %(levelname)-8s [%(role)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def setup_logging(config: AppConfig, session_id: Optional[str] = None) -> str:
    """
    root 로거에 콘솔(stderr)과 순환 파일 핸들러를 설정합니다.

    재호출 시 이전 핸들러를 닫고 교체합니다. 로그 디렉토리를 만들 수 없으면
    파일 핸들러 없이 콘솔만 사용합니다.

    파라미터:
        config: AppConfig 인스턴스 (system.log_level / log_format / log_dir 사용)
        session_id: 세션 식별자. None이면 config.system.session_id 또는 UUID 사용

    반환값:
        str: 적용된 세션 ID
    """
    global _session_id
    _session_id = session_id or config.system.session_id or str(uuid.uuid4())

    log_level = getattr(logging, config.system.log_level, logging.INFO)
    context_filter = PipelineContextFilter(_session_id)
    formatter = build_formatter(config.system.log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    file_error: Optional[OSError] = None
    try:
        log_dir = Path(config.system.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            filename=log_dir / LOG_FILE_NAME,
            maxBytes=_MAX_LOG_BYTES,
            backupCount=_LOG_BACKUP_COUNT,
            encoding="utf-8",
        ))
    except OSError as exc:
        file_error = exc

    for handler in handlers:
        handler.setLevel(log_level)
        handler.addFilter(context_filter)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # 서드파티 로거는 애플리케이션 로그 레벨과 무관하게 WARNING 이상만
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logger = logging.getLogger(__name__)
    if file_error is not None:
        logger.warning(f"로그 파일 핸들러 생성 실패, 콘솔만 사용: {file_error}")
    logger.info(
        f"로깅 초기화: level={config.system.log_level}, "
        f"format={config.system.log_format}, session={_session_id}"
    )
    return _session_id


def get_session_id() -> str:
    """마지막 setup_logging() 호출에서 적용된 세션 ID를 반환합니다."""
    return _session_id
