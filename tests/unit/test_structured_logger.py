"""
로깅 설정 모듈 단위 테스트

검증 항목:
- 콘솔 핸들러는 stderr, 파일 핸들러는 log_dir/livescribe.log (10MB x 5)
- 세션 ID 결정 순서 (인자 → 설정 → UUID)
- JSON 레코드 필드 (level, module, role, session_id, extra)
- 스레드 역할 분류, 서드파티 로거 레벨
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
import threading
from io import StringIO

import pytest

from livescribe.config.schema import AppConfig
from livescribe.logging import get_session_id, setup_logging
from livescribe.logging.structured_logger import (
    LOG_FILE_NAME,
    PipelineContextFilter,
    build_formatter,
    thread_role,
)


@pytest.fixture(autouse=True)
def reset_root_logger():
    """각 테스트 후 root logger 핸들러 초기화."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


def _make_config(tmp_path, log_format: str = "json", session_id: str = "session-0001") -> AppConfig:
    return AppConfig(**{
        "system": {
            "log_level": "DEBUG",
            "log_format": log_format,
            "log_dir": str(tmp_path / "logs"),
            "session_id": session_id,
        },
    })


def _format_one(log_format: str, message: str, extra: dict = None, thread_name: str = None) -> str:
    """지정 포맷으로 레코드 하나를 포맷한 결과 문자열을 반환합니다."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(PipelineContextFilter("sid-12345678"))
    handler.setFormatter(build_formatter(log_format))

    logger = logging.getLogger(f"livescribe.test.{log_format}")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    try:
        if thread_name is None:
            logger.info(message, extra=extra)
        else:
            worker = threading.Thread(
                target=logger.info, args=(message,), kwargs={"extra": extra}, name=thread_name
            )
            worker.start()
            worker.join()
    finally:
        logger.removeHandler(handler)
    return stream.getvalue().strip()


# =========================================================================
# 핸들러 구성
# =========================================================================

class TestSetupLogging:
    def test_console_handler_writes_to_stderr(self, tmp_path):
        setup_logging(_make_config(tmp_path))
        console = [h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler]
        assert len(console) == 1
        assert console[0].stream is sys.stderr

    def test_rotating_file_handler(self, tmp_path):
        setup_logging(_make_config(tmp_path))
        rotating = [
            h for h in logging.getLogger().handlers
            if isinstance(h, logging.handlers.RotatingFileHandler)
        ]
        assert len(rotating) == 1
        assert rotating[0].maxBytes == 10 * 1024 * 1024
        assert rotating[0].backupCount == 5

        log_file = tmp_path / "logs" / LOG_FILE_NAME
        assert "로깅 초기화" in log_file.read_text(encoding="utf-8")

    def test_repeated_setup_replaces_handlers(self, tmp_path):
        config = _make_config(tmp_path)
        setup_logging(config)
        count = len(logging.getLogger().handlers)
        setup_logging(config)
        assert len(logging.getLogger().handlers) == count

    def test_unwritable_log_dir_falls_back_to_console(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        config = AppConfig(**{"system": {"log_dir": str(blocker / "logs")}})

        setup_logging(config)

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr

    def test_log_level_applied(self, tmp_path):
        config = _make_config(tmp_path)
        config.system.log_level = "WARNING"
        setup_logging(config)
        assert logging.getLogger().level == logging.WARNING

    def test_noisy_third_party_loggers_quieted(self, tmp_path):
        setup_logging(_make_config(tmp_path))
        assert logging.getLogger("huggingface_hub").level == logging.WARNING
        assert logging.getLogger("urllib3").level == logging.WARNING


# =========================================================================
# 세션 ID
# =========================================================================

class TestSessionId:
    def test_argument_wins(self, tmp_path):
        assert setup_logging(_make_config(tmp_path), session_id="from-cli") == "from-cli"
        assert get_session_id() == "from-cli"

    def test_config_value_used(self, tmp_path):
        setup_logging(_make_config(tmp_path, session_id="from-config"))
        assert get_session_id() == "from-config"

    def test_uuid_generated_when_empty(self, tmp_path):
        sid = setup_logging(_make_config(tmp_path, session_id=""))
        assert len(sid) == 36
        assert sid.count("-") == 4


# =========================================================================
# 레코드 포맷
# =========================================================================

class TestFormat:
    def test_json_record_fields(self):
        data = json.loads(_format_one("json", "청크 전사", extra={"chunk_id": 42}))
        assert data["message"] == "청크 전사"
        assert data["level"] == "INFO"
        assert data["module"] == "livescribe.test.json"
        assert data["session_id"] == "sid-12345678"
        assert data["role"] == "main"
        assert data["chunk_id"] == 42

    def test_json_role_for_worker_thread(self):
        data = json.loads(_format_one("json", "추론", thread_name="inference_worker"))
        assert data["role"] == "worker"

    def test_text_record_includes_role_and_level(self):
        output = _format_one("text", "장치 오류", thread_name="file_mock_producer")
        assert "[capture]" in output
        assert "INFO" in output
        assert "장치 오류" in output


@pytest.mark.parametrize(
    "thread_name, role",
    [
        ("MainThread", "main"),
        ("inference_worker", "worker"),
        ("file_mock_producer", "capture"),
        ("Dummy-3", "capture"),
        ("Thread-7", "Thread-7"),
    ],
)
def test_thread_role(thread_name, role):
    assert thread_role(thread_name) == role
