"""
livescribe 실시간 전사 진입점

역할:
- 설정 로드 및 커맨드라인 오버라이드
- 로깅 초기화 후 Transcriber 생성/시작
- Enter 입력, 실행 시간 제한, 파일 재생 종료, SIGINT/SIGTERM 중 먼저 오는 것으로 종료
- 설정 오류(장치 없음, 모델 로드 실패 등)는 stderr에 메시지 출력 후 종료 코드 1

실행 예시:
    라이브 모드 (기본 입력 장치):
        python main.py --model-path models/parakeet

    파일 모드:
        python main.py --mode file --audio tests/fixtures/sample_audio.wav --duration 30
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
import time
from pathlib import Path

from livescribe.capture.file_mock_capture import FileMockCapture
from livescribe.config import AppConfig, ConfigLoadError, ConfigManager
from livescribe.errors import SetupError
from livescribe.logging import setup_logging
from livescribe.pipeline import Transcriber, build_transcriber

logger = logging.getLogger(__name__)

# 파일 재생 종료 후 남은 샘플 처리 대기 간격 (초)
_DRAIN_POLL_SEC = 0.05


def _parse_args() -> argparse.Namespace:
    """커맨드라인 인자를 파싱합니다."""
    parser = argparse.ArgumentParser(
        description="livescribe: 실시간 오디오 입력 로컬 ASR 전사"
    )
    parser.add_argument(
        "--config", default="config.yaml", help="설정 파일 경로 (기본: config.yaml, 없으면 기본값)"
    )
    parser.add_argument(
        "--mode", choices=["live", "file"], help="실행 모드 (config.yaml 오버라이드)"
    )
    parser.add_argument(
        "--audio", help="재생할 오디오 파일 경로 (file 모드 전용)"
    )
    parser.add_argument(
        "--model-path", help="ASR 모델 디렉토리 (config.yaml 오버라이드)"
    )
    parser.add_argument(
        "--duration", type=float, default=0,
        help="실행 시간 제한 (초, 0=Enter 입력까지)"
    )
    return parser.parse_args()


def _load_config(args: argparse.Namespace) -> AppConfig:
    """설정 파일(없으면 기본값)을 로드하고 커맨드라인 값을 덮어씁니다."""
    manager = ConfigManager()
    if Path(args.config).is_file():
        config = manager.load(args.config)
    else:
        config = manager.load_defaults()

    overrides: dict = {}
    if args.mode:
        overrides.setdefault("system", {})["mode"] = args.mode
    if args.audio:
        overrides.setdefault("capture", {})["file"] = {"audio_path": args.audio}
    if args.model_path:
        overrides.setdefault("asr", {})["model_path"] = args.model_path
    if overrides:
        config = manager.override(overrides)
    return config


def _wait_for_stop(transcriber: Transcriber, shutdown: threading.Event, duration_sec: float) -> None:
    """종료 조건 중 하나가 충족될 때까지 대기합니다."""
    capture = transcriber.capture

    if duration_sec <= 0 and not isinstance(capture, FileMockCapture):
        # Enter 입력 대기 (stdin 스레드)
        def _wait_enter() -> None:
            sys.stdin.readline()
            shutdown.set()

        threading.Thread(target=_wait_enter, name="stdin_waiter", daemon=True).start()
        sys.stderr.write("\n듣는 중... 종료하려면 Enter를 누르세요.\n\n")
        sys.stderr.flush()

    timeout = duration_sec if duration_sec > 0 else None

    if isinstance(capture, FileMockCapture):
        deadline = None if timeout is None else time.monotonic() + timeout
        # 파일 끝까지 재생한 뒤 회수된 샘플의 완성된 청크가 모두 전사될 때까지 대기
        while not shutdown.is_set():
            if capture.wait_finished(_DRAIN_POLL_SEC) and transcriber.wait_idle(_DRAIN_POLL_SEC):
                logger.info("오디오 파일 재생 완료, 파이프라인 종료")
                return
            if deadline is not None and time.monotonic() >= deadline:
                logger.info(f"{duration_sec}초 경과, 파이프라인 자동 종료")
                return
        return

    if not shutdown.wait(timeout):
        logger.info(f"{duration_sec}초 경과, 파이프라인 자동 종료")


def main() -> int:
    args = _parse_args()

    try:
        config = _load_config(args)
    except ConfigLoadError as exc:
        sys.stderr.write(f"설정 로드 실패: {exc}\n")
        return 1

    setup_logging(config)
    logger.info(f"livescribe 시작: mode={config.system.mode}")

    try:
        transcriber = build_transcriber(config)
        transcriber.start()
    except SetupError as exc:
        logger.error(f"파이프라인 시작 실패: {exc}")
        sys.stderr.write(f"오류: {exc}\n")
        return 1

    shutdown = threading.Event()

    def _signal_handler(signum, frame) -> None:
        logger.info("종료 시그널 수신")
        shutdown.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        _wait_for_stop(transcriber, shutdown, args.duration)
    finally:
        transcriber.stop()
        sys.stdout.write("\n")
        sys.stdout.flush()

    logger.info("livescribe 종료")
    return 0


if __name__ == "__main__":
    sys.exit(main())
