"""
파일 기반 모의 캡처 모듈입니다.

역할:
- WAV/FLAC 파일을 블록 단위로 읽어 실시간 속도로 AudioFrame 생성
- 오디오 장치 없이 SoundDeviceCapture와 동일한 콜백 인터페이스 제공
- loop, playback_speed 설정으로 반복 재생 및 속도 제어 지원

사용 예시:
    >>> capture = FileMockCapture(config)
    >>> capture.start(on_frame=forwarder)
    >>> capture.wait_finished(timeout=10.0)
    >>> capture.close()
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Optional

import numpy as np
import soundfile as sf

from livescribe.capture import (
    AudioFrame,
    CaptureSource,
    ErrorCallback,
    FrameCallback,
    SampleEncoding,
)
from livescribe.config.schema import AppConfig
from livescribe.errors import CaptureSetupError, UnsupportedSampleFormatError

logger = logging.getLogger(__name__)

# block_size=0일 때 사용하는 블록 크기 (프레임)
_DEFAULT_BLOCK_FRAMES = 1024


class FileMockCapture(CaptureSource):
    """
    오디오 파일을 실시간 스트리밍으로 시뮬레이션하는 모의 캡처 클래스입니다.

    프로듀서 스레드가 block_size 프레임씩 읽어 on_frame을 호출하고,
    블록 재생 시간 / playback_speed 만큼 대기합니다.
    샘플레이트와 채널 수는 파일 헤더를 따릅니다.
    """

    def __init__(self, config: AppConfig) -> None:
        """
        FileMockCapture를 초기화합니다.

        파라미터:
            config (AppConfig): 전체 애플리케이션 설정 객체

        에러:
            UnsupportedSampleFormatError: 지원하지 않는 샘플 인코딩
            CaptureSetupError: 파일이 없거나 읽을 수 없는 경우
        """
        file_config = config.capture.file
        self._audio_path = Path(file_config.audio_path)
        self._loop_enabled = file_config.loop
        self._playback_speed = file_config.playback_speed
        self._block_frames = config.capture.block_size or _DEFAULT_BLOCK_FRAMES

        try:
            self._encoding = SampleEncoding(config.capture.sample_format)
        except ValueError as exc:
            raise UnsupportedSampleFormatError(
                f"지원하지 않는 샘플 인코딩: {config.capture.sample_format}"
            ) from exc

        if not self._audio_path.is_file():
            raise CaptureSetupError(f"오디오 파일을 찾을 수 없습니다: {self._audio_path}")
        try:
            info = sf.info(str(self._audio_path))
        except RuntimeError as exc:
            raise CaptureSetupError(f"오디오 파일을 열 수 없습니다: {exc}") from exc

        self._sample_rate = int(info.samplerate)
        self._channels = int(info.channels)

        if config.capture.sample_rate and config.capture.sample_rate != self._sample_rate:
            logger.warning(
                f"파일 모드에서는 파일 샘플레이트를 사용합니다: "
                f"설정={config.capture.sample_rate}Hz, 파일={self._sample_rate}Hz"
            )

        self._stop_event = threading.Event()
        self._finished = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.frames_produced: int = 0

        logger.info(
            f"FileMockCapture 초기화 완료: "
            f"audio={self._audio_path}, "
            f"sample_rate={self._sample_rate}Hz, "
            f"channels={self._channels}, "
            f"encoding={self._encoding.value}, "
            f"loop={self._loop_enabled}, "
            f"playback_speed={self._playback_speed}x"
        )

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def encoding(self) -> SampleEncoding:
        return self._encoding

    @property
    def finished(self) -> bool:
        """파일 재생이 끝났는지 여부입니다 (loop=True면 close 전까지 False)."""
        return self._finished.is_set()

    def wait_finished(self, timeout: Optional[float] = None) -> bool:
        """재생 종료를 대기합니다. 종료되었으면 True를 반환합니다."""
        return self._finished.wait(timeout)

    def start(self, on_frame: FrameCallback, on_error: Optional[ErrorCallback] = None) -> None:
        """프로듀서 스레드를 시작합니다."""
        if self._thread is not None:
            logger.warning("FileMockCapture가 이미 실행 중입니다")
            return

        self._stop_event.clear()
        self._finished.clear()
        self._thread = threading.Thread(
            target=self._produce,
            args=(on_frame, on_error),
            name="file_mock_producer",
            daemon=True,
        )
        self._thread.start()
        logger.info("FileMockCapture 시작: 오디오 프로듀서 스레드 실행")

    def close(self) -> None:
        """프로듀서 스레드를 중지하고 종료를 대기합니다."""
        thread = self._thread
        if thread is None:
            return

        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join()
        self._thread = None
        logger.info(f"FileMockCapture 중지 완료: {self.frames_produced}개 블록 생성")

    # =========================================================================
    # 내부 프로듀서 메서드
    # =========================================================================

    def _produce(self, on_frame: FrameCallback, on_error: Optional[ErrorCallback]) -> None:
        """
        파일을 block_frames 단위로 읽어 on_frame을 호출하는 프로듀서입니다.

        loop=True이면 파일 끝에서 처음으로 되감습니다.
        """
        read_dtype = _read_dtype(self._encoding)
        block_sec = self._block_frames / self._sample_rate / self._playback_speed

        try:
            with sf.SoundFile(str(self._audio_path)) as audio_file:
                next_deadline = time.monotonic()
                while not self._stop_event.is_set():
                    block = audio_file.read(
                        self._block_frames, dtype=read_dtype, always_2d=True
                    )
                    if block.shape[0] == 0:
                        if not self._loop_enabled:
                            break
                        logger.debug("오디오 파일 반복 재생 시작")
                        audio_file.seek(0)
                        continue

                    on_frame(AudioFrame(
                        data=_encode_block(block, self._encoding),
                        channels=self._channels,
                        sample_rate=self._sample_rate,
                        encoding=self._encoding,
                    ))
                    self.frames_produced += 1

                    # 실시간 속도 시뮬레이션 (누적 지연 보정)
                    next_deadline += block_sec
                    wait_sec = next_deadline - time.monotonic()
                    if wait_sec > 0 and self._stop_event.wait(wait_sec):
                        break
        except Exception as exc:
            logger.error(f"오디오 프로듀서 오류: {exc}", exc_info=True)
            if on_error is not None:
                on_error(exc)
        finally:
            self._finished.set()

        logger.info(
            f"오디오 파일 재생 종료: {self._audio_path}, "
            f"총 {self.frames_produced}개 블록 생성"
        )


# =============================================================================
# 모듈 레벨 헬퍼 함수
# =============================================================================

def _read_dtype(encoding: SampleEncoding) -> str:
    """soundfile 읽기 dtype을 반환합니다. soundfile은 uint8 읽기를 지원하지 않습니다."""
    if encoding is SampleEncoding.U8:
        return "int16"
    return encoding.sounddevice_dtype


def _encode_block(block: np.ndarray, encoding: SampleEncoding) -> np.ndarray:
    """
    읽은 블록을 캡처 인코딩의 배열로 변환합니다.

    u8은 int16 상위 바이트에 중앙값 128을 더한 offset-binary 값입니다.
    """
    if encoding is SampleEncoding.U8:
        return ((block.astype(np.int32) >> 8) + 128).astype(np.uint8)
    return block
