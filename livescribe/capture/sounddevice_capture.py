"""
실시간 오디오 입력 장치 캡처 모듈입니다.

역할:
- sounddevice(PortAudio) InputStream으로 시스템 입력 장치를 연다
- 장치 기본 샘플레이트/채널 수를 조회해 설정값이 없을 때 사용
- 드라이버 스레드에서 호출되는 콜백으로 AudioFrame을 전달
- 드라이버 상태 플래그(overflow 등)는 on_error로 보고하고 캡처는 계속

콜백 안에서는 로깅하지 않습니다. 오류는 on_error 콜백으로만 전달합니다.

사용 예시:
    >>> capture = SoundDeviceCapture(config)
    >>> capture.start(on_frame=forwarder, on_error=log_capture_error)
    >>> capture.close()
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

import sounddevice as sd

from livescribe.capture import (
    AudioFrame,
    CaptureSource,
    ErrorCallback,
    FrameCallback,
    SampleEncoding,
)
from livescribe.config.schema import AppConfig
from livescribe.errors import CaptureError, CaptureSetupError, UnsupportedSampleFormatError

logger = logging.getLogger(__name__)

# 채널 수 미지정 시 장치 최대 입력 채널 수를 이 값으로 제한
_DEFAULT_MAX_CHANNELS = 2


class SoundDeviceCapture(CaptureSource):
    """
    sounddevice 기반 라이브 오디오 캡처 클래스입니다.

    생성 시 장치를 조회해 샘플레이트/채널 수를 확정하고,
    start()에서 스트림을 열어 시작합니다.
    """

    def __init__(self, config: AppConfig) -> None:
        """
        SoundDeviceCapture를 초기화합니다.

        파라미터:
            config (AppConfig): 전체 애플리케이션 설정 객체

        에러:
            UnsupportedSampleFormatError: 지원하지 않는 샘플 인코딩
            CaptureSetupError: 입력 장치가 없거나 조회에 실패한 경우
        """
        capture_config = config.capture
        try:
            self._encoding = SampleEncoding(capture_config.sample_format)
        except ValueError as exc:
            raise UnsupportedSampleFormatError(
                f"지원하지 않는 샘플 인코딩: {capture_config.sample_format}"
            ) from exc

        self._device = capture_config.device
        self._block_size = capture_config.block_size

        try:
            device_info = sd.query_devices(self._device, "input")
        except (sd.PortAudioError, ValueError) as exc:
            raise CaptureSetupError(f"입력 장치를 찾을 수 없습니다: {exc}") from exc

        max_channels = int(device_info["max_input_channels"])
        if max_channels < 1:
            raise CaptureSetupError(f"입력 채널이 없는 장치입니다: {device_info['name']}")

        self._sample_rate = int(capture_config.sample_rate or device_info["default_samplerate"])
        self._channels = capture_config.channels or min(_DEFAULT_MAX_CHANNELS, max_channels)
        self._device_name = str(device_info["name"])

        self._stream: Optional[sd.InputStream] = None
        self._lock = threading.Lock()

        logger.info(
            f"SoundDeviceCapture 초기화 완료: "
            f"device='{self._device_name}', "
            f"sample_rate={self._sample_rate}Hz, "
            f"channels={self._channels}, "
            f"encoding={self._encoding.value}"
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
    def running(self) -> bool:
        with self._lock:
            return self._stream is not None

    def start(self, on_frame: FrameCallback, on_error: Optional[ErrorCallback] = None) -> None:
        """
        입력 스트림을 열고 시작합니다.

        에러:
            CaptureSetupError: 스트림 생성 또는 시작 실패
        """
        with self._lock:
            if self._stream is not None:
                logger.warning("SoundDeviceCapture가 이미 실행 중입니다")
                return

            callback = _make_stream_callback(
                on_frame, on_error, self._channels, self._sample_rate, self._encoding
            )
            try:
                stream = sd.InputStream(
                    device=self._device,
                    samplerate=self._sample_rate,
                    channels=self._channels,
                    dtype=self._encoding.sounddevice_dtype,
                    blocksize=self._block_size,
                    callback=callback,
                )
                stream.start()
            except Exception as exc:
                raise CaptureSetupError(f"입력 스트림 시작 실패: {exc}") from exc

            self._stream = stream

        logger.info(f"오디오 캡처 시작: device='{self._device_name}'")

    def close(self) -> None:
        """스트림을 중지하고 닫습니다. 반환 후에는 콜백이 호출되지 않습니다."""
        with self._lock:
            stream = self._stream
            self._stream = None

        if stream is None:
            return

        try:
            stream.stop()
        finally:
            stream.close()
        logger.info("오디오 캡처 중지 완료")


# =============================================================================
# 모듈 레벨 헬퍼 함수
# =============================================================================

def _make_stream_callback(
    on_frame: FrameCallback,
    on_error: Optional[ErrorCallback],
    channels: int,
    sample_rate: int,
    encoding: SampleEncoding,
):
    """
    sounddevice 콜백 함수를 생성합니다.

    클로저는 on_frame/on_error만 참조하므로 캡처 객체나 컨트롤러를 붙잡지 않습니다.
    """

    def _callback(indata, frames, time_info, status) -> None:
        if status and on_error is not None:
            on_error(CaptureError(str(status)))

        frame = AudioFrame(
            data=indata,
            channels=channels,
            sample_rate=sample_rate,
            encoding=encoding,
        )
        try:
            on_frame(frame)
        except Exception as exc:
            # 예외가 콜백 밖으로 나가면 PortAudio 스트림이 중단됨
            if on_error is not None:
                on_error(exc)

    return _callback
