"""
캡처 모듈 패키지

공통 데이터 타입 정의:
- SampleEncoding: 캡처 샘플 인코딩 (u8 / i16 / i32 / f32)
- AudioFrame: 캡처 콜백 1회분의 인터리브 오디오 버스트
- CaptureSource: 오디오 입력 소스 공통 인터페이스
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np


class SampleEncoding(str, enum.Enum):
    """
    캡처 샘플 인코딩입니다.

    값은 설정 파일의 capture.sample_format 문자열과 동일합니다.
    """
    U8 = "u8"
    I16 = "i16"
    I32 = "i32"
    F32 = "f32"

    @property
    def dtype(self) -> np.dtype:
        """인코딩에 대응하는 numpy dtype을 반환합니다."""
        return np.dtype(_ENCODING_DTYPES[self])

    @property
    def sounddevice_dtype(self) -> str:
        """sounddevice/soundfile dtype 문자열을 반환합니다."""
        return _ENCODING_DTYPES[self]

    @classmethod
    def from_dtype(cls, dtype) -> "SampleEncoding":
        """numpy dtype으로부터 인코딩을 결정합니다."""
        name = np.dtype(dtype).name
        for encoding, dtype_name in _ENCODING_DTYPES.items():
            if dtype_name == name:
                return encoding
        raise ValueError(f"지원하지 않는 샘플 dtype: {name}")


_ENCODING_DTYPES = {
    SampleEncoding.U8: "uint8",
    SampleEncoding.I16: "int16",
    SampleEncoding.I32: "int32",
    SampleEncoding.F32: "float32",
}


@dataclass
class AudioFrame:
    """
    캡처 콜백 1회분의 오디오 버스트입니다.

    콜백이 반환되면 data 버퍼는 드라이버가 재사용하므로
    모노 변환 이후에는 보관하지 않습니다.

    필드:
        data: 인터리브 샘플 (1차원) 또는 (frames, channels) 배열
        channels: 채널 수
        sample_rate: 샘플링레이트 (Hz)
        encoding: 샘플 인코딩
    """
    data: np.ndarray
    channels: int
    sample_rate: int
    encoding: SampleEncoding

    @property
    def sample_count(self) -> int:
        """채널을 합산한 총 샘플 수입니다."""
        return int(self.data.size)


# 캡처 콜백 타입
FrameCallback = Callable[[AudioFrame], None]
ErrorCallback = Callable[[Exception], None]


class CaptureSource(ABC):
    """
    오디오 입력 소스 공통 인터페이스입니다.

    start()로 넘긴 on_frame은 드라이버(또는 프로듀서) 스레드에서 호출되며
    짧은 시간 안에 반환되어야 합니다. 장치 수준 오류는 on_error로 보고되고
    캡처는 계속됩니다.
    """

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        """캡처 샘플링레이트 (Hz)"""

    @property
    @abstractmethod
    def channels(self) -> int:
        """캡처 채널 수"""

    @property
    @abstractmethod
    def encoding(self) -> SampleEncoding:
        """캡처 샘플 인코딩"""

    @abstractmethod
    def start(self, on_frame: FrameCallback, on_error: Optional[ErrorCallback] = None) -> None:
        """캡처를 시작합니다. 실패 시 CaptureSetupError를 발생시킵니다."""

    @abstractmethod
    def close(self) -> None:
        """캡처를 중지하고 장치를 해제합니다. 여러 번 호출해도 안전해야 합니다."""


__all__ = [
    "AudioFrame",
    "CaptureSource",
    "ErrorCallback",
    "FrameCallback",
    "SampleEncoding",
]
