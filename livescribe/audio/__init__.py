"""
오디오 처리 모듈 패키지

파이프라인 단계:
- downmix: 캡처 프레임 → 모노 float32 (캡처 콜백 스레드)
- SampleBridge: 캡처 스레드 → 워커 스레드 샘플 전달
- RateConverter: 캡처 샘플레이트 → ASR 샘플레이트 (워커 스레드)
- ChunkAccumulator: ASR 고정 길이 청크 분할 (워커 스레드)
"""

from livescribe.audio.bridge import FrameForwarder, SampleBridge
from livescribe.audio.chunker import ChunkAccumulator
from livescribe.audio.downmix import downmix, downmix_frame, to_float32
from livescribe.audio.resampler import (
    ConversionResult,
    PolyphaseResampler,
    RateConverter,
    convert_windows,
)

__all__ = [
    "ChunkAccumulator",
    "ConversionResult",
    "FrameForwarder",
    "PolyphaseResampler",
    "RateConverter",
    "SampleBridge",
    "convert_windows",
    "downmix",
    "downmix_frame",
    "to_float32",
]
