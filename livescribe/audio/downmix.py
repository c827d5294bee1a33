"""
캡처 프레임 모노 변환 모듈입니다.

역할:
- 정수 PCM(u8/i16/i32)을 인코딩별 풀스케일 기준으로 -1.0~+1.0 float32 정규화
- 인터리브 멀티채널 프레임을 채널 평균으로 모노 믹스다운

캡처 콜백 안에서 실행되므로 락, 로깅, 리샘플링을 하지 않으며
입력 크기에 비례하는 시간 안에 끝납니다.

사용 예시:
    >>> mono = downmix(indata, channels=2, encoding=SampleEncoding.I16)
"""

from __future__ import annotations

import numpy as np

from livescribe.capture import AudioFrame, SampleEncoding

# 인코딩별 풀스케일 (u8은 중앙값 128 기준)
_U8_MIDPOINT = 128.0
_U8_SCALE = 128.0
_I16_SCALE = 32768.0
_I32_SCALE = 2147483648.0


def to_float32(data: np.ndarray, encoding: SampleEncoding | str) -> np.ndarray:
    """
    PCM 배열을 -1.0~+1.0 float32로 정규화합니다.

    파라미터:
        data: 원시 샘플 배열
        encoding: 샘플 인코딩

    반환값:
        np.ndarray: 새로 할당된 float32 배열 (입력 버퍼와 메모리를 공유하지 않음)
    """
    encoding = SampleEncoding(encoding)
    arr = np.asarray(data)

    if encoding is SampleEncoding.F32:
        # 드라이버가 풀스케일을 넘는 값을 줄 수 있으므로 클리핑
        return np.clip(arr.astype(np.float32, copy=False), -1.0, 1.0)
    if encoding is SampleEncoding.U8:
        return (arr.astype(np.float32) - _U8_MIDPOINT) / _U8_SCALE
    if encoding is SampleEncoding.I16:
        return arr.astype(np.float32) / _I16_SCALE

    # i32는 float32 가수부로 정확히 표현되지 않으므로 float64에서 나눈 뒤 변환
    return (arr.astype(np.float64) / _I32_SCALE).astype(np.float32)


def downmix(data: np.ndarray, channels: int, encoding: SampleEncoding | str) -> np.ndarray:
    """
    인터리브 멀티채널 샘플을 모노 float32로 변환합니다.

    S개 샘플, C개 채널 입력에서 정확히 S // C개의 모노 샘플을 프레임 순서대로
    생성하며 각 값은 C개 채널 값의 평균입니다. 마지막 불완전 프레임은 버립니다.

    파라미터:
        data: 1차원 인터리브 배열 또는 (frames, channels) 배열
        channels: 채널 수 (1 이상)
        encoding: 샘플 인코딩

    반환값:
        np.ndarray: shape=(S // C,) float32 모노 배열
    """
    if channels < 1:
        raise ValueError(f"채널 수는 1 이상이어야 합니다: {channels}")

    flat = np.asarray(data).reshape(-1)
    usable = flat.size - flat.size % channels
    scaled = to_float32(flat[:usable], encoding)

    if channels == 1:
        return scaled
    return scaled.reshape(-1, channels).mean(axis=1, dtype=np.float32)


def downmix_frame(frame: AudioFrame) -> np.ndarray:
    """AudioFrame을 모노 float32 배열로 변환합니다."""
    return downmix(frame.data, frame.channels, frame.encoding)
