"""
모노 변환(downmix) 단위 테스트

검증 항목:
- 인코딩별 풀스케일 정규화 결과가 -1.0~+1.0 범위인지 확인
- 1채널 입력은 스케일 변환 후 항등 매핑
- 채널 평균 믹스다운, 불완전 프레임 버림
- 출력 배열이 입력 버퍼와 메모리를 공유하지 않는지 확인
"""

from __future__ import annotations

import numpy as np
import pytest

from livescribe.audio.downmix import downmix, downmix_frame, to_float32
from livescribe.capture import AudioFrame, SampleEncoding


# =============================================================================
# 테스트 헬퍼
# =============================================================================

def _full_range(encoding: SampleEncoding) -> np.ndarray:
    """인코딩의 최소/최대/중앙값을 포함하는 배열을 생성합니다."""
    if encoding is SampleEncoding.F32:
        return np.array([-1.5, -1.0, -0.25, 0.0, 0.5, 1.0, 2.0], dtype=np.float32)
    info = np.iinfo(encoding.dtype)
    middle = (int(info.min) + int(info.max)) // 2
    return np.array([info.min, info.min + 1, middle, info.max - 1, info.max], dtype=encoding.dtype)


# =============================================================================
# 스케일 변환 테스트
# =============================================================================

@pytest.mark.parametrize("encoding", list(SampleEncoding))
def test_scaled_values_within_unit_range(encoding):
    """모든 인코딩의 극값이 -1.0~+1.0 범위로 변환되는지 확인합니다."""
    scaled = to_float32(_full_range(encoding), encoding)
    assert scaled.dtype == np.float32
    assert np.all(scaled >= -1.0)
    assert np.all(scaled <= 1.0)


@pytest.mark.parametrize("encoding", list(SampleEncoding))
def test_stereo_downmix_within_unit_range(encoding):
    """스테레오 믹스다운 결과도 범위 안에 있는지 확인합니다."""
    data = np.repeat(_full_range(encoding), 2)
    mono = downmix(data, channels=2, encoding=encoding)
    assert np.all(np.abs(mono) <= 1.0)


def test_u8_midpoint_is_zero():
    assert to_float32(np.array([128], dtype=np.uint8), "u8")[0] == 0.0
    assert to_float32(np.array([0], dtype=np.uint8), "u8")[0] == -1.0


def test_i16_full_scale():
    scaled = to_float32(np.array([-32768, 16384], dtype=np.int16), SampleEncoding.I16)
    np.testing.assert_array_equal(scaled, np.array([-1.0, 0.5], dtype=np.float32))


def test_i32_full_scale():
    scaled = to_float32(np.array([-(2 ** 31), 2 ** 30], dtype=np.int32), SampleEncoding.I32)
    np.testing.assert_allclose(scaled, [-1.0, 0.5])


def test_f32_out_of_range_clipped():
    scaled = to_float32(np.array([1.5, -3.0], dtype=np.float32), SampleEncoding.F32)
    np.testing.assert_array_equal(scaled, np.array([1.0, -1.0], dtype=np.float32))


# =============================================================================
# 믹스다운 테스트
# =============================================================================

@pytest.mark.parametrize("encoding", list(SampleEncoding))
def test_mono_is_identity_after_scaling(encoding):
    """1채널 입력은 스케일 변환 결과와 동일해야 합니다."""
    data = _full_range(encoding)
    np.testing.assert_array_equal(
        downmix(data, channels=1, encoding=encoding),
        to_float32(data, encoding),
    )


def test_stereo_mean_in_frame_order():
    data = np.array([0.2, 0.4, -1.0, 1.0, 0.5, 0.5], dtype=np.float32)
    mono = downmix(data, channels=2, encoding=SampleEncoding.F32)
    np.testing.assert_allclose(mono, [0.3, 0.0, 0.5], atol=1e-7)


def test_output_length_is_samples_div_channels():
    data = np.zeros(3 * 7, dtype=np.int16)
    assert downmix(data, channels=3, encoding=SampleEncoding.I16).size == 7


def test_trailing_partial_frame_discarded():
    data = np.array([100, 100, 100, 100, 32767], dtype=np.int16)
    mono = downmix(data, channels=2, encoding=SampleEncoding.I16)
    assert mono.size == 2


def test_two_dimensional_input_accepted():
    """sounddevice가 넘기는 (frames, channels) 배열을 그대로 처리합니다."""
    data = np.array([[0.0, 1.0], [0.5, 0.5]], dtype=np.float32)
    mono = downmix(data, channels=2, encoding=SampleEncoding.F32)
    np.testing.assert_allclose(mono, [0.5, 0.5])


def test_output_does_not_share_input_buffer():
    """드라이버가 버퍼를 재사용해도 출력이 바뀌지 않아야 합니다."""
    data = np.full(8, 0.25, dtype=np.float32)
    mono = downmix(data, channels=1, encoding=SampleEncoding.F32)
    data[:] = 0.0
    assert np.all(mono == 0.25)


def test_zero_channels_rejected():
    with pytest.raises(ValueError):
        downmix(np.zeros(4, dtype=np.float32), channels=0, encoding=SampleEncoding.F32)


def test_u8_stereo_midscale_frame_gives_zeros():
    """중앙값 128인 100샘플 u8 스테레오 프레임은 50개의 0.0이 됩니다."""
    frame = AudioFrame(
        data=np.full(100, 128, dtype=np.uint8),
        channels=2,
        sample_rate=48000,
        encoding=SampleEncoding.U8,
    )
    mono = downmix_frame(frame)
    assert mono.size == 50
    assert np.all(mono == 0.0)
