"""
RateConverter / PolyphaseResampler 단위 테스트

검증 항목:
- 윈도우 정렬 입력의 출력 길이가 input_length * R2 / R1과 일치
- 작은 배치 반복과 큰 배치 1회의 총 출력 길이/값이 동일 (잔여 샘플 중복/누락 없음)
- 윈도우 분할 변환 결과가 전체 스트림 1회 변환(upfirdn)과 동일
- 윈도우 변환 실패 시 해당 출력만 누락되고 다음 윈도우 계속 처리
- 동일 레이트 통과(pass-through)
"""

from __future__ import annotations

import numpy as np
import pytest
from scipy.signal import upfirdn

from livescribe.audio.resampler import (
    PolyphaseResampler,
    RateConverter,
    _design_filter,
    convert_windows,
)
from livescribe.errors import RateConversionError


# =============================================================================
# 테스트 헬퍼
# =============================================================================

def _make_sine_wave(
    freq_hz: float,
    num_samples: int,
    sample_rate: int,
    amplitude: float = 0.5,
) -> np.ndarray:
    """float32 사인파를 생성합니다."""
    t = np.arange(num_samples) / sample_rate
    return (np.sin(2 * np.pi * freq_hz * t) * amplitude).astype(np.float32)


class _DoublingUnit:
    """윈도우 샘플을 2배 길이로 반복하는 가짜 변환 단위입니다."""

    def __init__(self, window_size: int, fail_on: tuple = ()) -> None:
        self._window_size = window_size
        self._fail_on = set(fail_on)
        self.calls = 0

    def required_input_window_size(self) -> int:
        return self._window_size

    def convert(self, window: np.ndarray) -> np.ndarray:
        index = self.calls
        self.calls += 1
        if index in self._fail_on:
            raise RateConversionError(f"window {index} 실패")
        return np.repeat(window, 2)


# =============================================================================
# convert_windows (경계 처리) 테스트
# =============================================================================

def test_convert_windows_returns_unconsumed_tail():
    unit = _DoublingUnit(window_size=4)
    samples = np.arange(10, dtype=np.float32)

    result = convert_windows(unit, np.empty(0, dtype=np.float32), samples)

    assert unit.calls == 2
    np.testing.assert_array_equal(result.output, np.repeat(np.arange(8, dtype=np.float32), 2))
    np.testing.assert_array_equal(result.remainder, [8.0, 9.0])
    assert result.failed_windows == 0


def test_convert_windows_prepends_remainder():
    unit = _DoublingUnit(window_size=4)
    remainder = np.array([0.0, 1.0, 2.0], dtype=np.float32)

    result = convert_windows(unit, remainder, np.array([3.0, 4.0], dtype=np.float32))

    np.testing.assert_array_equal(result.output, np.repeat([0.0, 1.0, 2.0, 3.0], 2))
    np.testing.assert_array_equal(result.remainder, [4.0])


def test_convert_windows_short_input_is_all_remainder():
    unit = _DoublingUnit(window_size=4)
    result = convert_windows(unit, np.empty(0, dtype=np.float32), np.ones(3, dtype=np.float32))
    assert unit.calls == 0
    assert result.output.size == 0
    assert result.remainder.size == 3


def test_convert_windows_skips_failed_window():
    unit = _DoublingUnit(window_size=2, fail_on=(1,))
    samples = np.arange(6, dtype=np.float32)

    result = convert_windows(unit, np.empty(0, dtype=np.float32), samples)

    # 두 번째 윈도우 [2, 3]의 출력만 빠짐
    np.testing.assert_array_equal(result.output, [0, 0, 1, 1, 4, 4, 5, 5])
    assert result.failed_windows == 1
    assert result.remainder.size == 0


# =============================================================================
# PolyphaseResampler 테스트
# =============================================================================

@pytest.mark.parametrize(
    "input_rate, output_rate, expected_up, expected_down",
    [(48000, 16000, 1, 3), (44100, 16000, 160, 441), (8000, 16000, 2, 1)],
)
def test_ratio_reduced_by_gcd(input_rate, output_rate, expected_up, expected_down):
    unit = PolyphaseResampler(input_rate, output_rate)
    assert (unit.up, unit.down) == (expected_up, expected_down)


def test_window_size_is_multiple_of_down():
    unit = PolyphaseResampler(48000, 16000, window_size=1024)
    assert unit.required_input_window_size() == 1026
    assert unit.output_per_window == 342

    unit = PolyphaseResampler(44100, 16000, window_size=1024)
    assert unit.required_input_window_size() == 1323
    assert unit.output_per_window == 480


def test_equal_rates_rejected():
    with pytest.raises(ValueError):
        PolyphaseResampler(16000, 16000)


def test_wrong_window_length_raises():
    unit = PolyphaseResampler(48000, 16000)
    with pytest.raises(RateConversionError):
        unit.convert(np.zeros(100, dtype=np.float32))


def test_non_finite_window_raises():
    unit = PolyphaseResampler(48000, 16000)
    window = np.zeros(unit.required_input_window_size(), dtype=np.float32)
    window[10] = np.nan
    with pytest.raises(RateConversionError):
        unit.convert(window)


@pytest.mark.parametrize("input_rate", [48000, 44100, 22050])
def test_windowed_output_matches_one_shot(input_rate):
    """윈도우 분할 변환이 전체 스트림 1회 변환과 같은 값을 내는지 확인합니다."""
    unit = PolyphaseResampler(input_rate, 16000)
    window = unit.required_input_window_size()
    signal = _make_sine_wave(440.0, window * 6, input_rate)

    chunked = np.concatenate([
        unit.convert(signal[i * window:(i + 1) * window]) for i in range(6)
    ])
    one_shot = upfirdn(_design_filter(unit.up, unit.down), signal.astype(np.float64),
                       up=unit.up, down=unit.down)

    assert chunked.size == unit.output_per_window * 6
    np.testing.assert_allclose(chunked, one_shot[:chunked.size], atol=1e-5)


def test_sine_amplitude_preserved():
    unit = PolyphaseResampler(48000, 16000)
    window = unit.required_input_window_size()
    signal = _make_sine_wave(1000.0, window * 20, 48000, amplitude=0.5)

    output = np.concatenate([
        unit.convert(signal[i * window:(i + 1) * window]) for i in range(20)
    ])
    # 필터 지연 구간 제외 후 RMS 비교
    steady = output[200:]
    rms = float(np.sqrt(np.mean(steady ** 2)))
    assert rms == pytest.approx(0.5 / np.sqrt(2), rel=0.05)


def test_reset_clears_history():
    unit = PolyphaseResampler(48000, 16000)
    window = _make_sine_wave(300.0, unit.required_input_window_size(), 48000)
    first = unit.convert(window)
    unit.convert(window)
    unit.reset()
    np.testing.assert_allclose(unit.convert(window), first)


# =============================================================================
# RateConverter 테스트
# =============================================================================

@pytest.mark.parametrize("input_rate", [48000, 44100])
def test_window_aligned_output_length(input_rate):
    converter = RateConverter(input_rate, 16000)
    window = converter._unit.required_input_window_size()
    samples = _make_sine_wave(1000.0, window * 10, input_rate)

    output = converter.process(samples)

    expected = samples.size * 16000 / input_rate
    assert abs(output.size - expected) <= 1
    assert converter.remainder.size == 0


def test_small_batches_match_large_batch():
    """작은 배치 반복과 큰 배치 1회의 출력이 동일해야 합니다."""
    samples = _make_sine_wave(523.0, 48000, 48000)

    large = RateConverter(48000, 16000)
    large_output = large.process(samples)

    small = RateConverter(48000, 16000)
    rng = np.random.default_rng(7)
    outputs = []
    position = 0
    while position < samples.size:
        size = int(rng.integers(1, 700))
        outputs.append(small.process(samples[position:position + size]))
        position += size
    small_output = np.concatenate(outputs)

    assert small_output.size == large_output.size
    np.testing.assert_allclose(small_output, large_output, atol=1e-6)
    np.testing.assert_array_equal(small.remainder, large.remainder)


def test_remainder_carried_between_calls():
    converter = RateConverter(48000, 16000)
    window = converter._unit.required_input_window_size()

    first = converter.process(np.zeros(window - 1, dtype=np.float32))
    assert first.size == 0
    assert converter.remainder.size == window - 1

    second = converter.process(np.zeros(2, dtype=np.float32))
    assert second.size == converter._unit.output_per_window
    assert converter.remainder.size == 1


def test_failed_window_counted_and_skipped():
    converter = RateConverter(48000, 16000)
    window = converter._unit.required_input_window_size()
    samples = np.zeros(window * 3, dtype=np.float32)
    samples[window + 5] = np.inf

    output = converter.process(samples)

    assert output.size == converter._unit.output_per_window * 2
    assert converter.failed_windows == 1


def test_passthrough_when_rates_equal():
    converter = RateConverter(16000, 16000)
    samples = np.arange(100, dtype=np.float32)

    output = converter.process(samples)

    assert converter.passthrough
    np.testing.assert_array_equal(output, samples)
    assert converter.remainder.size == 0


def test_converter_reset_drops_remainder():
    converter = RateConverter(48000, 16000)
    converter.process(np.ones(500, dtype=np.float32))
    converter.reset()
    assert converter.remainder.size == 0
