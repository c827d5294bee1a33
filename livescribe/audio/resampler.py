"""
스트리밍 샘플레이트 변환 모듈입니다.

역할:
- 캡처 장치 샘플레이트(예: 48kHz/44.1kHz)를 ASR 입력 샘플레이트(16kHz)로 변환
- 고정 크기 입력 윈도우 단위로 변환하고 FIR 필터 이력을 윈도우 사이에 유지
- 윈도우를 채우지 못한 잔여 샘플을 명시적인 반환값으로 다음 호출에 넘김
- 윈도우 하나의 변환 실패는 로깅 후 건너뜀 (해당 출력만 누락)

구성:
    PolyphaseResampler  변환 단위. 정확히 한 윈도우를 받아 변환 (모노 1채널)
    convert_windows()   잔여 샘플 + 새 입력에서 전체 윈도우만 변환하고 새 잔여를 반환
    RateConverter       잔여 샘플을 보관하는 파이프라인 단계 (동일 레이트면 통과)

사용 예시:
    >>> converter = RateConverter(input_rate=48000, output_rate=16000)
    >>> samples_16k = converter.process(samples_48k)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.signal import firwin, upfirdn

from livescribe.errors import RateConversionError

logger = logging.getLogger(__name__)

# 리샘플러 입력 윈도우 기본 크기 (샘플)
DEFAULT_WINDOW_SIZE = 1024

# scipy.signal.resample_poly와 동일한 안티앨리어싱 필터 설계값
_KAISER_BETA = 5.0
_HALF_LEN_PER_RATE = 10


class PolyphaseResampler:
    """
    윈도우 단위로 호출되는 상태 유지형 폴리페이즈 FIR 리샘플러입니다.

    변환 비율 up/down은 GCD로 약분하며, 윈도우 크기는 down의 배수로 올림합니다.
    따라서 윈도우 하나는 항상 정확히 window * up / down 개의 출력을 만듭니다.

    직전 윈도우의 끝부분(필터 길이만큼)을 이력으로 보관하고 다음 윈도우 앞에
    붙여 계산하므로, 윈도우로 나눠 변환한 결과는 스트림 전체를 한 번에
    변환한 결과와 같습니다. 인과(causal) 필터이므로 출력은 약
    half_len / down 샘플만큼 지연됩니다.

    파라미터:
        input_rate: 입력 샘플레이트 (Hz)
        output_rate: 출력 샘플레이트 (Hz), input_rate와 달라야 함
        window_size: 입력 윈도우 기본 크기 (샘플)
    """

    def __init__(
        self,
        input_rate: int,
        output_rate: int,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> None:
        if input_rate <= 0 or output_rate <= 0:
            raise ValueError(f"샘플레이트는 양수여야 합니다: {input_rate} -> {output_rate}")
        if input_rate == output_rate:
            raise ValueError(f"입출력 샘플레이트가 같으면 변환할 필요가 없습니다: {input_rate}")
        if window_size <= 0:
            raise ValueError(f"윈도우 크기는 양수여야 합니다: {window_size}")

        common = math.gcd(input_rate, output_rate)
        self._input_rate = input_rate
        self._output_rate = output_rate
        self._up = output_rate // common
        self._down = input_rate // common

        self._filter = _design_filter(self._up, self._down)
        self._window_size = _round_up(window_size, self._down)
        self._history_len = _round_up(
            math.ceil((len(self._filter) - 1) / self._up), self._down
        )
        self._output_offset = self._history_len * self._up // self._down
        self._output_per_window = self._window_size * self._up // self._down
        self._history = np.zeros(self._history_len, dtype=np.float32)

        logger.info(
            f"PolyphaseResampler 초기화: {input_rate}Hz -> {output_rate}Hz "
            f"(up={self._up}, down={self._down}), "
            f"window={self._window_size}samples, taps={len(self._filter)}"
        )

    @property
    def up(self) -> int:
        return self._up

    @property
    def down(self) -> int:
        return self._down

    @property
    def output_per_window(self) -> int:
        """윈도우 하나당 출력 샘플 수입니다."""
        return self._output_per_window

    def required_input_window_size(self) -> int:
        """convert()가 받아야 하는 입력 샘플 수를 반환합니다."""
        return self._window_size

    def convert(self, window: np.ndarray) -> np.ndarray:
        """
        정확히 한 윈도우를 변환합니다.

        실패 시 필터 이력은 갱신하지 않습니다.

        파라미터:
            window: 길이가 required_input_window_size()인 float32 모노 배열

        반환값:
            np.ndarray: output_per_window 길이의 float32 배열

        에러:
            RateConversionError: 윈도우 길이가 다르거나, 유한하지 않은 값이 있거나,
                필터 연산이 실패한 경우
        """
        window = np.asarray(window, dtype=np.float32).reshape(-1)
        if window.size != self._window_size:
            raise RateConversionError(
                f"윈도우 크기 불일치: {window.size} (필요: {self._window_size})"
            )
        if not np.all(np.isfinite(window)):
            raise RateConversionError("윈도우에 NaN/Inf 샘플이 포함되어 있습니다")

        extended = np.concatenate([self._history, window])
        try:
            filtered = upfirdn(self._filter, extended, up=self._up, down=self._down)
        except (ValueError, MemoryError) as exc:
            raise RateConversionError(f"upfirdn 변환 실패: {exc}") from exc

        output = filtered[self._output_offset:self._output_offset + self._output_per_window]
        self._history = extended[-self._history_len:].copy()
        return output.astype(np.float32)

    def reset(self) -> None:
        """필터 이력을 무음으로 초기화합니다."""
        self._history = np.zeros(self._history_len, dtype=np.float32)


@dataclass
class ConversionResult:
    """
    convert_windows()의 반환값입니다.

    필드:
        output: 변환된 출력 샘플 (실패한 윈도우의 출력은 빠짐)
        remainder: 윈도우를 채우지 못해 다음 호출로 넘길 입력 샘플
        failed_windows: 변환에 실패한 윈도우 수
    """
    output: np.ndarray
    remainder: np.ndarray
    failed_windows: int = 0


def convert_windows(
    unit: PolyphaseResampler,
    remainder: np.ndarray,
    samples: np.ndarray,
) -> ConversionResult:
    """
    잔여 샘플과 새 입력을 이어 붙여 전체 윈도우만 변환합니다.

    샘플 순서는 바뀌지 않고, 변환되지 않은 꼬리는 그대로 새 remainder로
    반환되므로 호출 경계에서 샘플이 중복되거나 사라지지 않습니다.

    파라미터:
        unit: 변환 단위 (required_input_window_size()/convert() 제공)
        remainder: 이전 호출이 남긴 입력 샘플
        samples: 새로 들어온 입력 샘플

    반환값:
        ConversionResult: 출력, 새 잔여 샘플, 실패 윈도우 수
    """
    samples = np.asarray(samples, dtype=np.float32).reshape(-1)
    if remainder.size:
        pending = np.concatenate([remainder, samples])
    else:
        pending = samples

    window_size = unit.required_input_window_size()
    window_count = pending.size // window_size

    outputs: list[np.ndarray] = []
    failed = 0
    for index in range(window_count):
        window = pending[index * window_size:(index + 1) * window_size]
        try:
            outputs.append(unit.convert(window))
        except Exception as exc:
            failed += 1
            logger.error(f"리샘플러 윈도우 변환 실패, 윈도우 스킵: {exc}", exc_info=True)

    consumed = window_count * window_size
    new_remainder = pending[consumed:].copy()

    if outputs:
        output = np.concatenate(outputs)
    else:
        output = np.empty(0, dtype=np.float32)

    return ConversionResult(output=output, remainder=new_remainder, failed_windows=failed)


class RateConverter:
    """
    입력 샘플레이트를 ASR 샘플레이트로 바꾸는 파이프라인 단계입니다.

    워커 스레드 전용입니다. 잔여 샘플은 이 객체만 보관하며 SampleBridge로
    되돌려 넣지 않습니다.

    파라미터:
        input_rate: 캡처 샘플레이트 (Hz)
        output_rate: ASR 샘플레이트 (Hz)
        window_size: 리샘플러 입력 윈도우 기본 크기 (샘플)
    """

    def __init__(
        self,
        input_rate: int,
        output_rate: int,
        window_size: int = DEFAULT_WINDOW_SIZE,
    ) -> None:
        self._input_rate = input_rate
        self._output_rate = output_rate
        self._unit: Optional[PolyphaseResampler] = None
        if input_rate != output_rate:
            self._unit = PolyphaseResampler(input_rate, output_rate, window_size)
        self._remainder = np.empty(0, dtype=np.float32)
        self.failed_windows: int = 0

        logger.info(
            f"RateConverter 초기화: {input_rate}Hz -> {output_rate}Hz "
            f"(resample={self._unit is not None})"
        )

    @property
    def input_rate(self) -> int:
        return self._input_rate

    @property
    def output_rate(self) -> int:
        return self._output_rate

    @property
    def passthrough(self) -> bool:
        """입출력 레이트가 같아 변환 없이 통과하는지 여부입니다."""
        return self._unit is None

    @property
    def remainder(self) -> np.ndarray:
        """다음 호출로 넘어갈 입력 샘플의 복사본입니다."""
        return self._remainder.copy()

    def process(self, samples: np.ndarray) -> np.ndarray:
        """
        입력 샘플 배치를 변환합니다.

        파라미터:
            samples: 입력 레이트의 float32 모노 샘플 (임의 길이)

        반환값:
            np.ndarray: 출력 레이트의 float32 샘플
        """
        if self._unit is None:
            return np.asarray(samples, dtype=np.float32).reshape(-1)

        result = convert_windows(self._unit, self._remainder, samples)
        self._remainder = result.remainder
        self.failed_windows += result.failed_windows
        return result.output

    def reset(self) -> None:
        """잔여 샘플과 필터 이력을 초기화합니다."""
        self._remainder = np.empty(0, dtype=np.float32)
        if self._unit is not None:
            self._unit.reset()
        logger.debug("RateConverter 상태 초기화")


# =============================================================================
# 모듈 레벨 헬퍼 함수
# =============================================================================

def _design_filter(up: int, down: int) -> np.ndarray:
    """
    scipy.signal.resample_poly와 같은 방식으로 안티앨리어싱 FIR 필터를 설계합니다.

    차단 주파수는 1 / max(up, down), Kaiser(β=5.0) 윈도우,
    탭 수는 2 * 10 * max(up, down) + 1이며 보간 이득 보정을 위해 up을 곱합니다.
    """
    max_rate = max(up, down)
    half_len = _HALF_LEN_PER_RATE * max_rate
    taps = firwin(2 * half_len + 1, 1.0 / max_rate, window=("kaiser", _KAISER_BETA))
    return taps * up


def _round_up(value: int, multiple: int) -> int:
    """value 이상인 가장 작은 multiple의 배수를 반환합니다."""
    return max(multiple, -(-value // multiple) * multiple)
