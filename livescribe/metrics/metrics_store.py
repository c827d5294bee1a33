"""
공유 메트릭 저장소 모듈입니다.

역할:
- 캡처 콜백 스레드, 추론 워커, 컨트롤러가 공유하는 thread-safe 카운터
- 추론 지연시간 슬라이딩 윈도우 통계 (평균, P95)
- 백로그(드레인 1회 입력 샘플 수) 기록

사용 예시:
    >>> store = MetricsStore()
    >>> store.record_inference(latency_ms=42.0)
    >>> stats = store.get_stats()
"""

from __future__ import annotations

import threading
from collections import deque

import numpy as np

from livescribe.metrics import PipelineStats

# 지연 통계에 사용하는 최근 측정값 수
DEFAULT_LATENCY_WINDOW = 500


class MetricsStore:
    """
    파이프라인 메트릭을 중앙에서 관리하는 thread-safe 저장소입니다.

    모든 공개 메서드는 RLock으로 보호됩니다. 캡처 콜백에서는 카운터 증가만
    호출하므로 락 구간은 짧습니다.
    """

    def __init__(self, latency_window: int = DEFAULT_LATENCY_WINDOW) -> None:
        self._lock = threading.RLock()
        self._stats = PipelineStats()
        self._latencies: deque[float] = deque(maxlen=latency_window)

    # =========================================================================
    # 카운터
    # =========================================================================

    def increment_frames(self, count: int = 1) -> None:
        with self._lock:
            self._stats.frames_captured += count

    def increment_capture_errors(self) -> None:
        with self._lock:
            self._stats.capture_errors += 1

    def increment_conversion_errors(self, count: int = 1) -> None:
        with self._lock:
            self._stats.conversion_errors += count

    def increment_inference_errors(self) -> None:
        with self._lock:
            self._stats.inference_errors += 1

    def increment_emitted(self) -> None:
        with self._lock:
            self._stats.increments_emitted += 1

    # =========================================================================
    # 추론 지연시간 / 백로그
    # =========================================================================

    def record_inference(self, latency_ms: float) -> None:
        """청크 1회 추론 지연을 기록합니다 (실패한 추론 포함)."""
        with self._lock:
            self._stats.chunks_transcribed += 1
            self._latencies.append(latency_ms)

    def record_backlog(self, samples: int) -> None:
        """드레인 1회에 회수한 입력 샘플 수를 기록합니다."""
        with self._lock:
            self._stats.last_backlog_samples = samples
            if samples > self._stats.max_backlog_samples:
                self._stats.max_backlog_samples = samples

    # =========================================================================
    # 조회
    # =========================================================================

    def get_stats(self) -> PipelineStats:
        """현재 통계 스냅샷을 반환합니다."""
        with self._lock:
            s = self._stats
            latencies = np.asarray(self._latencies, dtype=np.float64)
            mean_ms = float(np.mean(latencies)) if latencies.size else 0.0
            p95_ms = float(np.percentile(latencies, 95)) if latencies.size else 0.0
            return PipelineStats(
                frames_captured=s.frames_captured,
                capture_errors=s.capture_errors,
                conversion_errors=s.conversion_errors,
                chunks_transcribed=s.chunks_transcribed,
                inference_errors=s.inference_errors,
                increments_emitted=s.increments_emitted,
                last_backlog_samples=s.last_backlog_samples,
                max_backlog_samples=s.max_backlog_samples,
                inference_count=int(latencies.size),
                inference_mean_ms=round(mean_ms, 2),
                inference_p95_ms=round(p95_ms, 2),
            )

    def reset(self) -> None:
        with self._lock:
            self._stats = PipelineStats()
            self._latencies.clear()
