"""
추론 워커 모듈입니다.

역할:
- SampleBridge에서 샘플을 회수해 RateConverter → ChunkAccumulator를 거쳐
  완성된 청크를 순서대로 ASR 엔진에 전달
- 청크마다 비어있지 않은 텍스트를 즉시 출력 (정지 시점까지 모아두지 않음)
- 정지 이벤트는 사이클 시작과 각 청크 추론 직전에 확인

상태 전이:
    waiting_for_input → draining → resampling → chunking → transcribing
    → waiting_for_input (반복), 정지 이벤트 관측 시 exiting

입력이 없을 때는 idle_sleep_sec 동안만 대기하므로 정지 요청은
최대 한 번의 유휴 대기 또는 진행 중인 추론 한 번 이내에 관측됩니다.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import numpy as np

from livescribe.audio.bridge import SampleBridge
from livescribe.audio.chunker import ChunkAccumulator
from livescribe.audio.resampler import RateConverter
from livescribe.metrics.metrics_store import MetricsStore
from livescribe.stt import TranscriptIncrement
from livescribe.stt.engine import ASREngine
from livescribe.stt.sink import TextSink

logger = logging.getLogger(__name__)

# 워커 상태
STATE_WAITING = "waiting_for_input"
STATE_DRAINING = "draining"
STATE_RESAMPLING = "resampling"
STATE_CHUNKING = "chunking"
STATE_TRANSCRIBING = "transcribing"
STATE_EXITING = "exiting"

# 기본 유휴 대기 시간 (초)
DEFAULT_IDLE_SLEEP_SEC = 0.01


class InferenceWorker:
    """
    ASR 엔진을 소유하고 청크를 순서대로 전사하는 워커입니다.

    run()은 전용 백그라운드 스레드에서 실행됩니다. 엔진 해제는 컨트롤러가
    워커 스레드 종료 후에 수행합니다.

    파라미터:
        bridge: 캡처 콜백이 채우는 샘플 버퍼
        converter: 캡처 샘플레이트 → ASR 샘플레이트 변환기
        accumulator: ASR 청크 누적기
        engine: ASR 엔진
        sink: 텍스트 조각 출력 콜백
        stop_event: 정지 신호
        idle_sleep_sec: 입력이 없을 때 대기 시간 (초)
        metrics: 메트릭 저장소 (None이면 내부 생성)
        backlog_warn_sec: 드레인 1회 입력이 이 길이(초)를 넘으면 경고 (0 = 비활성)
    """

    def __init__(
        self,
        bridge: SampleBridge,
        converter: RateConverter,
        accumulator: ChunkAccumulator,
        engine: ASREngine,
        sink: TextSink,
        stop_event: threading.Event,
        idle_sleep_sec: float = DEFAULT_IDLE_SLEEP_SEC,
        metrics: Optional[MetricsStore] = None,
        backlog_warn_sec: float = 0.0,
    ) -> None:
        self._bridge = bridge
        self._converter = converter
        self._accumulator = accumulator
        self._engine = engine
        self._sink = sink
        self._stop_event = stop_event
        self._idle_sleep_sec = idle_sleep_sec
        self._metrics = metrics if metrics is not None else MetricsStore()

        self._backlog_warn_samples = int(backlog_warn_sec * converter.input_rate)
        self._backlog_warned = False

        self._state: str = STATE_WAITING
        self._next_chunk_id: int = 0

    @property
    def state(self) -> str:
        return self._state

    @property
    def chunks_submitted(self) -> int:
        """엔진에 전달한 청크 수입니다."""
        return self._next_chunk_id

    def is_idle(self) -> bool:
        """
        브리지가 비어 있고 회수한 입력의 청크 처리를 모두 마쳤는지 여부입니다.

        브리지를 먼저 확인합니다. 워커는 드레인 전에 상태를 draining으로 바꾸므로
        그 뒤 waiting_for_input이 관측되면 이전에 회수한 샘플의 완성된 청크는
        모두 전사된 것입니다. 누적기에는 청크 크기 미만의 잔여만 남습니다.
        """
        if self._bridge.pending > 0:
            return False
        return self._state == STATE_WAITING

    def run(self) -> None:
        """정지 이벤트가 관측될 때까지 run_once()를 반복합니다."""
        logger.info("추론 워커 시작")
        while self.run_once():
            pass
        logger.info(f"추론 워커 종료: {self._next_chunk_id}개 청크 처리")

    def run_once(self) -> bool:
        """
        루프 한 사이클을 실행합니다.

        반환값:
            bool: 계속 실행해야 하면 True, 정지 이벤트를 관측했으면 False
        """
        if self._stop_event.is_set():
            self._state = STATE_EXITING
            return False

        self._state = STATE_DRAINING
        samples = self._bridge.drain_all()
        if samples.size == 0:
            self._state = STATE_WAITING
            time.sleep(self._idle_sleep_sec)
            return True

        self._observe_backlog(samples.size)

        self._state = STATE_RESAMPLING
        failed_before = self._converter.failed_windows
        converted = self._converter.process(samples)
        failed = self._converter.failed_windows - failed_before
        if failed:
            self._metrics.increment_conversion_errors(failed)

        self._state = STATE_CHUNKING
        self._accumulator.append(converted)

        while True:
            # 정지 관측 이후에는 새 추론을 시작하지 않음
            if self._stop_event.is_set():
                self._state = STATE_EXITING
                return False
            chunk = self._accumulator.pop_chunk()
            if chunk is None:
                break
            self._state = STATE_TRANSCRIBING
            self._transcribe(chunk)

        self._state = STATE_WAITING
        return True

    # =========================================================================
    # 내부 헬퍼 메서드
    # =========================================================================

    def _transcribe(self, chunk: np.ndarray) -> None:
        """청크 하나를 전사하고 비어있지 않은 결과를 출력합니다."""
        chunk_id = self._next_chunk_id
        self._next_chunk_id += 1

        start_ns = time.perf_counter_ns()
        try:
            text = self._engine.transcribe(chunk)
        except Exception as exc:
            logger.error(f"청크 {chunk_id} 추론 실패, 빈 텍스트로 처리: {exc}", exc_info=True)
            self._metrics.increment_inference_errors()
            text = ""
        latency_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_inference(latency_ms)

        if not text.strip():
            return

        increment = TranscriptIncrement(
            chunk_id=chunk_id,
            text=text,
            latency_ms=latency_ms,
            emitted_at_ns=time.time_ns(),
        )
        try:
            self._sink(increment)
        except Exception as exc:
            logger.error(f"청크 {chunk_id} 텍스트 출력 실패: {exc}", exc_info=True)
            return
        self._metrics.increment_emitted()
        logger.debug(f"청크 {chunk_id} 전사: latency={latency_ms:.1f}ms, text='{text}'")

    def _observe_backlog(self, drained: int) -> None:
        """드레인 크기를 기록하고 임계값을 넘으면 한 번 경고합니다."""
        self._metrics.record_backlog(drained)
        if self._backlog_warn_samples <= 0:
            return

        if drained > self._backlog_warn_samples:
            if not self._backlog_warned:
                self._backlog_warned = True
                logger.warning(
                    f"추론 백로그 증가: 드레인 1회 {drained}samples "
                    f"({drained / self._converter.input_rate:.1f}초 분량). "
                    f"추론이 캡처 속도를 따라가지 못하고 있습니다"
                )
        elif self._backlog_warned:
            self._backlog_warned = False
            logger.info(f"추론 백로그 해소: 드레인 1회 {drained}samples")
