"""
실시간 전사 파이프라인 수명주기 컨트롤러 모듈입니다.

역할:
- 캡처 소스 → SampleBridge → 추론 워커 스레드 연결
- start(): 워커 스레드 생성 후 캡처 시작 (부분 시작 없음)
- stop(): 정지 신호 → 캡처 해제 → 워커 join → 엔진 해제 순서로 종료
- stop() 없이 컨트롤러가 해제되어도 weakref.finalize로 같은 종료 절차 실행

파이프라인 구조:
    [CaptureSource] ─ 콜백 스레드 ─ FrameForwarder(downmix) ─▶ [SampleBridge]
                                                                    │
    워커 스레드: drain_all ─▶ RateConverter ─▶ ChunkAccumulator ─▶ ASREngine ─▶ sink

상태:
    idle → running → stopping → stopped

사용 예시:
    >>> with build_transcriber(config) as transcriber:
    ...     transcriber.start()
    ...     time.sleep(10)
"""

from __future__ import annotations

import logging
import threading
import time
import weakref
from typing import Optional

from livescribe.audio.bridge import FrameForwarder, SampleBridge
from livescribe.audio.chunker import ChunkAccumulator
from livescribe.audio.resampler import RateConverter
from livescribe.capture import CaptureSource
from livescribe.config.schema import AppConfig
from livescribe.errors import CaptureError, LifecycleError, SetupError
from livescribe.metrics import PipelineStats
from livescribe.metrics.metrics_store import MetricsStore
from livescribe.stt.engine import ASREngine, load_engine
from livescribe.stt.sink import StdoutSink, TextSink
from livescribe.stt.worker import InferenceWorker

logger = logging.getLogger(__name__)

# 컨트롤러 상태
STATUS_IDLE = "idle"
STATUS_RUNNING = "running"
STATUS_STOPPING = "stopping"
STATUS_STOPPED = "stopped"


class Transcriber:
    """
    캡처 소스와 추론 워커의 시작/정지 순서를 관리하는 컨트롤러입니다.

    캡처 콜백과 워커 스레드는 컨트롤러를 참조하지 않습니다.
    공유 상태는 SampleBridge 하나뿐입니다.

    파라미터:
        capture: 오디오 입력 소스 (시작 전 상태)
        engine: 로드된 ASR 엔진 (소유권이 컨트롤러로 넘어옴)
        config: 전체 애플리케이션 설정 객체
        sink: 텍스트 조각 출력 콜백 (None이면 StdoutSink)
        metrics: 메트릭 저장소 (None이면 내부 생성)

    에러:
        SetupError: 엔진 입력 샘플레이트와 audio.target_sample_rate가 다른 경우
    """

    def __init__(
        self,
        capture: CaptureSource,
        engine: ASREngine,
        config: AppConfig,
        sink: Optional[TextSink] = None,
        metrics: Optional[MetricsStore] = None,
    ) -> None:
        target_rate = config.audio.target_sample_rate
        if engine.sample_rate != target_rate:
            raise SetupError(
                f"ASR 엔진 샘플레이트({engine.sample_rate}Hz)와 "
                f"audio.target_sample_rate({target_rate}Hz)가 다릅니다"
            )

        self._capture = capture
        self._engine = engine
        self._metrics = metrics if metrics is not None else MetricsStore()

        self._bridge = SampleBridge()
        self._converter = RateConverter(
            capture.sample_rate, target_rate, config.audio.resampler_window
        )
        self._accumulator = ChunkAccumulator(engine.chunk_size)
        self._stop_event = threading.Event()
        self._worker = InferenceWorker(
            bridge=self._bridge,
            converter=self._converter,
            accumulator=self._accumulator,
            engine=engine,
            sink=sink if sink is not None else StdoutSink(),
            stop_event=self._stop_event,
            idle_sleep_sec=config.worker.idle_sleep_ms / 1000.0,
            metrics=self._metrics,
            backlog_warn_sec=config.worker.backlog_warn_sec,
        )
        self._thread = threading.Thread(
            target=self._worker.run, name="inference_worker", daemon=True
        )
        self._join_timeout = config.worker.join_timeout_sec or None

        self._status: str = STATUS_IDLE
        self._starting = False
        self._lock = threading.Lock()

        # 컨트롤러가 stop() 없이 해제되거나 인터프리터가 종료될 때도 같은 절차로 정리
        self._finalizer = weakref.finalize(
            self,
            _teardown,
            self._stop_event,
            capture,
            self._thread,
            engine,
            self._join_timeout,
        )

        logger.info(
            f"Transcriber 초기화 완료: "
            f"capture={capture.sample_rate}Hz/{capture.channels}ch/{capture.encoding.value}, "
            f"target={target_rate}Hz, chunk={engine.chunk_size}samples"
        )

    # =========================================================================
    # 공개 인터페이스
    # =========================================================================

    def get_status(self) -> str:
        """컨트롤러의 현재 상태를 반환합니다."""
        with self._lock:
            return self._status

    def get_stats(self) -> PipelineStats:
        """파이프라인 누적 통계를 반환합니다."""
        return self._metrics.get_stats()

    @property
    def capture(self) -> CaptureSource:
        return self._capture

    @property
    def bridge(self) -> SampleBridge:
        return self._bridge

    @property
    def accumulator(self) -> ChunkAccumulator:
        return self._accumulator

    @property
    def worker(self) -> InferenceWorker:
        return self._worker

    @property
    def worker_alive(self) -> bool:
        """워커 스레드가 실행 중인지 여부입니다."""
        return self._thread.is_alive()

    def start(self) -> None:
        """
        워커 스레드를 시작한 뒤 캡처 소스를 시작합니다.

        상태는 워커 스레드와 캡처 소스가 모두 시작된 뒤에 running이 됩니다.
        시작 중에는 idle로 남아 있으며 다른 start() 호출은 거부됩니다.

        에러:
            LifecycleError: idle 상태가 아닐 때 (두 번째 호출, stop 이후 호출),
                또는 시작 도중 stop()이 호출된 경우
            CaptureSetupError: 캡처 시작 실패. 워커와 엔진을 정리한 뒤 전달됩니다.
        """
        with self._lock:
            if self._status != STATUS_IDLE or self._starting:
                raise LifecycleError(f"start()는 idle 상태에서 한 번만 호출할 수 있습니다: {self._status}")
            self._starting = True

        try:
            self._thread.start()
            self._capture.start(
                FrameForwarder(self._bridge, self._metrics),
                on_error=_CaptureErrorReporter(self._metrics),
            )
        except Exception:
            logger.error("캡처 시작 실패, 파이프라인 정리")
            with self._lock:
                self._starting = False
                self._status = STATUS_STOPPING
            self._finalizer()
            with self._lock:
                self._status = STATUS_STOPPED
            raise

        with self._lock:
            self._starting = False
            stopped_meanwhile = self._status != STATUS_IDLE
            if not stopped_meanwhile:
                self._status = STATUS_RUNNING

        if stopped_meanwhile:
            # 시작 도중 stop()이 먼저 정리를 마쳤으므로 방금 시작된 캡처만 해제
            self._capture.close()
            raise LifecycleError("시작 도중 stop()이 호출되었습니다")

        logger.info("전사 파이프라인 시작")

    def wait_idle(self, timeout: Optional[float] = None, poll_sec: float = 0.01) -> bool:
        """
        브리지에 남은 샘플과 완성된 청크를 워커가 모두 처리할 때까지 기다립니다.

        캡처 소스가 더 이상 샘플을 만들지 않을 때(파일 재생 종료 등) 의미가
        있습니다. 리샘플러 윈도우와 청크 크기에 못 미치는 잔여는 남습니다.

        반환값:
            bool: 유휴 상태에 도달하면 True, 시간 초과 또는 워커 종료 시 False
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._thread.is_alive():
            if self._worker.is_idle():
                return True
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(poll_sec)
        return False

    def stop(self) -> None:
        """
        파이프라인을 종료합니다. 여러 번 호출해도 안전합니다.

        반환 시점에는 캡처가 해제되고 워커 스레드가 종료되었으며 엔진이 해제되어 있습니다.
        정지 신호 이후에는 새 추론이 시작되지 않고, 진행 중인 추론은 완료까지 기다립니다.
        """
        with self._lock:
            if self._status in (STATUS_STOPPING, STATUS_STOPPED):
                return
            was_running = self._status == STATUS_RUNNING
            self._status = STATUS_STOPPING

        logger.info("전사 파이프라인 종료 시작")
        self._finalizer()

        with self._lock:
            self._status = STATUS_STOPPED

        if was_running:
            stats = self._metrics.get_stats()
            logger.info(
                f"전사 파이프라인 종료 완료: "
                f"frames={stats.frames_captured}, "
                f"chunks={stats.chunks_transcribed}, "
                f"emitted={stats.increments_emitted}, "
                f"capture_errors={stats.capture_errors}, "
                f"conversion_errors={stats.conversion_errors}, "
                f"inference_errors={stats.inference_errors}, "
                f"inference_mean={stats.inference_mean_ms}ms, "
                f"inference_p95={stats.inference_p95_ms}ms, "
                f"pending_chunk_samples={self._accumulator.pending}"
            )

    def __enter__(self) -> "Transcriber":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


class _CaptureErrorReporter:
    """캡처 소스의 on_error 콜백입니다. 로깅 후 캡처는 계속됩니다."""

    def __init__(self, metrics: MetricsStore) -> None:
        self._metrics = metrics

    def __call__(self, error: Exception) -> None:
        self._metrics.increment_capture_errors()
        if isinstance(error, CaptureError):
            logger.warning(f"캡처 장치 오류: {error}")
        else:
            logger.error(f"캡처 콜백 오류: {error}", exc_info=error)


def _teardown(
    stop_event: threading.Event,
    capture: CaptureSource,
    thread: threading.Thread,
    engine: ASREngine,
    join_timeout: Optional[float],
) -> None:
    """
    정지 신호 → 캡처 해제 → 워커 join → 엔진 해제 순서로 정리합니다.

    weakref.finalize 대상이므로 컨트롤러 자체를 참조하지 않습니다.
    """
    stop_event.set()

    try:
        capture.close()
    except Exception as exc:
        logger.error(f"캡처 해제 실패: {exc}", exc_info=True)

    if thread.is_alive() and thread is not threading.current_thread():
        thread.join(join_timeout)
        if thread.is_alive():
            # 진행 중인 추론이 엔진을 사용 중이므로 해제하지 않음
            logger.error(
                f"워커 스레드가 {join_timeout}초 안에 종료되지 않아 엔진 해제를 건너뜁니다"
            )
            return

    engine.close()


# =============================================================================
# 팩토리
# =============================================================================

def create_capture(config: AppConfig) -> CaptureSource:
    """설정에 따라 적절한 캡처 소스를 생성합니다."""
    if config.system.mode == "file":
        from livescribe.capture.file_mock_capture import FileMockCapture
        return FileMockCapture(config)

    from livescribe.capture.sounddevice_capture import SoundDeviceCapture
    return SoundDeviceCapture(config)


def build_transcriber(
    config: AppConfig,
    sink: Optional[TextSink] = None,
    metrics: Optional[MetricsStore] = None,
) -> Transcriber:
    """
    설정으로부터 엔진과 캡처 소스를 준비해 Transcriber를 생성합니다.

    모델 로드(느린 작업)를 캡처 장치 준비보다 먼저 수행합니다.

    에러:
        SetupError: 모델 로드, 장치 준비, 샘플 인코딩 관련 설정 오류
    """
    engine = load_engine(config)
    try:
        capture = create_capture(config)
    except Exception:
        engine.close()
        raise

    try:
        return Transcriber(capture, engine, config, sink=sink, metrics=metrics)
    except Exception:
        capture.close()
        engine.close()
        raise
