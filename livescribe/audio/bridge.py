"""
캡처 콜백과 추론 워커 사이의 샘플 전달 버퍼 모듈입니다.

역할:
- 캡처 스레드(단일 생산자)가 모노 샘플 블록을 꼬리에 추가
- 추론 워커(단일 소비자)가 쌓인 샘플 전체를 도착 순서대로 한 번에 회수
- 락은 push/drain의 리스트 교체 구간에서만 잡으며 결합(concatenate)은 락 밖에서 수행

크기 상한과 백프레셔는 없습니다. 추론이 캡처보다 느린 상태가 지속되면
버퍼가 계속 커지며, 워커가 드레인 크기로 이를 감지해 경고합니다.

사용 예시:
    >>> bridge = SampleBridge()
    >>> bridge.push(mono_samples)        # 캡처 콜백
    >>> samples = bridge.drain_all()     # 워커 스레드
"""

from __future__ import annotations

import threading
from typing import Optional

import numpy as np

from livescribe.audio.downmix import downmix_frame
from livescribe.capture import AudioFrame
from livescribe.metrics.metrics_store import MetricsStore


class SampleBridge:
    """
    모노 float32 샘플의 스레드 안전 FIFO 버퍼입니다.

    push는 블록 참조 하나를 리스트에 추가하는 O(1) 작업이고,
    drain_all은 회수한 샘플 수에 비례하는 시간이 걸립니다.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blocks: list[np.ndarray] = []
        self._pending: int = 0

    def push(self, samples: np.ndarray) -> None:
        """
        샘플 블록을 꼬리에 추가합니다.

        블록은 복사하지 않으므로 호출자는 push 이후 배열을 수정하면 안 됩니다.
        """
        block = np.asarray(samples, dtype=np.float32).reshape(-1)
        if block.size == 0:
            return
        with self._lock:
            self._blocks.append(block)
            self._pending += block.size

    def drain_all(self) -> np.ndarray:
        """
        쌓인 샘플 전체를 원자적으로 꺼내 도착 순서대로 반환합니다.

        반환값:
            np.ndarray: float32 배열 (비어 있으면 길이 0)
        """
        with self._lock:
            blocks = self._blocks
            self._blocks = []
            self._pending = 0

        if not blocks:
            return np.empty(0, dtype=np.float32)
        if len(blocks) == 1:
            return blocks[0]
        return np.concatenate(blocks)

    @property
    def pending(self) -> int:
        """현재 대기 중인 샘플 수입니다."""
        with self._lock:
            return self._pending

    def __len__(self) -> int:
        return self.pending


class FrameForwarder:
    """
    캡처 콜백으로 등록되는 호출 객체입니다.

    AudioFrame을 모노로 변환해 SampleBridge에 넣습니다. 브리지와 메트릭 저장소 외에는
    아무것도 참조하지 않으므로 캡처 장치가 파이프라인 컨트롤러를 붙잡지 않습니다.
    """

    def __init__(self, bridge: SampleBridge, metrics: Optional[MetricsStore] = None) -> None:
        self._bridge = bridge
        self._metrics = metrics
        # 콜백 스레드만 증가시키는 카운터
        self.frames_forwarded: int = 0

    def __call__(self, frame: AudioFrame) -> None:
        self._bridge.push(downmix_frame(frame))
        self.frames_forwarded += 1
        if self._metrics is not None:
            self._metrics.increment_frames()
