"""
ASR 입력 청크 누적 모듈입니다.

리샘플된 16kHz 샘플을 모아 ASR 엔진이 요구하는 고정 길이(기본 8960 샘플)
청크로 잘라냅니다. 청크에 못 미치는 꼬리는 다음 입력이 올 때까지 보관합니다.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

import numpy as np

logger = logging.getLogger(__name__)


class ChunkAccumulator:
    """
    고정 길이 청크 누적기입니다. 워커 스레드 전용이라 락이 없습니다.

    청크는 입력 순서를 그대로 유지하며 서로 겹치지 않습니다.
    """

    def __init__(self, chunk_size: int) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size는 0보다 커야 합니다: {chunk_size}")
        self._chunk_size = chunk_size
        self._buffer = np.empty(0, dtype=np.float32)
        # 이미 청크로 내보낸 위치
        self._offset = 0
        self.chunks_emitted: int = 0

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def pending(self) -> int:
        """청크로 내보내지 않은 샘플 수입니다."""
        return self._buffer.size - self._offset

    def append(self, samples: np.ndarray) -> None:
        """샘플을 꼬리에 추가합니다."""
        samples = np.asarray(samples, dtype=np.float32).reshape(-1)
        if samples.size == 0:
            return
        # 소비된 앞부분은 추가 시점에 정리
        self._buffer = np.concatenate([self._buffer[self._offset:], samples])
        self._offset = 0

    def pop_chunk(self) -> Optional[np.ndarray]:
        """
        청크 하나를 꺼냅니다.

        반환값:
            np.ndarray | None: chunk_size 길이 float32 배열, 부족하면 None
        """
        if self.pending < self._chunk_size:
            return None
        end = self._offset + self._chunk_size
        chunk = self._buffer[self._offset:end].copy()
        self._offset = end
        self.chunks_emitted += 1
        return chunk

    def drain_chunks(self) -> Iterator[np.ndarray]:
        """꺼낼 수 있는 청크를 순서대로 생성합니다."""
        while True:
            chunk = self.pop_chunk()
            if chunk is None:
                return
            yield chunk

    def remainder(self) -> np.ndarray:
        """청크에 못 미치는 보관 샘플의 복사본을 반환합니다."""
        return self._buffer[self._offset:].copy()

    def reset(self) -> None:
        self._buffer = np.empty(0, dtype=np.float32)
        self._offset = 0
        logger.debug("ChunkAccumulator 상태 초기화")
