"""
STT 모듈 패키지

공통 데이터 타입:
- TranscriptIncrement: 청크 하나의 전사 결과 조각
"""

from dataclasses import dataclass


@dataclass
class TranscriptIncrement:
    """
    청크 하나를 전사한 텍스트 조각입니다.

    조각은 이어 붙여 출력되며 이미 출력한 텍스트를 수정하지 않습니다.

    필드:
        chunk_id: 청크 순번 (0부터 시작)
        text: 전사된 텍스트 (비어있지 않음)
        latency_ms: 추론 소요 시간 (밀리초)
        emitted_at_ns: 출력 시각 (nanoseconds, time.time_ns() 기준)
    """
    chunk_id: int
    text: str
    latency_ms: float
    emitted_at_ns: int
