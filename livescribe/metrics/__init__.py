"""
메트릭 모듈 패키지

공통 데이터 타입:
- PipelineStats: 파이프라인 누적 카운터와 추론 지연 통계 스냅샷
"""

from dataclasses import dataclass


@dataclass
class PipelineStats:
    """
    파이프라인 누적 통계 스냅샷입니다.

    필드:
        frames_captured: 캡처 콜백 호출 수
        capture_errors: 캡처 드라이버 오류 보고 수
        conversion_errors: 변환에 실패해 스킵된 리샘플러 윈도우 수
        chunks_transcribed: 추론을 수행한 청크 수
        inference_errors: 추론 실패 청크 수
        increments_emitted: 출력된 비어있지 않은 텍스트 조각 수
        last_backlog_samples: 마지막 드레인에서 회수한 입력 샘플 수
        max_backlog_samples: 드레인 1회 최대 입력 샘플 수
        inference_count: 지연 측정 샘플 수
        inference_mean_ms: 추론 1회 평균 지연 (밀리초)
        inference_p95_ms: 추론 1회 95th percentile 지연 (밀리초)
    """
    frames_captured: int = 0
    capture_errors: int = 0
    conversion_errors: int = 0
    chunks_transcribed: int = 0
    inference_errors: int = 0
    increments_emitted: int = 0
    last_backlog_samples: int = 0
    max_backlog_samples: int = 0
    inference_count: int = 0
    inference_mean_ms: float = 0.0
    inference_p95_ms: float = 0.0
