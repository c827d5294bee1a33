"""
livescribe: 실시간 오디오 입력 → 로컬 ASR 텍스트 스트리밍 전사

파이프라인:
    CaptureSource → downmix → SampleBridge → RateConverter
    → ChunkAccumulator → ASREngine → 텍스트 출력
"""

__version__ = "0.1.0"
