"""
파이프라인 공통 예외 모듈입니다.

분류:
- SetupError 계열: 장치 없음, 지원하지 않는 설정, 모델 로드 실패.
  파이프라인 시작 전에 호출자에게 전달되며 부분 시작은 없습니다.
- CaptureError / RateConversionError / InferenceError: 실행 중 발생하는 오류.
  로깅 후 건너뛰며 전사는 계속됩니다.
- LifecycleError: start()/stop() 사용 순서 위반
"""

from __future__ import annotations


class TranscriberError(Exception):
    """livescribe 예외의 기본 클래스입니다."""
    pass


class SetupError(TranscriberError):
    """파이프라인 시작 전 치명적 설정 오류입니다."""
    pass


class CaptureSetupError(SetupError):
    """오디오 입력 장치를 열거나 시작할 수 없을 때 발생합니다."""
    pass


class UnsupportedSampleFormatError(SetupError):
    """지원하지 않는 샘플 인코딩이 지정되었을 때 발생합니다."""
    pass


class ModelLoadError(SetupError):
    """ASR 모델 로드 실패 시 발생합니다."""
    pass


class CaptureError(TranscriberError):
    """캡처 드라이버가 보고한 프레임 단위 오류입니다 (치명적이지 않음)."""
    pass


class RateConversionError(TranscriberError):
    """리샘플러 윈도우 하나의 변환 실패입니다 (해당 윈도우 출력만 누락)."""
    pass


class InferenceError(TranscriberError):
    """청크 하나의 전사 실패입니다 (빈 텍스트로 간주)."""
    pass


class LifecycleError(TranscriberError):
    """start()를 두 번 호출하는 등 잘못된 사용 순서입니다."""
    pass
