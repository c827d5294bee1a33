"""
파이프라인 패키지

- Transcriber: 캡처 소스와 추론 워커의 수명주기 컨트롤러
- build_transcriber: 설정으로부터 엔진/캡처를 준비해 Transcriber 생성
"""

from livescribe.pipeline.transcriber import Transcriber, build_transcriber, create_capture

__all__ = ["Transcriber", "build_transcriber", "create_capture"]
