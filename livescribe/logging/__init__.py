"""
로깅 패키지

- setup_logging: stderr 콘솔 + 순환 파일 핸들러 설정
- get_session_id: 현재 세션 ID 조회
"""

from livescribe.logging.structured_logger import get_session_id, setup_logging

__all__ = ["get_session_id", "setup_logging"]
