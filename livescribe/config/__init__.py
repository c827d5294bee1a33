"""
설정 패키지

- AppConfig: Pydantic 설정 스키마
- ConfigManager: YAML 로드, 환경변수 오버라이드, dot-notation 조회
"""

from livescribe.config.config_manager import (
    ConfigFileNotFoundError,
    ConfigLoadError,
    ConfigManager,
    ConfigValidationError,
)
from livescribe.config.schema import AppConfig

__all__ = [
    "AppConfig",
    "ConfigFileNotFoundError",
    "ConfigLoadError",
    "ConfigManager",
    "ConfigValidationError",
]
