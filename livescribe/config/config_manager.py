"""
livescribe 설정 관리 모듈입니다.

설정값은 아래 순서로 겹쳐 적용됩니다 (뒤가 우선):
    스키마 기본값 < config.yaml < LSC_ 환경변수 < 커맨드라인 오버라이드

사용 예시:
    >>> manager = ConfigManager()
    >>> config = manager.load("config.yaml")
    >>> manager.override({"system": {"mode": "file"}})
    >>> manager.get("asr.chunk_size")
    8960
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, ValidationError

from livescribe.config.schema import AppConfig

logger = logging.getLogger(__name__)

# 환경변수 오버라이드 접두사 (예: LSC_ASR_MODEL_PATH -> asr.model_path)
ENV_PREFIX = "LSC_"


class ConfigLoadError(Exception):
    """설정을 읽거나 만들 수 없을 때의 기본 예외입니다."""
    pass


class ConfigValidationError(ConfigLoadError):
    """병합된 설정값이 스키마를 위반할 때 발생합니다."""
    pass


class ConfigFileNotFoundError(ConfigLoadError):
    """지정한 설정 파일이 없을 때 발생합니다."""
    pass


class ConfigManager:
    """
    활성 AppConfig 하나를 보관하고 교체하는 매니저입니다.

    load()/load_defaults()/override()는 검증에 성공했을 때만 활성 설정을
    교체합니다. 실패하면 이전 설정이 그대로 유지됩니다.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._config: Optional[AppConfig] = None
        # 마지막으로 읽은 설정 파일 (기본값만 사용 중이면 None)
        self._source: Optional[Path] = None

    @property
    def config(self) -> Optional[AppConfig]:
        with self._lock:
            return self._config

    @property
    def source(self) -> Optional[Path]:
        with self._lock:
            return self._source

    def load(self, filepath: str | Path) -> AppConfig:
        """
        YAML 파일과 환경변수를 병합해 설정을 만듭니다.

        에러:
            ConfigFileNotFoundError: 파일이 없을 때
            ConfigValidationError: 병합 결과가 스키마를 위반할 때
            ConfigLoadError: 파일을 읽거나 YAML로 해석할 수 없을 때
        """
        path = Path(filepath)
        if not path.is_file():
            raise ConfigFileNotFoundError(f"설정 파일이 없습니다: {path}")

        raw = _deep_merge(_read_yaml(path), env_overrides(os.environ))
        config = self._install(raw, source=path)
        logger.info(
            f"설정 로드: {path} (mode={config.system.mode}, "
            f"chunk_size={config.asr.chunk_size}, "
            f"target_rate={config.audio.target_sample_rate})"
        )
        return config

    def load_defaults(self) -> AppConfig:
        """설정 파일 없이 스키마 기본값과 환경변수만으로 설정을 만듭니다."""
        config = self._install(env_overrides(os.environ), source=None)
        logger.info("설정 파일 없이 기본값 사용")
        return config

    def override(self, overrides: Mapping[str, Any]) -> AppConfig:
        """
        활성 설정 위에 중첩 딕셔너리를 덮어쓰고 다시 검증합니다.

        커맨드라인 인자처럼 가장 우선순위가 높은 값에 사용합니다.

        에러:
            RuntimeError: 아직 설정이 로드되지 않았을 때
            ConfigValidationError: 결과가 스키마를 위반할 때
        """
        with self._lock:
            current = self._require_loaded()
            config = self._install(
                _deep_merge(current.model_dump(), overrides), source=self._source
            )
        if overrides:
            logger.debug(f"설정 오버라이드: {dict(overrides)}")
        return config

    def get(self, key: str, default: Any = None) -> Any:
        """
        "capture.file.loop" 같은 점 경로로 설정값을 조회합니다.

        경로 중간이 없으면 default를 반환합니다.
        """
        with self._lock:
            node: Any = self._require_loaded()
        for part in key.split("."):
            if isinstance(node, BaseModel) and part in type(node).model_fields:
                node = getattr(node, part)
            elif isinstance(node, Mapping) and part in node:
                node = node[part]
            else:
                return default
        return node

    def validate_schema(self, raw_config: Mapping[str, Any]) -> bool:
        """raw_config로 AppConfig를 만들 수 있는지만 확인합니다."""
        try:
            AppConfig(**raw_config)
        except ValidationError as exc:
            logger.warning(f"스키마 검증 실패: {_summarize(exc)}")
            return False
        return True

    # =========================================================================
    # 내부 메서드
    # =========================================================================

    def _require_loaded(self) -> AppConfig:
        if self._config is None:
            raise RuntimeError("설정이 로드되지 않았습니다. load() 또는 load_defaults()를 먼저 호출하세요.")
        return self._config

    def _install(self, raw: Mapping[str, Any], source: Optional[Path]) -> AppConfig:
        try:
            config = AppConfig(**raw)
        except ValidationError as exc:
            for line in _summarize(exc).split("; "):
                logger.error(f"설정 검증 실패: {line}")
            raise ConfigValidationError(f"설정값이 올바르지 않습니다: {_summarize(exc)}") from exc

        with self._lock:
            self._config = config
            self._source = source
        return config


# =============================================================================
# 설정 소스
# =============================================================================

def _read_yaml(path: Path) -> dict:
    """YAML 파일을 딕셔너리로 읽습니다. 빈 파일은 빈 딕셔너리입니다."""
    try:
        with open(path, "r", encoding="utf-8") as config_file:
            data = yaml.safe_load(config_file)
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"YAML 형식 오류 ({path}): {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"설정 파일을 읽을 수 없습니다 ({path}): {exc}") from exc

    if data is None:
        logger.warning(f"설정 파일이 비어 있어 기본값을 사용합니다: {path}")
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"설정 파일 최상위는 매핑이어야 합니다 ({path}): {type(data).__name__}"
        )
    return data


def env_overrides(environ: Mapping[str, str]) -> dict:
    """
    LSC_ 환경변수를 중첩 딕셔너리로 변환합니다.

    첫 밑줄 앞은 섹션 이름, 나머지는 필드 이름입니다. 필드 이름이 중첩 섹션
    이름으로 시작하면 한 단계 더 내려갑니다.
        LSC_SYSTEM_MODE=file           -> {"system": {"mode": "file"}}
        LSC_CAPTURE_FILE_LOOP=true     -> {"capture": {"file": {"loop": True}}}
    """
    result: dict = {}
    for env_key, env_value in environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        section, _, field = env_key[len(ENV_PREFIX):].lower().partition("_")
        if not section or not field:
            logger.debug(f"환경변수 무시 (섹션/필드 구분 불가): {env_key}")
            continue

        target = result.setdefault(section, {})
        nested = _nested_section(section, field)
        if nested is not None:
            target = target.setdefault(nested, {})
            field = field[len(nested) + 1:]

        target[field] = _coerce_env_value(env_value)
        logger.info(f"환경변수 오버라이드: {env_key}")
    return result


def _nested_section(section: str, field: str) -> Optional[str]:
    """section 모델 안에서 field가 가리키는 중첩 모델 이름을 찾습니다."""
    section_field = AppConfig.model_fields.get(section)
    if section_field is None:
        return None
    section_model = section_field.annotation
    for name, info in getattr(section_model, "model_fields", {}).items():
        if field.startswith(name + "_") and hasattr(info.annotation, "model_fields"):
            return name
    return None


def _coerce_env_value(value: str) -> Any:
    """"true"/"false"는 bool, 숫자 문자열은 int/float로 변환합니다."""
    lowered = value.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for number_type in (int, float):
        try:
            return number_type(value)
        except ValueError:
            continue
    return value


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict:
    """overrides의 값을 base에 재귀적으로 덮어쓴 새 딕셔너리를 반환합니다."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _summarize(exc: ValidationError) -> str:
    """ValidationError를 "필드.경로: 메시지 (입력값)" 목록 문자열로 요약합니다."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(loc) for loc in error["loc"])
        parts.append(f"{location}: {error['msg']} (입력값: {error.get('input', 'N/A')!r})")
    return "; ".join(parts)
