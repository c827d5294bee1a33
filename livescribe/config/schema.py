"""
livescribe 설정 스키마 정의 모듈입니다.

역할:
- Pydantic v2 BaseModel 기반으로 config.yaml의 전체 구조를 타입 안전하게 정의
- 각 섹션(system, capture, audio, asr, worker)을 독립적인 중첩 모델로 분리
- 필드별 기본값, 허용 범위, 유효성 검증(validator)을 포함

사용 예시:
    >>> from livescribe.config.schema import AppConfig
    >>> config = AppConfig(**yaml_data)
    >>> print(config.asr.chunk_size)
    8960
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

# 모듈 로거 설정
logger = logging.getLogger(__name__)

# 지원 샘플 인코딩 (capture.sample_format)
SAMPLE_FORMATS = ("u8", "i16", "i32", "f32")


# =============================================================================
# system 섹션: 시스템 전역 설정
# =============================================================================

class SystemConfig(BaseModel):
    """
    시스템 전역 설정을 정의하는 모델입니다.

    역할:
    - 실행 모드(live/file) 결정
    - 로깅 레벨 및 포맷 지정
    - 세션 식별자 관리
    """
    # 실행 모드: "live"는 오디오 입력 장치, "file"은 오디오 파일 재생
    mode: str = Field(default="live", description="실행 모드 (live | file)")
    # 로그 출력 레벨
    log_level: str = Field(default="INFO", description="로그 레벨 (DEBUG | INFO | WARNING | ERROR)")
    # 로그 출력 포맷
    log_format: str = Field(default="text", description="로그 포맷 (json | text)")
    # 로그 파일 저장 디렉토리 경로
    log_dir: str = Field(default="output/logs", description="로그 저장 디렉토리")
    # 세션 고유 식별자 (빈 문자열이면 UUID로 자동 생성)
    session_id: str = Field(default="", description="세션 ID (비어있으면 UUID 자동생성)")

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, value: str) -> str:
        """실행 모드가 허용된 값인지 검증합니다."""
        allowed_modes = ("live", "file")
        if value not in allowed_modes:
            error_message = f"mode는 {allowed_modes} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """로그 레벨이 유효한 Python 로깅 레벨인지 검증합니다."""
        allowed_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        # 대소문자 구분 없이 비교 후 대문자로 정규화
        upper_value = value.upper()
        if upper_value not in allowed_levels:
            error_message = f"log_level은 {allowed_levels} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return upper_value

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, value: str) -> str:
        """로그 포맷이 지원되는 형식인지 검증합니다."""
        allowed_formats = ("json", "text")
        if value not in allowed_formats:
            error_message = f"log_format은 {allowed_formats} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return value


# =============================================================================
# capture 섹션: 오디오 입력 설정
# =============================================================================

class FileSourceConfig(BaseModel):
    """
    파일 모드(mode=file)에서 재생할 오디오 파일 설정입니다.
    """
    # 재생할 오디오 파일 경로 (WAV/FLAC)
    audio_path: str = Field(default="tests/fixtures/sample_audio.wav", description="오디오 파일 경로")
    # 파일 반복 재생 여부
    loop: bool = Field(default=False, description="파일 반복 재생 여부")
    # 재생 속도 배율 (1.0 = 실시간)
    playback_speed: float = Field(default=1.0, description="재생 속도 (1.0 = 실시간)")

    @field_validator("playback_speed")
    @classmethod
    def validate_playback_speed(cls, value: float) -> float:
        """재생 속도가 양수인지 검증합니다."""
        if value <= 0:
            raise ValueError(f"playback_speed는 0보다 커야 합니다. 입력값: {value}")
        return value


class CaptureConfig(BaseModel):
    """
    오디오 입력 장치 설정을 정의하는 모델입니다.

    device/sample_rate/channels가 None이면 장치 기본값을 사용합니다.
    장치 열거 및 자동 선택은 이 모델의 범위가 아닙니다.
    """
    # sounddevice 장치 인덱스 또는 이름 (None = 시스템 기본 입력 장치)
    device: Optional[Union[int, str]] = Field(default=None, description="입력 장치 인덱스/이름")
    # 캡처 샘플링레이트 (Hz, None = 장치 기본값)
    sample_rate: Optional[int] = Field(default=None, description="캡처 샘플링레이트 (Hz)")
    # 캡처 채널 수 (None = 장치 최대 입력 채널 수, 최대 2)
    channels: Optional[int] = Field(default=None, description="캡처 채널 수")
    # 샘플 인코딩
    sample_format: str = Field(default="f32", description="샘플 인코딩 (u8 | i16 | i32 | f32)")
    # 콜백 1회당 프레임 수 (0 = 드라이버 결정)
    block_size: int = Field(default=0, description="콜백 블록 크기 (프레임)")
    # 파일 모드 설정
    file: FileSourceConfig = Field(default_factory=FileSourceConfig, description="파일 모드 설정")

    @field_validator("sample_format")
    @classmethod
    def validate_sample_format(cls, value: str) -> str:
        """샘플 인코딩이 지원되는 값인지 검증합니다."""
        lower_value = value.lower()
        if lower_value not in SAMPLE_FORMATS:
            error_message = f"sample_format은 {SAMPLE_FORMATS} 중 하나여야 합니다. 입력값: '{value}'"
            raise ValueError(error_message)
        return lower_value

    @field_validator("channels")
    @classmethod
    def validate_channels(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError(f"channels는 1 이상이어야 합니다. 입력값: {value}")
        return value

    @field_validator("block_size")
    @classmethod
    def validate_block_size(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"block_size는 0 이상이어야 합니다. 입력값: {value}")
        return value


# =============================================================================
# audio 섹션: 리샘플링 설정
# =============================================================================

class AudioConfig(BaseModel):
    """
    ASR 입력 포맷 변환 설정입니다.

    역할:
    - ASR 엔진이 요구하는 출력 샘플링레이트 지정
    - 리샘플러 입력 윈도우 기본 크기 지정 (실제 크기는 변환 비율에 맞춰 올림)
    """
    # ASR 입력 샘플링레이트 (Hz)
    target_sample_rate: int = Field(default=16000, description="ASR 입력 샘플링레이트 (Hz)")
    # 리샘플러 입력 윈도우 기본 크기 (샘플)
    resampler_window: int = Field(default=1024, description="리샘플러 윈도우 기본 크기 (샘플)")

    @field_validator("target_sample_rate", "resampler_window")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"0보다 커야 합니다. 입력값: {value}")
        return value


# =============================================================================
# asr 섹션: ASR 엔진 설정
# =============================================================================

class ASRConfig(BaseModel):
    """
    ASR 엔진 로드 및 입력 청크 설정입니다.

    chunk_size 기본값 8960은 16kHz 기준 560ms로, 스트리밍 모델이 요구하는
    고정 입력 길이입니다.
    """
    # onnx-asr 모델 이름
    model_name: str = Field(default="nemo-parakeet-tdt-0.6b-v3", description="onnx-asr 모델 이름")
    # 모델 파일 디렉토리 (빈 문자열이면 허브에서 다운로드)
    model_path: str = Field(default="", description="모델 디렉토리 경로")
    # 모델 양자화 (예: "int8", 빈 문자열이면 기본값)
    quantization: str = Field(default="", description="모델 양자화")
    # 추론 1회당 입력 샘플 수
    chunk_size: int = Field(default=8960, description="ASR 청크 크기 (샘플)")
    # 청크 경계 단어 보존용으로 다음 입력 앞에 붙이는 직전 청크 꼬리 (샘플, 0 = 사용 안 함)
    context_samples: int = Field(default=4480, description="청크 간 문맥 샘플 수")

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"chunk_size는 0보다 커야 합니다. 입력값: {value}")
        return value

    @field_validator("context_samples")
    @classmethod
    def validate_context_samples(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"context_samples는 0 이상이어야 합니다. 입력값: {value}")
        return value


# =============================================================================
# worker 섹션: 추론 워커 설정
# =============================================================================

class WorkerConfig(BaseModel):
    """
    추론 워커 루프 동작 설정입니다.
    """
    # 입력이 없을 때 대기 시간 (밀리초). 정지 신호 응답 지연의 상한입니다.
    idle_sleep_ms: int = Field(default=10, description="유휴 대기 시간 (ms)")
    # stop() 시 워커 스레드 join 대기 시간 (초, 0 = 무제한)
    join_timeout_sec: float = Field(default=0.0, description="워커 join 타임아웃 (초, 0=무제한)")
    # 한 번에 드레인된 입력이 이 길이(초)를 넘으면 백로그 경고
    backlog_warn_sec: float = Field(default=5.0, description="백로그 경고 임계값 (초)")

    @field_validator("idle_sleep_ms")
    @classmethod
    def validate_idle_sleep(cls, value: int) -> int:
        if not 1 <= value <= 1000:
            raise ValueError(f"idle_sleep_ms는 1~1000 범위여야 합니다. 입력값: {value}")
        return value

    @field_validator("join_timeout_sec", "backlog_warn_sec")
    @classmethod
    def validate_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError(f"0 이상이어야 합니다. 입력값: {value}")
        return value


# =============================================================================
# 최상위 AppConfig: 모든 섹션을 통합하는 루트 모델
# =============================================================================

class AppConfig(BaseModel):
    """
    애플리케이션 전체 설정을 통합하는 최상위 모델입니다.

    각 섹션이 누락된 경우 기본값으로 자동 생성됩니다.

    사용 예시:
        >>> import yaml
        >>> with open("config.yaml") as f:
        ...     raw = yaml.safe_load(f)
        >>> config = AppConfig(**raw)
        >>> print(config.system.mode)
        'live'
    """
    # 시스템 전역 설정
    system: SystemConfig = Field(default_factory=SystemConfig, description="시스템 설정")
    # 오디오 입력 설정
    capture: CaptureConfig = Field(default_factory=CaptureConfig, description="캡처 설정")
    # 리샘플링 설정
    audio: AudioConfig = Field(default_factory=AudioConfig, description="오디오 설정")
    # ASR 엔진 설정
    asr: ASRConfig = Field(default_factory=ASRConfig, description="ASR 설정")
    # 추론 워커 설정
    worker: WorkerConfig = Field(default_factory=WorkerConfig, description="워커 설정")
