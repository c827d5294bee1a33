"""
ASR 추론 엔진 모듈입니다.

역할:
- ASREngine: 고정 길이 16kHz 모노 청크를 텍스트로 바꾸는 엔진 인터페이스
- OnnxAsrEngine: onnx-asr 로컬 모델 래퍼
- load_engine(): 설정으로부터 엔진 로드 (실패 시 ModelLoadError)

onnx-asr는 선택 의존성(asr extra)이므로 load 시점에만 임포트합니다.
"""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod

import numpy as np

from livescribe.config.schema import AppConfig
from livescribe.errors import InferenceError, ModelLoadError

logger = logging.getLogger(__name__)

# onnx-asr 모델 입력 샘플레이트
ASR_SAMPLE_RATE = 16000

# 겹침 비교 시 단어 앞뒤에서 무시할 문장부호
_PUNCTUATION = ".,!?;:\"'()[]…"


class ASREngine(ABC):
    """
    ASR 엔진 공통 인터페이스입니다.

    transcribe()는 워커 스레드에서만 호출되며 동시에 두 번 호출되지 않습니다.
    엔진은 청크 사이의 문맥을 내부적으로 유지할 수 있습니다.
    """

    @property
    @abstractmethod
    def chunk_size(self) -> int:
        """transcribe() 1회 입력 샘플 수"""

    @property
    def sample_rate(self) -> int:
        """입력 샘플레이트 (Hz)"""
        return ASR_SAMPLE_RATE

    @abstractmethod
    def transcribe(self, chunk: np.ndarray) -> str:
        """
        청크 하나를 전사합니다.

        파라미터:
            chunk: 길이 chunk_size의 float32 모노 배열

        반환값:
            str: 이번 청크로 새로 확정된 텍스트 (없으면 빈 문자열)
        """

    def close(self) -> None:
        """모델 리소스를 해제합니다."""


class OnnxAsrEngine(ASREngine):
    """
    onnx-asr 모델 래퍼입니다.

    onnx-asr의 recognize()는 호출마다 독립적으로 디코딩합니다. 청크 경계에 걸친
    단어가 잘리지 않도록 직전 청크의 마지막 context_samples 샘플을 다음 입력
    앞에 붙여 인식하고, 직전 결과의 끝과 겹치는 앞부분 단어는 버립니다.
    반환 텍스트는 이전에 출력한 텍스트 뒤에 그대로 이어 쓸 수 있도록 앞에 공백을 둡니다.

    파라미터:
        model: onnx_asr.load_model() 반환 객체
        chunk_size: transcribe() 1회 입력 샘플 수
        model_name: 로그용 모델 이름
        context_samples: 다음 청크 앞에 붙일 직전 청크 꼬리 길이 (0 = 문맥 없음)
    """

    def __init__(
        self,
        model,
        chunk_size: int,
        model_name: str = "",
        context_samples: int = 0,
    ) -> None:
        self._model = model
        self._chunk_size = chunk_size
        self._model_name = model_name
        self._context_samples = max(0, context_samples)
        self._context = np.zeros(0, dtype=np.float32)
        self._previous_words: list[str] = []
        self._emitted = False

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def context_samples(self) -> int:
        return self._context_samples

    def transcribe(self, chunk: np.ndarray) -> str:
        if self._model is None:
            raise InferenceError("엔진이 이미 해제되었습니다")
        if chunk.size != self._chunk_size:
            raise InferenceError(
                f"청크 크기 불일치: {chunk.size} (필요: {self._chunk_size})"
            )

        with_context = self._context.size > 0
        audio = np.concatenate([self._context, chunk]) if with_context else chunk
        result = self._model.recognize(audio, sample_rate=ASR_SAMPLE_RATE)
        words = str(result).split()

        new_words = drop_overlap(self._previous_words, words) if with_context else words
        self._previous_words = words
        if self._context_samples:
            self._context = np.asarray(chunk[-self._context_samples:], dtype=np.float32).copy()

        if not new_words:
            return ""
        text = " ".join(new_words)
        if self._emitted:
            text = " " + text
        self._emitted = True
        return text

    def close(self) -> None:
        if self._model is not None:
            logger.info(f"ASR 모델 해제: {self._model_name}")
        self._model = None
        self._context = np.zeros(0, dtype=np.float32)
        self._previous_words = []


def drop_overlap(previous: list[str], current: list[str]) -> list[str]:
    """
    previous의 끝과 일치하는 current의 가장 긴 앞부분을 제거합니다.

    대소문자와 앞뒤 문장부호는 무시하고 비교합니다.
        >>> drop_overlap(["the", "quick", "brown"], ["Brown", "fox"])
        ['fox']
    """
    def _normalize(words: list[str]) -> list[str]:
        return [word.strip(_PUNCTUATION).lower() for word in words]

    prev_norm = _normalize(previous)
    cur_norm = _normalize(current)
    for size in range(min(len(prev_norm), len(cur_norm)), 0, -1):
        if prev_norm[-size:] == cur_norm[:size]:
            return current[size:]
    return current


def load_engine(config: AppConfig) -> ASREngine:
    """
    설정에 따라 onnx-asr 모델을 로드합니다.

    파라미터:
        config (AppConfig): 전체 애플리케이션 설정 객체

    반환값:
        ASREngine: 로드된 엔진

    에러:
        ModelLoadError: onnx-asr 미설치, 모델 파일 없음, 로드 실패
    """
    asr_config = config.asr
    try:
        onnx_asr = importlib.import_module("onnx_asr")
    except ImportError as exc:
        raise ModelLoadError(
            "onnx-asr 패키지가 설치되어 있지 않습니다 (pip install 'livescribe[asr]')"
        ) from exc

    kwargs = {}
    if asr_config.quantization:
        kwargs["quantization"] = asr_config.quantization

    logger.info(
        f"ASR 모델 로드 시작: model={asr_config.model_name}, "
        f"path={asr_config.model_path or '(hub)'}"
    )
    try:
        model = onnx_asr.load_model(
            asr_config.model_name,
            asr_config.model_path or None,
            **kwargs,
        )
    except Exception as exc:
        raise ModelLoadError(f"ASR 모델 로드 실패: {exc}") from exc

    logger.info(
        f"ASR 모델 로드 완료: chunk_size={asr_config.chunk_size}samples, "
        f"context={asr_config.context_samples}samples"
    )
    return OnnxAsrEngine(
        model,
        asr_config.chunk_size,
        asr_config.model_name,
        context_samples=asr_config.context_samples,
    )
