"""
ASR 엔진 / 출력 sink 단위 테스트

검증 항목:
- load_engine: onnx-asr 미설치, 모델 로드 실패 → ModelLoadError
- load_engine: 설정값(model_name, model_path, quantization) 전달
- OnnxAsrEngine: 청크 크기 검증, recognize 호출, close 후 사용 불가
- StdoutSink: 개행 없이 이어 쓰고 flush
"""

from __future__ import annotations

import io
import sys
import types
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from livescribe.config.schema import AppConfig
from livescribe.errors import InferenceError, ModelLoadError
from livescribe.stt import TranscriptIncrement
from livescribe.stt.engine import ASR_SAMPLE_RATE, OnnxAsrEngine, drop_overlap, load_engine
from livescribe.stt.sink import CollectingSink, StdoutSink


def _fake_onnx_asr(load_model) -> types.ModuleType:
    module = types.ModuleType("onnx_asr")
    module.load_model = load_model
    return module


def _increment(text: str, chunk_id: int = 0) -> TranscriptIncrement:
    return TranscriptIncrement(chunk_id=chunk_id, text=text, latency_ms=1.0, emitted_at_ns=0)


# =============================================================================
# load_engine 테스트
# =============================================================================

def test_missing_onnx_asr_raises_model_load_error():
    with patch.dict(sys.modules, {"onnx_asr": None}):
        with pytest.raises(ModelLoadError):
            load_engine(AppConfig())


def test_model_load_failure_wrapped():
    def _fail(*args, **kwargs):
        raise FileNotFoundError("encoder.onnx")

    with patch.dict(sys.modules, {"onnx_asr": _fake_onnx_asr(_fail)}):
        with pytest.raises(ModelLoadError, match="encoder.onnx"):
            load_engine(AppConfig())


def test_load_engine_passes_config():
    load_model = MagicMock(return_value=MagicMock())
    config = AppConfig(**{
        "asr": {
            "model_name": "nemo-parakeet-tdt-0.6b-v2",
            "model_path": "/models/parakeet",
            "quantization": "int8",
            "chunk_size": 4480,
        },
    })

    with patch.dict(sys.modules, {"onnx_asr": _fake_onnx_asr(load_model)}):
        engine = load_engine(config)

    load_model.assert_called_once_with(
        "nemo-parakeet-tdt-0.6b-v2", "/models/parakeet", quantization="int8"
    )
    assert engine.chunk_size == 4480
    assert engine.sample_rate == ASR_SAMPLE_RATE


def test_empty_model_path_downloads_from_hub():
    load_model = MagicMock(return_value=MagicMock())
    with patch.dict(sys.modules, {"onnx_asr": _fake_onnx_asr(load_model)}):
        load_engine(AppConfig())
    load_model.assert_called_once_with("nemo-parakeet-tdt-0.6b-v3", None)


# =============================================================================
# OnnxAsrEngine 테스트
# =============================================================================

def test_transcribe_calls_recognize():
    model = MagicMock()
    model.recognize.return_value = "hello"
    engine = OnnxAsrEngine(model, chunk_size=8)

    chunk = np.zeros(8, dtype=np.float32)
    assert engine.transcribe(chunk) == "hello"
    model.recognize.assert_called_once_with(chunk, sample_rate=ASR_SAMPLE_RATE)


def test_transcribe_rejects_wrong_chunk_size():
    engine = OnnxAsrEngine(MagicMock(), chunk_size=8)
    with pytest.raises(InferenceError):
        engine.transcribe(np.zeros(7, dtype=np.float32))


def test_transcribe_after_close_raises():
    engine = OnnxAsrEngine(MagicMock(), chunk_size=8)
    engine.close()
    engine.close()
    with pytest.raises(InferenceError):
        engine.transcribe(np.zeros(8, dtype=np.float32))


# =============================================================================
# sink 테스트
# =============================================================================

def test_stdout_sink_writes_without_newline():
    stream = io.StringIO()
    sink = StdoutSink(stream)
    sink(_increment("hello "))
    sink(_increment("world", chunk_id=1))
    assert stream.getvalue() == "hello world"


def test_stdout_sink_defaults_to_stdout(capsys):
    StdoutSink()(_increment("text"))
    assert capsys.readouterr().out == "text"


def test_collecting_sink_joins_text():
    sink = CollectingSink()
    sink(_increment("a"))
    sink(_increment("b", chunk_id=1))
    assert sink.text == "ab"
    assert len(sink.increments) == 2


# =============================================================================
# 청크 간 문맥 테스트
# =============================================================================

def test_context_prepended_and_overlapping_words_dropped():
    model = MagicMock()
    model.recognize.side_effect = ["the quick brown", "Brown, fox jumps", ""]
    engine = OnnxAsrEngine(model, chunk_size=8, context_samples=4)

    first = np.arange(8, dtype=np.float32)
    second = np.arange(8, 16, dtype=np.float32)

    assert engine.transcribe(first) == "the quick brown"
    assert engine.transcribe(second) == " fox jumps"
    assert engine.transcribe(np.zeros(8, dtype=np.float32)) == ""

    first_audio = model.recognize.call_args_list[0].args[0]
    second_audio = model.recognize.call_args_list[1].args[0]
    third_audio = model.recognize.call_args_list[2].args[0]
    assert first_audio.size == 8
    np.testing.assert_array_equal(second_audio, np.concatenate([first[-4:], second]))
    np.testing.assert_array_equal(third_audio[:4], second[-4:])


def test_without_context_each_chunk_recognized_alone():
    model = MagicMock()
    model.recognize.side_effect = ["hello", "hello world"]
    engine = OnnxAsrEngine(model, chunk_size=8, context_samples=0)

    assert engine.transcribe(np.zeros(8, dtype=np.float32)) == "hello"
    # 겹친 오디오가 없으므로 반복된 단어도 그대로 출력
    assert engine.transcribe(np.ones(8, dtype=np.float32)) == " hello world"
    assert all(call.args[0].size == 8 for call in model.recognize.call_args_list)


def test_load_engine_uses_configured_context():
    load_model = MagicMock(return_value=MagicMock())
    config = AppConfig(**{"asr": {"context_samples": 1600}})
    with patch.dict(sys.modules, {"onnx_asr": _fake_onnx_asr(load_model)}):
        engine = load_engine(config)
    assert engine.context_samples == 1600


@pytest.mark.parametrize(
    "previous, current, expected",
    [
        (["the", "quick", "brown"], ["Brown", "fox"], ["fox"]),
        (["a", "b", "c"], ["b", "c", "d"], ["d"]),
        (["a", "b"], ["c", "d"], ["c", "d"]),
        ([], ["a"], ["a"]),
        (["a", "b"], ["a", "b"], []),
    ],
)
def test_drop_overlap(previous, current, expected):
    assert drop_overlap(previous, current) == expected
