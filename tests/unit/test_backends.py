"""Unit tests for transcription backends and result normalization."""

import sys
import types
import asyncio
import threading
import pytest
from types import SimpleNamespace
from unittest.mock import Mock, patch

from meetscribe.errors import EngineError, TranscriptionCancelled
from meetscribe.models.transcription import TranscriptionOptions
from meetscribe.transcription.base import build_result
from meetscribe.transcription.cancellation import CancellationToken
from meetscribe.transcription.openai_backend import OpenAITranscriptionBackend, language_tag
from meetscribe.transcription.whisper_local import (
    SAMPLING_BEAM_SEARCH,
    SAMPLING_GREEDY,
    WhisperCppBackend,
)


@pytest.mark.unit
class TestBuildResult:
    """Test cases for engine output normalization."""

    def test_segments_trimmed_and_reindexed(self):
        result = build_result([(0.0, 1.5, "  Hello "), (1.5, 2.0, "   "), (2.0, 3.25, "world")])

        assert [s.index for s in result.segments] == [0, 1]
        assert [s.text for s in result.segments] == ["Hello", "world"]
        assert result.full_text == "Hello world"
        assert result.total_duration_seconds == 3.25

    def test_time_scale_and_ordering(self):
        result = build_result([(150, 120, "late end")], time_scale=0.01)

        segment = result.segments[0]
        assert segment.start_seconds == 1.5
        assert segment.end_seconds == 1.5

    def test_flat_text_becomes_single_segment(self):
        result = build_result([], text=" Just text ", duration=4.0, language="en", provider="openai")

        assert result.full_text == "Just text"
        assert len(result.segments) == 1
        assert result.segments[0].end_seconds == 4.0
        assert result.language_tag == "en"
        assert result.provider == "openai"

    def test_empty_output(self):
        result = build_result([])
        assert result.full_text == ""
        assert result.segments == []
        assert result.total_duration_seconds == 0.0


class FakeWhisperModel:
    """Stands in for pywhispercpp.model.Model."""

    instances = []

    def __init__(self, model_path, **kwargs):
        self.model_path = model_path
        self.kwargs = kwargs
        self.calls = []
        FakeWhisperModel.instances.append(self)

    def transcribe(self, media, new_segment_callback=None, **params):
        self.calls.append((media, params))
        segments = [
            SimpleNamespace(t0=0, t1=150, text=" Hello"),
            SimpleNamespace(t0=150, t1=320, text=" world "),
            SimpleNamespace(t0=320, t1=330, text="  "),
        ]
        for segment in segments:
            new_segment_callback(segment)
        return segments


@pytest.fixture
def fake_pywhispercpp():
    FakeWhisperModel.instances = []
    module = types.ModuleType("pywhispercpp.model")
    module.Model = FakeWhisperModel
    package = types.ModuleType("pywhispercpp")
    package.model = module
    with patch.dict(sys.modules, {"pywhispercpp": package, "pywhispercpp.model": module}):
        yield module


@pytest.fixture
def model_store():
    store = Mock()
    store.ensure_model.return_value = "/models/ggml-base.bin"
    return store


@pytest.mark.unit
class TestWhisperCppBackend:
    """Test cases for the local whisper.cpp backend."""

    def test_initialize_loads_model_once(self, fake_pywhispercpp, model_store):
        backend = WhisperCppBackend(model_store, "base", n_threads=4)

        assert backend.initialize() is True
        assert backend.initialize() is True

        assert len(FakeWhisperModel.instances) == 1
        model = FakeWhisperModel.instances[0]
        assert model.model_path == "/models/ggml-base.bin"
        assert model.kwargs["n_threads"] == 4
        model_store.ensure_model.assert_called_once_with("base")

    def test_transcribe_converts_centiseconds(self, fake_pywhispercpp, model_store):
        backend = WhisperCppBackend(model_store)
        backend.initialize()
        options = TranscriptionOptions(language="en", beam_size=5, initial_prompt="Standup")

        result = backend.transcribe_file("/tmp/audio.wav", options, CancellationToken())

        assert [(s.start_seconds, s.end_seconds, s.text) for s in result.segments] == [
            (0.0, 1.5, "Hello"),
            (1.5, 3.2, "world"),
        ]
        assert result.full_text == "Hello world"
        assert result.provider == "local"
        assert result.language_tag == "en"

        media, params = FakeWhisperModel.instances[-1].calls[0]
        assert media == "/tmp/audio.wav"
        assert params["beam_search"]["beam_size"] == 5
        assert params["initial_prompt"] == "Standup"
        assert params["language"] == "en"

    def test_transcribe_requires_initialize(self, model_store):
        backend = WhisperCppBackend(model_store)
        with pytest.raises(EngineError):
            backend.transcribe_file("/tmp/audio.wav", TranscriptionOptions(), CancellationToken())

    def test_cancelled_token_discards_output(self, fake_pywhispercpp, model_store):
        backend = WhisperCppBackend(model_store)
        backend.initialize()
        token = CancellationToken()
        token.cancel()

        with pytest.raises(TranscriptionCancelled):
            backend.transcribe_file("/tmp/audio.wav", TranscriptionOptions(), token)

    def test_cancel_during_native_call_drops_segments(self, fake_pywhispercpp, model_store, caplog):
        backend = WhisperCppBackend(model_store)
        backend.initialize()
        token = CancellationToken()
        model = backend._model

        def transcribe(media, new_segment_callback=None, **params):
            first, second = SimpleNamespace(t0=0, t1=100, text="kept"), SimpleNamespace(t0=100, t1=200, text="late")
            new_segment_callback(first)
            token.cancel()
            new_segment_callback(second)
            return [first, second]

        model.transcribe = transcribe
        with caplog.at_level("DEBUG", logger="meetscribe.transcription.whisper_local"):
            with pytest.raises(TranscriptionCancelled):
                backend.transcribe_file("/tmp/audio.wav", TranscriptionOptions(), token)

        segment_logs = [r.message for r in caplog.records if r.message.startswith("Segment")]
        assert segment_logs == ["Segment [0-100]: kept"]

    def test_beam_size_selects_sampling_strategy(self, fake_pywhispercpp, model_store):
        WhisperCppBackend(model_store, beam_size=5).initialize()
        WhisperCppBackend(model_store, beam_size=1).initialize()

        strategies = [m.kwargs["params_sampling_strategy"] for m in FakeWhisperModel.instances]
        assert strategies == [SAMPLING_BEAM_SEARCH, SAMPLING_GREEDY]

    def test_strategy_change_rebuilds_model(self, fake_pywhispercpp, model_store):
        backend = WhisperCppBackend(model_store, beam_size=1)
        backend.initialize()
        assert backend.strategy == SAMPLING_GREEDY

        backend.transcribe_file("/tmp/audio.wav", TranscriptionOptions(beam_size=5), CancellationToken())
        backend.transcribe_file("/tmp/audio.wav", TranscriptionOptions(beam_size=3), CancellationToken())

        assert len(FakeWhisperModel.instances) == 2
        rebuilt = FakeWhisperModel.instances[-1]
        assert rebuilt.kwargs["params_sampling_strategy"] == SAMPLING_BEAM_SEARCH
        assert len(rebuilt.calls) == 2
        assert backend.strategy == SAMPLING_BEAM_SEARCH

    def test_engine_failure_wrapped(self, fake_pywhispercpp, model_store):
        backend = WhisperCppBackend(model_store)
        backend.initialize()
        backend._model.transcribe = Mock(side_effect=RuntimeError("bad audio"))

        with pytest.raises(EngineError, match="bad audio"):
            backend.transcribe_file("/tmp/audio.wav", TranscriptionOptions(), CancellationToken())

    def test_missing_library(self, model_store):
        with patch.dict(sys.modules, {"pywhispercpp": None, "pywhispercpp.model": None}):
            with pytest.raises(EngineError, match="pywhispercpp"):
                WhisperCppBackend(model_store).initialize()

    def test_cleanup_releases_model(self, fake_pywhispercpp, model_store):
        backend = WhisperCppBackend(model_store)
        backend.initialize()
        backend.cleanup()
        assert backend._model is None


VERBOSE_JSON = {
    "text": " Hello there. General Kenobi.",
    "language": "english",
    "duration": 4.5,
    "segments": [
        {"id": 0, "start": 0.0, "end": 2.0, "text": " Hello there."},
        {"id": 1, "start": 2.0, "end": 4.5, "text": " General Kenobi."},
    ],
}


@pytest.mark.unit
class TestOpenAITranscriptionBackend:
    """Test cases for the OpenAI backend."""

    def test_initialize_requires_key(self):
        with pytest.raises(EngineError, match="API key"):
            OpenAITranscriptionBackend(api_key="").initialize()
        assert OpenAITranscriptionBackend(api_key="sk-test").initialize() is True

    def test_verbose_json_parsed(self):
        backend = OpenAITranscriptionBackend(api_key="sk-test")

        async def post(audio_path, options):
            return VERBOSE_JSON

        with patch.object(backend, "_post", new=post):
            result = backend.transcribe_file("/tmp/a.mp3", TranscriptionOptions(), CancellationToken())

        assert result.full_text == "Hello there. General Kenobi."
        assert [s.text for s in result.segments] == ["Hello there.", "General Kenobi."]
        assert result.total_duration_seconds == 4.5
        assert result.language_tag == "en"
        assert result.provider == "openai"

    def test_requested_language_wins_over_detected_name(self):
        backend = OpenAITranscriptionBackend(api_key="sk-test")

        async def post(audio_path, options):
            return dict(VERBOSE_JSON, language="german")

        with patch.object(backend, "_post", new=post):
            result = backend.transcribe_file("/tmp/a.mp3", TranscriptionOptions(language="de"), CancellationToken())

        assert result.language_tag == "de"

    @pytest.mark.parametrize("requested,reported,expected", [
        ("auto", "English", "en"),
        ("auto", "german", "de"),
        ("auto", "en", "en"),
        ("auto", "klingon", "klingon"),
        ("auto", None, "auto"),
        ("fr", "english", "fr"),
    ])
    def test_language_tag(self, requested, reported, expected):
        assert language_tag(requested, reported) == expected

    def test_text_only_response(self):
        backend = OpenAITranscriptionBackend(api_key="sk-test")

        async def post(audio_path, options):
            return {"text": "Short note"}

        with patch.object(backend, "_post", new=post):
            result = backend.transcribe_file("/tmp/a.mp3", TranscriptionOptions(language="de"), CancellationToken())

        assert len(result.segments) == 1
        assert result.segments[0].text == "Short note"
        assert result.language_tag == "de"

    def test_cancel_aborts_request(self):
        backend = OpenAITranscriptionBackend(api_key="sk-test")
        started = threading.Event()

        async def slow_post(audio_path, options):
            started.set()
            await asyncio.sleep(30)
            return VERBOSE_JSON

        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()
        try:
            with patch.object(backend, "_post", new=slow_post):
                with pytest.raises(TranscriptionCancelled):
                    backend.transcribe_file("/tmp/a.mp3", TranscriptionOptions(), token)
        finally:
            timer.cancel()

        assert started.is_set()

    def test_api_error_propagates(self):
        backend = OpenAITranscriptionBackend(api_key="sk-test")

        async def failing(audio_path, options):
            raise EngineError("OpenAI API error 401: invalid key")

        with patch.object(backend, "_post", new=failing):
            with pytest.raises(EngineError, match="401"):
                backend.transcribe_file("/tmp/a.mp3", TranscriptionOptions(), CancellationToken())
