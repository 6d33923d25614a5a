"""Local whisper.cpp transcription backend using pywhispercpp."""

import time
import logging
from typing import Any, Dict, Optional

from ..errors import EngineError
from ..models.transcription import TranscriptionOptions, TranscriptionResult
from .base import AbstractTranscriptionBackend, build_result
from .cancellation import CancellationToken
from .model_store import ModelStore

logger = logging.getLogger(__name__)

# whisper.cpp segment timestamps are in centiseconds
CENTISECONDS = 0.01

# whisper_sampling_strategy values, fixed when the native context is built
SAMPLING_GREEDY = 0
SAMPLING_BEAM_SEARCH = 1


def sampling_strategy(beam_size: int) -> int:
    return SAMPLING_BEAM_SEARCH if beam_size > 1 else SAMPLING_GREEDY


class WhisperCppBackend(AbstractTranscriptionBackend):
    """whisper.cpp inference on local model files."""

    provider_name = "local"
    required_sample_rate = 16000
    required_channels = 1

    def __init__(
        self,
        model_store: ModelStore,
        model_tag: str = "base",
        n_threads: int = 8,
        beam_size: int = 3,
    ):
        """Initialize local backend.

        Args:
            model_store: Provides validated model files
            model_tag: Model size to load
            n_threads: CPU threads for inference
            beam_size: Beam width the model is first built for; values above 1 select beam search
        """
        self.model_store = model_store
        self.model_tag = model_tag
        self.n_threads = n_threads
        self.beam_size = beam_size
        self.model_path: Optional[str] = None
        self.strategy: Optional[int] = None
        self._model = None

    def initialize(self) -> bool:
        if self._model is not None:
            return True

        self.model_path = self.model_store.ensure_model(self.model_tag)
        self._load(sampling_strategy(self.beam_size))
        logger.info(f"✅ whisper.cpp model loaded: {self.model_path}")
        return True

    def _load(self, strategy: int) -> None:
        try:
            from pywhispercpp.model import Model
        except ImportError as e:
            raise EngineError(f"pywhispercpp is not installed: {e}")

        try:
            self._model = Model(
                self.model_path,
                params_sampling_strategy=strategy,
                redirect_whispercpp_logs_to=None,
                n_threads=self.n_threads,
                print_progress=False,
                print_realtime=False,
            )
        except Exception as e:
            self._model = None
            self.strategy = None
            raise EngineError(f"Failed to load model '{self.model_tag}': {e}")
        self.strategy = strategy

    def _params(self, options: TranscriptionOptions) -> Dict[str, Any]:
        params = {
            "language": options.language_or_auto,
            "n_threads": options.n_threads,
            "temperature": options.temperature,
            "entropy_thold": options.entropy_thold,
            "logprob_thold": options.logprob_thold,
            "no_speech_thold": options.no_speech_thold,
            "max_len": options.max_segment_length,
            "split_on_word": options.split_on_word,
            "suppress_blank": options.suppress_blank,
            "greedy": {"best_of": options.best_of},
            "beam_search": {"beam_size": options.beam_size, "patience": -1.0},
        }
        if options.initial_prompt:
            params["initial_prompt"] = options.initial_prompt
        return params

    def transcribe_file(
        self,
        audio_path: str,
        options: TranscriptionOptions,
        token: CancellationToken,
    ) -> TranscriptionResult:
        if self._model is None:
            raise EngineError("Local model not initialized")
        token.raise_if_cancelled()

        strategy = sampling_strategy(options.beam_size)
        if strategy != self.strategy:
            logger.info(f"Rebuilding whisper.cpp context for sampling strategy {strategy}")
            self._load(strategy)

        def on_new_segment(segment) -> None:
            if not token.is_cancelled:
                logger.debug(f"Segment [{segment.t0}-{segment.t1}]: {segment.text}")

        start_time = time.time()
        try:
            segments = self._model.transcribe(
                audio_path,
                new_segment_callback=on_new_segment,
                **self._params(options),
            )
        except Exception as e:
            raise EngineError(f"whisper.cpp transcription failed: {e}")

        # The native call cannot be interrupted, so output finished after a cancel is dropped here
        token.raise_if_cancelled()
        logger.info(f"whisper.cpp produced {len(segments)} segments in {time.time() - start_time:.1f}s")

        return build_result(
            [(segment.t0, segment.t1, segment.text) for segment in segments],
            language=options.language_or_auto,
            provider=self.provider_name,
            time_scale=CENTISECONDS,
        )

    def cleanup(self) -> None:
        self._model = None
        self.strategy = None
        logger.debug(f"Released whisper.cpp model {self.model_tag}")
