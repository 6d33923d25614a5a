"""OpenAI audio transcription API backend."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import aiohttp

from ..errors import EngineError, TranscriptionCancelled
from ..models.transcription import TranscriptionOptions, TranscriptionResult
from .base import AbstractTranscriptionBackend, build_result
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

CANCEL_POLL_SECONDS = 0.1

# verbose_json reports the detected language by English name
LANGUAGE_CODES = {
    "afrikaans": "af", "arabic": "ar", "armenian": "hy", "azerbaijani": "az",
    "belarusian": "be", "bosnian": "bs", "bulgarian": "bg", "catalan": "ca",
    "chinese": "zh", "croatian": "hr", "czech": "cs", "danish": "da",
    "dutch": "nl", "english": "en", "estonian": "et", "finnish": "fi",
    "french": "fr", "galician": "gl", "german": "de", "greek": "el",
    "hebrew": "he", "hindi": "hi", "hungarian": "hu", "icelandic": "is",
    "indonesian": "id", "italian": "it", "japanese": "ja", "kannada": "kn",
    "kazakh": "kk", "korean": "ko", "latvian": "lv", "lithuanian": "lt",
    "macedonian": "mk", "malay": "ms", "marathi": "mr", "maori": "mi",
    "nepali": "ne", "norwegian": "no", "persian": "fa", "polish": "pl",
    "portuguese": "pt", "romanian": "ro", "russian": "ru", "serbian": "sr",
    "slovak": "sk", "slovenian": "sl", "spanish": "es", "swahili": "sw",
    "swedish": "sv", "tagalog": "tl", "tamil": "ta", "thai": "th",
    "turkish": "tr", "ukrainian": "uk", "urdu": "ur", "vietnamese": "vi",
    "welsh": "cy",
}


def language_tag(requested: str, reported: Optional[str]) -> str:
    """Language tag for a result.

    The requested tag wins unless it is 'auto'. Otherwise the detected
    language name is mapped to its code; names missing from the table are
    returned lowercased.
    """
    if requested != "auto" or not reported:
        return requested
    name = reported.strip().lower()
    return LANGUAGE_CODES.get(name, name)


class OpenAITranscriptionBackend(AbstractTranscriptionBackend):
    """Transcribes whole files through the OpenAI transcription endpoint."""

    provider_name = "openai"

    def __init__(self, api_key: str, model: str = "whisper-1", timeout_seconds: float = 600.0):
        """Initialize OpenAI backend.

        Args:
            api_key: OpenAI API key
            model: Transcription model name
            timeout_seconds: Total timeout for one request
        """
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.base_url = "https://api.openai.com/v1/audio/transcriptions"

        logger.info(f"OpenAITranscriptionBackend initialized with model: {model}")

    def initialize(self) -> bool:
        if not self.api_key:
            raise EngineError("OpenAI API key not configured")
        return True

    def transcribe_file(
        self,
        audio_path: str,
        options: TranscriptionOptions,
        token: CancellationToken,
    ) -> TranscriptionResult:
        token.raise_if_cancelled()
        data = asyncio.run(self._transcribe(audio_path, options, token))

        segments = [
            (segment.get("start", 0.0), segment.get("end", 0.0), segment.get("text", ""))
            for segment in data.get("segments") or []
        ]
        duration = data.get("duration")
        return build_result(
            segments,
            text=data.get("text"),
            language=language_tag(options.language_or_auto, data.get("language")),
            duration=float(duration) if duration is not None else None,
            provider=self.provider_name,
        )

    async def _transcribe(
        self,
        audio_path: str,
        options: TranscriptionOptions,
        token: CancellationToken,
    ) -> Dict[str, Any]:
        """Run the request, cancelling it if the token fires."""
        request = asyncio.ensure_future(self._post(audio_path, options))
        while not request.done():
            if token.is_cancelled:
                request.cancel()
                try:
                    await request
                except asyncio.CancelledError:
                    pass
                raise TranscriptionCancelled("Transcription cancelled")
            await asyncio.wait({request}, timeout=CANCEL_POLL_SECONDS)
        return request.result()

    async def _post(self, audio_path: str, options: TranscriptionOptions) -> Dict[str, Any]:
        """Send the transcription request.

        Raises:
            EngineError: If the API call fails
        """
        headers = {"Authorization": f"Bearer {self.api_key}"}
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            with open(audio_path, "rb") as audio_file:
                form = aiohttp.FormData()
                form.add_field("file", audio_file, filename=Path(audio_path).name,
                               content_type="application/octet-stream")
                form.add_field("model", self.model)
                form.add_field("response_format", "verbose_json")
                form.add_field("timestamp_granularities[]", "segment")
                form.add_field("temperature", str(options.temperature))
                language = options.language_or_auto
                if language != "auto":
                    form.add_field("language", language)
                if options.initial_prompt:
                    form.add_field("prompt", options.initial_prompt)

                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.post(self.base_url, headers=headers, data=form) as response:
                        if response.status != 200:
                            error_text = await response.text()
                            raise EngineError(f"OpenAI API error {response.status}: {error_text}")
                        return await response.json()
        except asyncio.TimeoutError:
            raise EngineError(f"OpenAI API request timed out after {self.timeout_seconds}s")
        except aiohttp.ClientError as e:
            raise EngineError(f"OpenAI API request failed: {e}")

    def cleanup(self) -> None:
        pass
