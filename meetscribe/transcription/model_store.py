"""Local whisper.cpp model files: download, validation and housekeeping."""

import os
import asyncio
import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional

import aiohttp

from ..errors import CorruptModel, DownloadFailure
from ..models.transcription import ModelInfo

logger = logging.getLogger(__name__)

MODEL_BASE_URL = "https://huggingface.co/ggerganov/whisper.cpp/resolve/main"
MODEL_FILE_PREFIX = "ggml"

# Reference sizes of known-good model files, in MiB
MODEL_SIZES_MB: Dict[str, int] = {
    "tiny": 70,
    "base": 140,
    "small": 460,
    "medium": 1500,
    "large": 2900,
}
MIN_VALID_RATIO = 0.9

DOWNLOAD_CHUNK_BYTES = 1024 * 1024

ProgressCallback = Callable[[int, Optional[int]], None]


def model_file_name(model_tag: str) -> str:
    return f"{MODEL_FILE_PREFIX}-{model_tag}.bin"


def expected_size_bytes(model_tag: str) -> int:
    """Reference size for a model tag, 0 when unknown."""
    return MODEL_SIZES_MB.get(model_tag, 0) * 1024 * 1024


class ModelStore:
    """Manages model files in the per-user models directory."""

    def __init__(self, models_dir: str, base_url: str = MODEL_BASE_URL):
        """Initialize model store.

        Args:
            models_dir: Directory holding ggml model files
            base_url: Remote location models are fetched from
        """
        self.models_dir = Path(models_dir)
        self.models_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        logger.info(f"ModelStore initialized with models_dir: {self.models_dir}")

    def model_path(self, model_tag: str) -> Path:
        return self.models_dir / model_file_name(model_tag)

    def model_url(self, model_tag: str) -> str:
        return f"{self.base_url}/{model_file_name(model_tag)}"

    def is_valid(self, model_tag: str, path: Optional[Path] = None) -> bool:
        """Size-based corruption check.

        A file is valid when it is at least 90% of the reference size for
        its tag. Files for unknown tags are valid if they exist.
        """
        path = path or self.model_path(model_tag)
        try:
            size = path.stat().st_size
        except OSError:
            return False

        expected = expected_size_bytes(model_tag)
        if not expected:
            return True
        valid = size >= expected * MIN_VALID_RATIO
        if not valid:
            logger.warning(f"Model {path.name} looks truncated: {size} bytes, expected ~{expected}")
        return valid

    def ensure_model(self, model_tag: str, progress: Optional[ProgressCallback] = None) -> str:
        """Return a valid model path, downloading at most once.

        Raises:
            DownloadFailure: If the download fails
            CorruptModel: If the file is still invalid after downloading
        """
        path = self.model_path(model_tag)
        if path.exists():
            if self.is_valid(model_tag, path):
                return str(path)
            logger.warning(f"Removing invalid model file {path}, downloading again")
            path.unlink()

        self.download(model_tag, progress)
        if not self.is_valid(model_tag, path):
            path.unlink(missing_ok=True)
            raise CorruptModel(f"Model '{model_tag}' is invalid after download")
        logger.info(f"✅ Model ready: {path}")
        return str(path)

    def download(self, model_tag: str, progress: Optional[ProgressCallback] = None) -> str:
        """Download a model file, replacing any existing copy.

        Raises:
            DownloadFailure: On network, HTTP or disk errors
        """
        path = self.model_path(model_tag)
        url = self.model_url(model_tag)
        partial = path.with_name(path.name + ".part")
        logger.info(f"Downloading model {model_tag} from {url}")

        try:
            asyncio.run(self._download_file(url, partial, progress))
            os.replace(partial, path)
        except DownloadFailure:
            partial.unlink(missing_ok=True)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            partial.unlink(missing_ok=True)
            raise DownloadFailure(f"Failed to download model '{model_tag}': {e}")

        logger.info(f"Downloaded model {model_tag} to {path}")
        return str(path)

    async def _download_file(self, url: str, destination: Path, progress: Optional[ProgressCallback]) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.get(url, allow_redirects=True) as response:
                if response.status != 200:
                    raise DownloadFailure(f"Model download failed: HTTP {response.status} for {url}")

                total = response.content_length
                downloaded = 0
                with open(destination, "wb") as f:
                    async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_BYTES):
                        f.write(chunk)
                        downloaded += len(chunk)
                        if progress:
                            progress(downloaded, total)

    def force_download(self, model_tag: str, progress: Optional[ProgressCallback] = None) -> str:
        """Delete and re-download a model, then validate it."""
        self.delete_model(model_tag)
        return self.ensure_model(model_tag, progress)

    def delete_model(self, model_tag: str) -> bool:
        """Delete a model file. Returns False if it was not present."""
        path = self.model_path(model_tag)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted model {path}")
        return True

    def list_models(self) -> List[ModelInfo]:
        """Known models and their on-disk state."""
        models = []
        for tag in MODEL_SIZES_MB:
            path = self.model_path(tag)
            downloaded = path.exists()
            models.append(ModelInfo(
                name=tag,
                file_name=path.name,
                path=str(path),
                downloaded=downloaded,
                valid=downloaded and self.is_valid(tag, path),
                size_bytes=path.stat().st_size if downloaded else 0,
                expected_size_bytes=expected_size_bytes(tag),
            ))
        return models
