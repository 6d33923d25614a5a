"""Cooperative cancellation for long-running transcriptions."""

import logging
import threading
from typing import Callable, List

from ..errors import TranscriptionCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """Created per transcription run and handed to the backend.

    Backends poll ``is_cancelled`` or register callbacks to stop their
    in-flight work. Native work already running may not stop at once.
    """

    def __init__(self):
        self._event = threading.Event()
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Cancellation callback failed: {e}")

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Register a stop hook; runs immediately if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TranscriptionCancelled("Transcription cancelled")
