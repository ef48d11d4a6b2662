"""Text-to-speech adapter using pyttsx3."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Optional

import pyttsx3

LOGGER = logging.getLogger(__name__)


class Pyttsx3SpeechBackend:
    """SpeechBackend that speaks one utterance at a time on a worker thread."""

    def __init__(self, rate: Optional[int] = None) -> None:
        self._rate = rate
        self._engine: Optional[Any] = None
        self._lock = threading.Lock()

    def _get_engine(self) -> Any:
        if self._engine is None:
            engine = pyttsx3.init()
            if self._rate:
                engine.setProperty("rate", self._rate)
            self._engine = engine
        return self._engine

    def _speak_blocking(self, text: str) -> None:
        with self._lock:
            engine = self._get_engine()
            engine.say(text)
            engine.runAndWait()

    async def speak(self, text: str) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._speak_blocking, text)
        LOGGER.debug("Spoke %s characters", len(text))
