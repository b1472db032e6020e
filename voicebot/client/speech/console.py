"""
Terminal speech adapters.
Typed lines stand in for captured speech; synthesis prints the answer word by
word at a pace derived from the voice rate.
"""

import asyncio
import logging
import sys
from typing import Callable, Optional

from ...config import VoiceSettings
from ...errors import RecognitionError, RecognitionErrorKind
from .base import BaseRecognizer, BaseSynthesizer

logger = logging.getLogger(__name__)

WORDS_PER_SECOND = 2.5  # at rate 1.0


class TypedRecognizer(BaseRecognizer):
    """
    Recognizer fed with text lines from the terminal.
    ``feed`` queues an utterance; ``listen`` waits for the next one.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._pending: asyncio.Queue = asyncio.Queue()
        self._waiter: Optional[asyncio.Future] = None
        self._aborted = False

    def feed(self, text: str) -> None:
        """Queue an utterance for the next capture."""
        self._pending.put_nowait(text)

    async def listen(self, locale: str) -> str:
        logger.debug("Listening (%s)...", locale)
        self._aborted = False
        self._waiter = asyncio.ensure_future(self._pending.get())
        try:
            text = await asyncio.wait_for(self._waiter, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise RecognitionError(RecognitionErrorKind.NO_SPEECH)
        except asyncio.CancelledError:
            if self._aborted:
                raise RecognitionError(RecognitionErrorKind.ABORTED)
            raise
        finally:
            self._waiter = None
        return text.strip()

    def abort(self) -> None:
        if self._waiter and not self._waiter.done():
            self._aborted = True
            self._waiter.cancel()


class ConsoleSynthesizer(BaseSynthesizer):
    """Prints answers as if speaking them."""

    def __init__(self, write: Optional[Callable[[str], None]] = None):
        self._write = write or self._stdout_write
        self._cancelled = asyncio.Event()

    @staticmethod
    def _stdout_write(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    async def speak(self, text: str, settings: VoiceSettings) -> None:
        self._cancelled.clear()
        if settings.volume <= 0:
            return
        delay = 1.0 / (WORDS_PER_SECOND * max(settings.rate, 0.1))
        words = text.split()
        self._write("🔊 ")
        for i, word in enumerate(words):
            if self._cancelled.is_set():
                self._write(" …\n")
                return
            self._write(word + (" " if i < len(words) - 1 else ""))
            try:
                await asyncio.wait_for(self._cancelled.wait(), timeout=delay)
            except asyncio.TimeoutError:
                continue
        self._write("\n")

    def cancel(self) -> None:
        self._cancelled.set()
