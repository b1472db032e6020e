"""
Base abstract classes for speech capture and synthesis adapters.
"""

from abc import ABC, abstractmethod

from ...config import VoiceSettings


class BaseRecognizer(ABC):
    """
    One-shot speech-to-text: a single non-continuous capture per ``listen``,
    final results only.
    """

    def is_supported(self) -> bool:
        """Whether the platform can capture speech at all."""
        return True

    @abstractmethod
    async def listen(self, locale: str) -> str:
        """
        Capture one utterance and return its transcript.

        Returns:
            The transcript, or an empty string when capture ended without a result.

        Raises:
            RecognitionError: capture failed (no speech, permission, network...).
        """
        pass

    @abstractmethod
    def abort(self) -> None:
        """Stop an in-progress capture immediately."""
        pass


class BaseSynthesizer(ABC):
    """
    Text-to-speech playback.
    """

    def is_supported(self) -> bool:
        """Whether the platform can speak at all."""
        return True

    @abstractmethod
    async def speak(self, text: str, settings: VoiceSettings) -> None:
        """
        Speak ``text`` and return once playback has finished.

        Raises:
            SynthesisError: playback failed.
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Halt audio output immediately."""
        pass
