"""
Voice Session Controller: the client-side interaction state machine.

    IDLE -> LISTENING -> PROCESSING -> SPEAKING -> IDLE
              |              |
              +--> IDLE      +--> IDLE   (cancel / error / request failure)

Transitions are synchronous and run on the event loop thread, so no two can
interleave. Capture, answer request and playback run as tasks whose
completions are posted to a single inbox and applied by one dispatch loop.
Every inbox event carries the generation of the operation that produced it;
cancelling an operation bumps the generation so its late events are dropped.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, List, Optional, Tuple

from ..config import VoiceSettings
from ..errors import (
    AnswerRequestError,
    CapabilityUnsupported,
    ErrorKind,
    RecognitionError,
    RecognitionErrorKind,
    SynthesisError,
    ValidationError,
)
from ..event_bus import EventBus, state_event, turn_event
from .answer_client import AnswerClient
from .schema import ConversationTurn, Role, SessionState
from .speech.base import BaseRecognizer, BaseSynthesizer

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE = (
    "Your platform does not support speech recognition or synthesis."
)

RECOGNITION_MESSAGES = {
    RecognitionErrorKind.NETWORK: (
        "Network error. Please check your internet connection and try again."
    ),
    RecognitionErrorKind.PERMISSION_DENIED: (
        "Microphone access denied. Please allow microphone permissions and try again."
    ),
    RecognitionErrorKind.NO_SPEECH: "No speech detected. Please try speaking again.",
    RecognitionErrorKind.ABORTED: "Speech recognition was aborted.",
}

ANSWER_MESSAGES = {
    ErrorKind.VALIDATION: "That question could not be sent. Please ask something shorter.",
    ErrorKind.RATE_LIMITED: "Too many requests right now. Please wait a moment and try again.",
    ErrorKind.NETWORK: "Could not reach the voice bot service. Please try again.",
    ErrorKind.SERVER_ERROR: "Failed to get AI response. Please try again.",
}


class InboxKind(Enum):
    TRANSCRIPT = auto()
    RECOGNITION_ERROR = auto()
    RECOGNITION_END = auto()
    ANSWER_READY = auto()
    ANSWER_FAILED = auto()
    SPEECH_FINISHED = auto()


@dataclass
class InboxEvent:
    """A completion waiting to be applied to the state machine."""
    kind: InboxKind
    generation: int
    payload: Any = None


class VoiceSessionController:
    """
    Owns the conversation transcript and the single active session state.

    Operations called from the wrong state are ignored, so duplicate UI
    events (double clicks, repeated callbacks) are harmless.
    """

    def __init__(
        self,
        recognizer: BaseRecognizer,
        synthesizer: BaseSynthesizer,
        answer_client: AnswerClient,
        event_bus: Optional[EventBus] = None,
        locale: str = "en-US",
        voice: Optional[VoiceSettings] = None,
    ):
        self.recognizer = recognizer
        self.synthesizer = synthesizer
        self.answer_client = answer_client
        self.bus = event_bus
        self.locale = locale
        self.voice = voice or VoiceSettings()

        self._state = SessionState.IDLE
        self._transcript: List[ConversationTurn] = []
        self.last_error: Optional[str] = None
        self.current_transcript = ""

        self._generation = 0
        self._activity: Optional[asyncio.Task] = None
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._dispatcher: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._idle = asyncio.Event()
        self._idle.set()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def transcript(self) -> Tuple[ConversationTurn, ...]:
        return tuple(self._transcript)

    async def wait_until_idle(self, timeout: Optional[float] = None) -> None:
        """Block until the session is back in IDLE."""
        await asyncio.wait_for(self._idle.wait(), timeout=timeout)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Check speech capabilities and start the inbox dispatcher."""
        if not (self.recognizer.is_supported() and self.synthesizer.is_supported()):
            self.last_error = UNSUPPORTED_MESSAGE
            logger.error(UNSUPPORTED_MESSAGE)
            raise CapabilityUnsupported(UNSUPPORTED_MESSAGE)
        self._loop = asyncio.get_running_loop()
        self._dispatcher = asyncio.create_task(self._dispatch_loop())
        logger.info("Voice session started (locale=%s)", self.locale)

    async def stop(self) -> None:
        """Cancel any activity and stop the dispatcher."""
        self._cancel_activity()
        if self._dispatcher:
            self._dispatcher.cancel()
            await asyncio.gather(self._dispatcher, return_exceptions=True)
            self._dispatcher = None
        logger.info("Voice session stopped")

    def post(self, event: InboxEvent) -> None:
        """Queue a completion from code running on the event loop thread."""
        self._inbox.put_nowait(event)

    def post_threadsafe(self, event: InboxEvent) -> None:
        """Queue a completion from a foreign thread (e.g. an audio callback)."""
        if self._loop is None:
            raise RuntimeError("Voice session not started")
        self._loop.call_soon_threadsafe(self._inbox.put_nowait, event)

    async def _dispatch_loop(self) -> None:
        """Apply inbox events one at a time."""
        while True:
            event = await self._inbox.get()
            try:
                self._apply(event)
            except Exception:
                logger.exception("Error applying %s", event.kind.name)
            finally:
                self._inbox.task_done()

    def _apply(self, event: InboxEvent) -> None:
        if event.generation != self._generation:
            logger.debug("Discarding stale %s (generation %d)", event.kind.name, event.generation)
            return
        if event.kind is InboxKind.TRANSCRIPT:
            self.on_transcript_ready(event.payload)
        elif event.kind is InboxKind.RECOGNITION_ERROR:
            self.on_recognition_error(*event.payload)
        elif event.kind is InboxKind.RECOGNITION_END:
            self.on_recognition_end()
        elif event.kind is InboxKind.ANSWER_READY:
            self.on_answer_ready(event.payload)
        elif event.kind is InboxKind.ANSWER_FAILED:
            self.on_answer_failed(event.payload)
        elif event.kind is InboxKind.SPEECH_FINISHED:
            self.on_speech_finished()

    # ------------------------------------------------------------------
    # User operations
    # ------------------------------------------------------------------

    def start_listening(self) -> None:
        if not self._expect(SessionState.IDLE, "start_listening"):
            return
        self.last_error = None
        self.current_transcript = ""
        generation = self._next_generation()
        self._set_state(SessionState.LISTENING)
        self._activity = asyncio.create_task(self._capture(generation))

    def stop_listening(self) -> None:
        if not self._expect(SessionState.LISTENING, "stop_listening"):
            return
        self.recognizer.abort()
        self._cancel_activity()
        self._set_state(SessionState.IDLE)

    def stop_speaking(self) -> None:
        if not self._expect(SessionState.SPEAKING, "stop_speaking"):
            return
        self.synthesizer.cancel()
        self._cancel_activity()
        self._set_state(SessionState.IDLE)

    def reset(self) -> None:
        """Clear the conversation and return to IDLE from any state."""
        if self._state is SessionState.LISTENING:
            self.recognizer.abort()
        elif self._state is SessionState.SPEAKING:
            self.synthesizer.cancel()
        self._cancel_activity()
        self._transcript.clear()
        self.last_error = None
        self.current_transcript = ""
        self._set_state(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------

    def on_transcript_ready(self, text: str) -> None:
        if not self._expect(SessionState.LISTENING, "on_transcript_ready"):
            return
        text = (text or "").strip()
        if not text:
            self.on_recognition_end()
            return
        self.current_transcript = text
        self._end_activity()
        self._append(Role.USER, text)
        generation = self._next_generation()
        self._set_state(SessionState.PROCESSING)
        self._activity = asyncio.create_task(self._request(generation, text))

    def on_recognition_error(self, kind: RecognitionErrorKind, detail: str = "") -> None:
        if not self._expect(SessionState.LISTENING, "on_recognition_error"):
            return
        self.last_error = RECOGNITION_MESSAGES.get(
            kind, f"Speech recognition error: {detail or kind.value}"
        )
        self._end_activity()
        self._set_state(SessionState.IDLE)

    def on_recognition_end(self) -> None:
        if not self._expect(SessionState.LISTENING, "on_recognition_end"):
            return
        self._end_activity()
        self._set_state(SessionState.IDLE)

    def on_answer_ready(self, text: str) -> None:
        if not self._expect(SessionState.PROCESSING, "on_answer_ready"):
            return
        self._end_activity()
        self._append(Role.BOT, text)
        generation = self._next_generation()
        self._set_state(SessionState.SPEAKING)
        self._activity = asyncio.create_task(self._speak(generation, text))

    def on_answer_failed(self, error_kind: ErrorKind) -> None:
        if not self._expect(SessionState.PROCESSING, "on_answer_failed"):
            return
        self.last_error = ANSWER_MESSAGES.get(error_kind, ANSWER_MESSAGES[ErrorKind.SERVER_ERROR])
        self._end_activity()
        self._set_state(SessionState.IDLE)

    def on_speech_finished(self) -> None:
        if not self._expect(SessionState.SPEAKING, "on_speech_finished"):
            return
        self._end_activity()
        self._set_state(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    async def _capture(self, generation: int) -> None:
        try:
            text = await self.recognizer.listen(self.locale)
        except RecognitionError as e:
            logger.warning("Speech recognition error: %s", e.kind.value)
            self.post(InboxEvent(InboxKind.RECOGNITION_ERROR, generation, (e.kind, e.detail)))
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Recognizer failed")
            self.post(InboxEvent(
                InboxKind.RECOGNITION_ERROR, generation, (RecognitionErrorKind.OTHER, str(e))
            ))
            return

        if text:
            self.post(InboxEvent(InboxKind.TRANSCRIPT, generation, text))
        else:
            self.post(InboxEvent(InboxKind.RECOGNITION_END, generation))

    async def _request(self, generation: int, question: str) -> None:
        try:
            answer = await self.answer_client.ask(question)
        except ValidationError as e:
            logger.warning("Question rejected locally: %s", e)
            self.post(InboxEvent(InboxKind.ANSWER_FAILED, generation, ErrorKind.VALIDATION))
        except AnswerRequestError as e:
            self.post(InboxEvent(InboxKind.ANSWER_FAILED, generation, e.kind))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Answer request failed")
            self.post(InboxEvent(InboxKind.ANSWER_FAILED, generation, ErrorKind.SERVER_ERROR))
        else:
            self.post(InboxEvent(InboxKind.ANSWER_READY, generation, answer))

    async def _speak(self, generation: int, text: str) -> None:
        self.synthesizer.cancel()
        try:
            await self.synthesizer.speak(text, self.voice)
        except SynthesisError as e:
            logger.warning("Speech synthesis error: %s", e)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Synthesizer failed")
        self.post(InboxEvent(InboxKind.SPEECH_FINISHED, generation))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _expect(self, state: SessionState, operation: str) -> bool:
        if self._state is not state:
            logger.debug("Ignoring %s while %s", operation, self._state.value)
            return False
        return True

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _cancel_activity(self) -> None:
        self._generation += 1
        if self._activity and not self._activity.done():
            self._activity.cancel()
        self._activity = None

    def _end_activity(self) -> None:
        """Leave the current phase, stopping its task if it is still running."""
        if self._activity and not self._activity.done():
            if self._state is SessionState.LISTENING:
                self.recognizer.abort()
            elif self._state is SessionState.SPEAKING:
                self.synthesizer.cancel()
            self._cancel_activity()
        self._activity = None

    def _append(self, role: Role, text: str) -> None:
        self._transcript.append(ConversationTurn(role=role, text=text))
        if self.bus:
            self.bus.publish_nowait(turn_event(role.value, text))

    def _set_state(self, state: SessionState) -> None:
        previous, self._state = self._state, state
        if state is SessionState.IDLE:
            self._idle.set()
        else:
            self._idle.clear()
        logger.info("Session %s -> %s", previous.value, state.value)
        if self.bus:
            self.bus.publish_nowait(state_event(state.value, self.last_error))
