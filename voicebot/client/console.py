"""
Terminal presentation of a voice session.
Subscribes to session events and prints status lines and the conversation.
"""

import logging
import sys
from typing import Callable, Iterable, Optional

from ..event_bus import Event, EventBus, EventType
from .schema import ConversationTurn, Role

logger = logging.getLogger(__name__)

STATUS_LINES = {
    "listening": "🎤 Listening... Speak now!",
    "processing": "⏳ Processing your request...",
    "speaking": "🔊 Speaking... (/stop to interrupt)",
}


class ConsolePresenter:
    """Renders session state changes and turns on the terminal."""

    def __init__(self, event_bus: EventBus, bot_name: str = "Bot",
                 write: Optional[Callable[[str], None]] = None):
        self.bot_name = bot_name
        self._write = write or self._stdout_write
        event_bus.subscribe(EventType.STATE_CHANGED, self._handle_state)
        event_bus.subscribe(EventType.TURN_ADDED, self._handle_turn)

    @staticmethod
    def _stdout_write(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    async def _handle_state(self, event: Event):
        state = event.data.get("state", "")
        error = event.data.get("error")
        if state in STATUS_LINES:
            self._write(STATUS_LINES[state] + "\n")
        elif error:
            self._write(f"⚠️  {error}\n")

    async def _handle_turn(self, event: Event):
        if event.data.get("role") == Role.USER.value:
            self._write(f"You said: {event.data.get('text', '')}\n")

    def show_history(self, transcript: Iterable[ConversationTurn]) -> None:
        """Print the whole conversation so far."""
        turns = list(transcript)
        if not turns:
            self._write("(no conversation yet)\n")
            return
        for turn in turns:
            speaker = "You" if turn.role is Role.USER else self.bot_name
            self._write(f"{speaker}: {turn.text}\n")
