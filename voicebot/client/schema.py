from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    USER = "user"
    BOT = "bot"


class SessionState(str, Enum):
    """Mutually exclusive activities of a voice session."""
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"


@dataclass(frozen=True)
class ConversationTurn:
    """A single turn in the conversation transcript."""
    role: Role
    text: str
    timestamp: datetime = field(default_factory=datetime.now)
