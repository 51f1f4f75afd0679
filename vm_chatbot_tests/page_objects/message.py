"""Chat message data read back from the widget."""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import List, Literal

Sender = Literal["bot", "user", "unknown"]


@dataclass
class ChatMessage:
    text: str
    sender: Sender = "unknown"
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return asdict(self)


def format_history(messages: List[ChatMessage]) -> str:
    """Render messages as ``Bot: ...`` / ``User: ...`` lines."""
    lines = [f"{'Bot' if message.sender == 'bot' else 'User'}: {message.text}" for message in messages]
    return "\n".join(lines)
