"""Scripted conversations and the runner that replays them against a chat widget."""

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vm_chatbot_tests.errors import ConversationMismatchError, classify
from vm_chatbot_tests.step import step


class ConversationTurn(BaseModel):
    """One scripted turn; bot turns hold the expected reply pattern."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    sender: Literal["me", "bot"]
    message_text: str = Field(alias="messageText")
    match: Literal["regex", "contains", "equals"] = "regex"

    @model_validator(mode='after')
    def validate_pattern(self):
        if self.sender == "bot" and self.match == "regex":
            try:
                re.compile(self.message_text)
            except re.error as e:
                raise ValueError(f"Invalid reply pattern /{self.message_text}/: {e}")
        return self

    def matches(self, reply: str) -> bool:
        """Check a bot reply against this turn's expectation."""
        if self.match == "contains":
            return self.message_text.lower() in reply.lower()
        if self.match == "equals":
            return reply.strip() == self.message_text.strip()
        return re.search(self.message_text, reply, re.IGNORECASE | re.DOTALL) is not None


class ConversationScript(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    convo: Tuple[ConversationTurn, ...] = Field(min_length=1)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


def parse_conversations(data) -> List[ConversationScript]:
    """Validate conversation JSON: a list of scripts or ``{"convos": [...]}``."""
    if isinstance(data, dict) and "convos" in data:
        data = data["convos"]
    if not isinstance(data, list):
        raise ValueError("Invalid conversations format: expected array")
    return [ConversationScript.model_validate(item) for item in data]


class ConversationState(str, Enum):
    IDLE = "idle"
    USER_TURN_SENT = "user_turn_sent"
    AWAITING_BOT_REPLY = "awaiting_bot_reply"
    BOT_REPLY_CHECKED = "bot_reply_checked"
    DONE = "done"
    FAILED = "failed"


class ChatInterface(Protocol):
    def send_message(self, text: str) -> None: ...
    def wait_for_bot_reply(self, timeout_ms: int) -> str: ...


@dataclass
class ConversationResult:
    name: str
    state: ConversationState = ConversationState.IDLE
    turns_executed: int = 0
    failed_turn: Optional[int] = None  # 1-based
    expected: Optional[str] = None
    actual: Optional[str] = None
    error: Optional[BaseException] = None
    transcript: List[dict] = field(default_factory=list)
    transitions: List[ConversationState] = field(default_factory=lambda: [ConversationState.IDLE])
    duration_ms: int = 0

    @property
    def passed(self) -> bool:
        return self.state == ConversationState.DONE

    def move_to(self, state: ConversationState):
        self.state = state
        self.transitions.append(state)

    def raise_for_failure(self):
        """Re-raise the error that failed the conversation, if any."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "state": self.state.value,
            "turnsExecuted": self.turns_executed,
            "durationMs": self.duration_ms,
            "transcript": self.transcript,
        }
        if self.error is not None:
            data.update({
                "failedTurn": self.failed_turn,
                "expected": self.expected,
                "actual": self.actual,
                "error": str(self.error),
                "errorType": classify(self.error).type.value,
            })
        return data


class ConversationRunner:
    """Replays conversation scripts turn by turn.

    User turns are typed into the chat; each bot turn waits for one new bot
    reply and checks it. The first mismatch or failed wait ends the
    conversation in FAILED, later turns are skipped.
    """

    def __init__(self, chat: ChatInterface, reply_timeout_ms: int = 30000, error_handler=None):
        self.chat = chat
        self.reply_timeout_ms = reply_timeout_ms
        self.error_handler = error_handler

    def run(self, script: ConversationScript) -> ConversationResult:
        result = ConversationResult(script.name)
        start = time.time()

        with step(f"Conversation: {script.name}", continue_on_failure=True):
            for number, turn in enumerate(script.convo, start=1):
                try:
                    self._play_turn(script, number, turn, result)
                except Exception as e:
                    result.failed_turn = number
                    result.expected = turn.message_text
                    result.error = e
                    result.move_to(ConversationState.FAILED)
                    if self.error_handler is not None:
                        self.error_handler.handle_error(e, f"Conversation '{script.name}' turn {number}")
                    break
                result.turns_executed = number
            else:
                result.move_to(ConversationState.DONE)

            result.duration_ms = int((time.time() - start) * 1000)
            result.raise_for_failure()

        return result

    def _play_turn(self, script: ConversationScript, number: int, turn: ConversationTurn,
                   result: ConversationResult):
        if turn.sender == "me":
            with step(f"User says: {turn.message_text}"):
                self.chat.send_message(turn.message_text)
            result.transcript.append({"sender": "me", "text": turn.message_text})
            result.move_to(ConversationState.USER_TURN_SENT)
            return

        result.move_to(ConversationState.AWAITING_BOT_REPLY)
        result.actual = None
        with step(f"Bot says: /{turn.message_text}/"):
            reply = self.chat.wait_for_bot_reply(self.reply_timeout_ms)
            result.actual = reply
            result.transcript.append({"sender": "bot", "text": reply})
            if not turn.matches(reply):
                raise ConversationMismatchError(script.name, number, turn.message_text, reply)
        result.move_to(ConversationState.BOT_REPLY_CHECKED)

    def run_all(self, scripts: List[ConversationScript]) -> List[ConversationResult]:
        """Run every script; a failed conversation does not stop the next one."""
        return [self.run(script) for script in scripts]
