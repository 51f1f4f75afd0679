import json

import pytest
from pydantic import ValidationError

from conftest import ScriptedChat
from vm_chatbot_tests.conversation import (
    ConversationRunner,
    ConversationScript,
    ConversationState,
    ConversationTurn,
    parse_conversations,
)
from vm_chatbot_tests.error_handler import ErrorHandler
from vm_chatbot_tests.errors import ConversationMismatchError, WaitTimeoutError

BILL_STATUS = {
    "name": "Bill Status Check",
    "convo": [
        {"sender": "me", "messageText": "Hi, I need to check my bill status"},
        {"sender": "bot", "messageText": "check your bill status.*account number"},
        {"sender": "me", "messageText": "My account number is 12345678"},
        {"sender": "bot", "messageText": "Thank you for providing your account number"},
        {"sender": "bot", "messageText": "bill.*due"},
    ],
}

MATCHING_REPLIES = [
    "Hello! I'd be happy to help you check your bill status. What is your account number?",
    "Thank you for providing your account number.",
    "Your next bill of £32 is due on 14 March.",
]


@pytest.fixture
def script():
    return ConversationScript.model_validate(BILL_STATUS)


class TestConversationTurn:

    def test_regex_is_case_insensitive(self):
        turn = ConversationTurn(sender="bot", messageText="BILL.*due")
        assert turn.matches("Your bill is due tomorrow")
        assert not turn.matches("No payment needed")

    def test_regex_spans_lines(self):
        turn = ConversationTurn(sender="bot", messageText="troubleshoot.*router")
        assert turn.matches("Let's troubleshoot.\nFirst, restart your router.")

    def test_contains_and_equals(self):
        assert ConversationTurn(sender="bot", messageText="Direct Debit", match="contains").matches(
            "Set up a direct debit today")
        assert ConversationTurn(sender="bot", messageText="Hello!", match="equals").matches("  Hello! ")
        assert not ConversationTurn(sender="bot", messageText="Hello", match="equals").matches("Hello!")

    def test_invalid_bot_pattern_is_rejected(self):
        with pytest.raises(ValidationError):
            ConversationTurn(sender="bot", messageText="(unclosed")

    def test_user_text_is_not_a_pattern(self):
        assert ConversationTurn(sender="me", messageText="(unclosed").message_text == "(unclosed"

    def test_unknown_sender_is_rejected(self):
        with pytest.raises(ValidationError):
            ConversationTurn(sender="agent", messageText="hi")


class TestConversationFile:

    def test_json_round_trip_keeps_turns_in_order(self, script):
        reloaded = parse_conversations(json.loads(json.dumps([script.to_dict()])))

        assert reloaded == [script]
        assert [turn.message_text for turn in reloaded[0].convo] == [
            turn["messageText"] for turn in BILL_STATUS["convo"]
        ]

    def test_convos_wrapper(self):
        scripts = parse_conversations({"convos": [BILL_STATUS]})
        assert [s.name for s in scripts] == ["Bill Status Check"]

    def test_rejects_non_list(self):
        with pytest.raises(ValueError, match="expected array"):
            parse_conversations({"name": "x"})

    def test_rejects_empty_convo(self):
        with pytest.raises(ValidationError):
            ConversationScript.model_validate({"name": "Empty", "convo": []})


class TestConversationRunner:

    def test_all_turns_match(self, script):
        chat = ScriptedChat(MATCHING_REPLIES)
        result = ConversationRunner(chat, 1000).run(script)

        assert result.passed
        assert result.state == ConversationState.DONE
        assert result.turns_executed == 5
        assert result.error is None
        assert chat.sent == ["Hi, I need to check my bill status", "My account number is 12345678"]
        assert result.transitions == [
            ConversationState.IDLE,
            ConversationState.USER_TURN_SENT,
            ConversationState.AWAITING_BOT_REPLY,
            ConversationState.BOT_REPLY_CHECKED,
            ConversationState.USER_TURN_SENT,
            ConversationState.AWAITING_BOT_REPLY,
            ConversationState.BOT_REPLY_CHECKED,
            ConversationState.AWAITING_BOT_REPLY,
            ConversationState.BOT_REPLY_CHECKED,
            ConversationState.DONE,
        ]
        assert [entry["sender"] for entry in result.transcript] == ["me", "bot", "me", "bot", "bot"]

    def test_mismatch_fails_and_stops(self, script):
        chat = ScriptedChat(["Sorry, I didn't understand that."] + MATCHING_REPLIES)
        result = ConversationRunner(chat, 1000).run(script)

        assert not result.passed
        assert result.state == ConversationState.FAILED
        assert result.failed_turn == 2
        assert result.turns_executed == 1
        assert result.actual == "Sorry, I didn't understand that."
        assert result.expected == "check your bill status.*account number"
        assert isinstance(result.error, ConversationMismatchError)
        # Remaining turns never ran
        assert chat.sent == ["Hi, I need to check my bill status"]
        assert chat.waits == 1

    def test_timeout_waiting_for_reply_fails(self, script):
        chat = ScriptedChat(MATCHING_REPLIES[:1])
        result = ConversationRunner(chat, 1000).run(script)

        assert result.state == ConversationState.FAILED
        assert result.failed_turn == 4
        assert result.actual is None
        assert isinstance(result.error, WaitTimeoutError)

    def test_raise_for_failure(self, script):
        result = ConversationRunner(ScriptedChat([]), 1000).run(script)
        with pytest.raises(WaitTimeoutError):
            result.raise_for_failure()

    def test_failures_are_recorded_with_the_error_handler(self, script, clock):
        handler = ErrorHandler(sleep=clock.sleep)
        ConversationRunner(ScriptedChat(["nope"]), 1000, handler).run(script)

        assert len(handler.errors) == 1
        assert handler.errors[0].type == "AssertionError"
        assert handler.errors[0].context == "Conversation 'Bill Status Check' turn 2"

    def test_failed_conversation_does_not_stop_the_next(self, script):
        other = ConversationScript.model_validate({
            "name": "Greeting",
            "convo": [{"sender": "me", "messageText": "Hello"}, {"sender": "bot", "messageText": "help"}],
        })
        chat = ScriptedChat(["nope", "How can I help?"])
        results = ConversationRunner(chat, 1000).run_all([script, other])

        assert [r.passed for r in results] == [False, True]

    def test_result_dict(self, script):
        result = ConversationRunner(ScriptedChat(["nope"]), 1000).run(script)
        data = result.to_dict()

        assert data["name"] == "Bill Status Check"
        assert data["state"] == "failed"
        assert data["failedTurn"] == 2
        assert data["actual"] == "nope"
        assert data["errorType"] == "AssertionError"

    def test_steps_are_logged(self, script, events):
        ConversationRunner(ScriptedChat(MATCHING_REPLIES), 1000).run(script)

        names = [e.step_name for e in events]
        assert names[0] == "User says: Hi, I need to check my bill status"
        assert names[-1] == "Conversation: Bill Status Check"
        assert all(e.outcome == "passed" for e in events)
