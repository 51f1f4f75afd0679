import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from vm_chatbot_tests.errors import (
    ConversationMismatchError,
    ElementNotFoundError,
    ErrorType,
    HarnessAssertionError,
    NetworkError,
    Severity,
    WaitTimeoutError,
    categorize,
    classify,
    determine_severity,
    is_recoverable,
    is_retryable,
)


class TestMessageClassification:
    """Untyped errors are classified from their message text."""

    def test_timeout_waiting_for_element(self):
        result = classify(Exception("Timeout waiting for element"))
        assert result.to_dict() == {
            "type": "TimeoutError",
            "severity": "High",
            "recoverable": True,
            "retryable": True,
        }

    @pytest.mark.parametrize("message", [
        "timeout",
        "Navigation timeout of 30000 ms exceeded",
        "selector .chat-input: timeout",
        "connection timeout",
        "TIMEOUT while typing",
    ])
    def test_messages_with_timeout_are_high_severity_timeouts(self, message):
        result = classify(Exception(message))
        assert result.type == ErrorType.TIMEOUT
        assert result.severity == Severity.HIGH
        assert result.recoverable is True

    @pytest.mark.parametrize("message, expected", [
        ("Could not find element #chat-input", ErrorType.ELEMENT_NOT_FOUND),
        ("invalid selector", ErrorType.ELEMENT_NOT_FOUND),
        ("Request timed out", ErrorType.TIMEOUT),
        ("network error", ErrorType.NETWORK),
        ("connection refused", ErrorType.NETWORK),
        ("expected 3 messages", ErrorType.ASSERTION),
        ("browser has disconnected", ErrorType.BROWSER),
        ("javascript exception in page", ErrorType.JAVASCRIPT),
        ("something odd happened", ErrorType.UNKNOWN),
    ])
    def test_categories(self, message, expected):
        assert categorize(Exception(message)) == expected

    @pytest.mark.parametrize("message, expected", [
        ("fatal: out of memory", Severity.CRITICAL),
        ("element not found", Severity.HIGH),
        ("network unreachable", Severity.MEDIUM),
        ("assertion did not hold", Severity.LOW),
        ("whatever", Severity.MEDIUM),
    ])
    def test_severity(self, message, expected):
        assert determine_severity(Exception(message)) == expected

    @pytest.mark.parametrize("message", [
        "fatal error",
        "Critical failure in network",
        "timeout after fatal crash",
        "CRITICAL element missing",
    ])
    def test_fatal_or_critical_is_never_recoverable_or_retryable(self, message):
        error = Exception(message)
        assert is_recoverable(error) is False
        assert is_retryable(error) is False
        assert classify(error).severity == Severity.CRITICAL

    def test_unknown_errors_default_to_recoverable_and_retryable(self):
        error = Exception("something odd happened")
        assert is_recoverable(error) is True
        assert is_retryable(error) is True

    def test_assertion_keyword_is_not_retryable(self):
        assert is_retryable(Exception("assertion failed on reply")) is False

    def test_empty_message_falls_back_to_class_name(self):
        assert categorize(RuntimeError()) == ErrorType.UNKNOWN


class TestTypedClassification:
    """Typed errors keep the category they were raised with."""

    def test_assertion_mentioning_timeout_stays_an_assertion(self):
        error = HarnessAssertionError("Expected reply before timeout")
        result = classify(error)
        assert result.type == ErrorType.ASSERTION
        assert result.retryable is False

    def test_plain_assert_is_not_retryable(self):
        assert is_retryable(AssertionError("reply did not match")) is False

    def test_element_not_found(self):
        error = ElementNotFoundError("#chat-input")
        assert str(error) == "Element not found: #chat-input"
        assert classify(error).type == ErrorType.ELEMENT_NOT_FOUND
        assert classify(error).severity == Severity.HIGH

    def test_wait_timeout_message_carries_timeout(self):
        error = WaitTimeoutError("Bot did not answer", 5000)
        assert str(error) == "Bot did not answer (timeout: 5000ms)"
        assert error.timeout_ms == 5000
        assert categorize(error) == ErrorType.TIMEOUT

    def test_playwright_timeout(self):
        assert categorize(PlaywrightTimeoutError("Locator.click: exceeded")) == ErrorType.TIMEOUT

    def test_builtin_connection_error(self):
        assert categorize(ConnectionResetError("reset by peer")) == ErrorType.NETWORK

    def test_network_error(self):
        result = classify(NetworkError("request failed"))
        assert result.type == ErrorType.NETWORK
        assert result.severity == Severity.MEDIUM

    def test_typed_severity_follows_the_type_not_message_keywords(self):
        assert classify(NetworkError("request timed out")).severity == Severity.MEDIUM
        assert classify(HarnessAssertionError("element text differs")).severity == Severity.LOW
        assert classify(NetworkError("fatal: connection refused")).severity == Severity.CRITICAL

    def test_conversation_mismatch(self):
        error = ConversationMismatchError("Bill Status Check", 2, "bill.*due", "Sorry?")
        assert isinstance(error, AssertionError)
        assert error.turn_index == 2
        assert "Bill Status Check" in str(error)
        assert "Sorry?" in str(error)
        assert classify(error).type == ErrorType.ASSERTION
