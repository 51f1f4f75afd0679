"""Chatbot-oriented assertion helpers with pass/fail bookkeeping."""

import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Callable, List, Optional, Pattern, Sequence, Union

from vm_chatbot_tests.errors import HarnessAssertionError
from vm_chatbot_tests.step import info

WILDCARD_TOKENS = re.compile(r"\[.*?\]|\*|\?")


def wildcard_to_regex(pattern: str) -> str:
    """Translate a response pattern: ``*`` any text, ``?`` one character, ``[text]`` any text."""
    parts = []
    position = 0
    for token in WILDCARD_TOKENS.finditer(pattern):
        parts.append(re.escape(pattern[position:token.start()]))
        parts.append("." if token.group() == "?" else ".*")
        position = token.end()
    parts.append(re.escape(pattern[position:]))
    return "".join(parts)


def _message_text(message: Any) -> str:
    if isinstance(message, str):
        return message
    if isinstance(message, dict):
        return message.get("messageText") or message.get("text") or ""
    return getattr(message, "text", "") or ""


@dataclass
class AssertionFailure:
    message: str
    actual: Any
    expected: Any
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


class Assertions:
    """Assertion helpers that count every check and keep each failure.

    Failures raise HarnessAssertionError, which is also an AssertionError
    so pytest reports them as ordinary test failures.
    """

    def __init__(self):
        self.assertion_count = 0
        self.failures: List[AssertionFailure] = []

    def _fail(self, message: str, actual=None, expected=None, detail: str = ""):
        self.failures.append(AssertionFailure(message, actual, expected))
        raise HarnessAssertionError(f"{message}{detail}", actual=actual, expected=expected)

    def _passed(self, message: str):
        info(f"Assertion passed: {message}")

    # === Text ===
    def assert_contains(self, actual: Optional[str], expected: str, message: str = ""):
        """Case-insensitive substring check."""
        self.assertion_count += 1
        message = message or f"Expected text to contain \"{expected}\""
        if not actual or not expected:
            self._fail(message, actual, expected)
        if expected.lower() not in actual.lower():
            self._fail(message, actual, expected, f". Actual: \"{actual}\"")
        self._passed(message)

    def assert_matches(self, actual: Optional[str], pattern: Union[str, Pattern], message: str = ""):
        """Regex search; string patterns are case-insensitive."""
        self.assertion_count += 1
        regex = re.compile(pattern, re.IGNORECASE) if isinstance(pattern, str) else pattern
        message = message or f"Expected text to match pattern \"{regex.pattern}\""
        if not actual:
            self._fail(message, actual, regex.pattern)
        if not regex.search(actual):
            self._fail(message, actual, regex.pattern, f". Actual: \"{actual}\"")
        self._passed(message)

    def assert_equals(self, actual: Any, expected: Any, message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected \"{expected}\""
        if actual != expected:
            self._fail(message, actual, expected, f". Actual: \"{actual}\"")
        self._passed(message)

    def assert_not_empty(self, actual: Any, message: str = ""):
        self.assertion_count += 1
        message = message or "Expected value to not be empty"
        if actual is None or (isinstance(actual, str) and not actual.strip()) or (
                hasattr(actual, "__len__") and len(actual) == 0):
            self._fail(message, actual, "non-empty value")
        self._passed(message)

    def assert_min_length(self, actual: Optional[Sequence], min_length: int, message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected length to be at least {min_length}"
        length = len(actual) if actual is not None else 0
        if length < min_length:
            self._fail(message, length, min_length, f". Actual length: {length}")
        self._passed(message)

    def assert_max_length(self, actual: Optional[Sequence], max_length: int, message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected length to be at most {max_length}"
        length = len(actual) if actual is not None else 0
        if length > max_length:
            self._fail(message, length, max_length, f". Actual length: {length}")
        self._passed(message)

    # === Timing and counts ===
    def assert_response_time(self, response_time_ms: float, max_time_ms: float, message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected response time to be under {max_time_ms}ms"
        if response_time_ms > max_time_ms:
            self._fail(message, response_time_ms, max_time_ms, f". Actual: {response_time_ms}ms")
        self._passed(message)

    def assert_element_count(self, actual: int, expected: int, message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected {expected} elements"
        if actual != expected:
            self._fail(message, actual, expected, f". Actual: {actual}")
        self._passed(message)

    # === Booleans and values ===
    def assert_true(self, condition: Any, message: str = ""):
        self.assertion_count += 1
        message = message or "Expected condition to be true"
        if not condition:
            self._fail(message, condition, True)
        self._passed(message)

    def assert_false(self, condition: Any, message: str = ""):
        self.assertion_count += 1
        message = message or "Expected condition to be false"
        if condition:
            self._fail(message, condition, False)
        self._passed(message)

    def assert_not_none(self, value: Any, message: str = ""):
        self.assertion_count += 1
        message = message or "Expected value to not be None"
        if value is None:
            self._fail(message, value, "not None")
        self._passed(message)

    # === Collections ===
    def assert_array_contains(self, array: Optional[Sequence], item: Any, message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected array to contain \"{item}\""
        if array is None or item not in array:
            self._fail(message, array, item, f". Actual array: {array}")
        self._passed(message)

    def assert_array_length(self, array: Optional[Sequence], length: int, message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected array length to be {length}"
        actual = len(array) if array is not None else None
        if actual != length:
            self._fail(message, actual, length, f". Actual length: {actual}")
        self._passed(message)

    def assert_has_property(self, obj: Optional[dict], prop: str, message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected object to have property \"{prop}\""
        if not obj or prop not in obj:
            self._fail(message, obj, prop)
        self._passed(message)

    def assert_property_equals(self, obj: Optional[dict], prop: str, expected: Any, message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected property \"{prop}\" to equal \"{expected}\""
        actual = obj.get(prop) if obj else None
        if actual != expected:
            self._fail(message, actual, expected, f". Actual: \"{actual}\"")
        self._passed(message)

    # === Chatbot responses ===
    def assert_response_contains_keywords(self, response: Optional[str], keywords: List[str], message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected response to contain keywords: [{', '.join(keywords)}]"
        if not response:
            self._fail(message, response, keywords)
        missing = [keyword for keyword in keywords if keyword.lower() not in response.lower()]
        if missing:
            self._fail(message, response, keywords, f". Missing keywords: [{', '.join(missing)}]")
        self._passed(message)

    def assert_response_pattern(self, response: Optional[str], pattern: str, message: str = ""):
        """Match against a wildcard pattern (see ``wildcard_to_regex``), case-insensitive."""
        self.assertion_count += 1
        message = message or f"Expected response to follow pattern: \"{pattern}\""
        if not response or not re.search(wildcard_to_regex(pattern), response, re.IGNORECASE | re.DOTALL):
            self._fail(message, response, pattern, f". Actual: \"{response}\"")
        self._passed(message)

    def assert_conversation_length(self, conversation: Optional[Sequence], expected_count: int, message: str = ""):
        self.assertion_count += 1
        message = message or f"Expected conversation to have {expected_count} messages"
        actual = len(conversation) if conversation is not None else None
        if actual != expected_count:
            self._fail(message, actual, expected_count, f". Actual: {actual}")
        self._passed(message)

    def assert_conversation_ends_with(self, conversation: Optional[Sequence], expected_ending: str,
                                      message: str = ""):
        """Check that the last message text contains ``expected_ending`` (case-insensitive)."""
        self.assertion_count += 1
        message = message or f"Expected conversation to end with \"{expected_ending}\""
        if not conversation:
            self._fail(message, conversation, expected_ending)
        last_text = _message_text(conversation[-1])
        if expected_ending.lower() not in last_text.lower():
            self._fail(message, last_text, expected_ending, f". Actual ending: \"{last_text}\"")
        self._passed(message)

    def assert_custom(self, assertion: Callable[[], Any], message: str = ""):
        """Fail when ``assertion`` returns a falsy value or raises."""
        self.assertion_count += 1
        message = message or "Custom assertion"
        try:
            result = assertion()
        except Exception as e:
            self.failures.append(AssertionFailure(message, str(e), "successful execution"))
            raise HarnessAssertionError(f"{message}: {e}", actual=str(e)) from e
        if not result:
            self._fail(message, result, True)
        self._passed(message)

    # === Stats ===
    def get_stats(self) -> dict:
        return {
            "total": self.assertion_count,
            "failed": len(self.failures),
            "passed": self.assertion_count - len(self.failures),
            "failedAssertions": [asdict(failure) for failure in self.failures],
        }

    def reset_stats(self):
        self.assertion_count = 0
        self.failures = []
