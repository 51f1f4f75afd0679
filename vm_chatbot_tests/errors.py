"""Error taxonomy and classification for browser test failures.

Errors raised by the harness itself carry their category from the throw site.
Anything else (Playwright errors, errors raised inside test code) is
classified from its message text, first match wins.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError


class ErrorType(str, Enum):
    """Coarse error category used for logging and retry decisions."""
    ELEMENT_NOT_FOUND = "ElementNotFound"
    TIMEOUT = "TimeoutError"
    NETWORK = "NetworkError"
    ASSERTION = "AssertionError"
    BROWSER = "BrowserError"
    JAVASCRIPT = "JavaScriptError"
    UNKNOWN = "UnknownError"


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# Ordered keyword table for message based categorization
CATEGORY_KEYWORDS = [
    (ErrorType.TIMEOUT, ("timeout", "timed out")),
    (ErrorType.ELEMENT_NOT_FOUND, ("element", "selector")),
    (ErrorType.NETWORK, ("network", "connection")),
    (ErrorType.ASSERTION, ("assert", "expected")),
    (ErrorType.BROWSER, ("browser", "webdriver")),
    (ErrorType.JAVASCRIPT, ("javascript", "script")),
]

SEVERITY_KEYWORDS = [
    (Severity.CRITICAL, ("critical", "fatal")),
    (Severity.HIGH, ("timeout", "element not found")),
    (Severity.MEDIUM, ("network", "connection")),
    (Severity.LOW, ("assertion", "expected")),
]

# Severity of typed errors whose message carries no severity keyword
TYPE_SEVERITY = {
    ErrorType.ELEMENT_NOT_FOUND: Severity.HIGH,
    ErrorType.TIMEOUT: Severity.HIGH,
    ErrorType.NETWORK: Severity.MEDIUM,
    ErrorType.ASSERTION: Severity.LOW,
    ErrorType.BROWSER: Severity.MEDIUM,
    ErrorType.JAVASCRIPT: Severity.MEDIUM,
    ErrorType.UNKNOWN: Severity.MEDIUM,
}

NON_RECOVERABLE_KEYWORDS = ("fatal", "critical")
NON_RETRYABLE_KEYWORDS = ("fatal", "critical", "assertion")


class HarnessError(Exception):
    """Base class for errors raised by the test harness."""
    error_type: ErrorType = ErrorType.UNKNOWN

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ElementNotFoundError(HarnessError):
    error_type = ErrorType.ELEMENT_NOT_FOUND

    def __init__(self, selector: str, message: Optional[str] = None):
        super().__init__(message or f"Element not found: {selector}", selector=selector)
        self.selector = selector


class WaitTimeoutError(HarnessError):
    """Raised when a polled condition does not become true in time."""
    error_type = ErrorType.TIMEOUT

    def __init__(self, message: str, timeout_ms: int):
        super().__init__(message, timeout_ms=timeout_ms)
        self.timeout_ms = timeout_ms

    def __str__(self):
        return f"{self.message} (timeout: {self.timeout_ms}ms)"


class NetworkError(HarnessError):
    error_type = ErrorType.NETWORK


class HarnessAssertionError(HarnessError, AssertionError):
    """Assertion failure raised by the harness assertion helpers."""
    error_type = ErrorType.ASSERTION

    def __init__(self, message: str, actual=None, expected=None):
        super().__init__(message, actual=actual, expected=expected)
        self.actual = actual
        self.expected = expected


class ConversationMismatchError(HarnessAssertionError):
    """A bot reply did not match the scripted expectation."""

    def __init__(self, conversation: str, turn_index: int, expected: str, actual: Optional[str]):
        message = (
            f"Conversation '{conversation}' turn {turn_index}: "
            f"bot reply did not match /{expected}/. Actual: \"{actual}\""
        )
        super().__init__(message, actual=actual, expected=expected)
        self.conversation = conversation
        self.turn_index = turn_index


class BrowserSessionError(HarnessError):
    error_type = ErrorType.BROWSER


class ScriptError(HarnessError):
    error_type = ErrorType.JAVASCRIPT


@dataclass(frozen=True)
class Classification:
    """Result of classifying an error."""
    type: ErrorType
    severity: Severity
    recoverable: bool
    retryable: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        data["severity"] = self.severity.value
        return data


def error_message(error: BaseException) -> str:
    """Message text of an error, falling back to its class name."""
    return str(error) or error.__class__.__name__


def _typed_category(error: BaseException) -> Optional[ErrorType]:
    if isinstance(error, HarnessError):
        return error.error_type
    if isinstance(error, (PlaywrightTimeoutError, TimeoutError)):
        return ErrorType.TIMEOUT
    if isinstance(error, ConnectionError):
        return ErrorType.NETWORK
    if isinstance(error, AssertionError):
        return ErrorType.ASSERTION
    return None


def _first_match(message: str, table, default):
    for value, keywords in table:
        if any(keyword in message for keyword in keywords):
            return value
    return default


def categorize(error: BaseException) -> ErrorType:
    """Categorize an error by type, then by message keywords."""
    typed = _typed_category(error)
    if typed is not None:
        return typed
    message = error_message(error).lower()
    return _first_match(message, CATEGORY_KEYWORDS, ErrorType.UNKNOWN)


def determine_severity(error: BaseException) -> Severity:
    message = error_message(error).lower()
    if any(keyword in message for keyword in NON_RECOVERABLE_KEYWORDS):
        return Severity.CRITICAL

    typed = _typed_category(error)
    if typed is not None:
        return TYPE_SEVERITY[typed]
    return _first_match(message, SEVERITY_KEYWORDS, Severity.MEDIUM)


def is_recoverable(error: BaseException) -> bool:
    """False only for fatal/critical errors.

    Unclassified errors count as recoverable.
    """
    message = error_message(error).lower()
    return not any(keyword in message for keyword in NON_RECOVERABLE_KEYWORDS)


def is_retryable(error: BaseException) -> bool:
    """False for fatal/critical errors and assertion failures.

    Unclassified errors count as retryable.
    """
    if _typed_category(error) == ErrorType.ASSERTION:
        return False
    message = error_message(error).lower()
    return not any(keyword in message for keyword in NON_RETRYABLE_KEYWORDS)


def classify(error: BaseException) -> Classification:
    """Classify an error into type, severity, recoverability and retryability."""
    return Classification(
        type=categorize(error),
        severity=determine_severity(error),
        recoverable=is_recoverable(error),
        retryable=is_retryable(error),
    )
