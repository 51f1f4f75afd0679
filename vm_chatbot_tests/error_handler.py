"""Error recording, reporting and retry-with-classification."""

import time
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional

from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
    wait_fixed,
)

from vm_chatbot_tests.errors import ErrorType, classify, error_message, is_retryable
from vm_chatbot_tests.output import append_json_line, write_json
from vm_chatbot_tests.plugin import log_step
from vm_chatbot_tests.step import info

RECOMMENDATIONS = {
    ErrorType.ELEMENT_NOT_FOUND: "Review element selectors and ensure they are up to date",
    ErrorType.TIMEOUT: "Consider increasing timeout values for slow operations",
    ErrorType.NETWORK: "Check network connectivity and API endpoints",
    ErrorType.ASSERTION: "Review test assertions and expected values",
}


def _check_attempts(max_retries: int) -> int:
    if max_retries < 1:
        raise ValueError(f"max_retries must be at least 1, got {max_retries}")
    return max_retries


def _now() -> str:
    return datetime.now().isoformat()


@dataclass
class ErrorRecord:
    message: str
    type: str
    severity: str
    recoverable: bool
    retryable: bool
    context: str = ""
    timestamp: str = field(default_factory=_now)
    attempt: Optional[int] = None
    max_retries: Optional[int] = None
    extra: dict = field(default_factory=dict)

    def to_dict(self):
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class RetryRecord:
    """Bookkeeping for one execute_with_retry call."""
    context: str
    attempts: int = 0
    succeeded: bool = False
    started_at: str = field(default_factory=_now)
    finished_at: Optional[str] = None

    def to_dict(self):
        return asdict(self)


class ErrorHandler:
    """Classifies, records and retries failing browser operations.

    One instance per test session. Every handled error is kept in
    ``errors`` and, when ``logs_dir`` is set, appended to ``error.log``.
    """

    def __init__(self, logs_dir: Optional[Path] = None, max_retries: int = 3, retry_delay: int = 1000,
                 backoff: str = "fixed", driver=None, sleep: Callable[[float], None] = time.sleep):
        self.logs_dir = Path(logs_dir) if logs_dir else None
        self.max_retries = _check_attempts(max_retries)
        self.retry_delay = retry_delay
        self.backoff = backoff
        self.driver = driver
        self.errors: List[ErrorRecord] = []
        self.retry_history: List[RetryRecord] = []
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings, driver=None, **kwargs) -> "ErrorHandler":
        return cls(
            logs_dir=settings.logs_path,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
            backoff=settings.retry_backoff,
            driver=driver,
            **kwargs,
        )

    @property
    def error_log_path(self) -> Optional[Path]:
        return self.logs_dir / "error.log" if self.logs_dir else None

    def handle_error(self, error: BaseException, context: str = "", error_type: Optional[ErrorType] = None,
                     attempt: Optional[int] = None, max_retries: Optional[int] = None,
                     **extra) -> ErrorRecord:
        """Classify an error, record it and emit an error step.

        Args:
            error: The exception to record
            context: What was being done when the error happened
            error_type: Overrides the classified type
            attempt: Attempt number when called from a retry loop
            max_retries: Attempt limit of that retry loop
            **extra: Additional details stored on the record

        Returns:
            The stored ErrorRecord
        """
        classification = classify(error)
        record = ErrorRecord(
            message=error_message(error),
            type=(error_type or classification.type).value,
            severity=classification.severity.value,
            recoverable=classification.recoverable,
            retryable=classification.retryable,
            context=context,
            attempt=attempt,
            max_retries=max_retries,
            extra=extra,
        )
        self.errors.append(record)

        if self.error_log_path:
            append_json_line({
                "timestamp": record.timestamp,
                "level": "ERROR",
                "context": record.context,
                "message": record.message,
                "type": record.type,
                "severity": record.severity,
            }, self.error_log_path)

        log_step(
            f"Error in {context}" if context else "Error",
            "failed",
            record.message,
            step_type="error",
            error_type=record.type,
            severity=record.severity,
            recoverable=record.recoverable,
        )
        return record

    def _wait_strategy(self, retry_delay: int):
        seconds = retry_delay / 1000
        if self.backoff == "exponential":
            return wait_exponential_jitter(initial=seconds, jitter=seconds, max=seconds * 30)
        return wait_fixed(seconds)

    def execute_with_retry(self, action: Callable[[], Any], context: str = "",
                           max_retries: Optional[int] = None, retry_delay: Optional[int] = None) -> Any:
        """Run ``action`` until it succeeds or the attempts run out.

        Each failure is recorded. A non-retryable error is re-raised at once;
        otherwise the error of the last allowed attempt is re-raised.

        Args:
            action: Zero-argument callable
            context: Label used in records and step events
            max_retries: Attempt limit, at least 1 (defaults to the handler's setting)
            retry_delay: Delay between attempts in ms

        Returns:
            Whatever ``action`` returns
        """
        max_retries = self.max_retries if max_retries is None else _check_attempts(max_retries)
        retry_delay = self.retry_delay if retry_delay is None else retry_delay
        record = RetryRecord(context)
        self.retry_history.append(record)

        def announce_retry(retry_state):
            delay_ms = int(retry_state.next_action.sleep * 1000)
            info(f"Retrying {context} in {delay_ms}ms")

        retrying = Retrying(
            stop=stop_after_attempt(max_retries),
            wait=self._wait_strategy(retry_delay),
            retry=retry_if_exception(is_retryable),
            before_sleep=announce_retry,
            sleep=self._sleep,
            reraise=True,
        )

        result = None
        try:
            for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number
                    record.attempts = number
                    start = time.time()
                    label = f"Attempt {number}/{max_retries}: {context}"
                    try:
                        result = action()
                    except Exception as e:
                        self.handle_error(e, context, attempt=number, max_retries=max_retries)
                        log_step(label, "failed", error_message(e), start_time=start, step_type="retry")
                        raise
                    log_step(label, "passed", start_time=start, step_type="retry")
            record.succeeded = True
            return result
        finally:
            record.finished_at = _now()

    # === Specialized handlers ===
    def handle_element_error(self, error: BaseException, selector: str, action: str) -> bool:
        """Record an element interaction failure and return whether it is recoverable."""
        record = self.handle_error(error, f"{action} on element: {selector}", selector=selector, action=action)

        if record.type == ErrorType.ELEMENT_NOT_FOUND.value and self.driver is not None:
            try:
                exists = self.driver.find_element(selector).is_existing()
            except Exception as e:
                info(f"Could not check element existence: {error_message(e)}")
            else:
                record.extra["element_exists"] = exists
                info(f"Element {selector} exists: {exists}")

        return record.recoverable

    def handle_network_error(self, error: BaseException, url: str, method: str = "GET") -> ErrorRecord:
        return self.handle_error(error, f"{method} request to: {url}", url=url, method=method)

    def handle_timeout_error(self, error: BaseException, context: str, timeout: int) -> ErrorRecord:
        return self.handle_error(error, context, error_type=ErrorType.TIMEOUT, timeout=timeout)

    def handle_assertion_error(self, error: BaseException, assertion: str, actual=None, expected=None) -> ErrorRecord:
        return self.handle_error(
            error, f"Assertion failed: {assertion}",
            error_type=ErrorType.ASSERTION,
            assertion=assertion, actual=actual, expected=expected,
        )

    def handle_browser_error(self, error: BaseException, action: str) -> ErrorRecord:
        """Record a browser failure together with the current url and title when reachable."""
        record = self.handle_error(error, f"Browser action: {action}", error_type=ErrorType.BROWSER, action=action)

        if self.driver is not None:
            try:
                record.extra["browser_state"] = {
                    "url": self.driver.get_url(),
                    "title": self.driver.get_title(),
                }
            except Exception as e:
                info(f"Could not get browser state: {error_message(e)}")

        return record

    # === Reporting ===
    def get_error_stats(self) -> dict:
        error_types: dict = {}
        severities: dict = {}
        for record in self.errors:
            error_types[record.type] = error_types.get(record.type, 0) + 1
            severities[record.severity] = severities.get(record.severity, 0) + 1

        recoverable = sum(1 for record in self.errors if record.recoverable)
        return {
            "totalErrors": len(self.errors),
            "errorTypes": error_types,
            "severities": severities,
            "recoverableErrors": recoverable,
            "nonRecoverableErrors": len(self.errors) - recoverable,
        }

    def get_retry_stats(self) -> dict:
        succeeded = sum(1 for record in self.retry_history if record.succeeded)
        return {
            "totalOperations": len(self.retry_history),
            "succeeded": succeeded,
            "failed": len(self.retry_history) - succeeded,
            "totalAttempts": sum(record.attempts for record in self.retry_history),
            "operations": [record.to_dict() for record in self.retry_history],
        }

    def get_recommendations(self) -> List[str]:
        error_types = self.get_error_stats()["errorTypes"]
        return [text for error_type, text in RECOMMENDATIONS.items() if error_types.get(error_type.value)]

    def create_error_report(self, output_path: Optional[Path] = None) -> Path:
        """Write the error report JSON and return its path.

        Defaults to ``error-report-<ms>.json`` in the logs directory.
        """
        if output_path is None:
            if self.logs_dir is None:
                raise ValueError("No output path given and no logs directory configured")
            output_path = self.logs_dir / f"error-report-{int(time.time() * 1000)}.json"

        stats = self.get_error_stats()
        report = {
            "generatedAt": _now(),
            "summary": {
                **stats,
                "recentErrors": [
                    {
                        "timestamp": record.timestamp,
                        "context": record.context,
                        "type": record.type,
                        "severity": record.severity,
                    }
                    for record in self.errors[-10:]
                ],
            },
            "errors": [record.to_dict() for record in self.errors],
            "retryStats": self.get_retry_stats(),
            "recommendations": self.get_recommendations(),
        }
        return write_json(report, Path(output_path))

    def clear_error_log(self):
        self.errors.clear()
        self.retry_history.clear()

    def set_retry_config(self, max_retries: Optional[int] = None, retry_delay: Optional[int] = None,
                         backoff: Optional[str] = None):
        if max_retries is not None:
            self.max_retries = _check_attempts(max_retries)
        if retry_delay is not None:
            self.retry_delay = retry_delay
        if backoff:
            self.backoff = backoff
