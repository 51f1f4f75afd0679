"""Polling waits for element state, page readiness and custom conditions."""

import time
from typing import Callable, Optional

from vm_chatbot_tests.errors import ElementNotFoundError, ScriptError, WaitTimeoutError
from vm_chatbot_tests.step import step

DEFAULT_POLL_INTERVAL = 500


def resolve_timeout(timeout: Optional[int], default: int) -> int:
    """``default`` when no timeout was given; an explicit 0 is kept."""
    if timeout is None:
        return default
    if timeout < 0:
        raise ValueError(f"Timeout must not be negative, got {timeout}")
    return timeout


def poll_until(
    predicate: Callable[[], bool],
    timeout_ms: int,
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL,
    message: Optional[str] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Evaluate ``predicate`` until it returns a truthy value.

    Sleeps ``poll_interval_ms`` between evaluations. Raises WaitTimeoutError
    once ``timeout_ms`` has elapsed without success, so a predicate that never
    holds fails after at least ``timeout_ms`` and at most
    ``timeout_ms + poll_interval_ms``. Exceptions raised by the predicate
    propagate unchanged.
    """
    start = clock()
    while True:
        if predicate():
            return
        elapsed_ms = (clock() - start) * 1000
        if elapsed_ms >= timeout_ms:
            raise WaitTimeoutError(message or "Condition not met", timeout_ms)
        sleep(poll_interval_ms / 1000)


class WaitUtils:
    """Wait helpers bound to one browser driver."""

    def __init__(self, driver, timeouts: Optional[dict] = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.driver = driver
        self.default_timeout = 10000
        self.short_timeout = 5000
        self.long_timeout = 30000
        self.retry_interval = DEFAULT_POLL_INTERVAL
        self._clock = clock
        self._sleep = sleep
        if timeouts:
            self.set_timeouts(timeouts)

    def _poll(self, description: str, predicate, timeout: Optional[int], message: str):
        timeout = resolve_timeout(timeout, self.default_timeout)
        with step(description, step_type="wait"):
            poll_until(predicate, timeout, self.retry_interval, message,
                       clock=self._clock, sleep=self._sleep)

    def check(self, predicate: Callable[[], bool], timeout: Optional[int] = None) -> bool:
        """Poll without logging a step; return whether the predicate held in time."""
        try:
            poll_until(predicate, resolve_timeout(timeout, self.short_timeout), self.retry_interval,
                       clock=self._clock, sleep=self._sleep)
        except WaitTimeoutError:
            return False
        return True

    def _poll_element(self, description: str, selector: str, predicate, timeout: Optional[int], message: str):
        """Poll an element condition; a missed deadline means the element was not found."""
        try:
            self._poll(description, predicate, timeout, message)
        except WaitTimeoutError as e:
            raise ElementNotFoundError(selector, str(e)) from e
        return self.driver.find_element(selector)

    # === Element visibility ===
    def wait_for_element(self, selector: str, timeout: Optional[int] = None):
        """Wait for element to be displayed and return it."""
        element = self.driver.find_element(selector)
        return self._poll_element(
            f"Wait for element: {selector}", selector,
            element.is_displayed, timeout,
            f"Element {selector} was not displayed within {resolve_timeout(timeout, self.default_timeout)}ms",
        )

    def wait_for_element_clickable(self, selector: str, timeout: Optional[int] = None):
        element = self.driver.find_element(selector)
        return self._poll_element(
            f"Wait for element to be clickable: {selector}", selector,
            lambda: element.is_displayed() and element.is_enabled(), timeout,
            f"Element {selector} was not clickable within {resolve_timeout(timeout, self.default_timeout)}ms",
        )

    def wait_for_element_exist(self, selector: str, timeout: Optional[int] = None):
        element = self.driver.find_element(selector)
        return self._poll_element(
            f"Wait for element to exist: {selector}", selector,
            element.is_existing, timeout,
            f"Element {selector} did not exist within {resolve_timeout(timeout, self.default_timeout)}ms",
        )

    def wait_for_element_disappear(self, selector: str, timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.default_timeout)
        element = self.driver.find_element(selector)
        self._poll(
            f"Wait for element to disappear: {selector}",
            lambda: not element.is_displayed(), timeout,
            f"Element {selector} did not disappear within {timeout}ms",
        )

    def wait_for_element_in_viewport(self, selector: str, timeout: Optional[int] = None):
        element = self.driver.find_element(selector)
        return self._poll_element(
            f"Wait for element to be in viewport: {selector}", selector,
            lambda: element.is_existing() and element.is_in_viewport(), timeout,
            f"Element {selector} did not become visible in viewport within {resolve_timeout(timeout, self.default_timeout)}ms",
        )

    # === Element state ===
    def wait_for_element_count(self, selector: str, count: int, timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.default_timeout)
        self._poll(
            f"Wait for {count} elements: {selector}",
            lambda: len(self.driver.find_elements(selector)) == count, timeout,
            f"Element count for {selector} did not become {count} within {timeout}ms",
        )

    def wait_for_element_text(self, selector: str, expected_text: str, timeout: Optional[int] = None):
        """Wait until the element text contains ``expected_text`` (case-insensitive)."""
        timeout = resolve_timeout(timeout, self.default_timeout)
        element = self.driver.find_element(selector)

        def has_text():
            return element.is_existing() and expected_text.lower() in element.get_text().lower()

        self._poll(
            f"Wait for element text to contain: {expected_text}",
            has_text, timeout,
            f"Element text did not contain \"{expected_text}\" within {timeout}ms",
        )

    def wait_for_element_attribute(self, selector: str, attribute: str, expected_value: str,
                                   timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.default_timeout)
        element = self.driver.find_element(selector)
        self._poll(
            f"Wait for element attribute {attribute} to be: {expected_value}",
            lambda: element.is_existing() and element.get_attribute(attribute) == expected_value,
            timeout,
            f"Element attribute {attribute} did not become \"{expected_value}\" within {timeout}ms",
        )

    def wait_for_element_enabled(self, selector: str, timeout: Optional[int] = None):
        element = self.driver.find_element(selector)
        return self._poll_element(
            f"Wait for element to be enabled: {selector}", selector,
            lambda: element.is_existing() and element.is_enabled(), timeout,
            f"Element {selector} did not become enabled within {resolve_timeout(timeout, self.default_timeout)}ms",
        )

    def wait_for_element_disabled(self, selector: str, timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.default_timeout)
        element = self.driver.find_element(selector)
        self._poll(
            f"Wait for element to be disabled: {selector}",
            lambda: element.is_existing() and not element.is_enabled(), timeout,
            f"Element {selector} did not become disabled within {timeout}ms",
        )

    def wait_for_element_class(self, selector: str, class_name: str, timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.default_timeout)
        element = self.driver.find_element(selector)
        self._poll(
            f"Wait for element to have class: {class_name}",
            lambda: class_name in (element.get_attribute("class") or "").split(), timeout,
            f"Element {selector} did not get class \"{class_name}\" within {timeout}ms",
        )

    def wait_for_element_class_removed(self, selector: str, class_name: str, timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.default_timeout)
        element = self.driver.find_element(selector)
        self._poll(
            f"Wait for element to not have class: {class_name}",
            lambda: class_name not in (element.get_attribute("class") or "").split(), timeout,
            f"Element {selector} still has class \"{class_name}\" after {timeout}ms",
        )

    def wait_for_animation_complete(self, selector: str, timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.default_timeout)
        element = self.driver.find_element(selector)
        self._poll(
            f"Wait for animation to complete: {selector}",
            lambda: element.evaluate("el => el.getAnimations().length === 0"), timeout,
            f"Animation did not complete for {selector} within {timeout}ms",
        )

    # === Page state ===
    def wait_for_page_load(self, timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.long_timeout)
        self._poll(
            "Wait for page to load completely",
            lambda: self.driver.execute("() => document.readyState === 'complete'"), timeout,
            "Page did not load completely within the specified timeout",
        )

    def wait_for_url_change(self, expected_url: str, timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.default_timeout)
        self._poll(
            f"Wait for URL to change to: {expected_url}",
            lambda: expected_url in self.driver.get_url(), timeout,
            f"URL did not change to {expected_url} within {timeout}ms",
        )

    def wait_for_title_change(self, expected_title: str, timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.default_timeout)
        self._poll(
            f"Wait for title to change to: {expected_title}",
            lambda: expected_title in self.driver.get_title(), timeout,
            f"Title did not change to {expected_title} within {timeout}ms",
        )

    def wait_for_network_idle(self, timeout: Optional[int] = None):
        """Wait until the number of loaded resources stops changing between polls."""
        timeout = resolve_timeout(timeout, self.default_timeout)
        counts = []

        def resources_settled():
            counts.append(self.driver.execute("() => performance.getEntriesByType('resource').length"))
            return len(counts) > 1 and counts[-1] == counts[-2]

        self._poll(
            "Wait for network to be idle", resources_settled, timeout,
            "Network did not become idle within the specified timeout",
        )

    def wait_for_condition(self, condition: Callable[[], bool], timeout: Optional[int] = None,
                           message: str = "Condition not met"):
        self._poll(f"Wait for condition: {message}", condition, timeout, message)

    def wait_for_script_execution(self, script: str, *args):
        """Run a script in the page and return its result."""
        with step(f"Execute script: {script[:50]}", step_type="wait"):
            try:
                return self.driver.execute(script, *args)
            except Exception as e:
                raise ScriptError(f"Script execution failed: {e}", script=script) from e

    def pause(self, milliseconds: int):
        """Sleep for a fixed amount of time."""
        with step(f"Wait for {milliseconds}ms", step_type="wait"):
            self._sleep(milliseconds / 1000)

    # === Configuration ===
    def set_timeouts(self, timeouts: dict):
        """Update timeouts; keys: default, short, long, retry_interval (ms)."""
        if timeouts.get("default"):
            self.default_timeout = timeouts["default"]
        if timeouts.get("short"):
            self.short_timeout = timeouts["short"]
        if timeouts.get("long"):
            self.long_timeout = timeouts["long"]
        if timeouts.get("retry_interval"):
            self.retry_interval = timeouts["retry_interval"]

    def get_timeouts(self) -> dict:
        return {
            "default": self.default_timeout,
            "short": self.short_timeout,
            "long": self.long_timeout,
            "retry_interval": self.retry_interval,
        }
