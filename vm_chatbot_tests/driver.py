"""Browser capability interface and its Playwright implementation.

Harness utilities only talk to the ``BrowserDriver`` / ``Element`` protocols,
so unit tests can substitute a fake driver without starting a browser.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol

from playwright.sync_api import Locator, Page

from vm_chatbot_tests.errors import ElementNotFoundError
from vm_chatbot_tests.wait import DEFAULT_POLL_INTERVAL, poll_until


class Element(Protocol):
    def get_text(self) -> str: ...
    def click(self) -> None: ...
    def set_value(self, value: str) -> None: ...
    def clear_value(self) -> None: ...
    def is_displayed(self) -> bool: ...
    def is_existing(self) -> bool: ...
    def is_enabled(self) -> bool: ...
    def is_in_viewport(self) -> bool: ...
    def get_attribute(self, name: str) -> Optional[str]: ...
    def scroll_into_view(self) -> None: ...
    def press(self, key: str) -> None: ...
    def evaluate(self, script: str) -> Any: ...
    def save_screenshot(self, path: Path) -> None: ...
    def find_element(self, selector: str) -> "Element": ...


class BrowserDriver(Protocol):
    def navigate(self, url: str) -> None: ...
    def find_element(self, selector: str) -> Element: ...
    def find_elements(self, selector: str) -> List[Element]: ...
    def get_title(self) -> str: ...
    def get_url(self) -> str: ...
    def execute(self, script: str, *args) -> Any: ...
    def save_screenshot(self, path: Path, full_page: bool = False) -> None: ...
    def refresh(self) -> None: ...
    def back(self) -> None: ...
    def forward(self) -> None: ...
    def console_logs(self) -> List[dict]: ...
    def clear_storage(self) -> None: ...
    def wait_until(self, predicate: Callable[[], bool], timeout_ms: int,
                   poll_interval_ms: int = DEFAULT_POLL_INTERVAL, message: Optional[str] = None) -> None: ...
    def close(self) -> None: ...


IN_VIEWPORT_SCRIPT = """el => {
    const rect = el.getBoundingClientRect();
    return rect.top >= 0 && rect.left >= 0 &&
        rect.bottom <= (window.innerHeight || document.documentElement.clientHeight) &&
        rect.right <= (window.innerWidth || document.documentElement.clientWidth);
}"""

CLEAR_STORAGE_SCRIPT = "() => { window.localStorage.clear(); window.sessionStorage.clear(); }"


class PlaywrightElement:
    """Element backed by a Playwright locator (first match of ``selector``)."""

    def __init__(self, locator: Locator, selector: str, timeout: int):
        self.locator = locator
        self.selector = selector
        self.timeout = timeout

    def _require(self):
        if self.locator.count() == 0:
            raise ElementNotFoundError(self.selector)

    def get_text(self) -> str:
        self._require()
        return self.locator.inner_text(timeout=self.timeout)

    def click(self):
        self.locator.click(timeout=self.timeout)

    def set_value(self, value: str):
        self.locator.fill(value, timeout=self.timeout)

    def clear_value(self):
        self.locator.fill("", timeout=self.timeout)

    def is_displayed(self) -> bool:
        return self.locator.is_visible()

    def is_existing(self) -> bool:
        return self.locator.count() > 0

    def is_enabled(self) -> bool:
        self._require()
        return self.locator.is_enabled(timeout=self.timeout)

    def is_in_viewport(self) -> bool:
        self._require()
        return self.locator.evaluate(IN_VIEWPORT_SCRIPT)

    def get_attribute(self, name: str) -> Optional[str]:
        self._require()
        return self.locator.get_attribute(name, timeout=self.timeout)

    def scroll_into_view(self):
        self.locator.scroll_into_view_if_needed(timeout=self.timeout)

    def press(self, key: str):
        self.locator.press(key, timeout=self.timeout)

    def evaluate(self, script: str) -> Any:
        self._require()
        return self.locator.evaluate(script)

    def save_screenshot(self, path: Path):
        self.locator.screenshot(path=str(path), timeout=self.timeout)

    def find_element(self, selector: str) -> "PlaywrightElement":
        return PlaywrightElement(self.locator.locator(selector).first, selector, self.timeout)


class PlaywrightDriver:
    """BrowserDriver over a Playwright page."""

    def __init__(self, page: Page, timeout: int = 10000, capture_console: bool = True):
        self.page = page
        self.timeout = timeout
        self._console: List[dict] = []
        if capture_console:
            page.on("console", self._on_console)

    def _on_console(self, message):
        self._console.append({
            "level": message.type,
            "message": message.text,
            "timestamp": datetime.now().isoformat(),
        })

    def navigate(self, url: str):
        self.page.goto(url, wait_until="domcontentloaded")

    def find_element(self, selector: str) -> PlaywrightElement:
        return PlaywrightElement(self.page.locator(selector).first, selector, self.timeout)

    def find_elements(self, selector: str) -> List[PlaywrightElement]:
        locator = self.page.locator(selector)
        return [PlaywrightElement(locator.nth(i), selector, self.timeout) for i in range(locator.count())]

    def get_title(self) -> str:
        return self.page.title()

    def get_url(self) -> str:
        return self.page.url

    def execute(self, script: str, *args) -> Any:
        """Evaluate a JavaScript function or expression in the page."""
        if not args:
            return self.page.evaluate(script)
        return self.page.evaluate(script, args[0] if len(args) == 1 else list(args))

    def save_screenshot(self, path: Path, full_page: bool = False):
        self.page.screenshot(path=str(path), full_page=full_page)

    def refresh(self):
        self.page.reload()

    def back(self):
        self.page.go_back()

    def forward(self):
        self.page.go_forward()

    def console_logs(self) -> List[dict]:
        return list(self._console)

    def clear_storage(self):
        self.page.context.clear_cookies()
        self.page.evaluate(CLEAR_STORAGE_SCRIPT)

    def wait_until(self, predicate: Callable[[], bool], timeout_ms: int,
                   poll_interval_ms: int = DEFAULT_POLL_INTERVAL, message: Optional[str] = None):
        poll_until(predicate, timeout_ms, poll_interval_ms, message)

    def close(self):
        if not self.page.is_closed():
            self.page.close()
