"""Fakes for the harness unit tests; nothing here starts a browser."""

from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from vm_chatbot_tests.config import Settings
from vm_chatbot_tests.errors import WaitTimeoutError
from vm_chatbot_tests.plugin import ResultCollectorPlugin, set_current_plugin
from vm_chatbot_tests.wait import poll_until

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instead of blocking."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds

    @property
    def elapsed_ms(self) -> float:
        return sum(self.sleeps) * 1000


class FakeElement:
    def __init__(self, text: str = "", displayed: bool = True, exists: bool = True, enabled: bool = True,
                 attributes: Optional[Dict[str, str]] = None, children: Optional[Dict[str, "FakeElement"]] = None,
                 on_click: Optional[Callable[[], None]] = None):
        self.text = text
        self.displayed = displayed
        self.exists = exists
        self.enabled = enabled
        self.in_viewport = True
        self.attributes = attributes or {}
        self.children = children or {}
        self.on_click = on_click
        self.value = ""
        self.clicks = 0
        self.pressed: List[str] = []
        self.scrolled = False
        self.evaluate_result = True

    def get_text(self) -> str:
        return self.text

    def click(self):
        self.clicks += 1
        if self.on_click:
            self.on_click()

    def set_value(self, value: str):
        self.value = value

    def clear_value(self):
        self.value = ""

    def is_displayed(self) -> bool:
        return self.exists and self.displayed

    def is_existing(self) -> bool:
        return self.exists

    def is_enabled(self) -> bool:
        return self.enabled

    def is_in_viewport(self) -> bool:
        return self.in_viewport

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def scroll_into_view(self):
        self.scrolled = True

    def press(self, key: str):
        self.pressed.append(key)

    def evaluate(self, script: str):
        return self.evaluate_result

    def save_screenshot(self, path: Path):
        Path(path).write_bytes(PNG_BYTES)

    def find_element(self, selector: str) -> "FakeElement":
        return self.children.get(selector) or missing_element()


def missing_element() -> FakeElement:
    return FakeElement(exists=False, displayed=False)


class FakeDriver:
    """In-memory BrowserDriver: selectors map to lists of FakeElements."""

    def __init__(self):
        self.elements: Dict[str, List[FakeElement]] = {}
        self.title = "Moving home | Virgin Media"
        self.url = "about:blank"
        self.visited: List[str] = []
        self.scripts: List[str] = []
        self.script_results: Dict[str, object] = {}
        self.logs: List[dict] = [{"level": "error", "message": "Failed to load resource"}]
        self.screenshots: List[dict] = []
        self.closed = False
        self.refreshed = 0
        self.storage_cleared = False
        self.title_error: Optional[Exception] = None

    def add(self, selector: str, element: Optional[FakeElement] = None) -> FakeElement:
        element = element or FakeElement()
        self.elements.setdefault(selector, []).append(element)
        return element

    def navigate(self, url: str):
        self.visited.append(url)
        self.url = url

    def find_element(self, selector: str) -> FakeElement:
        found = self.elements.get(selector)
        return found[0] if found else missing_element()

    def find_elements(self, selector: str) -> List[FakeElement]:
        return list(self.elements.get(selector, []))

    def get_title(self) -> str:
        if self.title_error is not None:
            raise self.title_error
        return self.title

    def get_url(self) -> str:
        return self.url

    def execute(self, script: str, *args):
        self.scripts.append(script)
        result = self.script_results.get(script, True)
        if isinstance(result, Exception):
            raise result
        return result

    def save_screenshot(self, path: Path, full_page: bool = False):
        Path(path).write_bytes(PNG_BYTES)
        self.screenshots.append({"path": str(path), "full_page": full_page})

    def refresh(self):
        self.refreshed += 1

    def back(self):
        pass

    def forward(self):
        pass

    def console_logs(self) -> List[dict]:
        return list(self.logs)

    def clear_storage(self):
        self.storage_cleared = True

    def wait_until(self, predicate, timeout_ms, poll_interval_ms=500, message=None):
        poll_until(predicate, timeout_ms, poll_interval_ms, message)

    def close(self):
        self.closed = True


class ScriptedChat:
    """Chat interface that answers with canned bot replies, in order."""

    def __init__(self, replies: List[str]):
        self.replies = list(replies)
        self.sent: List[str] = []
        self.waits = 0

    def send_message(self, text: str):
        self.sent.append(text)

    def wait_for_bot_reply(self, timeout_ms: int) -> str:
        self.waits += 1
        if not self.replies:
            raise WaitTimeoutError("Bot response did not appear within the specified timeout", timeout_ms)
        return self.replies.pop(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def settings(tmp_path):
    fixtures = tmp_path / "fixtures"
    fixtures.mkdir()
    return Settings(
        chatbot_base_url="https://support.example.test",
        chatbot_path="/help",
        reports_dir=str(tmp_path / "reports"),
        screenshots_dir=str(tmp_path / "screenshots"),
        logs_dir=str(tmp_path / "logs"),
        fixtures_dir=str(fixtures),
        retry_delay=10,
    )


@pytest.fixture
def events():
    """Collect step events emitted while the test runs."""
    plugin = ResultCollectorPlugin()
    set_current_plugin(plugin)
    yield plugin.results
    set_current_plugin(None)
