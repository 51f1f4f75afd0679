"""Browser session probing and the per-test harness context."""

import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from vm_chatbot_tests.assertions import Assertions
from vm_chatbot_tests.config import Settings, get_settings
from vm_chatbot_tests.error_handler import ErrorHandler
from vm_chatbot_tests.errors import BrowserSessionError, WaitTimeoutError, error_message
from vm_chatbot_tests.output import write_json
from vm_chatbot_tests.screenshots import ScreenshotManager, sanitize_name
from vm_chatbot_tests.step import info, step
from vm_chatbot_tests.test_data import TestDataManager
from vm_chatbot_tests.wait import WaitUtils, poll_until

SESSION_ERROR_MESSAGES = (
    "invalid session id",
    "no such session",
    "chrome not reachable",
    "session not created",
    "session does not exist",
    "target closed",
    "has been closed",
)


def is_session_error(error: BaseException) -> bool:
    """True when the error means the browser session is gone."""
    message = error_message(error).lower()
    return any(text in message for text in SESSION_ERROR_MESSAGES)


class SessionManager:
    """Checks whether the driver's browser session still answers."""

    def __init__(self, driver, clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.driver = driver
        self._clock = clock
        self._sleep = sleep

    def is_session_valid(self) -> bool:
        """Probe the session with a title lookup.

        Session errors mean False; any other error propagates.
        """
        try:
            self.driver.get_title()
        except Exception as e:
            if is_session_error(e):
                info("Browser session is invalid or disconnected", outcome="failed")
                return False
            raise
        return True

    def safe_execute(self, command: Callable[[], Any], command_name: str = "browser command") -> Any:
        if not self.is_session_valid():
            raise BrowserSessionError(f"Cannot execute {command_name}: Browser session is invalid")
        try:
            return command()
        except Exception as e:
            if is_session_error(e):
                raise BrowserSessionError(f"Browser session lost during {command_name}") from e
            raise

    def wait_for_valid_session(self, timeout_ms: int = 10000, poll_interval_ms: int = 1000) -> bool:
        try:
            poll_until(self.is_session_valid, timeout_ms, poll_interval_ms,
                       "Browser session did not become valid", clock=self._clock, sleep=self._sleep)
        except WaitTimeoutError:
            return False
        return True

    def force_quit(self):
        try:
            self.driver.close()
        except Exception as e:
            info(f"Could not close browser session gracefully: {error_message(e)}")


@dataclass
class HarnessSession:
    """Everything one test needs, bound to one browser driver."""
    driver: Any
    settings: Settings
    errors: ErrorHandler
    screenshots: ScreenshotManager
    assertions: Assertions
    test_data: TestDataManager
    wait: WaitUtils
    session: SessionManager

    def init_test_context(self, suite_name: str, test_name: str):
        self.screenshots.set_test_context(suite_name, test_name)

    def reset_all(self):
        self.test_data.clear_cache()
        self.assertions.reset_stats()
        self.screenshots.reset()
        self.errors.clear_error_log()

    def get_all_stats(self) -> dict:
        return {
            "testData": self.test_data.get_cache_stats(),
            "assertions": self.assertions.get_stats(),
            "screenshots": self.screenshots.get_screenshot_stats(),
            "errors": self.errors.get_error_stats(),
            "waitConfig": self.wait.get_timeouts(),
        }

    def create_reports(self, output_dir: Optional[Path] = None) -> dict:
        """Write error, screenshot and combined reports; return their paths."""
        output_dir = Path(output_dir) if output_dir else None
        stamp = int(time.time() * 1000)

        reports = {
            "error_report": self.errors.create_error_report(
                output_dir / "error-report.json" if output_dir
                else self.settings.logs_path / f"error-report-{stamp}.json"),
            "screenshot_report": self.screenshots.create_screenshot_report(
                output_dir / "screenshot-report.json" if output_dir else None),
        }

        stats = self.get_all_stats()
        combined = {
            "generatedAt": datetime.now().isoformat(),
            "summary": {
                "testDataCacheSize": stats["testData"]["size"],
                "totalAssertions": stats["assertions"]["total"],
                "totalScreenshots": stats["screenshots"]["totalScreenshots"],
                "totalErrors": stats["errors"]["totalErrors"],
            },
            "details": stats,
        }
        combined_path = (output_dir / "combined-report.json" if output_dir
                         else self.settings.logs_path / f"combined-report-{stamp}.json")
        reports["combined_report"] = write_json(combined, combined_path)
        return reports

    def capture_failure(self, error: BaseException) -> dict:
        """Record a test failure and collect artifacts when the browser still answers.

        Returns the paths of the captured artifacts (empty when the session
        probe failed). Never raises: a probe or capture that fails is logged
        and skipped, so teardown can still write reports.
        """
        self.errors.handle_error(error, "Test failure")
        try:
            alive = self.session.is_session_valid()
        except Exception as e:
            info(f"Session probe failed, skipping failure artifacts: {error_message(e)}", outcome="failed")
            return {}
        if not alive:
            info("Browser session unreachable, skipping failure artifacts")
            return {}

        artifacts = {}
        if self.settings.screenshot_on_failure:
            try:
                artifacts["screenshot"] = self.screenshots.take_failure_screenshot(error_message(error))
            except Exception as e:
                info(f"Failed to take failure screenshot: {error_message(e)}", outcome="failed")

        if self.settings.capture_console_logs:
            try:
                artifacts["console_logs"] = self._save_console_logs()
            except Exception as e:
                info(f"Failed to capture console logs: {error_message(e)}", outcome="failed")
        return artifacts

    def _save_console_logs(self) -> Path:
        with step("Capture browser console logs"):
            name = f"console-{self.screenshots.current_suite}_{self.screenshots.current_test}"
            path = self.settings.logs_path / f"{sanitize_name(name)}-{int(time.time() * 1000)}.json"
            return write_json({"logs": self.driver.console_logs()}, path)


def create_session(driver, settings: Optional[Settings] = None,
                   clock: Callable[[], float] = time.monotonic,
                   sleep: Callable[[float], None] = time.sleep) -> HarnessSession:
    """Build a HarnessSession for ``driver`` from settings (global settings by default)."""
    settings = settings or get_settings()
    return HarnessSession(
        driver=driver,
        settings=settings,
        errors=ErrorHandler.from_settings(settings, driver=driver, sleep=sleep),
        screenshots=ScreenshotManager(driver, settings.screenshots_path),
        assertions=Assertions(),
        test_data=TestDataManager(settings.fixtures_path, settings.data_environment),
        wait=WaitUtils(driver, settings.wait_timeouts, clock=clock, sleep=sleep),
        session=SessionManager(driver, clock=clock, sleep=sleep),
    )
