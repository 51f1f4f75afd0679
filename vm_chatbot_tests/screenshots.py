"""Screenshot capture with per-test naming, history and reports."""

import re
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional

from vm_chatbot_tests.output import write_json
from vm_chatbot_tests.step import info, step


def sanitize_name(name: str) -> str:
    """Keep letters, digits, spaces, '-' and '_'; spaces become '_'; lower-case, 50 chars max."""
    name = re.sub(r"[^a-zA-Z0-9\s\-_]", "", name)
    name = re.sub(r"\s+", "_", name)
    return name.lower()[:50]


@dataclass
class ScreenshotRecord:
    path: str
    filename: str
    suite: str
    test: str
    description: str
    timestamp: str
    size: int

    def to_dict(self):
        return asdict(self)


class ScreenshotManager:
    """Takes screenshots through a browser driver and keeps their history."""

    def __init__(self, driver, screenshots_dir: Path, now: Callable[[], datetime] = datetime.now):
        self.driver = driver
        self.screenshots_dir = Path(screenshots_dir)
        self.current_suite = ""
        self.current_test = ""
        self.history: List[ScreenshotRecord] = []
        self._now = now

    def set_test_context(self, suite_name: str, test_name: str):
        self.current_suite = sanitize_name(suite_name)
        self.current_test = sanitize_name(test_name)

    def _stamp(self) -> str:
        return re.sub(r"[:.]", "-", self._now().isoformat())

    def _save(self, filename: str, description: str, capture: Callable[[Path], None]) -> Path:
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.screenshots_dir / filename
        with step(f"Screenshot: {filename}"):
            capture(file_path)

        self.history.append(ScreenshotRecord(
            path=str(file_path),
            filename=filename,
            suite=self.current_suite,
            test=self.current_test,
            description=description,
            timestamp=self._now().isoformat(),
            size=file_path.stat().st_size,
        ))
        return file_path

    def take_screenshot(self, description: str = "") -> Path:
        """Save a screenshot named ``{suite}_{test}[_{description}]_{timestamp}.png``."""
        description_part = f"_{sanitize_name(description)}" if description else ""
        filename = f"{self.current_suite}_{self.current_test}{description_part}_{self._stamp()}.png"
        return self._save(filename, description, self.driver.save_screenshot)

    def take_failure_screenshot(self, error_message: str) -> Path:
        return self.take_screenshot(f"failure_{sanitize_name(error_message[:50])}")

    def take_step_screenshot(self, step_name: str) -> Path:
        return self.take_screenshot(f"step_{sanitize_name(step_name)}")

    def take_before_after_screenshots(self, action_name: str, action: Callable[[], None]) -> dict:
        """Screenshot, run ``action``, screenshot again."""
        before = self.take_screenshot(f"before_{action_name}")
        action()
        after = self.take_screenshot(f"after_{action_name}")
        return {"before": before, "after": after, "action": action_name}

    def take_custom_screenshot(self, name: str) -> Path:
        filename = f"{sanitize_name(name)}_{self._stamp()}.png"
        return self._save(filename, name, self.driver.save_screenshot)

    def take_element_screenshot(self, selector: str, description: str) -> Path:
        element = self.driver.find_element(selector)
        element.scroll_into_view()
        filename = f"{self.current_suite}_{self.current_test}_element_{sanitize_name(description)}_{self._stamp()}.png"
        return self._save(filename, f"element_{description}", element.save_screenshot)

    def take_full_page_screenshot(self, description: str) -> Path:
        filename = f"{self.current_suite}_{self.current_test}_fullpage_{sanitize_name(description)}_{self._stamp()}.png"
        return self._save(
            filename, f"fullpage_{description}",
            lambda path: self.driver.save_screenshot(path, full_page=True),
        )

    # === Queries ===
    def get_screenshot_stats(self) -> dict:
        total_size = sum(record.size for record in self.history)
        return {
            "totalScreenshots": len(self.history),
            "totalSize": total_size,
            "totalSizeMB": f"{total_size / (1024 * 1024):.2f}",
            "currentSuite": self.current_suite,
            "currentTest": self.current_test,
        }

    def get_screenshots_for_test(self, suite_name: str, test_name: str) -> List[ScreenshotRecord]:
        suite, test = sanitize_name(suite_name), sanitize_name(test_name)
        return [r for r in self.history if r.suite == suite and r.test == test]

    def get_screenshots_by_date_range(self, start: datetime, end: datetime) -> List[ScreenshotRecord]:
        return [r for r in self.history if start <= datetime.fromisoformat(r.timestamp) <= end]

    def cleanup_old_screenshots(self, days_to_keep: int = 7) -> int:
        """Delete screenshots older than ``days_to_keep`` days; return how many files were removed."""
        cutoff = self._now() - timedelta(days=days_to_keep)
        deleted = 0
        kept = []
        for record in self.history:
            if datetime.fromisoformat(record.timestamp) >= cutoff:
                kept.append(record)
                continue
            path = Path(record.path)
            if path.exists():
                path.unlink()
                deleted += 1
        self.history = kept
        info(f"Cleaned up {deleted} old screenshots")
        return deleted

    def create_screenshot_report(self, output_path: Optional[Path] = None) -> Path:
        stats = self.get_screenshot_stats()
        report = {
            "generatedAt": datetime.now().isoformat(),
            "statistics": stats,
            "screenshots": [record.to_dict() for record in self.history],
            "summary": {
                "totalScreenshots": stats["totalScreenshots"],
                "totalSizeMB": stats["totalSizeMB"],
                "suites": sorted({record.suite for record in self.history}),
                "tests": sorted({record.test for record in self.history}),
            },
        }
        if output_path is None:
            output_path = self.screenshots_dir / f"screenshot-report-{int(time.time() * 1000)}.json"
        return write_json(report, Path(output_path))

    def reset(self):
        self.current_suite = ""
        self.current_test = ""
        self.history = []
