"""Test runner for the chat widget browser suites."""

import uuid
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

import pytest

from vm_chatbot_tests.config import get_settings
from vm_chatbot_tests.plugin import ResultCollectorPlugin, set_current_plugin, TestEvent
from vm_chatbot_tests.output import JSONLWriter, generate_output_filename, write_json
from vm_chatbot_tests import console

SUITES_DIR = Path(__file__).parent / "suites"


class TestStatus(str, Enum):
    """Test run status."""
    __test__ = False

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TestRunSummary:
    """Summary of a test run."""
    __test__ = False

    test_id: str
    status: TestStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration_seconds: float = 0
    current_test: Optional[str] = None
    output_file: Optional[str] = None
    summary_file: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def _print_event(event: TestEvent, run: TestRunSummary):
    """Print test event to console."""
    if event.event_type == "test_start":
        run.current_test = event.name
        console.writeln(f"\n{console.label('TEST:')} {console.info(event.name)}")

    elif event.event_type == "step":
        marker = console.step_marker(event.step_type, event.outcome)
        console.writeln(f"  [{marker}] {event.step_name}{console.millis(event.duration_ms)}")
        if event.message and event.outcome == "failed":
            kind = console.error_kind(event.error_type, event.severity)
            prefix = f"[{kind}] " if kind else ""
            console.writeln(f"{' ' * 6}{prefix}{console.error(event.message)}")

    elif event.event_type == "test_end":
        run.total += 1
        if event.outcome == "skipped":
            run.skipped += 1
            run.current_test = None
            return
        if event.outcome == "passed":
            run.passed += 1
        elif event.outcome == "failed":
            run.failed += 1
        duration = console.dim(f" ({event.duration_seconds:.2f}s)") if event.duration_seconds else ""
        console.writeln(f"  => {console.outcome(event.outcome)}{duration}")
        if event.message:
            kind = console.error_kind(event.error_type, event.severity)
            console.writeln(f"{' ' * 5}{console.error('Error:')}{' ' + kind if kind else ''} {event.message}")
        run.current_test = None


class TestRunner:
    """Orchestrates test execution."""
    __test__ = False

    def __init__(self, settings=None):
        self.settings = settings or get_settings()
        self._active_runs: dict[str, TestRunSummary] = {}

    def create_run(self) -> str:
        """Create a new test run and return its ID."""
        test_id = str(uuid.uuid4())
        self._active_runs[test_id] = TestRunSummary(
            test_id=test_id,
            status=TestStatus.PENDING,
            started_at=datetime.now(),
        )
        return test_id

    def get_run(self, test_id: str) -> Optional[TestRunSummary]:
        """Get a test run by ID."""
        return self._active_runs.get(test_id)

    def get_all_runs(self) -> list[TestRunSummary]:
        """Get all test runs."""
        return list(self._active_runs.values())

    def build_pytest_args(
        self,
        markers: Optional[List[str]] = None,
        headless: bool = True,
        limit: Optional[int] = None,
    ) -> List[str]:
        pytest_args = [
            str(SUITES_DIR),
            "--browser", self.settings.browser,
        ]

        if markers:
            pytest_args.extend(["-m", " or ".join(markers)])
        if not headless:
            pytest_args.append("--headed")
        if limit:
            pytest_args.extend(["--limit", str(limit)])
        return pytest_args

    def run_tests(
        self,
        test_id: str,
        markers: Optional[List[str]] = None,
        headless: bool = True,
        output_path: Optional[Path] = None,
        limit: Optional[int] = None,
    ) -> TestRunSummary:
        """Run the browser suites and return the summary.

        Events stream to a JSONL file; a JSON summary is written next to it.
        """
        run = self._active_runs.get(test_id)
        if not run:
            raise ValueError(f"Test run {test_id} not found")

        run.status = TestStatus.RUNNING
        run.started_at = datetime.now()

        # Determine output path
        if output_path is None:
            output_path = self.settings.reports_path / generate_output_filename()
        run.output_file = str(output_path)

        pytest_args = self.build_pytest_args(markers, headless, limit)

        # Run tests with JSONL output
        with JSONLWriter(output_path) as writer:
            def on_event(event: TestEvent):
                writer.write_event(event)
                _print_event(event, run)

            plugin = ResultCollectorPlugin(on_event=on_event)
            set_current_plugin(plugin)
            try:
                exit_code = pytest.main(pytest_args, plugins=[plugin])
            finally:
                set_current_plugin(None)

        # Finalize
        run.completed_at = datetime.now()
        run.duration_seconds = (run.completed_at - run.started_at).total_seconds()
        run.status = TestStatus.COMPLETED if exit_code == 0 else TestStatus.FAILED
        summary_path = output_path.with_name(f"{output_path.stem}.summary.json")
        run.summary_file = str(summary_path)
        write_json(run.to_dict(), summary_path)
        return run


def run_tests_sync(
    markers: Optional[List[str]] = None,
    headless: bool = True,
    output_path: Optional[Path] = None,
    limit: Optional[int] = None,
) -> TestRunSummary:
    """Synchronous helper to run tests."""
    runner = TestRunner()
    test_id = runner.create_run()
    return runner.run_tests(
        test_id=test_id,
        markers=markers,
        headless=headless,
        output_path=output_path,
        limit=limit,
    )
