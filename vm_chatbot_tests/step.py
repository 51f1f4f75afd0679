from contextlib import contextmanager
import linecache
import sys
import time

from vm_chatbot_tests.errors import classify
from vm_chatbot_tests.plugin import log_step


def _recover_assertion_message(exc_tb) -> str:
    """Rebuild the message of a bare ``assert x, msg`` from its source line.

    Pytest assertion rewriting can leave AssertionError without args when the
    terminal plugin is disabled, so the message expression is evaluated again
    in the failing frame.
    """
    tb = exc_tb.tb_next if exc_tb.tb_next else exc_tb
    frame = tb.tb_frame
    source_line = linecache.getline(frame.f_code.co_filename, tb.tb_lineno).strip()

    if not (source_line.startswith('assert ') and ', ' in source_line):
        return ""

    _, msg_part = source_line.split(', ', 1)
    try:
        return str(eval(msg_part, {**frame.f_globals, **frame.f_locals}))
    except Exception:
        return msg_part.strip('\'"')


@contextmanager
def step(description: str, continue_on_failure: bool = False, step_type: str = "action", start: float = None):
    """Context manager for test steps with logging.

    Args:
        description: Human-readable step description
        continue_on_failure: If True, don't re-raise exceptions
        step_type: Event step type ("action" or "wait")
        start: Optional start timestamp (defaults to now)

    Failed steps carry the classified error type and severity.
    Output is handled by the test runner's on_event callback.
    """
    start_time = start or time.time()

    try:
        yield
        duration_ms = int((time.time() - start_time) * 1000)
        log_step(description, "passed", duration_ms=duration_ms, step_type=step_type)
    except Exception:
        duration_ms = int((time.time() - start_time) * 1000)
        exc_type, exc_value, exc_tb = sys.exc_info()

        error_msg = str(exc_value) if exc_value.args else ""
        if not error_msg and isinstance(exc_value, AssertionError):
            error_msg = _recover_assertion_message(exc_tb)

        error_msg = error_msg.replace("\n", f"\n{' ' * 6}")
        err = f"{exc_type.__name__}: {error_msg}" if error_msg else exc_type.__name__

        classification = classify(exc_value)
        log_step(
            description, "failed", err,
            duration_ms=duration_ms,
            step_type=step_type,
            error_type=classification.type.value,
            severity=classification.severity.value,
            recoverable=classification.recoverable,
        )
        if not continue_on_failure:
            raise


def info(message: str, outcome: str = "passed"):
    """Log an informational step (no timing expected).

    Args:
        message: Informational message to log
        outcome: "passed" or "failed" (default: "passed")
    """
    log_step(message, outcome, step_type="info")
