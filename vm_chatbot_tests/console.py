"""Console output for test runs: colors, step markers and error labels."""

import os
from typing import Optional

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
MAGENTA = "\033[35m"
CYAN = "\033[36m"
BRIGHT_GREEN = "\033[92m"
BRIGHT_RED = "\033[91m"
BRIGHT_CYAN = "\033[96m"

_force_color = None

# Step type -> marker shown in front of step lines
STEP_ICONS = {
    "wait": "~",
    "retry": "r",
    "info": "i",
    "error": "!",
}

SEVERITY_STYLES = {
    "Critical": (BOLD, MAGENTA),
    "High": (BOLD, RED),
    "Medium": (YELLOW,),
    "Low": (DIM,),
}


def use_color() -> bool:
    if _force_color is not None:
        return _force_color
    try:
        return os.isatty(1)
    except OSError:
        return False


def force_color(enabled: Optional[bool]):
    """Force colors on or off; None goes back to tty detection."""
    global _force_color
    _force_color = enabled


def style(text: str, *codes: str) -> str:
    if not use_color():
        return text
    return f"{''.join(codes)}{text}{RESET}"


def success(text: str) -> str:
    return style(text, BOLD, BRIGHT_GREEN)


def error(text: str) -> str:
    return style(text, BOLD, BRIGHT_RED)


def info(text: str) -> str:
    return style(text, BRIGHT_CYAN)


def label(text: str) -> str:
    return style(text, BOLD, CYAN)


def dim(text: str) -> str:
    return style(text, DIM)


def warn(text: str) -> str:
    return style(text, YELLOW)


def severity(level: str) -> str:
    """Color an error severity label (Critical, High, Medium, Low)."""
    return style(level, *SEVERITY_STYLES.get(level, ()))


def step_marker(step_type: Optional[str], outcome: Optional[str]) -> str:
    """Single character shown in brackets before a step line."""
    if outcome == "failed":
        return error("x")
    marker = STEP_ICONS.get(step_type or "")
    if marker:
        return dim(marker)
    return success("+")


def outcome(value: str) -> str:
    """Upper-cased test outcome, colored by result."""
    if value == "passed":
        return success("PASSED")
    if value == "failed":
        return error("FAILED")
    return warn(value.upper())


def error_kind(error_type: Optional[str], level: Optional[str]) -> str:
    """``ElementNotFoundError (High)`` style tag for classified failures."""
    if not error_type:
        return ""
    if not level:
        return error_type
    return f"{error_type} ({severity(level)})"


def millis(value: Optional[float]) -> str:
    return dim(f" ({value:.0f}ms)") if value else ""


def writeln(text: str = ""):
    """Write line to stdout, bypassing any capture."""
    os.write(1, f"{text}\n".encode())


def log(text: str, flush: bool = True):
    print(text, flush=flush)
