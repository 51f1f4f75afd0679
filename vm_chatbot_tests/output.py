"""Output writers for test events and JSON reports."""

import json
from pathlib import Path
from typing import TextIO, Optional
from datetime import datetime

from vm_chatbot_tests.plugin import TestEvent


class JSONLWriter:
    """Writes test events to JSONL format in real-time."""

    def __init__(self, output_path: Path):
        self.output_path = output_path
        self._file: Optional[TextIO] = None

    def __enter__(self):
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.output_path, 'w', encoding='utf-8')
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._file:
            self._file.close()

    def write_event(self, event: TestEvent):
        """Write a single event as a JSON line."""
        if self._file:
            json_line = json.dumps(event.to_dict(), ensure_ascii=False)
            self._file.write(json_line + '\n')
            self._file.flush()


def append_json_line(data: dict, output_path: Path):
    """Append one JSON object as a line to a log file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'a', encoding='utf-8') as f:
        f.write(json.dumps(data, ensure_ascii=False, default=str) + '\n')


def write_json(data: dict, output_path: Path) -> Path:
    """Write data to a pretty-printed JSON file, creating parent directories."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    return output_path


def generate_output_filename(prefix: str = "test_run", extension: str = "jsonl") -> str:
    """Generate timestamped output filename.

    Args:
        prefix: Filename prefix (default: 'test_run')
        extension: File extension without the dot

    Returns:
        Filename with Unix timestamp, e.g., 'test_run_1706367000.jsonl'
    """
    timestamp = int(datetime.now().timestamp())
    return f"{prefix}_{timestamp}.{extension}"
