"""Shared test fixtures for pollwatch tests."""

import io
import json
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console
from structlog.typing import FilteringBoundLogger

from pollwatch.utils import create_logger

# A fixed point in time: 2023-11-14T22:13:20.123456+00:00
BASE_MTIME_NS = 1_700_000_000_123_456_000


@dataclass(slots=True)
class LogCapture:
    """JSON log lines written by a logger created for a test."""

    stream: io.StringIO = field(default_factory=io.StringIO)

    @property
    def entries(self) -> list[dict[str, Any]]:  # pyright: ignore[reportExplicitAny]
        # Only complete lines; a logger in another thread may be mid-write
        text = self.stream.getvalue()
        lines = text[: text.rfind("\n") + 1].splitlines()
        return [json.loads(line) for line in lines if line.strip()]

    def events(self, event: str | None = None) -> list[dict[str, Any]]:  # pyright: ignore[reportExplicitAny]
        """Return entries, optionally only those with the given event name."""
        if event is None:
            return self.entries
        return [entry for entry in self.entries if entry["event"] == event]

    def names(self) -> list[str]:
        return [entry["event"] for entry in self.entries]


@pytest.fixture(autouse=True)
def _clean_log_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("POLLWATCH_DEBUG", raising=False)
    monkeypatch.delenv("POLLWATCH_LOG_LEVEL", raising=False)


@pytest.fixture
def log_capture() -> LogCapture:
    return LogCapture()


@pytest.fixture
def logger(log_capture: LogCapture) -> FilteringBoundLogger:
    """A debug-level JSON logger writing into ``log_capture``."""
    return create_logger(level="debug", log_format="json", stream=log_capture.stream)


def _set_mtime(path: Path, mtime_ns: int) -> None:
    os.utime(path, ns=(mtime_ns, mtime_ns))


@pytest.fixture
def set_mtime() -> Callable[[Path, int], None]:
    """Return a function setting both access and modification time of a path."""
    return _set_mtime


@pytest.fixture
def base_mtime() -> int:
    return BASE_MTIME_NS


@pytest.fixture
def write_file() -> Callable[..., Path]:
    """Return a function creating a file with a fixed modification time."""

    def _write(path: Path, content: str = "", mtime_ns: int = BASE_MTIME_NS) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        _ = path.write_text(content)
        _set_mtime(path, mtime_ns)
        return path

    return _write


@pytest.fixture
def console() -> Console:
    return Console(
        width=70,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )
