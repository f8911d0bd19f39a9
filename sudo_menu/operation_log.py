"""Append-only operation log shared by every menu action."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, TextIO

LOGGER = logging.getLogger("sudo_menu.operation_log")

SEVERITIES = ("ERROR", "WARNING", "SUCCESS")


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class OperationLog:
    """Write ``[YYYY-MM-DD HH:MM:SS] message`` lines to a fixed path.

    The log is a pure side channel: it is never read back by the menu. When
    the file cannot be opened the entries are forwarded to the process logger
    instead so an unwritable ``/var/log`` never blocks administration work.
    """

    def __init__(self, path: Path, *, clock: Callable[[], str] = _timestamp) -> None:
        self._path = path
        self._clock = clock
        self._lock = threading.RLock()
        self._file: Optional[TextIO] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._file = self._path.open("a", encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("Operation log unavailable at %s: %s", self._path, exc)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def writable(self) -> bool:
        return self._file is not None

    def log(self, message: str) -> str:
        line = f"[{self._clock()}] {message}"
        with self._lock:
            if self._file is None:
                LOGGER.info("%s", message)
                return line
            self._file.write(line + "\n")
            self._file.flush()
        return line

    def record(self, severity: str, message: str) -> str:
        tag = severity.upper()
        if tag not in SEVERITIES:
            raise ValueError(f"Unknown severity: {severity}")
        return self.log(f"{tag}: {message}")

    def error(self, message: str) -> str:
        return self.record("ERROR", message)

    def warning(self, message: str) -> str:
        return self.record("WARNING", message)

    def success(self, message: str) -> str:
        return self.record("SUCCESS", message)

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None


__all__ = ["OperationLog", "SEVERITIES"]
