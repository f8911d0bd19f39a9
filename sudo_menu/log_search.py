"""Event log queries, keystroke log listing and log statistics."""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from sudo_menu.config import MenuSettings
from sudo_menu.server_admin import directory_size, human_size
from sudo_menu.tools import ToolResult, ToolRunner

DEFAULT_EVENT_COUNT = 50
STATISTICS_EVENT_COUNT = 10
IOLOG_LISTING_LIMIT = 20

_DATE_PATTERN = re.compile(r"^\d{4}/\d{2}/\d{2}$")


class LogSearchError(RuntimeError):
    """Raised when a log query is rejected before reaching the tools."""


def parse_event_count(raw: str) -> int:
    if not raw:
        return DEFAULT_EVENT_COUNT
    if not raw.isdigit() or int(raw) < 1:
        raise LogSearchError("Number of entries must be a positive integer")
    return int(raw)


def validate_date(raw: str) -> str:
    if not _DATE_PATTERN.match(raw):
        raise LogSearchError(f"Invalid date '{raw}'. Use YYYY/MM/DD.")
    return raw


def user_search_args(username: str, after: Optional[str] = None) -> List[str]:
    if not username or username.startswith("-"):
        raise LogSearchError(f"Invalid username: {username!r}")
    args = ["--user", username]
    if after:
        args += ["--after", f"{validate_date(after)} 00:00:00"]
    return args


def date_search_args(after: str, before: Optional[str] = None) -> List[str]:
    args = ["--after", f"{validate_date(after)} 00:00:00"]
    if before:
        args += ["--before", f"{validate_date(before)} 23:59:59"]
    return args


def custom_search_args(raw: str) -> List[str]:
    try:
        args = shlex.split(raw)
    except ValueError as exc:
        raise LogSearchError(f"Could not parse search parameters: {exc}") from exc
    if not args:
        raise LogSearchError("Search parameters cannot be empty")
    return args


@dataclass
class LogStatistics:
    events_db: Path
    events_db_size: Optional[int]
    iolog_dir: Path
    iolog_count: Optional[int]
    iolog_size: Optional[int]

    def lines(self) -> List[str]:
        output: List[str] = []
        if self.events_db_size is not None:
            output.append(f"Event Log Database: {self.events_db}")
            output.append(f"Database Size: {human_size(self.events_db_size)}")
        output.append("")
        if self.iolog_count is not None and self.iolog_size is not None:
            output.append(f"I/O Log Directory: {self.iolog_dir}")
            output.append(f"Number of I/O Logs: {self.iolog_count}")
            output.append(f"Total I/O Log Size: {human_size(self.iolog_size)}")
        return output


class LogSearch:
    def __init__(self, settings: MenuSettings, runner: ToolRunner) -> None:
        self._settings = settings
        self._runner = runner

    def recent_events(self, count: int = DEFAULT_EVENT_COUNT, *, quiet: bool = False) -> ToolResult:
        self._runner.require("pmlog")
        return self._runner.run("pmlog", "-n", str(count), quiet=quiet)

    def search(self, args: List[str]) -> ToolResult:
        self._runner.require("pmlogsearch")
        return self._runner.run("pmlogsearch", *args)

    def list_iologs(self) -> ToolResult:
        self._runner.require("pmlog")
        return self._runner.run("pmlog", "-i")

    def iolog_files(self, limit: Optional[int] = IOLOG_LISTING_LIMIT) -> List[Path]:
        directory = self._settings.iolog_dir
        if not directory.is_dir():
            raise LogSearchError(f"I/O log directory not found: {directory}")
        files = sorted(path for path in directory.rglob("log") if path.is_file())
        return files if limit is None else files[:limit]

    def replay(self, log_path: Path) -> ToolResult:
        self._runner.require("pmreplay")
        if not log_path.is_file():
            raise LogSearchError(f"Log file not found: {log_path}")
        return self._runner.run("pmreplay", str(log_path), interactive=True)

    def statistics(self) -> LogStatistics:
        self._runner.require("pmlog")
        settings = self._settings
        db_size = settings.events_db.stat().st_size if settings.events_db.is_file() else None
        count: Optional[int] = None
        size: Optional[int] = None
        if settings.iolog_dir.is_dir():
            count = len(self.iolog_files(limit=None))
            size = directory_size(settings.iolog_dir)
        return LogStatistics(
            events_db=settings.events_db,
            events_db_size=db_size,
            iolog_dir=settings.iolog_dir,
            iolog_count=count,
            iolog_size=size,
        )


__all__ = [
    "DEFAULT_EVENT_COUNT",
    "LogSearch",
    "LogSearchError",
    "LogStatistics",
    "custom_search_args",
    "date_search_args",
    "parse_event_count",
    "user_search_args",
    "validate_date",
]
