"""Invoke Safeguard binaries with structured argument vectors."""

from __future__ import annotations

import io
import logging
import os
import shlex
import signal
import subprocess
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Tuple

from sudo_menu.config import MenuSettings
from sudo_menu.operation_log import OperationLog

LOGGER = logging.getLogger("sudo_menu.tools")

# Exit statuses used when the executable itself cannot be started.
TOOL_NOT_EXECUTABLE = 126
TOOL_NOT_FOUND = 127

PLUGIN_ONLY_HINT = "This may be a plugin-only installation."


class ToolUnavailableError(RuntimeError):
    """Raised when an optional Safeguard binary is not installed."""

    def __init__(self, name: str, *, plugin_hint: bool = True) -> None:
        message = f"{name} command not found."
        if plugin_hint:
            message = f"{message} {PLUGIN_ONLY_HINT}"
        super().__init__(message)
        self.name = name


@dataclass
class ToolResult:
    argv: List[str]
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    streamed: bool = False
    interrupted: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)


def _normalize_process_output(value: str) -> str:
    if not value:
        return ""
    return value if value.endswith("\n") else value + "\n"


def _launch_failure(argv: List[str], exc: OSError) -> Tuple[int, str]:
    if isinstance(exc, FileNotFoundError):
        return TOOL_NOT_FOUND, f"{argv[0]}: command not found\n"
    return TOOL_NOT_EXECUTABLE, f"{argv[0]}: {exc.strerror or exc}\n"


def _pump_stream(
    pipe: Optional[TextIO],
    buffer: io.StringIO,
    mirror: Optional[TextIO],
) -> None:
    if pipe is None:
        return
    try:
        while True:
            chunk = pipe.read(1)
            if not chunk:
                break
            buffer.write(chunk)
            if mirror is not None:
                mirror.write(chunk)
                mirror.flush()
    finally:
        try:
            pipe.close()
        except OSError:  # pragma: no cover - pipe already torn down
            pass


class ToolRunner:
    """Run product commands, mirror their output and log every attempt."""

    def __init__(
        self,
        settings: MenuSettings,
        log: OperationLog,
        *,
        stream: bool = True,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        self.settings = settings
        self._log = log
        self.stream = stream
        self._stdout = stdout
        self._stderr = stderr

    # ------------------------------------------------------------------
    def tool_path(self, name: str) -> Path:
        return self.settings.tool_path(name)

    def available(self, name: str) -> bool:
        path = self.tool_path(name)
        return path.is_file() and os.access(path, os.X_OK)

    def missing(self, names: Sequence[str]) -> List[str]:
        return [name for name in names if not self.available(name)]

    def require(self, name: str, *, plugin_hint: bool = True) -> None:
        if not self.available(name):
            raise ToolUnavailableError(name, plugin_hint=plugin_hint)

    # ------------------------------------------------------------------
    def run(
        self,
        name: str,
        *args: str,
        quiet: bool = False,
        interactive: bool = False,
    ) -> ToolResult:
        """Run ``<quest_bin>/<name> args...``."""

        argv = [str(self.tool_path(name)), *[str(arg) for arg in args]]
        return self.run_argv(argv, quiet=quiet, interactive=interactive)

    def run_argv(
        self,
        argv: Sequence[str],
        *,
        quiet: bool = False,
        interactive: bool = False,
    ) -> ToolResult:
        argv = [str(arg) for arg in argv]
        self._log.log(f"Executing: {shlex.join(argv)}")
        if interactive:
            result = self._run_attached(argv)
        else:
            result = self._run_captured(argv, mirror=self.stream and not quiet)
        if result.ok:
            self._log.log("Command completed successfully")
        else:
            self._log.log(f"Command failed with exit code: {result.returncode}")
        return result

    # ------------------------------------------------------------------
    def _run_attached(self, argv: List[str]) -> ToolResult:
        """Run with the terminal attached (pagers, replay, editors)."""

        try:
            completed = subprocess.run(argv, check=False)
        except OSError as exc:
            returncode, message = _launch_failure(argv, exc)
            return ToolResult(argv=argv, returncode=returncode, stderr=message)
        except KeyboardInterrupt:
            return ToolResult(argv=argv, returncode=130, interrupted=True)
        return ToolResult(argv=argv, returncode=completed.returncode, streamed=True)

    def _run_captured(self, argv: List[str], *, mirror: bool) -> ToolResult:
        stdout_buffer = io.StringIO()
        stderr_buffer = io.StringIO()
        stdout_mirror = (self._stdout or sys.stdout) if mirror else None
        stderr_mirror = (self._stderr or sys.stderr) if mirror else None

        try:
            process = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
            )
        except OSError as exc:
            returncode, message = _launch_failure(argv, exc)
            if stderr_mirror is not None:
                stderr_mirror.write(message)
            return ToolResult(argv=argv, returncode=returncode, stderr=message)

        threads: List[threading.Thread] = []
        for pipe, buffer, target in (
            (process.stdout, stdout_buffer, stdout_mirror),
            (process.stderr, stderr_buffer, stderr_mirror),
        ):
            thread = threading.Thread(target=_pump_stream, args=(pipe, buffer, target), daemon=True)
            thread.start()
            threads.append(thread)

        returncode: Optional[int] = None
        interrupted = False
        try:
            returncode = process.wait()
        except KeyboardInterrupt:
            interrupted = True
            LOGGER.debug("Forwarding interrupt to %s", argv[0])
            try:
                process.send_signal(signal.SIGINT)
            except OSError:  # pragma: no cover - child already gone
                pass
            try:
                returncode = process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                process.terminate()
                try:
                    returncode = process.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    process.kill()
                    returncode = process.wait()
        finally:
            for thread in threads:
                thread.join()

        status = int(returncode if returncode is not None else process.returncode or 0)
        return ToolResult(
            argv=argv,
            returncode=status,
            stdout=_normalize_process_output(stdout_buffer.getvalue()),
            stderr=_normalize_process_output(stderr_buffer.getvalue()),
            streamed=mirror,
            interrupted=interrupted,
        )


__all__ = [
    "PLUGIN_ONLY_HINT",
    "TOOL_NOT_EXECUTABLE",
    "TOOL_NOT_FOUND",
    "ToolResult",
    "ToolRunner",
    "ToolUnavailableError",
]
