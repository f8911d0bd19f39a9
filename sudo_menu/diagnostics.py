"""Troubleshooting helpers: authorization tests, debug toggles, daemon logs."""

from __future__ import annotations

import shlex
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from sudo_menu.config import MenuSettings
from sudo_menu.repository import VALIDATOR_TOOL
from sudo_menu.tools import ToolResult, ToolRunner

DAEMON_LOGS: Tuple[Tuple[str, str], ...] = (
    ("pmmasterd.log", "Policy server daemon"),
    ("pmserviced.log", "Service daemon"),
    ("pmlocald.log", "Local daemon"),
    ("pmrun.log", "Client log"),
)

# pmcheck exit statuses for a simulated command.
VERDICTS: Dict[int, Tuple[str, str]] = {
    0: ("success", "Command would be ACCEPTED"),
    11: ("warning", "Command requires authentication (password prompt)"),
    12: ("error", "Command would be REJECTED"),
    13: ("error", "Syntax error encountered"),
}


class DiagnosticsError(RuntimeError):
    """Raised when a diagnostic cannot run."""


@dataclass
class AuthorizationVerdict:
    returncode: int
    severity: str
    message: str


def authorization_verdict(returncode: int) -> AuthorizationVerdict:
    severity, message = VERDICTS.get(returncode, ("error", f"Unknown exit code: {returncode}"))
    return AuthorizationVerdict(returncode, severity, message)


def tail(path: Path, lines: int) -> List[str]:
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        return [line.rstrip("\n") for line in deque(handle, maxlen=lines)]


class Diagnostics:
    def __init__(self, settings: MenuSettings, runner: ToolRunner) -> None:
        self._settings = settings
        self._runner = runner

    def resolve_host(self, hostname: Optional[str] = None) -> ToolResult:
        self._runner.require("pmresolvehost", plugin_hint=False)
        args = [hostname] if hostname else []
        return self._runner.run("pmresolvehost", *args)

    def check_policy_file(self, policy_file: Optional[Path] = None) -> ToolResult:
        self._runner.require(VALIDATOR_TOOL, plugin_hint=False)
        target = policy_file or self._settings.policy_dir / "sudoers"
        if not target.is_file():
            raise DiagnosticsError(f"Policy file not found: {target}")
        return self._runner.run(VALIDATOR_TOOL, "-f", str(target), "-o", "sudo")

    def test_authorization(
        self,
        username: str,
        group: str,
        hostname: str,
        command: str,
    ) -> Tuple[ToolResult, AuthorizationVerdict]:
        self._runner.require(VALIDATOR_TOOL, plugin_hint=False)
        try:
            command_args = shlex.split(command)
        except ValueError as exc:
            raise DiagnosticsError(f"Could not parse command: {exc}") from exc
        if not command_args:
            raise DiagnosticsError("Command to test cannot be empty")
        result = self._runner.run(
            VALIDATOR_TOOL, "-u", username, "-g", group, "-h", hostname, *command_args
        )
        return result, authorization_verdict(result.returncode)

    def set_debug(self, enabled: bool) -> ToolResult:
        self._runner.require(VALIDATOR_TOOL, plugin_hint=False)
        return self._runner.run(VALIDATOR_TOOL, "-z", "on" if enabled else "off")

    def check_audit_server(self) -> ToolResult:
        self._runner.require("pmauditsrv")
        return self._runner.run("pmauditsrv", "check")

    def daemon_log(self, name: str, lines: int = 50) -> List[str]:
        path = self._settings.daemon_log_dir / name
        if not path.is_file():
            raise DiagnosticsError(f"Log file not found: {path}")
        return tail(path, lines)

    def all_daemon_logs(self, lines: int = 20) -> Dict[str, List[str]]:
        found: Dict[str, List[str]] = {}
        for name, _ in DAEMON_LOGS:
            path = self._settings.daemon_log_dir / name
            if path.is_file():
                found[name] = tail(path, lines)
        return found


__all__ = [
    "AuthorizationVerdict",
    "DAEMON_LOGS",
    "Diagnostics",
    "DiagnosticsError",
    "authorization_verdict",
    "tail",
]
