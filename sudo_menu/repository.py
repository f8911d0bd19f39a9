"""Adapters for the policy repository (pmpolicy) and validator (pmcheck)."""

from __future__ import annotations

from pathlib import Path

from sudo_menu.tools import ToolResult, ToolRunner

REPOSITORY_TOOL = "pmpolicy"
VALIDATOR_TOOL = "pmcheck"


class PolicyRepository:
    """Thin wrapper over ``pmpolicy`` sub-commands."""

    def __init__(self, runner: ToolRunner) -> None:
        self._runner = runner

    def checkout(self, destination: Path) -> ToolResult:
        return self._runner.run(REPOSITORY_TOOL, "checkout", "-d", str(destination))

    def add(self, workspace: Path, policy_relpath: str, description: str) -> ToolResult:
        # -n registers the policy as a new entry; it is not active until commit.
        return self._runner.run(
            REPOSITORY_TOOL,
            "add",
            "-d",
            str(workspace),
            "-p",
            policy_relpath,
            "-l",
            description,
            "-n",
        )

    def commit(self, workspace: Path) -> ToolResult:
        return self._runner.run(REPOSITORY_TOOL, "commit", "-d", str(workspace))

    def log(self) -> ToolResult:
        return self._runner.run(REPOSITORY_TOOL, "log")

    def diff(self, rev_a: str, rev_b: str) -> ToolResult:
        return self._runner.run(REPOSITORY_TOOL, "diff", f"-r:{rev_a}:{rev_b}")

    def sync(self) -> ToolResult:
        return self._runner.run(REPOSITORY_TOOL, "sync")

    def masterstatus(self) -> ToolResult:
        return self._runner.run(REPOSITORY_TOOL, "masterstatus")


class PolicyValidator:
    """Syntax checks delegated to ``pmcheck``."""

    def __init__(self, runner: ToolRunner) -> None:
        self._runner = runner

    def check(self, file_path: Path, mode: str = "sudo", *, quiet: bool = False) -> ToolResult:
        return self._runner.run(VALIDATOR_TOOL, "-f", str(file_path), "-o", mode, quiet=quiet)


__all__ = ["PolicyRepository", "PolicyValidator", "REPOSITORY_TOOL", "VALIDATOR_TOOL"]
