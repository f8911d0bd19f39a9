from __future__ import annotations

import io
from pathlib import Path
from typing import Callable, Iterable, List

import pytest

from sudo_menu.config import MenuSettings
from sudo_menu.operation_log import OperationLog
from sudo_menu.tools import ToolRunner

CALLS_FILE = "calls.log"

PMPOLICY_BODY = """\
if [ "$1" = "checkout" ]; then
    mkdir -p "$3/policy_sudo"
    echo "root ALL=(ALL) ALL" > "$3/policy_sudo/sudoers"
fi
exit 0
"""

# Fails when the file handed to -f contains the word INVALID.
PMCHECK_BODY = """\
file=""
while [ $# -gt 0 ]; do
    if [ "$1" = "-f" ]; then
        file="$2"
    fi
    shift
done
if [ -n "$file" ] && grep -q INVALID "$file"; then
    echo "syntax error in $file" >&2
    exit 1
fi
exit 0
"""


def write_tool(bin_dir: Path, name: str, body: str = "exit 0\n") -> Path:
    path = bin_dir / name
    path.write_text(
        "#!/bin/sh\n"
        "if [ $# -gt 0 ]; then\n"
        f'    echo "{name} $*" >> "{bin_dir / CALLS_FILE}"\n'
        "else\n"
        f'    echo "{name}" >> "{bin_dir / CALLS_FILE}"\n'
        "fi\n"
        f"{body}",
        encoding="utf-8",
    )
    path.chmod(0o755)
    return path


def read_calls(bin_dir: Path) -> List[str]:
    calls = bin_dir / CALLS_FILE
    if not calls.exists():
        return []
    return calls.read_text(encoding="utf-8").splitlines()


def scripted(answers: Iterable[str]) -> Callable[[str], str]:
    queue = list(answers)

    def _input(prompt: str) -> str:
        if not queue:
            raise EOFError(prompt)
        return queue.pop(0)

    return _input


@pytest.fixture
def quest_bin(tmp_path: Path) -> Path:
    bin_dir = tmp_path / "opt" / "quest" / "sbin"
    bin_dir.mkdir(parents=True)
    write_tool(bin_dir, "pmpolicy", PMPOLICY_BODY)
    write_tool(bin_dir, "pmcheck", PMCHECK_BODY)
    for name in ("pmsrvinfo", "pmlicense", "pmserviced", "pmcheckperms", "pmsrvcheck", "pmlog", "pmgit"):
        write_tool(bin_dir, name)
    return bin_dir


@pytest.fixture
def settings(tmp_path: Path, quest_bin: Path) -> MenuSettings:
    return MenuSettings(
        quest_bin=quest_bin,
        quest_config=tmp_path / "etc" / "opt" / "quest" / "qpm4u",
        quest_var=tmp_path / "var" / "opt" / "quest" / "qpm4u",
        license_dir=tmp_path / "opt" / "quest" / "qpm4u",
        workspace_root=tmp_path / "policydir",
        log_file=tmp_path / "log" / "sudo-menu.log",
        daemon_log_dir=tmp_path / "log",
        backup_dir=tmp_path / "backups",
        editor="true",
        settle_seconds=0,
        version="2.0.0",
    )


@pytest.fixture
def operation_log(settings: MenuSettings):
    log = OperationLog(settings.log_file)
    yield log
    log.close()


@pytest.fixture
def runner(settings: MenuSettings, operation_log: OperationLog) -> ToolRunner:
    return ToolRunner(settings, operation_log, stdout=io.StringIO(), stderr=io.StringIO())
