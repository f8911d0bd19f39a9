from __future__ import annotations

from pathlib import Path

import pytest

from conftest import PMCHECK_BODY, read_calls, write_tool
from sudo_menu.config import MenuSettings
from sudo_menu.diagnostics import Diagnostics, DiagnosticsError, authorization_verdict
from sudo_menu.tools import ToolRunner


@pytest.mark.parametrize(
    "returncode, severity, message",
    [
        (0, "success", "Command would be ACCEPTED"),
        (11, "warning", "Command requires authentication (password prompt)"),
        (12, "error", "Command would be REJECTED"),
        (13, "error", "Syntax error encountered"),
        (5, "error", "Unknown exit code: 5"),
    ],
)
def test_authorization_verdict(returncode: int, severity: str, message: str) -> None:
    verdict = authorization_verdict(returncode)
    assert (verdict.severity, verdict.message) == (severity, message)


def test_authorization_passes_command_tokens(settings: MenuSettings, runner: ToolRunner, quest_bin: Path) -> None:
    write_tool(quest_bin, "pmcheck", "exit 12\n")

    result, verdict = Diagnostics(settings, runner).test_authorization(
        "alice", "wheel", "web01", "/usr/bin/systemctl restart 'httpd'"
    )

    assert result.returncode == 12
    assert verdict.message == "Command would be REJECTED"
    assert read_calls(quest_bin) == ["pmcheck -u alice -g wheel -h web01 /usr/bin/systemctl restart httpd"]


def test_authorization_rejects_empty_command(settings: MenuSettings, runner: ToolRunner) -> None:
    with pytest.raises(DiagnosticsError):
        Diagnostics(settings, runner).test_authorization("alice", "wheel", "web01", "   ")


def test_check_policy_file_defaults_to_production_policy(settings: MenuSettings, runner: ToolRunner, quest_bin: Path) -> None:
    diagnostics = Diagnostics(settings, runner)
    with pytest.raises(DiagnosticsError, match="Policy file not found"):
        diagnostics.check_policy_file()

    policy = settings.policy_dir / "sudoers"
    policy.parent.mkdir(parents=True)
    policy.write_text("INVALID\n", encoding="utf-8")
    write_tool(quest_bin, "pmcheck", PMCHECK_BODY)

    assert not diagnostics.check_policy_file().ok
    assert read_calls(quest_bin) == [f"pmcheck -f {policy} -o sudo"]


def test_set_debug(settings: MenuSettings, runner: ToolRunner, quest_bin: Path) -> None:
    diagnostics = Diagnostics(settings, runner)
    diagnostics.set_debug(True)
    diagnostics.set_debug(False)
    assert read_calls(quest_bin) == ["pmcheck -z on", "pmcheck -z off"]


def test_daemon_logs_tail(settings: MenuSettings, runner: ToolRunner) -> None:
    settings.daemon_log_dir.mkdir(parents=True, exist_ok=True)
    (settings.daemon_log_dir / "pmmasterd.log").write_text(
        "".join(f"line {index}\n" for index in range(100)), encoding="utf-8"
    )
    diagnostics = Diagnostics(settings, runner)

    lines = diagnostics.daemon_log("pmmasterd.log")
    assert len(lines) == 50
    assert lines[-1] == "line 99"

    everything = diagnostics.all_daemon_logs()
    assert list(everything) == ["pmmasterd.log"]
    assert everything["pmmasterd.log"][0] == "line 80"

    with pytest.raises(DiagnosticsError):
        diagnostics.daemon_log("pmlocald.log")
