from __future__ import annotations

import io
from pathlib import Path
from typing import List

import pytest

from conftest import read_calls, scripted, write_tool
from sudo_menu import menu_shell
from sudo_menu.config import MenuSettings
from sudo_menu.menu_shell import MENU_TITLES, MenuSession, MenuShell, check_prerequisites, main


class RecordingEditor:
    def __init__(self) -> None:
        self.opened: List[Path] = []

    def edit(self, path: Path) -> None:
        self.opened.append(path)


def _run(settings: MenuSettings, *answers: str, editor: RecordingEditor | None = None):
    output = io.StringIO()
    session = MenuSession(
        settings,
        input_func=scripted(answers),
        output=output,
        interactive=False,
        editor=editor or RecordingEditor(),
    )
    status = MenuShell(session).run()
    return status, output.getvalue()


def _prepare_workspace(settings: MenuSettings, **policies: str) -> Path:
    container = settings.workspace_root / "policy_sudo"
    container.mkdir(parents=True)
    (container / "sudoers").write_text("root ALL=(ALL) ALL\n", encoding="utf-8")
    for name, content in policies.items():
        (container / name).mkdir()
        (container / name / "sudoers").write_text(content, encoding="utf-8")
    return container


def _log(settings: MenuSettings) -> str:
    return settings.log_file.read_text(encoding="utf-8")


def test_every_menu_exposes_expected_options(settings: MenuSettings) -> None:
    session = MenuSession(settings, input_func=scripted([]), output=io.StringIO(), interactive=False)
    try:
        counts = {menu: len(session.registry.options(menu)) for menu in MENU_TITLES}
        main_keys = [entry.key for entry in session.registry.options("main")]
        policy_keys = [entry.key for entry in session.registry.options("policy")]
    finally:
        session.close()

    assert counts == {"git": 8, "policy": 13, "server": 11, "plugin": 6, "logs": 7, "diagnostics": 8}
    assert main_keys == ["v", "c", "a"]
    assert policy_keys == [str(index) for index in range(1, 14)]


def test_quit_logs_exit(settings: MenuSettings) -> None:
    status, output = _run(settings, "q")

    assert status == 0
    assert "Exiting Safeguard Administration Menu..." in output
    assert _log(settings).rstrip().endswith("Script exited by user")


def test_end_of_input_exits_cleanly(settings: MenuSettings) -> None:
    status, _ = _run(settings)
    assert status == 0
    assert "Script exited at end of input" in _log(settings)


def test_invalid_main_selection(settings: MenuSettings) -> None:
    _, output = _run(settings, "9", "q")
    assert "ERROR: Invalid selection" in output


def test_policy_lifecycle_through_menu(settings: MenuSettings, quest_bin: Path) -> None:
    root = settings.workspace_root
    status, output = _run(
        settings,
        "2",
        "1",
        "4", "webservers", "no",
        "6", "1", "web tier", "yes",
        "8", "yes",
        "0",
        "q",
    )

    assert status == 0
    assert "SUCCESS: Policy checked out successfully" in output
    assert "SUCCESS: Policy created: webservers" in output
    assert output.index("SUCCESS: Policy created: webservers") < output.index("WARNING: Action cancelled by user")
    assert "SUCCESS: Policy validation passed" in output
    assert output.index("SUCCESS: Policy validation passed") < output.index(
        "SUCCESS: Policy added to repository: webservers"
    )
    assert "SUCCESS: Policy added to repository: webservers" in output
    assert "Next step: Commit changes (option 8) to make the policy active." in output
    assert "SUCCESS: Policy committed successfully" in output
    pmpolicy_calls = [call for call in read_calls(quest_bin) if call.startswith("pmpolicy")]
    assert pmpolicy_calls == [
        f"pmpolicy checkout -d {root}",
        f"pmpolicy add -d {root} -p webservers/sudoers -l web tier -n",
        f"pmpolicy commit -d {root}",
    ]


def test_add_invalid_policy_is_refused(settings: MenuSettings, quest_bin: Path) -> None:
    _prepare_workspace(settings, webservers="INVALID\n")

    _, output = _run(settings, "2", "6", "1", "web tier", "0", "q")

    assert "ERROR: Policy validation failed. Cannot add invalid policy." in output
    assert "Please edit and fix syntax errors first (option 3)." in output
    assert not any(call.startswith("pmpolicy") for call in read_calls(quest_bin))
    assert "ERROR: Policy validation failed. Cannot add invalid policy." in _log(settings)


def test_unexecutable_tool_reports_failure_and_keeps_menu_running(settings: MenuSettings, quest_bin: Path) -> None:
    (quest_bin / "pmpolicy").chmod(0o644)

    status, output = _run(settings, "2", "1", "0", "q")

    assert status == 0
    assert "ERROR: Failed to checkout policy (exit code 126)" in output
    assert "Exiting Safeguard Administration Menu..." in output
    assert "Command failed with exit code: 126" in _log(settings)


def test_policy_actions_before_checkout(settings: MenuSettings, quest_bin: Path) -> None:
    _, output = _run(settings, "2", "3", "8", "13", "0", "q")

    assert "ERROR: Policy not checked out. Please use option 1 to checkout policy first." in output
    assert "ERROR: Policy not checked out. Nothing to commit." in output
    assert f"WARNING: Temporary directory does not exist: {settings.workspace_root}" in output
    assert read_calls(quest_bin) == []


def test_create_rejects_invalid_name(settings: MenuSettings) -> None:
    container = _prepare_workspace(settings)

    _, output = _run(settings, "2", "4", "bad name!", "0", "q")

    assert "ERROR: Invalid policy name. Use only letters, numbers, underscores, and hyphens." in output
    assert sorted(path.name for path in container.iterdir()) == ["sudoers"]


def test_list_and_edit_policies(settings: MenuSettings) -> None:
    container = _prepare_workspace(settings, webservers="", dbservers="")
    (container / ".git").mkdir()
    editor = RecordingEditor()

    _, output = _run(settings, "2", "5", "2", "3", "2", "0", "q", editor=editor)

    assert "  - dbservers" in output
    assert "  - webservers" in output
    assert ".git" not in output
    assert "Total policies: 3" in output
    assert editor.opened == [container / "sudoers", container / "webservers" / "sudoers"]


def test_validate_selected_policy(settings: MenuSettings, quest_bin: Path) -> None:
    container = _prepare_workspace(settings, webservers="INVALID\n")

    _, output = _run(settings, "2", "7", "2", "7", "1", "0", "q")

    assert "ERROR: Policy syntax validation failed. Please review and fix errors." in output
    assert "SUCCESS: Policy syntax is valid" in output
    checks = [call for call in read_calls(quest_bin) if call.startswith("pmcheck")]
    assert checks == [
        f"pmcheck -f {container / 'webservers' / 'sudoers'} -o sudo",
        f"pmcheck -f {container / 'sudoers'} -o sudo",
    ]


def test_compare_versions_can_be_cancelled(settings: MenuSettings, quest_bin: Path) -> None:
    _, output = _run(settings, "2", "10", "0", "10", "3", "5", "0", "q")

    assert "WARNING: Comparison cancelled" in output
    assert read_calls(quest_bin) == ["pmpolicy log", "pmpolicy log", "pmpolicy diff -r:3:5"]


def test_clean_workspace(settings: MenuSettings) -> None:
    _prepare_workspace(settings)

    _, output = _run(settings, "2", "13", "yes", "0", "q")

    assert f"SUCCESS: Temporary directory deleted: {settings.workspace_root}" in output
    assert not settings.workspace_root.exists()


def test_git_confirmation_gates_enable(settings: MenuSettings, quest_bin: Path) -> None:
    _, output = _run(settings, "1", "2", "no", "1", "0", "q")

    assert "WARNING: Action cancelled by user" in output
    assert read_calls(quest_bin) == ["pmgit status"]


def test_missing_optional_tool_is_reported(settings: MenuSettings) -> None:
    _, output = _run(settings, "4", "3", "0", "q")
    assert "ERROR: pmjoin_plugin command not found. This may be a plugin-only installation." in output


def test_join_plugin(settings: MenuSettings, quest_bin: Path) -> None:
    write_tool(quest_bin, "pmjoin_plugin")

    _, output = _run(settings, "4", "3", "policy01", "yes", "0", "q")

    assert "SUCCESS: Successfully joined to policy server" in output
    assert read_calls(quest_bin) == ["pmjoin_plugin -a policy01"]


def test_backup_from_server_menu(settings: MenuSettings) -> None:
    settings.quest_config.mkdir(parents=True)
    (settings.quest_config / "pm.settings").write_text("policyMode sudo\n", encoding="utf-8")

    _, output = _run(settings, "3", "10", "", "yes", "0", "q")

    assert "SUCCESS: Backup completed successfully" in output
    backups = list(settings.backup_dir.glob("safeguard_backup_*"))
    assert len(backups) == 1
    assert (backups[0] / "etc_qpm4u.tar.gz").is_file()


def test_authorization_verdict_from_diagnostics_menu(settings: MenuSettings, quest_bin: Path) -> None:
    write_tool(quest_bin, "pmcheck", "exit 11\n")

    _, output = _run(settings, "6", "4", "alice", "wheel", "web01", "ls -l", "0", "q")

    assert "WARNING: Command requires authentication (password prompt)" in output
    assert "pmcheck -u alice -g wheel -h web01 ls -l" in read_calls(quest_bin)


def test_log_search_rejects_bad_date(settings: MenuSettings, quest_bin: Path) -> None:
    write_tool(quest_bin, "pmlogsearch")

    _, output = _run(settings, "5", "3", "01-01-2024", "", "0", "q")

    assert "ERROR: Invalid date '01-01-2024'. Use YYYY/MM/DD." in output
    assert read_calls(quest_bin) == []


def test_version_screen(settings: MenuSettings) -> None:
    _, output = _run(settings, "v", "q")
    assert "Version: 2.0.0" in output
    assert "Date: 2024-12-05" in output


def test_prerequisites(settings: MenuSettings, quest_bin: Path) -> None:
    (quest_bin / "pmsrvinfo").unlink()
    output = io.StringIO()
    session = MenuSession(settings, input_func=scripted([]), output=output, interactive=False)
    try:
        assert check_prerequisites(session, require_root=False) == 0
    finally:
        session.close()
    assert "WARNING: Some Safeguard commands not found: pmsrvinfo" in output.getvalue()
    assert "This may be a plugin-only installation." in output.getvalue()

    missing = settings.with_overrides(quest_bin=settings.quest_bin.parent / "absent")
    session = MenuSession(missing, input_func=scripted([]), output=io.StringIO(), interactive=False)
    try:
        assert check_prerequisites(session, require_root=False) == 1
    finally:
        session.close()


def test_main_requires_root(monkeypatch, tmp_path: Path, capsys) -> None:
    monkeypatch.setattr(menu_shell.os, "geteuid", lambda: 1000)

    status = main(["--log-file", str(tmp_path / "ops.log"), "--quest-bin", str(tmp_path)])

    assert status == 1
    assert "This script must be run as root" in capsys.readouterr().out


def test_main_stops_without_installation(tmp_path: Path, capsys) -> None:
    status = main(
        [
            "--skip-root-check",
            "--log-file",
            str(tmp_path / "ops.log"),
            "--quest-bin",
            str(tmp_path / "missing"),
        ]
    )

    assert status == 1
    assert f"Safeguard for SUDO not found at {tmp_path / 'missing'}" in capsys.readouterr().out


@pytest.mark.parametrize("selection", ["c", "a"])
def test_information_screens(settings: MenuSettings, selection: str) -> None:
    status, output = _run(settings, selection, "q")
    assert status == 0
    assert "ERROR: Invalid selection" not in output
