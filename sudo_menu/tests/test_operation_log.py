from __future__ import annotations

from pathlib import Path

import pytest

from sudo_menu.operation_log import OperationLog


def test_lines_are_timestamped_and_appended(tmp_path: Path) -> None:
    path = tmp_path / "log" / "sudo-menu.log"
    path.parent.mkdir()
    path.write_text("[2024-01-01 00:00:00] previous run\n", encoding="utf-8")

    log = OperationLog(path, clock=lambda: "2024-12-05 10:00:00")
    try:
        assert log.log("Executing: pmpolicy log") == "[2024-12-05 10:00:00] Executing: pmpolicy log"
        log.error("Failed to commit policy")
        log.warning("Action cancelled by user")
        log.success("Policy committed successfully")
    finally:
        log.close()

    assert path.read_text(encoding="utf-8").splitlines() == [
        "[2024-01-01 00:00:00] previous run",
        "[2024-12-05 10:00:00] Executing: pmpolicy log",
        "[2024-12-05 10:00:00] ERROR: Failed to commit policy",
        "[2024-12-05 10:00:00] WARNING: Action cancelled by user",
        "[2024-12-05 10:00:00] SUCCESS: Policy committed successfully",
    ]


def test_unknown_severity_is_rejected(tmp_path: Path) -> None:
    log = OperationLog(tmp_path / "ops.log")
    try:
        with pytest.raises(ValueError):
            log.record("DEBUG", "nope")
    finally:
        log.close()


def test_unwritable_path_falls_back_to_logger(tmp_path: Path, caplog) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")

    with caplog.at_level("INFO", logger="sudo_menu.operation_log"):
        log = OperationLog(blocker / "ops.log")
        line = log.log("Script exited by user")

    assert not log.writable
    assert line.endswith("Script exited by user")
    assert "Script exited by user" in caplog.text
