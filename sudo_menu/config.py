"""Runtime settings for the Safeguard administration menu."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional

SCRIPT_NAME = "Safeguard for SUDO Administration Menu"
SCRIPT_DATE = "2024-12-05"
PRODUCT_NAME = "Safeguard for SUDO 7.4"
DEFAULT_VERSION = "2.0.0"

PACKAGE_DIR = Path(__file__).resolve().parent
VERSION_FILE = PACKAGE_DIR / "VERSION"
CHANGELOG_FILE = PACKAGE_DIR / "CHANGELOG.md"

DEFAULT_POLICY_NAME = "sudoers"
POLICY_CONTAINER = "policy_sudo"
CANCEL_SENTINEL = "0"


def _env_path(env: Mapping[str, str], name: str, default: str) -> Path:
    return Path(env.get(name, default)).expanduser()


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def default_editor(env: Optional[Mapping[str, str]] = None) -> str:
    """Return the editor command: ``$VISUAL``, ``$EDITOR``, vim, then vi."""

    source = os.environ if env is None else env
    for name in ("VISUAL", "EDITOR"):
        value = source.get(name, "").strip()
        if value:
            return value
    return "vim" if shutil.which("vim") else "vi"


def read_version(path: Path = VERSION_FILE) -> str:
    try:
        value = path.read_text(encoding="utf-8").strip()
    except OSError:
        return DEFAULT_VERSION
    return value or DEFAULT_VERSION


@dataclass(frozen=True)
class MenuSettings:
    quest_bin: Path = Path("/opt/quest/sbin")
    quest_config: Path = Path("/etc/opt/quest/qpm4u")
    quest_var: Path = Path("/var/opt/quest/qpm4u")
    license_dir: Path = Path("/opt/quest/qpm4u")
    workspace_root: Path = Path("/tmp/policydir")
    log_file: Path = Path("/var/log/sudo-menu.log")
    daemon_log_dir: Path = Path("/var/log")
    backup_dir: Path = Path("/var/backups/safeguard")
    editor: str = "vi"
    settle_seconds: float = 2.0
    version: str = field(default_factory=read_version)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "MenuSettings":
        source = os.environ if env is None else env
        return cls(
            quest_bin=_env_path(source, "SGMENU_QUEST_BIN", "/opt/quest/sbin"),
            quest_config=_env_path(source, "SGMENU_QUEST_CONFIG", "/etc/opt/quest/qpm4u"),
            quest_var=_env_path(source, "SGMENU_QUEST_VAR", "/var/opt/quest/qpm4u"),
            license_dir=_env_path(source, "SGMENU_LICENSE_DIR", "/opt/quest/qpm4u"),
            workspace_root=_env_path(source, "SGMENU_WORKSPACE", "/tmp/policydir"),
            log_file=_env_path(source, "SGMENU_LOG_FILE", "/var/log/sudo-menu.log"),
            daemon_log_dir=_env_path(source, "SGMENU_DAEMON_LOG_DIR", "/var/log"),
            backup_dir=_env_path(source, "SGMENU_BACKUP_DIR", "/var/backups/safeguard"),
            editor=default_editor(source),
            settle_seconds=_env_float(source, "SGMENU_SETTLE_SECONDS", 2.0),
        )

    def with_overrides(self, **changes: object) -> "MenuSettings":
        """Return a copy with the non-``None`` *changes* applied."""

        applied = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **applied) if applied else self

    # ------------------------------------------------------------------
    @property
    def policy_dir(self) -> Path:
        return self.quest_config / "policy"

    @property
    def settings_file(self) -> Path:
        return self.quest_config / "pm.settings"

    @property
    def iolog_dir(self) -> Path:
        return self.quest_var / "iolog"

    @property
    def events_db(self) -> Path:
        return self.quest_var / "pmevents.db"

    def tool_path(self, name: str) -> Path:
        return self.quest_bin / name


__all__ = [
    "CANCEL_SENTINEL",
    "CHANGELOG_FILE",
    "DEFAULT_POLICY_NAME",
    "MenuSettings",
    "POLICY_CONTAINER",
    "PRODUCT_NAME",
    "SCRIPT_DATE",
    "SCRIPT_NAME",
    "default_editor",
    "read_version",
]
