"""Server-side administration: licenses, permissions, settings and backups."""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
import socket
import tarfile
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from sudo_menu.config import MenuSettings
from sudo_menu.tools import ToolResult, ToolRunner

LOGGER = logging.getLogger("sudo_menu.server_admin")

VAR_ARCHIVE = "var_qpm4u.tar.gz"
ETC_ARCHIVE = "etc_qpm4u.tar.gz"
LICENSE_DIR = "licenses"
INFO_FILE = "BACKUP_INFO.txt"
MANIFEST_FILE = "backup.json"
LICENSE_PATTERNS = (".license*", "license*")


class ServerAdminError(RuntimeError):
    """Raised when a server administration step cannot proceed."""


class SettingsFileMissing(ServerAdminError):
    """Raised when ``pm.settings`` is absent."""


class LicenseFileMissing(ServerAdminError):
    """Raised when the license file to install does not exist."""


class BackupNotFound(ServerAdminError):
    """Raised when a backup directory does not exist."""


class BackupIncomplete(ServerAdminError):
    """Raised when a backup directory lacks one of its archives."""


class BackupIntegrityError(ServerAdminError):
    """Raised when an archive does not match the recorded digest."""


def _hash_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def human_size(num_bytes: int) -> str:
    """Format *num_bytes* the way ``du -h`` does (``4.0K``, ``12M``)."""

    value = float(num_bytes)
    for unit in ("", "K", "M", "G", "T"):
        if value < 1024 or unit == "T":
            if unit == "":
                return f"{int(value)}"
            return f"{value:.1f}{unit}" if value < 10 else f"{value:.0f}{unit}"
        value /= 1024
    return f"{value:.0f}T"  # pragma: no cover - loop always returns


def directory_size(path: Path) -> int:
    if path.is_file():
        return path.stat().st_size
    total = 0
    for child in path.rglob("*"):
        if child.is_file():
            total += child.stat().st_size
    return total


def _safe_extract(archive: Path, destination: Path) -> None:
    target = destination.resolve()
    with tarfile.open(archive, "r:gz") as bundle:
        members = bundle.getmembers()
        for member in members:
            resolved = (target / member.name).resolve()
            if resolved != target and target not in resolved.parents:
                raise BackupIntegrityError(f"Archive member escapes {target}: {member.name}")
            if member.issym() or member.islnk():
                link = (resolved.parent / member.linkname).resolve()
                if link != target and target not in link.parents:
                    raise BackupIntegrityError(f"Archive link escapes {target}: {member.name}")
        if hasattr(tarfile, "tar_filter"):
            bundle.extractall(target, members=members, filter="tar")
        else:  # pragma: no cover - interpreters without extraction filters
            bundle.extractall(target, members=members)


@dataclass
class BackupSummary:
    backup_dir: Path
    digest: str
    files: Sequence[Path]
    size_bytes: int

    @property
    def size(self) -> str:
        return human_size(self.size_bytes)

    @property
    def info_file(self) -> Path:
        return self.backup_dir / INFO_FILE


@dataclass
class BackupInfo:
    backup_dir: Path
    info_text: Optional[str]
    manifest: Optional[Dict[str, object]]


@dataclass
class RestoreSummary:
    backup_dir: Path
    steps: List[ToolResult]
    licenses_restored: int
    verified: bool


class ServerAdmin:
    """Wrap the server tools and the configuration backup/restore workflow."""

    def __init__(
        self,
        settings: MenuSettings,
        runner: ToolRunner,
        *,
        sleep: Callable[[float], None] = time.sleep,
        hostname: Callable[[], str] = socket.gethostname,
    ) -> None:
        self._settings = settings
        self._runner = runner
        self._sleep = sleep
        self._hostname = hostname

    # -------------------- simple pass-throughs --------------------
    def server_status(self) -> ToolResult:
        self._runner.require("pmsrvcheck")
        return self._runner.run("pmsrvcheck")

    def install_license(self, license_file: Path) -> ToolResult:
        if not license_file.is_file():
            raise LicenseFileMissing(f"License file not found: {license_file}")
        return self._runner.run("pmlicense", "-l", str(license_file))

    def fix_permissions(self, *, quiet: bool = False) -> ToolResult:
        return self._runner.run("pmcheckperms", "-f", quiet=quiet)

    def service(self, action: str, *, quiet: bool = False) -> ToolResult:
        return self._runner.run("pmserviced", action, quiet=quiet)

    # -------------------- pm.settings ------------------------------
    def require_settings_file(self) -> Path:
        path = self._settings.settings_file
        if not path.is_file():
            raise SettingsFileMissing(f"Configuration file not found: {path}")
        return path

    def backup_settings(self, *, now: Optional[datetime] = None) -> Path:
        source = self.require_settings_file()
        stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        backup = source.with_name(f"{source.name}.backup.{stamp}")
        try:
            shutil.copy2(source, backup)
        except OSError as exc:
            raise ServerAdminError(f"Failed to create backup: {exc}") from exc
        return backup

    # -------------------- configuration backup ---------------------
    def _license_files(self) -> List[Path]:
        found: Dict[str, Path] = {}
        directory = self._settings.license_dir
        if not directory.is_dir():
            return []
        for pattern in LICENSE_PATTERNS:
            for path in directory.glob(pattern):
                if path.is_file():
                    found[path.name] = path
        return [found[name] for name in sorted(found)]

    def _archive(self, source: Path, archive: Path) -> Optional[Path]:
        if not source.exists():
            LOGGER.warning("Skipping missing backup source %s", source)
            return None
        with tarfile.open(archive, "w:gz") as bundle:
            bundle.add(str(source), arcname=source.name)
        return archive

    def _info_text(self, backup_path: Path, created: datetime) -> str:
        settings = self._settings
        return "\n".join(
            [
                "Safeguard for SUDO Backup",
                "=========================",
                f"Backup Date: {created.strftime('%a %b %d %H:%M:%S %Y')}",
                f"Hostname: {self._hostname()}",
                f"Script Version: {settings.version}",
                "",
                "Backup Contents:",
                f"- {VAR_ARCHIVE}: {settings.quest_var}",
                f"- {ETC_ARCHIVE}: {settings.quest_config}",
                f"- {LICENSE_DIR}/: License files",
                "",
                "Restore Instructions:",
                "1. Stop Safeguard services: pmserviced stop",
                "2. Extract backups:",
                f"   cd {settings.quest_var.parent} && tar -xzf {backup_path}/{VAR_ARCHIVE}",
                f"   cd {settings.quest_config.parent} && tar -xzf {backup_path}/{ETC_ARCHIVE}",
                f"3. Restore licenses: cp {backup_path}/{LICENSE_DIR}/* {settings.license_dir}/",
                "4. Start services: pmserviced start",
                "",
            ]
        )

    def create_backup(self, backup_dir: Path, *, now: Optional[datetime] = None) -> BackupSummary:
        created = now or datetime.now()
        backup_path = backup_dir / f"safeguard_backup_{created.strftime('%Y%m%d_%H%M%S')}"
        try:
            backup_path.mkdir(parents=True, exist_ok=True)
            licenses_path = backup_path / LICENSE_DIR
            licenses_path.mkdir(exist_ok=True)

            copied: List[Path] = []
            for source, name in (
                (self._settings.quest_var, VAR_ARCHIVE),
                (self._settings.quest_config, ETC_ARCHIVE),
            ):
                archive = self._archive(source, backup_path / name)
                if archive is not None:
                    copied.append(archive)
            for license_file in self._license_files():
                destination = licenses_path / license_file.name
                shutil.copy2(license_file, destination)
                copied.append(destination)

            (backup_path / INFO_FILE).write_text(self._info_text(backup_path, created), encoding="utf-8")
        except OSError as exc:
            raise ServerAdminError(f"Backup failed: {exc}") from exc

        combined = hashlib.sha256()
        files: Dict[str, str] = {}
        for path in copied:
            digest = _hash_file(path)
            files[str(path.relative_to(backup_path))] = digest
            combined.update(digest.encode("utf-8"))
        manifest = {
            "created_at": created.isoformat(timespec="seconds"),
            "hostname": self._hostname(),
            "version": self._settings.version,
            "digest": combined.hexdigest(),
            "files": files,
        }
        (backup_path / MANIFEST_FILE).write_text(
            json.dumps(manifest, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

        return BackupSummary(
            backup_dir=backup_path,
            digest=combined.hexdigest(),
            files=tuple(copied),
            size_bytes=directory_size(backup_path),
        )

    # -------------------- configuration restore --------------------
    def inspect_backup(self, backup_path: Path) -> BackupInfo:
        if not backup_path.is_dir():
            raise BackupNotFound(f"Backup directory not found: {backup_path}")
        missing = [name for name in (VAR_ARCHIVE, ETC_ARCHIVE) if not (backup_path / name).is_file()]
        if missing:
            raise BackupIncomplete(
                f"Backup files not found in directory (expected: {VAR_ARCHIVE}, {ETC_ARCHIVE})"
            )

        info_path = backup_path / INFO_FILE
        info_text = info_path.read_text(encoding="utf-8") if info_path.is_file() else None
        manifest: Optional[Dict[str, object]] = None
        manifest_path = backup_path / MANIFEST_FILE
        if manifest_path.is_file():
            try:
                manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise BackupIntegrityError(f"Unreadable backup manifest: {exc}") from exc
            self._verify_manifest(backup_path, manifest)
        return BackupInfo(backup_dir=backup_path, info_text=info_text, manifest=manifest)

    def _verify_manifest(self, backup_path: Path, manifest: Dict[str, object]) -> None:
        files = manifest.get("files", {})
        if not isinstance(files, dict):
            raise BackupIntegrityError("Backup manifest has no file list")
        for relative, expected in files.items():
            path = backup_path / relative
            if not path.is_file():
                raise BackupIntegrityError(f"Backup file missing: {relative}")
            if _hash_file(path) != expected:
                raise BackupIntegrityError(f"Digest mismatch for {relative}")

    def restore_backup(self, backup_path: Path) -> RestoreSummary:
        """Stop services, unpack both archives, restore licenses and restart."""

        self.inspect_backup(backup_path)
        settings = self._settings
        steps: List[ToolResult] = [self.service("stop")]
        self._sleep(settings.settle_seconds)

        restored = 0
        try:
            _safe_extract(backup_path / VAR_ARCHIVE, settings.quest_var.parent)
            _safe_extract(backup_path / ETC_ARCHIVE, settings.quest_config.parent)
            licenses = backup_path / LICENSE_DIR
            if licenses.is_dir():
                settings.license_dir.mkdir(parents=True, exist_ok=True)
                for license_file in sorted(licenses.iterdir()):
                    if license_file.is_file():
                        shutil.copy2(license_file, settings.license_dir / license_file.name)
                        restored += 1
        except (OSError, tarfile.TarError) as exc:
            raise ServerAdminError(f"Restore failed: {exc}") from exc
        finally:
            # Services come back up even when unpacking fails.
            steps.append(self.fix_permissions(quiet=True))
            steps.append(self.service("start"))
            self._sleep(settings.settle_seconds)
        check = self._runner.run("pmsrvcheck", quiet=True)
        steps.append(check)
        return RestoreSummary(
            backup_dir=backup_path,
            steps=steps,
            licenses_restored=restored,
            verified=check.ok,
        )


__all__ = [
    "BackupIncomplete",
    "BackupInfo",
    "BackupIntegrityError",
    "BackupNotFound",
    "BackupSummary",
    "LicenseFileMissing",
    "RestoreSummary",
    "ServerAdmin",
    "ServerAdminError",
    "SettingsFileMissing",
    "human_size",
]
