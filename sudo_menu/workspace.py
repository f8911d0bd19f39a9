"""Lifecycle of the temporary policy checkout used for editing sudo rules.

The workspace is a single directory (``/tmp/policydir`` by default) holding a
snapshot of the policy repository. Inside it the ``policy_sudo`` container
keeps the default ``sudoers`` rule file plus one sub-directory per custom
policy. Mutating repository actions (add, commit) always re-run the syntax
validator first and never reach ``pmpolicy`` when it fails.

Only one operator is expected to use a workspace at a time; two menus pointed
at the same root race on the filesystem and the last writer wins.
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from sudo_menu.config import DEFAULT_POLICY_NAME, POLICY_CONTAINER
from sudo_menu.editor import Editor
from sudo_menu.repository import PolicyRepository, PolicyValidator
from sudo_menu.tools import ToolResult

LOGGER = logging.getLogger("sudo_menu.workspace")

Confirm = Callable[[str], bool]

HIDDEN_MARKER = "."

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"
STATUS_SKIPPED = "skipped"

POLICY_TEMPLATE = """\
# Custom Policy: POLICY_NAME
# Created: DATE
#
# This is a custom sudo policy for Safeguard for SUDO.
# Edit this file according to sudoers syntax.
#
# Example:
# %admins ALL=(ALL) ALL
# user1 ALL=/usr/bin/systemctl restart httpd

Defaults secure_path="/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"

# Add your custom rules below:

"""


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def render_template(name: str, created: str) -> str:
    return POLICY_TEMPLATE.replace("POLICY_NAME", name).replace("DATE", created)


class WorkspaceError(RuntimeError):
    """Raised when a workspace operation cannot proceed."""

    hint: Optional[str] = None

    def __init__(self, message: str, *, hint: Optional[str] = None) -> None:
        super().__init__(message)
        if hint is not None:
            self.hint = hint


class WorkspaceNotCheckedOut(WorkspaceError):
    """Raised when the workspace root does not exist."""


class PolicyContainerMissing(WorkspaceError):
    """Raised when the workspace exists but holds no policy container."""


class InvalidPolicyName(WorkspaceError):
    """Raised when a policy name fails validation."""


class PolicyExistsError(WorkspaceError):
    """Raised when creating a policy whose directory already exists."""


class PolicyFileMissing(WorkspaceError):
    """Raised when a policy rule file is absent."""


class PolicyValidationFailed(WorkspaceError):
    """Raised when add or commit is refused because validation failed."""

    def __init__(self, message: str, result: ToolResult, *, hint: Optional[str] = None) -> None:
        super().__init__(message, hint=hint)
        self.result = result


@dataclass(frozen=True)
class PolicyEntry:
    name: str
    kind: str
    directory: Path
    rule_file: Path

    @property
    def has_rule_file(self) -> bool:
        return self.rule_file.is_file()

    @property
    def relpath(self) -> str:
        if self.kind == "default":
            return DEFAULT_POLICY_NAME
        return f"{self.name}/{DEFAULT_POLICY_NAME}"


@dataclass
class ValidationResult:
    policy: str
    rule_file: Path
    tool: ToolResult

    @property
    def passed(self) -> bool:
        return self.tool.ok


@dataclass
class OperationResult:
    operation: str
    status: str
    message: str
    tool: Optional[ToolResult] = None
    hint: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    @property
    def returncode(self) -> Optional[int]:
        return self.tool.returncode if self.tool is not None else None


class PolicyWorkspaceManager:
    """Own the checkout directory and gate repository changes on validation."""

    _NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")

    def __init__(
        self,
        root: Path,
        repository: PolicyRepository,
        validator: PolicyValidator,
        editor: Editor,
        confirm: Confirm,
        *,
        clock: Callable[[], str] = _timestamp,
        notify: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._root = root
        self._repository = repository
        self._validator = validator
        self._editor = editor
        self._confirm = confirm
        self._clock = clock
        self._notify = notify or LOGGER.info

    # ------------------------------------------------------------------
    @property
    def root(self) -> Path:
        return self._root

    @property
    def container(self) -> Path:
        return self._root / POLICY_CONTAINER

    def exists(self) -> bool:
        return self._root.is_dir()

    def default_policy(self) -> PolicyEntry:
        return PolicyEntry(
            name=DEFAULT_POLICY_NAME,
            kind="default",
            directory=self.container,
            rule_file=self.container / DEFAULT_POLICY_NAME,
        )

    def custom_policy(self, name: str) -> PolicyEntry:
        directory = self.container / name
        return PolicyEntry(
            name=name,
            kind="custom",
            directory=directory,
            rule_file=directory / DEFAULT_POLICY_NAME,
        )

    def policy(self, name: str) -> PolicyEntry:
        if name == DEFAULT_POLICY_NAME:
            return self.default_policy()
        return self.custom_policy(self.validate_name(name))

    # ------------------------------------------------------------------
    def validate_name(self, name: str) -> str:
        if not self._NAME_PATTERN.fullmatch(name):
            raise InvalidPolicyName(
                "Invalid policy name. Use only letters, numbers, underscores, and hyphens."
            )
        return name

    def require_workspace(self, message: Optional[str] = None) -> None:
        if not self.exists():
            raise WorkspaceNotCheckedOut(
                message or "Policy not checked out. Please use option 1 to checkout policy first."
            )

    def _require_rule_file(self, entry: PolicyEntry) -> None:
        if not entry.rule_file.is_file():
            raise PolicyFileMissing(f"Policy file not found: {entry.rule_file}")

    # ------------------------------------------------------------------
    def checkout(self) -> OperationResult:
        """Fetch a fresh workspace, replacing an existing one after confirmation."""

        if self.exists():
            if not self._confirm("overwrite existing directory"):
                return OperationResult("checkout", STATUS_CANCELLED, "Checkout cancelled")
            try:
                shutil.rmtree(self._root)
            except OSError as exc:
                raise WorkspaceError(f"Failed to remove {self._root}: {exc}") from exc

        result = self._repository.checkout(self._root)
        if result.ok:
            return OperationResult(
                "checkout",
                STATUS_SUCCESS,
                "Policy checked out successfully",
                tool=result,
            )
        return OperationResult("checkout", STATUS_FAILED, "Failed to checkout policy", tool=result)

    def discover(self) -> List[PolicyEntry]:
        """Return the custom policies under the container, sorted by name."""

        self.require_workspace()
        if not self.container.is_dir():
            raise PolicyContainerMissing(f"Policy directory not found: {self.container}")
        entries = []
        for child in self.container.iterdir():
            name = child.name
            if name == DEFAULT_POLICY_NAME or name.startswith(HIDDEN_MARKER):
                continue
            if not child.is_dir():
                continue
            entries.append(self.custom_policy(name))
        return sorted(entries, key=lambda entry: entry.name)

    def create(self, name: str, *, offer_edit: bool = True) -> OperationResult:
        self.require_workspace()
        policy_name = self.validate_name(name)
        if policy_name == DEFAULT_POLICY_NAME:
            raise InvalidPolicyName(f"Policy name is reserved: {policy_name}")
        entry = self.custom_policy(policy_name)
        if entry.directory.exists():
            raise PolicyExistsError(
                f"Policy already exists: {policy_name}",
                hint="Use option 3 to edit existing policies.",
            )

        template = self.default_policy().rule_file
        try:
            entry.directory.mkdir(parents=True)
            if template.is_file():
                shutil.copyfile(template, entry.rule_file)
            else:
                entry.rule_file.write_text(
                    render_template(policy_name, self._clock()), encoding="utf-8"
                )
        except OSError as exc:
            raise WorkspaceError(f"Failed to create policy {policy_name}: {exc}") from exc
        LOGGER.debug("Created policy %s from %s", policy_name, "default" if template.is_file() else "template")

        if offer_edit and self._confirm("edit the new policy now"):
            self._editor.edit(entry.rule_file)
        return OperationResult("create", STATUS_SUCCESS, f"Policy created: {policy_name}")

    def edit(self, name: str = DEFAULT_POLICY_NAME) -> OperationResult:
        self.require_workspace()
        entry = self.policy(name)
        if not entry.rule_file.is_file():
            if not self._confirm(f"create sudoers file for policy {entry.name}"):
                return OperationResult("edit", STATUS_CANCELLED, "Edit cancelled")
            try:
                entry.rule_file.parent.mkdir(parents=True, exist_ok=True)
                entry.rule_file.touch()
            except OSError as exc:
                raise WorkspaceError(f"Failed to create {entry.rule_file}: {exc}") from exc
        self._editor.edit(entry.rule_file)
        return OperationResult(
            "edit",
            STATUS_SUCCESS,
            f"Policy editing completed for: {entry.name}",
            hint="Remember to validate (option 7) and commit (option 8) your changes.",
        )

    def validate(self, name: str = DEFAULT_POLICY_NAME, *, quiet: bool = False) -> ValidationResult:
        """Run the external syntax check; read-only."""

        self.require_workspace()
        entry = self.policy(name)
        self._require_rule_file(entry)
        return ValidationResult(entry.name, entry.rule_file, self._validator.check(entry.rule_file, quiet=quiet))

    def add_to_server(self, name: str, description: str) -> OperationResult:
        self.require_workspace()
        entry = self.policy(name)
        if entry.kind != "custom":
            raise InvalidPolicyName("Only custom policies can be added to the server")
        self._require_rule_file(entry)
        label = description.strip()
        if not label:
            raise WorkspaceError("Policy description cannot be empty")

        validation = self.validate(entry.name, quiet=True)
        if not validation.passed:
            raise PolicyValidationFailed(
                "Policy validation failed. Cannot add invalid policy.",
                validation.tool,
                hint="Please edit and fix syntax errors first (option 3).",
            )
        self._notify("Policy validation passed")

        if not self._confirm(f"add policy '{entry.name}' to server repository"):
            return OperationResult("add", STATUS_CANCELLED, "Add cancelled")

        result = self._repository.add(self._root, entry.relpath, label)
        if result.ok:
            return OperationResult(
                "add",
                STATUS_SUCCESS,
                f"Policy added to repository: {entry.name}",
                tool=result,
                hint="Next step: Commit changes (option 8) to make the policy active.",
            )
        return OperationResult("add", STATUS_FAILED, "Failed to add policy to server", tool=result)

    def commit(self) -> OperationResult:
        self.require_workspace("Policy not checked out. Nothing to commit.")
        default = self.default_policy()
        if default.rule_file.is_file():
            validation = self.validate(DEFAULT_POLICY_NAME, quiet=True)
            if not validation.passed:
                raise PolicyValidationFailed(
                    "Policy validation failed. Cannot commit invalid policy.",
                    validation.tool,
                    hint="Please fix syntax errors before committing.",
                )

        if not self._confirm("commit policy changes to repository"):
            return OperationResult("commit", STATUS_CANCELLED, "Commit cancelled")

        result = self._repository.commit(self._root)
        if result.ok:
            return OperationResult("commit", STATUS_SUCCESS, "Policy committed successfully", tool=result)
        return OperationResult("commit", STATUS_FAILED, "Failed to commit policy", tool=result)

    def clean(self) -> OperationResult:
        if not self.exists():
            return OperationResult(
                "clean",
                STATUS_SKIPPED,
                f"Temporary directory does not exist: {self._root}",
            )
        if not self._confirm(f"delete temporary policy directory {self._root}"):
            return OperationResult("clean", STATUS_CANCELLED, "Clean cancelled")
        try:
            shutil.rmtree(self._root)
        except OSError as exc:
            LOGGER.debug("rmtree failed for %s: %s", self._root, exc)
            return OperationResult("clean", STATUS_FAILED, "Failed to delete temporary directory")
        return OperationResult("clean", STATUS_SUCCESS, f"Temporary directory deleted: {self._root}")


__all__ = [
    "InvalidPolicyName",
    "OperationResult",
    "POLICY_TEMPLATE",
    "PolicyContainerMissing",
    "PolicyEntry",
    "PolicyExistsError",
    "PolicyFileMissing",
    "PolicyValidationFailed",
    "PolicyWorkspaceManager",
    "STATUS_CANCELLED",
    "STATUS_FAILED",
    "STATUS_SKIPPED",
    "STATUS_SUCCESS",
    "ValidationResult",
    "WorkspaceError",
    "WorkspaceNotCheckedOut",
    "render_template",
]
