#!/usr/bin/env python3
"""Interactive Safeguard for SUDO administration menu."""

from __future__ import annotations

import argparse
import functools
import getpass
import logging
import os
import shutil
import socket
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, TextIO, Tuple

from sudo_menu.config import (
    CHANGELOG_FILE,
    DEFAULT_POLICY_NAME,
    PRODUCT_NAME,
    SCRIPT_DATE,
    SCRIPT_NAME,
    MenuSettings,
)
from sudo_menu.console import Console
from sudo_menu.diagnostics import DAEMON_LOGS, Diagnostics, DiagnosticsError
from sudo_menu.editor import Editor, EditorError, TerminalEditor
from sudo_menu.log_search import (
    LogSearch,
    LogSearchError,
    custom_search_args,
    date_search_args,
    parse_event_count,
    user_search_args,
)
from sudo_menu.operation_log import OperationLog
from sudo_menu.repository import PolicyRepository, PolicyValidator
from sudo_menu.server_admin import ServerAdmin, ServerAdminError
from sudo_menu.tools import ToolResult, ToolRunner, ToolUnavailableError
from sudo_menu.workspace import (
    STATUS_FAILED,
    STATUS_SKIPPED,
    STATUS_SUCCESS,
    OperationResult,
    PolicyWorkspaceManager,
    WorkspaceError,
)

LOGGER = logging.getLogger("sudo_menu.shell")

REQUIRED_TOOLS = ("pmsrvinfo", "pmpolicy", "pmlicense")

MENU_ERRORS = (
    WorkspaceError,
    ServerAdminError,
    LogSearchError,
    DiagnosticsError,
    ToolUnavailableError,
    EditorError,
)

# ---------------------------------------------------------------------------
# Menu registry
# ---------------------------------------------------------------------------

Handler = Callable[["MenuSession"], None]


@dataclass
class MenuOption:
    menu: str
    key: str
    label: str
    summary: str
    handler: Handler

    def render(self) -> str:
        return f"{self.key + ')':<4}{self.label:<27}- {self.summary}"


class MenuRegistry:
    def __init__(self) -> None:
        self._options: Dict[str, Dict[str, MenuOption]] = {}

    def register(self, option: MenuOption) -> None:
        self._options.setdefault(option.menu, {})[option.key.lower()] = option

    def get(self, menu: str, key: str) -> Optional[MenuOption]:
        return self._options.get(menu, {}).get(key.lower())

    def options(self, menu: str) -> List[MenuOption]:
        entries = self._options.get(menu, {}).values()
        return sorted(entries, key=lambda entry: (0, int(entry.key)) if entry.key.isdigit() else (1, 0))


def option(menu: str, key: str, label: str, summary: str) -> Callable[[Handler], Handler]:
    def decorator(func: Handler) -> Handler:
        func.__menu_option__ = MenuOption(menu=menu, key=key, label=label, summary=summary, handler=func)
        return func

    return decorator


MENU_TITLES: Dict[str, str] = {
    "git": "Git Policy Management",
    "policy": "Policy Management",
    "server": "Server Management",
    "plugin": "Plugin Host Management",
    "logs": "Log Management & Search",
    "diagnostics": "Diagnostics & Troubleshooting",
}

MAIN_MENU: Tuple[Tuple[str, str], ...] = (
    ("1", "git"),
    ("2", "policy"),
    ("3", "server"),
    ("4", "plugin"),
    ("5", "logs"),
    ("6", "diagnostics"),
)

# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class MenuSession:
    """Wire settings, logging and the managers used by every menu option."""

    def __init__(
        self,
        settings: MenuSettings,
        *,
        input_func: Callable[[str], str] = input,
        output: Optional[TextIO] = None,
        interactive: bool = True,
        editor: Optional[Editor] = None,
    ) -> None:
        self.settings = settings
        self.log = OperationLog(settings.log_file)
        self.console = Console(
            self.log,
            input_func=input_func,
            output=output,
            interactive=interactive,
        )
        self.runner = ToolRunner(settings, self.log, stdout=output, stderr=output)
        self.repository = PolicyRepository(self.runner)
        self.validator = PolicyValidator(self.runner)
        self.editor: Editor = editor or TerminalEditor(settings.editor)
        self.workspace = PolicyWorkspaceManager(
            settings.workspace_root,
            self.repository,
            self.validator,
            self.editor,
            self.console.confirm,
            notify=self.console.success,
        )
        self.server = ServerAdmin(settings, self.runner)
        self.logs = LogSearch(settings, self.runner)
        self.diagnostics = Diagnostics(settings, self.runner)
        self.registry = MenuRegistry()
        self._register_options()

    def _register_options(self) -> None:
        for obj in globals().values():
            if callable(obj) and hasattr(obj, "__menu_option__"):
                self.registry.register(obj.__menu_option__)
        for item in PASSTHROUGHS:
            self.registry.register(
                MenuOption(
                    menu=item.menu,
                    key=item.key,
                    label=item.label,
                    summary=item.summary,
                    handler=functools.partial(run_passthrough, item=item),
                )
            )

    def dispatch(self, menu: str, key: str) -> bool:
        """Run option *key* of *menu*; ``False`` when the key is unknown."""

        entry = self.registry.get(menu, key)
        if entry is None:
            return False
        LOGGER.debug("Running %s option %s (%s)", menu, entry.key, entry.label)
        self.console.clear()
        try:
            entry.handler(self)
        except MENU_ERRORS as exc:
            LOGGER.debug("Option %s failed: %r", entry.label, exc)
            self.console.error(str(exc))
            hint = getattr(exc, "hint", None)
            if hint:
                self.console.write(hint)
        self.console.pause()
        return True

    def close(self) -> None:
        self.log.close()


def report(console: Console, outcome: OperationResult) -> None:
    if outcome.status == STATUS_SUCCESS:
        console.success(outcome.message)
        if outcome.hint:
            console.write(outcome.hint)
    elif outcome.status == STATUS_FAILED:
        message = outcome.message
        if outcome.returncode is not None:
            message = f"{message} (exit code {outcome.returncode})"
        console.error(message)
    elif outcome.status == STATUS_SKIPPED:
        console.warning(outcome.message)


def report_tool(console: Console, result: ToolResult, success: str, failure: str) -> None:
    if result.ok:
        console.success(success)
    else:
        console.error(f"{failure} (exit code {result.returncode})")


# ---------------------------------------------------------------------------
# Pass-through options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Passthrough:
    menu: str
    key: str
    label: str
    summary: str
    tool: str
    args: Tuple[str, ...] = ()
    confirm: Optional[str] = None
    success: Optional[str] = None
    failure: Optional[str] = None


PASSTHROUGHS: Tuple[Passthrough, ...] = (
    Passthrough("git", "1", "pmgit status", "Show Git integration status", "pmgit", ("status",)),
    Passthrough(
        "git", "2", "pmgit enable", "Enable Git policy management", "pmgit", ("enable",),
        confirm="enable Git policy management",
    ),
    Passthrough(
        "git", "3", "pmgit disable", "Disable Git policy management", "pmgit", ("disable",),
        confirm="disable Git policy management",
    ),
    Passthrough("git", "4", "pmgit update", "Update policy from Git repository", "pmgit", ("update",)),
    Passthrough("git", "5", "pmgit set", "Configure Git settings", "pmgit", ("set",)),
    Passthrough("git", "6", "pmgit export", "Export policy to Git", "pmgit", ("export",)),
    Passthrough("git", "7", "pmgit import", "Import policy from Git", "pmgit", ("import",)),
    Passthrough("git", "8", "pmgit help", "Display Git integration help", "pmgit", ("help",)),
    Passthrough("server", "1", "View Server Configuration", "Display pmsrvinfo", "pmsrvinfo"),
    Passthrough("server", "2", "List Policy Assignments", "Show which policies clients use", "pmsrvinfo", ("-l",)),
    Passthrough("server", "4", "View License Information", "Display license status", "pmlicense"),
    Passthrough("server", "6", "License Usage Report", "Detailed usage report", "pmlicense", ("-uf",)),
    Passthrough("server", "7", "Check File Permissions", "Verify Safeguard file permissions", "pmcheckperms", ("-v",)),
    Passthrough(
        "server", "8", "Fix File Permissions", "Repair permission issues", "pmcheckperms", ("-f",),
        confirm="fix file permissions for Safeguard directories",
        success="File permissions fixed successfully",
        failure="Failed to fix file permissions",
    ),
    Passthrough("plugin", "1", "View Plugin Configuration", "Display pmplugininfo", "pmplugininfo"),
    Passthrough("plugin", "2", "Check Server Availability", "Check policy server status", "pmpluginloadcheck", ("-r",)),
    Passthrough(
        "plugin", "4", "Unjoin Plugin from Server", "Remove from policy group", "pmjoin_plugin", ("-u",),
        confirm="unjoin this host from the policy server",
        success="Successfully unjoined from policy server",
        failure="Failed to unjoin from policy server",
    ),
    Passthrough("plugin", "5", "Check Plugin Policy Status", "View cached policy status", "pmpolicyplugin"),
    Passthrough("diagnostics", "2", "Display System ID", "Show Safeguard system ID", "pmsysid"),
)


def run_passthrough(session: MenuSession, *, item: Passthrough) -> None:
    console = session.console
    session.runner.require(item.tool)
    if item.confirm and not console.confirm(item.confirm):
        return
    result = session.runner.run(item.tool, *item.args)
    if item.success and item.failure:
        console.write()
        report_tool(console, result, item.success, item.failure)


# ---------------------------------------------------------------------------
# Policy management
# ---------------------------------------------------------------------------


def _select_custom_policy(session: MenuSession, title: str, prompt: str = "Enter your selection") -> Optional[str]:
    console = session.console
    entries = session.workspace.discover()
    if not entries:
        console.warning("No custom policies found.")
        console.write("Use option 4 to create a new custom policy first.")
        return None
    console.header(title)
    console.write()
    index = console.choose([entry.name for entry in entries], prompt)
    return None if index is None else entries[index].name


@option("policy", "1", "Checkout Policy", "Checkout policy to temp directory")
def checkout_policy(session: MenuSession) -> None:
    console = session.console
    workspace = session.workspace
    if workspace.exists():
        console.warning(f"Temporary policy directory already exists: {workspace.root}")
    console.write(f"Checking out policy to {workspace.root}...")
    outcome = workspace.checkout()
    report(console, outcome)
    if outcome.ok:
        console.write("You can now edit policies using menu options 2-4")


@option("policy", "2", "Edit Default Policy", "Edit main sudoers policy")
def edit_default_policy(session: MenuSession) -> None:
    report(session.console, session.workspace.edit(DEFAULT_POLICY_NAME))


@option("policy", "3", "Edit Custom Policies", "Select and edit custom policies")
def edit_custom_policies(session: MenuSession) -> None:
    session.workspace.require_workspace()
    name = _select_custom_policy(session, "Select Custom Policy to Edit")
    if name is None:
        return
    session.console.write(f"Editing: {session.workspace.custom_policy(name).rule_file}")
    report(session.console, session.workspace.edit(name))


@option("policy", "4", "Create New Custom Policy", "Create a new custom policy")
def create_custom_policy(session: MenuSession) -> None:
    console = session.console
    session.workspace.require_workspace()
    console.header("Create New Custom Policy")
    console.write()
    name = console.prompt("Enter new policy name (e.g., webservers, dbservers)") or ""
    outcome = session.workspace.create(name, offer_edit=False)
    report(console, outcome)
    if outcome.ok and console.confirm("edit the new policy now"):
        report(console, session.workspace.edit(name))
    console.write()
    console.write("Next steps:")
    console.write("  1. Edit the policy if you haven't (option 3)")
    console.write("  2. Validate the policy (option 7)")
    console.write("  3. Add policy to server (option 6)")
    console.write("  4. Commit changes (option 8)")


@option("policy", "5", "List All Policies", "Show all available policies")
def list_all_policies(session: MenuSession) -> None:
    console = session.console
    entries = session.workspace.discover()
    console.header("Available Policies")
    console.write()
    console.write("Default Policy:")
    console.write(f"  - {DEFAULT_POLICY_NAME} (main default policy)")
    console.write()
    console.write("Custom Policies:")
    if not entries:
        console.write("  (none found)")
    for entry in entries:
        console.write(f"  - {entry.name}")
        if entry.has_rule_file:
            console.write(f"    (has {DEFAULT_POLICY_NAME} file)")
    console.write()
    console.write(f"Total policies: {1 + len(entries)}")


@option("policy", "6", "Add Policy to Server", "Add custom policy to repository")
def add_policy_to_server(session: MenuSession) -> None:
    console = session.console
    workspace = session.workspace
    workspace.require_workspace()
    name = _select_custom_policy(session, "Add Policy to Server", "Enter policy number to add")
    if name is None:
        return
    entry = workspace.custom_policy(name)
    if not entry.has_rule_file:
        console.error(f"Policy file not found: {entry.rule_file}")
        return
    console.write()
    description = console.prompt("Enter description for this policy")
    console.write()
    console.write("Validating policy before adding...")
    report(console, workspace.add_to_server(name, description or ""))


@option("policy", "7", "Validate Policy Syntax", "Run pmcheck on policy")
def validate_policy(session: MenuSession) -> None:
    console = session.console
    workspace = session.workspace
    workspace.require_workspace()
    name = DEFAULT_POLICY_NAME
    entries = workspace.discover()
    if entries:
        choices = [f"{DEFAULT_POLICY_NAME} (default)"] + [entry.name for entry in entries]
        console.header("Select Policy to Validate")
        console.write()
        index = console.choose(choices)
        if index is None:
            return
        name = DEFAULT_POLICY_NAME if index == 0 else entries[index - 1].name
    console.write("Validating policy syntax...")
    console.write()
    validation = workspace.validate(name)
    if validation.passed:
        console.success("Policy syntax is valid")
    else:
        console.error("Policy syntax validation failed. Please review and fix errors.")


@option("policy", "8", "Commit Policy Changes", "Commit changes to repository")
def commit_policy(session: MenuSession) -> None:
    session.console.write("Validating policy before commit...")
    report(session.console, session.workspace.commit())


@option("policy", "9", "View Policy Log", "Display policy revision history")
def view_policy_log(session: MenuSession) -> None:
    session.console.write("Policy Revision History:")
    session.console.write()
    session.repository.log()


@option("policy", "10", "Compare Policy Versions", "Show differences between revisions")
def compare_policy_versions(session: MenuSession) -> None:
    console = session.console
    console.write("First, let's view the policy revision history:")
    console.write()
    session.repository.log()
    console.write()
    first = console.prompt("Enter first revision number", allow_cancel=True)
    second = console.prompt("Enter second revision number", allow_cancel=True) if first is not None else None
    if first is None or second is None:
        console.warning("Comparison cancelled")
        return
    console.write()
    console.write(f"Comparing revision {first} to revision {second}...")
    console.write()
    session.repository.diff(first, second)


@option("policy", "11", "Check Policy Status", "Check if production matches master")
def check_policy_status(session: MenuSession) -> None:
    session.console.write("Checking policy status...")
    session.console.write()
    session.repository.masterstatus()


@option("policy", "12", "Sync Policy", "Update production from master")
def sync_policy(session: MenuSession) -> None:
    console = session.console
    if not console.confirm("sync production policy from master repository"):
        return
    console.write()
    result = session.repository.sync()
    report_tool(console, result, "Policy synchronized successfully", "Failed to synchronize policy")


@option("policy", "13", "Clean Temp Directory", "Remove the policy checkout")
def clean_temp_directory(session: MenuSession) -> None:
    report(session.console, session.workspace.clean())


# ---------------------------------------------------------------------------
# Server management
# ---------------------------------------------------------------------------


@option("server", "3", "Check Server Status", "Verify server is running")
def server_status_check(session: MenuSession) -> None:
    session.console.write("Checking policy server status...")
    session.console.write()
    result = session.server.server_status()
    report_tool(session.console, result, "Policy server is running properly", "Policy server check failed")


@option("server", "5", "Install License", "Install new license file")
def install_license(session: MenuSession) -> None:
    console = session.console
    raw = console.prompt("Enter full path to license file (.dlv)", allow_cancel=True)
    if raw is None:
        console.warning("License installation cancelled")
        return
    license_file = Path(raw).expanduser()
    if not license_file.is_file():
        console.error(f"License file not found: {license_file}")
        return
    if not console.confirm(f"install license from {license_file}"):
        return
    console.write()
    result = session.server.install_license(license_file)
    report_tool(console, result, "License installed successfully", "Failed to install license")


@option("server", "9", "Edit pm.settings", "Edit main configuration file")
def edit_pm_settings(session: MenuSession) -> None:
    console = session.console
    settings_file = session.server.require_settings_file()
    console.header("Edit pm.settings Configuration")
    console.write()
    console.write(f"Configuration file: {settings_file}")
    console.write()
    console.warning("Incorrect settings can break Safeguard functionality!")
    console.write("A backup will be created before editing.")
    if not console.confirm("edit pm.settings configuration file"):
        return
    backup = session.server.backup_settings()
    console.write()
    console.write(f"Creating backup: {backup}")
    console.success("Backup created successfully")
    console.write()
    console.write("Opening editor...")
    session.editor.edit(settings_file)
    console.write()
    console.warning("Changes to pm.settings require a service restart to take effect.")
    if console.confirm("restart Safeguard services now"):
        console.write()
        console.write("Restarting services...")
        result = session.server.service("restart")
        report_tool(console, result, "Services restarted successfully", "Failed to restart services")
        if not result.ok:
            console.write("You may need to restart manually.")
    else:
        console.write()
        console.write("Remember to restart services with: pmserviced restart")


@option("server", "10", "Backup Configuration", "Backup critical Safeguard directories")
def backup_configuration(session: MenuSession) -> None:
    console = session.console
    settings = session.settings
    console.header("Backup Safeguard Configuration")
    console.write()
    raw = console.prompt(
        f"Enter backup directory path (default: {settings.backup_dir})",
        allow_empty=True,
        allow_cancel=True,
    )
    if raw is None:
        console.warning("Backup cancelled")
        return
    backup_dir = Path(raw).expanduser() if raw else settings.backup_dir
    console.write()
    console.write(f"Backup will be created under: {backup_dir}")
    console.write()
    console.write("Directories to backup:")
    console.write(f"  - {settings.quest_var} (logs, repository, SSH keys)")
    console.write(f"  - {settings.quest_config} (settings, production policy)")
    console.write(f"  - {settings.license_dir}/.license* (licenses)")
    if not console.confirm("create backup"):
        return
    console.write()
    summary = session.server.create_backup(backup_dir)
    console.success("Backup completed successfully")
    console.write()
    console.write(f"Backup location: {summary.backup_dir}")
    console.write(f"Backup size: {summary.size}")
    console.write()
    console.write(f"Backup manifest: {summary.info_file}")


@option("server", "11", "Restore Configuration", "Restore from backup")
def restore_configuration(session: MenuSession) -> None:
    console = session.console
    console.header("Restore Safeguard Configuration")
    console.write()
    console.warning("This will overwrite current configuration!")
    console.write("Make sure you have a recent backup before proceeding.")
    console.write()
    raw = console.prompt("Enter full path to backup directory", allow_cancel=True)
    if raw is None:
        console.warning("Restore cancelled")
        return
    backup_path = Path(raw).expanduser()
    info = session.server.inspect_backup(backup_path)
    if info.info_text:
        console.write()
        console.write("Backup Information:")
        console.write(info.info_text)
    if not console.confirm("restore from backup (this will overwrite current configuration)"):
        return
    console.write()
    console.write("Stopping services, restoring archives and restarting services...")
    summary = session.server.restore_backup(backup_path)
    if summary.verified:
        console.success("Configuration restored successfully")
        console.write("Services are running.")
    else:
        console.warning("Configuration restored, but services may need attention")
        console.write(f"Check logs: {session.settings.daemon_log_dir / 'pmmasterd.log'}")


# ---------------------------------------------------------------------------
# Plugin host management
# ---------------------------------------------------------------------------


@option("plugin", "3", "Join Plugin to Server", "Join this host to policy server")
def join_plugin_to_server(session: MenuSession) -> None:
    console = session.console
    session.runner.require("pmjoin_plugin")
    server = console.prompt("Enter policy server hostname or IP", allow_cancel=True)
    if server is None:
        console.warning("Join operation cancelled")
        return
    if not console.confirm(f"join this host to policy server {server}"):
        return
    console.write()
    console.write("Joining plugin to policy server...")
    result = session.runner.run("pmjoin_plugin", "-a", server)
    report_tool(console, result, "Successfully joined to policy server", "Failed to join policy server")


@option("plugin", "6", "Run Pre-flight Check", "Verify installation readiness")
def run_preflight_check(session: MenuSession) -> None:
    console = session.console
    preflight = session.runner.tool_path("pmpreflight.sh")
    if not preflight.is_file():
        console.error(f"Pre-flight script not found: {preflight}")
        return
    server = console.prompt("Enter policy server hostname or IP", allow_empty=True, allow_cancel=True)
    if server is None:
        console.warning("Preflight check cancelled")
        return
    console.write()
    console.write("Running pre-flight check...")
    argv = ["sh", str(preflight), "--sudo"]
    if server:
        argv += ["--policyserver", server]
    session.runner.run_argv(argv)


# ---------------------------------------------------------------------------
# Log management
# ---------------------------------------------------------------------------


@option("logs", "1", "View Event Logs", "Display recent event logs")
def view_event_logs(session: MenuSession) -> None:
    console = session.console
    session.runner.require("pmlog")
    raw = console.prompt(
        "Enter number of log entries to display (default: 50)", allow_empty=True, allow_cancel=True
    )
    if raw is None:
        console.warning("Operation cancelled")
        return
    count = parse_event_count(raw)
    console.write()
    console.write(f"Displaying last {count} event log entries...")
    console.write()
    session.logs.recent_events(count)


@option("logs", "2", "Search Logs by User", "Search for specific user")
def search_logs_by_user(session: MenuSession) -> None:
    console = session.console
    session.runner.require("pmlogsearch")
    username = console.prompt("Enter username to search for", allow_cancel=True)
    if username is None:
        console.warning("Search cancelled")
        return
    console.write()
    console.write("Optional: Filter by date")
    after = console.prompt(
        "Enter start date (YYYY/MM/DD) or press ENTER to skip", allow_empty=True, allow_cancel=True
    )
    if after is None:
        console.warning("Search cancelled")
        return
    args = user_search_args(username, after or None)
    console.write()
    console.write(f"Searching logs for user: {username}")
    session.logs.search(args)


@option("logs", "3", "Search Logs by Date Range", "Search with date filter")
def search_logs_by_date(session: MenuSession) -> None:
    console = session.console
    session.runner.require("pmlogsearch")
    after = console.prompt("Enter start date (YYYY/MM/DD)", allow_cancel=True)
    if after is None:
        console.warning("Search cancelled")
        return
    before = console.prompt(
        "Enter end date (YYYY/MM/DD) or press ENTER for today", allow_empty=True, allow_cancel=True
    )
    if before is None:
        console.warning("Search cancelled")
        return
    args = date_search_args(after, before or None)
    console.write()
    console.write("Searching logs...")
    session.logs.search(args)


@option("logs", "4", "Search Logs (Custom)", "Custom pmlogsearch query")
def search_logs_custom(session: MenuSession) -> None:
    console = session.console
    session.runner.require("pmlogsearch")
    console.write("Enter custom pmlogsearch parameters")
    console.write("Examples:")
    console.write("  --user username --command sudo")
    console.write('  --host hostname --after "2024/01/01 00:00:00"')
    console.write("  --event accept --user root")
    console.write()
    raw = console.prompt("Enter pmlogsearch parameters", allow_cancel=True)
    if raw is None:
        console.warning("Search cancelled")
        return
    args = custom_search_args(raw)
    console.write()
    console.write(f"Searching logs with: {raw}")
    session.logs.search(args)


@option("logs", "5", "List I/O Logs", "Show available keystroke logs")
def list_io_logs(session: MenuSession) -> None:
    session.console.write("Available I/O (keystroke) logs:")
    session.console.write()
    session.logs.list_iologs()


@option("logs", "6", "Replay Keystroke Log", "Replay an I/O log session")
def replay_keystroke_log(session: MenuSession) -> None:
    console = session.console
    session.runner.require("pmreplay")
    console.write(f"Available I/O logs in {session.settings.iolog_dir}:")
    console.write()
    for path in session.logs.iolog_files():
        console.write(str(path))
    console.write()
    raw = console.prompt("Enter full path to I/O log file", allow_cancel=True)
    if raw is None:
        console.warning("Replay cancelled")
        return
    log_path = Path(raw).expanduser()
    if not log_path.is_file():
        console.error(f"Log file not found: {log_path}")
        return
    console.write()
    console.write(f"Replaying keystroke log: {log_path}")
    console.write("Use arrow keys to navigate, 'q' to quit")
    console.write()
    session.logs.replay(log_path)


@option("logs", "7", "View Log Statistics", "Display log summary")
def view_log_statistics(session: MenuSession) -> None:
    console = session.console
    stats = session.logs.statistics()
    console.write("Log Statistics and Summary")
    console.write("=" * 43)
    console.write()
    for line in stats.lines():
        console.write(line)
    console.write()
    console.write("Recent Event Log Entries (last 10):")
    console.write("=" * 43)
    session.logs.recent_events(10)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


@option("diagnostics", "1", "Verify Hostname Resolution", "Check hostname/IP resolution")
def verify_hostname_resolution(session: MenuSession) -> None:
    console = session.console
    session.runner.require("pmresolvehost", plugin_hint=False)
    hostname = console.prompt(
        "Enter hostname or IP to verify (or ENTER for local host)", allow_empty=True, allow_cancel=True
    )
    if hostname is None:
        console.warning("Operation cancelled")
        return
    console.write()
    console.write(f"Verifying hostname: {hostname}" if hostname else "Verifying local host resolution...")
    session.diagnostics.resolve_host(hostname or None)


@option("diagnostics", "3", "Test Policy Syntax", "Validate policy file")
def test_policy_syntax(session: MenuSession) -> None:
    console = session.console
    session.runner.require("pmcheck", plugin_hint=False)
    default = session.settings.policy_dir / DEFAULT_POLICY_NAME
    console.write(f"Default policy file: {default}")
    raw = console.prompt("Enter policy file path or ENTER for default", allow_empty=True, allow_cancel=True)
    if raw is None:
        console.warning("Operation cancelled")
        return
    policy_file = Path(raw).expanduser() if raw else default
    console.write()
    console.write(f"Testing policy syntax: {policy_file}")
    result = session.diagnostics.check_policy_file(policy_file)
    report_tool(console, result, "Policy syntax is valid", "Policy syntax errors detected")


@option("diagnostics", "4", "Test Command Authorization", "Simulate sudo command")
def test_command_authorization(session: MenuSession) -> None:
    console = session.console
    session.runner.require("pmcheck", plugin_hint=False)
    console.write("Test Command Authorization")
    console.write("=" * 43)
    console.write()
    values: List[str] = []
    for prompt in ("Enter username", "Enter group name", "Enter hostname", "Enter command to test"):
        value = console.prompt(prompt, allow_cancel=True)
        if value is None:
            console.warning("Test cancelled")
            return
        values.append(value)
    username, group, hostname, command = values
    console.write()
    console.write("Testing authorization for:")
    console.write(f"  User: {username}")
    console.write(f"  Group: {group}")
    console.write(f"  Host: {hostname}")
    console.write(f"  Command: {command}")
    console.write()
    _, verdict = session.diagnostics.test_authorization(username, group, hostname, command)
    console.write()
    getattr(console, verdict.severity)(verdict.message)


def _toggle_debug(session: MenuSession, enabled: bool) -> None:
    console = session.console
    session.runner.require("pmcheck", plugin_hint=False)
    word = "enable" if enabled else "disable"
    progress = "Enabling" if enabled else "Disabling"
    if not console.confirm(f"{word} debug logging"):
        return
    console.write()
    console.write(f"{progress} debug logging...")
    result = session.diagnostics.set_debug(enabled)
    report_tool(console, result, f"Debug logging {word}d", f"Failed to {word} debug logging")
    if result.ok and enabled:
        console.write("Note: Debug logs will be written to system logs")
        console.write("Remember to disable debug logging when troubleshooting is complete")


@option("diagnostics", "5", "Enable Debug Logging", "Enable debug mode")
def enable_debug_logging(session: MenuSession) -> None:
    _toggle_debug(session, True)


@option("diagnostics", "6", "Disable Debug Logging", "Disable debug mode")
def disable_debug_logging(session: MenuSession) -> None:
    _toggle_debug(session, False)


@option("diagnostics", "7", "View Error Logs", "Display daemon error logs")
def view_error_logs(session: MenuSession) -> None:
    console = session.console
    console.write("Safeguard Daemon Error Logs")
    console.write("=" * 43)
    console.write()
    choices = [f"{name:<15} - {description}" for name, description in DAEMON_LOGS]
    choices.append("All logs        - View all available logs")
    index = console.choose(choices, "Select log to view")
    if index is None:
        return
    if index == len(DAEMON_LOGS):
        console.write()
        for name, lines in session.diagnostics.all_daemon_logs().items():
            console.write(f"=== {name} (last 20 lines) ===")
            for line in lines:
                console.write(line)
            console.write()
        return
    name = DAEMON_LOGS[index][0]
    lines = session.diagnostics.daemon_log(name)
    console.write()
    console.write(f"=== {session.settings.daemon_log_dir / name} (last 50 lines) ===")
    for line in lines:
        console.write(line)


@option("diagnostics", "8", "Check Audit Server", "Verify audit server connectivity")
def check_audit_server(session: MenuSession) -> None:
    session.console.write("Checking audit server connectivity...")
    session.console.write()
    result = session.diagnostics.check_audit_server()
    report_tool(session.console, result, "Audit server is accessible", "Audit server check failed")


# ---------------------------------------------------------------------------
# Information
# ---------------------------------------------------------------------------


@option("main", "v", "Version Information", "")
def display_version(session: MenuSession) -> None:
    console = session.console
    console.write("=" * 43)
    console.write(f"  {SCRIPT_NAME}")
    console.write("=" * 43)
    console.write(f"Version: {session.settings.version}")
    console.write(f"Date: {SCRIPT_DATE}")
    console.write(f"Script Location: {Path(__file__).resolve().parent}")
    console.write()
    console.write(f"Product: {PRODUCT_NAME}")
    console.write("Supported Platforms: Linux, Unix, macOS")
    console.write("=" * 43)


@option("main", "c", "View Changelog", "")
def display_changelog(session: MenuSession) -> None:
    console = session.console
    if not CHANGELOG_FILE.is_file():
        console.error(f"Changelog file not found: {CHANGELOG_FILE}")
        return
    console.header("Recent Changes")
    console.write()
    if console.interactive and shutil.which("less"):
        session.runner.run_argv(["less", str(CHANGELOG_FILE)], interactive=True)
        return
    console.write(CHANGELOG_FILE.read_text(encoding="utf-8"))


@option("main", "a", "About This Script", "")
def display_about(session: MenuSession) -> None:
    console = session.console
    console.header("About This Script")
    console.write()
    console.write(f"Script Name: {SCRIPT_NAME}")
    console.write(f"Version: {session.settings.version}")
    console.write(f"Release Date: {SCRIPT_DATE}")
    console.write()
    console.write(f"Product: One Identity {PRODUCT_NAME}")
    console.write("Documentation: https://support.oneidentity.com")
    console.write()
    console.write("Features:")
    for feature in (
        "Git-based policy management",
        "Centralized sudo policy control",
        "Server and plugin administration",
        "Comprehensive logging and auditing",
        "Policy validation and testing",
        "Diagnostic and troubleshooting tools",
    ):
        console.write(f"  - {feature}")
    console.write()
    console.write("Support:")
    console.write(f"  - Script Log: {session.settings.log_file}")
    console.write(f"  - Changelog: {CHANGELOG_FILE}")
    console.write("=" * 43)


# ---------------------------------------------------------------------------
# Menu loop
# ---------------------------------------------------------------------------


class MenuShell:
    def __init__(self, session: MenuSession) -> None:
        self.session = session

    def render_main(self) -> None:
        console = self.session.console
        console.write("=" * 43)
        console.write(f"  {PRODUCT_NAME}")
        console.write(f"  Administration Menu v{self.session.settings.version}")
        console.write("=" * 43)
        console.write()
        console.write("ADMINISTRATIVE FUNCTIONS:")
        for key, menu in MAIN_MENU:
            console.write(f"  {key + ')':<4}{MENU_TITLES[menu]}")
        console.write()
        console.write("INFORMATION:")
        for entry in self.session.registry.options("main"):
            console.write(f"  {entry.key + ')':<4}{entry.label}")
        console.write()
        console.write("  q)  Exit")
        console.write()

    def render_menu(self, menu: str) -> None:
        console = self.session.console
        console.header(MENU_TITLES[menu])
        for entry in self.session.registry.options(menu):
            console.write(entry.render())
        console.write()
        console.write("0)  Return to Main Menu")
        console.write()

    def run_menu(self, menu: str) -> None:
        console = self.session.console
        while True:
            console.clear()
            self.render_menu(menu)
            selection = console.ask("Enter your selection: ")
            if selection == "0":
                return
            if not self.session.dispatch(menu, selection):
                console.error("Invalid selection")
                console.settle(1)

    def run(self) -> int:
        console = self.session.console
        submenus = dict(MAIN_MENU)
        try:
            while True:
                console.clear()
                self.render_main()
                try:
                    selection = console.ask("Enter your selection: ")
                except KeyboardInterrupt:
                    console.write()
                    continue
                if selection.lower() == "q":
                    console.write()
                    console.write("Exiting Safeguard Administration Menu...")
                    self.session.log.log("Script exited by user")
                    return 0
                if selection in submenus:
                    self.run_menu(submenus[selection])
                elif not self.session.dispatch("main", selection):
                    console.error("Invalid selection")
                    console.settle(1)
        except EOFError:
            console.write()
            self.session.log.log("Script exited at end of input")
            return 0
        finally:
            self.session.close()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def check_prerequisites(session: MenuSession, *, require_root: bool = True) -> int:
    """Return ``0`` when the menu may start, otherwise a process exit status."""

    console = session.console
    if require_root and hasattr(os, "geteuid") and os.geteuid() != 0:
        console.error("This script must be run as root")
        console.write("Please run: sudo sudo-menu")
        return 1
    quest_bin = session.settings.quest_bin
    if not quest_bin.is_dir():
        console.error(f"Safeguard for SUDO not found at {quest_bin}")
        console.write("Please install Safeguard for SUDO before running this script.")
        return 1
    missing = session.runner.missing(REQUIRED_TOOLS)
    if missing:
        console.warning(f"Some Safeguard commands not found: {' '.join(missing)}")
        console.write("This may be a plugin-only installation.")
        console.write()
    return 0


def build_settings(parsed: argparse.Namespace) -> MenuSettings:
    return MenuSettings.from_env().with_overrides(
        quest_bin=Path(parsed.quest_bin) if parsed.quest_bin else None,
        workspace_root=Path(parsed.workspace) if parsed.workspace else None,
        log_file=Path(parsed.log_file) if parsed.log_file else None,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args_list = list(sys.argv[1:] if argv is None else argv)
    parser = argparse.ArgumentParser(prog="sudo-menu", description=SCRIPT_NAME)
    parser.add_argument("--workspace", metavar="PATH", help="Policy checkout directory")
    parser.add_argument("--log-file", metavar="PATH", help="Operation log file")
    parser.add_argument("--quest-bin", metavar="PATH", help="Safeguard binaries directory")
    parser.add_argument("--skip-root-check", action="store_true", help="Allow running as a non-root user")
    parser.add_argument("--debug", action="store_true", help="Enable debug diagnostics")
    parsed = parser.parse_args(args_list)

    logging.basicConfig(
        level=logging.DEBUG if parsed.debug else logging.WARNING,
        format="[%(asctime)s] %(levelname)s: %(message)s",
    )

    session = MenuSession(build_settings(parsed))
    status = check_prerequisites(session, require_root=not parsed.skip_root_check)
    if status != 0:
        session.close()
        return status

    session.log.log("=== Safeguard Administration Menu Started ===")
    session.log.log(f"User: {getpass.getuser()}")
    session.log.log(f"Hostname: {socket.gethostname()}")
    return MenuShell(session).run()


if __name__ == "__main__":
    sys.exit(main())
