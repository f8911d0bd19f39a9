"""Terminal prompts, confirmations and severity output for the menu."""

from __future__ import annotations

import os
import sys
import time
from typing import Callable, Optional, Sequence, TextIO

from sudo_menu.config import CANCEL_SENTINEL
from sudo_menu.operation_log import OperationLog


class Colors:
    """ANSI color codes."""

    RESET = "\033[0m"
    RED = "\033[0;31m"
    GREEN = "\033[0;32m"
    YELLOW = "\033[1;33m"


def _supports_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class Console:
    """Operator-facing I/O; severity messages are mirrored to the operation log."""

    def __init__(
        self,
        log: OperationLog,
        *,
        input_func: Callable[[str], str] = input,
        output: Optional[TextIO] = None,
        color: Optional[bool] = None,
        interactive: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.log = log
        self._input = input_func
        self._output = output
        self._color = color
        self.interactive = interactive
        self._sleep = sleep

    @property
    def output(self) -> TextIO:
        return self._output or sys.stdout

    def _paint(self, color: str, text: str) -> str:
        enabled = self._color if self._color is not None else _supports_color(self.output)
        return f"{color}{text}{Colors.RESET}" if enabled else text

    # -------------------- output --------------------------------
    def write(self, text: str = "") -> None:
        self.output.write(text + "\n")
        self.output.flush()

    def header(self, text: str) -> None:
        self.write()
        self.write("=" * 43)
        self.write(f"  {text}")
        self.write("=" * 43)

    def error(self, message: str) -> None:
        self.write(self._paint(Colors.RED, f"ERROR: {message}"))
        self.log.error(message)

    def success(self, message: str) -> None:
        self.write(self._paint(Colors.GREEN, f"SUCCESS: {message}"))
        self.log.success(message)

    def warning(self, message: str) -> None:
        self.write(self._paint(Colors.YELLOW, f"WARNING: {message}"))
        self.log.warning(message)

    def clear(self) -> None:
        if self.interactive and _supports_color(self.output):
            self.output.write("\033[H\033[2J")
            self.output.flush()

    def settle(self, seconds: float) -> None:
        if self.interactive and seconds > 0:
            self._sleep(seconds)

    # -------------------- input ---------------------------------
    def ask(self, prompt: str) -> str:
        self.output.flush()
        return self._input(prompt).strip()

    def pause(self) -> None:
        if not self.interactive:
            return
        self.write()
        self.ask("Press [ENTER] to continue...")

    def prompt(
        self,
        prompt: str,
        *,
        allow_empty: bool = False,
        allow_cancel: bool = False,
    ) -> Optional[str]:
        """Read a value; ``None`` means the operator entered the cancel sentinel."""

        suffix = f" (or '{CANCEL_SENTINEL}' to cancel): " if allow_cancel else ": "
        while True:
            value = self.ask(prompt + suffix)
            if allow_cancel and value == CANCEL_SENTINEL:
                return None
            if value or allow_empty:
                return value
            self.error("Input cannot be empty. Please try again.")

    def confirm(self, action: str) -> bool:
        self.write()
        response = self.ask(f"Are you sure you want to {action}? (yes/no): ")
        if response.lower() in {"yes", "y"}:
            return True
        self.warning("Action cancelled by user")
        return False

    def choose(self, items: Sequence[str], prompt: str = "Enter your selection") -> Optional[int]:
        """Show a numbered list and return the chosen index, ``None`` on cancel."""

        for index, item in enumerate(items, start=1):
            self.write(f"{index}) {item}")
        self.write()
        self.write(f"{CANCEL_SENTINEL}) Cancel")
        self.write()
        selection = self.ask(f"{prompt}: ")
        if selection == CANCEL_SENTINEL:
            return None
        if not selection.isdigit() or not 1 <= int(selection) <= len(items):
            self.error("Invalid selection")
            return None
        return int(selection) - 1


__all__ = ["Colors", "Console"]
