"""Interactive editor capability used for policy and settings files."""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Protocol

LOGGER = logging.getLogger("sudo_menu.editor")


class EditorError(RuntimeError):
    """Raised when the configured editor cannot be started."""


class Editor(Protocol):
    def edit(self, path: Path) -> None:
        """Open *path* and block until the operator closes it."""


class TerminalEditor:
    """Run the operator's editor attached to the current terminal."""

    def __init__(self, command: str) -> None:
        self._argv: List[str] = shlex.split(command) or ["vi"]

    @property
    def argv(self) -> List[str]:
        return list(self._argv)

    def edit(self, path: Path) -> None:
        argv = [*self._argv, str(path)]
        LOGGER.debug("Opening editor: %s", argv)
        try:
            subprocess.run(argv, check=False)
        except FileNotFoundError as exc:
            raise EditorError(f"Editor not found: {self._argv[0]}") from exc
        except OSError as exc:
            raise EditorError(f"Could not start editor {self._argv[0]}: {exc}") from exc


__all__ = ["Editor", "EditorError", "TerminalEditor"]
