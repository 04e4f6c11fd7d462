"""Terminal implementation of EditorPlatform used by the CLI.

Diff views are rendered as unified diffs on stdout; "closing" a view
just forgets it. Notifications go to stderr so stdout stays a clean
diff/report stream.
"""

from __future__ import annotations

import difflib
import logging
import sys
from pathlib import Path
from typing import TextIO

logger = logging.getLogger(__name__)


class TerminalEditor:
    def __init__(
        self,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self._out = out or sys.stdout
        self._err = err or sys.stderr
        self._open: set[tuple[str, str]] = set()

    async def open_diff(
        self, original: str, refactored: str, title: str
    ) -> None:
        before = _read_lines(original)
        after = _read_lines(refactored)
        print(f"=== {title} ===", file=self._out)
        self._out.writelines(
            difflib.unified_diff(
                before, after, fromfile=original, tofile=refactored
            )
        )
        print(file=self._out)
        self._open.add((original, refactored))

    async def close_diff(self, original: str, refactored: str) -> bool:
        if (original, refactored) not in self._open:
            return False
        self._open.discard((original, refactored))
        return True

    def show_info(self, message: str) -> None:
        print(f"[info] {message}", file=self._err)

    def show_warning(self, message: str) -> None:
        print(f"[warning] {message}", file=self._err)

    def show_error(self, message: str) -> None:
        print(f"[error] {message}", file=self._err)

    def append_output(self, channel: str, line: str) -> None:
        logger.info("[%s] %s", channel, line)


def _read_lines(path: str) -> list[str]:
    try:
        return Path(path).read_text(encoding="utf-8").splitlines(keepends=True)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("event=diff_read_failed path=%s error=%s", path, exc)
        return []
