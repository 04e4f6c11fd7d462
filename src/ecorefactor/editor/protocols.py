"""Editor-platform collaborator interface.

Implementations satisfy this protocol structurally. The refactor
controller and the diff tracker only ever talk to the editor through
these methods.
"""

from typing import Protocol


class EditorPlatform(Protocol):
    async def open_diff(
        self, original: str, refactored: str, title: str
    ) -> None: ...

    async def close_diff(self, original: str, refactored: str) -> bool:
        """Close any view showing this pair. False if none was open."""
        ...

    def show_info(self, message: str) -> None: ...
    def show_warning(self, message: str) -> None: ...
    def show_error(self, message: str) -> None: ...
    def append_output(self, channel: str, line: str) -> None: ...
