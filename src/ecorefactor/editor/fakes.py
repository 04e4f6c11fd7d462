"""In-memory fake editor for testing."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class FakeEditor:
    """Records every interaction; diff views are a set of URI pairs."""

    open_views: set[tuple[str, str]] = field(
        default_factory=lambda: set[tuple[str, str]]()
    )
    titles: list[str] = field(default_factory=lambda: list[str]())
    infos: list[str] = field(default_factory=lambda: list[str]())
    warnings: list[str] = field(default_factory=lambda: list[str]())
    errors: list[str] = field(default_factory=lambda: list[str]())
    output: list[tuple[str, str]] = field(
        default_factory=lambda: list[tuple[str, str]]()
    )
    fail_on_close: bool = False

    async def open_diff(
        self, original: str, refactored: str, title: str
    ) -> None:
        self.open_views.add((original, refactored))
        self.titles.append(title)

    async def close_diff(self, original: str, refactored: str) -> bool:
        if self.fail_on_close:
            raise RuntimeError("editor refused to close view")
        if (original, refactored) not in self.open_views:
            return False
        self.open_views.discard((original, refactored))
        return True

    def show_info(self, message: str) -> None:
        self.infos.append(message)

    def show_warning(self, message: str) -> None:
        self.warnings.append(message)

    def show_error(self, message: str) -> None:
        self.errors.append(message)

    def append_output(self, channel: str, line: str) -> None:
        self.output.append((channel, line))
