"""Editor-platform collaborator: protocol, terminal host, test fake."""

from ecorefactor.editor.fakes import FakeEditor
from ecorefactor.editor.protocols import EditorPlatform
from ecorefactor.editor.terminal import TerminalEditor

__all__ = ["EditorPlatform", "FakeEditor", "TerminalEditor"]
