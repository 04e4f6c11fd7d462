"""CLI entry point: ``ecorefactor detect``, ``refactor``, ``status`` and friends."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Callable
from pathlib import Path

from ecorefactor import __version__
from ecorefactor.cache.file_cache import FileRecord
from ecorefactor.config import Settings
from ecorefactor.constants import SessionState
from ecorefactor.editor.terminal import TerminalEditor
from ecorefactor.extension import Extension
from ecorefactor.logging_config import setup_logging
from ecorefactor.services.status_projector import status_label


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"ecorefactor {__version__}")
        return

    if args.command is None:
        parser.print_help()
        return

    settings = Settings()
    setup_logging("DEBUG" if args.verbose else settings.log_level)
    ok = asyncio.run(_dispatch(args, settings))
    if not ok:
        sys.exit(1)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ecorefactor",
        description=(
            "Detect energy-inefficient code smells and review "
            "backend-computed refactorings."
        ),
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="command")

    detect = sub.add_parser(
        "detect",
        help="Detect smells in a file or folder",
    )
    detect.add_argument(
        "path",
        type=str,
        help="Python file or folder to analyze",
    )

    refactor = sub.add_parser(
        "refactor",
        help="Refactor one smell and review the diff",
    )
    refactor.add_argument(
        "smell_id",
        type=str,
        help="Smell id as printed by 'detect'",
    )
    refactor.add_argument(
        "--all",
        action="store_true",
        help="Refactor every smell of the same rule in the file",
    )
    refactor.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Apply without prompting",
    )

    status = sub.add_parser(
        "status",
        help="Show cached analysis status",
    )
    status.add_argument(
        "path",
        nargs="?",
        default=None,
        help="File or smell id to report on (default: every cached file)",
    )

    sub.add_parser("wipe-cache", help="Clear every cached smell")
    sub.add_parser(
        "export-metrics",
        help="Write metrics-data.json into the workspace",
    )

    configure = sub.add_parser(
        "configure",
        help="Set the workspace folder used for refactoring",
    )
    configure.add_argument(
        "path",
        type=str,
        help="Folder containing Python files",
    )

    reset = sub.add_parser(
        "reset",
        help="Forget the workspace and all analysis data",
    )
    reset.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Reset without prompting",
    )

    return parser


async def _dispatch(
    args: argparse.Namespace,
    settings: Settings,
    *,
    editor: TerminalEditor | None = None,
    confirm: Callable[[str], bool] | None = None,
) -> bool:
    """Run one command against a freshly activated extension."""
    ext = Extension(settings, editor or TerminalEditor())
    ask = confirm or _confirm
    await ext.activate(background=False)
    try:
        if args.command in ("detect", "refactor"):
            await ext.health.poll_once()
        if args.command == "detect":
            return _print_records(ext, await ext.detect(args.path))
        if args.command == "refactor":
            return await _run_refactor(ext, args, ask)
        if args.command == "status":
            return await _print_status(ext, args.path)
        if args.command == "wipe-cache":
            await ext.wipe_cache()
            return True
        if args.command == "export-metrics":
            return await ext.export_metrics() is not None
        if args.command == "configure":
            return await ext.configure_workspace(args.path) is not None
        if args.command == "reset":
            if not args.yes and not ask(
                "Reset the workspace configuration? "
                "All analysis data will be lost."
            ):
                return False
            await ext.reset_configuration()
            print("Workspace configuration reset.")
            return True
        return False
    finally:
        await ext.deactivate()


async def _run_refactor(
    ext: Extension,
    args: argparse.Namespace,
    ask: Callable[[str], bool],
) -> bool:
    if args.all:
        session = await ext.refactor_all(args.smell_id)
    else:
        session = await ext.refactor(args.smell_id)
    if session is None or session.state is not SessionState.AWAITING_REVIEW:
        return False
    if args.yes or ask("Apply this refactoring?"):
        return await ext.accept() is not None
    return await ext.reject() is not None


def _print_records(ext: Extension, records: list[FileRecord] | None) -> bool:
    if records is None:
        return False
    for record in records:
        print(f"{record.path}: {status_label(ext.file_status(record.path))}")
        for smell in record.smells:
            occ = smell.primary_occurrence
            line = occ.line if occ else "?"
            acronym = ext.filters.acronym_for(smell.rule)
            print(f"  {smell.id}  {acronym:<5} line {line}  {smell.message}")
    return True


async def _print_status(ext: Extension, path: str | None) -> bool:
    if path:
        smell_status = ext.smell_status(path)
        if smell_status is not None:
            print(f"{path}: {status_label(smell_status)}")
            return True
    paths = [str(Path(path).resolve())] if path else ext.cache.paths
    if not paths:
        print("No files analyzed yet.")
    for p in paths:
        # Deleted since it was analysed
        if not Path(p).exists() and await ext.on_file_deleted(p):
            print(f"{p}: removed from cache (file deleted)")
            continue
        record = ext.cache.get(p)
        count = len(record.smells) if record else 0
        print(f"{p}: {status_label(ext.file_status(p))} ({count} smells)")
    return True


def _confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


if __name__ == "__main__":
    main()
