"""Accumulated energy-savings metrics per file and per rule."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ecorefactor.cache.fingerprint import normalize_path
from ecorefactor.constants import METRICS_EXPORT_FILENAME, METRICS_KEY
from ecorefactor.repositories.protocols import WorkspaceStore
from ecorefactor.resilience.errors import FilesystemError

logger = logging.getLogger(__name__)


class MetricsService:
    """Stores ``{path: {total_saved, by_rule: {symbol: saved}}}``."""

    def __init__(self, store: WorkspaceStore) -> None:
        self._store = store

    async def add_savings(
        self, path: str, energy_saved: float, rule_symbol: str
    ) -> None:
        metrics: dict[str, Any] = await self._store.get(METRICS_KEY, {})
        key = normalize_path(path)
        entry = metrics.setdefault(key, {"total_saved": 0.0, "by_rule": {}})
        entry["total_saved"] = entry.get("total_saved", 0.0) + energy_saved
        by_rule: dict[str, float] = entry.setdefault("by_rule", {})
        by_rule[rule_symbol] = by_rule.get(rule_symbol, 0.0) + energy_saved
        await self._store.set(METRICS_KEY, metrics)
        logger.info(
            "event=metrics_updated path=%s rule=%s saved=%s",
            key,
            rule_symbol,
            energy_saved,
        )

    async def get_all(self) -> dict[str, Any]:
        return await self._store.get(METRICS_KEY, {})

    async def total_saved(self, under: str | None = None) -> float:
        """Sum of savings, optionally restricted to paths under a folder."""
        metrics = await self.get_all()
        prefix = normalize_path(under) if under else None
        return sum(
            entry.get("total_saved", 0.0)
            for path, entry in metrics.items()
            if prefix is None or path == prefix or path.startswith(prefix + "/")
            or path.startswith(prefix + "\\")
        )

    async def export(self, workspace_path: str) -> Path | None:
        """Write metrics JSON next to the workspace. None if nothing to export."""
        metrics = await self.get_all()
        if not metrics:
            return None
        root = Path(workspace_path)
        target_dir = root if root.is_dir() else root.parent
        target = target_dir / METRICS_EXPORT_FILENAME
        try:
            target.write_text(json.dumps(metrics, indent=2), encoding="utf-8")
        except OSError as exc:
            raise FilesystemError(
                f"cannot write {target}: {exc.strerror or exc}",
                user_message="Failed to export metrics data.",
            ) from exc
        logger.info("event=metrics_exported path=%s", target)
        return target

    async def clear(self) -> None:
        await self._store.delete(METRICS_KEY)
