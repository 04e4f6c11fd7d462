"""Tests for MetricsService: per-file energy savings."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ecorefactor.services.metrics_service import MetricsService
from tests.conftest import Workspace


@pytest.mark.asyncio
async def test_savings_accumulate_per_rule(
    metrics: MetricsService, workspace: Workspace
) -> None:
    await metrics.add_savings(workspace.a, 0.5, "too-many-arguments")
    await metrics.add_savings(workspace.a, 0.25, "too-many-arguments")
    await metrics.add_savings(workspace.a, 1.0, "use-a-generator")

    data = await metrics.get_all()
    entry = data[workspace.a]
    assert entry["total_saved"] == pytest.approx(1.75)
    assert entry["by_rule"] == {
        "too-many-arguments": pytest.approx(0.75),
        "use-a-generator": pytest.approx(1.0),
    }


@pytest.mark.asyncio
async def test_total_saved_under_folder(
    metrics: MetricsService, workspace: Workspace, tmp_path: Path
) -> None:
    outside = str(tmp_path / "elsewhere" / "z.py")
    await metrics.add_savings(workspace.a, 0.5, "too-many-arguments")
    await metrics.add_savings(workspace.b, 0.5, "no-self-use")
    await metrics.add_savings(outside, 2.0, "no-self-use")

    assert await metrics.total_saved() == pytest.approx(3.0)
    assert await metrics.total_saved(str(workspace.root)) == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_export_writes_json(
    metrics: MetricsService, workspace: Workspace
) -> None:
    await metrics.add_savings(workspace.a, 0.5, "too-many-arguments")

    target = await metrics.export(str(workspace.root))

    assert target == workspace.root / "metrics-data.json"
    exported = json.loads(target.read_text(encoding="utf-8"))
    assert exported[workspace.a]["total_saved"] == 0.5


@pytest.mark.asyncio
async def test_export_next_to_file(
    metrics: MetricsService, workspace: Workspace
) -> None:
    await metrics.add_savings(workspace.a, 0.5, "too-many-arguments")
    target = await metrics.export(workspace.a)
    assert target is not None
    assert target.parent == Path(workspace.a).parent


@pytest.mark.asyncio
async def test_export_nothing(
    metrics: MetricsService, workspace: Workspace
) -> None:
    assert await metrics.export(str(workspace.root)) is None
    assert not (workspace.root / "metrics-data.json").exists()


@pytest.mark.asyncio
async def test_clear(metrics: MetricsService, workspace: Workspace) -> None:
    await metrics.add_savings(workspace.a, 0.5, "too-many-arguments")
    await metrics.clear()
    assert await metrics.get_all() == {}
