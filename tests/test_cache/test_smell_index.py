"""Tests for SmellIndex and deterministic smell ids."""

from __future__ import annotations

from ecorefactor.backend.schemas import make_smell_id
from ecorefactor.cache.smell_index import SmellIndex
from ecorefactor.constants import SMELL_ID_HEX_LENGTH, RuleKind
from tests.conftest import make_smell


class TestSmellIds:
    def test_same_smell_same_id_across_detections(self) -> None:
        first = make_smell("/ws/a.py", line=4, column=2)
        second = make_smell("/ws/a.py", line=4, column=2, message="reworded")
        assert first.id == second.id
        assert len(first.id) == SMELL_ID_HEX_LENGTH

    def test_location_and_rule_change_id(self) -> None:
        base = make_smell("/ws/a.py", line=4)
        assert make_smell("/ws/a.py", line=5).id != base.id
        assert make_smell("/ws/b.py", line=4).id != base.id
        assert (
            make_smell("/ws/a.py", rule=RuleKind.NO_SELF_USE, line=4).id
            != base.id
        )

    def test_id_without_occurrence(self) -> None:
        assert make_smell_id("/ws/a.py", "no-self-use", None) == make_smell_id(
            "/ws/a.py", "no-self-use", None
        )


class TestSmellIndex:
    def test_missing_id_is_none(self) -> None:
        assert SmellIndex().by_id("nope") is None

    def test_reindex_keeps_surviving_ids(self) -> None:
        index = SmellIndex()
        kept = make_smell("/ws/a.py", line=1)
        gone = make_smell("/ws/a.py", line=2)
        index.reindex("/ws/a.py", [kept, gone])
        index.reindex("/ws/a.py", [kept, make_smell("/ws/a.py", line=3)])
        assert kept.id in index
        assert gone.id not in index
        assert len(index) == 2

    def test_drop_only_affects_one_path(self) -> None:
        index = SmellIndex()
        a = make_smell("/ws/a.py")
        b = make_smell("/ws/b.py")
        index.reindex("/ws/a.py", [a])
        index.reindex("/ws/b.py", [b])
        index.drop("/ws/a.py")
        assert a.id not in index
        assert index.by_id(b.id) == ("/ws/b.py", b)
        assert len(index) == 1

    def test_rebuild_is_derivable_from_records(self) -> None:
        index = SmellIndex()
        a = make_smell("/ws/a.py")
        index.reindex("/ws/stale.py", [make_smell("/ws/stale.py")])
        index.rebuild([("/ws/a.py", [a])])
        assert len(index) == 1
        assert index.by_id(a.id) == ("/ws/a.py", a)
