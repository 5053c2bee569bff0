"""
Unit tests for the local draft store.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from progress_engine.core.cache.drafts import DraftStore
from progress_engine.core.exceptions import StoreClosedError


@pytest.mark.unit
class TestDraftStore:
    def test_save_and_get(self, drafts, wall_clock):
        # Act
        drafts.save("S1M1B2", {"notes": "half done"})

        # Assert
        draft = drafts.get("S1M1B2")
        assert draft.data == {"notes": "half done"}
        assert draft.saved_at == wall_clock.now

    def test_save_copies_input(self, drafts):
        workspace = {"notes": "v1"}
        drafts.save("S1M1B2", workspace)

        workspace["notes"] = "changed"

        assert drafts.get("S1M1B2").data["notes"] == "v1"

    def test_clear(self, drafts):
        drafts.save("S1M1B2", {"notes": "x"})

        assert drafts.clear("S1M1B2") is True
        assert drafts.clear("S1M1B2") is False
        assert drafts.get("S1M1B2") is None

    def test_reconcile_overwrite(self, drafts):
        # Arrange
        drafts.save("S1M1B2", {"notes": "local", "answer": "draft"})

        # Act
        draft = drafts.reconcile("S1M1B2", {"answer": "confirmed"})

        # Assert
        assert draft.data == {"answer": "confirmed"}

    def test_reconcile_merge_keeps_local_only_fields(self, drafts, wall_clock):
        # Arrange
        drafts.save("S1M1B2", {"notes": "local", "answer": "draft"})
        wall_clock.advance(minutes=5)

        # Act
        draft = drafts.reconcile("S1M1B2", {"answer": "confirmed"}, merge=True)

        # Assert
        assert draft.data == {"notes": "local", "answer": "confirmed"}
        assert draft.saved_at == wall_clock.now

    def test_reconcile_merge_without_draft_creates_one(self, drafts):
        draft = drafts.reconcile("S1M1B3", {"answer": "confirmed"}, merge=True)

        assert draft.data == {"answer": "confirmed"}
        assert drafts.entity_ids() == ["S1M1B3"]

    def test_to_dict(self, drafts, wall_clock):
        draft = drafts.save("S1M1", {"notes": "x"})

        assert draft.to_dict() == {
            "entity_id": "S1M1",
            "data": {"notes": "x"},
            "saved_at": wall_clock.now.isoformat(),
        }

    def test_closed_store_refuses_use(self, drafts):
        drafts.save("S1M1B1", {})
        drafts.close()

        assert drafts.closed
        with pytest.raises(StoreClosedError):
            drafts.save("S1M1B1", {})

    def test_stores_are_independent(self, wall_clock):
        first = DraftStore(clock=wall_clock)
        second = DraftStore(clock=lambda: wall_clock.now + timedelta(hours=1))

        first.save("S1M1B1", {"a": 1})

        assert second.get("S1M1B1") is None
        assert len(first) == 1


@pytest.mark.unit
class TestDraftStoreConcurrency:
    def test_concurrent_save_reconcile_clear(self, wall_clock):
        # Arrange
        store = DraftStore(clock=wall_clock)

        def worker(bite_number: int) -> None:
            entity_id = f"S1M1B{bite_number}"
            for i in range(200):
                store.save(entity_id, {"notes": f"v{i}", "cursor": i})
                store.reconcile(entity_id, {"cursor": i + 1}, merge=True)
                store.get(entity_id)
            store.clear(entity_id)
            store.save(entity_id, {"notes": "final"})

        # Act
        with ThreadPoolExecutor(max_workers=5) as pool:
            list(pool.map(worker, range(1, 6)))

        # Assert
        assert sorted(store.entity_ids()) == [f"S1M1B{n}" for n in range(1, 6)]
        assert all(store.get(e).data == {"notes": "final"} for e in store.entity_ids())
