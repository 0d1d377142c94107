"""
Unit tests for the LibraryStore: creation, versioned notes, merge, delete and selection.
"""

import itertools
import threading
from datetime import datetime

import pytest

from lecture_scribe.errors import (
    ErrorCategory, InvalidOperationError, RecordNotFoundError, VersionConflictError
)
from lecture_scribe.library_store import LibraryStore, MERGE_SEPARATOR
from lecture_scribe.models import TranscriptDraft


@pytest.fixture
def store():
    """Store with predictable ids and a fixed clock."""
    counter = itertools.count(1)
    return LibraryStore(
        id_factory=lambda: f"rec-{next(counter)}",
        clock=lambda: datetime(2024, 3, 14, 9, 30)
    )


def draft(title: str, content: str = "老師：今天講阿賴耶識。") -> TranscriptDraft:
    return TranscriptDraft(title=title, content=content)


class TestCreate:
    """Test record creation."""

    def test_create_sets_initial_state(self, store):
        record = store.create(draft("第一講", "X"), "印度佛教史")

        assert record.id == "rec-1"
        assert record.title == "第一講"
        assert record.content == "X"
        assert record.course_name == "印度佛教史"
        assert record.timestamp == datetime(2024, 3, 14, 9, 30)
        assert record.latest_version == 0
        assert record.previous_version == 0
        assert record.notes_latest is None
        assert record.notes_previous is None

    def test_create_inserts_newest_first_and_activates(self, store):
        a = store.create(draft("A"), "c")
        b = store.create(draft("B"), "c")
        c = store.create(draft("C"), "c")

        assert [r.id for r in store.records] == [c.id, b.id, a.id]
        assert store.active_record == c
        assert len(store) == 3

    def test_create_ids_are_unique(self):
        store = LibraryStore()
        records = [store.create(draft(f"T{i}"), "c") for i in range(50)]

        assert len({r.id for r in records}) == 50
        assert all(r.latest_version == 0 and r.previous_version == 0 for r in records)

    def test_ids_not_reused_after_delete(self):
        # factory that would hand out the same id again
        ids = iter(["dup", "dup", "fresh"])
        store = LibraryStore(id_factory=lambda: next(ids))

        first = store.create(draft("A"), "c")
        store.delete_many({first.id})
        second = store.create(draft("B"), "c")

        assert first.id == "dup"
        assert second.id == "fresh"


class TestRegenerateNotes:
    """Test the two-slot notes version history."""

    def test_two_regenerations_scenario(self, store):
        record = store.create(draft("A", "X"), "c")

        first = store.regenerate_notes(record.id, "N1")
        assert first.notes_latest == "N1"
        assert first.latest_version == 1
        assert first.notes_previous is None
        assert first.previous_version == 0

        second = store.regenerate_notes(record.id, "N2")
        assert second.notes_latest == "N2"
        assert second.latest_version == 2
        assert second.notes_previous == "N1"
        assert second.previous_version == 1
        assert second.content == "X"

    @pytest.mark.parametrize("n", [1, 2, 5])
    def test_versions_after_n_regenerations(self, store, n):
        record = store.create(draft("A"), "c")
        observed_before = None

        for i in range(1, n + 1):
            observed_before = store.get(record.id).notes_latest
            record = store.regenerate_notes(record.id, f"notes {i}")

        assert record.latest_version == n
        assert record.previous_version == n - 1
        assert record.notes_previous == observed_before

    def test_updated_record_keeps_position(self, store):
        a = store.create(draft("A"), "c")
        b = store.create(draft("B"), "c")
        c = store.create(draft("C"), "c")

        updated = store.regenerate_notes(b.id, "notes")

        assert [r.id for r in store.records] == [c.id, b.id, a.id]
        assert store.records[1] == updated

    def test_active_pointer_follows_update(self, store):
        record = store.create(draft("A"), "c")

        updated = store.regenerate_notes(record.id, "notes")

        assert store.active_record == updated
        assert store.active_record.notes_latest == "notes"

    def test_unknown_id_raises_not_found_and_leaves_library(self, store):
        store.create(draft("A"), "c")
        before = store.records

        with pytest.raises(RecordNotFoundError) as exc_info:
            store.regenerate_notes("missing", "notes")

        assert exc_info.value.category == ErrorCategory.NOT_FOUND
        assert exc_info.value.record_id == "missing"
        assert store.records == before

    def test_expected_version_mismatch_is_refused(self, store):
        record = store.create(draft("A"), "c")
        store.regenerate_notes(record.id, "N1")

        with pytest.raises(VersionConflictError) as exc_info:
            store.regenerate_notes(record.id, "stale", expected_version=0)

        assert exc_info.value.expected == 0
        assert exc_info.value.actual == 1
        assert store.get(record.id).notes_latest == "N1"
        assert store.get(record.id).latest_version == 1

    def test_expected_version_match_applies(self, store):
        record = store.create(draft("A"), "c")

        updated = store.regenerate_notes(record.id, "N1", expected_version=0)

        assert updated.latest_version == 1


class TestDeleteMany:
    """Test batch deletion."""

    def test_delete_removes_and_clears_active(self, store):
        record = store.create(draft("A"), "c")

        removed = store.delete_many({record.id})

        assert removed == [record.id]
        assert record.id not in store
        assert store.active_record is None

    def test_delete_keeps_active_when_not_deleted(self, store):
        a = store.create(draft("A"), "c")
        b = store.create(draft("B"), "c")

        store.delete_many({a.id})

        assert store.active_record == b

    def test_delete_is_idempotent(self, store):
        a = store.create(draft("A"), "c")
        b = store.create(draft("B"), "c")

        store.delete_many({a.id})
        after_first = store.records
        removed_again = store.delete_many({a.id})

        assert removed_again == []
        assert store.records == after_first == [b]

    def test_delete_ignores_unknown_ids(self, store):
        a = store.create(draft("A"), "c")

        removed = store.delete_many({"nope", a.id})

        assert removed == [a.id]
        assert len(store) == 0

    def test_delete_clears_selection(self, store):
        a = store.create(draft("A"), "c")
        b = store.create(draft("B"), "c")
        store.select_toggle(a.id)
        store.select_toggle(b.id)

        store.delete_many({a.id})

        assert store.selection == frozenset()


class TestMerge:
    """Test merging records into a new derived record."""

    def test_merge_scenario(self, store):
        a = store.create(draft("title a", "content a"), "印度佛教史")
        b = store.create(draft("title b", "content b"), "禪修專題")
        c = store.create(draft("title c", "content c"), "禪修專題")
        store.select_toggle(a.id)
        store.select_toggle(c.id)

        d = store.merge([a.id, c.id])

        assert [r.id for r in store.records] == [d.id, c.id, b.id, a.id]
        assert d.content == "title a\n\ncontent a" + MERGE_SEPARATOR + "title c\n\ncontent c"
        assert d.course_name == "印度佛教史"
        assert d.latest_version == 0
        assert d.previous_version == 0
        assert d.notes_latest is None
        assert store.active_record == d
        assert store.selection == frozenset()

    def test_merge_respects_caller_order(self, store):
        a = store.create(draft("A", "1"), "first")
        b = store.create(draft("B", "2"), "second")

        merged = store.merge([b.id, a.id])

        assert merged.content.index("B") < merged.content.index("A")
        assert merged.course_name == "second"
        assert merged.title == "B + A"

    def test_merge_keeps_sources(self, store):
        a = store.create(draft("A"), "c")
        b = store.create(draft("B"), "c")
        store.regenerate_notes(a.id, "notes")

        store.merge([a.id, b.id])

        assert a.id in store
        assert b.id in store
        assert store.get(a.id).notes_latest == "notes"

    @pytest.mark.parametrize("ids", [[], ["only"]])
    def test_merge_needs_two_ids(self, store, ids):
        store.create(draft("A"), "c")
        if ids:
            ids = [store.records[0].id]
        before = store.records

        with pytest.raises(InvalidOperationError) as exc_info:
            store.merge(ids)

        assert exc_info.value.category == ErrorCategory.INVALID_OPERATION
        assert store.records == before

    def test_merge_with_unresolvable_id_is_invalid(self, store):
        a = store.create(draft("A"), "c")
        before = store.records

        with pytest.raises(InvalidOperationError):
            store.merge([a.id, "missing"])

        assert store.records == before

    def test_merge_rejects_duplicate_ids(self, store):
        a = store.create(draft("A"), "c")

        with pytest.raises(InvalidOperationError):
            store.merge([a.id, a.id])

        assert len(store) == 1


class TestSelection:
    """Test selection toggling and the active pointer."""

    def test_select_toggle(self, store):
        assert store.select_toggle("x") == frozenset({"x"})
        assert store.select_toggle("y") == frozenset({"x", "y"})
        assert store.select_toggle("x") == frozenset({"y"})

    def test_selection_order_is_kept(self, store):
        store.select_toggle("c")
        store.select_toggle("a")
        store.select_toggle("b")

        assert store.selection_order == ["c", "a", "b"]

    def test_selection_is_independent_of_library(self, store):
        store.select_toggle("not-a-record")

        assert len(store) == 0
        assert "not-a-record" in store.selection

    def test_set_active(self, store):
        a = store.create(draft("A"), "c")
        store.create(draft("B"), "c")

        assert store.set_active(a.id) == a
        assert store.active_id == a.id

    def test_set_active_unknown_raises(self, store):
        with pytest.raises(RecordNotFoundError):
            store.set_active("missing")

    def test_get_unknown_raises(self, store):
        assert store.find("missing") is None
        with pytest.raises(RecordNotFoundError):
            store.get("missing")

    def test_records_is_a_snapshot(self, store):
        store.create(draft("A"), "c")
        snapshot = store.records
        snapshot.clear()

        assert len(store) == 1

    def test_len_and_active_id_wait_for_writer(self, store):
        record = store.create(draft("A"), "c")
        results = []
        reader = threading.Thread(target=lambda: results.append((len(store), store.active_id)))

        store._lock.acquire()
        try:
            reader.start()
            reader.join(timeout=0.05)
            assert reader.is_alive()
            assert results == []
        finally:
            store._lock.release()

        reader.join(timeout=1)
        assert results == [(1, record.id)]
