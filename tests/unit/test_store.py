# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Unit tests for the append-only audit store."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from nexus_audit.audit.store import AuditFilter, AuditStore
from nexus_audit.core.constants import PROTECTED_SEVERITIES, Severity
from nexus_audit.core.exceptions import InvalidFilterError, StorageError

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# append / get_by_id
# ---------------------------------------------------------------------------


class TestAppend:
    async def test_append_returns_increasing_sequence(self, store, make_event) -> None:
        first = await store.append(make_event())
        second = await store.append(make_event())
        assert second > first

    async def test_appended_event_is_immediately_visible(self, store, make_event) -> None:
        event = make_event("user_created", actor_id="u-1", metadata={"role": "admin"})
        await store.append(event)

        loaded = await store.get_by_id(event.event_id)
        assert loaded is not None
        assert loaded.action == "user_created"
        assert loaded.actor_id == "u-1"
        assert loaded.metadata == {"role": "admin"}
        assert loaded.seq is not None
        assert loaded.created_at == event.created_at

    async def test_get_by_id_not_found(self, store) -> None:
        assert await store.get_by_id("missing") is None

    async def test_nested_metadata_round_trip(self, store, make_event) -> None:
        event = make_event(
            "task_updated",
            metadata={"changes": {"status": {"from": "todo", "to": "done"}}, "ids": [1, 2]},
        )
        await store.append(event)
        loaded = await store.get_by_id(event.event_id)
        assert loaded.metadata["changes"]["status"]["to"] == "done"
        assert loaded.metadata["ids"] == [1, 2]


# ---------------------------------------------------------------------------
# query
# ---------------------------------------------------------------------------


class TestQuery:
    async def test_newest_first(self, store, make_event) -> None:
        for i in range(5):
            await store.append(make_event(created_at=T0 + timedelta(minutes=i)))

        records, total = await store.query(page_size=10)
        assert total == 5
        stamps = [r.created_at for r in records]
        assert stamps == sorted(stamps, reverse=True)

    async def test_ties_broken_by_insertion_order(self, store, make_event) -> None:
        a = make_event(created_at=T0)
        b = make_event(created_at=T0)
        await store.append(a)
        await store.append(b)

        records, _ = await store.query()
        assert [r.event_id for r in records] == [b.event_id, a.event_id]

    async def test_filter_by_action(self, store, make_event) -> None:
        await store.append(make_event("login_success"))
        await store.append(make_event("login_failed", severity=Severity.MEDIUM))

        records, total = await store.query(AuditFilter(action="login_failed"))
        assert total == 1
        assert records[0].action == "login_failed"

    async def test_filter_by_severity_and_actor(self, store, make_event) -> None:
        await store.append(make_event(severity=Severity.HIGH, actor_id="u-1"))
        await store.append(make_event(severity=Severity.HIGH, actor_id="u-2"))
        await store.append(make_event(severity=Severity.LOW, actor_id="u-1"))

        records, total = await store.query(
            AuditFilter(severity=Severity.HIGH, actor_id="u-1")
        )
        assert total == 1
        assert records[0].severity == Severity.HIGH
        assert records[0].actor_id == "u-1"

    async def test_filter_by_inclusive_date_range(self, store, make_event) -> None:
        for day in range(1, 6):
            await store.append(make_event(created_at=datetime(2026, 1, day, tzinfo=UTC)))

        records, total = await store.query(
            AuditFilter(
                start=datetime(2026, 1, 2, tzinfo=UTC),
                end=datetime(2026, 1, 4, tzinfo=UTC),
            )
        )
        assert total == 3
        assert {r.created_at.day for r in records} == {2, 3, 4}

    async def test_search_is_case_insensitive_substring(self, store, make_event) -> None:
        await store.append(make_event(description="User Alice logged in"))
        await store.append(make_event(description="Task created for Bob"))

        records, total = await store.query(AuditFilter(search="alice"))
        assert total == 1
        assert "Alice" in records[0].description

    async def test_search_folds_non_ascii_case(self, store, make_event) -> None:
        await store.append(make_event(description="Document ÉTAT uploaded"))
        await store.append(make_event(description="Document draft uploaded"))

        records, total = await store.query(AuditFilter(search="état"))
        assert total == 1
        assert "ÉTAT" in records[0].description

    async def test_search_treats_wildcards_literally(self, store, make_event) -> None:
        await store.append(make_event(description="progress 100% done"))
        await store.append(make_event(description="progress 100 done"))

        _, total = await store.query(AuditFilter(search="100%"))
        assert total == 1

        await store.append(make_event(description="plan_b ready"))
        await store.append(make_event(description="planxb ready"))
        _, total = await store.query(AuditFilter(search="plan_b"))
        assert total == 1

    async def test_filters_are_a_conjunction(self, store, make_event) -> None:
        await store.append(make_event("task_deleted", severity=Severity.MEDIUM, actor_id="u-1"))
        await store.append(make_event("task_deleted", severity=Severity.MEDIUM, actor_id="u-2"))
        await store.append(make_event("task_created", severity=Severity.MEDIUM, actor_id="u-1"))
        await store.append(make_event("task_deleted", severity=Severity.LOW, actor_id="u-1"))

        criteria = AuditFilter(action="task_deleted", severity=Severity.MEDIUM, actor_id="u-1")
        records, total = await store.query(criteria)
        assert total == 1
        r = records[0]
        assert (r.action, r.severity, r.actor_id) == ("task_deleted", Severity.MEDIUM, "u-1")

    async def test_pagination_pages_do_not_overlap(self, store, make_event) -> None:
        for i in range(10):
            await store.append(make_event(created_at=T0 + timedelta(seconds=i)))

        page1, total = await store.query(page=1, page_size=4)
        page2, _ = await store.query(page=2, page_size=4)
        page3, _ = await store.query(page=3, page_size=4)

        assert total == 10
        assert (len(page1), len(page2), len(page3)) == (4, 4, 2)
        ids = [r.event_id for r in page1 + page2 + page3]
        assert len(set(ids)) == 10

    @pytest.mark.parametrize(("page", "page_size"), [(0, 10), (1, 0), (1, 201)])
    async def test_rejects_out_of_range_paging(self, store, page, page_size) -> None:
        with pytest.raises(InvalidFilterError):
            await store.query(page=page, page_size=page_size)


# ---------------------------------------------------------------------------
# distinct_actions / stats
# ---------------------------------------------------------------------------


class TestDistinctActions:
    async def test_empty_store(self, store) -> None:
        assert await store.distinct_actions() == set()

    async def test_returns_present_actions_idempotently(self, store, make_event) -> None:
        await store.append(make_event("login_success"))
        await store.append(make_event("login_success"))
        await store.append(make_event("document_uploaded"))

        first = await store.distinct_actions()
        second = await store.distinct_actions()
        assert first == second == {"login_success", "document_uploaded"}


class TestStats:
    async def test_counts_since_cutoff(self, store, make_event) -> None:
        now = datetime.now(UTC)
        await store.append(make_event("login_success", created_at=now))
        await store.append(make_event("login_success", created_at=now))
        await store.append(
            make_event("user_deleted", severity=Severity.HIGH, created_at=now)
        )
        await store.append(make_event("login_success", created_at=now - timedelta(days=60)))

        stats = await store.stats(now - timedelta(days=30))
        assert stats.action_counts == [("login_success", 2), ("user_deleted", 1)]
        assert dict(stats.severity_counts) == {"low": 2, "high": 1}
        assert stats.daily_counts == [(now.strftime("%Y-%m-%d"), 3)]
        assert stats.total == 3


# ---------------------------------------------------------------------------
# delete_older_than
# ---------------------------------------------------------------------------


class TestDeleteOlderThan:
    async def test_deletes_only_old_unprotected(self, store, make_event) -> None:
        cutoff = T0
        old_low = make_event(created_at=cutoff - timedelta(days=1))
        old_critical = make_event(severity=Severity.CRITICAL, created_at=cutoff - timedelta(days=400))
        recent = make_event(created_at=cutoff + timedelta(seconds=1))
        for e in (old_low, old_critical, recent):
            await store.append(e)

        deleted = await store.delete_older_than(cutoff, PROTECTED_SEVERITIES)

        assert deleted == 1
        assert await store.get_by_id(old_low.event_id) is None
        assert await store.get_by_id(old_critical.event_id) is not None
        assert await store.get_by_id(recent.event_id) is not None

    async def test_without_protection_deletes_everything_old(self, store, make_event) -> None:
        await store.append(make_event(severity=Severity.CRITICAL, created_at=T0 - timedelta(days=1)))
        assert await store.delete_older_than(T0) == 1

    async def test_nothing_to_delete_returns_zero(self, store) -> None:
        assert await store.delete_older_than(T0, PROTECTED_SEVERITIES) == 0


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestStorageFailures:
    async def test_closed_connection_raises_storage_error(self, tmp_path, make_event) -> None:
        import aiosqlite

        from nexus_audit.storage.migrations import run_migrations

        db = await aiosqlite.connect(str(tmp_path / "closed.db"))
        db.row_factory = aiosqlite.Row
        await run_migrations(db)
        await db.close()

        store = AuditStore(db)
        with pytest.raises(StorageError):
            await store.append(make_event())
        with pytest.raises(StorageError):
            await store.query()

    async def test_missing_table_raises_storage_error(self, tmp_path) -> None:
        import aiosqlite

        db = await aiosqlite.connect(str(tmp_path / "empty.db"))
        try:
            with pytest.raises(StorageError):
                await AuditStore(db).distinct_actions()
        finally:
            await db.close()
