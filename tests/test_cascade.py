"""Tests for visit group resolution and cascade cancellation."""

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.booking.cascade import (
    CancelReason,
    CascadeExecutor,
    CascadeResolver,
    CascadeResult,
    history_key,
)
from app.booking.ports import ArchiveBooking, BookingWrite, HistoryUpsert
from app.models.booking import Booking, BookingStatus, CustomerHistoryEntry
from app.scheduling.errors import BatchCommitFailure
from app.scheduling.records import BookingRecord
from app.scheduling.types import GroupSource
from app.services.booking_store import SqlBookingStore

SITE = "site-1"
DAY = date(2030, 6, 3)
CREATED = datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc)


class MemoryStore:
    """In-memory booking store with the same contract as SqlBookingStore."""

    def __init__(self, records: list[BookingRecord], fail_commit: bool = False):
        self.records = {record.id: record for record in records}
        self.history: dict[str, HistoryUpsert] = {}
        self.fail_commit = fail_commit
        self.commits = 0

    async def get(self, site_id, booking_id):
        return self.records.get(booking_id)

    async def list_for_date(self, site_id, day):
        return [r for r in self.records.values() if r.booking_date == day]

    async def list_by_visit_key(self, site_id, visit_key, limit):
        return [r for r in self.records.values() if r.visit_key == visit_key][:limit]

    async def list_by_parent(self, site_id, parent_id, limit):
        return [r for r in self.records.values() if r.parent_booking_id == parent_id][:limit]

    async def list_created_between(self, site_id, day, start, end):
        return [
            r
            for r in self.records.values()
            if r.booking_date == day and r.created_at is not None and start <= r.created_at <= end
        ]

    async def commit_group(self, site_id, writes: list[BookingWrite]) -> None:
        if self.fail_commit:
            raise BatchCommitFailure("store unavailable")
        self.commits += 1
        for write in writes:
            if isinstance(write, ArchiveBooking):
                self.records[write.booking_id] = replace(
                    self.records[write.booking_id], status="cancelled", is_archived=True
                )
            elif isinstance(write, HistoryUpsert):
                self.history[write.key] = write


def _booking(booking_id: str, **fields) -> BookingRecord:
    defaults = dict(
        site_id=SITE,
        worker_id="w",
        legacy_time="10:00",
        duration_minutes=30,
        booking_date=DAY,
        created_at=CREATED,
    )
    defaults.update(fields)
    return BookingRecord(id=booking_id, **defaults)


class TestHistoryKey:
    def test_format(self) -> None:
        assert history_key("cust", "v1", "b1") == "cust__v1__b1"

    def test_missing_variant(self) -> None:
        assert history_key("cust", None, "b1") == "cust__unknown__b1"


class TestExplicitResolution:
    """Shared visit key or parent link."""

    @pytest.mark.asyncio
    async def test_shared_visit_key(self) -> None:
        store = MemoryStore(
            [
                _booking("p1", visit_group_id="visit-1", phase=1),
                _booking("p2", visit_group_id="visit-1", phase=2),
                _booking("other", visit_group_id="visit-2"),
            ]
        )

        group = await CascadeResolver(store, SITE).resolve_group("p2")

        assert group.source is GroupSource.EXPLICIT
        assert group.member_ids == ("p2", "p1")
        assert "other" not in group

    @pytest.mark.asyncio
    async def test_legacy_group_key(self) -> None:
        store = MemoryStore(
            [_booking("a", booking_group_id="old-9"), _booking("b", booking_group_id="old-9")]
        )

        group = await CascadeResolver(store, SITE).resolve_group("a")
        assert set(group.member_ids) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_parent_link_from_child(self) -> None:
        """A follow-up resolves to its parent and siblings."""
        store = MemoryStore(
            [
                _booking("root"),
                _booking("child-1", parent_booking_id="root"),
                _booking("child-2", parent_booking_id="root"),
            ]
        )

        group = await CascadeResolver(store, SITE).resolve_group("child-2")

        assert group.root_id == "root"
        assert group.member_ids[0] == "child-2"
        assert set(group.member_ids) == {"root", "child-1", "child-2"}

    @pytest.mark.asyncio
    async def test_visit_key_root_children_from_any_member(self) -> None:
        """A legacy follow-up linked to the first selection cancels with the second."""
        store = MemoryStore(
            [
                _booking("s1", visit_group_id="visit-1", phase=1),
                _booking("s2", visit_group_id="visit-1", phase=2),
                _booking("s1-fu", parent_booking_id="s1"),
            ]
        )

        group = await CascadeResolver(store, SITE).resolve_group("s2")

        assert group.source is GroupSource.EXPLICIT
        assert group.root_id == "s1"
        assert group.member_ids[0] == "s2"
        assert set(group.member_ids) == {"s1", "s2", "s1-fu"}

    @pytest.mark.asyncio
    async def test_visit_key_root_skips_linked_members(self) -> None:
        store = MemoryStore(
            [
                _booking("fu", visit_group_id="visit-1", parent_booking_id="main"),
                _booking("main", visit_group_id="visit-1"),
            ]
        )

        group = await CascadeResolver(store, SITE).resolve_group("fu")

        assert group.root_id == "main"
        assert set(group.member_ids) == {"fu", "main"}

    @pytest.mark.asyncio
    async def test_explicit_cap(self) -> None:
        store = MemoryStore([_booking(f"b{i}", visit_group_id="big") for i in range(30)])

        group = await CascadeResolver(store, SITE, explicit_cap=5).resolve_group("b29")

        assert len(group.member_ids) == 5
        assert group.member_ids[0] == "b29"

    @pytest.mark.asyncio
    async def test_explicit_wins_over_heuristic(self) -> None:
        store = MemoryStore(
            [
                _booking("p1", visit_group_id="v", customer_key="c"),
                _booking("p2", visit_group_id="v", customer_key="c"),
                _booking("unrelated", customer_key="c"),
            ]
        )

        group = await CascadeResolver(store, SITE).resolve_group("p1")
        assert set(group.member_ids) == {"p1", "p2"}


class TestHeuristicResolution:
    """Same customer, same date, created within a couple of minutes."""

    @pytest.mark.asyncio
    async def test_groups_within_window(self) -> None:
        store = MemoryStore(
            [
                _booking("a", customer_key="c"),
                _booking("b", customer_key="c", created_at=CREATED + timedelta(seconds=90)),
                _booking("late", customer_key="c", created_at=CREATED + timedelta(minutes=3)),
                _booking("stranger", customer_key="d"),
                _booking("other-day", customer_key="c", booking_date=DAY + timedelta(days=1)),
            ]
        )

        group = await CascadeResolver(store, SITE).resolve_group("a")

        assert group.source is GroupSource.HEURISTIC
        assert group.member_ids == ("a", "b")

    @pytest.mark.asyncio
    async def test_window_boundary_inclusive(self) -> None:
        store = MemoryStore(
            [
                _booking("a", customer_key="c"),
                _booking("b", customer_key="c", created_at=CREATED - timedelta(minutes=2)),
            ]
        )

        group = await CascadeResolver(store, SITE).resolve_group("a")
        assert set(group.member_ids) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_identity_falls_back_to_client_id_and_phone(self) -> None:
        store = MemoryStore(
            [
                _booking("a", client_id="client-7"),
                _booking("b", client_id="client-7"),
                _booking("c", customer_phone="555-0100"),
            ]
        )

        group = await CascadeResolver(store, SITE).resolve_group("a")
        assert set(group.member_ids) == {"a", "b"}

    @pytest.mark.asyncio
    async def test_too_many_candidates_is_singleton(self) -> None:
        """More than the cap is ambiguous; only the requested booking is cancelled."""
        store = MemoryStore([_booking(f"b{i}", customer_key="c") for i in range(11)])

        group = await CascadeResolver(store, SITE).resolve_group("b0")

        assert group.source is GroupSource.SINGLETON
        assert group.member_ids == ("b0",)

    @pytest.mark.asyncio
    async def test_exactly_cap_candidates(self) -> None:
        store = MemoryStore([_booking(f"b{i}", customer_key="c") for i in range(10)])

        group = await CascadeResolver(store, SITE).resolve_group("b3")

        assert group.source is GroupSource.HEURISTIC
        assert len(group.member_ids) == 10
        assert group.member_ids[0] == "b3"

    @pytest.mark.asyncio
    async def test_no_identity_is_singleton(self) -> None:
        store = MemoryStore([_booking("a"), _booking("b")])

        group = await CascadeResolver(store, SITE).resolve_group("a")
        assert group.source is GroupSource.SINGLETON

    @pytest.mark.asyncio
    async def test_unknown_booking_is_singleton(self) -> None:
        group = await CascadeResolver(MemoryStore([]), SITE).resolve_group("ghost")

        assert group.member_ids == ("ghost",)
        assert group.source is GroupSource.SINGLETON


class TestCascadeExecutor:
    """Atomic, idempotent archival."""

    @pytest.mark.asyncio
    async def test_archives_group_in_one_batch(self) -> None:
        store = MemoryStore(
            [
                _booking("p1", visit_group_id="v", customer_key="c", variant_id="var"),
                _booking("p2", visit_group_id="v", customer_key="c", variant_id="var"),
            ]
        )

        result = await CascadeExecutor(store, SITE).cancel_group(["p1", "p2"], CancelReason.MANUAL)

        assert result == CascadeResult(success_count=2, fail_count=0)
        assert store.commits == 1
        assert store.records["p1"].is_archived and store.records["p2"].is_archived
        assert set(store.history) == {"c__var__p1", "c__var__p2"}

    @pytest.mark.asyncio
    async def test_second_call_is_noop(self) -> None:
        store = MemoryStore([_booking("p1"), _booking("p2")])
        executor = CascadeExecutor(store, SITE)

        await executor.cancel_group(["p1", "p2"], CancelReason.MANUAL)
        again = await executor.cancel_group(["p1", "p2"], CancelReason.MANUAL)

        assert again == CascadeResult(success_count=0, fail_count=0)
        assert store.commits == 1

    @pytest.mark.asyncio
    async def test_unknown_ids_skipped(self) -> None:
        store = MemoryStore([_booking("p1")])

        result = await CascadeExecutor(store, SITE).cancel_group(["p1", "ghost"], "manual")
        assert result == CascadeResult(success_count=1, fail_count=0)

    @pytest.mark.asyncio
    async def test_no_history_without_customer(self) -> None:
        store = MemoryStore([_booking("p1")])

        await CascadeExecutor(store, SITE).cancel_group(["p1"], CancelReason.MANUAL)
        assert store.history == {}

    @pytest.mark.asyncio
    async def test_commit_failure_reports_all_failed(self) -> None:
        store = MemoryStore([_booking("p1"), _booking("p2")], fail_commit=True)

        result = await CascadeExecutor(store, SITE).cancel_group(["p1", "p2"], CancelReason.MANUAL)

        assert result == CascadeResult(success_count=0, fail_count=2)
        assert not store.records["p1"].is_archived

    @pytest.mark.asyncio
    async def test_unknown_reason_rejected(self) -> None:
        with pytest.raises(ValueError):
            await CascadeExecutor(MemoryStore([]), SITE).cancel_group(["p1"], "bored")


# ============================================================================
# SQL store
# ============================================================================


def _row(**fields) -> Booking:
    defaults = dict(
        id=str(uuid4()),
        site_id=SITE,
        booking_date=DAY,
        worker_id="w",
        start_at=datetime(2030, 6, 3, 10, tzinfo=timezone.utc),
        end_at=datetime(2030, 6, 3, 10, 30, tzinfo=timezone.utc),
    )
    defaults.update(fields)
    return Booking(**defaults)


class TestSqlCascade:
    """Cascade cancellation against the bookings table."""

    @pytest.mark.asyncio
    async def test_cancel_two_phase_visit_then_noop(self, async_session: AsyncSession) -> None:
        """Cancelling p1 archives p1 and p2; cancelling p1 again changes nothing."""
        visit = str(uuid4())
        p1 = _row(visit_group_id=visit, phase=1, customer_key="cust", variant_id="var-1")
        p2 = _row(
            visit_group_id=visit,
            phase=2,
            parent_booking_id=p1.id,
            is_follow_up=True,
            customer_key="cust",
            variant_id="var-1",
        )
        async_session.add_all([p1, p2])
        await async_session.commit()

        store = SqlBookingStore(async_session)
        group = await CascadeResolver(store, SITE).resolve_group(p1.id)
        result = await CascadeExecutor(store, SITE).cancel_group(
            list(group.member_ids), CancelReason.CUSTOMER_INITIATED, note="sick", actor="desk"
        )

        assert set(group.member_ids) == {p1.id, p2.id}
        assert result == CascadeResult(success_count=2, fail_count=0)

        rows = (await async_session.execute(select(Booking))).scalars().all()
        assert all(row.is_archived for row in rows)
        assert all(row.status == BookingStatus.CANCELLED for row in rows)
        assert {row.cancellation_note for row in rows} == {"sick"}

        history = (await async_session.execute(select(CustomerHistoryEntry))).scalars().all()
        assert {entry.key for entry in history} == {
            f"cust__var-1__{p1.id}",
            f"cust__var-1__{p2.id}",
        }

        group_again = await CascadeResolver(store, SITE).resolve_group(p1.id)
        again = await CascadeExecutor(store, SITE).cancel_group(
            list(group_again.member_ids), CancelReason.CUSTOMER_INITIATED
        )
        assert again == CascadeResult(success_count=0, fail_count=0)

    @pytest.mark.asyncio
    async def test_automatic_expiry_drops_note(self, async_session: AsyncSession) -> None:
        row = _row()
        async_session.add(row)
        await async_session.commit()

        await CascadeExecutor(SqlBookingStore(async_session), SITE).cancel_group(
            [row.id], CancelReason.AUTOMATIC_EXPIRY, note="ignored", actor="cron"
        )

        await async_session.refresh(row)
        assert row.archived_reason == "automatic-expiry"
        assert row.cancellation_note is None
        assert row.cancelled_by is None

    @pytest.mark.asyncio
    async def test_history_overwritten_not_duplicated(self, async_session: AsyncSession) -> None:
        store = SqlBookingStore(async_session)
        booking_id = str(uuid4())
        archived_at = datetime(2030, 6, 1, tzinfo=timezone.utc)
        entry = dict(
            key=history_key("cust", None, booking_id),
            customer_key="cust",
            booking_id=booking_id,
            variant_id=None,
            archived_at=archived_at,
        )

        await store.commit_group(SITE, [HistoryUpsert(reason="manual", **entry)])
        await store.commit_group(SITE, [HistoryUpsert(reason="customer-initiated", **entry)])

        history = (await async_session.execute(select(CustomerHistoryEntry))).scalars().all()
        assert len(history) == 1
        assert history[0].reason == "customer-initiated"

    @pytest.mark.asyncio
    async def test_failed_batch_rolls_back(self, async_session: AsyncSession) -> None:
        """An archive of a missing row aborts the whole batch."""
        row = _row()
        async_session.add(row)
        await async_session.commit()
        store = SqlBookingStore(async_session)
        row_id = row.id
        now = datetime(2030, 6, 1, tzinfo=timezone.utc)

        with pytest.raises(BatchCommitFailure):
            await store.commit_group(
                SITE,
                [
                    ArchiveBooking(booking_id=row_id, reason="manual", archived_at=now),
                    ArchiveBooking(booking_id=str(uuid4()), reason="manual", archived_at=now),
                ],
            )

        record = await store.get(SITE, row_id)
        assert record.is_archived is False

    @pytest.mark.asyncio
    async def test_other_site_not_visible(self, async_session: AsyncSession) -> None:
        row = _row(site_id="site-2")
        async_session.add(row)
        await async_session.commit()

        assert await SqlBookingStore(async_session).get(SITE, row.id) is None
