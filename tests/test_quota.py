"""
Tests for the Storage and Ticket Quota Calculators.

Includes property-based checks that quota arithmetic is exact and that
ensure_capacity accepts exactly the writes that fit.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from backoffice.config import GIB
from backoffice.db.models import Project, StoredFile, SupportTicket, new_id
from backoffice.exceptions import NotFoundError, QuotaExceededError
from backoffice.models.api import Role
from backoffice.services.quota import (
    KeyedLocks,
    StorageQuotaCalculator,
    TicketQuotaCalculator,
    format_bytes,
    start_of_current_month,
)
from tests.conftest import CLIENT_ID
from tests.fakes import InMemoryDocumentStore, make_profile

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def _file(owner_id: str, size: int) -> StoredFile:
    return StoredFile(
        id=new_id(),
        owner_id=owner_id,
        title="f",
        description="",
        file_name="f.pdf",
        storage_path=f"files/{owner_id}/f.pdf",
        mime_type="application/pdf",
        size=size,
        created_at=NOW,
    )


def _ticket(client_id: str, created_at: datetime, project_id: str | None = None) -> SupportTicket:
    return SupportTicket(
        id=new_id(),
        client_id=client_id,
        client_email="client@example.com",
        project_id=project_id,
        subject="Help",
        message="Something broke",
        priority="medium",
        status="open",
        admin_response="",
        created_at=created_at,
        updated_at=created_at,
    )


def _project(project_id: str, limit: int | None) -> Project:
    return Project(
        id=project_id,
        client_id=CLIENT_ID,
        name="Website",
        description="",
        status="active",
        monthly_ticket_limit=limit,
        created_at=NOW,
        updated_at=NOW,
    )


class TestFormatBytes:
    """Tests for human-readable sizes."""

    @pytest.mark.parametrize(
        "size,expected",
        [
            (0, "0 B"),
            (-5, "0 B"),
            (512, "512 B"),
            (1024, "1 KB"),
            (1536, "2 KB"),
            (5 * 1024 * 1024, "5.00 MB"),
            (5 * GIB, "5.00 GB"),
            (int(1.5 * GIB), "1.50 GB"),
            (3 * 1024**4, "3.00 TB"),
            (2048 * 1024**4, "2048.00 TB"),
        ],
    )
    def test_format(self, size, expected):
        assert format_bytes(size) == expected


class TestStorageQuota:
    """Tests for StorageQuotaCalculator."""

    @pytest.mark.asyncio
    async def test_upload_that_fits_is_accepted(self, store, storage_quota):
        store.seed(make_profile(CLIENT_ID), _file(CLIENT_ID, 400), _file(CLIENT_ID, 300))

        quota = await storage_quota.ensure_capacity(CLIENT_ID, Role.CLIENT.value, 300)

        assert quota.used == 700
        assert quota.limit == 1000
        assert quota.remaining == 300

    @pytest.mark.asyncio
    async def test_upload_one_byte_over_is_rejected(self, store, storage_quota):
        store.seed(make_profile(CLIENT_ID), _file(CLIENT_ID, 700))

        with pytest.raises(QuotaExceededError) as exc_info:
            await storage_quota.ensure_capacity(CLIENT_ID, Role.CLIENT.value, 301)

        error = exc_info.value
        assert error.kind == "storage"
        assert error.used == 700
        assert error.limit == 1000
        assert error.remaining == 300
        assert error.required == 301
        assert "Insufficient storage" in error.message

    @pytest.mark.asyncio
    async def test_only_owner_files_count(self, store, storage_quota):
        store.seed(_file(CLIENT_ID, 100), _file("someone-else", 900))

        quota = await storage_quota.compute_quota(CLIENT_ID, Role.CLIENT.value)

        assert quota.used == 100

    @pytest.mark.asyncio
    async def test_admin_limit_applies_to_admins(self, store, storage_quota):
        store.seed(make_profile("boss", role="admin", storage_limit_bytes=10))

        quota = await storage_quota.compute_quota("boss", Role.ADMIN.value)

        assert quota.limit == 5000

    @pytest.mark.asyncio
    async def test_profile_limit_overrides_default(self, store, storage_quota):
        store.seed(make_profile(CLIENT_ID, storage_limit_bytes=2 * GIB))

        quota = await storage_quota.compute_quota(CLIENT_ID, Role.CLIENT.value)

        assert quota.limit == 2 * GIB
        assert quota.limit_formatted == "2.00 GB"

    @pytest.mark.asyncio
    async def test_missing_profile_uses_default(self, store, storage_quota):
        quota = await storage_quota.compute_quota("no-profile", None)

        assert quota.used == 0
        assert quota.limit == 1000
        assert quota.used_formatted == "0 B"

    @pytest.mark.asyncio
    async def test_remaining_floors_at_zero(self, store, storage_quota):
        store.seed(make_profile(CLIENT_ID, storage_limit_bytes=100), _file(CLIENT_ID, 250))

        quota = await storage_quota.compute_quota(CLIENT_ID, Role.CLIENT.value)

        assert quota.remaining == 0
        with pytest.raises(QuotaExceededError):
            await storage_quota.ensure_capacity(CLIENT_ID, Role.CLIENT.value, 1)

    @pytest.mark.asyncio
    async def test_zero_byte_write_always_fits(self, store, storage_quota):
        store.seed(make_profile(CLIENT_ID, storage_limit_bytes=100), _file(CLIENT_ID, 100))

        quota = await storage_quota.ensure_capacity(CLIENT_ID, Role.CLIENT.value, 0)

        assert quota.remaining == 0

    @given(
        sizes=st.lists(st.integers(min_value=0, max_value=10_000), max_size=10),
        limit=st.integers(min_value=0, max_value=50_000),
        incoming=st.integers(min_value=0, max_value=50_000),
    )
    @settings(max_examples=50)
    @pytest.mark.asyncio
    async def test_accepts_exactly_the_writes_that_fit(self, sizes, limit, incoming):
        store = InMemoryDocumentStore()
        store.seed(make_profile(CLIENT_ID, storage_limit_bytes=limit))
        store.seed(*[_file(CLIENT_ID, size) for size in sizes])
        calculator = StorageQuotaCalculator(store, default_limit=1, admin_limit=1)

        used = sum(sizes)
        fits = incoming <= max(0, limit - used)

        if fits:
            quota = await calculator.ensure_capacity(CLIENT_ID, Role.CLIENT.value, incoming)
            assert quota.used == used
            assert quota.remaining == limit - used
        else:
            with pytest.raises(QuotaExceededError) as exc_info:
                await calculator.ensure_capacity(CLIENT_ID, Role.CLIENT.value, incoming)
            assert exc_info.value.remaining == max(0, limit - used)


class TestTicketQuota:
    """Tests for TicketQuotaCalculator."""

    @pytest.mark.asyncio
    async def test_third_ticket_in_month_rejected(self, store):
        store.seed(
            make_profile(CLIENT_ID),
            _ticket(CLIENT_ID, NOW - timedelta(days=5)),
            _ticket(CLIENT_ID, NOW - timedelta(days=1)),
        )
        calculator = TicketQuotaCalculator(store, scope="user", default_limit=2, clock=lambda: NOW)

        with pytest.raises(QuotaExceededError) as exc_info:
            await calculator.ensure_available(CLIENT_ID)

        error = exc_info.value
        assert error.kind == "tickets"
        assert error.used == 2
        assert error.limit == 2
        assert error.remaining == 0
        assert error.message == "Monthly limit of 2 support tickets reached"

    @pytest.mark.asyncio
    async def test_previous_month_tickets_do_not_count(self, store):
        store.seed(
            make_profile(CLIENT_ID),
            _ticket(CLIENT_ID, datetime(2026, 9, 30, 23, 59, tzinfo=UTC)),
            _ticket(CLIENT_ID, datetime(2026, 9, 15, tzinfo=UTC)),
            _ticket(CLIENT_ID, datetime(2026, 10, 1, tzinfo=UTC)),
        )
        calculator = TicketQuotaCalculator(store, scope="user", default_limit=2, clock=lambda: NOW)

        quota = await calculator.ensure_available(CLIENT_ID)

        assert quota.used == 1
        assert quota.remaining == 1

    @pytest.mark.asyncio
    async def test_window_resets_at_month_boundary(self, store):
        store.seed(
            make_profile(CLIENT_ID),
            _ticket(CLIENT_ID, NOW - timedelta(days=2)),
            _ticket(CLIENT_ID, NOW - timedelta(days=1)),
        )
        clock_now = NOW
        calculator = TicketQuotaCalculator(
            store, scope="user", default_limit=2, clock=lambda: clock_now
        )

        with pytest.raises(QuotaExceededError):
            await calculator.ensure_available(CLIENT_ID)

        clock_now = datetime(2026, 11, 1, 0, 0, tzinfo=UTC)
        quota = await calculator.ensure_available(CLIENT_ID)
        assert quota.used == 0

    @pytest.mark.asyncio
    async def test_profile_limit_overrides_default(self, store):
        store.seed(
            make_profile(CLIENT_ID, monthly_ticket_limit=5),
            *[_ticket(CLIENT_ID, NOW) for _ in range(4)],
        )
        calculator = TicketQuotaCalculator(store, scope="user", default_limit=2, clock=lambda: NOW)

        quota = await calculator.ensure_available(CLIENT_ID)

        assert quota.limit == 5
        assert quota.remaining == 1

    @pytest.mark.asyncio
    async def test_unknown_user_is_not_found(self, ticket_quota):
        with pytest.raises(NotFoundError):
            await ticket_quota.compute_quota("ghost")

    @pytest.mark.asyncio
    async def test_project_scope_counts_per_project(self, store):
        store.seed(
            _project("p1", limit=3),
            _project("p2", limit=None),
            _ticket(CLIENT_ID, NOW, project_id="p1"),
            _ticket(CLIENT_ID, NOW, project_id="p1"),
            _ticket(CLIENT_ID, NOW, project_id="p2"),
        )
        calculator = TicketQuotaCalculator(
            store, scope="project", default_limit=2, clock=lambda: NOW
        )

        p1 = await calculator.compute_quota("p1")
        p2 = await calculator.compute_quota("p2")

        assert (p1.used, p1.limit, p1.remaining) == (2, 3, 1)
        assert (p2.used, p2.limit, p2.remaining) == (1, 2, 1)

    @pytest.mark.asyncio
    async def test_unknown_project_is_not_found(self, store):
        calculator = TicketQuotaCalculator(store, scope="project", clock=lambda: NOW)

        with pytest.raises(NotFoundError) as exc_info:
            await calculator.compute_quota("missing")

        assert exc_info.value.resource == "Project"

    @given(
        existing=st.integers(min_value=0, max_value=8),
        limit=st.integers(min_value=0, max_value=8),
    )
    @settings(max_examples=40)
    @pytest.mark.asyncio
    async def test_available_iff_used_below_limit(self, existing, limit):
        store = InMemoryDocumentStore()
        store.seed(make_profile(CLIENT_ID, monthly_ticket_limit=limit))
        store.seed(*[_ticket(CLIENT_ID, NOW) for _ in range(existing)])
        calculator = TicketQuotaCalculator(store, clock=lambda: NOW)

        if existing < limit:
            quota = await calculator.ensure_available(CLIENT_ID)
            assert quota.remaining == limit - existing
        else:
            with pytest.raises(QuotaExceededError):
                await calculator.ensure_available(CLIENT_ID)


class TestMonthWindow:
    """Tests for start_of_current_month."""

    def test_truncates_to_first_instant(self):
        start = start_of_current_month(datetime(2026, 2, 28, 23, 59, 59, 999, tzinfo=UTC))
        assert start == datetime(2026, 2, 1, tzinfo=UTC)

    def test_keeps_timezone(self):
        start = start_of_current_month(NOW)
        assert start.tzinfo is UTC

    def test_defaults_to_local_time(self):
        start = start_of_current_month()
        assert start.day == 1
        assert start.tzinfo is not None


class TestKeyedLocks:
    """Tests for per-key serialization."""

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLocks()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("owner"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    @pytest.mark.asyncio
    async def test_locks_released_after_use(self):
        locks = KeyedLocks()

        async with locks.hold("x"):
            assert len(locks) == 1

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_released_when_body_raises(self):
        locks = KeyedLocks()

        with pytest.raises(RuntimeError):
            async with locks.hold("x"):
                raise RuntimeError("boom")

        assert len(locks) == 0
