"""
Quota Calculators - storage bytes per owner and support tickets per month.

Quotas are derived on demand from stored records and never persisted.
Check-then-write sequences must run under the owner's (or scope's) lock
from ``KeyedLocks``. The lock serializes writers within this process only;
separate worker processes can still both pass a check against a stale
``used`` value.
"""

import asyncio
import math
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Literal

from structlog import get_logger

from backoffice.config import GIB
from backoffice.db.document_store import DocumentStore
from backoffice.db.models import Project, StoredFile, SupportTicket, UserProfile
from backoffice.exceptions import NotFoundError, QuotaExceededError
from backoffice.models.api import Role
from backoffice.models.domain import Quota, StorageQuota
from backoffice.observability.metrics import metrics

logger = get_logger(__name__)

BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")

TicketQuotaScope = Literal["user", "project"]


def format_bytes(size: int) -> str:
    """Human-readable size: whole B/KB, two decimals from MB up."""
    if size <= 0:
        return "0 B"
    i = min(int(math.floor(math.log(size) / math.log(1024))), len(BYTE_UNITS) - 1)
    value = size / math.pow(1024, i)
    return f"{value:.{2 if i > 1 else 0}f} {BYTE_UNITS[i]}"


def local_now() -> datetime:
    """Current wall-clock time in the server's local timezone."""
    return datetime.now().astimezone()


def start_of_current_month(now: datetime | None = None) -> datetime:
    """
    First instant of the calendar month containing ``now``.

    Computed in the server's local timezone, not normalized to UTC, so the
    quota window follows the server's calendar.
    """
    now = now or local_now()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class KeyedLocks:
    """One asyncio.Lock per key, dropped once nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


# Process-wide serialization points for quota-consuming writes
storage_locks = KeyedLocks()
ticket_locks = KeyedLocks()


class StorageQuotaCalculator:
    """Bytes stored per owner against a role- or profile-derived limit."""

    def __init__(
        self,
        store: DocumentStore,
        default_limit: int = 5 * GIB,
        admin_limit: int = 30 * GIB,
    ) -> None:
        self.store = store
        self.default_limit = default_limit
        self.admin_limit = admin_limit

    async def _limit_for(self, owner_id: str, role: str | None) -> int:
        if role == Role.ADMIN.value:
            return self.admin_limit

        profile = await self.store.get_by_id(UserProfile, owner_id)
        if profile is not None and profile.storage_limit_bytes is not None:
            return profile.storage_limit_bytes
        return self.default_limit

    async def compute_quota(self, owner_id: str, role: str | None) -> StorageQuota:
        files = await self.store.query_by_field(StoredFile, "owner_id", "==", owner_id)
        used = sum(f.size or 0 for f in files)
        limit = await self._limit_for(owner_id, role)

        return StorageQuota(
            used=used,
            limit=limit,
            used_formatted=format_bytes(used),
            limit_formatted=format_bytes(limit),
        )

    async def ensure_capacity(
        self, owner_id: str, role: str | None, incoming_size: int
    ) -> StorageQuota:
        """
        Reject a write of ``incoming_size`` bytes that does not fit.

        Raises:
            QuotaExceededError: incoming_size > remaining
        """
        quota = await self.compute_quota(owner_id, role)
        if incoming_size > quota.remaining:
            metrics.record_quota_check("storage", accepted=False)
            logger.warning(
                "quota_exceeded",
                kind="storage",
                owner_id=owner_id,
                used=quota.used,
                limit=quota.limit,
                required=incoming_size,
            )
            raise QuotaExceededError(
                kind="storage",
                used=quota.used,
                limit=quota.limit,
                remaining=quota.remaining,
                required=incoming_size,
                message=(
                    f"Insufficient storage. Available: {format_bytes(quota.remaining)}, "
                    f"file: {format_bytes(incoming_size)}"
                ),
            )

        metrics.record_quota_check("storage", accepted=True)
        return quota


class TicketQuotaCalculator:
    """Support tickets created per calendar month, per user or per project."""

    def __init__(
        self,
        store: DocumentStore,
        scope: TicketQuotaScope = "user",
        default_limit: int = 2,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.store = store
        self.scope = scope
        self.default_limit = default_limit
        self.clock = clock

    async def _limit_for(self, scope_id: str) -> int:
        record: UserProfile | Project | None
        if self.scope == "project":
            record = await self.store.get_by_id(Project, scope_id)
        else:
            record = await self.store.get_by_id(UserProfile, scope_id)

        if record is None:
            raise NotFoundError(self.scope.capitalize(), scope_id)
        if record.monthly_ticket_limit is None:
            return self.default_limit
        return record.monthly_ticket_limit

    async def compute_quota(self, scope_id: str) -> Quota:
        """
        Raises:
            NotFoundError: The user profile or project does not exist
        """
        limit = await self._limit_for(scope_id)
        scope_field = "project_id" if self.scope == "project" else "client_id"
        tickets = await self.store.query(
            SupportTicket,
            where=[
                (scope_field, "==", scope_id),
                ("created_at", ">=", start_of_current_month(self.clock())),
            ],
        )
        return Quota(used=len(tickets), limit=limit)

    async def ensure_available(self, scope_id: str) -> Quota:
        """
        Raises:
            QuotaExceededError: No tickets remain this month
        """
        quota = await self.compute_quota(scope_id)
        if quota.remaining <= 0:
            metrics.record_quota_check("tickets", accepted=False)
            logger.warning(
                "quota_exceeded",
                kind="tickets",
                scope=self.scope,
                scope_id=scope_id,
                used=quota.used,
                limit=quota.limit,
            )
            raise QuotaExceededError(
                kind="tickets",
                used=quota.used,
                limit=quota.limit,
                remaining=quota.remaining,
                required=1,
                message=f"Monthly limit of {quota.limit} support tickets reached",
            )

        metrics.record_quota_check("tickets", accepted=True)
        return quota
