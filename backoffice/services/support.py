"""
Support Service - client tickets under a monthly quota.

The quota scope is either the client (default) or the project the ticket
is filed against. Creation holds the scope's lock across the quota check
and the insert. Tickets are never deleted.
"""

from datetime import UTC, datetime

from structlog import get_logger

from backoffice.db.document_store import DocumentStore
from backoffice.db.models import Project, SupportTicket, new_id
from backoffice.exceptions import NotFoundError, ValidationError
from backoffice.models.api import TicketCreateRequest, TicketStatus, TicketUpdateRequest
from backoffice.models.domain import Identity, Quota
from backoffice.services.authorization import assert_ownership
from backoffice.services.quota import KeyedLocks, TicketQuotaCalculator, ticket_locks

logger = get_logger(__name__)


class SupportService:
    """Create, list and answer support tickets."""

    def __init__(
        self,
        store: DocumentStore,
        quota: TicketQuotaCalculator,
        locks: KeyedLocks = ticket_locks,
    ) -> None:
        self.store = store
        self.quota = quota
        self.locks = locks

    async def _check_project(self, caller: Identity, project_id: str) -> Project:
        project = await self.store.get_by_id(Project, project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        assert_ownership(project, caller, "Project")
        return project

    async def _scope_id(self, caller: Identity, project_id: str | None) -> str:
        if self.quota.scope == "project":
            if not project_id:
                raise ValidationError("project_id is required")
            await self._check_project(caller, project_id)
            return project_id

        if project_id:
            await self._check_project(caller, project_id)
        return caller.id

    async def get_quota(self, caller: Identity, project_id: str | None = None) -> Quota:
        return await self.quota.compute_quota(await self._scope_id(caller, project_id))

    async def create(self, caller: Identity, request: TicketCreateRequest) -> SupportTicket:
        """
        Raises:
            ValidationError: project_id missing in project scope
            NotFoundError: Unknown project, or one owned by another client
            QuotaExceededError: Monthly ticket limit reached
        """
        scope_id = await self._scope_id(caller, request.project_id)

        async with self.locks.hold(scope_id):
            await self.quota.ensure_available(scope_id)

            now = datetime.now(UTC)
            ticket = await self.store.insert(
                SupportTicket(
                    id=new_id(),
                    client_id=caller.id,
                    client_email=caller.email or "",
                    project_id=request.project_id,
                    subject=request.subject,
                    message=request.message,
                    priority=request.priority.value,
                    status=TicketStatus.OPEN.value,
                    admin_response="",
                    created_at=now,
                    updated_at=now,
                )
            )

        logger.info(
            "ticket_created",
            ticket_id=ticket.id,
            client_id=caller.id,
            project_id=request.project_id,
            priority=ticket.priority,
        )
        return ticket

    async def list_own(self, caller: Identity) -> list[SupportTicket]:
        return await self.store.query(
            SupportTicket,
            where=[("client_id", "==", caller.id)],
            order_by="created_at",
            descending=True,
        )

    async def list_all(self) -> list[SupportTicket]:
        return await self.store.query(SupportTicket, order_by="created_at", descending=True)

    async def get(self, caller: Identity, ticket_id: str) -> SupportTicket:
        ticket = await self.store.get_by_id(SupportTicket, ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket", ticket_id)
        assert_ownership(ticket, caller, "Ticket")
        return ticket

    async def update(self, ticket_id: str, request: TicketUpdateRequest) -> SupportTicket:
        """Admin-only status and response update."""
        ticket = await self.store.get_by_id(SupportTicket, ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket", ticket_id)

        changes: dict[str, object] = {"updated_at": datetime.now(UTC)}
        if request.status is not None:
            changes["status"] = request.status.value
        if request.admin_response is not None:
            changes["admin_response"] = request.admin_response

        ticket = await self.store.update(ticket, changes)
        logger.info("ticket_updated", ticket_id=ticket_id, status=ticket.status)
        return ticket
