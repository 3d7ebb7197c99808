"""
Support routes - client tickets with a monthly quota, answered by admins.
"""

from fastapi import APIRouter, Depends, Query, status

from backoffice.api.dependencies import get_support_service, require_roles
from backoffice.models.api import (
    QuotaResponse,
    Role,
    TicketCreateRequest,
    TicketResponse,
    TicketUpdateRequest,
)
from backoffice.models.domain import Identity
from backoffice.services.support import SupportService

router = APIRouter(prefix="/support/tickets", tags=["support"])


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    request: TicketCreateRequest,
    caller: Identity = Depends(require_roles(Role.CLIENT)),
    service: SupportService = Depends(get_support_service),
) -> TicketResponse:
    """
    Open a ticket.

    Rejected with 400 once the month's ticket quota is used up. The quota is
    counted per user or per project depending on TICKET_QUOTA_SCOPE.
    """
    ticket = await service.create(caller, request)
    return TicketResponse.model_validate(ticket)


@router.get("/quota", response_model=QuotaResponse)
async def get_ticket_quota(
    project_id: str | None = Query(None, max_length=64),
    caller: Identity = Depends(require_roles(Role.CLIENT)),
    service: SupportService = Depends(get_support_service),
) -> QuotaResponse:
    quota = await service.get_quota(caller, project_id)
    return QuotaResponse(used=quota.used, limit=quota.limit, remaining=quota.remaining)


@router.get("/my", response_model=list[TicketResponse])
async def list_my_tickets(
    caller: Identity = Depends(require_roles(Role.CLIENT)),
    service: SupportService = Depends(get_support_service),
) -> list[TicketResponse]:
    tickets = await service.list_own(caller)
    return [TicketResponse.model_validate(t) for t in tickets]


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    _admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: SupportService = Depends(get_support_service),
) -> list[TicketResponse]:
    tickets = await service.list_all()
    return [TicketResponse.model_validate(t) for t in tickets]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: str,
    caller: Identity = Depends(require_roles(Role.ADMIN, Role.CLIENT)),
    service: SupportService = Depends(get_support_service),
) -> TicketResponse:
    ticket = await service.get(caller, ticket_id)
    return TicketResponse.model_validate(ticket)


@router.patch("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    request: TicketUpdateRequest,
    _admin: Identity = Depends(require_roles(Role.ADMIN)),
    service: SupportService = Depends(get_support_service),
) -> TicketResponse:
    ticket = await service.update(ticket_id, request)
    return TicketResponse.model_validate(ticket)
