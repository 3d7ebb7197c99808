"""
Form routes - public contact and newsletter endpoints, plus diagnostics.

No authentication. Mail and AI failures never fail a submission; the
response reports whether each email went out.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query

from backoffice.api.dependencies import get_form_service
from backoffice.config import settings
from backoffice.models.api import (
    ContactRequest,
    ContactResponse,
    MailTestResponse,
    ServiceStatus,
    SubscribeRequest,
    SubscribeResponse,
    UnsubscribeResponse,
)
from backoffice.services.forms import FormService

router = APIRouter(prefix="/forms", tags=["forms"])


@router.post("/contact", response_model=ContactResponse)
async def submit_contact(
    request: ContactRequest,
    service: FormService = Depends(get_form_service),
) -> ContactResponse:
    """
    Contact form submission.

    Stores the message on the prospect (created on first contact), replies
    with an AI-generated or canned message, and notifies the admin.
    """
    return await service.handle_contact(request)


@router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe(
    request: SubscribeRequest,
    service: FormService = Depends(get_form_service),
) -> SubscribeResponse:
    """Newsletter subscription; subscribing twice is a no-op."""
    return await service.handle_subscribe(request)


@router.post("/unsubscribe", response_model=UnsubscribeResponse)
async def unsubscribe(
    email: str = Query(..., min_length=3, max_length=255),
    service: FormService = Depends(get_form_service),
) -> UnsubscribeResponse:
    return await service.handle_unsubscribe(email)


@router.get("/status")
async def forms_status() -> dict[str, str]:
    return {
        "status": "ok",
        "service": "forms",
        "version": settings.api_version,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/test-database", response_model=ServiceStatus)
async def test_database(service: FormService = Depends(get_form_service)) -> ServiceStatus:
    return await service.test_database()


@router.get("/test-mail", response_model=MailTestResponse)
async def test_mail(service: FormService = Depends(get_form_service)) -> MailTestResponse:
    return await service.test_mail()
