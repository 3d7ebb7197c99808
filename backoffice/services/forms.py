"""
Form Service - public contact and newsletter forms.

Contact flow:
1. Look up the prospect by email
2. Generate a reply (AI, or the canned fallback)
3. Create the prospect, or append a conversation to it
4. Email the reply to the prospect
5. Notify the admin
6. Mark the conversation's reply as sent

Conversation appends are read-modify-write on the prospect's JSON array;
concurrent submissions from the same email can lose an entry (last writer
wins). Mail failures never fail the request.
"""

import time
from datetime import UTC, datetime
from typing import Any

from structlog import get_logger

from backoffice.db.document_store import DocumentStore
from backoffice.db.models import Prospect, Subscriber, new_id
from backoffice.models.api import (
    ContactRequest,
    ContactResponse,
    FormMeta,
    MailTestResponse,
    ServiceStatus,
    SubscribeRequest,
    SubscribeResponse,
    UnsubscribeResponse,
)
from backoffice.models.domain import ContactMessage
from backoffice.services.ai import AIService
from backoffice.services.mail import Mailer

logger = get_logger(__name__)


def build_conversation(message: str, meta: FormMeta, reply: str, now: datetime) -> dict[str, Any]:
    timestamp = now.isoformat()
    return {
        "conversation_id": new_id(),
        "incoming_message": {
            "message_id": new_id(),
            "content": message,
            "meta": meta.model_dump(mode="json"),
            "received_at": timestamp,
        },
        "outgoing_response": {
            "response_id": new_id(),
            "content": reply,
            "sent_at": timestamp,
            "email_sent": False,
        },
        "timestamp": timestamp,
    }


def mark_email_sent(conversations: list[dict[str, Any]], conversation_id: str) -> list[dict[str, Any]]:
    """Copy of ``conversations`` with one reply flagged as emailed."""
    updated = []
    for conversation in conversations:
        if conversation.get("conversation_id") == conversation_id:
            conversation = {
                **conversation,
                "outgoing_response": {**conversation["outgoing_response"], "email_sent": True},
            }
        updated.append(conversation)
    return updated


class FormService:
    """Handles public contact, subscribe and unsubscribe submissions."""

    def __init__(
        self, store: DocumentStore, mailer: Mailer, ai: AIService, admin_email: str
    ) -> None:
        self.store = store
        self.mailer = mailer
        self.ai = ai
        self.admin_email = admin_email

    async def find_prospect(self, email: str) -> Prospect | None:
        prospects = await self.store.query(
            Prospect, where=[("email", "==", email.lower())], limit=1
        )
        return prospects[0] if prospects else None

    async def find_subscriber(self, email: str) -> Subscriber | None:
        subscribers = await self.store.query(
            Subscriber, where=[("email", "==", email.lower())], limit=1
        )
        return subscribers[0] if subscribers else None

    # ========================================================================
    # Contact
    # ========================================================================

    async def handle_contact(self, request: ContactRequest) -> ContactResponse:
        email = str(request.email).lower()
        existing = await self.find_prospect(email)
        is_new = existing is None

        reply = await self.ai.generate_prospect_response(
            ContactMessage(
                name=request.name, email=email, message=request.message, phone=request.phone
            ),
            existing,
        )

        now = datetime.now(UTC)
        conversation = build_conversation(request.message, request.meta, reply.content, now)
        conversation_id = conversation["conversation_id"]

        if existing is None:
            prospect = await self.store.insert(
                Prospect(
                    id=new_id(),
                    name=request.name,
                    email=email,
                    phone=request.phone,
                    status="prospect",
                    conversations=[conversation],
                    created_at=now,
                    updated_at=now,
                )
            )
        else:
            prospect = await self.store.update(
                existing,
                {"conversations": [*existing.conversations, conversation], "updated_at": now},
            )

        email_sent = await self._send_response_email(request, email, reply.content, is_new)
        admin_notified = await self._notify_admin_contact(request, email, reply.content, is_new, now)

        if email_sent:
            await self.store.update(
                prospect,
                {
                    "conversations": mark_email_sent(prospect.conversations, conversation_id),
                    "updated_at": datetime.now(UTC),
                },
            )

        logger.info(
            "contact_form_processed",
            prospect_id=prospect.id,
            conversation_id=conversation_id,
            is_new_prospect=is_new,
            ai_provider=reply.provider,
            email_sent=email_sent,
            admin_notified=admin_notified,
        )
        return ContactResponse(
            success=True,
            prospect_id=prospect.id,
            conversation_id=conversation_id,
            email_sent=email_sent,
            admin_notified=admin_notified,
            is_new_prospect=is_new,
        )

    async def _send_response_email(
        self, request: ContactRequest, email: str, reply: str, is_new: bool
    ) -> bool:
        if is_new:
            template, subject = "welcome-prospect", f"Thanks for reaching out, {request.name}"
        else:
            template, subject = "returning-prospect", f"Great to hear from you again, {request.name}!"

        return await self.mailer.send_template(
            email,
            subject,
            template,
            {"name": request.name, "message": request.message, "response_content": reply},
        )

    async def _notify_admin_contact(
        self, request: ContactRequest, email: str, reply: str, is_new: bool, now: datetime
    ) -> bool:
        label = "NEW" if is_new else "RETURNING"
        return await self.mailer.send_template(
            self.admin_email,
            f"New contact message ({label}) - {request.name}",
            "admin-contact-notification",
            {
                "prospect_type": "first contact" if is_new else "returning contact",
                "name": request.name,
                "email": email,
                "phone": request.phone or "Not provided",
                "received_at": now.strftime("%Y-%m-%d %H:%M UTC"),
                "message": request.message,
                "response_content": reply,
            },
        )

    # ========================================================================
    # Newsletter
    # ========================================================================

    async def handle_subscribe(self, request: SubscribeRequest) -> SubscribeResponse:
        """Idempotent on email: a second subscription returns the existing id."""
        email = str(request.email).lower()
        existing = await self.find_subscriber(email)
        if existing is not None:
            return SubscribeResponse(
                success=True, subscriber_id=existing.id, already_subscribed=True
            )

        now = datetime.now(UTC)
        meta = request.meta
        subscriber = await self.store.insert(
            Subscriber(
                id=new_id(),
                email=email,
                user_agent=meta.user_agent,
                referrer=meta.referrer,
                page=meta.page,
                client_ts=meta.ts.isoformat() if meta.ts else None,
                created_at=now,
            )
        )

        admin_notified = await self.mailer.send_template(
            self.admin_email,
            "New newsletter subscription",
            "admin-subscription-notification",
            {
                "email": email,
                "subscribed_at": now.strftime("%Y-%m-%d %H:%M UTC"),
                "user_agent": meta.user_agent,
                "page": meta.page,
                "referrer": meta.referrer or "-",
            },
        )
        welcome_sent = await self.mailer.send_template(
            email, f"Welcome to the {self.mailer.settings.company_name} newsletter!", "subscriber-welcome"
        )

        logger.info(
            "subscriber_added",
            subscriber_id=subscriber.id,
            admin_notified=admin_notified,
            email_sent=welcome_sent,
        )
        return SubscribeResponse(
            success=True, subscriber_id=subscriber.id, already_subscribed=False
        )

    async def handle_unsubscribe(self, email: str) -> UnsubscribeResponse:
        subscriber = await self.find_subscriber(email)
        if subscriber is None:
            return UnsubscribeResponse(success=True, removed=False)

        await self.store.delete(subscriber)
        email_sent = await self.mailer.send_template(
            subscriber.email, "Unsubscribe confirmation - Newsletter", "unsubscribe-confirmation"
        )
        logger.info("subscriber_removed", subscriber_id=subscriber.id, email_sent=email_sent)
        return UnsubscribeResponse(success=True, removed=True)

    # ========================================================================
    # Diagnostics
    # ========================================================================

    async def test_database(self) -> ServiceStatus:
        """Round-trip a read against the store."""
        start = time.monotonic()
        await self.store.query(Subscriber, limit=1)
        latency_ms = round((time.monotonic() - start) * 1000, 2)
        return ServiceStatus(status="healthy", latency_ms=latency_ms)

    async def test_mail(self) -> MailTestResponse:
        sent = await self.mailer.send(
            self.admin_email,
            "Mail configuration test - API",
            "<h2>Mail configuration works</h2>"
            "<p>This is a test message sent by the back-office API.</p>",
        )
        return MailTestResponse(success=sent, recipient=self.admin_email)
