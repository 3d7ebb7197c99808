"""
Tests for FormService: contact, subscribe and unsubscribe flows.
"""

import pytest

from backoffice.db.models import Prospect, Subscriber
from backoffice.models.api import ContactRequest, FormMeta, SubscribeRequest
from backoffice.services.forms import FormService, build_conversation, mark_email_sent
from tests.fakes import FakeMailSender

ADMIN_EMAIL = "admin@agency.example.com"


@pytest.fixture
def forms(store, mailer, ai_service) -> FormService:
    return FormService(store, mailer, ai_service, admin_email=ADMIN_EMAIL)


def _contact(message: str = "I need a quote for a website") -> ContactRequest:
    return ContactRequest(
        name="Ada",
        email="Ada@Example.com",
        phone="",
        message=message,
        meta=FormMeta(userAgent="pytest", page="/contact"),
    )


class TestConversationRecords:
    """Tests for the conversation helpers."""

    def test_build_conversation_shape(self):
        from datetime import UTC, datetime

        now = datetime(2026, 10, 19, tzinfo=UTC)
        conversation = build_conversation("Hi", FormMeta(page="/"), "Hello", now)

        assert conversation["incoming_message"]["content"] == "Hi"
        assert conversation["incoming_message"]["meta"]["page"] == "/"
        assert conversation["outgoing_response"]["content"] == "Hello"
        assert conversation["outgoing_response"]["email_sent"] is False
        assert conversation["timestamp"] == now.isoformat()

    def test_mark_email_sent_only_touches_target(self):
        conversations = [
            {"conversation_id": "a", "outgoing_response": {"email_sent": False}},
            {"conversation_id": "b", "outgoing_response": {"email_sent": False}},
        ]

        updated = mark_email_sent(conversations, "b")

        assert updated[0]["outgoing_response"]["email_sent"] is False
        assert updated[1]["outgoing_response"]["email_sent"] is True
        assert conversations[1]["outgoing_response"]["email_sent"] is False


class TestContact:
    """Tests for FormService.handle_contact."""

    @pytest.mark.asyncio
    async def test_first_contact_creates_prospect(self, store, forms, mail_sender):
        response = await forms.handle_contact(_contact())

        assert response.success is True
        assert response.is_new_prospect is True
        assert response.email_sent is True
        assert response.admin_notified is True

        (prospect,) = store.all(Prospect)
        assert prospect.email == "ada@example.com"
        assert len(prospect.conversations) == 1
        conversation = prospect.conversations[0]
        assert conversation["conversation_id"] == response.conversation_id
        assert conversation["outgoing_response"]["content"] == "Hello from the assistant."
        assert conversation["outgoing_response"]["email_sent"] is True

        assert mail_sender.recipients() == ["ada@example.com", ADMIN_EMAIL]
        assert mail_sender.sent[0][1] == "Thanks for reaching out, Ada"
        assert mail_sender.sent[1][1] == "New contact message (NEW) - Ada"

    @pytest.mark.asyncio
    async def test_returning_contact_appends_conversation(
        self, store, forms, mail_sender, openai_provider
    ):
        first = await forms.handle_contact(_contact("First question about support"))
        second = await forms.handle_contact(_contact("Second question"))

        assert second.is_new_prospect is False
        assert second.prospect_id == first.prospect_id
        (prospect,) = store.all(Prospect)
        assert [c["conversation_id"] for c in prospect.conversations] == [
            first.conversation_id,
            second.conversation_id,
        ]
        assert mail_sender.sent[2][1] == "Great to hear from you again, Ada!"
        assert mail_sender.sent[3][1] == "New contact message (RETURNING) - Ada"

        prompt, context = openai_provider.calls[-1]
        assert "First question about support" in prompt
        assert context.is_returning_prospect is True
        assert context.previous_conversations[0].topic == "support"

    @pytest.mark.asyncio
    async def test_mail_failure_leaves_reply_unsent(self, store, ai_service):
        from backoffice.config import settings
        from backoffice.services.mail import Mailer
        from backoffice.services.templates import TemplateRenderer

        failing = Mailer(FakeMailSender(succeed=False), TemplateRenderer(), settings)
        service = FormService(store, failing, ai_service, admin_email=ADMIN_EMAIL)

        response = await service.handle_contact(_contact())

        assert response.success is True
        assert response.email_sent is False
        assert response.admin_notified is False
        (prospect,) = store.all(Prospect)
        assert prospect.conversations[0]["outgoing_response"]["email_sent"] is False

    @pytest.mark.asyncio
    async def test_ai_failure_uses_canned_reply(self, store, forms, openai_provider):
        openai_provider.fail = True

        response = await forms.handle_contact(_contact())

        assert response.success is True
        (prospect,) = store.all(Prospect)
        reply = prospect.conversations[0]["outgoing_response"]["content"]
        assert reply == "Hi Ada, I received your message and will reply within 24 hours."


class TestNewsletter:
    """Tests for subscribe and unsubscribe."""

    @pytest.mark.asyncio
    async def test_subscribe_stores_and_notifies(self, store, forms, mail_sender):
        response = await forms.handle_subscribe(
            SubscribeRequest(email="Reader@Example.com", meta=FormMeta(page="/blog"))
        )

        assert response.already_subscribed is False
        (subscriber,) = store.all(Subscriber)
        assert subscriber.email == "reader@example.com"
        assert subscriber.page == "/blog"
        assert mail_sender.recipients() == [ADMIN_EMAIL, "reader@example.com"]
        assert "unsubscribe?email=reader%40example.com" in mail_sender.sent[1][2]

    @pytest.mark.asyncio
    async def test_subscribe_is_idempotent(self, store, forms, mail_sender):
        first = await forms.handle_subscribe(SubscribeRequest(email="reader@example.com"))
        second = await forms.handle_subscribe(SubscribeRequest(email="READER@example.com"))

        assert second.already_subscribed is True
        assert second.subscriber_id == first.subscriber_id
        assert len(store.all(Subscriber)) == 1
        assert len(mail_sender.sent) == 2

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_and_confirms(self, store, forms, mail_sender):
        await forms.handle_subscribe(SubscribeRequest(email="reader@example.com"))

        response = await forms.handle_unsubscribe("Reader@example.com")

        assert response.removed is True
        assert store.all(Subscriber) == []
        assert mail_sender.sent[-1][0] == "reader@example.com"
        assert mail_sender.sent[-1][1] == "Unsubscribe confirmation - Newsletter"

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown_email(self, forms, mail_sender):
        response = await forms.handle_unsubscribe("nobody@example.com")

        assert response.success is True
        assert response.removed is False
        assert mail_sender.sent == []


class TestDiagnostics:
    """Tests for the diagnostic helpers."""

    @pytest.mark.asyncio
    async def test_database_check(self, forms):
        status = await forms.test_database()

        assert status.status == "healthy"
        assert status.latency_ms >= 0

    @pytest.mark.asyncio
    async def test_mail_check_targets_admin(self, forms, mail_sender):
        response = await forms.test_mail()

        assert response.success is True
        assert response.recipient == ADMIN_EMAIL
        assert mail_sender.recipients() == [ADMIN_EMAIL]
