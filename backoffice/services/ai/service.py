"""
AI reply generation for contact form messages.

A failing provider is retried once with the default provider; if that also
fails (or AI is disabled) the prospect gets a fixed canned reply. Callers
always receive a reply.
"""

import time
from typing import Any

from structlog import get_logger

from backoffice.config import Settings
from backoffice.db.models import Prospect
from backoffice.models.domain import AIResponse, ContactMessage
from backoffice.observability.metrics import metrics
from backoffice.services.ai.providers import (
    AIContext,
    AIProvider,
    AIProviderError,
    AIProviderType,
    CompanyInfo,
    ConversationSummary,
)

logger = get_logger(__name__)

FALLBACK_PROVIDER = "fallback"
TOPIC_KEYWORDS = ("price", "quote", "service", "information", "support", "consultation")
SUMMARY_LENGTH = 100
SUMMARY_CONVERSATIONS = 3


def select_default_provider(settings: Settings) -> AIProviderType:
    """DEFAULT_AI_PROVIDER if valid, else the first provider with an API key."""
    try:
        return AIProviderType(settings.DEFAULT_AI_PROVIDER.lower())
    except ValueError:
        pass

    if settings.OPENAI_API_KEY:
        return AIProviderType.OPENAI
    if settings.ANTHROPIC_API_KEY:
        return AIProviderType.CLAUDE
    if settings.GOOGLE_AI_API_KEY:
        return AIProviderType.GEMINI
    return AIProviderType.OPENAI


def canned_response(name: str, is_returning: bool) -> str:
    if is_returning:
        return (
            f"Hi {name}, I received your new message and will reply with priority "
            "within 12 hours."
        )
    return f"Hi {name}, I received your message and will reply within 24 hours."


def extract_topic(message: str) -> str:
    lowered = message.lower()
    for keyword in TOPIC_KEYWORDS:
        if keyword in lowered:
            return keyword
    return "general inquiry"


def _incoming_content(conversation: dict[str, Any]) -> str:
    return str(conversation.get("incoming_message", {}).get("content", ""))


class AIService:
    """Generates prospect replies through the configured providers."""

    def __init__(
        self,
        providers: dict[AIProviderType, AIProvider],
        default_provider: AIProviderType,
        company: CompanyInfo,
        enabled: bool = True,
    ) -> None:
        self.providers = providers
        self.default_provider = default_provider
        self.company = company
        self.enabled = enabled

    @classmethod
    def company_from_settings(cls, settings: Settings) -> CompanyInfo:
        return CompanyInfo(
            name=settings.company_name,
            description=settings.company_description,
            services=[s.strip() for s in settings.company_services.split(",") if s.strip()],
            values=[v.strip() for v in settings.company_values.split(",") if v.strip()],
            tone=settings.company_tone,
        )

    def build_context(self, contact: ContactMessage, existing: Prospect | None) -> AIContext:
        summaries: list[ConversationSummary] = []
        if existing is not None:
            for conversation in existing.conversations[-SUMMARY_CONVERSATIONS:]:
                content = _incoming_content(conversation)
                summaries.append(
                    ConversationSummary(
                        date=str(conversation.get("timestamp", "")),
                        topic=extract_topic(content),
                        summary=content[:SUMMARY_LENGTH] + "...",
                    )
                )

        return AIContext(
            prospect_name=contact.name,
            prospect_email=contact.email,
            message=contact.message,
            is_returning_prospect=existing is not None,
            company=self.company,
            previous_conversations=summaries,
        )

    def build_prompt(self, contact: ContactMessage, existing: Prospect | None) -> str:
        prompt = f'Inquiry: "{contact.message}"'
        if existing is not None and existing.conversations:
            last = _incoming_content(existing.conversations[-1])
            prompt += f'\n\nLast interaction: "{last}"'
        return prompt

    async def generate_prospect_response(
        self,
        contact: ContactMessage,
        existing: Prospect | None = None,
        provider_type: AIProviderType | None = None,
    ) -> AIResponse:
        """Reply text for a contact message; never raises."""
        start = time.monotonic()
        is_returning = existing is not None

        if not self.enabled:
            return AIResponse(
                content=canned_response(contact.name, is_returning),
                provider=FALLBACK_PROVIDER,
                processing_time_ms=0,
            )

        requested = provider_type or self.default_provider
        try:
            provider = self.providers.get(requested)
            if provider is None:
                raise AIProviderError(requested.value, "Provider is not configured")

            content = await provider.generate(
                self.build_prompt(contact, existing),
                self.build_context(contact, existing),
            )
        except AIProviderError as e:
            logger.warning("ai_provider_failed", provider=requested.value, error=e.message)
            return await self._fall_back(contact, existing, requested, start)
        except Exception as e:
            logger.exception(
                "ai_provider_unexpected_error", provider=requested.value, error=str(e)
            )
            return await self._fall_back(contact, existing, requested, start)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        metrics.record_ai_response(requested.value, "success")
        logger.info("ai_response_generated", provider=requested.value, processing_time_ms=elapsed_ms)
        return AIResponse(content=content, provider=requested.value, processing_time_ms=elapsed_ms)

    async def _fall_back(
        self,
        contact: ContactMessage,
        existing: Prospect | None,
        failed: AIProviderType,
        start: float,
    ) -> AIResponse:
        """Retry with the default provider once, then use the canned reply."""
        metrics.record_ai_response(failed.value, "error")

        if failed != self.default_provider:
            return await self.generate_prospect_response(contact, existing, self.default_provider)

        metrics.record_ai_response(FALLBACK_PROVIDER, "success")
        return AIResponse(
            content=canned_response(contact.name, existing is not None),
            provider=FALLBACK_PROVIDER,
            processing_time_ms=int((time.monotonic() - start) * 1000),
        )
