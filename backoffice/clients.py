"""
Service Clients - the process-wide external collaborators.

Built once at startup and installed with ``init_clients``; installing a
second time is an error, as is using them before installation.
"""

from dataclasses import dataclass
from datetime import timedelta

from structlog import get_logger

from backoffice.config import Settings
from backoffice.exceptions import ClientsAlreadyInitializedError, ClientsNotInitializedError
from backoffice.services.ai import AIService, select_default_provider
from backoffice.services.ai.providers import (
    AIProvider,
    AIProviderType,
    ClaudeProvider,
    GeminiProvider,
    OpenAIProvider,
)
from backoffice.services.identity import IdentityProvider, IdentityVerifier
from backoffice.services.mail import Mailer, SesMailSender
from backoffice.services.storage import ObjectStore, S3ObjectStore
from backoffice.services.templates import TemplateRenderer

logger = get_logger(__name__)


@dataclass
class ServiceClients:
    """External clients shared by every request."""

    identity: IdentityProvider
    verifier: IdentityVerifier
    object_store: ObjectStore
    mailer: Mailer
    ai: AIService

    async def aclose(self) -> None:
        for provider in self.ai.providers.values():
            if isinstance(provider, ClaudeProvider):
                await provider.close()


def build_ai_service(settings: Settings) -> AIService:
    providers: dict[AIProviderType, AIProvider] = {}
    if settings.OPENAI_API_KEY:
        providers[AIProviderType.OPENAI] = OpenAIProvider(
            settings.OPENAI_API_KEY, settings.openai_model
        )
    if settings.ANTHROPIC_API_KEY:
        providers[AIProviderType.CLAUDE] = ClaudeProvider(
            settings.ANTHROPIC_API_KEY, settings.anthropic_model
        )
    if settings.GOOGLE_AI_API_KEY:
        providers[AIProviderType.GEMINI] = GeminiProvider(
            settings.GOOGLE_AI_API_KEY, settings.gemini_model
        )

    return AIService(
        providers=providers,
        default_provider=select_default_provider(settings),
        company=AIService.company_from_settings(settings),
        enabled=settings.ai_enabled,
    )


def build_clients(settings: Settings) -> ServiceClients:
    """Construct every external client from settings."""
    identity = IdentityProvider(
        session_secret=settings.SESSION_JWT_SECRET,
        access_secret=settings.ACCESS_TOKEN_SECRET,
        issuer=settings.jwt_issuer,
        access_token_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
        session_ttl=timedelta(days=settings.session_ttl_days),
    )
    object_store = S3ObjectStore(
        bucket=settings.storage_bucket,
        region=settings.storage_region,
        endpoint=settings.storage_endpoint,
        access_key_id=settings.storage_access_key_id,
        secret_access_key=settings.storage_secret_access_key,
        public_base_url=settings.storage_public_base_url,
    )
    sender = SesMailSender(
        region=settings.aws_ses_region,
        from_email=settings.mail_from_email,
        from_name=settings.mail_sender_name,
    )

    return ServiceClients(
        identity=identity,
        verifier=IdentityVerifier(identity),
        object_store=object_store,
        mailer=Mailer(sender, TemplateRenderer(), settings),
        ai=build_ai_service(settings),
    )


_clients: ServiceClients | None = None


def init_clients(clients: ServiceClients) -> ServiceClients:
    """
    Install the process-wide clients.

    Raises:
        ClientsAlreadyInitializedError: Clients were already installed
    """
    global _clients
    if _clients is not None:
        raise ClientsAlreadyInitializedError()

    _clients = clients
    logger.info(
        "service_clients_initialized",
        ai_enabled=clients.ai.enabled,
        ai_providers=sorted(p.value for p in clients.ai.providers),
    )
    return clients


def get_clients() -> ServiceClients:
    """
    Raises:
        ClientsNotInitializedError: init_clients has not been called
    """
    if _clients is None:
        raise ClientsNotInitializedError()
    return _clients


def reset_clients() -> None:
    """Uninstall the clients (shutdown and tests)."""
    global _clients
    _clients = None
