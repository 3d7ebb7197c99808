"""
Tests for Settings validation and service client wiring.
"""

import pytest
import structlog

from backoffice import clients as clients_module
from backoffice.clients import (
    build_ai_service,
    get_clients,
    init_clients,
    reset_clients,
)
from backoffice.config import ConfigurationError, Settings, settings
from backoffice.exceptions import ClientsAlreadyInitializedError, ClientsNotInitializedError
from backoffice.models.domain import Identity
from backoffice.observability.logging import (
    add_app_context,
    bind_caller,
    log_context,
    redact_secrets,
)
from backoffice.services.ai import AIProviderType
from backoffice.services.ai.providers import ClaudeProvider

VALID = {
    "database_url": "postgresql+asyncpg://u:p@localhost/db",
    "SESSION_JWT_SECRET": "s" * 32,
    "ACCESS_TOKEN_SECRET": "a" * 32,
}


class TestSettingsValidation:
    """FAIL FAST configuration checks."""

    def test_valid_settings(self):
        s = Settings(**VALID)
        assert s.ticket_quota_scope == "user"
        assert s.default_monthly_ticket_limit == 2

    def test_missing_database_url(self):
        with pytest.raises(ConfigurationError, match="DATABASE_URL is required"):
            Settings(**{**VALID, "database_url": ""})

    def test_non_postgres_url(self):
        with pytest.raises(ConfigurationError, match="PostgreSQL"):
            Settings(**{**VALID, "database_url": "mysql://u:p@localhost/db"})

    def test_short_secret(self):
        with pytest.raises(ConfigurationError, match="SESSION_JWT_SECRET must be at least"):
            Settings(**{**VALID, "SESSION_JWT_SECRET": "short"})

    def test_secrets_must_differ(self):
        with pytest.raises(ConfigurationError, match="must differ"):
            Settings(**{**VALID, "ACCESS_TOKEN_SECRET": "s" * 32})

    def test_allowed_origins_list(self):
        s = Settings(**VALID, allowed_origins=" https://a.example.com ,,https://b.example.com")
        assert s.allowed_origins_list == ["https://a.example.com", "https://b.example.com"]

    def test_sender_name_defaults_to_company(self):
        s = Settings(**VALID, company_name="Acme", mail_from_name="")
        assert s.mail_sender_name == "Acme"


class TestServiceClients:
    """Process-wide clients are installed exactly once."""

    @pytest.fixture(autouse=True)
    def clean_clients(self):
        reset_clients()
        yield
        reset_clients()

    def test_get_before_init_raises(self):
        with pytest.raises(ClientsNotInitializedError):
            get_clients()

    def test_double_init_raises(self, service_clients):
        init_clients(service_clients)

        with pytest.raises(ClientsAlreadyInitializedError):
            init_clients(service_clients)

        assert get_clients() is service_clients

    def test_reset_allows_reinit(self, service_clients):
        init_clients(service_clients)
        reset_clients()

        assert init_clients(service_clients) is service_clients
        assert clients_module._clients is service_clients

    def test_ai_providers_built_from_keys(self):
        s = settings.model_copy(
            update={
                "OPENAI_API_KEY": "",
                "ANTHROPIC_API_KEY": "sk-ant",
                "GOOGLE_AI_API_KEY": "",
                "DEFAULT_AI_PROVIDER": "",
                "ai_enabled": True,
            }
        )

        ai = build_ai_service(s)

        assert list(ai.providers) == [AIProviderType.CLAUDE]
        assert isinstance(ai.providers[AIProviderType.CLAUDE], ClaudeProvider)
        assert ai.default_provider == AIProviderType.CLAUDE
        assert ai.enabled is True

    @pytest.mark.asyncio
    async def test_aclose_closes_http_providers(self, service_clients):
        claude = ClaudeProvider("sk-ant", "model")
        _ = claude.http_client
        service_clients.ai.providers[AIProviderType.CLAUDE] = claude

        await service_clients.aclose()

        assert claude._http_client is None


class TestMigrationRunner:
    """Alembic configuration derived from settings."""

    def test_sync_url_swaps_driver(self):
        from backoffice.db.migration_runner import sync_database_url

        assert (
            sync_database_url("postgresql+asyncpg://u:p@h/db") == "postgresql+psycopg2://u:p@h/db"
        )
        assert sync_database_url("postgresql://u:p@h/db") == "postgresql://u:p@h/db"

    def test_alembic_ini_shipped_at_project_root(self):
        from backoffice.db.migration_runner import ALEMBIC_INI_PATH

        assert ALEMBIC_INI_PATH.is_file()


class TestLogProcessors:
    """structlog processors applied to every entry."""

    def test_app_context_added(self):
        """Entries carry service name and version."""
        event = add_app_context(None, "info", {"event": "file_uploaded"})
        assert event["service"] == settings.service_name
        assert event["version"] == settings.api_version

    def test_credentials_masked(self):
        """Password and token fields never reach the renderer."""
        event = redact_secrets(
            None, "info", {"event": "x", "password": "hunter2", "token": "eyJ", "uid": "u1"}
        )
        assert event["password"] == "***"
        assert event["token"] == "***"
        assert event["uid"] == "u1"

    def test_log_context_unbinds_on_exit(self):
        """Request fields disappear once the block ends."""
        with log_context(request_id="req-1"):
            assert structlog.contextvars.get_contextvars()["request_id"] == "req-1"

        assert "request_id" not in structlog.contextvars.get_contextvars()

    def test_bind_caller(self):
        structlog.contextvars.clear_contextvars()

        bind_caller(Identity(id="uid-1", role="client"))

        bound = structlog.contextvars.get_contextvars()
        assert bound["caller_id"] == "uid-1"
        assert bound["caller_role"] == "client"
        structlog.contextvars.clear_contextvars()
