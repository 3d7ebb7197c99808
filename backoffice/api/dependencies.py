"""
FastAPI Dependencies - authentication, authorization and services.

Every protected route depends on ``require_roles``; the verified identity it
returns carries the caller's resolved role.
"""

from collections.abc import Awaitable, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from backoffice.clients import ServiceClients, get_clients
from backoffice.config import settings
from backoffice.db.document_store import DocumentStore, SqlDocumentStore
from backoffice.db.session import get_write_db
from backoffice.exceptions import UnauthenticatedError
from backoffice.models.api import Role
from backoffice.models.domain import Identity
from backoffice.observability.logging import bind_caller
from backoffice.services.authorization import authorize
from backoffice.services.blog import BlogService
from backoffice.services.files import FileService
from backoffice.services.forms import FormService
from backoffice.services.projects import ProjectService
from backoffice.services.quota import StorageQuotaCalculator, TicketQuotaCalculator
from backoffice.services.reports import ReportService
from backoffice.services.support import SupportService
from backoffice.services.token_revocation import token_revocation_service
from backoffice.services.users import UserService

logger = get_logger(__name__)

SESSION_COOKIE = "session"

# Bearer token scheme; a missing header falls back to the session cookie
bearer_scheme = HTTPBearer(auto_error=False)


async def get_document_store(db: AsyncSession = Depends(get_write_db)) -> DocumentStore:
    return SqlDocumentStore(db)


def get_service_clients() -> ServiceClients:
    return get_clients()


# ============================================================================
# Authentication
# ============================================================================


def get_credential(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Bearer token from the Authorization header, else the session cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE)


async def get_current_identity(
    credential: str | None = Depends(get_credential),
    store: DocumentStore = Depends(get_document_store),
    clients: ServiceClients = Depends(get_service_clients),
) -> Identity:
    """
    Verify the caller's credential.

    Raises:
        UnauthenticatedError: Missing, invalid, expired or revoked credential
    """
    if credential and await token_revocation_service.is_revoked(credential, store):
        raise UnauthenticatedError("Credential has been revoked")

    identity = clients.verifier.verify(credential)
    bind_caller(identity)
    return identity


def require_roles(*roles: Role) -> Callable[..., Awaitable[Identity]]:
    """
    Dependency factory enforcing role authorization.

    Usage:
        @router.delete("/{report_id}")
        async def delete_report(
            report_id: str,
            caller: Identity = Depends(require_roles(Role.ADMIN)),
        ): ...

    With no roles, any authenticated caller is allowed.
    """
    allowed = frozenset(role.value for role in roles)

    async def role_checker(
        identity: Identity = Depends(get_current_identity),
        store: DocumentStore = Depends(get_document_store),
    ) -> Identity:
        return await authorize(identity, allowed, store)

    return role_checker


# ============================================================================
# Services
# ============================================================================


def get_storage_quota(
    store: DocumentStore = Depends(get_document_store),
) -> StorageQuotaCalculator:
    return StorageQuotaCalculator(
        store,
        default_limit=settings.default_storage_limit_bytes,
        admin_limit=settings.admin_storage_limit_bytes,
    )


def get_ticket_quota(
    store: DocumentStore = Depends(get_document_store),
) -> TicketQuotaCalculator:
    return TicketQuotaCalculator(
        store,
        scope=settings.ticket_quota_scope,
        default_limit=settings.default_monthly_ticket_limit,
    )


def get_file_service(
    store: DocumentStore = Depends(get_document_store),
    quota: StorageQuotaCalculator = Depends(get_storage_quota),
    clients: ServiceClients = Depends(get_service_clients),
) -> FileService:
    return FileService(
        store,
        clients.object_store,
        quota,
        signed_url_ttl=settings.signed_url_ttl_seconds,
    )


def get_report_service(
    store: DocumentStore = Depends(get_document_store),
    clients: ServiceClients = Depends(get_service_clients),
) -> ReportService:
    return ReportService(store, clients.object_store, signed_url_ttl=settings.signed_url_ttl_seconds)


def get_support_service(
    store: DocumentStore = Depends(get_document_store),
    quota: TicketQuotaCalculator = Depends(get_ticket_quota),
) -> SupportService:
    return SupportService(store, quota)


def get_project_service(store: DocumentStore = Depends(get_document_store)) -> ProjectService:
    return ProjectService(store)


def get_user_service(
    store: DocumentStore = Depends(get_document_store),
    clients: ServiceClients = Depends(get_service_clients),
) -> UserService:
    return UserService(
        store,
        clients.identity,
        clients.object_store,
        clients.mailer,
        login_url=f"{settings.website_url.rstrip('/')}/login",
    )


def get_blog_service(store: DocumentStore = Depends(get_document_store)) -> BlogService:
    return BlogService(store)


def get_form_service(
    store: DocumentStore = Depends(get_document_store),
    clients: ServiceClients = Depends(get_service_clients),
) -> FormService:
    return FormService(store, clients.mailer, clients.ai, admin_email=settings.company_email)
