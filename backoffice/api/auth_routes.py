"""
Auth routes - access tokens, session credentials and logout.

Flow:
1. POST /auth/token with email + password -> short-lived access token
2. POST /auth/session with that access token -> long-lived session
   credential, also set as the ``session`` cookie
3. POST /auth/logout revokes whichever credential was presented
"""

from fastapi import APIRouter, Depends, Response
from structlog import get_logger

from backoffice.api.dependencies import (
    SESSION_COOKIE,
    get_credential,
    get_current_identity,
    get_document_store,
    get_service_clients,
)
from backoffice.clients import ServiceClients
from backoffice.db.document_store import DocumentStore
from backoffice.exceptions import UnauthenticatedError
from backoffice.models.api import (
    CredentialResponse,
    LogoutResponse,
    SessionRequest,
    TokenRequest,
)
from backoffice.models.domain import Identity
from backoffice.services.token_revocation import token_revocation_service

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/token", response_model=CredentialResponse)
async def issue_token(
    request: TokenRequest,
    store: DocumentStore = Depends(get_document_store),
    clients: ServiceClients = Depends(get_service_clients),
) -> CredentialResponse:
    """Exchange email and password for an access token."""
    issued = await clients.identity.issue_access_token(store, request.email, request.password)
    return CredentialResponse(
        token=issued.token, token_type=issued.token_type, expires_in=issued.expires_in
    )


@router.post("/session", response_model=CredentialResponse)
async def create_session(
    request: SessionRequest,
    response: Response,
    store: DocumentStore = Depends(get_document_store),
    clients: ServiceClients = Depends(get_service_clients),
) -> CredentialResponse:
    """Exchange a valid access token for a session credential."""
    if await token_revocation_service.is_revoked(request.access_token, store):
        raise UnauthenticatedError("Credential has been revoked")

    issued = await clients.identity.create_session_credential(store, request.access_token)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=issued.token,
        max_age=issued.expires_in,
        httponly=True,
        secure=True,
        samesite="lax",
    )
    return CredentialResponse(
        token=issued.token, token_type=issued.token_type, expires_in=issued.expires_in
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    caller: Identity = Depends(get_current_identity),
    credential: str | None = Depends(get_credential),
    store: DocumentStore = Depends(get_document_store),
    clients: ServiceClients = Depends(get_service_clients),
) -> LogoutResponse:
    """Revoke the presented credential until it expires."""
    assert credential is not None  # get_current_identity rejects a missing credential

    await token_revocation_service.revoke_token(
        token=credential,
        user_id=caller.id,
        reason="logout",
        token_exp=clients.identity.credential_expiry(credential),
        store=store,
    )
    response.delete_cookie(SESSION_COOKIE)
    logger.info("user_logged_out", user_id=caller.id)
    return LogoutResponse(revoked=True)
