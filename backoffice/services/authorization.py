"""
Role Authorizer and Ownership Filter.

Role precedence: the role claim embedded in the credential wins; the stored
profile is only consulted when the credential carries no claim. A claim
stays in force until a new credential is issued, so a role change on the
profile alone is not seen by holders of older credentials that carry one.
"""

from collections.abc import Iterable
from typing import Protocol

from structlog import get_logger

from backoffice.db.document_store import DocumentStore
from backoffice.db.models import UserProfile
from backoffice.exceptions import ForbiddenError, NotFoundError
from backoffice.models.api import Role
from backoffice.models.domain import Identity
from backoffice.observability.metrics import metrics

logger = get_logger(__name__)


class OwnedResource(Protocol):
    """Any record subject to the ownership filter."""

    id: str

    @property
    def owner_id(self) -> str: ...


async def resolve_role(identity: Identity, store: DocumentStore) -> str | None:
    """Return the caller's role: claim first, profile as fallback."""
    if identity.role:
        return identity.role

    profile = await store.get_by_id(UserProfile, identity.id)
    if profile is None:
        return None
    return profile.role


async def authorize(
    identity: Identity, allowed_roles: Iterable[str], store: DocumentStore
) -> Identity:
    """
    Check the caller's role against the roles permitted for an operation.

    An empty ``allowed_roles`` permits any authenticated caller.

    Returns:
        The identity with its role populated (when one could be resolved)

    Raises:
        ForbiddenError: No role could be resolved, or it is not permitted
    """
    allowed = frozenset(role.value if isinstance(role, Role) else role for role in allowed_roles)
    if not allowed:
        metrics.record_auth_decision("allowed")
        return identity

    role = await resolve_role(identity, store)
    if role is None or role not in allowed:
        logger.warning(
            "auth_forbidden",
            user_id=identity.id,
            role=role,
            allowed_roles=sorted(allowed),
        )
        metrics.record_auth_decision("forbidden")
        raise ForbiddenError(role, allowed)

    metrics.record_auth_decision("allowed")
    return identity.with_role(role)


def is_owner_or_admin(owner_id: str, caller: Identity) -> bool:
    """Pure ownership rule: admins see everything, others only their own."""
    return caller.role == Role.ADMIN.value or owner_id == caller.id


def assert_ownership(resource: OwnedResource, caller: Identity, resource_name: str) -> None:
    """
    Hide resources the caller does not own.

    A mismatch is reported as NotFoundError so that the response does not
    reveal whether the resource exists.
    """
    if is_owner_or_admin(resource.owner_id, caller):
        return

    logger.warning(
        "ownership_mismatch",
        resource=resource_name,
        resource_id=resource.id,
        user_id=caller.id,
    )
    metrics.record_auth_decision("not_found")
    raise NotFoundError(resource_name, resource.id)
