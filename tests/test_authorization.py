"""
Tests for the Role Authorizer and Ownership Filter.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from backoffice.db.models import StoredFile
from backoffice.exceptions import ForbiddenError, NotFoundError
from backoffice.models.api import Role
from backoffice.models.domain import Identity
from backoffice.services.authorization import (
    assert_ownership,
    authorize,
    is_owner_or_admin,
    resolve_role,
)
from tests.conftest import ADMIN_ID, CLIENT_ID, OTHER_CLIENT_ID
from tests.fakes import InMemoryDocumentStore, make_profile

roles = st.sampled_from([Role.ADMIN.value, Role.CLIENT.value])


def _file(owner_id: str) -> StoredFile:
    return StoredFile(
        id="file-1",
        owner_id=owner_id,
        title="Brief",
        description="",
        file_name="brief.pdf",
        storage_path=f"files/{owner_id}/brief.pdf",
        mime_type="application/pdf",
        size=10,
    )


class TestResolveRole:
    """Tests for role precedence."""

    @pytest.mark.asyncio
    async def test_claim_wins_over_profile(self, store):
        store.seed(make_profile(CLIENT_ID, role=Role.ADMIN.value))

        role = await resolve_role(Identity(id=CLIENT_ID, role=Role.CLIENT.value), store)

        assert role == Role.CLIENT.value

    @pytest.mark.asyncio
    async def test_profile_used_when_no_claim(self, store):
        store.seed(make_profile(CLIENT_ID, role=Role.ADMIN.value))

        assert await resolve_role(Identity(id=CLIENT_ID), store) == Role.ADMIN.value

    @pytest.mark.asyncio
    async def test_no_claim_and_no_profile(self, store):
        assert await resolve_role(Identity(id="stranger"), store) is None

    @pytest.mark.asyncio
    async def test_profile_without_role(self, store):
        store.seed(make_profile(CLIENT_ID, role=None))

        assert await resolve_role(Identity(id=CLIENT_ID), store) is None


class TestAuthorize:
    """Tests for authorize()."""

    @pytest.mark.asyncio
    async def test_client_calling_admin_operation_is_forbidden(self, store, client_identity):
        with pytest.raises(ForbiddenError) as exc_info:
            await authorize(client_identity, {Role.ADMIN}, store)

        assert exc_info.value.role == Role.CLIENT.value
        assert exc_info.value.allowed_roles == frozenset({"admin"})
        assert "admin" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_permitted_role_passes(self, store, admin):
        result = await authorize(admin, {Role.ADMIN, Role.CLIENT}, store)

        assert result.id == ADMIN_ID
        assert result.role == Role.ADMIN.value

    @pytest.mark.asyncio
    async def test_role_filled_in_from_profile(self, store):
        store.seed(make_profile(CLIENT_ID, role=Role.CLIENT.value))

        result = await authorize(Identity(id=CLIENT_ID), {Role.CLIENT}, store)

        assert result.role == Role.CLIENT.value

    @pytest.mark.asyncio
    async def test_unresolvable_role_is_forbidden(self, store):
        with pytest.raises(ForbiddenError) as exc_info:
            await authorize(Identity(id="stranger"), {Role.CLIENT}, store)

        assert exc_info.value.role is None

    @pytest.mark.asyncio
    async def test_empty_allowed_set_skips_role_lookup(self, store):
        """Any authenticated caller passes; the store is never consulted."""
        caller = Identity(id="stranger")

        result = await authorize(caller, set(), store)

        assert result is caller
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_plain_string_roles_accepted(self, store, admin):
        result = await authorize(admin, ["admin"], store)
        assert result.role == "admin"

    @given(role=roles, allowed=st.sets(roles), extra=st.sets(roles))
    @settings(max_examples=30)
    @pytest.mark.asyncio
    async def test_widening_allowed_roles_never_forbids(self, role, allowed, extra):
        """If a role passes for a set of roles, it passes for any superset."""
        store = InMemoryDocumentStore()
        caller = Identity(id="caller", role=role)

        try:
            await authorize(caller, allowed, store)
        except ForbiddenError:
            return

        result = await authorize(caller, allowed | extra, store)
        assert result.id == "caller"

    @given(role=roles, allowed=st.sets(roles, min_size=1))
    @settings(max_examples=30)
    @pytest.mark.asyncio
    async def test_decision_matches_membership(self, role, allowed):
        store = InMemoryDocumentStore()
        caller = Identity(id="caller", role=role)

        if role in allowed:
            assert (await authorize(caller, allowed, store)).role == role
        else:
            with pytest.raises(ForbiddenError):
                await authorize(caller, allowed, store)


class TestOwnership:
    """Tests for the ownership filter."""

    def test_owner_passes(self, client_identity):
        assert_ownership(_file(CLIENT_ID), client_identity, "File")

    def test_admin_passes_for_any_owner(self, admin):
        assert_ownership(_file(OTHER_CLIENT_ID), admin, "File")

    def test_non_owner_sees_not_found(self, client_identity):
        with pytest.raises(NotFoundError) as exc_info:
            assert_ownership(_file(OTHER_CLIENT_ID), client_identity, "File")

        assert exc_info.value.resource == "File"
        assert exc_info.value.resource_id == "file-1"

    @given(owner=st.text(min_size=1, max_size=8), caller=st.text(min_size=1, max_size=8))
    @settings(max_examples=50)
    def test_client_visibility_is_exact_owner_match(self, owner, caller):
        identity = Identity(id=caller, role=Role.CLIENT.value)
        assert is_owner_or_admin(owner, identity) == (owner == caller)

    @given(owner=st.text(min_size=1, max_size=8))
    @settings(max_examples=20)
    def test_admin_sees_everything(self, owner):
        assert is_owner_or_admin(owner, Identity(id="root", role=Role.ADMIN.value))
