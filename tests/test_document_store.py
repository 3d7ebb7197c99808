"""
Tests for SqlDocumentStore against a mocked AsyncSession.
"""

from unittest.mock import MagicMock

import pytest

from backoffice.db.document_store import SqlDocumentStore
from backoffice.db.models import BlogPost, Project, SupportTicket, UserProfile
from backoffice.exceptions import ValidationError
from tests.fakes import make_profile


def _compiled(db_session) -> str:
    stmt = db_session.execute.call_args.args[0]
    return str(stmt.compile(compile_kwargs={"literal_binds": True}))


class TestWrites:
    """Every write is committed immediately."""

    @pytest.mark.asyncio
    async def test_insert_commits_and_refreshes(self, db_session):
        profile = make_profile("uid-1")

        result = await SqlDocumentStore(db_session).insert(profile)

        assert result is profile
        db_session.add.assert_called_once_with(profile)
        db_session.commit.assert_awaited_once()
        db_session.refresh.assert_awaited_once_with(profile)

    @pytest.mark.asyncio
    async def test_update_applies_changes(self, db_session):
        profile = make_profile("uid-1")

        await SqlDocumentStore(db_session).update(profile, {"phone": "555-0100"})

        assert profile.phone == "555-0100"
        db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_commits(self, db_session):
        profile = make_profile("uid-1")

        await SqlDocumentStore(db_session).delete(profile)

        db_session.delete.assert_awaited_once_with(profile)
        db_session.commit.assert_awaited_once()


class TestReads:
    """Tests for get_by_id and query."""

    @pytest.mark.asyncio
    async def test_get_by_id_returns_none_when_missing(self, db_session):
        assert await SqlDocumentStore(db_session).get_by_id(Project, "missing") is None
        db_session.get.assert_awaited_once_with(Project, "missing")

    @pytest.mark.asyncio
    async def test_query_returns_scalars(self, db_session):
        rows = [make_profile("a"), make_profile("b")]
        result = MagicMock()
        result.scalars = MagicMock(return_value=MagicMock(all=MagicMock(return_value=rows)))
        db_session.execute.return_value = result

        assert await SqlDocumentStore(db_session).query(UserProfile) == rows

    @pytest.mark.asyncio
    async def test_query_builds_filters_order_and_limit(self, db_session):
        await SqlDocumentStore(db_session).query(
            SupportTicket,
            where=[
                ("client_id", "==", "uid-1"),
                ("priority", "!=", "low"),
                ("status", "in", ["open", "in-progress"]),
            ],
            order_by="created_at",
            descending=True,
            limit=5,
        )

        sql = _compiled(db_session)
        assert "support_tickets.client_id = 'uid-1'" in sql
        assert "support_tickets.priority != 'low'" in sql
        assert "support_tickets.status IN ('open', 'in-progress')" in sql
        assert "ORDER BY support_tickets.created_at DESC" in sql
        assert "LIMIT 5" in sql

    @pytest.mark.asyncio
    async def test_equality_with_none_uses_is_null(self, db_session):
        await SqlDocumentStore(db_session).query_by_field(BlogPost, "published_at", "==", None)

        assert "posts.published_at IS NULL" in _compiled(db_session)

    @pytest.mark.asyncio
    async def test_unknown_operator_rejected(self, db_session):
        with pytest.raises(ValidationError, match="operator"):
            await SqlDocumentStore(db_session).query_by_field(Project, "name", "like", "x%")

        db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, db_session):
        with pytest.raises(ValidationError, match="Unknown field"):
            await SqlDocumentStore(db_session).query_by_field(Project, "colour", "==", "red")


class TestInMemoryParity:
    """The in-memory double used by service tests follows the same rules."""

    @pytest.mark.asyncio
    async def test_ordering_comparison_never_matches_none(self, store):
        store.seed(
            make_profile("a", storage_limit_bytes=None), make_profile("b", storage_limit_bytes=5)
        )

        rows = await store.query_by_field(UserProfile, "storage_limit_bytes", ">", 1)

        assert [row.uid for row in rows] == ["b"]

    @pytest.mark.asyncio
    async def test_unknown_operator_rejected(self, store):
        with pytest.raises(ValidationError):
            await store.query_by_field(Project, "name", "like", "x%")
