"""initial schema

Revision ID: 2026_10_19_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_10_19_0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")
        ),
    ]


def upgrade() -> None:
    """Create initial database schema."""

    # ========================================================================
    # Identity provider accounts and user profiles
    # ========================================================================
    op.create_table(
        "auth_users",
        sa.Column("uid", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("role_claim", sa.String(20), nullable=True),
        sa.Column("disabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_auth_users_email"),
    )

    op.create_table(
        "users",
        sa.Column("uid", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("role", sa.String(20), nullable=True),
        sa.Column("storage_limit_bytes", sa.BigInteger(), nullable=True),
        sa.Column("monthly_ticket_limit", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_users_role", "users", ["role"])

    op.create_table(
        "revoked_tokens",
        sa.Column("token_hash", sa.String(64), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "revoked_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")
        ),
    )
    op.create_index("idx_revoked_tokens_expires", "revoked_tokens", ["expires_at"])

    # ========================================================================
    # Files and reports
    # ========================================================================
    op.create_table(
        "files",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.String(255), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")
        ),
        sa.CheckConstraint("size >= 0", name="ck_file_size_non_negative"),
    )
    op.create_index("idx_files_owner_created", "files", ["owner_id", "created_at"])

    op.create_table(
        "reports",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("client_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.String(255), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")
        ),
    )
    op.create_index("idx_reports_client_created", "reports", ["client_id", "created_at"])

    # ========================================================================
    # Projects and support tickets
    # ========================================================================
    op.create_table(
        "projects",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("client_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("monthly_ticket_limit", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'completed', 'archived')", name="ck_project_status"
        ),
    )
    op.create_index("idx_projects_client", "projects", ["client_id"])

    op.create_table(
        "support_tickets",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("client_id", sa.String(64), nullable=False),
        sa.Column("client_email", sa.String(255), nullable=False, server_default=""),
        sa.Column("project_id", sa.String(64), nullable=True),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("admin_response", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
        sa.CheckConstraint("priority IN ('low', 'medium', 'high')", name="ck_ticket_priority"),
        sa.CheckConstraint(
            "status IN ('open', 'in-progress', 'resolved')", name="ck_ticket_status"
        ),
    )
    op.create_index(
        "idx_tickets_client_created", "support_tickets", ["client_id", "created_at"]
    )
    op.create_index(
        "idx_tickets_project_created", "support_tickets", ["project_id", "created_at"]
    )

    # ========================================================================
    # Blog
    # ========================================================================
    op.create_table(
        "posts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("cover_image", sa.Text(), nullable=True),
        sa.Column("author", sa.String(255), nullable=True),
        sa.Column("author_id", sa.String(64), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("tags", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("slug", name="uq_posts_slug"),
    )

    # ========================================================================
    # Public forms
    # ========================================================================
    op.create_table(
        "prospects",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="prospect"),
        sa.Column("auth_user_id", sa.String(64), nullable=True),
        sa.Column(
            "conversations", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")
        ),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_prospects_email"),
    )

    op.create_table(
        "subscribers",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("user_agent", sa.Text(), nullable=False, server_default=""),
        sa.Column("referrer", sa.Text(), nullable=True),
        sa.Column("page", sa.Text(), nullable=False, server_default=""),
        sa.Column("client_ts", sa.String(64), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")
        ),
        sa.UniqueConstraint("email", name="uq_subscribers_email"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("subscribers")
    op.drop_table("prospects")
    op.drop_table("posts")
    op.drop_index("idx_tickets_project_created", table_name="support_tickets")
    op.drop_index("idx_tickets_client_created", table_name="support_tickets")
    op.drop_table("support_tickets")
    op.drop_index("idx_projects_client", table_name="projects")
    op.drop_table("projects")
    op.drop_index("idx_reports_client_created", table_name="reports")
    op.drop_table("reports")
    op.drop_index("idx_files_owner_created", table_name="files")
    op.drop_table("files")
    op.drop_index("idx_revoked_tokens_expires", table_name="revoked_tokens")
    op.drop_table("revoked_tokens")
    op.drop_index("idx_users_role", table_name="users")
    op.drop_table("users")
    op.drop_table("auth_users")
