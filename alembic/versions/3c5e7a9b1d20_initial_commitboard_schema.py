"""Initial commitboard schema: users, profiles, commits, cache entries

Revision ID: 3c5e7a9b1d20
Revises:
Create Date: 2025-12-20 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "3c5e7a9b1d20"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("discord_username", sa.String(100), nullable=False),
    )

    op.create_table(
        "commit_overflow_profiles",
        sa.Column(
            "user_id",
            sa.String(32),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="America/New_York"),
        sa.Column("thread_id", sa.String(32), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
    )

    op.create_table(
        "commits",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column(
            "user_id",
            sa.String(32),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("message_id", sa.String(32), nullable=False),
        sa.Column("committed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_explicitly_private", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_commits_committed_at", "commits", [sa.text("committed_at DESC")])
    op.create_index("ix_commits_user_id", "commits", ["user_id"])

    op.create_table(
        "cache_entries",
        sa.Column("key", sa.String(255), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.Float(), nullable=True),
    )
    op.create_index("ix_cache_entries_expires_at", "cache_entries", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_cache_entries_expires_at", table_name="cache_entries")
    op.drop_table("cache_entries")
    op.drop_index("ix_commits_user_id", table_name="commits")
    op.drop_index("ix_commits_committed_at", table_name="commits")
    op.drop_table("commits")
    op.drop_table("commit_overflow_profiles")
    op.drop_table("users")
