"""community membership schema

Revision ID: 5b1e2c7d9a10
Revises:
Create Date: 2026-10-19 09:12:44.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b1e2c7d9a10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BIGINT_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
STATUS = sa.String(length=16)


def upgrade() -> None:
    """Create users, communities, memberships, join requests and invitations."""
    op.create_table(
        "app_user",
        sa.Column("id", BIGINT_PK, autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=30), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_app_user_username", "app_user", ["username"], unique=True)

    op.create_table(
        "community",
        sa.Column("id", BIGINT_PK, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("name_key", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("visibility", STATUS, nullable=False),
        sa.Column("creator_id", BIGINT_PK, nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("cover_image_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["creator_id"], ["app_user.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name_key"),
    )
    op.create_index("ix_community_creator_id", "community", ["creator_id"])

    op.create_table(
        "community_member",
        sa.Column("id", BIGINT_PK, autoincrement=True, nullable=False),
        sa.Column("user_id", BIGINT_PK, nullable=False),
        sa.Column("community_id", BIGINT_PK, nullable=False),
        sa.Column("role", STATUS, nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["community_id"], ["community.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "community_id", name="uq_community_member_user_community"
        ),
    )
    op.create_index(
        "ix_community_member_community_id", "community_member", ["community_id"]
    )

    op.create_table(
        "join_request",
        sa.Column("id", BIGINT_PK, autoincrement=True, nullable=False),
        sa.Column("community_id", BIGINT_PK, nullable=False),
        sa.Column("user_id", BIGINT_PK, nullable=False),
        sa.Column("status", STATUS, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["community_id"], ["community.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "community_id", "user_id", name="uq_join_request_community_user"
        ),
    )
    op.create_index("ix_join_request_community_id", "join_request", ["community_id"])

    op.create_table(
        "community_invitation",
        sa.Column("id", BIGINT_PK, autoincrement=True, nullable=False),
        sa.Column("community_id", BIGINT_PK, nullable=False),
        sa.Column("inviter_id", BIGINT_PK, nullable=False),
        sa.Column("invitee_id", BIGINT_PK, nullable=False),
        sa.Column("status", STATUS, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["community_id"], ["community.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["inviter_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["invitee_id"], ["app_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "community_id", "invitee_id", name="uq_community_invitation_community_invitee"
        ),
    )
    op.create_index(
        "ix_community_invitation_community_id", "community_invitation", ["community_id"]
    )
    op.create_index(
        "ix_community_invitation_invitee_id", "community_invitation", ["invitee_id"]
    )


def downgrade() -> None:
    """Drop the community membership schema."""
    op.drop_index("ix_community_invitation_invitee_id", table_name="community_invitation")
    op.drop_index("ix_community_invitation_community_id", table_name="community_invitation")
    op.drop_table("community_invitation")
    op.drop_index("ix_join_request_community_id", table_name="join_request")
    op.drop_table("join_request")
    op.drop_index("ix_community_member_community_id", table_name="community_member")
    op.drop_table("community_member")
    op.drop_index("ix_community_creator_id", table_name="community")
    op.drop_table("community")
    op.drop_index("ix_app_user_username", table_name="app_user")
    op.drop_table("app_user")
