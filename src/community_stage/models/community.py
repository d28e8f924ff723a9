# src/community_stage/models/community.py
"""SQLAlchemy models for communities and their memberships."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from community_stage.db.session import Base
from community_stage.db.time import utcnow
from community_stage.db.types import BigIntPK

if TYPE_CHECKING:
    from .invitation import CommunityInvitation
    from .join_request import JoinRequest
    from .user import User


class Visibility(str, enum.Enum):
    """Who may join a community without approval."""

    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


class Role(str, enum.Enum):
    """Membership role; ordering lives in the authorization guard."""

    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    USER = "USER"


class RequestStatus(str, enum.Enum):
    """Lifecycle shared by join requests and invitations."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


def normalize_name(name: str) -> str:
    """Return the key used to compare community names."""
    return name.strip().casefold()


class Community(Base):
    """A group users join; always holds at least one ADMIN membership."""

    __tablename__ = "community"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # Uniqueness is enforced on the case-folded form.
    name_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    visibility: Mapped[Visibility] = mapped_column(
        Enum(Visibility, native_enum=False, length=16),
        nullable=False,
        default=Visibility.PUBLIC,
    )
    creator_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("app_user.id"), nullable=False, index=True
    )
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    members: Mapped[list[CommunityMember]] = relationship(
        "CommunityMember",
        back_populates="community",
        cascade="all, delete-orphan",
    )
    join_requests: Mapped[list[JoinRequest]] = relationship(
        "JoinRequest",
        back_populates="community",
        cascade="all, delete-orphan",
    )
    invitations: Mapped[list[CommunityInvitation]] = relationship(
        "CommunityInvitation",
        back_populates="community",
        cascade="all, delete-orphan",
    )


class CommunityMember(Base):
    """Membership of one user in one community, with a role."""

    __tablename__ = "community_member"
    __table_args__ = (
        UniqueConstraint("user_id", "community_id", name="uq_community_member_user_community"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    community_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("community.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, length=16),
        nullable=False,
        default=Role.USER,
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    community: Mapped[Community] = relationship("Community", back_populates="members")
    user: Mapped[User] = relationship("User", back_populates="memberships")
