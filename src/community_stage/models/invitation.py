# src/community_stage/models/invitation.py
"""Invitations issued by community staff to individual users."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from community_stage.db.session import Base
from community_stage.db.time import utcnow
from community_stage.db.types import BigIntPK

from .community import RequestStatus

if TYPE_CHECKING:
    from .community import Community
    from .user import User


class CommunityInvitation(Base):
    """Invitation awaiting the invitee's answer.

    A terminal row is reused when the same user is invited again.
    """

    __tablename__ = "community_invitation"
    __table_args__ = (
        UniqueConstraint(
            "community_id", "invitee_id", name="uq_community_invitation_community_invitee"
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("community.id", ondelete="CASCADE"), nullable=False, index=True
    )
    inviter_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
    )
    invitee_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, native_enum=False, length=16),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    community: Mapped[Community] = relationship("Community", back_populates="invitations")
    inviter: Mapped[User] = relationship("User", foreign_keys=[inviter_id])
    invitee: Mapped[User] = relationship("User", foreign_keys=[invitee_id])
