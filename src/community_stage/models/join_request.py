# src/community_stage/models/join_request.py
"""Requests to join private communities."""

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


class JoinRequest(Base):
    """One row per (community, user); reopened rather than duplicated."""

    __tablename__ = "join_request"
    __table_args__ = (
        UniqueConstraint("community_id", "user_id", name="uq_join_request_community_user"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    community_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("community.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False
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

    community: Mapped[Community] = relationship("Community", back_populates="join_requests")
    user: Mapped[User] = relationship("User")
