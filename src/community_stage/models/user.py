# src/community_stage/models/user.py
"""SQLAlchemy model for user identities referenced by memberships."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from community_stage.db.session import Base
from community_stage.db.time import utcnow
from community_stage.db.types import BigIntPK

if TYPE_CHECKING:
    from .community import CommunityMember


class User(Base):
    """Registered user; ``username`` is stored lower-cased."""

    __tablename__ = "app_user"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    memberships: Mapped[list[CommunityMember]] = relationship(
        "CommunityMember",
        back_populates="user",
        cascade="all, delete-orphan",
    )
