"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ActionRequest(BaseModel):
    """Answer to a join request or an invitation."""

    action: Literal["accept", "reject"] = Field(..., description="accept or reject")


class MessageResponse(BaseModel):
    """Plain acknowledgement returned by mutations without a payload."""

    message: str
