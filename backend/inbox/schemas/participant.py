"""Participant-related Pydantic schemas."""

from pydantic import Field
from datetime import datetime
from typing import Optional
from inbox.schemas.common import CamelModel


class ParticipantInput(CamelModel):
    """A participant supplied when creating a conversation or adding members."""
    user_id: str = Field(..., min_length=1, max_length=36)
    role: Optional[str] = None


class ParticipantRoleUpdate(CamelModel):
    role: str


class ParticipantResponse(CamelModel):
    """Membership row with display fields from the user directory."""
    id: str
    conversation_id: str
    user_id: str
    role: str
    joined_at: Optional[datetime] = None
    left_at: Optional[datetime] = None
    is_active: bool
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
