"""Conversation-related Pydantic schemas."""

from pydantic import Field
from datetime import datetime
from typing import Optional, List
from inbox.schemas.common import CamelModel
from inbox.schemas.participant import ParticipantInput


class ConversationCreate(CamelModel):
    """
    Schema for creating a conversation.

    Required fields are checked by the gateway so that a missing title
    yields the inbox's own 400 message rather than a parser error.
    """
    conversation_type: Optional[str] = None
    title_ar: Optional[str] = Field(None, max_length=255)
    title_en: Optional[str] = Field(None, max_length=255)
    participants: List[ParticipantInput] = []


class ConversationUpdate(CamelModel):
    """Schema for updating a conversation's titles."""
    title_ar: Optional[str] = Field(None, max_length=255)
    title_en: Optional[str] = Field(None, max_length=255)


class ConversationResponse(CamelModel):
    """Schema for conversation response data."""
    id: str
    owner_user_id: str
    conversation_type: str
    title_ar: Optional[str] = None
    title_en: Optional[str] = None
    last_message_ar: Optional[str] = None
    last_message_en: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    is_archived: bool = False
    is_muted: bool = False
    created_at: datetime
    updated_at: datetime
    participant_count: int = 0


class ConversationStatistics(CamelModel):
    """Per-type aggregate over a user's inbox."""
    conversation_type: str
    total_conversations: int
    total_unread: int
    archived_count: int
    muted_count: int
