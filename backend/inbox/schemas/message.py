"""Message-related Pydantic schemas."""

from pydantic import Field
from datetime import datetime
from typing import Optional, Any
from inbox.schemas.common import CamelModel


class MessageCreate(CamelModel):
    """Schema for sending a message; text fields are checked by the gateway."""
    message_text: Optional[str] = Field(None, max_length=5000)
    message_ar: Optional[str] = Field(None, max_length=5000)
    message_en: Optional[str] = Field(None, max_length=5000)
    message_type: str = "text"
    media_url: Optional[str] = Field(None, max_length=500)
    media_type: Optional[str] = Field(None, max_length=50)
    file_size: Optional[int] = Field(None, ge=0)
    location_data: Optional[dict] = None


class MessageEdit(CamelModel):
    """Schema for editing a message; at least one field must be supplied."""
    message_text: Optional[str] = Field(None, max_length=5000)
    message_ar: Optional[str] = Field(None, max_length=5000)
    message_en: Optional[str] = Field(None, max_length=5000)


class MessageResponse(CamelModel):
    """Schema for message response data."""
    id: str
    room_id: str
    sender_id: str
    message_type: str
    message_text: Optional[str] = None
    message_ar: Optional[str] = None
    message_en: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    file_size: Optional[int] = None
    location_data: Optional[Any] = None
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    sender_avatar_url: Optional[str] = None
