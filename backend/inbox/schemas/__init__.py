"""Pydantic schemas for request and response payloads."""

from inbox.schemas.common import ApiResponse, Pagination, UnreadCountResponse
from inbox.schemas.conversation import (
    ConversationCreate,
    ConversationUpdate,
    ConversationResponse,
    ConversationStatistics,
)
from inbox.schemas.participant import (
    ParticipantInput,
    ParticipantRoleUpdate,
    ParticipantResponse,
)
from inbox.schemas.message import (
    MessageCreate,
    MessageEdit,
    MessageResponse,
)

__all__ = [
    "ApiResponse",
    "Pagination",
    "UnreadCountResponse",
    "ConversationCreate",
    "ConversationUpdate",
    "ConversationResponse",
    "ConversationStatistics",
    "ParticipantInput",
    "ParticipantRoleUpdate",
    "ParticipantResponse",
    "MessageCreate",
    "MessageEdit",
    "MessageResponse",
]
