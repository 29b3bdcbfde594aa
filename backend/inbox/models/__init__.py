"""Database models."""

from inbox.models.user import User
from inbox.models.conversation import InboxConversation, CONVERSATION_TYPES
from inbox.models.participant import ConversationParticipant, PARTICIPANT_ROLES
from inbox.models.message import ChatMessage, MessageStatus, MESSAGE_TYPES, DELIVERY_STATUSES

__all__ = [
    "User",
    "InboxConversation",
    "ConversationParticipant",
    "ChatMessage",
    "MessageStatus",
    "CONVERSATION_TYPES",
    "PARTICIPANT_ROLES",
    "MESSAGE_TYPES",
    "DELIVERY_STATUSES",
]
