"""Business logic for the inbox."""

from inbox.services.participant_service import ParticipantService
from inbox.services.message_service import MessageService
from inbox.services.conversation_service import ConversationService
from inbox.services.inbox_service import InboxService

__all__ = ["ParticipantService", "MessageService", "ConversationService", "InboxService"]
