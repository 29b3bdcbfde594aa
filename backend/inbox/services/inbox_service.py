import logging
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from datetime import datetime
from inbox.database import unit_of_work
from inbox.models.conversation import InboxConversation
from inbox.models.message import ChatMessage
from inbox.models.participant import ConversationParticipant
from inbox.services.conversation_service import ConversationService
from inbox.services.participant_service import ParticipantService
from inbox.services.message_service import MessageService
from inbox.exceptions import ValidationError, InvalidArgument, AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)

NOT_PARTICIPANT = "Access denied. You are not a participant in this conversation"


class InboxService:
    """
    Authorization and orchestration in front of the inbox stores.

    The caller's user id comes from the authentication dependency and is
    trusted as-is. Ownership and membership are checked here, never in the
    stores. Every public method runs as a single unit of work.
    """

    # --- guards ---------------------------------------------------------

    @staticmethod
    def _require_conversation(db: Session, conversation_id: str) -> InboxConversation:
        conversation = ConversationService.find_by_id(db, conversation_id)
        if not conversation:
            logger.warning(f"Conversation {conversation_id} not found")
            raise NotFoundError("Conversation not found")
        return conversation

    @staticmethod
    def _require_owner(db: Session, conversation_id: str, user_id: str, action: str) -> InboxConversation:
        conversation = InboxService._require_conversation(db, conversation_id)
        if conversation.owner_user_id != user_id:
            logger.warning(
                f"User {user_id} denied {action} on conversation {conversation_id}: not the owner"
            )
            raise AuthorizationError(f"Access denied. You can only {action} your own conversations")
        return conversation

    @staticmethod
    def _require_participant(db: Session, conversation_id: str, user_id: str) -> None:
        if not ParticipantService.is_participant(db, conversation_id, user_id):
            logger.warning(
                f"User {user_id} denied access to conversation {conversation_id}: not a participant"
            )
            raise AuthorizationError(NOT_PARTICIPANT)

    # --- conversations --------------------------------------------------

    @staticmethod
    def list_conversations(db: Session, user_id: str, **options) -> List[InboxConversation]:
        """List the caller's own inbox rows with filters, sorting and paging."""
        with unit_of_work(db, "list conversations"):
            return ConversationService.find_by_user_id(db, user_id, **options)

    @staticmethod
    def create_conversation(
        db: Session,
        user_id: str,
        conversation_type: Optional[str],
        title_ar: Optional[str],
        title_en: Optional[str],
        participants: Optional[List[dict]] = None
    ) -> InboxConversation:
        """Create a conversation owned by the caller; the owner joins as a participant."""
        with unit_of_work(db, "create conversation"):
            conversation = ConversationService.create(
                db,
                owner_user_id=user_id,
                conversation_type=conversation_type,
                title_ar=title_ar,
                title_en=title_en,
                participants=participants
            )
        return conversation

    @staticmethod
    def get_conversation(db: Session, conversation_id: str, user_id: str) -> InboxConversation:
        """Any active participant may read; 404 and 403 are kept distinct."""
        with unit_of_work(db, "get conversation"):
            conversation = InboxService._require_conversation(db, conversation_id)
            InboxService._require_participant(db, conversation_id, user_id)
        return conversation

    @staticmethod
    def update_conversation(db: Session, conversation_id: str, user_id: str, update_data: dict) -> InboxConversation:
        """Apply allow-listed field changes. Owner only."""
        with unit_of_work(db, "update conversation"):
            InboxService._require_owner(db, conversation_id, user_id, "update")
            return ConversationService.update(db, conversation_id, update_data)

    @staticmethod
    def archive_conversation(db: Session, conversation_id: str, user_id: str) -> InboxConversation:
        """Archive the conversation. Owner only."""
        with unit_of_work(db, "archive conversation"):
            InboxService._require_owner(db, conversation_id, user_id, "archive")
            return ConversationService.archive(db, conversation_id)

    @staticmethod
    def unarchive_conversation(db: Session, conversation_id: str, user_id: str) -> InboxConversation:
        """Unarchive the conversation. Owner only."""
        with unit_of_work(db, "unarchive conversation"):
            InboxService._require_owner(db, conversation_id, user_id, "unarchive")
            return ConversationService.unarchive(db, conversation_id)

    @staticmethod
    def mute_conversation(db: Session, conversation_id: str, user_id: str) -> InboxConversation:
        """Mute the conversation. Owner only."""
        with unit_of_work(db, "mute conversation"):
            InboxService._require_owner(db, conversation_id, user_id, "mute")
            return ConversationService.mute(db, conversation_id)

    @staticmethod
    def unmute_conversation(db: Session, conversation_id: str, user_id: str) -> InboxConversation:
        """Unmute the conversation. Owner only."""
        with unit_of_work(db, "unmute conversation"):
            InboxService._require_owner(db, conversation_id, user_id, "unmute")
            return ConversationService.unmute(db, conversation_id)

    @staticmethod
    def delete_conversation(db: Session, conversation_id: str, user_id: str) -> bool:
        """Hard-delete the conversation row. Owner only; the message log is kept."""
        with unit_of_work(db, "delete conversation"):
            InboxService._require_owner(db, conversation_id, user_id, "delete")
            return ConversationService.delete(db, conversation_id)

    @staticmethod
    def mark_conversation_as_read(db: Session, conversation_id: str, user_id: str) -> int:
        """Read everything in the room; the owner's counter is reset as well."""
        with unit_of_work(db, "mark conversation as read"):
            conversation = InboxService._require_conversation(db, conversation_id)
            InboxService._require_participant(db, conversation_id, user_id)
            updated = MessageService.mark_as_read(db, conversation_id, user_id)
            if conversation.owner_user_id == user_id:
                ConversationService.reset_unread_count(db, conversation_id)
        return updated

    @staticmethod
    def search_conversations(db: Session, user_id: str, query: Optional[str], limit: int, offset: int):
        """Search the caller's non-archived conversations by title or last message."""
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        with unit_of_work(db, "search conversations"):
            return ConversationService.search(db, user_id, query.strip(), limit=limit, offset=offset)

    @staticmethod
    def get_unread_count(db: Session, user_id: str) -> int:
        """
        Unread total for the caller's inbox.

        Owned rows contribute their stored counter. Conversations the caller
        only joined have no row of their own, so their delivery rows are
        counted instead.
        """
        with unit_of_work(db, "get unread count"):
            owned = ConversationService.get_unread_count(db, user_id)
            joined_rooms = [
                p.conversation_id
                for p in ParticipantService.find_by_user_id(db, user_id, limit=None)
                if p.conversation is not None and p.conversation.owner_user_id != user_id
            ]
            joined = MessageService.get_unread_count_for_rooms(db, joined_rooms, user_id)
        return owned + joined

    @staticmethod
    def get_statistics(db: Session, user_id: str) -> List[dict]:
        """Per-type totals over the caller's own conversations."""
        with unit_of_work(db, "get inbox statistics"):
            return ConversationService.get_statistics(db, user_id)

    # --- participants ---------------------------------------------------

    @staticmethod
    def list_participants(
        db: Session,
        conversation_id: str,
        user_id: str,
        active_only: bool = True,
        limit: int = 50,
        offset: int = 0
    ) -> List[ConversationParticipant]:
        """List members of a conversation the caller belongs to."""
        with unit_of_work(db, "list participants"):
            InboxService._require_participant(db, conversation_id, user_id)
            return ParticipantService.find_by_conversation_id(
                db, conversation_id, active_only=active_only, limit=limit, offset=offset
            )

    @staticmethod
    def add_participant(
        db: Session,
        conversation_id: str,
        user_id: str,
        new_user_id: str,
        role: Optional[str] = None
    ) -> ConversationParticipant:
        """Add or reactivate a member. Owner only."""
        with unit_of_work(db, "add participant"):
            InboxService._require_owner(db, conversation_id, user_id, "manage participants of")
            return ParticipantService.add(db, conversation_id, new_user_id, role or "participant")

    @staticmethod
    def remove_participant(db: Session, conversation_id: str, user_id: str, target_user_id: str) -> bool:
        """
        Remove a member from a conversation.

        The owner may remove anyone but themselves; any other participant may
        leave. The owner stays a member for as long as the conversation exists.
        """
        with unit_of_work(db, "remove participant"):
            if target_user_id != user_id:
                InboxService._require_owner(db, conversation_id, user_id, "manage participants of")
            else:
                conversation = InboxService._require_conversation(db, conversation_id)
                if conversation.owner_user_id == user_id:
                    raise InvalidArgument("The conversation owner cannot leave the conversation")
            removed = ParticipantService.remove(db, conversation_id, target_user_id)
            if not removed:
                raise NotFoundError("Participant not found")
        return removed

    @staticmethod
    def update_participant_role(
        db: Session,
        conversation_id: str,
        user_id: str,
        target_user_id: str,
        role: str
    ) -> ConversationParticipant:
        """Change a member's role. Owner only."""
        with unit_of_work(db, "update participant role"):
            InboxService._require_owner(db, conversation_id, user_id, "manage participants of")
            return ParticipantService.update_role(db, conversation_id, target_user_id, role)

    # --- messages -------------------------------------------------------

    @staticmethod
    def list_messages(
        db: Session,
        conversation_id: str,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        before_date: Optional[datetime] = None
    ) -> List[ChatMessage]:
        """Return a page of visible messages, oldest first."""
        with unit_of_work(db, "list messages"):
            InboxService._require_participant(db, conversation_id, user_id)
            return MessageService.find_by_room_id(
                db, conversation_id, limit=limit, offset=offset, before_date=before_date
            )

    @staticmethod
    def send_message(
        db: Session,
        conversation_id: str,
        user_id: str,
        message_text: Optional[str],
        message_ar: Optional[str],
        message_en: Optional[str],
        message_type: str = "text",
        **attachment
    ) -> ChatMessage:
        """
        Append a message and update the inbox row.

        Insert, delivery fan-out, preview update and one unread bump per
        other active participant commit together or not at all.
        """
        if not message_text or not message_ar or not message_en:
            raise ValidationError("messageText, messageAr, and messageEn are required")

        with unit_of_work(db, "send message"):
            InboxService._require_participant(db, conversation_id, user_id)

            message = MessageService.create(
                db,
                room_id=conversation_id,
                sender_id=user_id,
                message_type=message_type,
                message_text=message_text,
                message_ar=message_ar,
                message_en=message_en,
                **attachment
            )
            ConversationService.update_last_message(db, conversation_id, message_ar, message_en)

            recipients = [
                p for p in ParticipantService.find_by_conversation_id(db, conversation_id, limit=None)
                if p.user_id != user_id
            ]
            for _ in recipients:
                ConversationService.increment_unread_count(db, conversation_id)

        logger.info(
            f"Message {message.id} sent to conversation {conversation_id} by user {user_id} "
            f"(unread bumped {len(recipients)} time(s))"
        )
        return message

    @staticmethod
    def search_messages(
        db: Session,
        conversation_id: str,
        user_id: str,
        query: Optional[str],
        limit: int = 20,
        offset: int = 0
    ) -> List[ChatMessage]:
        """Search visible messages in a conversation the caller belongs to."""
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        with unit_of_work(db, "search messages"):
            InboxService._require_participant(db, conversation_id, user_id)
            return MessageService.search(db, conversation_id, query.strip(), limit=limit, offset=offset)

    @staticmethod
    def _require_message_participant(db: Session, message_id: str, user_id: str) -> ChatMessage:
        message = MessageService.find_by_id(db, message_id)
        if not message:
            logger.warning(f"Message {message_id} not found (requested by user {user_id})")
            raise NotFoundError("Message not found")
        InboxService._require_participant(db, message.room_id, user_id)
        return message

    @staticmethod
    def mark_message_as_read(db: Session, message_id: str, user_id: str) -> ChatMessage:
        """
        Mark one message read for the caller and reset the room's counter.

        Resetting the whole counter for a single read mirrors how the inbox
        counter is defined: it tracks "anything unread", not per-user state.
        """
        with unit_of_work(db, "mark message as read"):
            message = InboxService._require_message_participant(db, message_id, user_id)
            MessageService.update_message_status(db, message_id, user_id, "read")
            if ConversationService.find_by_id(db, message.room_id):
                ConversationService.reset_unread_count(db, message.room_id)
        return message

    @staticmethod
    def edit_message(db: Session, message_id: str, user_id: str, **fields) -> ChatMessage:
        """Edit message text. Only the sender may edit."""
        with unit_of_work(db, "edit message"):
            message = InboxService._require_message_participant(db, message_id, user_id)
            if message.sender_id != user_id:
                raise AuthorizationError("Not authorized to edit this message")
            return MessageService.update(db, message_id, **fields)

    @staticmethod
    def delete_message(db: Session, message_id: str, user_id: str) -> Tuple[str, bool]:
        """
        Soft-delete a message. Only the sender may delete.

        Returns the room id alongside the result so callers can log it.
        """
        with unit_of_work(db, "delete message"):
            message = InboxService._require_message_participant(db, message_id, user_id)
            if message.sender_id != user_id:
                raise AuthorizationError("Not authorized to delete this message")
            return message.room_id, MessageService.delete(db, message_id)
