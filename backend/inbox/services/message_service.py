import logging
from sqlalchemy.orm import Session
from sqlalchemy import select, desc, func, case, or_
from typing import List, Optional
from datetime import datetime
from inbox.models.message import ChatMessage, MessageStatus, MESSAGE_TYPES, DELIVERY_STATUSES
from inbox.models.participant import ConversationParticipant
from inbox.schemas import MessageResponse
from inbox.exceptions import ValidationError, InvalidArgument, NotFoundError
from inbox.utils.text import like_pattern

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("message_text", "message_ar", "message_en")


class MessageService:
    """
    Per-room message log with delivery tracking.

    Callers authorize against the participant registry before calling in.
    """

    @staticmethod
    def create(
        db: Session,
        room_id: str,
        sender_id: str,
        message_type: str = "text",
        message_text: Optional[str] = None,
        message_ar: Optional[str] = None,
        message_en: Optional[str] = None,
        media_url: Optional[str] = None,
        media_type: Optional[str] = None,
        file_size: Optional[int] = None,
        location_data: Optional[dict] = None
    ) -> ChatMessage:
        """Append a message and fan out a 'sent' status to every active participant."""
        message_type = message_type or "text"
        if message_type not in MESSAGE_TYPES:
            raise InvalidArgument(
                f"Invalid message type. Allowed types: {', '.join(MESSAGE_TYPES)}"
            )

        if message_type == "text" and not (message_text and message_ar and message_en):
            raise ValidationError("messageText, messageAr, and messageEn are required")

        new_message = ChatMessage(
            room_id=room_id,
            sender_id=sender_id,
            message_type=message_type,
            message_text=message_text,
            message_ar=message_ar,
            message_en=message_en,
            media_url=media_url,
            media_type=media_type,
            file_size=file_size,
            location_data=location_data,
            created_at=datetime.utcnow()
        )
        db.add(new_message)
        db.flush()

        recipients = MessageService._create_message_statuses(db, new_message.id, room_id)

        logger.info(
            f"Created message {new_message.id} in room {room_id} by user {sender_id} "
            f"(type={message_type}, recipients={recipients})"
        )
        return new_message

    @staticmethod
    def _create_message_statuses(db: Session, message_id: str, room_id: str) -> int:
        """Insert one delivery row per active participant of the room."""
        user_ids = [
            row.user_id for row in db.query(ConversationParticipant.user_id).filter(
                ConversationParticipant.conversation_id == room_id,
                ConversationParticipant.is_active == True
            ).all()
        ]
        db.add_all([
            MessageStatus(message_id=message_id, user_id=user_id, status="sent")
            for user_id in user_ids
        ])
        db.flush()
        return len(user_ids)

    @staticmethod
    def find_by_id(db: Session, message_id: str) -> Optional[ChatMessage]:
        """Get a live message; deleted and missing messages both yield None."""
        return db.query(ChatMessage).filter(
            ChatMessage.id == message_id,
            ChatMessage.is_deleted == False
        ).first()

    @staticmethod
    def find_by_room_id(
        db: Session,
        room_id: str,
        limit: int = 50,
        offset: int = 0,
        before_date: Optional[datetime] = None
    ) -> List[ChatMessage]:
        """Get a page of messages, oldest first within the page."""
        query = db.query(ChatMessage).filter(
            ChatMessage.room_id == room_id,
            ChatMessage.is_deleted == False
        )
        if before_date:
            query = query.filter(ChatMessage.created_at < before_date)

        messages = query.order_by(desc(ChatMessage.created_at)).offset(offset).limit(limit).all()

        # Reverse to chronological order
        messages.reverse()
        return messages

    @staticmethod
    def find_by_sender_id(
        db: Session,
        sender_id: str,
        limit: int = 20,
        offset: int = 0
    ) -> List[ChatMessage]:
        """Get a sender's live messages, newest first."""
        return db.query(ChatMessage).filter(
            ChatMessage.sender_id == sender_id,
            ChatMessage.is_deleted == False
        ).order_by(desc(ChatMessage.created_at)).offset(offset).limit(limit).all()

    @staticmethod
    def update(db: Session, message_id: str, **fields) -> ChatMessage:
        """Edit message text; unknown keyword arguments are ignored."""
        updates = {
            key: value for key, value in fields.items()
            if key in EDITABLE_FIELDS and value is not None
        }
        if not updates:
            raise InvalidArgument("No valid fields to update")

        message = MessageService.find_by_id(db, message_id)
        if not message:
            raise NotFoundError("Message not found")
        if message.message_type == "text" and any(not value for value in updates.values()):
            raise ValidationError("messageText, messageAr, and messageEn cannot be empty")

        for key, value in updates.items():
            setattr(message, key, value)
        message.is_edited = True
        message.edited_at = datetime.utcnow()
        db.flush()

        logger.info(f"Edited message {message_id} (fields={sorted(updates)})")
        return message

    @staticmethod
    def delete(db: Session, message_id: str) -> bool:
        """Soft-delete a message; rows are never physically removed."""
        updated = db.query(ChatMessage).filter(
            ChatMessage.id == message_id,
            ChatMessage.is_deleted == False
        ).update(
            {"is_deleted": True, "deleted_at": datetime.utcnow()},
            synchronize_session="fetch"
        )
        db.flush()

        logger.info(f"Soft-deleted message {message_id} (rows={updated})")
        return updated > 0

    @staticmethod
    def update_message_status(db: Session, message_id: str, user_id: str, status: str) -> bool:
        """Set one recipient's delivery state; any transition is accepted."""
        if status not in DELIVERY_STATUSES:
            raise InvalidArgument(
                f"Invalid status. Allowed statuses: {', '.join(DELIVERY_STATUSES)}"
            )

        values = {"status": status}
        if status == "read":
            values["read_at"] = datetime.utcnow()

        updated = db.query(MessageStatus).filter(
            MessageStatus.message_id == message_id,
            MessageStatus.user_id == user_id
        ).update(values, synchronize_session="fetch")
        db.flush()

        logger.info(f"Message status updated: {message_id}, user: {user_id}, status: {status}")
        return updated > 0

    @staticmethod
    def get_message_status(db: Session, message_id: str, user_id: str) -> Optional[MessageStatus]:
        """Get one recipient's delivery row."""
        return db.query(MessageStatus).filter(
            MessageStatus.message_id == message_id,
            MessageStatus.user_id == user_id
        ).first()

    @staticmethod
    def mark_as_read(
        db: Session,
        room_id: str,
        user_id: str,
        before_date: Optional[datetime] = None
    ) -> int:
        """Mark every unread message of a user in a room as read."""
        room_messages = select(ChatMessage.id).where(ChatMessage.room_id == room_id)
        if before_date:
            room_messages = room_messages.where(ChatMessage.created_at <= before_date)

        updated = db.query(MessageStatus).filter(
            MessageStatus.user_id == user_id,
            MessageStatus.status != "read",
            MessageStatus.message_id.in_(room_messages)
        ).update(
            {"status": "read", "read_at": datetime.utcnow()},
            synchronize_session="fetch"
        )
        db.flush()

        logger.info(f"Marked {updated} message(s) as read for user {user_id} in room {room_id}")
        return updated

    @staticmethod
    def get_unread_count(db: Session, room_id: str, user_id: str) -> int:
        """Count a user's unread live messages in a room."""
        return db.query(func.count(MessageStatus.id)).join(
            ChatMessage, MessageStatus.message_id == ChatMessage.id
        ).filter(
            ChatMessage.room_id == room_id,
            ChatMessage.is_deleted == False,
            MessageStatus.user_id == user_id,
            MessageStatus.status != "read"
        ).scalar() or 0

    @staticmethod
    def get_unread_count_for_rooms(db: Session, room_ids: List[str], user_id: str) -> int:
        """Count a user's unread live messages across several rooms."""
        if not room_ids:
            return 0
        return db.query(func.count(MessageStatus.id)).join(
            ChatMessage, MessageStatus.message_id == ChatMessage.id
        ).filter(
            ChatMessage.room_id.in_(room_ids),
            ChatMessage.is_deleted == False,
            MessageStatus.user_id == user_id,
            MessageStatus.status != "read"
        ).scalar() or 0

    @staticmethod
    def search(
        db: Session,
        room_id: str,
        term: str,
        limit: int = 20,
        offset: int = 0
    ) -> List[ChatMessage]:
        """Case-insensitive substring search over the message text fields."""
        pattern = like_pattern(term)
        return db.query(ChatMessage).filter(
            ChatMessage.room_id == room_id,
            ChatMessage.is_deleted == False,
            or_(
                ChatMessage.message_text.ilike(pattern, escape="\\"),
                ChatMessage.message_ar.ilike(pattern, escape="\\"),
                ChatMessage.message_en.ilike(pattern, escape="\\"),
            )
        ).order_by(desc(ChatMessage.created_at)).offset(offset).limit(limit).all()

    @staticmethod
    def get_statistics(db: Session, room_id: str) -> dict:
        """Counts by type plus first/last timestamps, deleted messages excluded."""
        def count_where(condition):
            return func.sum(case((condition, 1), else_=0))

        row = db.query(
            func.count(ChatMessage.id).label("total_messages"),
            count_where(ChatMessage.message_type == "text").label("text_messages"),
            count_where(ChatMessage.message_type == "image").label("image_messages"),
            count_where(ChatMessage.message_type == "file").label("file_messages"),
            count_where(ChatMessage.message_type == "location").label("location_messages"),
            count_where(ChatMessage.message_type == "system").label("system_messages"),
            count_where(ChatMessage.is_edited == True).label("edited_messages"),
            func.min(ChatMessage.created_at).label("first_message_at"),
            func.max(ChatMessage.created_at).label("last_message_at"),
        ).filter(
            ChatMessage.room_id == room_id,
            ChatMessage.is_deleted == False
        ).one()

        stats = dict(row._mapping)
        for key in list(stats):
            if key.endswith("_messages"):
                stats[key] = int(stats[key] or 0)
        return stats

    @staticmethod
    def message_to_response(message: ChatMessage) -> MessageResponse:
        """Convert ChatMessage model to response with sender display fields."""
        sender = message.sender
        return MessageResponse(
            id=message.id,
            room_id=message.room_id,
            sender_id=message.sender_id,
            message_type=message.message_type,
            message_text=message.message_text,
            message_ar=message.message_ar,
            message_en=message.message_en,
            media_url=message.media_url,
            media_type=message.media_type,
            file_size=message.file_size,
            location_data=message.location_data,
            is_edited=bool(message.is_edited),
            edited_at=message.edited_at,
            is_deleted=bool(message.is_deleted),
            deleted_at=message.deleted_at,
            created_at=message.created_at,
            sender_name=sender.name if sender else None,
            sender_email=sender.email if sender else None,
            sender_avatar_url=sender.avatar_url if sender else None
        )
