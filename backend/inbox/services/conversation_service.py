import logging
from sqlalchemy.orm import Session
from sqlalchemy import func, case, or_, asc, desc
from typing import List, Optional, Iterable
from datetime import datetime
from inbox.models.conversation import InboxConversation, CONVERSATION_TYPES
from inbox.models.participant import ConversationParticipant
from inbox.schemas import ConversationResponse
from inbox.services.participant_service import ParticipantService
from inbox.exceptions import ValidationError, InvalidArgument, NotFoundError
from inbox.utils.text import like_pattern

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "last_message_at": InboxConversation.last_message_at,
    "created_at": InboxConversation.created_at,
    "unread_count": InboxConversation.unread_count,
}
SORT_ORDERS = {"ASC": asc, "DESC": desc}
REQUIRED_TITLES = ("titleAr", "titleEn")

# External (camelCase) update keys mapped to model attributes
UPDATABLE_FIELDS = {
    "titleAr": "title_ar",
    "titleEn": "title_en",
    "lastMessageAr": "last_message_ar",
    "lastMessageEn": "last_message_en",
    "lastMessageAt": "last_message_at",
    "unreadCount": "unread_count",
    "isArchived": "is_archived",
    "isMuted": "is_muted",
}


class ConversationService:
    """
    Per-owner inbox entries.

    Each row belongs to one user; other members reach the same thread through
    the participant registry. Methods flush but never commit.
    """

    @staticmethod
    def create(
        db: Session,
        owner_user_id: str,
        conversation_type: str,
        title_ar: str,
        title_en: str,
        participants: Optional[Iterable[dict]] = None
    ) -> InboxConversation:
        """Create a conversation and register its owner and participants."""
        if not conversation_type or not title_ar or not title_en:
            raise ValidationError("conversationType, titleAr, and titleEn are required")

        if conversation_type not in CONVERSATION_TYPES:
            raise ValidationError(
                f"Invalid conversation type. Allowed types: {', '.join(CONVERSATION_TYPES)}"
            )

        participants = list(participants or [])
        logger.info(
            f"Creating {conversation_type} conversation for user {owner_user_id} "
            f"(extra_participants={len(participants)})"
        )

        now = datetime.utcnow()
        conversation = InboxConversation(
            owner_user_id=owner_user_id,
            conversation_type=conversation_type,
            title_ar=title_ar,
            title_en=title_en,
            unread_count=0,
            is_archived=False,
            is_muted=False,
            created_at=now,
            updated_at=now
        )
        db.add(conversation)
        db.flush()

        # Owner goes first so a duplicate entry for the owner keeps the default role
        ParticipantService.bulk_add(
            db,
            conversation.id,
            [{"user_id": owner_user_id, "role": "participant"}] + participants
        )

        logger.info(f"Created inbox conversation {conversation.id} for user {owner_user_id}")
        return ConversationService.find_by_id(db, conversation.id)

    @staticmethod
    def _participant_count_column():
        return func.count(ConversationParticipant.id).label("participant_count")

    @staticmethod
    def _with_participant_count(db: Session):
        """Base query joining the live count of active participants."""
        return db.query(
            InboxConversation,
            ConversationService._participant_count_column()
        ).outerjoin(
            ConversationParticipant,
            (ConversationParticipant.conversation_id == InboxConversation.id)
            & (ConversationParticipant.is_active == True)
        ).group_by(InboxConversation.id)

    @staticmethod
    def _attach_counts(rows) -> List[InboxConversation]:
        conversations = []
        for conversation, participant_count in rows:
            conversation.participant_count = participant_count or 0
            conversations.append(conversation)
        return conversations

    @staticmethod
    def find_by_id(db: Session, conversation_id: str) -> Optional[InboxConversation]:
        """Get a conversation with its live participant count."""
        row = ConversationService._with_participant_count(db).filter(
            InboxConversation.id == conversation_id
        ).first()
        if not row:
            return None
        return ConversationService._attach_counts([row])[0]

    @staticmethod
    def find_by_user_id(
        db: Session,
        owner_user_id: str,
        conversation_type: Optional[str] = None,
        is_archived: bool = False,
        is_muted: bool = False,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "last_message_at",
        sort_order: str = "DESC"
    ) -> List[InboxConversation]:
        """Get a user's conversations matching every supplied filter."""
        if sort_by not in SORT_FIELDS:
            raise InvalidArgument(
                "Invalid sort field. Allowed fields: last_message_at, created_at, unread_count"
            )
        direction = SORT_ORDERS.get((sort_order or "").upper())
        if direction is None:
            raise InvalidArgument("Invalid sort order. Use ASC or DESC")

        query = ConversationService._with_participant_count(db).filter(
            InboxConversation.owner_user_id == owner_user_id,
            InboxConversation.is_archived == is_archived,
            InboxConversation.is_muted == is_muted
        )
        if conversation_type:
            query = query.filter(InboxConversation.conversation_type == conversation_type)

        rows = query.order_by(
            direction(SORT_FIELDS[sort_by]),
            desc(InboxConversation.created_at)
        ).offset(offset).limit(limit).all()

        logger.debug(f"Found {len(rows)} conversation(s) for user {owner_user_id}")
        return ConversationService._attach_counts(rows)

    @staticmethod
    def _get_or_raise(db: Session, conversation_id: str) -> InboxConversation:
        conversation = db.get(InboxConversation, conversation_id)
        if not conversation:
            raise NotFoundError("Conversation not found")
        return conversation

    @staticmethod
    def update(db: Session, conversation_id: str, update_data: dict) -> InboxConversation:
        """Apply allow-listed fields; unknown keys are ignored."""
        updates = {
            UPDATABLE_FIELDS[key]: value
            for key, value in update_data.items()
            if key in UPDATABLE_FIELDS
        }
        if not updates:
            raise InvalidArgument("No valid fields to update")
        if "unread_count" in updates and (updates["unread_count"] is None or updates["unread_count"] < 0):
            raise ValidationError("unreadCount must be a non-negative integer")
        for key in REQUIRED_TITLES:
            if UPDATABLE_FIELDS[key] in updates and not updates[UPDATABLE_FIELDS[key]]:
                raise ValidationError(f"{key} cannot be empty")

        conversation = ConversationService._get_or_raise(db, conversation_id)
        for attribute, value in updates.items():
            setattr(conversation, attribute, value)
        conversation.updated_at = datetime.utcnow()
        db.flush()

        logger.info(f"Updated inbox conversation {conversation_id} (fields={sorted(updates)})")
        return ConversationService.find_by_id(db, conversation_id)

    @staticmethod
    def _set_flag(db: Session, conversation_id: str, flag: str, value: bool) -> InboxConversation:
        conversation = ConversationService._get_or_raise(db, conversation_id)
        setattr(conversation, flag, value)
        conversation.updated_at = datetime.utcnow()
        db.flush()
        logger.info(f"Set {flag}={value} on inbox conversation {conversation_id}")
        return ConversationService.find_by_id(db, conversation_id)

    @staticmethod
    def archive(db: Session, conversation_id: str) -> InboxConversation:
        return ConversationService._set_flag(db, conversation_id, "is_archived", True)

    @staticmethod
    def unarchive(db: Session, conversation_id: str) -> InboxConversation:
        return ConversationService._set_flag(db, conversation_id, "is_archived", False)

    @staticmethod
    def mute(db: Session, conversation_id: str) -> InboxConversation:
        return ConversationService._set_flag(db, conversation_id, "is_muted", True)

    @staticmethod
    def unmute(db: Session, conversation_id: str) -> InboxConversation:
        return ConversationService._set_flag(db, conversation_id, "is_muted", False)

    @staticmethod
    def update_last_message(
        db: Session,
        conversation_id: str,
        message_ar: Optional[str],
        message_en: Optional[str]
    ) -> InboxConversation:
        """Refresh the denormalized preview after a message is appended."""
        conversation = ConversationService._get_or_raise(db, conversation_id)
        now = datetime.utcnow()
        conversation.last_message_ar = message_ar
        conversation.last_message_en = message_en
        conversation.last_message_at = now
        conversation.updated_at = now
        db.flush()

        logger.info(f"Updated last message for conversation {conversation_id}")
        return conversation

    @staticmethod
    def increment_unread_count(db: Session, conversation_id: str) -> int:
        """Add exactly one to the unread counter."""
        updated = db.query(InboxConversation).filter(
            InboxConversation.id == conversation_id
        ).update(
            {
                InboxConversation.unread_count: InboxConversation.unread_count + 1,
                InboxConversation.updated_at: datetime.utcnow(),
            },
            synchronize_session="fetch"
        )
        if not updated:
            raise NotFoundError("Conversation not found")
        db.flush()

        logger.debug(f"Incremented unread count for conversation {conversation_id}")
        return updated

    @staticmethod
    def reset_unread_count(db: Session, conversation_id: str) -> InboxConversation:
        """Zero the unread counter."""
        conversation = ConversationService._get_or_raise(db, conversation_id)
        conversation.unread_count = 0
        conversation.updated_at = datetime.utcnow()
        db.flush()

        logger.info(f"Reset unread count for conversation {conversation_id}")
        return conversation

    @staticmethod
    def get_unread_count(db: Session, owner_user_id: str) -> int:
        """Total unread over the user's visible (not archived, not muted) conversations."""
        total = db.query(func.sum(InboxConversation.unread_count)).filter(
            InboxConversation.owner_user_id == owner_user_id,
            InboxConversation.is_archived == False,
            InboxConversation.is_muted == False
        ).scalar()
        return int(total or 0)

    @staticmethod
    def search(
        db: Session,
        owner_user_id: str,
        search_query: str,
        limit: int = 20,
        offset: int = 0
    ) -> List[InboxConversation]:
        """Match titles and previews; archived conversations are skipped."""
        pattern = like_pattern(search_query)
        rows = ConversationService._with_participant_count(db).filter(
            InboxConversation.owner_user_id == owner_user_id,
            InboxConversation.is_archived == False,
            or_(
                InboxConversation.title_ar.ilike(pattern, escape="\\"),
                InboxConversation.title_en.ilike(pattern, escape="\\"),
                InboxConversation.last_message_ar.ilike(pattern, escape="\\"),
                InboxConversation.last_message_en.ilike(pattern, escape="\\"),
            )
        ).order_by(
            desc(InboxConversation.last_message_at)
        ).offset(offset).limit(limit).all()

        return ConversationService._attach_counts(rows)

    @staticmethod
    def delete(db: Session, conversation_id: str) -> bool:
        """
        Hard-delete the inbox row.

        Membership rows go with it through the foreign key cascade; messages
        and their delivery rows stay untouched.
        """
        deleted = db.query(InboxConversation).filter(
            InboxConversation.id == conversation_id
        ).delete(synchronize_session="fetch")
        db.flush()

        logger.info(f"Deleted inbox conversation {conversation_id} (rows={deleted})")
        return deleted > 0

    @staticmethod
    def get_statistics(db: Session, owner_user_id: str) -> List[dict]:
        """Per-type totals for a user's inbox."""
        rows = db.query(
            InboxConversation.conversation_type,
            func.count(InboxConversation.id).label("total_conversations"),
            func.sum(InboxConversation.unread_count).label("total_unread"),
            func.sum(case((InboxConversation.is_archived == True, 1), else_=0)).label("archived_count"),
            func.sum(case((InboxConversation.is_muted == True, 1), else_=0)).label("muted_count"),
        ).filter(
            InboxConversation.owner_user_id == owner_user_id
        ).group_by(InboxConversation.conversation_type).all()

        return [
            {
                "conversation_type": row.conversation_type,
                "total_conversations": row.total_conversations,
                "total_unread": int(row.total_unread or 0),
                "archived_count": int(row.archived_count or 0),
                "muted_count": int(row.muted_count or 0),
            }
            for row in rows
        ]

    @staticmethod
    def conversation_to_response(conversation: InboxConversation) -> ConversationResponse:
        """Convert InboxConversation model to response."""
        return ConversationResponse.model_validate(conversation)
