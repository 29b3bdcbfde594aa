import logging
from sqlalchemy.orm import Session
from sqlalchemy import func, case
from typing import List, Optional, Iterable
from datetime import datetime
from inbox.models.conversation import InboxConversation
from inbox.models.participant import ConversationParticipant, PARTICIPANT_ROLES
from inbox.schemas import ParticipantResponse
from inbox.exceptions import InvalidArgument, NotFoundError

logger = logging.getLogger(__name__)


class ParticipantService:
    """
    Membership registry for inbox conversations.

    Methods flush but never commit; callers wrap them in ``unit_of_work``.
    """

    @staticmethod
    def find_by_conversation_and_user(
        db: Session,
        conversation_id: str,
        user_id: str
    ) -> Optional[ConversationParticipant]:
        """Get the membership row for a user, active or not."""
        return db.query(ConversationParticipant).filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id
        ).first()

    @staticmethod
    def add(
        db: Session,
        conversation_id: str,
        user_id: str,
        role: str = "participant"
    ) -> ConversationParticipant:
        """Add a participant; returns the existing row or reactivates a left one."""
        existing = ParticipantService.find_by_conversation_and_user(db, conversation_id, user_id)
        if existing:
            if not existing.is_active:
                return ParticipantService.reactivate(db, conversation_id, user_id)
            logger.debug(f"User {user_id} already active in conversation {conversation_id}")
            return existing

        if db.get(InboxConversation, conversation_id) is None:
            logger.warning(f"Cannot add user {user_id}: conversation {conversation_id} not found")
            raise NotFoundError("Conversation not found")

        participant = ConversationParticipant(
            conversation_id=conversation_id,
            user_id=user_id,
            role=role or "participant",
            joined_at=datetime.utcnow(),
            is_active=True
        )
        db.add(participant)
        db.flush()

        logger.info(f"Added participant {user_id} to conversation {conversation_id} as {participant.role}")
        return participant

    @staticmethod
    def bulk_add(
        db: Session,
        conversation_id: str,
        participants: Iterable[dict]
    ) -> List[ConversationParticipant]:
        """
        Add many participants at once.

        Each entry is ``{"user_id": ..., "role": ...}``. Duplicate user ids in
        the batch are collapsed (first occurrence wins) so the batch applies
        the same reactivate-or-insert rule as ``add``.
        """
        seen = set()
        added = []
        for entry in participants:
            user_id = entry["user_id"]
            if user_id in seen:
                continue
            seen.add(user_id)
            added.append(
                ParticipantService.add(db, conversation_id, user_id, entry.get("role") or "participant")
            )

        logger.info(f"Bulk added {len(added)} participant(s) to conversation {conversation_id}")
        return added

    @staticmethod
    def reactivate(db: Session, conversation_id: str, user_id: str) -> Optional[ConversationParticipant]:
        """Bring a participant who left back into the conversation."""
        participant = ParticipantService.find_by_conversation_and_user(db, conversation_id, user_id)
        if not participant:
            return None

        participant.is_active = True
        participant.left_at = None
        db.flush()

        logger.info(f"Reactivated participant {user_id} in conversation {conversation_id}")
        return participant

    @staticmethod
    def remove(db: Session, conversation_id: str, user_id: str) -> bool:
        """Soft-remove a participant; the row is kept for statistics."""
        updated = db.query(ConversationParticipant).filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
            ConversationParticipant.is_active == True
        ).update(
            {"is_active": False, "left_at": datetime.utcnow()},
            synchronize_session="fetch"
        )
        db.flush()

        logger.info(f"Removed participant {user_id} from conversation {conversation_id} (rows={updated})")
        return updated > 0

    @staticmethod
    def is_participant(
        db: Session,
        conversation_id: str,
        user_id: str,
        active_only: bool = True
    ) -> bool:
        """Check if user is participant in conversation."""
        query = db.query(func.count(ConversationParticipant.id)).filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id
        )
        if active_only:
            query = query.filter(ConversationParticipant.is_active == True)
        return (query.scalar() or 0) > 0

    @staticmethod
    def find_by_conversation_id(
        db: Session,
        conversation_id: str,
        active_only: bool = True,
        limit: int = 50,
        offset: int = 0
    ) -> List[ConversationParticipant]:
        """Get the members of a conversation in join order."""
        query = db.query(ConversationParticipant).filter(
            ConversationParticipant.conversation_id == conversation_id
        )
        if active_only:
            query = query.filter(ConversationParticipant.is_active == True)

        return query.order_by(
            ConversationParticipant.joined_at.asc()
        ).offset(offset).limit(limit).all()

    @staticmethod
    def find_by_user_id(
        db: Session,
        user_id: str,
        active_only: bool = True,
        limit: int = 50,
        offset: int = 0
    ) -> List[ConversationParticipant]:
        """Get a user's memberships, most recently active conversation first."""
        query = db.query(ConversationParticipant).outerjoin(
            InboxConversation,
            ConversationParticipant.conversation_id == InboxConversation.id
        ).filter(ConversationParticipant.user_id == user_id)
        if active_only:
            query = query.filter(ConversationParticipant.is_active == True)

        return query.order_by(
            InboxConversation.last_message_at.desc()
        ).offset(offset).limit(limit).all()

    @staticmethod
    def find_by_role(
        db: Session,
        conversation_id: str,
        role: str,
        active_only: bool = True
    ) -> List[ConversationParticipant]:
        """Get participants holding a given role."""
        query = db.query(ConversationParticipant).filter(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.role == role
        )
        if active_only:
            query = query.filter(ConversationParticipant.is_active == True)
        return query.order_by(ConversationParticipant.joined_at.asc()).all()

    @staticmethod
    def update_role(
        db: Session,
        conversation_id: str,
        user_id: str,
        new_role: str
    ) -> ConversationParticipant:
        """Change a participant's role."""
        if new_role not in PARTICIPANT_ROLES:
            raise InvalidArgument(
                f"Invalid role. Allowed roles: {', '.join(PARTICIPANT_ROLES)}"
            )

        participant = ParticipantService.find_by_conversation_and_user(db, conversation_id, user_id)
        if not participant:
            raise NotFoundError("Participant not found")

        participant.role = new_role
        db.flush()

        logger.info(f"Updated role for participant {user_id} in conversation {conversation_id} to {new_role}")
        return participant

    @staticmethod
    def get_participant_count(db: Session, conversation_id: str, active_only: bool = True) -> int:
        """Count members of a conversation."""
        query = db.query(func.count(ConversationParticipant.id)).filter(
            ConversationParticipant.conversation_id == conversation_id
        )
        if active_only:
            query = query.filter(ConversationParticipant.is_active == True)
        return query.scalar() or 0

    @staticmethod
    def get_statistics(db: Session, conversation_id: str) -> List[dict]:
        """Active and inactive member counts per role."""
        rows = db.query(
            ConversationParticipant.role,
            func.count(ConversationParticipant.id).label("total_participants"),
            func.sum(case((ConversationParticipant.is_active == True, 1), else_=0)).label("active_participants"),
            func.sum(case((ConversationParticipant.is_active == False, 1), else_=0)).label("inactive_participants"),
        ).filter(
            ConversationParticipant.conversation_id == conversation_id
        ).group_by(ConversationParticipant.role).all()

        return [
            {
                "role": row.role,
                "total_participants": row.total_participants,
                "active_participants": int(row.active_participants or 0),
                "inactive_participants": int(row.inactive_participants or 0),
            }
            for row in rows
        ]

    @staticmethod
    def participant_to_response(participant: ConversationParticipant) -> ParticipantResponse:
        """Convert ConversationParticipant model to response with user display fields."""
        user = participant.user
        return ParticipantResponse(
            id=participant.id,
            conversation_id=participant.conversation_id,
            user_id=participant.user_id,
            role=participant.role,
            joined_at=participant.joined_at,
            left_at=participant.left_at,
            is_active=bool(participant.is_active),
            name=user.name if user else None,
            email=user.email if user else None,
            phone=user.phone if user else None,
            avatar_url=user.avatar_url if user else None
        )
