import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from inbox.database import Base

PARTICIPANT_ROLES = ("participant", "admin", "support")


class ConversationParticipant(Base):
    """Membership of a user in a conversation."""
    
    __tablename__ = "conversation_participants"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="unique_conversation_participant"),
    )
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(
        String(36),
        ForeignKey("inbox_conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(String(36), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="participant")
    joined_at = Column(DateTime, default=datetime.utcnow)
    left_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    
    # Relationships
    conversation = relationship("InboxConversation", back_populates="participants")
    user = relationship(
        "User",
        primaryjoin="foreign(ConversationParticipant.user_id) == User.id",
        viewonly=True,
        lazy="joined"
    )
    
    def __repr__(self):
        state = "active" if self.is_active else "left"
        return f"<ConversationParticipant {self.user_id} in {self.conversation_id} ({self.role}, {state})>"
