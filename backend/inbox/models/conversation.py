import uuid
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from inbox.database import Base

CONVERSATION_TYPES = ("ride", "support", "system", "marketing")


class InboxConversation(Base):
    """One user's inbox entry for a thread."""
    
    __tablename__ = "inbox_conversations"
    __table_args__ = (
        Index("idx_inbox_conversations_user_archived_muted", "user_id", "is_archived", "is_muted"),
    )
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_user_id = Column("user_id", String(36), nullable=False, index=True)
    conversation_type = Column(String(20), nullable=False, index=True)
    title_ar = Column(String(255), nullable=False)
    title_en = Column(String(255), nullable=False)
    last_message_ar = Column(Text, nullable=True)
    last_message_en = Column(Text, nullable=True)
    last_message_at = Column(DateTime, nullable=True, index=True)
    unread_count = Column(Integer, nullable=False, default=0)
    is_archived = Column(Boolean, nullable=False, default=False)
    is_muted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        passive_deletes=True,
        order_by="ConversationParticipant.joined_at"
    )
    
    # Filled in by ConversationService at read time
    participant_count = 0
    
    def __repr__(self):
        return f"<InboxConversation {self.id} ({self.conversation_type}) owner={self.owner_user_id}>"
