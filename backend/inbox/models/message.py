import uuid
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from inbox.database import Base

MESSAGE_TYPES = ("text", "image", "file", "location", "system")
DELIVERY_STATUSES = ("sent", "delivered", "read")


class ChatMessage(Base):
    """A message in a conversation room."""
    
    __tablename__ = "chat_messages"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Rooms are conversation ids; not a foreign key so messages outlive a deleted inbox row
    room_id = Column(String(36), nullable=False, index=True)
    sender_id = Column(String(36), nullable=False, index=True)
    message_type = Column(String(20), nullable=False, default="text")
    message_text = Column(Text, nullable=True)
    message_ar = Column(Text, nullable=True)
    message_en = Column(Text, nullable=True)
    media_url = Column(String(500), nullable=True)
    media_type = Column(String(50), nullable=True)
    file_size = Column(Integer, nullable=True)
    location_data = Column(JSON, nullable=True)
    is_edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    
    # Relationships
    sender = relationship(
        "User",
        primaryjoin="foreign(ChatMessage.sender_id) == User.id",
        viewonly=True,
        lazy="joined"
    )
    statuses = relationship("MessageStatus", back_populates="message", passive_deletes=True)
    
    def __repr__(self):
        return f"<ChatMessage {self.id} from User {self.sender_id}>"


class MessageStatus(Base):
    """Per-recipient delivery state of a message."""
    
    __tablename__ = "message_status"
    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="unique_message_status"),
    )
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    message_id = Column(
        String(36),
        ForeignKey("chat_messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="sent")
    read_at = Column(DateTime, nullable=True)
    
    message = relationship("ChatMessage", back_populates="statuses")
    
    def __repr__(self):
        return f"<MessageStatus {self.message_id} -> {self.user_id}: {self.status}>"
