from sqlalchemy import Column, String, Boolean, DateTime
from datetime import datetime
from inbox.database import Base


class User(Base):
    """
    Read-only view of the platform's user directory.

    Rows are owned by the auth service; the inbox only joins display fields
    into participant and message responses.
    """
    
    __tablename__ = "users"
    
    id = Column(String(36), primary_key=True, index=True)
    name = Column(String(100), nullable=True)
    email = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    def __repr__(self):
        return f"<User {self.id}>"
