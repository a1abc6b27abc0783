from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from wabot.database import Base, utcnow


class MessageRole(str, Enum):
    HUMAN = "human"
    AI = "ai"


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(Integer, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)  # NULL for ai turns
    role = Column(String, nullable=False, default=MessageRole.HUMAN.value, index=True)  # human, ai
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("role IN ('human', 'ai')", name="ck_messages_role"),
        CheckConstraint("length(content) > 0", name="ck_messages_content_not_empty"),
    )

    chat = relationship("Chat", back_populates="messages")
    user = relationship("User", back_populates="messages")
