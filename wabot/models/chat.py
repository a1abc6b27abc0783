from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from wabot.database import Base, utcnow

DEFAULT_CHAT_TITLE = "New Chat"
DEFAULT_CHAT_SUMMARY = "Chat started"


class Chat(Base):
    __tablename__ = "chats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    uuid = Column(String, nullable=False, unique=True, default=lambda: str(uuid4()))
    title = Column(String, default=DEFAULT_CHAT_TITLE)
    summary = Column(Text, default=DEFAULT_CHAT_SUMMARY)
    # Set only on the chat the pipeline routes inbound messages to; NULL elsewhere.
    is_primary = Column(Boolean)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index(
            "uq_chats_primary_user",
            "user_id",
            unique=True,
            sqlite_where=is_primary.is_(True),
            postgresql_where=is_primary.is_(True),
        ),
    )

    user = relationship("User", back_populates="chats")
    messages = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
