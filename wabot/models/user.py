from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from wabot.database import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String, nullable=False, unique=True)  # sender address, e.g. 26657683501
    name = Column(String)
    email = Column(String, unique=True)
    firstname = Column(String)
    lastname = Column(String)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    chats = relationship("Chat", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    messages = relationship("Message", back_populates="user", passive_deletes=True)
