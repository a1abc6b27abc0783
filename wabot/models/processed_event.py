from sqlalchemy import Column, DateTime, Integer, String

from wabot.database import Base, utcnow


class ProcessedEvent(Base):
    """Provider message ids that already entered the pipeline."""

    __tablename__ = "processed_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_message_id = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
