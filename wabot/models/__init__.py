from wabot.models.chat import Chat
from wabot.models.message import Message, MessageRole
from wabot.models.processed_event import ProcessedEvent
from wabot.models.user import User

__all__ = [
    "User",
    "Chat",
    "Message",
    "MessageRole",
    "ProcessedEvent",
]
