from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from wabot.errors import IdentityError
from wabot.models import Chat, User
from wabot.services.conversation_service import get_or_create_chat, get_or_create_user


@dataclass
class Identity:
    user: User
    chat: Chat


def resolve_identity(db: Session, address: str, name: Optional[str] = None) -> Identity:
    """Map a sender address to its user and that user's active chat (user first, then chat)."""
    try:
        user = get_or_create_user(db, address, name=name)
    except Exception as exc:
        db.rollback()
        raise IdentityError("user", exc) from exc

    try:
        chat = get_or_create_chat(db, user.id)
    except Exception as exc:
        db.rollback()
        raise IdentityError("chat", exc) from exc

    return Identity(user=user, chat=chat)
