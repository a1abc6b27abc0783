"""Conversation store: users, their primary chat and the append-only message history.

Every function takes the caller's ``Session`` and commits its own unit of work, so a
message written here stays written even if a later pipeline step fails.
"""

from typing import Any, Optional

from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wabot.database import utcnow
from wabot.errors import ValidationError
from wabot.logging_config import get_logger
from wabot.models import Chat, Message, MessageRole, ProcessedEvent, User
from wabot.models.chat import DEFAULT_CHAT_SUMMARY, DEFAULT_CHAT_TITLE

logger = get_logger("conversation_service")

DEFAULT_HISTORY_LIMIT = 20

_PROMPT_ROLES = {
    MessageRole.HUMAN.value: "user",
    MessageRole.AI.value: "assistant",
}


def default_user_name(address: str) -> str:
    return f"User {address}"


def _insert_ignoring_conflicts(db: Session, model, values: dict[str, Any]) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING. Returns True if this call created the row."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql_insert(model).values(**values).on_conflict_do_nothing()
    elif dialect == "sqlite":
        stmt = sqlite_insert(model).values(**values).on_conflict_do_nothing()
    else:
        try:
            with db.begin_nested():
                db.execute(insert(model).values(**values))
            return True
        except IntegrityError:
            return False

    result = db.execute(stmt)
    return result.rowcount > 0


def get_user_by_address(db: Session, address: str) -> Optional[User]:
    return db.query(User).filter(User.phone == address).first()


def get_or_create_user(db: Session, address: str, name: Optional[str] = None) -> User:
    """Find user by address or create one.

    Concurrent first contact from one address is settled by the unique constraint on
    ``users.phone``: the losing insert is a no-op and both callers read the same row.
    """
    address = (address or "").strip()
    if not address:
        raise ValidationError("User address must not be empty")

    user = get_user_by_address(db, address)
    if user:
        return user

    created = _insert_ignoring_conflicts(
        db,
        User,
        {"phone": address, "name": (name or "").strip() or default_user_name(address)},
    )
    db.commit()

    user = db.query(User).filter(User.phone == address).one()
    if created:
        logger.info("User created", extra={"context": {"user_id": user.id, "phone": address}})
    else:
        logger.info("User created concurrently, reusing", extra={"context": {"user_id": user.id, "phone": address}})
    return user


def get_first_chat(db: Session, user_id: int) -> Optional[Chat]:
    return (
        db.query(Chat)
        .filter(Chat.user_id == user_id)
        .order_by(Chat.created_at.asc(), Chat.id.asc())
        .first()
    )


def get_or_create_chat(db: Session, user_id: int) -> Chat:
    """Return the user's first chat, creating the primary one on first contact."""
    chat = get_first_chat(db, user_id)
    if chat:
        return chat

    # uq_chats_primary_user lets only one primary chat exist per user
    created = _insert_ignoring_conflicts(
        db,
        Chat,
        {
            "user_id": user_id,
            "title": DEFAULT_CHAT_TITLE,
            "summary": DEFAULT_CHAT_SUMMARY,
            "is_primary": True,
        },
    )
    db.commit()

    chat = get_first_chat(db, user_id)
    if chat is None:
        raise LookupError(f"Chat for user {user_id} vanished after creation")
    if created:
        logger.info("Chat created", extra={"context": {"chat_id": chat.id, "user_id": user_id, "uuid": chat.uuid}})
    return chat


def append_message(
    db: Session,
    chat_id: int,
    author_user_id: Optional[int],
    body: str,
    role: MessageRole | str,
) -> Message:
    """Append one turn to a chat and touch the chat's updated_at."""
    if body is None or not body.strip():
        raise ValidationError("Message body must not be empty")
    try:
        role = MessageRole(role)
    except ValueError:
        raise ValidationError(f"Unknown message role: {role!r}") from None

    now = utcnow()
    message = Message(
        chat_id=chat_id,
        user_id=author_user_id,
        role=role.value,
        content=body,
        created_at=now,
        updated_at=now,
    )
    db.add(message)
    db.query(Chat).filter(Chat.id == chat_id).update({Chat.updated_at: now}, synchronize_session=False)
    db.commit()
    return message


def get_history(db: Session, chat_id: int, limit: int = DEFAULT_HISTORY_LIMIT) -> list[Message]:
    """Latest ``limit`` messages of a chat, oldest first."""
    if limit is not None and limit <= 0:
        return []

    query = (
        db.query(Message)
        .filter(Message.chat_id == chat_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    rows = query.all()
    rows.reverse()
    return rows


def history_to_prompt(messages: list[Message]) -> list[dict]:
    """Convert stored turns into chat-completion messages."""
    history = []
    for message in messages:
        role = _PROMPT_ROLES.get(message.role)
        if role is None or not message.content:
            continue
        history.append({"role": role, "content": message.content})
    return history


def claim_event(db: Session, provider_message_id: str) -> bool:
    """Record a provider message id. False means it was already processed."""
    created = _insert_ignoring_conflicts(db, ProcessedEvent, {"provider_message_id": provider_message_id})
    db.commit()
    if not created:
        logger.info("Duplicate provider message id", extra={"context": {"message_id": provider_message_id}})
    return created
