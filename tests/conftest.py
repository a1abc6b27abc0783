from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.orm import sessionmaker

from wabot.database import build_engine, init_db
from wabot.schemas.webhook import InboundEvent
from wabot.services.result import Result

SENDER = "26657683501"


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite file database per test (file, not :memory:, so threads share it)."""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def completion():
    """Completion client stub that always answers."""
    client = Mock()
    client.generate_reply = AsyncMock(return_value="Hello! How can I help you today?")
    return client


@pytest.fixture
def dispatcher():
    """Dispatch client stub that always delivers."""
    client = Mock()
    client.send = AsyncMock(return_value=Result.success("wamid.outbound-1"))
    return client


@pytest.fixture
def make_event():
    def _make_event(body="Hi", sender=SENDER, message_id="wamid.inbound-1", kind="text", profile_name=None):
        return InboundEvent(
            sender=sender,
            body=body,
            kind=kind,
            provider_message_id=message_id,
            timestamp=1768387469,
            profile_name=profile_name,
        )

    return _make_event
