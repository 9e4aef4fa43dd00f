from __future__ import annotations

from typing import List, Tuple

import httpx
import pytest
from dependency_injector import providers

from api.features.chat.locks import ConversationLockRegistry
from api.features.conversation import repository
from api.features.conversation.entities import MessageRole
from api.shared.entities.registry import BaseEntity
from infra.resources import DatabaseResource
from tests.fakes import FakeCompletions, FakeIdentity, FakeProvider

USER_ID = "uid-alice"
TOKEN = "token-alice"


@pytest.fixture
async def db(tmp_path):
    resource = DatabaseResource(f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}")
    await resource.init()
    async with resource.engine.begin() as conn:
        await conn.run_sync(BaseEntity.metadata.create_all)
    yield resource
    await resource.shutdown()


@pytest.fixture
async def session(db):
    s = db.get_session()
    yield s
    await s.close()


@pytest.fixture
def identity():
    return FakeIdentity({TOKEN: USER_ID, "token-bob": "uid-bob"})


@pytest.fixture
def completions():
    return FakeCompletions()


@pytest.fixture
def provider(completions):
    return FakeProvider(completions)


@pytest.fixture
def seed(db):
    """Create a conversation, optionally with prior messages."""

    async def _seed(
        conversation_id: str = "conv-1",
        messages: List[Tuple[str, str]] = (),
        user_id: str = USER_ID,
        title: str = None,
    ):
        async with db.get_session() as s:
            async with s.begin():
                await repository.create_conversation(
                    s, user_id=user_id, conversation_id=conversation_id, title=title
                )
                for role, content in messages:
                    await repository.append_message(
                        s,
                        user_id=user_id,
                        conversation_id=conversation_id,
                        role=MessageRole(role),
                        content=content,
                    )

    return _seed


@pytest.fixture
async def app(db, identity, provider):
    from api.main import app as fastapi_app

    infra = fastapi_app.container.infrastructure
    infra.database.override(providers.Object(db))
    infra.identity.override(providers.Object(identity))
    infra.completion_provider.override(providers.Object(provider))
    infra.conversation_locks.override(providers.Object(ConversationLockRegistry()))
    yield fastapi_app
    for name in ("database", "identity", "completion_provider", "conversation_locks"):
        getattr(infra, name).reset_override()
    fastapi_app.container.services.completion_invoker.reset_override()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
