"""Repository for conversation persistence operations.

Callers own the transaction: every function here runs inside the caller's
``session.begin()`` block and only flushes.
"""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.entities import Conversation, Message, MessageRole
from api.features.conversation.entities.conversation import DEFAULT_TITLE


async def create_conversation(
    session: AsyncSession,
    *,
    user_id: str,
    conversation_id: str,
    title: Optional[str] = None,
) -> Conversation:
    conversation = Conversation(
        user_id=user_id, id=conversation_id, title=title or DEFAULT_TITLE
    )
    session.add(conversation)
    await session.flush()
    await session.refresh(conversation)
    return conversation


async def get_conversation(
    session: AsyncSession,
    *,
    user_id: str,
    conversation_id: str,
    for_update: bool = False,
) -> Optional[Conversation]:
    stmt = select(Conversation).where(
        Conversation.user_id == user_id, Conversation.id == conversation_id
    )
    if for_update:
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def list_conversations(
    session: AsyncSession,
    *,
    user_id: str,
    limit: int = 50,
) -> List[Conversation]:
    """List a user's conversations, most recently updated first."""
    stmt = (
        select(Conversation)
        .where(Conversation.user_id == user_id)
        .order_by(Conversation.updated_at.desc(), Conversation.id)
        .limit(limit)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def fetch_recent_messages(
    session: AsyncSession,
    *,
    user_id: str,
    conversation_id: str,
    limit: int = 50,
) -> List[Message]:
    """The newest ``limit`` messages, returned oldest first."""
    stmt = (
        select(Message)
        .where(
            Message.user_id == user_id,
            Message.conversation_id == conversation_id,
        )
        .order_by(Message.created_at.desc(), Message.seq.desc())
        .limit(limit)
    )
    res = await session.execute(stmt)
    rows = list(res.scalars().all())
    # Return chronological order
    rows.reverse()
    return rows


async def append_message(
    session: AsyncSession,
    *,
    user_id: str,
    conversation_id: str,
    role: MessageRole,
    content: str,
) -> Message:
    message = Message(
        user_id=user_id,
        conversation_id=conversation_id,
        role=role,
        content=content,
    )
    session.add(message)
    await session.flush()
    await session.refresh(message)
    return message


async def touch_conversation(
    session: AsyncSession,
    conversation: Conversation,
    *,
    last_message: Optional[str] = None,
    title: Optional[str] = None,
    selected_project: Optional[str] = None,
) -> Conversation:
    """Bump ``updated_at`` and refresh the summary fields that were passed."""
    if last_message is not None:
        conversation.last_message = last_message
    if title is not None:
        conversation.title = title
    if selected_project is not None:
        conversation.selected_project = selected_project
    conversation.updated_at = func.now()
    await session.flush()
    await session.refresh(conversation)
    return conversation


async def count_messages(
    session: AsyncSession,
    *,
    user_id: str,
    conversation_id: str,
) -> int:
    stmt = select(func.count(Message.seq)).where(
        Message.user_id == user_id, Message.conversation_id == conversation_id
    )
    res = await session.execute(stmt)
    return int(res.scalar() or 0)
