"""Repository for user profile documents."""
from __future__ import annotations

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.accounts.entities import UserProfile


async def delete_user_profile(session: AsyncSession, *, user_id: str) -> bool:
    """Delete ``users/{uid}``; returns whether a row existed."""
    res = await session.execute(delete(UserProfile).where(UserProfile.id == user_id))
    return (res.rowcount or 0) > 0
