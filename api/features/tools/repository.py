"""Repository for platform connections.

Callers own the transaction.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.tools.entities import ConnectionStatus, Platform, PlatformConnection


async def get_connection(
    session: AsyncSession, *, user_id: str, platform: Platform
) -> Optional[PlatformConnection]:
    stmt = select(PlatformConnection).where(
        PlatformConnection.user_id == user_id, PlatformConnection.platform == platform
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def list_connections(session: AsyncSession, *, user_id: str) -> List[PlatformConnection]:
    stmt = (
        select(PlatformConnection)
        .where(PlatformConnection.user_id == user_id)
        .order_by(PlatformConnection.platform)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def connected_platforms(session: AsyncSession, *, user_id: str) -> Dict[Platform, PlatformConnection]:
    return {c.platform: c for c in await list_connections(session, user_id=user_id) if c.is_connected}


async def upsert_connection(
    session: AsyncSession,
    *,
    user_id: str,
    platform: Platform,
    status: ConnectionStatus,
    default_project: Optional[str] = None,
) -> PlatformConnection:
    connection = await get_connection(session, user_id=user_id, platform=platform)
    if connection is None:
        connection = PlatformConnection(user_id=user_id, platform=platform, status=status)
        session.add(connection)
    else:
        connection.status = status
        connection.updated_at = func.now()
    if default_project is not None:
        connection.default_project = default_project
    await session.flush()
    await session.refresh(connection)
    return connection
