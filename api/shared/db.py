"""Shared database dependency for FastAPI routers."""
from typing import Any, AsyncGenerator

import structlog
from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from di.container import ApplicationContainer
from infra.resources import DatabaseResource

logger = structlog.get_logger("fixie.db")


@inject
async def get_db_session(
    db: DatabaseResource = Depends(
        Provide[ApplicationContainer.infrastructure.database]
    ),
) -> AsyncGenerator[AsyncSession, Any]:
    """Yield an AsyncSession per request and close it afterwards.

    Components open their own ``session.begin()`` blocks on it, so nothing is
    committed implicitly here.
    """
    session = db.get_session()
    try:
        yield session
    finally:
        try:
            await session.close()
        except SQLAlchemyError as e:
            logger.warning("db.session.close_failed", error=str(e))
