"""Bounded context window for the completion provider."""
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation import repository
from api.shared.exceptions import StoreError

DEFAULT_CONTEXT_WINDOW = 50


class ContextLoader:
    """Reads the newest ``limit`` messages of a conversation, oldest first.

    An empty conversation yields ``[]``; only a failed read is an error.
    """

    def __init__(self, limit: int = DEFAULT_CONTEXT_WINDOW):
        self.limit = limit

    async def load(
        self, session: AsyncSession, subject: str, conversation_id: str
    ) -> List[Dict[str, str]]:
        try:
            async with session.begin():
                rows = await repository.fetch_recent_messages(
                    session,
                    user_id=subject,
                    conversation_id=conversation_id,
                    limit=self.limit,
                )
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to read messages: {e}", {"conversation_id": conversation_id}
            ) from e
        return [{"role": m.role.value, "content": m.content} for m in rows]
