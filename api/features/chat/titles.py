"""Best-effort conversation title refresh after a completed turn."""
import time
from typing import Dict, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.chat.completion import CompletionInvoker
from api.features.conversation import repository
from api.features.conversation.entities import Conversation
from api.shared.exceptions import StoreError

logger = structlog.get_logger("fixie.chat.titles")


class TitleRefresher:
    """Regenerates a title when it is unset, still the default, or every
    ``every`` stored messages."""

    def __init__(self, invoker: CompletionInvoker, every: int = 10):
        self.invoker = invoker
        self.every = every

    def should_refresh(self, conversation: Conversation, message_count: int) -> bool:
        return conversation.needs_title() or message_count % self.every == 0

    async def refresh(
        self,
        session: AsyncSession,
        subject: str,
        conversation_id: str,
        history: List[Dict[str, str]],
        *,
        deadline: Optional[float] = None,
    ) -> Optional[str]:
        """``deadline`` is a ``time.monotonic()`` instant the provider call
        must finish by."""
        try:
            async with session.begin():
                conversation = await repository.get_conversation(
                    session, user_id=subject, conversation_id=conversation_id
                )
                if conversation is None:
                    return None
                message_count = await repository.count_messages(
                    session, user_id=subject, conversation_id=conversation_id
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read conversation: {e}") from e
        if not self.should_refresh(conversation, message_count):
            return None

        timeout = None if deadline is None else deadline - time.monotonic()
        title = await self.invoker.generate_title(history, timeout_seconds=timeout)
        if not title:
            return None

        try:
            async with session.begin():
                conversation = await repository.get_conversation(
                    session,
                    user_id=subject,
                    conversation_id=conversation_id,
                    for_update=True,
                )
                if conversation is None:
                    return None
                await repository.touch_conversation(session, conversation, title=title)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update title: {e}") from e
        logger.info("chat.title.updated", conversation_id=conversation_id, title=title)
        return title
