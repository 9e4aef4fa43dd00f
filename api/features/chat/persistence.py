"""Durable recording of the assistant reply."""
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation import repository
from api.features.conversation.entities import Message, MessageRole
from api.shared.exceptions import NotFoundError, StoreError


class TurnPersister:
    """Appends the assistant message and refreshes the conversation summary.

    Both writes share one transaction, and the conversation row is locked for
    its duration, so either both land or neither does.
    """

    async def persist(
        self,
        session: AsyncSession,
        subject: str,
        conversation_id: str,
        reply_text: str,
    ) -> Message:
        try:
            async with session.begin():
                conversation = await repository.get_conversation(
                    session,
                    user_id=subject,
                    conversation_id=conversation_id,
                    for_update=True,
                )
                if conversation is None:
                    raise NotFoundError("Conversation", conversation_id)
                message = await repository.append_message(
                    session,
                    user_id=subject,
                    conversation_id=conversation_id,
                    role=MessageRole.ASSISTANT,
                    content=reply_text,
                )
                await repository.touch_conversation(
                    session, conversation, last_message=reply_text
                )
        except SQLAlchemyError as e:
            raise StoreError(
                f"Failed to persist turn: {e}", {"conversation_id": conversation_id}
            ) from e
        return message
