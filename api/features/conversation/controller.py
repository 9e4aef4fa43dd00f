"""Controller for the Conversation feature."""
from typing import Optional
from uuid import uuid4

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.chat.locks import ConversationLockRegistry
from api.features.conversation import repository
from api.features.conversation.dtos import (
    ConversationDTO,
    ConversationListResponse,
    MessageDTO,
    MessagesResponse,
)
from api.features.conversation.entities import MessageRole
from api.shared.exceptions import NotFoundError, StoreError, ValidationError

logger = structlog.get_logger("fixie.conversation")


class ConversationController:
    """Conversation CRUD and user message writes, scoped to the caller."""

    def __init__(self, conversation_locks: ConversationLockRegistry) -> None:
        self.conversation_locks = conversation_locks

    async def create_conversation(
        self,
        *,
        subject: str,
        conversation_id: Optional[str],
        title: Optional[str],
        db_session: AsyncSession,
    ) -> ConversationDTO:
        conversation_id = conversation_id or str(uuid4())
        try:
            async with db_session.begin():
                existing = await repository.get_conversation(
                    db_session, user_id=subject, conversation_id=conversation_id
                )
                if existing is not None:
                    raise ValidationError("Conversation already exists")
                conv = await repository.create_conversation(
                    db_session,
                    user_id=subject,
                    conversation_id=conversation_id,
                    title=title,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create conversation: {e}") from e
        logger.info("conversation.created", subject=subject, conversation_id=conversation_id)
        return ConversationDTO.model_validate(conv)

    async def list_conversations(
        self,
        *,
        subject: str,
        limit: int,
        db_session: AsyncSession,
    ) -> ConversationListResponse:
        try:
            async with db_session.begin():
                items = await repository.list_conversations(
                    db_session, user_id=subject, limit=limit
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list conversations: {e}") from e
        dtos = [ConversationDTO.model_validate(i) for i in items]
        return ConversationListResponse(items=dtos, total=len(dtos))

    async def get_conversation(
        self,
        *,
        subject: str,
        conversation_id: str,
        db_session: AsyncSession,
    ) -> ConversationDTO:
        try:
            async with db_session.begin():
                conv = await repository.get_conversation(
                    db_session, user_id=subject, conversation_id=conversation_id
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read conversation: {e}") from e
        if conv is None:
            raise NotFoundError("Conversation", conversation_id)
        return ConversationDTO.model_validate(conv)

    async def get_messages(
        self,
        *,
        subject: str,
        conversation_id: str,
        limit: int,
        db_session: AsyncSession,
    ) -> MessagesResponse:
        try:
            async with db_session.begin():
                conv = await repository.get_conversation(
                    db_session, user_id=subject, conversation_id=conversation_id
                )
                if conv is None:
                    raise NotFoundError("Conversation", conversation_id)
                msgs = await repository.fetch_recent_messages(
                    db_session,
                    user_id=subject,
                    conversation_id=conversation_id,
                    limit=limit,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read messages: {e}") from e
        items = [MessageDTO.model_validate(m) for m in msgs]
        return MessagesResponse(items=items, total=len(items))

    async def append_message(
        self,
        *,
        subject: str,
        conversation_id: str,
        content: str,
        db_session: AsyncSession,
    ) -> MessageDTO:
        """Append a user message; serialized with chat turns on the same conversation."""
        async with self.conversation_locks.hold(subject, conversation_id):
            try:
                async with db_session.begin():
                    conv = await repository.get_conversation(
                        db_session,
                        user_id=subject,
                        conversation_id=conversation_id,
                        for_update=True,
                    )
                    if conv is None:
                        raise NotFoundError("Conversation", conversation_id)
                    msg = await repository.append_message(
                        db_session,
                        user_id=subject,
                        conversation_id=conversation_id,
                        role=MessageRole.USER,
                        content=content,
                    )
                    await repository.touch_conversation(
                        db_session, conv, last_message=content
                    )
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to append message: {e}") from e
        return MessageDTO.model_validate(msg)
