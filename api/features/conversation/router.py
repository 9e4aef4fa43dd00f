"""Router for the Conversation feature."""
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from di.container import ApplicationContainer as DependencyContainer
from api.features.conversation.controller import ConversationController
from api.features.conversation.dtos import (
    AppendMessageRequest,
    ConversationDTO,
    ConversationListResponse,
    CreateConversationRequest,
    MessageDTO,
    MessagesResponse,
)
from api.shared.auth import get_current_subject
from api.shared.db import get_db_session
from api.shared.response import ResponseModel

router = APIRouter()


@router.post("", response_model=ResponseModel[ConversationDTO])
@inject
async def create_conversation(
    request: CreateConversationRequest,
    subject: str = Depends(get_current_subject),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    conv = await controller.create_conversation(
        subject=subject,
        conversation_id=request.id,
        title=request.title,
        db_session=db_session,
    )
    return ResponseModel.success(data=conv, message="Conversation created")


@router.get("", response_model=ResponseModel[ConversationListResponse])
@inject
async def list_conversations(
    limit: int = Query(50, ge=1, le=200),
    subject: str = Depends(get_current_subject),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    result = await controller.list_conversations(
        subject=subject, limit=limit, db_session=db_session
    )
    return ResponseModel.success(data=result, message="Conversations listed")


@router.get("/{conversation_id}", response_model=ResponseModel[ConversationDTO])
@inject
async def get_conversation(
    conversation_id: str,
    subject: str = Depends(get_current_subject),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    conv = await controller.get_conversation(
        subject=subject, conversation_id=conversation_id, db_session=db_session
    )
    return ResponseModel.success(data=conv, message="Conversation fetched")


@router.get(
    "/{conversation_id}/messages", response_model=ResponseModel[MessagesResponse]
)
@inject
async def get_messages(
    conversation_id: str,
    limit: int = Query(50, ge=1, le=200),
    subject: str = Depends(get_current_subject),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    result = await controller.get_messages(
        subject=subject,
        conversation_id=conversation_id,
        limit=limit,
        db_session=db_session,
    )
    return ResponseModel.success(data=result, message="Messages fetched")


@router.post("/{conversation_id}/messages", response_model=ResponseModel[MessageDTO])
@inject
async def append_message(
    conversation_id: str,
    request: AppendMessageRequest,
    subject: str = Depends(get_current_subject),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    msg = await controller.append_message(
        subject=subject,
        conversation_id=conversation_id,
        content=request.content,
        db_session=db_session,
    )
    return ResponseModel.success(data=msg, message="Message appended")
