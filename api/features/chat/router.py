"""Router for the Chat feature."""
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from di.container import ApplicationContainer as DependencyContainer
from api.features.chat.controller import ChatController
from api.features.chat.dtos import ChatTurnResponse
from api.shared.db import get_db_session
from api.shared.dtos import ErrorResponse, HealthCheckResponse
from api.shared.response import ResponseModel
from api.shared.utils import read_json_body, run_until_disconnected
from core.settings import SETTINGS

router = APIRouter()

_ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 401, 404, 405, 500, 502, 504)
}


@router.get("/health", response_model=ResponseModel[HealthCheckResponse])
async def health_check():
    """Health check endpoint for the chat service."""
    return ResponseModel.success(
        data=HealthCheckResponse(
            status="healthy",
            dependencies={"database": "ok", "identity": "ok", "completion": "ok"},
        ),
        message="Chat service is healthy",
    )


@router.post("", response_model=ChatTurnResponse, responses=_ERROR_RESPONSES)
@inject
async def chat_turn(
    request: Request,
    controller: ChatController = Depends(
        Provide[DependencyContainer.controllers.chat_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Run one turn: ``{idToken, conversationId}`` → assistant reply appended.

    The body is read by hand so that malformed or non-object JSON is reported
    as missing fields rather than as a schema error.
    """
    payload = await read_json_body(request)
    await run_until_disconnected(
        request,
        controller.handle_turn(payload, db_session=db_session),
        poll_interval=SETTINGS.CHAT.DISCONNECT_POLL_SECONDS,
    )
    return ChatTurnResponse(ok=True)
