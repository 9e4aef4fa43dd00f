"""Router for the Tools feature."""
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from di.container import ApplicationContainer as DependencyContainer
from api.features.tools.controller import ToolsController
from api.features.tools.dtos import (
    ConnectionDTO,
    ConnectionListResponse,
    UpdateConnectionRequest,
)
from api.features.tools.entities import Platform
from api.shared.auth import get_current_subject
from api.shared.db import get_db_session
from api.shared.dtos import ErrorResponse
from api.shared.response import ResponseModel
from api.shared.utils import read_json_body

router = APIRouter()

_ERROR_RESPONSES = {status: {"model": ErrorResponse} for status in (400, 401, 404, 500, 502)}


@router.post("", responses=_ERROR_RESPONSES)
@inject
async def tool_action(
    request: Request,
    controller: ToolsController = Depends(
        Provide[DependencyContainer.controllers.tools_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """``{idToken, action, conversationId, ...}`` → next step for the client.

    Actions: ``escalate_to_ticket``, ``execute_tool``, ``get_available_tools``,
    ``select_project``.
    """
    payload = await read_json_body(request)
    result = await controller.handle_action(payload, db_session=db_session)
    return result.model_dump(exclude_none=True)


@router.get("/connections", response_model=ResponseModel[ConnectionListResponse])
@inject
async def list_connections(
    subject: str = Depends(get_current_subject),
    controller: ToolsController = Depends(
        Provide[DependencyContainer.controllers.tools_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    result = await controller.list_connections(subject=subject, db_session=db_session)
    return ResponseModel.success(data=result, message="Connections listed")


@router.put("/connections/{platform}", response_model=ResponseModel[ConnectionDTO])
@inject
async def update_connection(
    platform: Platform,
    request: UpdateConnectionRequest,
    subject: str = Depends(get_current_subject),
    controller: ToolsController = Depends(
        Provide[DependencyContainer.controllers.tools_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    connection = await controller.update_connection(
        subject=subject,
        platform=platform,
        status=request.status,
        default_project=request.default_project,
        db_session=db_session,
    )
    return ResponseModel.success(data=connection, message="Connection updated")
