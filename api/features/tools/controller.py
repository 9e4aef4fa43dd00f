"""Controller for the Tools feature.

Decides the next step of an escalation or tool call for a conversation. It
never talks to the external platforms itself: the response tells the client
which platform function to call, or what it has to set up first.
"""
from typing import Any, Dict, List, Optional

import pydantic
import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.chat.locks import ConversationLockRegistry
from api.features.conversation import repository as conversation_repository
from api.features.conversation.entities import Conversation, MessageRole
from api.features.tools import repository
from api.features.tools.dtos import (
    MISSING_ACTION_MESSAGE,
    AvailableTool,
    AvailableToolsResponse,
    ConnectionDTO,
    ConnectionListResponse,
    ProjectSelectedResponse,
    ToolActionRequest,
    ToolActionResponse,
)
from api.features.tools.entities import ConnectionStatus, Platform, PlatformConnection
from api.shared.auth import TokenVerifier
from api.shared.exceptions import NotFoundError, StoreError, ValidationError

logger = structlog.get_logger("fixie.tools")

# Offered until projects are read from the connected Jira site
DEFAULT_PROJECTS = [
    {"name": "IT Support", "key": "IT"},
    {"name": "Development", "key": "DEV"},
    {"name": "Operations", "key": "OPS"},
]

TOOL_CATALOG = {
    Platform.JIRA: AvailableTool(
        type="jira_ticket",
        name="Jira Ticket Creation",
        description="Create support tickets in Jira",
    ),
    Platform.SLACK: AvailableTool(
        type="slack_notification",
        name="Slack Notifications",
        description="Send notifications to Slack channels",
    ),
}

TOOL_FUNCTIONS = {
    "jira_ticket": "call_jira_function",
    "slack_notification": "call_slack_function",
}


class ToolsController:
    def __init__(
        self,
        token_verifier: TokenVerifier,
        conversation_locks: ConversationLockRegistry,
        projects: Optional[List[Dict[str, str]]] = None,
    ) -> None:
        self.token_verifier = token_verifier
        self.conversation_locks = conversation_locks
        self.projects = projects or DEFAULT_PROJECTS

    async def handle_action(self, payload: Any, *, db_session: AsyncSession) -> pydantic.BaseModel:
        """Authenticate, validate, then dispatch on ``action``."""
        body = payload if isinstance(payload, dict) else {}
        id_token = body.get("idToken")
        subject = await self.token_verifier.verify(id_token if isinstance(id_token, str) else None)

        try:
            request = ToolActionRequest.model_validate(body)
        except pydantic.ValidationError as e:
            raise ValidationError(
                MISSING_ACTION_MESSAGE, {"errors": e.errors(include_url=False)}
            ) from e

        conversation = await self._get_conversation(db_session, subject, request.conversationId)
        log = logger.bind(
            subject=subject, conversation_id=request.conversationId, action=request.action
        )

        if request.action == "escalate_to_ticket":
            result = await self.escalate_to_ticket(db_session, subject, conversation, request)
        elif request.action == "execute_tool":
            result = self.execute_tool(request)
        elif request.action == "get_available_tools":
            result = await self.get_available_tools(db_session, subject)
        elif request.action == "select_project":
            result = await self.select_project(db_session, subject, request)
        else:
            raise ValidationError("Invalid action", {"action": request.action})

        log.info("tools.action.completed", result=getattr(result, "action", None))
        return result

    async def escalate_to_ticket(
        self,
        db_session: AsyncSession,
        subject: str,
        conversation: Conversation,
        request: ToolActionRequest,
    ) -> ToolActionResponse:
        if request.toolType != "ticket_creation":
            raise ValidationError("Invalid tool type for escalation", {"toolType": request.toolType})

        jira = await self._connection(db_session, subject, Platform.JIRA)
        if jira is None or not jira.is_connected:
            return ToolActionResponse(
                action="connect_jira",
                message="Jira connection required for ticket creation",
                data={"reason": "Ticket creation requires Jira connection"},
            )

        if not conversation.selected_project:
            return ToolActionResponse(
                action="select_project",
                message="Please select a Jira project for ticket creation",
                data={"projects": self._project_choices(jira.default_project)},
            )

        return ToolActionResponse(
            action="create_ticket",
            message="Ready to create ticket",
            data={
                "ticketDetails": {
                    "subject": conversation.title,
                    "description": conversation.last_message,
                },
                "project": conversation.selected_project,
            },
        )

    @staticmethod
    def execute_tool(request: ToolActionRequest) -> ToolActionResponse:
        if not request.toolType:
            raise ValidationError("Missing tool type")
        function = TOOL_FUNCTIONS.get(request.toolType)
        if function is None:
            raise ValidationError("Unsupported tool type", {"toolType": request.toolType})
        return ToolActionResponse(
            action=function, toolType=request.toolType, data=request.toolData or {}
        )

    async def get_available_tools(
        self, db_session: AsyncSession, subject: str
    ) -> AvailableToolsResponse:
        try:
            async with db_session.begin():
                connected = await repository.connected_platforms(db_session, user_id=subject)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read platform connections: {e}") from e
        return AvailableToolsResponse(
            availableTools=[tool for platform, tool in TOOL_CATALOG.items() if platform in connected]
        )

    async def select_project(
        self, db_session: AsyncSession, subject: str, request: ToolActionRequest
    ) -> ProjectSelectedResponse:
        project = (request.projectName or "").strip()
        if not project:
            raise ValidationError("Missing project name")

        async with self.conversation_locks.hold(subject, request.conversationId):
            try:
                async with db_session.begin():
                    conversation = await conversation_repository.get_conversation(
                        db_session,
                        user_id=subject,
                        conversation_id=request.conversationId,
                        for_update=True,
                    )
                    if conversation is None:
                        raise NotFoundError("Conversation", request.conversationId)
                    note = f'Project "{project}" selected for ticket creation.'
                    await conversation_repository.append_message(
                        db_session,
                        user_id=subject,
                        conversation_id=request.conversationId,
                        role=MessageRole.ASSISTANT,
                        content=note,
                    )
                    await conversation_repository.touch_conversation(
                        db_session, conversation, last_message=note, selected_project=project
                    )
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to select project: {e}") from e
        return ProjectSelectedResponse(projectSelected=project)

    async def list_connections(
        self, *, subject: str, db_session: AsyncSession
    ) -> ConnectionListResponse:
        try:
            async with db_session.begin():
                items = await repository.list_connections(db_session, user_id=subject)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list platform connections: {e}") from e
        dtos = [ConnectionDTO.model_validate(i) for i in items]
        return ConnectionListResponse(items=dtos, total=len(dtos))

    async def update_connection(
        self,
        *,
        subject: str,
        platform: Platform,
        status: ConnectionStatus,
        default_project: Optional[str],
        db_session: AsyncSession,
    ) -> ConnectionDTO:
        """Record the outcome of a platform authorization for the caller."""
        try:
            async with db_session.begin():
                connection = await repository.upsert_connection(
                    db_session,
                    user_id=subject,
                    platform=platform,
                    status=status,
                    default_project=default_project,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update platform connection: {e}") from e
        logger.info(
            "tools.connection.updated",
            subject=subject,
            platform=platform.value,
            status=status.value,
        )
        return ConnectionDTO.model_validate(connection)

    def _project_choices(self, default_project: Optional[str]) -> List[Dict[str, Any]]:
        current = default_project or self.projects[0]["name"]
        return [
            {**p, "current": current in (p["name"], p["key"])} for p in self.projects
        ]

    async def _connection(
        self, db_session: AsyncSession, subject: str, platform: Platform
    ) -> Optional[PlatformConnection]:
        try:
            async with db_session.begin():
                return await repository.get_connection(
                    db_session, user_id=subject, platform=platform
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read platform connection: {e}") from e

    async def _get_conversation(
        self, db_session: AsyncSession, subject: str, conversation_id: str
    ) -> Conversation:
        try:
            async with db_session.begin():
                conversation = await conversation_repository.get_conversation(
                    db_session, user_id=subject, conversation_id=conversation_id
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read conversation: {e}") from e
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        return conversation
