"""DTOs for the Tools feature."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from api.features.tools.entities import ConnectionStatus, Platform
from api.shared.dtos import BaseDTO

MISSING_ACTION_MESSAGE = "Missing action or conversation ID"


class ToolActionRequest(BaseDTO):
    """``{idToken, action, conversationId, toolType?, toolData?, projectName?}``."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    action: str = Field(min_length=1, description="Orchestrator action")
    conversationId: str = Field(min_length=1, description="Conversation owned by the caller")
    toolType: Optional[str] = Field(default=None, description="Tool the action applies to")
    toolData: Optional[Dict[str, Any]] = Field(default=None, description="Tool arguments")
    projectName: Optional[str] = Field(default=None, description="Project to select")


class ToolActionResponse(BaseDTO):
    """Next step for the client to take."""

    action: str = Field(description="Client-side action to perform")
    message: Optional[str] = Field(default=None)
    toolType: Optional[str] = Field(default=None)
    data: Optional[Dict[str, Any]] = Field(default=None)


class AvailableTool(BaseDTO):
    type: str
    name: str
    description: str


class AvailableToolsResponse(BaseDTO):
    availableTools: List[AvailableTool] = Field(default_factory=list)


class ProjectSelectedResponse(BaseDTO):
    success: bool = Field(default=True)
    projectSelected: str
    message: str = Field(default="Project selected successfully")


class UpdateConnectionRequest(BaseDTO):
    status: ConnectionStatus = Field(default=ConnectionStatus.CONNECTED)
    default_project: Optional[str] = Field(default=None, max_length=128)


class ConnectionDTO(BaseDTO):
    platform: Platform
    status: ConnectionStatus
    default_project: Optional[str] = None
    updated_at: Optional[datetime] = None


class ConnectionListResponse(BaseDTO):
    items: List[ConnectionDTO]
    total: int
