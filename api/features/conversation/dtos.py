"""DTOs for the Conversation feature."""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from api.features.conversation.entities import MessageRole
from api.shared.dtos import BaseDTO


class CreateConversationRequest(BaseDTO):
    """Request to create a conversation."""

    id: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=128,
        description="Client-chosen conversation id; generated when omitted",
    )
    title: Optional[str] = Field(default=None, max_length=500, description="Conversation title")


class ConversationDTO(BaseDTO):
    """Conversation DTO."""

    id: str = Field(description="Conversation identifier")
    title: Optional[str] = Field(default=None, description="Conversation title")
    last_message: Optional[str] = Field(default=None, description="Latest message content")
    selected_project: Optional[str] = Field(
        default=None, description="Project used for tickets raised from this conversation"
    )
    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)


class MessageDTO(BaseDTO):
    """Conversation message DTO."""

    id: str = Field(description="Message identifier")
    role: MessageRole = Field(description="Message role: user or assistant")
    content: str = Field(description="Message content")
    created_at: Optional[datetime] = Field(default=None)


class AppendMessageRequest(BaseDTO):
    """Append a user message to a conversation."""

    content: str = Field(min_length=1, description="Message content")


class ConversationListResponse(BaseDTO):
    """List conversations response."""

    items: List[ConversationDTO] = Field(description="Conversations")
    total: int = Field(description="Number of conversations returned")


class MessagesResponse(BaseDTO):
    """Messages list response."""

    items: List[MessageDTO] = Field(description="Messages in chronological order")
    total: int = Field(description="Total messages returned")
