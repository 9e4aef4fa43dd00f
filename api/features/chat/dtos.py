"""DTOs for the Chat feature."""
from pydantic import ConfigDict, Field

from api.shared.dtos import BaseDTO

MISSING_FIELDS_MESSAGE = "Missing idToken or conversationId"


class ChatTurnRequest(BaseDTO):
    """Inbound turn request; both fields must be non-empty strings."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    idToken: str = Field(min_length=1, description="Identity token issued to the caller")
    conversationId: str = Field(min_length=1, description="Conversation owned by the caller")


class ChatTurnResponse(BaseDTO):
    ok: bool = Field(default=True)
