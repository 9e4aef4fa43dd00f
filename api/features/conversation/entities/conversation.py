"""Conversation entity: ``users/{uid}/conversations/{conversationId}``."""
from typing import Optional

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity, TimestampMixin

DEFAULT_TITLE = "New Chat"


class Conversation(TimestampMixin, BaseEntity):
    """A user's conversation and its summary fields.

    Keyed by ``(user_id, id)``; ``id`` is chosen by the client so it is only
    unique per user.
    """

    __table_args__ = (Index("ix_conversation_user_updated", "user_id", "updated_at"),)

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[Optional[str]] = mapped_column(String(500), default=DEFAULT_TITLE)
    last_message: Mapped[Optional[str]] = mapped_column(Text)
    # Jira project chosen for tickets raised from this conversation
    selected_project: Mapped[Optional[str]] = mapped_column(String(128))

    def needs_title(self) -> bool:
        return not self.title or self.title == DEFAULT_TITLE
