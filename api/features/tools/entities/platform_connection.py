"""Platform connection entity: ``users/{uid}/platform-connections/{platform}``."""
from enum import Enum
from typing import Optional

from sqlalchemy import Enum as SQLEnum, String
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity, TimestampMixin


class Platform(str, Enum):
    JIRA = "jira"
    SLACK = "slack"


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class PlatformConnection(TimestampMixin, BaseEntity):
    """A user's link to an external platform.

    Only a ``connected`` row enables that platform's tools.
    """

    __tablename__ = "platform_connection"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    platform: Mapped[Platform] = mapped_column(
        SQLEnum(Platform, name="platform", values_callable=lambda e: [m.value for m in e]),
        primary_key=True,
    )
    status: Mapped[ConnectionStatus] = mapped_column(
        SQLEnum(
            ConnectionStatus,
            name="connection_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    default_project: Mapped[Optional[str]] = mapped_column(String(128))

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED
