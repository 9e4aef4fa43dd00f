"""User profile entity: the ``users/{uid}`` document."""
from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity, TimestampMixin


class UserProfile(TimestampMixin, BaseEntity):
    __tablename__ = "user_profile"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(320))
