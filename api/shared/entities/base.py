"""Shared base entity for all database models."""
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class BaseEntity(DeclarativeBase):
    """Base class for all database entities."""

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """Generate table name from class name."""
        return cls.__name__.lower()

    def to_dict(self) -> dict[str, Any]:
        """Convert entity instance to dictionary."""
        return {
            column.key: getattr(self, column.key)
            for column in self.__mapper__.column_attrs
        }

    def __repr__(self) -> str:
        keys = ", ".join(
            f"{col.key}={getattr(self, col.key)!r}"
            for col in self.__mapper__.primary_key
        )
        return f"<{self.__class__.__name__}({keys})>"


class TimestampMixin:
    """Server-assigned ``created_at`` / ``updated_at`` columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
