"""
Add platform_connection table and conversation.selected_project

Revision ID: 20251020_add_platform_connections
Revises: 20251019_create_chat_tables
Create Date: 2025-10-20 10:30:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20251020_add_platform_connections"
down_revision: Union[str, None] = "20251019_create_chat_tables"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

platform = sa.Enum("jira", "slack", name="platform")
connection_status = sa.Enum("connected", "disconnected", name="connection_status")


def upgrade() -> None:
    op.create_table(
        "platform_connection",
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("platform", platform, nullable=False),
        sa.Column("status", connection_status, nullable=False),
        sa.Column("default_project", sa.String(length=128), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("user_id", "platform"),
    )
    op.add_column(
        "conversation",
        sa.Column("selected_project", sa.String(length=128), nullable=True),
    )


def downgrade() -> None:
    op.drop_column("conversation", "selected_project")
    op.drop_table("platform_connection")
    connection_status.drop(op.get_bind(), checkfirst=True)
    platform.drop(op.get_bind(), checkfirst=True)
