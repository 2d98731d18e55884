"""create churn scoring tables

Revision ID: 3c1e7a9d2b40
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c1e7a9d2b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user_data",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("plan", sa.String(), nullable=False, server_default="Free"),
        sa.Column("usage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.Column("churn_score", sa.Float(), nullable=False),
        sa.Column("churn_reason", sa.Text(), nullable=True),
        sa.Column("risk_level", sa.String(), nullable=False),
        sa.Column("user_stage", sa.String(), nullable=False),
        sa.Column("understanding_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("days_until_mature", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("action_recommended", sa.Text(), nullable=True),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("owner_id", "user_id", name="uq_user_data_owner_user"),
    )
    op.create_index(op.f("ix_user_data_id"), "user_data", ["id"], unique=False)
    op.create_index("ix_user_data_owner_risk", "user_data", ["owner_id", "risk_level"], unique=False)
    op.create_index(
        "ix_user_data_owner_updated_at",
        "user_data",
        ["owner_id", "updated_at"],
        unique=False,
    )

    op.create_table(
        "api_keys",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("key_prefix", sa.String(), nullable=False),
        sa.Column("key_hash", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(op.f("ix_api_keys_id"), "api_keys", ["id"], unique=False)
    op.create_index(op.f("ix_api_keys_key_hash"), "api_keys", ["key_hash"], unique=True)
    op.create_index("ix_api_keys_user_id", "api_keys", ["user_id"], unique=False)
    op.create_index("ix_api_keys_user_active", "api_keys", ["user_id", "is_active"], unique=False)

    op.create_table(
        "sdk_health_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column(
            "api_key_id",
            sa.Integer(),
            sa.ForeignKey("api_keys.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("ping_timestamp", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("request_data", sa.JSON(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("source", sa.String(), nullable=True),
    )
    op.create_index(op.f("ix_sdk_health_logs_id"), "sdk_health_logs", ["id"], unique=False)
    op.create_index(
        "ix_sdk_health_logs_user_ping",
        "sdk_health_logs",
        ["user_id", "ping_timestamp"],
        unique=False,
    )

    op.create_table(
        "csv_uploads",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("filename", sa.String(), nullable=False),
        sa.Column("rows_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rows_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(), nullable=False, server_default="completed"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(op.f("ix_csv_uploads_id"), "csv_uploads", ["id"], unique=False)
    op.create_index(
        "ix_csv_uploads_user_created_at",
        "csv_uploads",
        ["user_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_csv_uploads_user_created_at", table_name="csv_uploads")
    op.drop_index(op.f("ix_csv_uploads_id"), table_name="csv_uploads")
    op.drop_table("csv_uploads")
    op.drop_index("ix_sdk_health_logs_user_ping", table_name="sdk_health_logs")
    op.drop_index(op.f("ix_sdk_health_logs_id"), table_name="sdk_health_logs")
    op.drop_table("sdk_health_logs")
    op.drop_index("ix_api_keys_user_active", table_name="api_keys")
    op.drop_index("ix_api_keys_user_id", table_name="api_keys")
    op.drop_index(op.f("ix_api_keys_key_hash"), table_name="api_keys")
    op.drop_index(op.f("ix_api_keys_id"), table_name="api_keys")
    op.drop_table("api_keys")
    op.drop_index("ix_user_data_owner_updated_at", table_name="user_data")
    op.drop_index("ix_user_data_owner_risk", table_name="user_data")
    op.drop_index(op.f("ix_user_data_id"), table_name="user_data")
    op.drop_table("user_data")
