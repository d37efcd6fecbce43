"""daily backup checklist schema

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("username", sa.String(), nullable=False, unique=True),
        sa.Column("email", sa.String(), nullable=True, unique=True),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("api_token", sa.String(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_api_token", "users", ["api_token"], unique=True)

    op.create_table(
        "notifications",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("context", sa.String(), nullable=True),
        sa.Column("priority", sa.String(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_notifications_context", "notifications", ["context"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])

    op.create_table(
        "notification_dispatches",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("context", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=True),
        sa.Column("priority", sa.String(), nullable=True),
        sa.Column("recipients", sa.Integer(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_notification_dispatches_context", "notification_dispatches", ["context"])
    op.create_index("ix_notification_dispatches_created_at", "notification_dispatches", ["created_at"])

    op.create_table(
        "notification_preferences",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("pref_type", sa.String(), nullable=False),
        sa.Column("channel", sa.String(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=True),
        sa.UniqueConstraint("user_id", "pref_type", "channel"),
    )

    op.create_table(
        "backup_disks",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False, unique=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "backup_statuses",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("code", sa.String(), nullable=False, unique=True),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_final", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "backup_file_types",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("code", sa.String(), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("icon", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "backup_notification_settings",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("code", sa.String(), nullable=False, unique=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(), nullable=False, server_default="medium"),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("send_hour", sa.Integer(), nullable=True),
        sa.Column("send_minute", sa.Integer(), nullable=True),
        sa.Column("days_of_week", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "daily_backups",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("disk_id", _uuid(), sa.ForeignKey("backup_disks.id"), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_by", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("legacy_backup_zip_status_id", _uuid(), sa.ForeignKey("backup_statuses.id"), nullable=True),
        sa.Column("legacy_backup_adjuntos_status_id", _uuid(), sa.ForeignKey("backup_statuses.id"), nullable=True),
        sa.Column("legacy_calipso_status_id", _uuid(), sa.ForeignKey("backup_statuses.id"), nullable=True),
        sa.Column("legacy_presupuestacion_status_id", _uuid(), sa.ForeignKey("backup_statuses.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_daily_backups_date", "daily_backups", ["date"], unique=True)

    op.create_table(
        "daily_backup_files",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column(
            "daily_backup_id",
            _uuid(),
            sa.ForeignKey("daily_backups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("file_type_id", _uuid(), sa.ForeignKey("backup_file_types.id"), nullable=False),
        sa.Column("status_id", _uuid(), sa.ForeignKey("backup_statuses.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("daily_backup_id", "file_type_id"),
    )


def downgrade() -> None:
    op.drop_table("daily_backup_files")
    op.drop_index("ix_daily_backups_date", table_name="daily_backups")
    op.drop_table("daily_backups")
    op.drop_table("backup_notification_settings")
    op.drop_table("backup_file_types")
    op.drop_table("backup_statuses")
    op.drop_table("backup_disks")
    op.drop_table("notification_preferences")
    op.drop_index("ix_notification_dispatches_created_at", table_name="notification_dispatches")
    op.drop_index("ix_notification_dispatches_context", table_name="notification_dispatches")
    op.drop_table("notification_dispatches")
    op.drop_index("ix_notifications_created_at", table_name="notifications")
    op.drop_index("ix_notifications_context", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_users_api_token", table_name="users")
    op.drop_table("users")
