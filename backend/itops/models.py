import uuid
import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .database import Base


def _utcnow() -> datetime:
    # naive UTC, matching the columns' timezone-less storage
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String, unique=True, nullable=False)
    email = Column(String, unique=True, nullable=True)
    full_name = Column(String)
    api_token = Column(String, unique=True, nullable=True, index=True)
    is_admin = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_utcnow)

    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        return self.full_name or self.username


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    message = Column(String, nullable=False)
    title = Column(String, nullable=True)
    category = Column(String, nullable=True)  # backup, system
    context = Column(String, nullable=True, index=True)  # daily-backup-morning, daily-backup-afternoon, ...
    priority = Column(String, default="medium")  # low, medium, high, urgent
    is_read = Column(Boolean, default=False)
    meta = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow, index=True)
    user = relationship("User", back_populates="notifications")


class NotificationDispatch(Base):
    """One row per send, written regardless of which channels delivered it."""

    __tablename__ = "notification_dispatches"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    context = Column(String, nullable=True, index=True)
    title = Column(String, nullable=True)
    priority = Column(String, default="medium")
    recipients = Column(Integer, default=0)
    meta = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow, index=True)


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "pref_type", "channel"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    pref_type = Column(String, nullable=False)
    channel = Column(String, nullable=False, default="in_app")
    enabled = Column(Boolean, default=True)


class BackupDisk(Base):
    __tablename__ = "backup_disks"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    sequence = Column(Integer, nullable=False, unique=True)
    description = Column(String, nullable=True)
    color = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    @property
    def display_name(self) -> str:
        return self.name or f"Disk {self.sequence}"


class BackupStatus(Base):
    __tablename__ = "backup_statuses"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(String, nullable=False, unique=True)
    label = Column(String, nullable=False)
    description = Column(String, nullable=True)
    color = Column(String, nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_final = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class BackupFileType(Base):
    __tablename__ = "backup_file_types"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    sequence = Column(Integer, default=0, nullable=False)
    icon = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class BackupNotificationSetting(Base):
    __tablename__ = "backup_notification_settings"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(String, nullable=False, unique=True)  # MORNING_REMINDER, AFTERNOON_ALERT, COMPLETED_NOTIFICATION
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(String, default="medium", nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    send_hour = Column(Integer, nullable=True)
    send_minute = Column(Integer, nullable=True)
    days_of_week = Column(String, nullable=True)  # "0,1,2,3,4" with 0 = Monday
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class DailyBackup(Base):
    __tablename__ = "daily_backups"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    date = Column(Date, nullable=False, unique=True, index=True)
    disk_id = Column(UUID(as_uuid=True), ForeignKey("backup_disks.id"), nullable=False)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    notes = Column(Text, nullable=True)
    # legacy fixed status columns, only read by the matrix backfill
    legacy_backup_zip_status_id = Column(UUID(as_uuid=True), ForeignKey("backup_statuses.id"), nullable=True)
    legacy_backup_adjuntos_status_id = Column(UUID(as_uuid=True), ForeignKey("backup_statuses.id"), nullable=True)
    legacy_calipso_status_id = Column(UUID(as_uuid=True), ForeignKey("backup_statuses.id"), nullable=True)
    legacy_presupuestacion_status_id = Column(UUID(as_uuid=True), ForeignKey("backup_statuses.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    disk = relationship("BackupDisk")
    user = relationship("User")
    files = relationship(
        "DailyBackupFile",
        back_populates="daily_backup",
        cascade="all, delete-orphan",
        order_by="DailyBackupFile.created_at",
    )


class DailyBackupFile(Base):
    __tablename__ = "daily_backup_files"
    __table_args__ = (
        sa.UniqueConstraint("daily_backup_id", "file_type_id"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    daily_backup_id = Column(
        UUID(as_uuid=True), ForeignKey("daily_backups.id", ondelete="CASCADE"), nullable=False
    )
    file_type_id = Column(UUID(as_uuid=True), ForeignKey("backup_file_types.id"), nullable=False)
    status_id = Column(UUID(as_uuid=True), ForeignKey("backup_statuses.id"), nullable=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    daily_backup = relationship("DailyBackup", back_populates="files")
    file_type = relationship("BackupFileType")
    status = relationship("BackupStatus")
