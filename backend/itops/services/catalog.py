"""Backup catalog store: disks, statuses, file types, and notification settings."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from .backup_errors import (
    CatalogNotConfigured,
    DuplicateCatalogEntry,
    InvalidRequest,
    NoActiveDisksConfigured,
    RecordComponentNotFound,
)

# purpose: ordered, activation-flagged reference lists feeding rotation and status cycling
# inputs: SQLAlchemy session, configuration payloads
# outputs: immutable snapshots per operation, persisted catalog rows
# status: active

PENDING_STATUS_CODE = "PENDING"
COMPLETED_STATUS_CODE = "COMPLETED"

MORNING_REMINDER = "MORNING_REMINDER"
AFTERNOON_ALERT = "AFTERNOON_ALERT"
COMPLETED_NOTIFICATION = "COMPLETED_NOTIFICATION"


@dataclass(frozen=True)
class DiskSnapshot:
    id: UUID
    name: str
    sequence: int

    @property
    def display_name(self) -> str:
        return self.name or f"Disk {self.sequence}"


@dataclass(frozen=True)
class StatusSnapshot:
    id: UUID
    code: str
    label: str
    sort_order: int
    is_final: bool


@dataclass(frozen=True)
class FileTypeSnapshot:
    id: UUID
    code: str
    name: str
    sequence: int


@dataclass(frozen=True)
class StatusContext:
    statuses: tuple[StatusSnapshot, ...]
    by_id: dict[UUID, StatusSnapshot]
    pending: StatusSnapshot
    completed: StatusSnapshot

    def next_after(self, status_id: UUID | None) -> StatusSnapshot:
        """Cycle to the next status by sort order, wrapping to the first."""

        for index, status in enumerate(self.statuses):
            if status.id == status_id:
                return self.statuses[(index + 1) % len(self.statuses)]
        return self.statuses[0]


def active_disks(db: Session) -> tuple[DiskSnapshot, ...]:
    rows = (
        db.query(models.BackupDisk)
        .filter(models.BackupDisk.is_active.is_(True))
        .order_by(models.BackupDisk.sequence.asc())
        .all()
    )
    if not rows:
        raise NoActiveDisksConfigured("no active disks configured for daily backups")
    return tuple(DiskSnapshot(id=row.id, name=row.name, sequence=row.sequence) for row in rows)


def active_statuses(db: Session) -> tuple[StatusSnapshot, ...]:
    rows = (
        db.query(models.BackupStatus)
        .filter(models.BackupStatus.is_active.is_(True))
        .order_by(models.BackupStatus.sort_order.asc(), models.BackupStatus.code.asc())
        .all()
    )
    if not rows:
        raise CatalogNotConfigured("no active statuses configured for daily backups")
    return tuple(
        StatusSnapshot(
            id=row.id,
            code=row.code,
            label=row.label,
            sort_order=row.sort_order,
            is_final=bool(row.is_final),
        )
        for row in rows
    )


def active_file_types(db: Session) -> tuple[FileTypeSnapshot, ...]:
    rows = (
        db.query(models.BackupFileType)
        .filter(models.BackupFileType.is_active.is_(True))
        .order_by(models.BackupFileType.sequence.asc(), models.BackupFileType.code.asc())
        .all()
    )
    if not rows:
        raise CatalogNotConfigured("no active file types configured for daily backups")
    return tuple(
        FileTypeSnapshot(id=row.id, code=row.code, name=row.name, sequence=row.sequence)
        for row in rows
    )


def status_context(statuses: tuple[StatusSnapshot, ...]) -> StatusContext:
    """Derive the default pending and completed statuses from an ordered snapshot."""

    if not statuses:
        raise CatalogNotConfigured("no active statuses configured for daily backups")
    pending = next((s for s in statuses if s.code == PENDING_STATUS_CODE), statuses[0])
    finals = [s for s in statuses if s.is_final]
    completed = next(
        (s for s in statuses if s.code == COMPLETED_STATUS_CODE),
        finals[-1] if finals else statuses[-1],
    )
    return StatusContext(
        statuses=statuses,
        by_id={status.id: status for status in statuses},
        pending=pending,
        completed=completed,
    )


def get_notification_setting(db: Session, code: str) -> models.BackupNotificationSetting | None:
    return (
        db.query(models.BackupNotificationSetting)
        .filter(models.BackupNotificationSetting.code == code)
        .one_or_none()
    )


def get_configuration(db: Session) -> schemas.BackupConfigurationOut:
    disks = db.query(models.BackupDisk).order_by(models.BackupDisk.sequence.asc()).all()
    statuses = (
        db.query(models.BackupStatus)
        .order_by(models.BackupStatus.sort_order.asc(), models.BackupStatus.code.asc())
        .all()
    )
    file_types = (
        db.query(models.BackupFileType)
        .order_by(models.BackupFileType.sequence.asc(), models.BackupFileType.code.asc())
        .all()
    )
    notifications = (
        db.query(models.BackupNotificationSetting)
        .order_by(models.BackupNotificationSetting.code.asc())
        .all()
    )
    return schemas.BackupConfigurationOut(
        disks=[schemas.BackupDiskOut.model_validate(d) for d in disks],
        statuses=[schemas.BackupStatusOut.model_validate(s) for s in statuses],
        file_types=[schemas.BackupFileTypeOut.model_validate(f) for f in file_types],
        notifications=[schemas.NotificationSettingOut.model_validate(n) for n in notifications],
    )


def _flush_unique(db: Session, entity: str) -> None:
    try:
        db.flush()
    except IntegrityError as exc:
        raise DuplicateCatalogEntry(f"a {entity} with the same code or sequence already exists") from exc


def _get_or_404(db: Session, model, entry_id: UUID, entity: str):
    row = db.get(model, entry_id)
    if not row:
        raise RecordComponentNotFound(f"{entity} {entry_id} not found")
    return row


def create_disk(db: Session, payload: schemas.BackupDiskCreate) -> models.BackupDisk:
    disk = models.BackupDisk(**payload.model_dump())
    db.add(disk)
    _flush_unique(db, "disk")
    db.refresh(disk)
    return disk


def update_disk(db: Session, disk_id: UUID, payload: schemas.BackupDiskUpdate) -> models.BackupDisk:
    disk = _get_or_404(db, models.BackupDisk, disk_id, "disk")
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(disk, key, value)
    _flush_unique(db, "disk")
    db.refresh(disk)
    return disk


def archive_disk(db: Session, disk_id: UUID) -> models.BackupDisk:
    disk = _get_or_404(db, models.BackupDisk, disk_id, "disk")
    disk.is_active = False
    db.flush()
    return disk


def create_status(db: Session, payload: schemas.BackupStatusCreate) -> models.BackupStatus:
    status = models.BackupStatus(**payload.model_dump())
    db.add(status)
    _flush_unique(db, "status")
    db.refresh(status)
    return status


def _ensure_other_active_status(db: Session, status_id: UUID) -> None:
    remaining = (
        db.query(models.BackupStatus)
        .filter(models.BackupStatus.is_active.is_(True), models.BackupStatus.id != status_id)
        .count()
    )
    if remaining == 0:
        raise InvalidRequest("at least one active status is required")


def update_status(db: Session, status_id: UUID, payload: schemas.BackupStatusUpdate) -> models.BackupStatus:
    status = _get_or_404(db, models.BackupStatus, status_id, "status")
    updates = payload.model_dump(exclude_unset=True)
    if updates.get("is_active") is False and status.is_active:
        _ensure_other_active_status(db, status_id)
    for key, value in updates.items():
        setattr(status, key, value)
    _flush_unique(db, "status")
    db.refresh(status)
    return status


def archive_status(db: Session, status_id: UUID) -> models.BackupStatus:
    status = _get_or_404(db, models.BackupStatus, status_id, "status")
    if status.is_active:
        _ensure_other_active_status(db, status_id)
    status.is_active = False
    db.flush()
    return status


def create_file_type(db: Session, payload: schemas.BackupFileTypeCreate) -> models.BackupFileType:
    data = payload.model_dump()
    data["code"] = data["code"].upper()
    file_type = models.BackupFileType(**data)
    db.add(file_type)
    _flush_unique(db, "file type")
    db.refresh(file_type)
    return file_type


def update_file_type(
    db: Session, file_type_id: UUID, payload: schemas.BackupFileTypeUpdate
) -> models.BackupFileType:
    file_type = _get_or_404(db, models.BackupFileType, file_type_id, "file type")
    updates = payload.model_dump(exclude_unset=True)
    if updates.get("code"):
        updates["code"] = updates["code"].upper()
    for key, value in updates.items():
        setattr(file_type, key, value)
    _flush_unique(db, "file type")
    db.refresh(file_type)
    return file_type


def archive_file_type(db: Session, file_type_id: UUID) -> models.BackupFileType:
    file_type = _get_or_404(db, models.BackupFileType, file_type_id, "file type")
    file_type.is_active = False
    db.flush()
    return file_type


def update_notification_setting(
    db: Session, code: str, payload: schemas.NotificationSettingUpdate
) -> models.BackupNotificationSetting:
    setting = get_notification_setting(db, code)
    if not setting:
        raise RecordComponentNotFound(f"notification setting {code!r} not found")
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(setting, key, value)
    db.flush()
    db.refresh(setting)
    return setting


DEFAULT_DISKS = (
    {"sequence": 1, "name": "Disk 1", "color": "#60a5fa"},
    {"sequence": 2, "name": "Disk 2", "color": "#34d399"},
    {"sequence": 3, "name": "Disk 3", "color": "#facc15"},
    {"sequence": 4, "name": "Disk 4", "color": "#f87171"},
)

DEFAULT_STATUSES = (
    {"code": PENDING_STATUS_CODE, "label": "Pending", "sort_order": 1, "color": "#9ca3af", "is_final": False},
    {"code": "IN_PROGRESS", "label": "In progress", "sort_order": 2, "color": "#fbbf24", "is_final": False},
    {"code": COMPLETED_STATUS_CODE, "label": "Completed", "sort_order": 3, "color": "#34d399", "is_final": True},
)

DEFAULT_FILE_TYPES = (
    {"code": "BACKUP_ZIP", "name": "Backup.zip", "sequence": 1},
    {"code": "BACKUP_ADJUNTOS_ZIP", "name": "BackupAdjuntos.zip", "sequence": 2},
    {"code": "CALIPSO_BAK", "name": "Calipso.bak", "sequence": 3},
    {"code": "PRESUPUESTACION_BAK", "name": "Presupuestacion.bak", "sequence": 4},
)

DEFAULT_NOTIFICATION_SETTINGS = (
    {
        "code": MORNING_REMINDER,
        "title": "Reminder: daily backup",
        "message": "Time to run the daily backup on {{disk}}.",
        "priority": "medium",
        "send_hour": 9,
        "send_minute": 0,
    },
    {
        "code": AFTERNOON_ALERT,
        "title": "URGENT: daily backup pending",
        "message": "The daily backup is still pending on {{disk}} ({{completed}}/{{total}} files done). Missing: {{missing}}.",
        "priority": "high",
        "send_hour": 14,
        "send_minute": 0,
    },
    {
        "code": COMPLETED_NOTIFICATION,
        "title": "Daily backup completed",
        "message": "The daily backup was completed by {{user}} on {{disk}}.",
        "priority": "medium",
    },
)


def seed_defaults(db: Session) -> dict[str, int]:
    """Upsert the default catalog; existing rows keep their identity."""

    created = {"disks": 0, "statuses": 0, "file_types": 0, "notifications": 0}
    for defaults in DEFAULT_DISKS:
        disk = db.query(models.BackupDisk).filter_by(sequence=defaults["sequence"]).one_or_none()
        if disk is None:
            db.add(models.BackupDisk(**defaults))
            created["disks"] += 1
    for defaults in DEFAULT_STATUSES:
        status = db.query(models.BackupStatus).filter_by(code=defaults["code"]).one_or_none()
        if status is None:
            db.add(models.BackupStatus(**defaults))
            created["statuses"] += 1
    for defaults in DEFAULT_FILE_TYPES:
        file_type = db.query(models.BackupFileType).filter_by(code=defaults["code"]).one_or_none()
        if file_type is None:
            db.add(models.BackupFileType(**defaults))
            created["file_types"] += 1
    for defaults in DEFAULT_NOTIFICATION_SETTINGS:
        if get_notification_setting(db, defaults["code"]) is None:
            db.add(models.BackupNotificationSetting(**defaults))
            created["notifications"] += 1
    db.flush()
    return created
