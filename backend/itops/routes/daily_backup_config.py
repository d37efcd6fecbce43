from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user, require_admin
from ..database import get_db
from .. import models, schemas
from ..services import catalog
from ..services.backup_errors import DailyBackupError
from .daily_backups import http_error

router = APIRouter(prefix="/api/daily-backups/config", tags=["daily-backups"])


def _commit(db: Session, action, *args):
    try:
        row = action(db, *args)
        db.commit()
    except DailyBackupError as exc:
        db.rollback()
        raise http_error(exc) from exc
    db.refresh(row)
    return row


@router.get("", response_model=schemas.BackupConfigurationOut)
def get_configuration(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return catalog.get_configuration(db)


@router.post("/disks", response_model=schemas.BackupDiskOut)
def create_disk(
    payload: schemas.BackupDiskCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    return _commit(db, catalog.create_disk, payload)


@router.patch("/disks/{disk_id}", response_model=schemas.BackupDiskOut)
def update_disk(
    disk_id: UUID,
    payload: schemas.BackupDiskUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    return _commit(db, catalog.update_disk, disk_id, payload)


@router.delete("/disks/{disk_id}", response_model=schemas.BackupDiskOut)
def archive_disk(
    disk_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    return _commit(db, catalog.archive_disk, disk_id)


@router.post("/statuses", response_model=schemas.BackupStatusOut)
def create_status(
    payload: schemas.BackupStatusCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    return _commit(db, catalog.create_status, payload)


@router.patch("/statuses/{status_id}", response_model=schemas.BackupStatusOut)
def update_status(
    status_id: UUID,
    payload: schemas.BackupStatusUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    return _commit(db, catalog.update_status, status_id, payload)


@router.delete("/statuses/{status_id}", response_model=schemas.BackupStatusOut)
def archive_status(
    status_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    return _commit(db, catalog.archive_status, status_id)


@router.post("/file-types", response_model=schemas.BackupFileTypeOut)
def create_file_type(
    payload: schemas.BackupFileTypeCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    return _commit(db, catalog.create_file_type, payload)


@router.patch("/file-types/{file_type_id}", response_model=schemas.BackupFileTypeOut)
def update_file_type(
    file_type_id: UUID,
    payload: schemas.BackupFileTypeUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    return _commit(db, catalog.update_file_type, file_type_id, payload)


@router.delete("/file-types/{file_type_id}", response_model=schemas.BackupFileTypeOut)
def archive_file_type(
    file_type_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    return _commit(db, catalog.archive_file_type, file_type_id)


@router.patch("/notifications/{code}", response_model=schemas.NotificationSettingOut)
def update_notification_setting(
    code: str,
    payload: schemas.NotificationSettingUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_admin),
):
    return _commit(db, catalog.update_notification_setting, code.upper(), payload)
