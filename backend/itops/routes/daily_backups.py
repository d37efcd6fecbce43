from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..clock import Clock, get_clock
from ..database import get_db
from .. import models, schemas
from ..services import backup_calendar
from ..services.backup_errors import ConflictError, DailyBackupError, InvalidError, NotFoundError
from ..services.daily_backups import DailyBackupService, serialize_record

router = APIRouter(prefix="/api/daily-backups", tags=["daily-backups"])


def http_error(exc: DailyBackupError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, InvalidError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def get_daily_backup_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> DailyBackupService:
    return DailyBackupService(db, clock=clock)


@router.get("/today", response_model=schemas.DailyBackupOut)
def get_today(
    service: DailyBackupService = Depends(get_daily_backup_service),
    user: models.User = Depends(get_current_user),
):
    try:
        return serialize_record(service.get_today())
    except DailyBackupError as exc:
        raise http_error(exc) from exc


@router.post("/today", response_model=schemas.DailyBackupOut)
def create_or_update_today(
    payload: schemas.DailyBackupUpdate,
    service: DailyBackupService = Depends(get_daily_backup_service),
    user: models.User = Depends(get_current_user),
):
    try:
        return serialize_record(service.create_or_update_today(payload, user.id))
    except DailyBackupError as exc:
        raise http_error(exc) from exc


@router.patch("/today/disk/{disk_number}", response_model=schemas.DailyBackupOut)
def toggle_all_files(
    disk_number: int,
    service: DailyBackupService = Depends(get_daily_backup_service),
    user: models.User = Depends(get_current_user),
):
    # the disk number is kept in the path for older clients; today's disk never changes here
    try:
        return serialize_record(service.toggle_all_files(user.id))
    except DailyBackupError as exc:
        raise http_error(exc) from exc


@router.patch("/today/file/{file_ref}", response_model=schemas.DailyBackupOut)
def toggle_file(
    file_ref: str,
    service: DailyBackupService = Depends(get_daily_backup_service),
    user: models.User = Depends(get_current_user),
):
    """Advance a file, by code or legacy name (``backupZip``), to its next status."""
    try:
        return serialize_record(service.toggle_file(file_ref, user.id))
    except DailyBackupError as exc:
        raise http_error(exc) from exc


@router.patch("/today/file-type/{file_type_id}", response_model=schemas.DailyBackupOut)
def toggle_file_by_id(
    file_type_id: UUID,
    service: DailyBackupService = Depends(get_daily_backup_service),
    user: models.User = Depends(get_current_user),
):
    try:
        return serialize_record(service.toggle_file_by_id(file_type_id, user.id))
    except DailyBackupError as exc:
        raise http_error(exc) from exc


@router.put(
    "/today/file-type/{file_type_id}/status/{status_id}",
    response_model=schemas.DailyBackupOut,
)
def update_file_status(
    file_type_id: UUID,
    status_id: UUID,
    service: DailyBackupService = Depends(get_daily_backup_service),
    user: models.User = Depends(get_current_user),
):
    try:
        return serialize_record(service.update_file_status(file_type_id, status_id, user.id))
    except DailyBackupError as exc:
        raise http_error(exc) from exc


@router.get("/month/{year}/{month}", response_model=list[schemas.DailyBackupOut])
def get_by_month(
    year: int,
    month: int,
    service: DailyBackupService = Depends(get_daily_backup_service),
    user: models.User = Depends(get_current_user),
):
    try:
        return [serialize_record(record) for record in service.get_by_month(year, month)]
    except DailyBackupError as exc:
        raise http_error(exc) from exc


@router.get("/calendar/{year}/{month}", response_model=list[schemas.CalendarEntryOut])
def get_calendar(
    year: int,
    month: int,
    service: DailyBackupService = Depends(get_daily_backup_service),
    user: models.User = Depends(get_current_user),
):
    try:
        return backup_calendar.project_month(service, year, month)
    except DailyBackupError as exc:
        raise http_error(exc) from exc


@router.get("/history", response_model=schemas.DailyBackupHistoryOut)
def get_history(
    page: int = Query(1, description="1-based page number"),
    limit: int = Query(30, description="Records per page, at most 200"),
    service: DailyBackupService = Depends(get_daily_backup_service),
    user: models.User = Depends(get_current_user),
):
    try:
        history = service.get_history(page, limit)
    except DailyBackupError as exc:
        raise http_error(exc) from exc
    return schemas.DailyBackupHistoryOut(
        items=[serialize_record(record) for record in history["items"]],
        total=history["total"],
        page=history["page"],
        limit=history["limit"],
        pages=history["pages"],
    )


@router.get("/stats", response_model=schemas.DailyBackupStatsOut)
def get_stats(
    service: DailyBackupService = Depends(get_daily_backup_service),
    user: models.User = Depends(get_current_user),
):
    return service.get_stats()
