"""Daily backup record manager.

Owns the one-record-per-day aggregate: lazily creates today's record with its
rotated disk and file matrix, heals the matrix against the active file type
catalog, applies operator writes atomically, and keeps ``completed_at`` in step
with the matrix.
"""

from __future__ import annotations

import logging
import math
from calendar import monthrange
from datetime import date, timedelta
from typing import Iterable
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..clock import Clock, ZoneClock, utc_now
from ..config import BackupSettings, settings as default_settings
from ..notify import Notifier
from . import backup_reminders, catalog
from .backup_errors import InactiveReference, InvalidRequest, RecordComponentNotFound
from .catalog import FileTypeSnapshot, StatusContext, StatusSnapshot
from .completion import CompletionEvaluator, CompletionTransition, backfill_record_matrix
from .rotation import resolve_disk

# purpose: lifecycle of the per-day backup checklist and read access to past days
# inputs: SQLAlchemy session, injected clock and notifier, DailyBackupUpdate payloads
# outputs: DailyBackup rows with a synced file matrix, history and stats views
# status: active

logger = logging.getLogger(__name__)

LEGACY_FILE_ALIASES = {
    "backupZip": "BACKUP_ZIP",
    "backupAdjuntosZip": "BACKUP_ADJUNTOS_ZIP",
    "calipsoBak": "CALIPSO_BAK",
    "presupuestacionBak": "PRESUPUESTACION_BAK",
}

MAX_HISTORY_LIMIT = 200


def resolve_file_type_code(ref: str) -> str:
    """Map a legacy camelCase name or a loose code to a file type code."""

    ref = (ref or "").strip()
    return LEGACY_FILE_ALIASES.get(ref, ref.upper())


def month_bounds(year: int, month: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise InvalidRequest(f"month must be between 1 and 12, got {month}")
    if not 1 <= year <= 9999:
        raise InvalidRequest(f"year {year} is out of range")
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def sorted_files(record: models.DailyBackup) -> list[models.DailyBackupFile]:
    return sorted(
        record.files,
        key=lambda f: (f.file_type.sequence if f.file_type else 0, f.file_type.code if f.file_type else ""),
    )


def serialize_file(entry: models.DailyBackupFile) -> schemas.DailyBackupFileOut:
    return schemas.DailyBackupFileOut(
        file_type_id=entry.file_type_id,
        file_type_code=entry.file_type.code,
        file_type_name=entry.file_type.name,
        status_id=entry.status_id,
        status_code=entry.status.code,
        status_label=entry.status.label,
        is_final=bool(entry.status.is_final),
    )


def serialize_record(record: models.DailyBackup) -> schemas.DailyBackupOut:
    evaluator = CompletionEvaluator.for_record(record)
    return schemas.DailyBackupOut(
        id=record.id,
        date=record.date,
        disk=schemas.BackupDiskOut.model_validate(record.disk),
        notes=record.notes,
        completed=record.completed_at is not None,
        completed_at=record.completed_at,
        completed_by=record.completed_by,
        completed_by_name=record.user.display_name if record.user else None,
        total_files=evaluator.total_count,
        completed_files=evaluator.completed_count,
        files=[serialize_file(entry) for entry in sorted_files(record)],
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class DailyBackupService:
    """Per-request facade over today's record and the backup history."""

    def __init__(
        self,
        db: Session,
        *,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        settings: BackupSettings | None = None,
    ) -> None:
        self.db = db
        self.clock = clock or ZoneClock()
        self.notifier = notifier or Notifier(db, clock=self.clock)
        self.settings = settings or default_settings

    # -- lookups -----------------------------------------------------------

    def _find(self, day: date) -> models.DailyBackup | None:
        return self.db.query(models.DailyBackup).filter(models.DailyBackup.date == day).one_or_none()

    def _writable_file_type(
        self, file_type: models.BackupFileType | None, record: models.DailyBackup, ref
    ) -> models.BackupFileType:
        """Reject unknown file types, and archived ones not already on ``record``.

        A type archived mid-day keeps its entry in today's matrix, so it must
        stay writable or the day could never complete.
        """

        if not file_type:
            raise RecordComponentNotFound(f"file type {ref} not found")
        if not file_type.is_active and not self._has_entry(record, file_type.id):
            raise InactiveReference(f"file type {ref} is inactive")
        return file_type

    def _file_type_for_write(self, file_type_id: UUID, record: models.DailyBackup) -> models.BackupFileType:
        file_type = self.db.get(models.BackupFileType, file_type_id)
        return self._writable_file_type(file_type, record, file_type.code if file_type else file_type_id)

    def _status_for_write(self, status_id: UUID, context: StatusContext) -> StatusSnapshot:
        if status_id in context.by_id:
            return context.by_id[status_id]
        if self.db.get(models.BackupStatus, status_id) is None:
            raise RecordComponentNotFound(f"status {status_id} not found")
        raise InactiveReference(f"status {status_id} is inactive")

    # -- matrix maintenance ------------------------------------------------

    @staticmethod
    def _entry_type_id(entry: models.DailyBackupFile) -> UUID | None:
        # pending entries carry the relationship before the foreign key is flushed
        return entry.file_type.id if entry.file_type is not None else entry.file_type_id

    def _has_entry(self, record: models.DailyBackup, file_type_id: UUID) -> bool:
        return any(self._entry_type_id(entry) == file_type_id for entry in record.files)

    def _add_entry(self, record: models.DailyBackup, file_type_id: UUID, status_id: UUID) -> None:
        record.files.append(
            models.DailyBackupFile(
                file_type=self.db.get(models.BackupFileType, file_type_id),
                status=self.db.get(models.BackupStatus, status_id),
            )
        )

    def _sync_matrix(
        self,
        record: models.DailyBackup,
        file_types: Iterable[FileTypeSnapshot],
        pending: StatusSnapshot,
    ) -> int:
        present = {self._entry_type_id(entry) for entry in record.files}
        added = 0
        for file_type in file_types:
            if file_type.id not in present:
                self._add_entry(record, file_type.id, pending.id)
                added += 1
        if added:
            self.db.flush()
            logger.info("Added %s missing file entries to daily backup %s", added, record.date)
        return added

    def _upsert_entry(self, record: models.DailyBackup, file_type: models.BackupFileType, status_id: UUID) -> None:
        for entry in record.files:
            if self._entry_type_id(entry) == file_type.id:
                entry.status = self.db.get(models.BackupStatus, status_id)
                return
        self._add_entry(record, file_type.id, status_id)

    def _reconcile_completion(self, record: models.DailyBackup) -> CompletionTransition:
        self.db.flush()
        transition = CompletionTransition(
            was_completed=record.completed_at is not None,
            is_completed=CompletionEvaluator.for_record(record).is_completed,
        )
        if transition.became_completed:
            record.completed_at = utc_now(self.clock)
        elif transition.became_pending:
            record.completed_at = None
        return transition

    def _announce(self, record: models.DailyBackup, transition: CompletionTransition) -> None:
        # runs after commit; reads and writes share it so the completed edge always notifies
        if transition.became_completed:
            logger.info("Daily backup for %s completed", record.date)
            backup_reminders.notify_backup_completed(
                self.db, record, clock=self.clock, notifier=self.notifier
            )
        elif transition.became_pending:
            logger.info("Daily backup for %s reopened", record.date)

    # -- today -------------------------------------------------------------

    def _create_today(
        self,
        day: date,
        disk_id: UUID,
        file_types: Iterable[FileTypeSnapshot],
        pending: StatusSnapshot,
    ) -> models.DailyBackup:
        record = models.DailyBackup(date=day, disk=self.db.get(models.BackupDisk, disk_id))
        for file_type in file_types:
            self._add_entry(record, file_type.id, pending.id)
        self.db.add(record)
        self.db.flush()
        return record

    def _load_today(
        self,
        *,
        file_types: tuple[FileTypeSnapshot, ...],
        context: StatusContext,
        disk_id: UUID | None = None,
        disk_number: int | None = None,
    ) -> tuple[models.DailyBackup, bool]:
        """Return today's record, creating it when missing; the flag reports creation."""

        day = self.clock.today()
        record = self._find(day)
        if record is not None:
            return record, False

        disk = resolve_disk(
            day,
            catalog.active_disks(self.db),
            reference_date=self.settings.reference_date,
            disk_id=disk_id,
            disk_number=disk_number,
        )
        try:
            record = self._create_today(day, disk.id, file_types, context.pending)
        except IntegrityError:
            # another writer created today's record first
            self.db.rollback()
            record = self._find(day)
            if record is None:
                raise
            return record, False
        logger.info("Created daily backup for %s on %s", day, disk.display_name)
        return record, True

    def _heal(self, record: models.DailyBackup, file_types, context: StatusContext) -> None:
        backfill_record_matrix(self.db, record)
        self._sync_matrix(record, file_types, context.pending)

    def get_today(self) -> models.DailyBackup:
        """Return today's record, creating it or syncing its file matrix as needed.

        An existing record keeps its disk; only missing file entries are added.
        If a catalog change flipped the completion state, the record follows it
        and a newly completed day is announced like a write would; the last
        writer stays recorded as ``completed_by``.
        """

        try:
            context = catalog.status_context(catalog.active_statuses(self.db))
            file_types = catalog.active_file_types(self.db)
            record, created = self._load_today(file_types=file_types, context=context)
            if not created:
                self._heal(record, file_types, context)
            transition = self._reconcile_completion(record)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(record)
        self._announce(record, transition)
        return record

    def ensure_today_materialized(self) -> models.DailyBackup:
        """Make sure a record exists for today; used by the calendar and the nightly job."""

        return self.get_today()

    def create_or_update_today(
        self, patch: schemas.DailyBackupUpdate, actor_id: UUID | None
    ) -> models.DailyBackup:
        """Apply ``patch`` to today's record in one transaction.

        ``patch.requested_date`` is ignored: writes always land on the server's
        today. The completion notice is sent after the commit.
        """

        if patch.requested_date is not None and patch.requested_date != self.clock.today():
            logger.info("Ignoring requested date %s for daily backup write", patch.requested_date)

        override = patch.disk_id is not None or patch.disk_number is not None
        try:
            context = catalog.status_context(catalog.active_statuses(self.db))
            file_types = catalog.active_file_types(self.db)
            record, created = self._load_today(
                file_types=file_types,
                context=context,
                disk_id=patch.disk_id,
                disk_number=patch.disk_number,
            )
            if not created:
                self._heal(record, file_types, context)
                if override:
                    disk = resolve_disk(
                        record.date,
                        catalog.active_disks(self.db),
                        reference_date=self.settings.reference_date,
                        disk_id=patch.disk_id,
                        disk_number=patch.disk_number,
                    )
                    record.disk = self.db.get(models.BackupDisk, disk.id)

            if "notes" in patch.model_fields_set:
                record.notes = patch.notes
            for item in patch.file_statuses:
                file_type = self._file_type_for_write(item.file_type_id, record)
                status = self._status_for_write(item.status_id, context)
                self._upsert_entry(record, file_type, status.id)
            if actor_id is not None:
                record.user = self.db.get(models.User, actor_id)

            transition = self._reconcile_completion(record)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(record)
        self._announce(record, transition)
        return record

    def _entry_for(self, record: models.DailyBackup, file_type: models.BackupFileType) -> models.DailyBackupFile:
        for entry in record.files:
            if self._entry_type_id(entry) == file_type.id:
                return entry
        raise RecordComponentNotFound(f"file {file_type.code} is not part of today's backup")

    def _advance(
        self, record: models.DailyBackup, file_type: models.BackupFileType, actor_id: UUID | None
    ) -> models.DailyBackup:
        entry = self._entry_for(record, file_type)
        context = catalog.status_context(catalog.active_statuses(self.db))
        next_status = context.next_after(entry.status_id)
        patch = schemas.DailyBackupUpdate(
            file_statuses=[schemas.FileStatusUpdate(file_type_id=file_type.id, status_id=next_status.id)]
        )
        return self.create_or_update_today(patch, actor_id)

    def toggle_file(self, ref: str, actor_id: UUID | None) -> models.DailyBackup:
        """Advance a file, referenced by code or legacy name, to its next status."""

        code = resolve_file_type_code(ref)
        file_type = (
            self.db.query(models.BackupFileType).filter(models.BackupFileType.code == code).one_or_none()
        )
        record = self.get_today()
        return self._advance(record, self._writable_file_type(file_type, record, repr(ref)), actor_id)

    def toggle_file_by_id(self, file_type_id: UUID, actor_id: UUID | None) -> models.DailyBackup:
        record = self.get_today()
        return self._advance(record, self._file_type_for_write(file_type_id, record), actor_id)

    def toggle_all_files(self, actor_id: UUID | None) -> models.DailyBackup:
        """Mark every file completed, or reset all of them if the day is already complete."""

        record = self.get_today()
        context = catalog.status_context(catalog.active_statuses(self.db))
        target = context.statuses[0] if record.completed_at is not None else context.completed
        patch = schemas.DailyBackupUpdate(
            file_statuses=[
                schemas.FileStatusUpdate(file_type_id=self._entry_type_id(entry), status_id=target.id)
                for entry in record.files
            ]
        )
        return self.create_or_update_today(patch, actor_id)

    def update_file_status(
        self, file_type_id: UUID, status_id: UUID, actor_id: UUID | None
    ) -> models.DailyBackup:
        record = self.get_today()
        self._entry_for(record, self._file_type_for_write(file_type_id, record))
        patch = schemas.DailyBackupUpdate(
            file_statuses=[schemas.FileStatusUpdate(file_type_id=file_type_id, status_id=status_id)]
        )
        return self.create_or_update_today(patch, actor_id)

    # -- history -----------------------------------------------------------

    def get_by_month(self, year: int, month: int) -> list[models.DailyBackup]:
        start, end = month_bounds(year, month)
        return (
            self.db.query(models.DailyBackup)
            .filter(models.DailyBackup.date >= start, models.DailyBackup.date <= end)
            .order_by(models.DailyBackup.date.desc())
            .all()
        )

    def get_history(self, page: int = 1, limit: int = 30) -> dict:
        if page < 1:
            raise InvalidRequest("page must be at least 1")
        if not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise InvalidRequest(f"limit must be between 1 and {MAX_HISTORY_LIMIT}")
        query = self.db.query(models.DailyBackup)
        total = query.count()
        items = (
            query.order_by(models.DailyBackup.date.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit),
        }

    def _period_stats(self, start: date | None = None, end: date | None = None) -> schemas.BackupPeriodStats:
        query = self.db.query(models.DailyBackup)
        if start is not None:
            query = query.filter(models.DailyBackup.date >= start)
        if end is not None:
            query = query.filter(models.DailyBackup.date <= end)
        total = query.count()
        completed = query.filter(models.DailyBackup.completed_at.isnot(None)).count()
        return schemas.BackupPeriodStats(total=total, completed=completed, pending=total - completed)

    def get_stats(self) -> schemas.DailyBackupStatsOut:
        today = self.clock.today()
        this_month_start = today.replace(day=1)
        last_month_end = this_month_start - timedelta(days=1)
        last_month_start = last_month_end.replace(day=1)
        overall = self._period_stats()
        return schemas.DailyBackupStatsOut(
            total=overall.total,
            completed=overall.completed,
            pending=overall.pending,
            this_month=self._period_stats(this_month_start),
            last_month=self._period_stats(last_month_start, last_month_end),
        )
