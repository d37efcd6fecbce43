"""Completion state derived from a daily record's file matrix."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.orm import Session

from .. import models

# purpose: single evaluator deciding pending vs completed for a daily backup record
# inputs: DailyBackup rows with their file matrix loaded
# outputs: completion flag, counts, outstanding file names, edge transitions
# status: active

LEGACY_STATUS_COLUMNS = (
    ("BACKUP_ZIP", "legacy_backup_zip_status_id"),
    ("BACKUP_ADJUNTOS_ZIP", "legacy_backup_adjuntos_status_id"),
    ("CALIPSO_BAK", "legacy_calipso_status_id"),
    ("PRESUPUESTACION_BAK", "legacy_presupuestacion_status_id"),
)


@dataclass(frozen=True)
class CompletionEvaluator:
    """Completion view over ``(file name, is_final)`` pairs."""

    entries: tuple[tuple[str, bool], ...]

    @classmethod
    def for_record(cls, record: models.DailyBackup | None) -> "CompletionEvaluator":
        if record is None:
            return cls(entries=())
        ordered = sorted(
            record.files,
            key=lambda f: (f.file_type.sequence if f.file_type else 0, f.file_type.code if f.file_type else ""),
        )
        return cls(
            entries=tuple(
                (
                    f.file_type.name if f.file_type else "Unknown file",
                    bool(f.status and f.status.is_final),
                )
                for f in ordered
            )
        )

    @property
    def total_count(self) -> int:
        return len(self.entries)

    @property
    def completed_count(self) -> int:
        return sum(1 for _, is_final in self.entries if is_final)

    @property
    def is_completed(self) -> bool:
        # an empty matrix has nothing delivered yet
        return bool(self.entries) and all(is_final for _, is_final in self.entries)

    @property
    def missing_names(self) -> list[str]:
        return [name for name, is_final in self.entries if not is_final]


@dataclass(frozen=True)
class CompletionTransition:
    was_completed: bool
    is_completed: bool

    @property
    def changed(self) -> bool:
        return self.was_completed != self.is_completed

    @property
    def became_completed(self) -> bool:
        return not self.was_completed and self.is_completed

    @property
    def became_pending(self) -> bool:
        return self.was_completed and not self.is_completed


def has_legacy_statuses(record: models.DailyBackup) -> bool:
    return any(getattr(record, column) is not None for _, column in LEGACY_STATUS_COLUMNS)


def backfill_record_matrix(db: Session, record: models.DailyBackup) -> int:
    """Convert a record's legacy fixed status columns into file matrix rows.

    Only runs when the record has no matrix yet. File types are matched by their
    legacy code; codes missing from the catalog are skipped. Returns the number
    of rows created.
    """

    if record.files or not has_legacy_statuses(record):
        return 0
    file_types = {
        ft.code: ft
        for ft in db.query(models.BackupFileType)
        .filter(models.BackupFileType.code.in_([code for code, _ in LEGACY_STATUS_COLUMNS]))
        .all()
    }
    created = 0
    for code, column in LEGACY_STATUS_COLUMNS:
        status_id = getattr(record, column)
        file_type = file_types.get(code)
        if status_id is None or file_type is None:
            continue
        record.files.append(
            models.DailyBackupFile(
                file_type=file_type,
                status=db.get(models.BackupStatus, status_id),
            )
        )
        created += 1
    db.flush()
    return created


def iter_legacy_records(db: Session) -> Iterable[models.DailyBackup]:
    query = db.query(models.DailyBackup).filter(~models.DailyBackup.files.any())
    for record in query.order_by(models.DailyBackup.date.asc()).all():
        if has_legacy_statuses(record):
            yield record


def backfill_legacy_matrix(db: Session) -> dict[str, int]:
    """Migrate every legacy record to the file matrix; the caller commits."""

    records = 0
    entries = 0
    for record in list(iter_legacy_records(db)):
        created = backfill_record_matrix(db, record)
        if created:
            records += 1
            entries += created
    return {"records": records, "entries": entries}
