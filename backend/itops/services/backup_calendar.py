"""Month calendar projection of daily backup records."""

from __future__ import annotations

from datetime import datetime, time, timezone, tzinfo

from .. import models, schemas
from .completion import CompletionEvaluator
from .daily_backups import DailyBackupService, month_bounds, serialize_file, sorted_files

# purpose: read-only month view that always carries an editable entry for today
# inputs: DailyBackupService (for the month query and today's materialization)
# outputs: CalendarEntryOut models ordered by date
# status: active

COMPLETE_COLOR = "#10b981"
TODAY_PENDING_COLOR = "#f59e0b"
PAST_INCOMPLETE_COLOR = "#ef4444"
FUTURE_COLOR = "#6b7280"


def _title(record: models.DailyBackup, evaluator: CompletionEvaluator, *, is_today: bool, is_past: bool) -> str:
    disk_name = record.disk.display_name if record.disk else "Disk"
    done, total = evaluator.completed_count, evaluator.total_count
    if record.completed_at is not None:
        return f"Backup complete - {disk_name}"
    partial = total > 0 and done > 0
    if is_today:
        if partial:
            return f"Backup in progress {done}/{total} - {disk_name}"
        return f"Backup pending - {disk_name}"
    if partial:
        return f"Backup incomplete {done}/{total} - {disk_name}"
    if is_past:
        return f"Backup incomplete - {disk_name}"
    return f"Backup scheduled - {disk_name}"


def _color(completed: bool, *, is_today: bool, is_past: bool) -> str:
    if completed:
        return COMPLETE_COLOR
    if is_today:
        return TODAY_PENDING_COLOR
    return PAST_INCOMPLETE_COLOR if is_past else FUTURE_COLOR


def project_entry(
    record: models.DailyBackup, *, is_today: bool, is_past: bool, tz: tzinfo
) -> schemas.CalendarEntryOut:
    evaluator = CompletionEvaluator.for_record(record)
    completed = record.completed_at is not None
    disk_name = record.disk.display_name if record.disk else "disk"
    return schemas.CalendarEntryOut(
        id=record.id,
        date=record.date,
        start_time=datetime.combine(record.date, time.min, tzinfo=tz).astimezone(timezone.utc),
        title=_title(record, evaluator, is_today=is_today, is_past=is_past),
        description=record.notes or f"Daily backup on {disk_name}",
        color=_color(completed, is_today=is_today, is_past=is_past),
        priority="high" if is_past and not completed else "normal",
        readonly=not is_today,
        is_today=is_today,
        is_past=is_past,
        completed=completed,
        disk_id=record.disk_id,
        disk_name=disk_name,
        disk_sequence=record.disk.sequence if record.disk else 0,
        total_files=evaluator.total_count,
        completed_files=evaluator.completed_count,
        files=[serialize_file(entry) for entry in sorted_files(record)],
        completed_by=record.user.username if record.user else None,
        completed_at=record.completed_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def project_month(service: DailyBackupService, year: int, month: int) -> list[schemas.CalendarEntryOut]:
    """Project ``year``/``month`` into calendar entries.

    Only persisted records appear, except that today is always present when it
    falls inside the month: it is materialized through the service if missing.
    """

    start, end = month_bounds(year, month)
    today = service.clock.today()
    records = {record.date: record for record in service.get_by_month(year, month)}

    if start <= today <= end and today not in records:
        today_record = service.ensure_today_materialized()
        records[today_record.date] = today_record

    return [
        project_entry(
            records[day],
            is_today=day == today,
            is_past=day < today,
            tz=service.settings.tzinfo,
        )
        for day in sorted(records)
    ]

