"""Time-triggered reminders and the completion notice for the daily backup."""

from __future__ import annotations

import logging
import re
from typing import Any

from sqlalchemy.orm import Session

from .. import models
from ..clock import Clock, ZoneClock, local_midnight
from ..config import BackupSettings, settings as default_settings
from ..notify import BROADCAST, Notifier
from . import catalog
from .backup_errors import CatalogNotConfigured, DailyBackupError
from .completion import CompletionEvaluator
from .rotation import resolve_disk

# purpose: morning reminder, afternoon escalation, and completion-edge notice
# inputs: notification settings, today's record, injected clock and notifier
# outputs: broadcast notifications tagged by context; outcome strings for callers
# status: active

logger = logging.getLogger(__name__)

MORNING_CONTEXT = "daily-backup-morning"
AFTERNOON_CONTEXT = "daily-backup-afternoon"
COMPLETED_CONTEXT = "daily-backup-completed"

SENT = "sent"
DISABLED = "disabled"
DUPLICATE = "duplicate"
COMPLETED = "completed"
SKIPPED_DAY = "skipped_day"
FAILED = "failed"

FALLBACK_DISK_NAME = "the configured disks"
NOT_STARTED_MESSAGE = "The daily backup has not been started yet."

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")
_DEFAULTS = {entry["code"]: entry for entry in catalog.DEFAULT_NOTIFICATION_SETTINGS}


def render_template(template: str, values: dict[str, Any]) -> str:
    """Substitute ``{{name}}`` placeholders; unknown names are left untouched."""

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        return str(values[key]) if key in values else match.group(0)

    return _PLACEHOLDER.sub(_replace, template)


def runs_on(setting: models.BackupNotificationSetting | None, weekday: int) -> bool:
    if setting is None or not (setting.days_of_week or "").strip():
        return True
    days = {int(part) for part in setting.days_of_week.split(",") if part.strip().isdigit()}
    return weekday in days


def _phrase(setting, code: str) -> tuple[str, str, str]:
    default = _DEFAULTS[code]
    if setting is None:
        return default["title"], default["message"], default["priority"]
    return setting.title, setting.message, setting.priority or default["priority"]


def _today_record(db: Session, clock: Clock) -> models.DailyBackup | None:
    return (
        db.query(models.DailyBackup)
        .filter(models.DailyBackup.date == clock.today())
        .one_or_none()
    )


def _disk_meta(disk) -> dict[str, Any]:
    if disk is None:
        return {"disk_id": None, "disk_name": None, "disk_sequence": None}
    return {"disk_id": str(disk.id), "disk_name": disk.name, "disk_sequence": disk.sequence}


def _predicted_disk(db: Session, clock: Clock, settings: BackupSettings):
    try:
        return resolve_disk(
            clock.today(), catalog.active_disks(db), reference_date=settings.reference_date
        )
    except DailyBackupError:
        return None


def _dispatch(
    db: Session,
    notifier: Notifier,
    title: str,
    message: str,
    priority: str,
    meta: dict[str, Any],
) -> str:
    try:
        notifier.send(BROADCAST, title, message, priority, meta)
    except Exception:
        db.rollback()
        logger.exception("Failed to send %s notification", meta.get("context"))
        return FAILED
    return SENT


def _guard(
    db: Session,
    code: str,
    context: str,
    clock: Clock,
    notifier: Notifier,
) -> tuple[str | None, models.BackupNotificationSetting | None]:
    setting = catalog.get_notification_setting(db, code)
    if setting is not None and not setting.is_enabled:
        logger.warning("%s is disabled, skipping", code)
        return DISABLED, setting
    if not runs_on(setting, clock.today().weekday()):
        logger.info("%s is not scheduled for %s", code, clock.today())
        return SKIPPED_DAY, setting
    if notifier.find_recent(context, local_midnight(clock)) is not None:
        logger.info("%s already sent today, skipping duplicate", code)
        return DUPLICATE, setting
    return None, setting


def send_morning_reminder(
    db: Session,
    *,
    clock: Clock | None = None,
    notifier: Notifier | None = None,
    settings: BackupSettings | None = None,
) -> str:
    clock = clock or ZoneClock()
    notifier = notifier or Notifier(db, clock=clock)
    settings = settings or default_settings

    outcome, setting = _guard(db, catalog.MORNING_REMINDER, MORNING_CONTEXT, clock, notifier)
    if outcome:
        return outcome

    record = _today_record(db, clock)
    if record is not None and record.completed_at is not None:
        logger.info("Daily backup already completed, no morning reminder")
        return COMPLETED

    disk = record.disk if record is not None else _predicted_disk(db, clock, settings)
    title, template, priority = _phrase(setting, catalog.MORNING_REMINDER)
    message = render_template(template, {"disk": disk.display_name if disk else FALLBACK_DISK_NAME})
    meta = {"context": MORNING_CONTEXT, "date": clock.today().isoformat(), **_disk_meta(disk)}
    outcome = _dispatch(db, notifier, title, message, priority, meta)
    if outcome == SENT:
        logger.info("Morning backup reminder sent")
    return outcome


def send_afternoon_alert(
    db: Session,
    *,
    clock: Clock | None = None,
    notifier: Notifier | None = None,
    settings: BackupSettings | None = None,
) -> str:
    """Escalate an unfinished backup with progress counts and the outstanding files."""

    clock = clock or ZoneClock()
    notifier = notifier or Notifier(db, clock=clock)
    settings = settings or default_settings

    outcome, setting = _guard(db, catalog.AFTERNOON_ALERT, AFTERNOON_CONTEXT, clock, notifier)
    if outcome:
        return outcome

    record = _today_record(db, clock)
    if record is not None and record.completed_at is not None:
        logger.info("Daily backup already completed, no afternoon alert")
        return COMPLETED

    if record is not None:
        evaluator = CompletionEvaluator.for_record(record)
        disk = record.disk
        completed, total, missing = evaluator.completed_count, evaluator.total_count, evaluator.missing_names
    else:
        disk = _predicted_disk(db, clock, settings)
        try:
            missing = [ft.name for ft in catalog.active_file_types(db)]
        except CatalogNotConfigured:
            missing = []
        completed, total = 0, len(missing)

    title, template, priority = _phrase(setting, catalog.AFTERNOON_ALERT)
    if setting is None and record is None:
        template = NOT_STARTED_MESSAGE
    message = render_template(
        template,
        {
            "disk": disk.display_name if disk else FALLBACK_DISK_NAME,
            "completed": completed,
            "total": total,
            "missing": ", ".join(missing) or "N/A",
        },
    )
    meta = {
        "context": AFTERNOON_CONTEXT,
        "date": clock.today().isoformat(),
        "files_completed": completed,
        "files_total": total,
        "missing_files": missing,
        **_disk_meta(disk),
    }
    outcome = _dispatch(db, notifier, title, message, priority or "high", meta)
    if outcome == SENT:
        logger.info("Afternoon backup alert sent (%s/%s files)", completed, total)
    return outcome


def notify_backup_completed(
    db: Session,
    record: models.DailyBackup,
    *,
    clock: Clock | None = None,
    notifier: Notifier | None = None,
) -> str:
    """Announce a completed daily backup; never raises."""

    clock = clock or ZoneClock()
    notifier = notifier or Notifier(db, clock=clock)
    try:
        setting = catalog.get_notification_setting(db, catalog.COMPLETED_NOTIFICATION)
        if setting is not None and not setting.is_enabled:
            logger.warning("%s is disabled, skipping", catalog.COMPLETED_NOTIFICATION)
            return DISABLED
        user_name = record.user.display_name if record.user else "unknown user"
        title, template, priority = _phrase(setting, catalog.COMPLETED_NOTIFICATION)
        message = render_template(template, {"user": user_name, "disk": record.disk.display_name})
        meta = {
            "context": COMPLETED_CONTEXT,
            "date": record.date.isoformat(),
            "completed_by": user_name,
            **_disk_meta(record.disk),
        }
    except Exception:
        db.rollback()
        logger.exception("Failed to prepare the backup completed notification")
        return FAILED
    return _dispatch(db, notifier, title, message, priority, meta)
