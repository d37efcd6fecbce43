import os

from celery import Celery
from celery.schedules import crontab
from celery.utils.log import get_task_logger

from .clock import ZoneClock
from .config import settings
from .database import session_scope
from .services import backup_reminders
from .services.backup_errors import DailyBackupError
from .services.daily_backups import DailyBackupService

# purpose: wall-clock triggers for the daily backup checklist
# inputs: BACKUP_* trigger times, CELERY_BROKER_URL
# outputs: reminder outcome strings, nightly materialized record dates
# status: active

_logger = get_task_logger(__name__)

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "memory://")
celery_app = Celery("itops", broker=CELERY_BROKER_URL)
celery_app.conf.task_always_eager = (
    CELERY_BROKER_URL == "memory://" or os.getenv("TESTING") == "1"
)
celery_app.conf.timezone = settings.timezone
celery_app.conf.enable_utc = False


def _at(moment):
    return crontab(hour=moment.hour, minute=moment.minute)


celery_app.conf.beat_schedule = {
    "daily-backup-materialize": {
        "task": "itops.tasks.materialize_today_backup",
        "schedule": _at(settings.materialize_at),
    },
    "daily-backup-morning-reminder": {
        "task": "itops.tasks.send_morning_backup_reminder",
        "schedule": _at(settings.morning_reminder_at),
    },
    "daily-backup-afternoon-alert": {
        "task": "itops.tasks.send_afternoon_backup_alert",
        "schedule": _at(settings.afternoon_alert_at),
    },
}


@celery_app.task(name="itops.tasks.send_morning_backup_reminder")
def send_morning_backup_reminder() -> str:
    with session_scope() as db:
        outcome = backup_reminders.send_morning_reminder(db, clock=ZoneClock(), settings=settings)
    _logger.info("morning backup reminder: %s", outcome)
    return outcome


@celery_app.task(name="itops.tasks.send_afternoon_backup_alert")
def send_afternoon_backup_alert() -> str:
    with session_scope() as db:
        outcome = backup_reminders.send_afternoon_alert(db, clock=ZoneClock(), settings=settings)
    _logger.info("afternoon backup alert: %s", outcome)
    return outcome


@celery_app.task(name="itops.tasks.materialize_today_backup")
def materialize_today_backup() -> str | None:
    """Create today's record ahead of the first operator visit."""

    try:
        with session_scope() as db:
            record = DailyBackupService(db, clock=ZoneClock(), settings=settings).ensure_today_materialized()
            day = record.date.isoformat()
    except DailyBackupError:
        _logger.warning("daily backup catalog is not configured, nothing materialized", exc_info=True)
        return None
    _logger.info("daily backup materialized for %s", day)
    return day
