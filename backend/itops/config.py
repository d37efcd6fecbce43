"""Environment-driven settings for the daily backup checklist."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# purpose: centralise timezone, rotation anchor, and reminder trigger times
# inputs: BACKUP_* environment variables
# outputs: immutable BackupSettings consumed by services, tasks, and routes
# status: active

DEFAULT_TIMEZONE = "America/Argentina/Buenos_Aires"
DEFAULT_REFERENCE_DATE = "2025-01-06"


@dataclass(frozen=True)
class BackupSettings:
    timezone: str
    reference_date: date
    morning_reminder_at: time
    afternoon_alert_at: time
    materialize_at: time

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _parse_time(raw: str, variable: str) -> time:
    try:
        hour, minute = raw.strip().split(":", 1)
        return time(int(hour), int(minute))
    except ValueError as exc:
        raise ValueError(f"{variable} must be HH:MM, got {raw!r}") from exc


def _parse_date(raw: str, variable: str) -> date:
    try:
        return date.fromisoformat(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{variable} must be an ISO date, got {raw!r}") from exc


def load_settings() -> BackupSettings:
    """Read backup settings from the environment."""

    timezone_name = os.getenv("BACKUP_TIMEZONE", DEFAULT_TIMEZONE)
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"BACKUP_TIMEZONE {timezone_name!r} is not a known timezone") from exc

    return BackupSettings(
        timezone=timezone_name,
        reference_date=_parse_date(
            os.getenv("BACKUP_ROTATION_REFERENCE_DATE", DEFAULT_REFERENCE_DATE),
            "BACKUP_ROTATION_REFERENCE_DATE",
        ),
        morning_reminder_at=_parse_time(
            os.getenv("BACKUP_MORNING_REMINDER_TIME", "09:00"),
            "BACKUP_MORNING_REMINDER_TIME",
        ),
        afternoon_alert_at=_parse_time(
            os.getenv("BACKUP_AFTERNOON_ALERT_TIME", "14:00"),
            "BACKUP_AFTERNOON_ALERT_TIME",
        ),
        materialize_at=_parse_time(
            os.getenv("BACKUP_MATERIALIZE_TIME", "02:00"),
            "BACKUP_MATERIALIZE_TIME",
        ),
    )


settings = load_settings()
