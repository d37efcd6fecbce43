"""In-app, email, and real-time notification dispatch."""

from __future__ import annotations

import logging
import os
import smtplib
from datetime import datetime
from email.message import EmailMessage
from typing import Any, Iterable, Literal
from uuid import UUID

from sqlalchemy.orm import Session

from . import models, pubsub
from .clock import Clock, ZoneClock, utc_now

logger = logging.getLogger(__name__)

EMAIL_OUTBOX: list[tuple[str, str, str]] = []

BROADCAST: Literal["broadcast"] = "broadcast"
PRIORITIES = ("low", "medium", "high", "urgent")


class NotificationDeliveryError(RuntimeError):
    """Raised when a notification cannot be delivered to anyone."""


def send_email(to_email: str, subject: str, message: str):
    if os.getenv("TESTING") == "1":
        EMAIL_OUTBOX.append((to_email, subject, message))
        return
    server = os.getenv("SMTP_SERVER")
    if not server:
        return
    from_addr = os.getenv("EMAIL_FROM", "noreply@example.com")
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_email
    msg.set_content(message)
    with smtplib.SMTP(server) as s:
        s.send_message(msg)


def resolve_priority(value: str | None, default: str = "medium") -> str:
    if not value:
        return default
    normalized = value.strip().lower()
    if normalized == "normal":
        return "medium"
    return normalized if normalized in PRIORITIES else default


class Notifier:
    """Fan a notification out to users, honouring per-channel preferences."""

    def __init__(
        self,
        db: Session,
        *,
        clock: Clock | None = None,
        pref_type: str = "daily_backup",
        category: str = "backup",
    ) -> None:
        self.db = db
        self.clock = clock or ZoneClock()
        self.pref_type = pref_type
        self.category = category

    def _recipients(self, recipients: Iterable[UUID] | str) -> list[models.User]:
        query = self.db.query(models.User).filter(models.User.is_active.is_(True))
        if recipients != BROADCAST:
            ids = list(recipients)
            if not ids:
                return []
            query = query.filter(models.User.id.in_(ids))
        return query.all()

    def _channel_enabled(self, user: models.User, channel: str) -> bool:
        pref = (
            self.db.query(models.NotificationPreference)
            .filter_by(user_id=user.id, pref_type=self.pref_type, channel=channel)
            .first()
        )
        return not pref or bool(pref.enabled)

    def send(
        self,
        recipients: Iterable[UUID] | str,
        title: str,
        message: str,
        priority: str = "medium",
        meta: dict[str, Any] | None = None,
    ) -> list[models.Notification]:
        """Persist one notification per recipient, email them, and publish a broadcast event."""

        users = self._recipients(recipients)
        if not users:
            raise NotificationDeliveryError("no active recipients for notification")

        meta = dict(meta or {})
        context = meta.get("context")
        created_at = utc_now(self.clock)
        priority = resolve_priority(priority)
        rows: list[models.Notification] = []
        for user in users:
            if self._channel_enabled(user, "in_app"):
                row = models.Notification(
                    user_id=user.id,
                    title=title,
                    message=message,
                    category=self.category,
                    context=context,
                    priority=priority,
                    meta=meta,
                    created_at=created_at,
                )
                self.db.add(row)
                rows.append(row)
            if user.email and self._channel_enabled(user, "email"):
                send_email(user.email, title, message)
        # logged even when every recipient muted in-app, so find_recent still sees the send
        self.db.add(
            models.NotificationDispatch(
                context=context,
                title=title,
                priority=priority,
                recipients=len(users),
                meta=meta,
                created_at=created_at,
            )
        )
        self.db.commit()

        try:
            pubsub.publish_broadcast_event(
                {
                    "type": "notification_created",
                    "data": {
                        "title": title,
                        "message": message,
                        "priority": priority,
                        "category": self.category,
                        "meta": meta,
                    },
                    "timestamp": created_at,
                }
            )
        except Exception:
            logger.warning("Failed to publish broadcast for %r", title, exc_info=True)
        return rows

    def find_recent(self, context: str, since: datetime) -> models.NotificationDispatch | None:
        """Return the newest send tagged ``context`` made at or after ``since``.

        Reads the dispatch log rather than the in-app rows, which depend on
        per-user channel preferences.
        """

        return (
            self.db.query(models.NotificationDispatch)
            .filter(
                models.NotificationDispatch.context == context,
                models.NotificationDispatch.created_at >= since,
            )
            .order_by(models.NotificationDispatch.created_at.desc())
            .first()
        )
