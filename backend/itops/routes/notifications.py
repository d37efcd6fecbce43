from uuid import UUID
from datetime import datetime, timedelta
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..notify import PRIORITIES
from .. import models, schemas

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

CHANNELS = ("in_app", "email")


@router.get("", response_model=list[schemas.NotificationOut])
def list_notifications(
    is_read: Optional[bool] = Query(None, description="Filter by read status"),
    category: Optional[str] = Query(None, description="Filter by category"),
    context: Optional[str] = Query(None, description="Filter by context, e.g. daily-backup-morning"),
    date_from: Optional[str] = Query(None, description="Filter from date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="Filter to date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    query = db.query(models.Notification).filter(models.Notification.user_id == user.id)

    if is_read is not None:
        query = query.filter(models.Notification.is_read == is_read)

    if category:
        query = query.filter(models.Notification.category == category)

    if context:
        query = query.filter(models.Notification.context == context)

    if date_from:
        try:
            from_date = datetime.strptime(date_from, "%Y-%m-%d")
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid date_from format") from exc
        query = query.filter(models.Notification.created_at >= from_date)

    if date_to:
        try:
            to_date = datetime.strptime(date_to, "%Y-%m-%d") + timedelta(days=1)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid date_to format") from exc
        query = query.filter(models.Notification.created_at < to_date)

    return query.order_by(models.Notification.created_at.desc()).all()


@router.post("/{notification_id}/read", response_model=schemas.NotificationOut)
def mark_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    notif = (
        db.query(models.Notification)
        .filter_by(id=notification_id, user_id=user.id)
        .first()
    )
    if not notif:
        raise HTTPException(status_code=404, detail="Notification not found")
    notif.is_read = True
    db.commit()
    db.refresh(notif)
    return notif


@router.post("/mark-all-read")
def mark_all_read(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    """Mark all unread notifications as read"""
    updated = (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == user.id,
            models.Notification.is_read.is_(False),
        )
        .update({models.Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return {"updated": updated}


@router.get("/stats")
def get_notification_stats(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    notifications = db.query(models.Notification).filter(
        models.Notification.user_id == user.id
    ).all()

    stats = {
        "total": len(notifications),
        "unread": len([n for n in notifications if not n.is_read]),
        "by_priority": {priority: 0 for priority in PRIORITIES},
    }
    for notification in notifications:
        if notification.priority in stats["by_priority"]:
            stats["by_priority"][notification.priority] += 1
    return stats


@router.get("/preferences", response_model=list[schemas.NotificationPreferenceOut])
def list_preferences(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return db.query(models.NotificationPreference).filter_by(user_id=user.id).all()


@router.put(
    "/preferences/{pref_type}/{channel}",
    response_model=schemas.NotificationPreferenceOut,
)
def set_preference(
    pref_type: str,
    channel: str,
    pref: schemas.NotificationPreferenceUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if channel not in CHANNELS:
        raise HTTPException(status_code=400, detail=f"Unknown channel {channel!r}")
    obj = (
        db.query(models.NotificationPreference)
        .filter_by(user_id=user.id, pref_type=pref_type, channel=channel)
        .first()
    )
    if obj:
        obj.enabled = pref.enabled
    else:
        obj = models.NotificationPreference(
            user_id=user.id,
            pref_type=pref_type,
            channel=channel,
            enabled=pref.enabled,
        )
        db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj
