from datetime import datetime

from itops import models, schemas
from itops.clock import FixedClock
from itops.notify import EMAIL_OUTBOX
from itops.services import backup_reminders, catalog
from itops.services.backup_reminders import render_template
from .conftest import create_user, make_service, status


def _notifications(db, context):
    return (
        db.query(models.Notification)
        .filter_by(context=context)
        .order_by(models.Notification.created_at.asc())
        .all()
    )


def test_morning_reminder_is_sent_once_per_day(seeded, clock):
    create_user(seeded, "operator")

    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "sent"
    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "duplicate"

    sent = _notifications(seeded, "daily-backup-morning")
    assert len(sent) == 1
    assert sent[0].title == "Reminder: daily backup"
    assert sent[0].message == "Time to run the daily backup on Disk 1."
    assert sent[0].meta["disk_sequence"] == 1
    # reminders never create the day's record
    assert seeded.query(models.DailyBackup).count() == 0


def test_morning_reminder_fires_again_the_next_day(seeded, clock):
    create_user(seeded, "operator")
    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "sent"

    tomorrow = FixedClock(datetime(2025, 1, 7, 9, 0))
    assert backup_reminders.send_morning_reminder(seeded, clock=tomorrow) == "sent"
    messages = [n.message for n in _notifications(seeded, "daily-backup-morning")]
    assert messages == [
        "Time to run the daily backup on Disk 1.",
        "Time to run the daily backup on Disk 2.",
    ]


def test_morning_reminder_respects_disabled_setting(seeded, clock):
    create_user(seeded, "operator")
    catalog.update_notification_setting(
        seeded, catalog.MORNING_REMINDER, schemas.NotificationSettingUpdate(is_enabled=False)
    )
    seeded.commit()

    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "disabled"
    assert seeded.query(models.Notification).count() == 0


def test_morning_reminder_skips_unscheduled_weekdays(seeded, clock):
    create_user(seeded, "operator")
    catalog.update_notification_setting(
        seeded, catalog.MORNING_REMINDER, schemas.NotificationSettingUpdate(days_of_week="1,2,3")
    )
    seeded.commit()

    # 2025-01-06 is a Monday
    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "skipped_day"


def test_reminders_skip_completed_backup(seeded, clock):
    create_user(seeded, "operator")
    service = make_service(seeded, clock)
    record = service.get_today()
    done = status(seeded, "COMPLETED").id
    service.create_or_update_today(
        schemas.DailyBackupUpdate(
            file_statuses=[
                schemas.FileStatusUpdate(file_type_id=entry.file_type_id, status_id=done)
                for entry in record.files
            ]
        ),
        None,
    )

    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "completed"
    assert backup_reminders.send_afternoon_alert(seeded, clock=clock) == "completed"
    assert _notifications(seeded, "daily-backup-completed")


def test_afternoon_alert_reports_progress(seeded, clock):
    create_user(seeded, "operator")
    service = make_service(seeded, clock)
    service.toggle_file("backupZip", None)
    service.toggle_file("backupZip", None)
    afternoon = FixedClock(datetime(2025, 1, 6, 14, 0))

    assert backup_reminders.send_afternoon_alert(seeded, clock=afternoon) == "sent"
    alert = _notifications(seeded, "daily-backup-afternoon")[0]
    assert alert.priority == "high"
    assert alert.title == "URGENT: daily backup pending"
    assert "(1/4 files done)" in alert.message
    assert alert.message.endswith("Missing: BackupAdjuntos.zip, Calipso.bak, Presupuestacion.bak.")
    assert alert.meta["missing_files"] == ["BackupAdjuntos.zip", "Calipso.bak", "Presupuestacion.bak"]

    assert backup_reminders.send_afternoon_alert(seeded, clock=afternoon) == "duplicate"


def test_morning_and_afternoon_are_tracked_separately(seeded, clock):
    create_user(seeded, "operator")
    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "sent"
    assert backup_reminders.send_afternoon_alert(seeded, clock=clock) == "sent"


def test_afternoon_alert_without_settings_or_record(db, clock):
    create_user(db, "operator")

    assert backup_reminders.send_afternoon_alert(db, clock=clock) == "sent"
    alert = _notifications(db, "daily-backup-afternoon")[0]
    assert alert.message == "The daily backup has not been started yet."
    assert alert.priority == "high"


def test_reminder_failure_is_swallowed(seeded, clock):
    # no users means nobody to deliver to
    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "failed"
    assert seeded.query(models.Notification).count() == 0


def test_reminders_use_email_channel_and_preferences(seeded, clock):
    create_user(seeded, "mailer", email="mailer@example.com")
    muted = create_user(seeded, "muted", email="muted@example.com")
    seeded.add(
        models.NotificationPreference(
            user_id=muted.id, pref_type="daily_backup", channel="email", enabled=False
        )
    )
    seeded.commit()

    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "sent"
    assert [to for to, _, _ in EMAIL_OUTBOX] == ["mailer@example.com"]
    assert len(_notifications(seeded, "daily-backup-morning")) == 2


def test_morning_reminder_is_sent_once_when_in_app_is_muted(seeded, clock):
    user = create_user(seeded, "mailer", email="mailer@example.com")
    seeded.add(
        models.NotificationPreference(
            user_id=user.id, pref_type="daily_backup", channel="in_app", enabled=False
        )
    )
    seeded.commit()

    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "sent"
    assert backup_reminders.send_morning_reminder(seeded, clock=clock) == "duplicate"

    assert len(EMAIL_OUTBOX) == 1
    assert _notifications(seeded, "daily-backup-morning") == []
    assert seeded.query(models.NotificationDispatch).filter_by(context="daily-backup-morning").count() == 1


def test_completion_notice_uses_template(seeded, clock):
    user = create_user(seeded, "bob")
    user.full_name = "Bob Operator"
    seeded.commit()
    service = make_service(seeded, clock)
    record = service.get_today()
    done = status(seeded, "COMPLETED").id
    service.create_or_update_today(
        schemas.DailyBackupUpdate(
            file_statuses=[
                schemas.FileStatusUpdate(file_type_id=entry.file_type_id, status_id=done)
                for entry in record.files
            ]
        ),
        user.id,
    )

    notice = _notifications(seeded, "daily-backup-completed")[0]
    assert notice.message == "The daily backup was completed by Bob Operator on Disk 1."
    assert notice.meta["completed_by"] == "Bob Operator"


def test_render_template_keeps_unknown_placeholders():
    rendered = render_template("{{disk}} / {{ user }} / {{other}}", {"disk": "Disk 2", "user": "ann"})
    assert rendered == "Disk 2 / ann / {{other}}"
