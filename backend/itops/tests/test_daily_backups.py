from datetime import date, datetime

import pytest

from itops import models, schemas
from itops.clock import FixedClock
from itops.notify import Notifier
from itops.services import catalog
from itops.services.backup_errors import (
    InactiveReference,
    InvalidRequest,
    NoActiveDisksConfigured,
    RecordComponentNotFound,
)
from itops.services.completion import backfill_legacy_matrix
from itops.services.daily_backups import DailyBackupService, resolve_file_type_code
from .conftest import create_user, file_type, make_service, status


def _codes(record):
    return {entry.file_type.code: entry.status.code for entry in record.files}


def _add_record(db, day, *, disk_sequence=1, completed=False):
    disk = db.query(models.BackupDisk).filter_by(sequence=disk_sequence).one()
    record = models.DailyBackup(
        date=day,
        disk=disk,
        completed_at=datetime(2025, 1, 1, 12, 0) if completed else None,
    )
    db.add(record)
    db.commit()
    return record


def _completed_notices(db):
    return db.query(models.Notification).filter_by(context="daily-backup-completed").count()


def test_get_today_creates_record_on_rotated_disk(seeded, clock):
    record = make_service(seeded, clock).get_today()

    assert record.date == date(2025, 1, 6)
    assert record.disk.sequence == 1
    assert record.completed_at is None
    assert _codes(record) == {
        "BACKUP_ZIP": "PENDING",
        "BACKUP_ADJUNTOS_ZIP": "PENDING",
        "CALIPSO_BAK": "PENDING",
        "PRESUPUESTACION_BAK": "PENDING",
    }


def test_get_today_follows_rotation_for_later_days(seeded):
    later = FixedClock(datetime(2025, 1, 8, 9, 30))
    record = make_service(seeded, later).get_today()
    assert record.date == date(2025, 1, 8)
    assert record.disk.sequence == 3


def test_today_uses_local_timezone(seeded):
    # 01:30 UTC on the 7th is still the 6th in Buenos Aires
    late_evening = FixedClock(datetime.fromisoformat("2025-01-07T01:30:00+00:00"))
    record = make_service(seeded, late_evening).get_today()
    assert record.date == date(2025, 1, 6)


def test_disk_assignment_is_sticky(seeded, clock):
    service = make_service(seeded, clock)
    first = service.get_today()
    service.create_or_update_today(schemas.DailyBackupUpdate(disk_number=3), None)

    again = service.get_today()
    assert again.id == first.id
    assert again.disk.sequence == 3

    reassigned = seeded.query(models.BackupDisk).filter_by(sequence=3).one()
    catalog.archive_disk(seeded, reassigned.id)
    seeded.commit()
    assert service.get_today().disk.sequence == 3


def test_repeated_get_today_does_not_duplicate(seeded, clock):
    service = make_service(seeded, clock)
    first = service.get_today()
    second = service.get_today()
    assert first.id == second.id
    assert len(second.files) == 4
    assert seeded.query(models.DailyBackup).count() == 1


def test_sync_on_read_adds_only_missing_entries(seeded, clock):
    service = make_service(seeded, clock)
    service.get_today()
    zip_type = file_type(seeded, "BACKUP_ZIP")
    service.update_file_status(zip_type.id, status(seeded, "COMPLETED").id, None)

    catalog.create_file_type(
        seeded, schemas.BackupFileTypeCreate(code="logs_zip", name="Logs.zip", sequence=5)
    )
    seeded.commit()

    record = service.get_today()
    codes = _codes(record)
    assert len(codes) == 5
    assert codes["LOGS_ZIP"] == "PENDING"
    assert codes["BACKUP_ZIP"] == "COMPLETED"


def test_sync_on_read_reopens_a_completed_record(seeded, clock):
    service = make_service(seeded, clock)
    record = service.get_today()
    done = status(seeded, "COMPLETED").id
    patch = schemas.DailyBackupUpdate(
        file_statuses=[
            schemas.FileStatusUpdate(file_type_id=entry.file_type_id, status_id=done)
            for entry in record.files
        ]
    )
    assert service.create_or_update_today(patch, None).completed_at is not None

    catalog.create_file_type(seeded, schemas.BackupFileTypeCreate(code="EXTRA", name="Extra", sequence=9))
    seeded.commit()
    assert service.get_today().completed_at is None


def test_completion_edge_with_two_files(db, clock):
    db.add(models.BackupDisk(name="Disk A", sequence=1))
    db.add(models.BackupStatus(code="PENDING", label="Pending", sort_order=0, is_final=False))
    db.add(models.BackupStatus(code="DONE", label="Done", sort_order=1, is_final=True))
    db.add(models.BackupFileType(code="ZIP", name="Zip", sequence=1))
    db.add(models.BackupFileType(code="DUMP", name="Dump", sequence=2))
    db.commit()
    create_user(db, "operator")
    service = make_service(db, clock)

    record = service.get_today()
    assert set(_codes(record).values()) == {"PENDING"}

    record = service.toggle_file("zip", None)
    assert _codes(record) == {"ZIP": "DONE", "DUMP": "PENDING"}
    assert record.completed_at is None
    assert _completed_notices(db) == 0

    record = service.toggle_file("DUMP", None)
    assert record.completed_at == datetime(2025, 1, 6, 13, 0)
    assert _completed_notices(db) == 1

    # cycling back to the first status reopens the record without a notice
    record = service.toggle_file("ZIP", None)
    assert _codes(record)["ZIP"] == "PENDING"
    assert record.completed_at is None
    assert _completed_notices(db) == 1

    record = service.toggle_file("ZIP", None)
    assert record.completed_at is not None
    assert _completed_notices(db) == 2


def test_toggle_cycles_through_statuses_and_wraps(seeded, clock):
    service = make_service(seeded, clock)
    seen = [_codes(service.toggle_file("backupZip", None))["BACKUP_ZIP"] for _ in range(3)]
    assert seen == ["IN_PROGRESS", "COMPLETED", "PENDING"]


def test_toggle_by_id(seeded, clock):
    service = make_service(seeded, clock)
    calipso = file_type(seeded, "CALIPSO_BAK")
    record = service.toggle_file_by_id(calipso.id, None)
    assert _codes(record)["CALIPSO_BAK"] == "IN_PROGRESS"


def test_legacy_aliases_resolve_to_codes():
    assert resolve_file_type_code("backupZip") == "BACKUP_ZIP"
    assert resolve_file_type_code("backupAdjuntosZip") == "BACKUP_ADJUNTOS_ZIP"
    assert resolve_file_type_code("calipsoBak") == "CALIPSO_BAK"
    assert resolve_file_type_code("presupuestacionBak") == "PRESUPUESTACION_BAK"
    assert resolve_file_type_code("custom_file") == "CUSTOM_FILE"


def test_toggle_unknown_and_inactive_file_types(seeded, clock):
    service = make_service(seeded, clock)
    with pytest.raises(RecordComponentNotFound):
        service.toggle_file("missing", None)

    catalog.archive_file_type(seeded, file_type(seeded, "CALIPSO_BAK").id)
    seeded.commit()
    with pytest.raises(InactiveReference):
        service.toggle_file("calipsoBak", None)


def test_file_type_archived_mid_day_stays_writable(seeded, clock):
    create_user(seeded, "operator")
    service = make_service(seeded, clock)
    service.get_today()
    presupuestacion = file_type(seeded, "PRESUPUESTACION_BAK")
    catalog.archive_file_type(seeded, presupuestacion.id)
    seeded.commit()

    record = service.toggle_all_files(None)
    assert record.completed_at is not None
    assert _codes(record)["PRESUPUESTACION_BAK"] == "COMPLETED"
    assert _completed_notices(seeded) == 1

    record = service.update_file_status(presupuestacion.id, status(seeded, "PENDING").id, None)
    assert record.completed_at is None
    record = service.toggle_file_by_id(presupuestacion.id, None)
    assert _codes(record)["PRESUPUESTACION_BAK"] == "IN_PROGRESS"
    record = service.toggle_file("presupuestacionBak", None)
    assert _codes(record)["PRESUPUESTACION_BAK"] == "COMPLETED"
    assert service.get_today().completed_at is not None


def test_archived_file_type_without_entry_is_rejected(seeded, clock):
    service = make_service(seeded, clock)
    service.get_today()
    extra = catalog.create_file_type(
        seeded, schemas.BackupFileTypeCreate(code="EXTRA", name="Extra", sequence=9, is_active=False)
    )
    seeded.commit()

    with pytest.raises(InactiveReference):
        service.toggle_file_by_id(extra.id, None)
    with pytest.raises(InactiveReference):
        service.update_file_status(extra.id, status(seeded, "COMPLETED").id, None)
    patch = schemas.DailyBackupUpdate(
        file_statuses=[schemas.FileStatusUpdate(file_type_id=extra.id, status_id=status(seeded, "COMPLETED").id)]
    )
    with pytest.raises(InactiveReference):
        service.create_or_update_today(patch, None)
    assert "EXTRA" not in _codes(service.get_today())


def test_completion_found_on_read_is_announced(seeded, clock):
    user = create_user(seeded, "operator")
    service = make_service(seeded, clock)
    record = service.get_today()
    in_progress = status(seeded, "IN_PROGRESS")
    patch = schemas.DailyBackupUpdate(
        file_statuses=[
            schemas.FileStatusUpdate(file_type_id=entry.file_type_id, status_id=in_progress.id)
            for entry in record.files
        ]
    )
    assert service.create_or_update_today(patch, user.id).completed_at is None

    catalog.update_status(seeded, in_progress.id, schemas.BackupStatusUpdate(is_final=True))
    seeded.commit()

    record = service.get_today()
    assert record.completed_at is not None
    assert record.completed_by == user.id
    assert _completed_notices(seeded) == 1

    # later reads see no new edge
    service.get_today()
    assert _completed_notices(seeded) == 1


def test_update_file_status_rejects_bad_statuses(seeded, clock):
    service = make_service(seeded, clock)
    zip_type = file_type(seeded, "BACKUP_ZIP")
    in_progress = status(seeded, "IN_PROGRESS")
    catalog.archive_status(seeded, in_progress.id)
    seeded.commit()

    with pytest.raises(InactiveReference):
        service.update_file_status(zip_type.id, in_progress.id, None)
    with pytest.raises(RecordComponentNotFound):
        service.update_file_status(zip_type.id, file_type(seeded, "CALIPSO_BAK").id, None)

    assert _codes(service.get_today())["BACKUP_ZIP"] == "PENDING"


def test_write_ignores_requested_date_and_records_actor(seeded, clock):
    user = create_user(seeded, "alice")
    service = make_service(seeded, clock)
    patch = schemas.DailyBackupUpdate.model_validate({"date": "2024-12-01", "notes": "tape swapped"})

    record = service.create_or_update_today(patch, user.id)
    assert record.date == date(2025, 1, 6)
    assert record.notes == "tape swapped"
    assert record.completed_by == user.id
    assert seeded.query(models.DailyBackup).filter_by(date=date(2024, 12, 1)).count() == 0


def test_failed_write_leaves_record_untouched(seeded, clock):
    service = make_service(seeded, clock)
    service.get_today()
    zip_type = file_type(seeded, "BACKUP_ZIP")
    patch = schemas.DailyBackupUpdate(
        notes="should not persist",
        file_statuses=[
            schemas.FileStatusUpdate(file_type_id=zip_type.id, status_id=status(seeded, "COMPLETED").id),
            schemas.FileStatusUpdate(file_type_id=zip_type.id, status_id=zip_type.id),
        ],
    )
    with pytest.raises(RecordComponentNotFound):
        service.create_or_update_today(patch, None)

    record = seeded.query(models.DailyBackup).one()
    assert record.notes is None
    assert _codes(record)["BACKUP_ZIP"] == "PENDING"


class ExplodingNotifier(Notifier):
    def send(self, *args, **kwargs):
        raise RuntimeError("transport down")


def test_notifier_failure_does_not_undo_completion(seeded, clock):
    service = DailyBackupService(seeded, clock=clock, notifier=ExplodingNotifier(seeded, clock=clock))
    record = service.get_today()
    done = status(seeded, "COMPLETED").id
    patch = schemas.DailyBackupUpdate(
        file_statuses=[
            schemas.FileStatusUpdate(file_type_id=entry.file_type_id, status_id=done)
            for entry in record.files
        ]
    )
    record = service.create_or_update_today(patch, None)
    assert record.completed_at is not None
    assert seeded.query(models.DailyBackup).filter(models.DailyBackup.completed_at.isnot(None)).count() == 1


def test_no_active_disks(seeded, clock):
    for disk in seeded.query(models.BackupDisk).all():
        disk.is_active = False
    seeded.commit()
    with pytest.raises(NoActiveDisksConfigured):
        make_service(seeded, clock).get_today()


def test_history_paging(seeded, clock):
    for day in (date(2025, 1, 3), date(2025, 1, 4), date(2025, 1, 5)):
        _add_record(seeded, day)
    service = make_service(seeded, clock)

    page = service.get_history(page=1, limit=2)
    assert page["total"] == 3
    assert page["pages"] == 2
    assert [r.date for r in page["items"]] == [date(2025, 1, 5), date(2025, 1, 4)]
    assert [r.date for r in service.get_history(page=2, limit=2)["items"]] == [date(2025, 1, 3)]

    for page_number, limit in ((0, 10), (1, 0), (1, 201)):
        with pytest.raises(InvalidRequest):
            service.get_history(page=page_number, limit=limit)


def test_stats_split_by_month(seeded):
    _add_record(seeded, date(2024, 12, 31))
    _add_record(seeded, date(2025, 1, 6), completed=True)
    _add_record(seeded, date(2025, 1, 20))
    _add_record(seeded, date(2025, 2, 3), completed=True)

    stats = make_service(seeded, FixedClock(datetime(2025, 2, 10, 12, 0))).get_stats()
    assert (stats.total, stats.completed, stats.pending) == (4, 2, 2)
    assert stats.this_month.model_dump() == {"total": 1, "completed": 1, "pending": 0}
    assert stats.last_month.model_dump() == {"total": 2, "completed": 1, "pending": 1}


def test_get_by_month(seeded, clock):
    _add_record(seeded, date(2024, 12, 31))
    _add_record(seeded, date(2025, 1, 2))
    _add_record(seeded, date(2025, 1, 4))
    service = make_service(seeded, clock)

    assert [r.date for r in service.get_by_month(2025, 1)] == [date(2025, 1, 4), date(2025, 1, 2)]
    with pytest.raises(InvalidRequest):
        service.get_by_month(2025, 13)


def test_legacy_record_is_migrated_on_read(seeded, clock):
    done = status(seeded, "COMPLETED")
    disk = seeded.query(models.BackupDisk).filter_by(sequence=2).one()
    seeded.add(
        models.DailyBackup(
            date=date(2025, 1, 6),
            disk=disk,
            legacy_backup_zip_status_id=done.id,
            legacy_backup_adjuntos_status_id=done.id,
            legacy_calipso_status_id=done.id,
            legacy_presupuestacion_status_id=done.id,
        )
    )
    seeded.commit()

    record = make_service(seeded, clock).get_today()
    assert record.disk.sequence == 2
    assert set(_codes(record).values()) == {"COMPLETED"}
    assert record.completed_at is not None


def test_backfill_legacy_matrix(seeded):
    pending = status(seeded, "PENDING")
    done = status(seeded, "COMPLETED")
    disk = seeded.query(models.BackupDisk).filter_by(sequence=1).one()
    seeded.add(
        models.DailyBackup(
            date=date(2024, 11, 2),
            disk=disk,
            legacy_backup_zip_status_id=done.id,
            legacy_calipso_status_id=pending.id,
        )
    )
    _add_record(seeded, date(2024, 11, 3))
    seeded.commit()

    assert backfill_legacy_matrix(seeded) == {"records": 1, "entries": 2}
    seeded.commit()
    migrated = seeded.query(models.DailyBackup).filter_by(date=date(2024, 11, 2)).one()
    assert _codes(migrated) == {"BACKUP_ZIP": "COMPLETED", "CALIPSO_BAK": "PENDING"}
    assert backfill_legacy_matrix(seeded) == {"records": 0, "entries": 0}
