import os
os.environ["TESTING"] = "1"
os.environ.setdefault("BACKUP_TIMEZONE", "America/Argentina/Buenos_Aires")
os.environ.setdefault("BACKUP_ROTATION_REFERENCE_DATE", "2025-01-06")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path
from datetime import datetime
import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from itops.main import app
from itops.database import Base, get_db
from itops.clock import FixedClock, get_clock
from itops.notify import EMAIL_OUTBOX, Notifier
from itops.services import catalog
from itops.services.daily_backups import DailyBackupService
from itops import models

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)

# 2025-01-06 is the rotation anchor, so Disk 1 is assigned on this day
DEFAULT_NOW = datetime(2025, 1, 6, 10, 0)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def clean_tables():
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    EMAIL_OUTBOX.clear()
    yield


@pytest.fixture
def clock():
    fixed = FixedClock(DEFAULT_NOW)
    app.dependency_overrides[get_clock] = lambda: fixed
    yield fixed
    app.dependency_overrides.pop(get_clock, None)


def set_clock(moment: datetime) -> FixedClock:
    """Move the API's clock to ``moment`` (local time) and return it."""

    fixed = FixedClock(moment)
    app.dependency_overrides[get_clock] = lambda: fixed
    return fixed


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded(db):
    catalog.seed_defaults(db)
    db.commit()
    return db


@pytest.fixture
def client(clock):
    with TestClient(app) as c:
        yield c


def make_service(db, clock) -> DailyBackupService:
    return DailyBackupService(db, clock=clock, notifier=Notifier(db, clock=clock))


def create_user(db, username: str | None = None, *, is_admin: bool = False, email: str | None = None) -> models.User:
    user = models.User(
        username=username or f"user-{uuid.uuid4().hex[:8]}",
        email=email,
        api_token=uuid.uuid4().hex,
        is_admin=is_admin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: models.User) -> dict[str, str]:
    return {"Authorization": f"Bearer {user.api_token}"}


def file_type(db, code: str) -> models.BackupFileType:
    return db.query(models.BackupFileType).filter_by(code=code).one()


def status(db, code: str) -> models.BackupStatus:
    return db.query(models.BackupStatus).filter_by(code=code).one()
