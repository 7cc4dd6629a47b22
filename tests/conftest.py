"""
Shared fixtures: an in-memory SQLite database with the VIP schema, a
controllable clock and helpers to seed directory rows.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("NOTIFICATION_WEBHOOK_URL", None)
os.environ.pop("PROMPTPAY_MERCHANT_ID", None)

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import configure_sqlite_engine
from app.models.directory import CurrentEmployment, Employee, Establishment, EstablishmentOwner
from app.models.user import ROLE_ADMIN, ROLE_USER, User
from app.services.notification_service import NotificationService
from app.services.qr_service import PromptPayQRService
from app.services.vip_service import VIPLifecycleService

PROMPTPAY_PHONE = "0812345678"


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class Directory:
    """Seeds users, profiles, establishments and their relationships."""

    def __init__(self, db):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def user(self, role: str = ROLE_USER, is_active: bool = True) -> User:
        user_id = str(uuid4())
        return self._save(
            User(id=user_id, email=f"{user_id}@example.com", pseudonym="tester", role=role, is_active=is_active)
        )

    def admin(self) -> User:
        return self.user(role=ROLE_ADMIN)

    def employee(self, user: User = None) -> Employee:
        return self._save(Employee(id=str(uuid4()), name="Profile", user_id=user.id if user else None))

    def establishment(self) -> Establishment:
        return self._save(Establishment(id=str(uuid4()), name="Venue"))

    def owner(self, user: User, establishment: Establishment, permissions=None, owner_role="owner"):
        return self._save(
            EstablishmentOwner(
                id=str(uuid4()),
                user_id=user.id,
                establishment_id=establishment.id,
                owner_role=owner_role,
                permissions=permissions,
            )
        )

    def employ(self, employee: Employee, establishment: Establishment, is_current: bool = True):
        return self._save(
            CurrentEmployment(
                id=str(uuid4()),
                employee_id=employee.id,
                establishment_id=establishment.id,
                is_current=is_current,
            )
        )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_engine(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def directory(db):
    return Directory(db)


@pytest.fixture
def directory_for():
    """Seeding helper for sessions the test opens itself."""
    return Directory


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def qr_service():
    return PromptPayQRService(merchant_id=PROMPTPAY_PHONE)


@pytest.fixture
def notifier():
    return Mock(spec=NotificationService)


@pytest.fixture
def service(db, qr_service, notifier, clock):
    return VIPLifecycleService.build(db, qr_service=qr_service, notifier=notifier, clock=clock)
