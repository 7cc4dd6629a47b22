"""
Concurrent purchases and verifications against a file-backed SQLite database.
Run: pytest tests/unit/test_vip_concurrency.py -v
"""
import threading
from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.errors import AlreadyProcessed, ConflictActiveSubscriptionExists
from app.db.base import Base
from app.db.session import _engine_kwargs, configure_sqlite_engine
from app.models.user import User
from app.models.vip import VIPSubscription
from app.services.notification_service import NotificationService
from app.services.qr_service import PromptPayQRService
from app.services.vip_service import VIPLifecycleService

WORKERS = 6


@pytest.fixture
def session_factory(tmp_path):
    url = f"sqlite:///{tmp_path / 'vip.db'}"
    engine = configure_sqlite_engine(create_engine(url, **_engine_kwargs(url)))
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def _run_concurrently(session_factory, action):
    """Run action(service, db) in WORKERS threads released together; return results or errors."""
    barrier = threading.Barrier(WORKERS)
    outcomes = []
    lock = threading.Lock()

    def worker():
        db = session_factory()
        service = VIPLifecycleService.build(
            db,
            qr_service=PromptPayQRService("0812345678"),
            notifier=Mock(spec=NotificationService),
        )
        try:
            barrier.wait(timeout=10)
            outcome = action(service, db)
        except Exception as e:
            outcome = e
        finally:
            db.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(WORKERS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    assert len(outcomes) == WORKERS
    return outcomes


def test_concurrent_purchases_create_one_subscription(session_factory, directory_for):
    seed = session_factory()
    directory = directory_for(seed)
    owner = directory.user()
    employee = directory.employee(user=owner)
    owner_id, employee_id = owner.id, employee.id
    seed.close()

    def purchase(service, db):
        user = db.get(User, owner_id)
        return service.purchase(user, tier="employee", entity_id=employee_id, duration=30, payment_method="cash")

    outcomes = _run_concurrently(session_factory, purchase)

    conflicts = [o for o in outcomes if isinstance(o, ConflictActiveSubscriptionExists)]
    others = [o for o in outcomes if isinstance(o, Exception) and o not in conflicts]
    assert others == []
    assert len(conflicts) == WORKERS - 1

    check = session_factory()
    try:
        live = (
            check.query(VIPSubscription)
            .filter(VIPSubscription.entity_id == employee_id, VIPSubscription.status == "pending_payment")
            .count()
        )
        assert live == 1
    finally:
        check.close()


def test_concurrent_verifications_apply_once(session_factory, directory_for):
    seed = session_factory()
    directory = directory_for(seed)
    owner = directory.user()
    employee = directory.employee(user=owner)
    admin = directory.admin()
    admin_id = admin.id
    service = VIPLifecycleService.build(
        seed, qr_service=PromptPayQRService("0812345678"), notifier=Mock(spec=NotificationService)
    )
    transaction_id = service.purchase(
        owner, tier="employee", entity_id=employee.id, duration=7, payment_method="cash"
    ).transaction.id
    seed.close()

    def verify(service, db):
        return service.verify_payment(db.get(User, admin_id), transaction_id)

    outcomes = _run_concurrently(session_factory, verify)

    errors = [o for o in outcomes if isinstance(o, Exception)]
    assert len(errors) == WORKERS - 1
    assert all(isinstance(e, AlreadyProcessed) for e in errors)
