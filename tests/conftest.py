"""
Shared fixtures for the slot service tests.

Provides:
- app / client backed by a per-test SQLite file
- a frozen reference clock installed on the app
- a recording notification transport that can fail or hang on demand
- small factories for users and advertisements
"""

import sys
import threading
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

# Make the top-level modules (app, config, models, ...) importable
root_dir = Path(__file__).parent.parent
if str(root_dir) not in sys.path:
    sys.path.insert(0, str(root_dir))

import pytest

from config import Config
from utils.clock import FrozenClock

COLOMBO = ZoneInfo("Asia/Colombo")
T0 = datetime(2026, 1, 10, 9, 0, tzinfo=COLOMBO)


class RecordingTransport:
    """Stands in for SMTP. Records every send in call order."""

    def __init__(self):
        self.sent = []
        self.fail_for = set()
        self.raise_for = set()
        self.hang_for = set()
        self.release_hung = threading.Event()
        self._lock = threading.Lock()

    def send(self, to_email, subject, body, html=None):
        with self._lock:
            self.sent.append((to_email, subject))
        if to_email in self.hang_for:
            self.release_hung.wait(5)
            return True, None
        if to_email in self.raise_for:
            raise RuntimeError(f"transport exploded for {to_email}")
        if to_email in self.fail_for:
            return False, "mailbox unavailable"
        return True, None

    @property
    def recipients(self):
        return [to for to, _subject in self.sent]

    def recipients_for(self, subject):
        return [to for to, s in self.sent if s == subject]


@pytest.fixture
def test_config(tmp_path):
    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "slots-test.db")
        CREATE_TABLES_ON_STARTUP = True
        SCHEDULER_ENABLED = False
        RECONCILE_STARTUP_DELAY_SECONDS = -1
        SLOT_NOTIFY_SUB_BATCH_DELAY_SECONDS = 0.0
        SLOT_NOTIFY_SEND_TIMEOUT_SECONDS = 5.0
        LOG_LEVEL = "WARNING"

    return TestConfig


@pytest.fixture
def clock():
    return FrozenClock(T0, "Asia/Colombo")


@pytest.fixture
def transport():
    t = RecordingTransport()
    yield t
    # unblock any worker a timeout test left behind
    t.release_hung.set()


@pytest.fixture
def app(test_config, clock, transport):
    """Create test Flask application with an app context pushed for the test body."""
    from app import create_app
    from models import db

    app = create_app(test_config)
    app.extensions["reference_clock"] = clock
    app.extensions["notification_transport"] = transport

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    from models import db
    from models.user import Role, User

    counter = {"n": 0}

    def _make(email=None, full_name="Test User", roles=()):
        counter["n"] += 1
        user = User(email=email or f"user{counter['n']}@example.com", full_name=full_name)
        for name in roles:
            user.roles.append(Role.query.filter_by(name=name).first())
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_ad(app):
    from services import advertisements

    def _make(user, slot_type="HOME_BANNER", plan="hourly", hours=1, days=None, category="property"):
        return advertisements.create_advertisement(
            user_id=user.id,
            category=category,
            slot_type=slot_type,
            selected_plan=plan,
            plan_hours=hours,
            plan_days=days,
        )

    return _make
