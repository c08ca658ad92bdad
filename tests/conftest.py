"""
Shared pytest fixtures for the Back-Office Approval Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - drive: MagicMock Drive gateway swapped into app.extensions
    - work_program / event / finance / letter: pre-created records
"""

import itertools
from datetime import date
from unittest.mock import MagicMock

import pytest

from backoffice import create_app
from backoffice.models import db as _db

USER_ID = "user-1"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def drive(app):
    """Fake Drive gateway: every primitive succeeds, uploads get drive-id-N."""
    counter = itertools.count(1)
    gateway = MagicMock(name="DriveGateway")
    gateway.upload.side_effect = lambda *args, **kwargs: f"drive-id-{next(counter)}"
    gateway.rename.return_value = True
    gateway.set_public_access.return_value = True
    gateway.delete.return_value = True

    original = app.extensions["drive_gateway"]
    app.extensions["drive_gateway"] = gateway
    yield gateway
    app.extensions["drive_gateway"] = original


# ── Record fixtures ──────────────────────────────────────────────────────


def _add(record):
    _db.session.add(record)
    _db.session.commit()
    return record


@pytest.fixture()
def work_program():
    from backoffice.models.program import WorkProgram
    return _add(WorkProgram(
        name="Annual Outreach", department="Outreach", funds=1000.0,
        used_funds=250.0, remaining_funds=750.0, user_id=USER_ID,
    ))


@pytest.fixture()
def event(work_program):
    from backoffice.models.program import Event
    return _add(Event(name="Open Day", department="Outreach",
                      work_program_id=work_program.id, user_id=USER_ID))


@pytest.fixture()
def finance():
    from backoffice.models.finance import Finance
    return _add(Finance(
        name="Venue rental", amount=100.0, date=date(2024, 5, 1),
        type="EXPENSE", user_id=USER_ID,
    ))


@pytest.fixture()
def letter():
    from backoffice.models.administration import Letter
    return _add(Letter(
        number="001/OUT/2024", regarding="Venue request", date=date(2024, 5, 2),
        type="OUTGOING", created_by_id=USER_ID,
    ))
