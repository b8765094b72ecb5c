"""Shared fixtures for database and billing tests.

Every test gets a fresh DatabaseManager bound to a temp-file SQLite
database, plus a VenueBilling facade and small factories for the
catalogue entities the billing flows need.
"""
import os
import shutil
import tempfile
from datetime import datetime, timedelta

import pytest

from billing import VenueBilling
from database import DatabaseManager
from database.base_crud import BaseCRUD
from database.models import SessionRecord


@pytest.fixture
def temp_db():
    """Yield a fresh DatabaseManager bound to a temp SQLite database."""
    temp_dir = tempfile.mkdtemp(prefix="venue-tests-")
    db_path = os.path.join(temp_dir, "test.db")
    manager = DatabaseManager(
        database_url=f"sqlite:///{db_path}", write_timeout=2.0
    )
    manager.create_tables()

    try:
        yield manager
    finally:
        manager.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def db_conn(temp_db):
    """Yield a DatabaseConnection from the temp_db manager."""
    return temp_db.conn


@pytest.fixture
def base_crud(db_conn):
    """Yield a BaseCRUD instance."""
    return BaseCRUD(db_conn)


@pytest.fixture
def billing(temp_db):
    """Yield a VenueBilling facade over temp_db."""
    return VenueBilling(temp_db)


@pytest.fixture
def customer(temp_db):
    """A walk-in customer."""
    return temp_db.customers.add("Mona", "01000000000")


@pytest.fixture
def desk(temp_db):
    """A desk billed at 20.00/hour, capped at 50.00 per session."""
    return temp_db.resources.add(
        "Desk 1", rate_per_hour=2000, resource_type="desk", daily_cap=5000
    )


@pytest.fixture
def room(temp_db):
    """A meeting room billed at 60.00/hour with no cap."""
    return temp_db.resources.add("Room A", rate_per_hour=6000, resource_type="room")


@pytest.fixture
def coffee(temp_db):
    """Coffee at 15.00, ten in stock."""
    return temp_db.inventory_items.add(
        "Coffee", price=1500, quantity=10, category="beverage", min_stock=3
    )


@pytest.fixture
def sample_datetime():
    """Stable datetime value for deterministic tests."""
    return datetime(2024, 1, 28, 10, 0, 0)


@pytest.fixture
def backdate(temp_db):
    """Return a helper that moves a session's start time into the past."""
    crud = BaseCRUD(temp_db.conn)

    def _backdate(session_id, minutes, seconds=5):
        started_at = datetime.now() - timedelta(minutes=minutes, seconds=seconds)
        crud.update_by_id(SessionRecord, session_id, started_at=started_at)
        return started_at

    return _backdate


@pytest.fixture
def make_invoice(billing, backdate):
    """Return a helper that runs a session and returns its invoice ID."""
    def _make(customer_id, resource_id, minutes=60):
        session_id = billing.start_session(customer_id, resource_id)
        backdate(session_id, minutes)
        return billing.end_session(session_id)

    return _make
