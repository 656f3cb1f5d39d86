"""
Pytest fixtures for stockledger tests.

The database is a temporary SQLite file rather than :memory: so worker
threads in the concurrency suite get their own connections and contend for
real locks.
"""

import pytest
from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Location, Vendor


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    db_path = tmp_path_factory.mktemp("ledger") / "ledger.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_LOCK_TIMEOUT_SECONDS': 30,
        'LEDGER_RETRY_ATTEMPTS': 12,
        'LEDGER_RETRY_BACKOFF': 0.005,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def vendor(db_session):
    v = Vendor(name="Green Leaf Supply")
    db_session.add(v)
    db_session.commit()
    return v


@pytest.fixture(scope='function')
def primary_location(db_session, vendor):
    loc = Location(vendor_id=vendor.id, name="Main Store", is_primary=True)
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture(scope='function')
def second_location(db_session, vendor, primary_location):
    loc = Location(vendor_id=vendor.id, name="Warehouse", is_primary=False)
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture(scope='function')
def vendor_without_location(db_session):
    """Vendor that skipped location setup during onboarding."""
    v = Vendor(name="No Location Co")
    db_session.add(v)
    db_session.commit()
    return v
