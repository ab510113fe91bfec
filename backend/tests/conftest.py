"""
Pytest fixtures for retailcore backend tests.

Provides an in-memory database, per-test table clearing, the Flask test
client and small factories for items, tiers and members.
"""

import pytest
from retailcore import create_app
from retailcore.extensions import db
from retailcore.models import InventoryItem, Member, MembershipTier


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RETRY_BACKOFF_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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


@pytest.fixture(scope='function')
def tiers(db_session):
    """Bronze (1.0x) and Gold (1.5x) tiers."""
    bronze = MembershipTier(tier_name="Bronze", points_multiplier_bps=10000)
    gold = MembershipTier(tier_name="Gold", points_multiplier_bps=15000)
    db_session.add_all([bronze, gold])
    db_session.commit()
    return {"Bronze": bronze, "Gold": gold}


@pytest.fixture(scope='function')
def make_item(db_session):
    """Factory for inventory items; returns the new item's id."""
    counter = {"n": 0}

    def _make(*, stock=10, price_cents=1000, sku=None, reorder_point=2):
        counter["n"] += 1
        item = InventoryItem(
            sku=sku or f"SKU-{counter['n']:03d}",
            name=f"Item {counter['n']}",
            category="General",
            brand="Acme",
            price_cents=price_cents,
            stock=stock,
            reorder_point=reorder_point,
        )
        db_session.add(item)
        db_session.commit()
        return item.id

    return _make


@pytest.fixture(scope='function')
def member(db_session, tiers):
    """Member M001 in the Gold tier with 100 points."""
    m = Member(
        member_id="M001",
        name="Alice Tan",
        email="alice@example.com",
        phone="555-0100",
        tier="Gold",
        points=100,
        total_spent_cents=0,
    )
    db_session.add(m)
    db_session.commit()
    return m.member_id
