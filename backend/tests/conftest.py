"""
Pytest fixtures for stockroom backend tests.

Provides test database setup, small factories and test client headers.
"""

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.services import category_service, item_service


ADMIN_ID = 1
USER_ID = 2
OTHER_USER_ID = 3


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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
def admin_headers():
    return {"X-User-Id": str(ADMIN_ID), "X-User-Role": "admin"}


@pytest.fixture(scope='function')
def user_headers():
    return {"X-User-Id": str(USER_ID), "X-User-Role": "user"}


@pytest.fixture(scope='function')
def other_user_headers():
    return {"X-User-Id": str(OTHER_USER_ID), "X-User-Role": "user"}


@pytest.fixture(scope='function')
def root_category(db_session):
    """Root category for individually tracked equipment."""
    return category_service.create_category(name="Robots", operator_id=ADMIN_ID)


@pytest.fixture(scope='function')
def stackable_category(db_session):
    """Root category whose items default to stackable."""
    return category_service.create_category(name="Consumables", is_stackable=True, operator_id=ADMIN_ID)


@pytest.fixture(scope='function')
def make_item(db_session, root_category, stackable_category):
    """
    Factory for items.

    make_item(10) -> stackable item holding 10 units
    make_item(1, unique_code="LHT-1") -> non-stackable item
    """
    def _make(quantity=0, *, unique_code=None, name=None):
        if unique_code:
            return item_service.create_item(
                category_id=root_category.id,
                name=name or f"Unit {unique_code}",
                unique_code=unique_code,
                initial_stock=quantity,
                operator_id=ADMIN_ID,
            )
        return item_service.create_item(
            category_id=stackable_category.id,
            name=name or "M3 screws",
            initial_stock=quantity,
            operator_id=ADMIN_ID,
        )
    return _make
