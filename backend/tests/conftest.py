"""
Pytest fixtures for the inter-branch transfer backend tests.

Provides test database setup, a seeded branch/user/product layout, and the
test client.
"""

from types import SimpleNamespace

import pytest
from interbranch import create_app
from interbranch.extensions import db, publisher
from interbranch.models import Branch, User, UserBranchAssignment, Product
from interbranch.services.stock_ledger_service import set_stock_level


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_BACKOFF_SECONDS': 0,
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
        publisher.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def add_user(session, name, branch_id, role, *, main_admin=False, active=True):
    """Create a user with a single branch assignment; returns the user id."""
    user = User(name=name, email=f"{name}@example.com", is_active=active)
    session.add(user)
    session.flush()
    session.add(UserBranchAssignment(
        user_id=user.id,
        branch_id=branch_id,
        role=role,
        is_main_admin=main_admin,
    ))
    session.commit()
    return user.id


@pytest.fixture(scope='function')
def seed(db_session):
    """
    One main branch, two sub branches, users for every role, one product.

    Stock: 100 units at main, 30 at sub1, none at sub2.
    """
    main = Branch(name="Main Branch", code="MAIN", type="main")
    sub1 = Branch(name="Sub Branch 1", code="SB1", type="sub")
    sub2 = Branch(name="Sub Branch 2", code="SB2", type="sub")
    db_session.add_all([main, sub1, sub2])
    db_session.commit()

    product = Product(sku="RICE-5KG", name="Rice 5kg")
    db_session.add(product)
    db_session.commit()

    set_stock_level(product.id, main.id, 100)
    set_stock_level(product.id, sub1.id, 30)
    db_session.commit()

    return SimpleNamespace(
        main=main.id,
        sub1=sub1.id,
        sub2=sub2.id,
        product=product.id,
        main_admin=add_user(db_session, "main_admin", main.id, "admin", main_admin=True),
        main_manager=add_user(db_session, "main_manager", main.id, "manager"),
        main_staff=add_user(db_session, "main_staff", main.id, "staff"),
        main_cashier=add_user(db_session, "main_cashier", main.id, "cashier"),
        sub1_admin=add_user(db_session, "sub1_admin", sub1.id, "admin"),
        sub1_staff=add_user(db_session, "sub1_staff", sub1.id, "staff"),
        sub1_cashier=add_user(db_session, "sub1_cashier", sub1.id, "cashier"),
        sub2_manager=add_user(db_session, "sub2_manager", sub2.id, "manager"),
        sub2_staff=add_user(db_session, "sub2_staff", sub2.id, "staff"),
    )
