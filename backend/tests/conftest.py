"""
Pytest fixtures for the retailpos backend tests.

Provides an in-memory database, a seeded store (roles, administrator, units,
default category, walk-in customer), a cashier account, catalog factories and
cookie-authenticated test clients.
"""

from decimal import Decimal

import pytest

from retailpos import create_app
from retailpos.extensions import db
from retailpos.models import Category, Customer, Product, Role, StockMovement, Supplier
from retailpos.permissions import CASHIER_ROLE
from retailpos.services import setup_service
from retailpos.services.auth_service import create_user

ADMIN_PASSWORD = "admin-pass"
CASHIER_PASSWORD = "cashier-pass"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'DEFAULT_TAX_PERCENT': '5',
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
def admin_user(db_session):
    """Run first-time setup and return the administrator."""
    return setup_service.initialize_system("admin", ADMIN_PASSWORD, ADMIN_PASSWORD, "Test Store")


@pytest.fixture(scope='function')
def cashier_user(db_session, admin_user):
    role = db_session.query(Role).filter_by(name=CASHIER_ROLE).first()
    user = create_user(username="cashier", password=CASHIER_PASSWORD, full_name="Counter Cashier", role_id=role.id)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def category(db_session, admin_user):
    category = Category(name="Beverages")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(db_session, category):
    """Factory for products with a matching OPENING ledger entry."""
    counter = {"n": 0}

    def _make(name="Product", selling_price="1000", purchase_price="600", stock="10", **kwargs):
        counter["n"] += 1
        product = Product(
            name=name,
            barcode=kwargs.pop("barcode", f"BC{counter['n']:04d}"),
            category_id=kwargs.pop("category_id", category.id),
            selling_price=Decimal(selling_price),
            purchase_price=Decimal(purchase_price),
            stock=Decimal(stock),
            **kwargs,
        )
        db_session.add(product)
        db_session.flush()
        if Decimal(stock) != 0:
            db_session.add(StockMovement(
                product_id=product.id,
                movement_type="OPENING",
                quantity=Decimal(stock),
                reference_type="Product",
                reference_id=product.id,
            ))
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    return make_product(name="Green Tea", selling_price="1000", purchase_price="600", stock="10")


@pytest.fixture(scope='function')
def customer(db_session, admin_user):
    customer = Customer(name="Aung Aung", phone="0911111111", credit_limit=Decimal("50000"))
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def walk_in(db_session, admin_user):
    return db_session.query(Customer).filter_by(is_walk_in=True).first()


@pytest.fixture(scope='function')
def supplier(db_session, admin_user):
    supplier = Supplier(name="Wholesale Co", phone="0922222222")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def login(client):
    """Log the test client in; the session cookie is kept by the client."""
    def _login(username, password):
        response = client.post("/api/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.get_json()
        return response

    return _login


@pytest.fixture(scope='function')
def admin_client(client, admin_user, login):
    login("admin", ADMIN_PASSWORD)
    return client


@pytest.fixture(scope='function')
def cashier_client(client, cashier_user, login):
    login("cashier", CASHIER_PASSWORD)
    return client
