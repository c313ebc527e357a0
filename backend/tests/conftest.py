"""
Pytest fixtures for stock ledger backend tests.

Provides the application on in-memory SQLite, a wiped database per test,
staff accounts for each role and a test client with login helpers.
"""

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import Branch, Product, StockLocation, User, UserRole
from stockledger.services import stock_service
from stockledger.services.auth_service import hash_password


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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


def _make_user(db_session, username, name, role, branch_id=None):
    user = User(
        username=username,
        name=name,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        branch_id=branch_id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def branch(db_session):
    """Destination branch for transfers."""
    branch = Branch(name="Borrowdale Branch", phone="+263 4 000 000")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "admin", "Alex Admin", UserRole.ADMIN)


@pytest.fixture(scope='function')
def cashier(db_session):
    return _make_user(db_session, "cashier", "Chipo Cashier", UserRole.CASHIER)


@pytest.fixture(scope='function')
def clerk(db_session):
    return _make_user(db_session, "clerk", "Wes Warehouse", UserRole.WAREHOUSE_CLERK)


@pytest.fixture(scope='function')
def hammer(db_session):
    """Shop-floor product with an Initial history entry (stock 15, box of 5)."""
    return stock_service.register_product(
        name="Claw Hammer",
        location=StockLocation.SHOP,
        stock=15,
        category="Tools",
        price_cents=1250,
        cost_cents=800,
        sku="HAM-001",
        barcode="6001234000017",
        box_quantity=5,
    )


@pytest.fixture(scope='function')
def nails(db_session):
    """Shop-floor product sold loose or by the box of 12."""
    return stock_service.register_product(
        name="Wire Nails 50mm",
        location=StockLocation.SHOP,
        stock=40,
        category="Fasteners",
        price_cents=399,
        cost_cents=150,
        sku="NAI-050",
        barcode="6001234000024",
        box_quantity=12,
    )


@pytest.fixture(scope='function')
def warehouse_cement(db_session):
    """Warehouse row for transfers."""
    return stock_service.register_product(
        name="Portland Cement 50kg",
        location=StockLocation.WAREHOUSE,
        stock=100,
        category="Building",
        price_cents=1099,
        cost_cents=850,
        sku="CEM-050",
        barcode="6001234000031",
        box_quantity=1,
    )


@pytest.fixture(scope='function')
def bare_product(db_session):
    """Product row with no history, as seeded or imported records are."""
    product = Product(
        name="PVC Pipe 20mm",
        category="Plumbing",
        price_cents=450,
        cost_cents=300,
        stock=15,
        sku="PVC-020",
        barcode="6001234000048",
        box_quantity=5,
        location=StockLocation.SHOP,
    )
    db_session.add(product)
    db_session.commit()
    return product


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.username))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier):
    return auth_headers(get_auth_token(client, cashier.username))


@pytest.fixture(scope='function')
def clerk_headers(client, clerk):
    return auth_headers(get_auth_token(client, clerk.username))
