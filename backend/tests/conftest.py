"""
Shared fixtures: one in-memory app per test session, emptied before every
test, plus a small tee catalog and the shop operator.
"""

import pytest
from clothstock import create_app
from clothstock.extensions import db
from clothstock.models import Category, Product, Variant, User, build_sku
from clothstock.services.auth_service import hash_password


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'BCRYPT_ROUNDS': 4,
    'BUSINESS_TIMEZONE': 'UTC',
    'DOCUMENT_NUMBER_STRATEGY': 'counter',
}

OPERATOR_EMAIL = "operator@clothstock.local"
OPERATOR_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    application = create_app(TEST_CONFIG)
    with application.app_context():
        db.create_all()
        yield application
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    """Empty every table (children first), hand out the session."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        yield db.session
        db.session.rollback()


@pytest.fixture
def category(db_session):
    cat = Category(name="Tops", is_active=True)
    db_session.add(cat)
    db_session.commit()
    return cat


def make_product(db_session, *, base_code, name, category_id=None, variants=()):
    """
    Insert a product with variants directly.

    variants: iterable of (color, size, base_qty, cost_price_cents, sale_price_cents)
    """
    product = Product(name=name, base_code=base_code, category_id=category_id, tags=[])
    db_session.add(product)
    db_session.flush()
    for color, size, base_qty, cost, price in variants:
        db_session.add(Variant(
            product_id=product.id,
            color=color,
            size=size,
            base_qty=base_qty,
            cost_price_cents=cost,
            sale_price_cents=price,
            sku=build_sku(base_code, color, size),
        ))
    db_session.commit()
    return product


@pytest.fixture
def product(db_session, category):
    """Basic tee with two variants: Black/M (10 @ 5.00) and White/L (5 @ 4.00)."""
    return make_product(
        db_session,
        base_code="TEE01",
        name="Basic Tee",
        category_id=category.id,
        variants=[
            ("Black", "M", 10, 500, 1200),
            ("White", "L", 5, 400, 1000),
        ],
    )


@pytest.fixture
def black_m(db_session, product):
    return db_session.query(Variant).filter_by(product_id=product.id, color="Black", size="M").one()


@pytest.fixture
def white_l(db_session, product):
    return db_session.query(Variant).filter_by(product_id=product.id, color="White", size="L").one()


@pytest.fixture
def operator(db_session):
    user = User(email=OPERATOR_EMAIL, password_hash=hash_password(OPERATOR_PASSWORD))
    db_session.add(user)
    db_session.commit()
    return user


def get_auth_token(client, email: str, password: str):
    """Bearer token from /api/auth/login, or None when the login is refused."""
    response = client.post('/api/auth/login', json={'email': email, 'password': password})
    return response.json['token'] if response.status_code == 200 else None


@pytest.fixture
def auth_headers(client, operator):
    token = get_auth_token(client, OPERATOR_EMAIL, OPERATOR_PASSWORD)
    assert token, "login failed in fixture"
    return {'Authorization': f'Bearer {token}'}
