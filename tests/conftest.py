"""
Pytest fixtures for the Casri API tests.

Every test runs against a fresh in-memory SQLite database. The FastAPI app
shares the test's session through a get_db override, so objects created by
the factories below are visible to HTTP calls and vice versa.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from casri.core.constants import UserRole
from casri.core.hashing import hash_password
from casri.core.jwt import create_access_token
from casri.database import Base, get_db
from casri.main import app
from casri.models.products import Product
from casri.models.users import User
from casri.models.vendors import Vendor

PASSWORD = "s3cure-pass!"


# ============== Database Fixtures ==============

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


# ============== User Fixtures ==============

@pytest.fixture
def make_user(db):
    """Factory for users with a known password"""
    counter = {"n": 0}

    def _make(role=UserRole.EMPLOYEE, email=None, username=None):
        counter["n"] += 1
        user = User(
            username=username or f"user{counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(PASSWORD),
            role=role.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user(UserRole.ADMIN, email="admin@example.com", username="admin")


@pytest.fixture
def employee_user(make_user):
    return make_user(UserRole.EMPLOYEE, email="cashier@example.com", username="cashier")


@pytest.fixture
def plain_user(make_user):
    return make_user(UserRole.USER, email="viewer@example.com", username="viewer")


# ============== Client Fixtures ==============

def _bearer(user) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db):
    """Unauthenticated client bound to the test database"""
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client, admin_user):
    return TestClient(app, headers=_bearer(admin_user))


@pytest.fixture
def employee_client(client, employee_user):
    return TestClient(app, headers=_bearer(employee_user))


@pytest.fixture
def user_client(client, plain_user):
    return TestClient(app, headers=_bearer(plain_user))


# ============== Catalog Fixtures ==============

@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(name=None, stock=10, cost="60.00", price="100.00", barcode=None, low_stock_threshold=5):
        counter["n"] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            cost=Decimal(cost),
            price=Decimal(price),
            stock=stock,
            barcode=barcode,
            low_stock_threshold=low_stock_threshold,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_vendor(db):
    def _make(name="Hargeisa Wholesale", phone_number="+252634000000", location="Hargeisa"):
        vendor = Vendor(
            name=name,
            phone_number=phone_number,
            location=location,
            total_purchases=0,
            total_amount=Decimal("0"),
            balance=Decimal("0"),
        )
        db.add(vendor)
        db.commit()
        db.refresh(vendor)
        return vendor

    return _make
