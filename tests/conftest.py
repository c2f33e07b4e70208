"""
Shared test fixtures — SQLite test database, test client, admin auth,
product/order factories.
"""

import os
import tempfile

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set env before importing app modules
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="wankaprint-uploads-")
os.environ["R2_ACCOUNT_ID"] = ""

from storefront import models
from storefront.auth import ensure_admin
from storefront.database import Base, get_db
from storefront.main import app


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


ADMIN_EMAIL = "admin@wankaprint.com"
ADMIN_PASSWORD = "strongpassword123"

# 1000..3000 units — bulk 59/110/160, bonus 2/2/3, deposit 60%
SAMPLE_PRICE_CONFIG = {
    "tiers": [
        {"quantity": 1000, "market_price": 95.0, "bulk_price": 59.0, "full_payment_bonus": 2.0},
        {"quantity": 2000, "market_price": 190.0, "bulk_price": 110.0, "full_payment_bonus": 2.0},
        {"quantity": 3000, "market_price": 285.0, "bulk_price": 160.0, "full_payment_bonus": 3.0},
    ],
    "deposit_percent": 60,
    "cash_discount_percent": 10,
}

# Smallest valid PNG — enough for upload validation
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin_headers(client, db):
    """Bootstrap an admin and return auth headers."""
    ensure_admin(db, ADMIN_EMAIL, ADMIN_PASSWORD)
    response = client.post("/api/auth/login", json={
        "email": ADMIN_EMAIL,
        "password": ADMIN_PASSWORD,
    })
    assert response.status_code == 200
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_product(db):
    """Factory: insert a product, default price table SAMPLE_PRICE_CONFIG."""
    def _make(name="Tarjetas de Presentación", price_config=SAMPLE_PRICE_CONFIG, **kwargs):
        product = models.Product(name=name, price_config=price_config, **kwargs)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def make_order(db):
    """Factory: insert an order directly (bypasses checkout)."""
    def _make(order_code="WK-1234", **kwargs):
        data = {
            "customer_name": "Juan",
            "customer_lastname": "Pérez",
            "customer_phone": "987654321",
            "product_name": "Tarjetas de Presentación",
            "quantity": 1000,
            "payment_method_type": "Pago Total",
            "product_price": 59.0,
            "total_amount": 59.0,
            "amount_paid": 57.0,
            "amount_pending": 0.0,
            "design_files": [],
            "payment_proof_files": [],
        }
        data.update(kwargs)
        order = models.Order(order_code=order_code, **data)
        db.add(order)
        db.commit()
        db.refresh(order)
        return order
    return _make


CUSTOMER = {
    "first_name": "Juan",
    "last_name": "Pérez",
    "phone": "987654321",
    "dni": "12345678",
}


@pytest.fixture
def checkout_at_payment(client, product):
    """A wizard session that has passed steps 1-3 (2000 units, no designs)."""
    start = client.post("/api/checkout/start", json={"product_id": product.id})
    assert start.status_code == 200
    session_id = start.json()["session_id"]
    assert client.put(f"/api/checkout/{session_id}/quantity", json={"quantity": 2000}).status_code == 200
    assert client.put(f"/api/checkout/{session_id}/customer", json=CUSTOMER).status_code == 200
    assert client.post(f"/api/checkout/{session_id}/designs/skip").status_code == 200
    return session_id
