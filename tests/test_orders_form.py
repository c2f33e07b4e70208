"""
One-page order form tests — POST /api/orders.

Tests:
1. Deposit pickup order — 60% now, rest pending
2. Delivery order — fee added to total, design file stored
3. Invalid customer data → 400 with field errors
4. Quantity without a price tier → 400
5. Wizard-only method rejected
6. Proof with a disallowed type → 400, nothing created
7. RUC stored on the order
8. Order code taken by a concurrent insert → retried, stale proof deleted
9. Storage failure → 502, nothing created, stored proof deleted
"""

from pathlib import Path
from unittest.mock import patch

from storefront import models, order_codes, storage
from storefront.config import settings

from conftest import CUSTOMER, PNG_BYTES


def _form(product, **overrides):
    data = {
        "product_id": product.id,
        "quantity": "1000",
        "payment_method": "ADELANTO_60_RECOJO",
        **CUSTOMER,
    }
    data.update(overrides)
    return data


def _proof(filename="yape.png", data=PNG_BYTES):
    return {"payment_proof": (filename, data, "image/png")}


def test_deposit_pickup_order(client, db, product):
    resp = client.post("/api/orders/", data=_form(product), files=_proof())
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "Pedido Recibido"
    assert data["order_code"].startswith("WK-")
    pricing = data["pricing"]
    assert pricing["amount_to_pay_now"] == 35.4
    assert pricing["amount_pending"] == 23.6
    assert pricing["is_delivery"] is False

    order = db.query(models.Order).filter(models.Order.id == data["order_id"]).one()
    assert order.payment_method_type == "Adelanto 60% (Recojo en Tienda)"
    assert order.amount_paid == 35.4
    assert order.payment_proof_url.startswith(f"/uploads/payments/{order.order_code}_PAYMENT_")
    assert order.design_files == []


def test_delivery_order_with_design(client, db, product):
    files = {
        **_proof(),
        "design_file": ("arte.pdf", b"%PDF-1.4 arte", "application/pdf"),
    }
    resp = client.post(
        "/api/orders/",
        data=_form(product, quantity="2000", payment_method="TOTAL_ENVIO"),
        files=files,
    )
    assert resp.status_code == 200
    pricing = resp.json()["pricing"]
    assert pricing["delivery_fee"] == 15.0
    assert pricing["total_amount"] == 125.0
    assert pricing["amount_pending"] == 0.0

    order = db.query(models.Order).filter(models.Order.id == resp.json()["order_id"]).one()
    assert order.is_delivery is True
    assert len(order.design_files) == 1
    assert order.design_files[0].endswith("_arte.pdf")
    assert order.user_file_url == order.design_files[0]


def test_invalid_customer(client, product):
    resp = client.post("/api/orders/", data=_form(product, phone="12345"), files=_proof())
    assert resp.status_code == 400
    assert resp.json()["detail"][0]["loc"] == ["phone"]


def test_quantity_without_tier(client, product):
    resp = client.post("/api/orders/", data=_form(product, quantity="1234"), files=_proof())
    assert resp.status_code == 400
    assert "Available" in resp.json()["detail"]


def test_wizard_method_rejected(client, product):
    resp = client.post("/api/orders/", data=_form(product, payment_method="TOTAL"), files=_proof())
    assert resp.status_code == 400


def test_bad_proof_type(client, db, product):
    resp = client.post(
        "/api/orders/", data=_form(product), files=_proof(filename="yape.exe"),
    )
    assert resp.status_code == 400
    assert db.query(models.Order).count() == 0


def test_ruc_saved(client, db, product):
    resp = client.post("/api/orders/", data=_form(product, ruc=" 20123456789 "), files=_proof())
    assert resp.status_code == 200
    order = db.query(models.Order).filter(models.Order.id == resp.json()["order_id"]).one()
    assert order.customer_ruc == "20123456789"


def test_taken_code_retried(client, db, make_order, product, monkeypatch):
    make_order(order_code="WK-1111")
    codes = iter(["WK-1111", "WK-2222"])
    monkeypatch.setattr(order_codes, "generate_order_code", lambda db: next(codes))
    files = {**_proof(), "design_file": ("arte.pdf", b"%PDF-1.4 arte", "application/pdf")}

    resp = client.post("/api/orders/", data=_form(product), files=files)
    assert resp.status_code == 200
    assert resp.json()["order_code"] == "WK-2222"
    assert not list((Path(settings.UPLOAD_DIR) / "payments").glob("WK-1111_*"))

    order = db.query(models.Order).filter(models.Order.order_code == "WK-2222").one()
    assert len(order.design_files) == 1
    assert storage.read(order.design_files[0]) == b"%PDF-1.4 arte"


def test_storage_failure_removes_stored_proof(client, db, product, monkeypatch):
    """Proof saved, design save fails: 502, no order, no leftover proof."""
    monkeypatch.setattr(order_codes, "generate_order_code", lambda db: "WK-3333")
    real_save = storage.save

    def save(bucket, key, data, content_type):
        if bucket == storage.DESIGNS:
            raise OSError("bucket unreachable")
        return real_save(bucket, key, data, content_type)

    files = {**_proof(), "design_file": ("arte.pdf", b"%PDF-1.4 arte", "application/pdf")}
    with patch.object(storage, "save", side_effect=save):
        resp = client.post("/api/orders/", data=_form(product), files=files)

    assert resp.status_code == 502
    assert db.query(models.Order).count() == 0
    assert not list((Path(settings.UPLOAD_DIR) / "payments").glob("WK-3333_*"))
