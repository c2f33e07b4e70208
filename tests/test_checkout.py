"""
Checkout wizard tests — the 4-step purchase flow end to end.

Tests:
1-3.   Step 1 — start defaults, quantity selection, unknown quantity
4-6.   Step 2 — customer saved, invalid phone, names too short
7-12.  Step 3 — upload designs, partial rejection, nothing usable, skip, remove,
        same-named files kept apart
13-14. Step 4 — summary previews, payment method validation
15-18. Submit — deposit order, full payment order, bad proof, incomplete wizard
19-22. Submit races — parallel submits (one order), taken code retried,
        codes exhausted (503), storage failure (502, session reopened)
23-27. Navigation — back, goto blocked/allowed, reset, reset deletes designs,
        closed session (409)
28.    Unknown session (404)
"""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest

from storefront import models, order_codes, storage
from storefront.config import settings

from conftest import CUSTOMER, PNG_BYTES


def _start(client, product):
    resp = client.post("/api/checkout/start", json={"product_id": product.id})
    assert resp.status_code == 200
    return resp.json()["session_id"]


def _at_designs(client, product):
    session_id = _start(client, product)
    client.put(f"/api/checkout/{session_id}/quantity", json={"quantity": 1000})
    client.put(f"/api/checkout/{session_id}/customer", json=CUSTOMER)
    return session_id


def _submit(client, session_id, method="TOTAL", filename="yape.png", data=PNG_BYTES):
    return client.post(
        f"/api/checkout/{session_id}/submit",
        data={"payment_method": method},
        files={"payment_proof": (filename, data, "image/png")},
    )


# ============================================================
# STEP 1 — QUANTITY
# ============================================================

def test_start_defaults(client, product):
    resp = client.post("/api/checkout/start", json={"product_id": product.id})
    data = resp.json()
    assert data["step"] == 1
    assert data["selected_quantity"] == 1000
    assert data["selected_tier"]["bulk_price"] == 59.0
    assert data["payment_method"] == "TOTAL"
    assert data["status"] == "active"
    assert data["max_step"] == 2


def test_start_unknown_product(client):
    resp = client.post("/api/checkout/start", json={"product_id": "missing"})
    assert resp.status_code == 404


def test_set_quantity(client, product):
    session_id = _start(client, product)
    resp = client.put(f"/api/checkout/{session_id}/quantity", json={"quantity": 3000})
    assert resp.status_code == 200
    data = resp.json()
    assert data["step"] == 2
    assert data["selected_quantity"] == 3000
    assert data["selected_tier"]["price_per_thousand"] == 53.33


def test_set_quantity_not_in_table(client, product):
    session_id = _start(client, product)
    resp = client.put(f"/api/checkout/{session_id}/quantity", json={"quantity": 2500})
    assert resp.status_code == 400
    assert "Available" in resp.json()["detail"]


# ============================================================
# STEP 2 — CUSTOMER
# ============================================================

def test_set_customer(client, product):
    session_id = _start(client, product)
    client.put(f"/api/checkout/{session_id}/quantity", json={"quantity": 1000})
    resp = client.put(f"/api/checkout/{session_id}/customer", json={
        **CUSTOMER, "phone": "987 654 321", "ruc": "  ",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["step"] == 3
    assert data["customer"]["phone"] == "987654321"
    assert data["customer"]["ruc"] is None
    assert data["max_step"] == 3


@pytest.mark.parametrize("phone", ["887654321", "98765432", "9876543210", "abc"])
def test_set_customer_invalid_phone(client, product, phone):
    session_id = _start(client, product)
    resp = client.put(f"/api/checkout/{session_id}/customer", json={**CUSTOMER, "phone": phone})
    assert resp.status_code == 422


def test_set_customer_short_names(client, product):
    session_id = _start(client, product)
    resp = client.put(f"/api/checkout/{session_id}/customer", json={
        **CUSTOMER, "first_name": " J ",
    })
    assert resp.status_code == 422


# ============================================================
# STEP 3 — DESIGNS
# ============================================================

def test_upload_designs(client, product):
    session_id = _at_designs(client, product)
    resp = client.post(f"/api/checkout/{session_id}/designs", files=[
        ("files", ("logo final.png", PNG_BYTES, "image/png")),
        ("files", ("brief.pdf", b"%PDF-1.4 test", "application/pdf")),
    ])
    assert resp.status_code == 200
    data = resp.json()
    assert data["step"] == 4
    assert data["designs_done"] is True
    assert [d["name"] for d in data["uploaded"]] == ["logo final.png", "brief.pdf"]
    url = data["uploaded"][0]["url"]
    assert url.startswith("/uploads/designs/pedido_")
    assert url.endswith("_logo_final.png")
    assert storage.read(url) == PNG_BYTES


def test_upload_designs_rejects_bad_files(client, product):
    session_id = _at_designs(client, product)
    resp = client.post(f"/api/checkout/{session_id}/designs", files=[
        ("files", ("logo.png", PNG_BYTES, "image/png")),
        ("files", ("virus.exe", b"MZ", "application/octet-stream")),
    ])
    assert resp.status_code == 200
    assert len(resp.json()["uploaded"]) == 1
    assert resp.json()["rejected"][0]["name"] == "virus.exe"


def test_upload_designs_nothing_usable(client, product):
    session_id = _at_designs(client, product)
    resp = client.post(f"/api/checkout/{session_id}/designs", files=[
        ("files", ("notes.txt", b"hola", "text/plain")),
    ])
    assert resp.status_code == 400
    assert resp.json()["detail"]["rejected"][0]["name"] == "notes.txt"
    assert client.get(f"/api/checkout/{session_id}").json()["step"] == 3


def test_upload_designs_requires_customer(client, product):
    session_id = _start(client, product)
    resp = client.post(f"/api/checkout/{session_id}/designs", files=[
        ("files", ("logo.png", PNG_BYTES, "image/png")),
    ])
    assert resp.status_code == 400


def test_skip_designs(client, product):
    session_id = _at_designs(client, product)
    resp = client.post(f"/api/checkout/{session_id}/designs/skip")
    assert resp.status_code == 200
    assert resp.json()["step"] == 4
    assert resp.json()["design_files"] == []


def test_remove_design(client, product):
    session_id = _at_designs(client, product)
    upload = client.post(f"/api/checkout/{session_id}/designs", files=[
        ("files", ("logo.png", PNG_BYTES, "image/png")),
    ]).json()
    url = upload["uploaded"][0]["url"]

    resp = client.delete(f"/api/checkout/{session_id}/designs/logo.png")
    assert resp.status_code == 200
    assert resp.json()["design_files"] == []
    with pytest.raises(storage.StorageError):
        storage.read(url)

    missing = client.delete(f"/api/checkout/{session_id}/designs/logo.png")
    assert missing.status_code == 404


def test_same_named_designs_stored_apart(client, product):
    """Duplicate names, and names that sanitize to the same string, never share a file."""
    session_id = _at_designs(client, product)
    resp = client.post(f"/api/checkout/{session_id}/designs", files=[
        ("files", ("logo.png", b"first", "image/png")),
        ("files", ("logo.png", b"second", "image/png")),
        ("files", ("logo á.png", b"acute a", "image/png")),
        ("files", ("logo é.png", b"acute e", "image/png")),
    ])
    assert resp.status_code == 200
    urls = [d["url"] for d in resp.json()["uploaded"]]
    assert len(set(urls)) == 4
    assert [storage.read(u) for u in urls] == [b"first", b"second", b"acute a", b"acute e"]

    client.delete(f"/api/checkout/{session_id}/designs/logo.png")
    with pytest.raises(storage.StorageError):
        storage.read(urls[0])
    assert storage.read(urls[1]) == b"second"


# ============================================================
# STEP 4 — PAYMENT
# ============================================================

def test_summary(client, checkout_at_payment):
    resp = client.get(f"/api/checkout/{checkout_at_payment}/summary")
    assert resp.status_code == 200
    data = resp.json()
    assert data["quantity"] == 2000
    assert data["options"]["ADELANTO_60"]["amount_to_pay"] == 66.0
    assert data["options"]["ADELANTO_60"]["amount_pending"] == 44.0
    assert data["options"]["TOTAL"]["amount_to_pay"] == 108.0


def test_summary_before_step_four(client, product):
    session_id = _start(client, product)
    assert client.get(f"/api/checkout/{session_id}/summary").status_code == 400


def test_set_payment_method(client, checkout_at_payment):
    url = f"/api/checkout/{checkout_at_payment}/payment-method"
    resp = client.put(url, json={"payment_method": "ADELANTO_60"})
    assert resp.status_code == 200
    assert resp.json()["payment_method"] == "ADELANTO_60"
    assert client.put(url, json={"payment_method": "TOTAL_ENVIO"}).status_code == 400


# ============================================================
# SUBMIT
# ============================================================

def test_submit_deposit_order(client, db, checkout_at_payment):
    resp = _submit(client, checkout_at_payment, method="ADELANTO_60")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "Pedido Recibido"
    assert data["total_amount"] == 110.0
    assert data["amount_paid"] == 66.0
    assert data["amount_pending"] == 44.0
    assert data["payment_method_type"] == "Adelanto 60%"

    text = parse_qs(urlparse(data["whatsapp_url"]).query)["text"][0]
    assert data["order_code"] in text
    assert "ADELANTO (60%)" in text
    assert "Aún no tengo un diseño" in text

    order = db.query(models.Order).filter(models.Order.id == data["order_id"]).one()
    assert order.customer_name == "Juan"
    assert order.customer_dni == "12345678"
    assert order.quantity == 2000
    assert order.design_files == []
    assert len(order.payment_proof_files) == 1
    proof = order.payment_proof_files[0]
    assert proof.startswith(f"/uploads/payments/{order.order_code}_YAPE_")
    assert proof.endswith(".png")
    assert order.payment_proof_url == proof

    session = client.get(f"/api/checkout/{checkout_at_payment}").json()
    assert session["status"] == "complete"
    assert session["order_code"] == data["order_code"]


def test_submit_full_payment_with_designs(client, db, product):
    session_id = _at_designs(client, product)
    client.post(f"/api/checkout/{session_id}/designs", files=[
        ("files", ("logo.png", PNG_BYTES, "image/png")),
    ])
    resp = _submit(client, session_id, method="TOTAL")
    assert resp.status_code == 200
    data = resp.json()
    assert data["amount_paid"] == 57.0
    assert data["amount_pending"] == 0.0
    text = parse_qs(urlparse(data["whatsapp_url"]).query)["text"][0]
    assert "CANCELADO" in text
    assert "He subido mis archivos" in text

    order = db.query(models.Order).filter(models.Order.id == data["order_id"]).one()
    assert len(order.design_files) == 1
    assert order.user_file_url == order.design_files[0]


def test_submit_rejects_bad_proof(client, db, checkout_at_payment):
    resp = _submit(client, checkout_at_payment, filename="yape.docx", data=b"doc")
    assert resp.status_code == 400
    assert db.query(models.Order).count() == 0


def test_submit_incomplete_wizard(client, product):
    session_id = _start(client, product)
    assert _submit(client, session_id).status_code == 400


def test_parallel_submits_create_one_order(client, db, checkout_at_payment):
    payments = Path(settings.UPLOAD_DIR) / "payments"
    before = set(payments.glob("*"))
    with ThreadPoolExecutor(max_workers=4) as pool:
        codes = list(pool.map(lambda _: _submit(client, checkout_at_payment).status_code, range(4)))

    assert sorted(codes) == [200, 409, 409, 409]
    assert db.query(models.Order).count() == 1
    assert len(set(payments.glob("*")) - before) == 1


def test_submit_retries_taken_order_code(client, db, make_order, checkout_at_payment, monkeypatch):
    """A code inserted by someone else between check and commit is retried, its proof deleted."""
    make_order(order_code="WK-1111")
    codes = iter(["WK-1111", "WK-2222"])
    monkeypatch.setattr(order_codes, "generate_order_code", lambda db: next(codes))

    resp = _submit(client, checkout_at_payment)
    assert resp.status_code == 200
    assert resp.json()["order_code"] == "WK-2222"
    assert db.query(models.Order).count() == 2
    assert not list((Path(settings.UPLOAD_DIR) / "payments").glob("WK-1111_*"))


def test_submit_gives_up_when_codes_keep_colliding(client, db, make_order, checkout_at_payment, monkeypatch):
    make_order(order_code="WK-1111")
    monkeypatch.setattr(order_codes, "generate_order_code", lambda db: "WK-1111")

    resp = _submit(client, checkout_at_payment)
    assert resp.status_code == 503
    assert db.query(models.Order).count() == 1
    assert not list((Path(settings.UPLOAD_DIR) / "payments").glob("WK-1111_*"))
    assert client.get(f"/api/checkout/{checkout_at_payment}").json()["status"] == "active"


def test_submit_storage_failure_reopens_session(client, db, checkout_at_payment):
    with patch.object(storage, "save", side_effect=OSError("bucket unreachable")):
        resp = _submit(client, checkout_at_payment)
    assert resp.status_code == 502
    assert db.query(models.Order).count() == 0

    session = client.get(f"/api/checkout/{checkout_at_payment}").json()
    assert session["status"] == "active"
    assert session["order_code"] is None

    assert _submit(client, checkout_at_payment).status_code == 200


# ============================================================
# NAVIGATION
# ============================================================

def test_back_keeps_data(client, checkout_at_payment):
    resp = client.post(f"/api/checkout/{checkout_at_payment}/back")
    assert resp.json()["step"] == 3
    assert resp.json()["customer"]["first_name"] == "Juan"
    for _ in range(5):
        resp = client.post(f"/api/checkout/{checkout_at_payment}/back")
    assert resp.json()["step"] == 1
    assert resp.json()["selected_quantity"] == 2000


def test_goto_requires_prerequisites(client, product):
    session_id = _start(client, product)
    assert client.post(f"/api/checkout/{session_id}/goto/3").status_code == 400
    assert client.post(f"/api/checkout/{session_id}/goto/2").json()["step"] == 2
    assert client.post(f"/api/checkout/{session_id}/goto/9").status_code == 400


def test_goto_back_to_completed_step(client, checkout_at_payment):
    client.post(f"/api/checkout/{checkout_at_payment}/goto/1")
    resp = client.post(f"/api/checkout/{checkout_at_payment}/goto/4")
    assert resp.status_code == 200
    assert resp.json()["step"] == 4


def test_reset(client, checkout_at_payment):
    resp = client.post(f"/api/checkout/{checkout_at_payment}/reset")
    data = resp.json()
    assert data["step"] == 1
    assert data["selected_quantity"] == 1000
    assert data["customer"] == {}
    assert data["designs_done"] is False


def test_reset_deletes_uploaded_designs(client, product):
    session_id = _at_designs(client, product)
    upload = client.post(f"/api/checkout/{session_id}/designs", files=[
        ("files", ("logo.png", PNG_BYTES, "image/png")),
    ]).json()
    url = upload["uploaded"][0]["url"]

    resp = client.post(f"/api/checkout/{session_id}/reset")
    assert resp.json()["design_files"] == []
    with pytest.raises(storage.StorageError):
        storage.read(url)


def test_completed_session_is_closed(client, checkout_at_payment):
    assert _submit(client, checkout_at_payment).status_code == 200
    assert _submit(client, checkout_at_payment).status_code == 409
    assert client.post(f"/api/checkout/{checkout_at_payment}/back").status_code == 409
    resp = client.put(f"/api/checkout/{checkout_at_payment}/quantity", json={"quantity": 1000})
    assert resp.status_code == 409


def test_unknown_session(client):
    assert client.get("/api/checkout/missing").status_code == 404
