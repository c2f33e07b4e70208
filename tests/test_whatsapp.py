"""
WhatsApp deep link tests.

Tests:
1. wa.me link URL-encodes the whole message
2. Full payment message — CANCELADO, zero balance
3. Deposit message — ADELANTO with percentage, balance due, no-design note with phone
4. Order link built from an Order row
5. Quote link goes to the sales number
"""

from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

from storefront.whatsapp import order_link, order_message, quote_link, wa_link


def _message(**overrides):
    kwargs = dict(
        order_code="WK-1234",
        first_name="Juan",
        last_name="Pérez",
        phone="987654321",
        product_name="Tarjetas de Presentación",
        quantity=1000,
        total_amount=59.0,
        amount_paid=57.0,
        paid_in_full=True,
        has_designs=True,
    )
    kwargs.update(overrides)
    return order_message(**kwargs)


def test_wa_link_encodes_text():
    assert wa_link("51999", "a b&c") == "https://wa.me/51999?text=a%20b%26c"


def test_full_payment_message():
    text = _message()
    assert "📝 Orden: WK-1234" in text
    assert "✅ CANCELADO (Bono aplicado)" in text
    assert "Monto Pagado: S/ 57.00" in text
    assert "Saldo por Pagar: S/ 0.00" in text
    assert "He subido mis archivos" in text


def test_deposit_message():
    text = _message(
        total_amount=110.0, amount_paid=66.0, paid_in_full=False,
        has_designs=False, deposit_percent=60.0,
    )
    assert "⏳ ADELANTO (60%)" in text
    assert "Saldo por Pagar: S/ 44.00" in text
    assert "Aún no tengo un diseño" in text
    assert "al 987654321" in text


def test_order_link_from_order():
    order = SimpleNamespace(
        order_code="WK-7777", customer_name="Ana", customer_lastname="Quispe",
        customer_phone="912345678", product_name="Volantes A5", quantity=2000,
        total_amount=160.0, amount_paid=160.0, design_files=[],
    )
    url = order_link(order, paid_in_full=True)
    parsed = urlparse(url)
    assert parsed.netloc == "wa.me"
    assert parsed.path == "/51983555435"
    text = parse_qs(parsed.query)["text"][0]
    assert "WK-7777" in text
    assert "Volantes A5 (2000 unidades)" in text


def test_quote_link():
    url = quote_link("Ana", "Merchandising", "100 tazas")
    parsed = urlparse(url)
    assert parsed.path == "/51954992500"
    text = parse_qs(parsed.query)["text"][0]
    assert text == (
        "Hola WankaPrint, soy Ana. Quisiera cotizar servicio de: "
        "Merchandising. Detalles: 100 tazas"
    )
