"""
WhatsApp deep links.

The shop confirms every order and quote over WhatsApp: after submitting,
the customer is sent to a wa.me link with a prefilled message.
"""

from urllib.parse import quote

from .config import settings


def wa_link(number: str, text: str) -> str:
    return f"https://wa.me/{number}?text={quote(text, safe='')}"


def _money(amount) -> str:
    return f"{settings.CURRENCY_SYMBOL} {float(amount or 0):.2f}"


def order_message(
    order_code: str,
    first_name: str,
    last_name: str,
    phone: str,
    product_name: str,
    quantity: int,
    total_amount: float,
    amount_paid: float,
    paid_in_full: bool,
    has_designs: bool,
    deposit_percent: float = 60,
) -> str:
    """Prefilled order confirmation sent by the customer to the shop."""
    if paid_in_full:
        status = "✅ CANCELADO (Bono aplicado)"
        balance = 0.0
    else:
        status = f"⏳ ADELANTO ({deposit_percent:g}%)"
        balance = total_amount - amount_paid

    if has_designs:
        design_note = (
            "🎨 Sobre el Diseño: He subido mis archivos/bocetos. Quedo atento a la "
            "coordinación con el diseñador para la revisión del arte final y el visto bueno."
        )
    else:
        design_note = (
            "🎨 Sobre el Diseño: Aún no tengo un diseño. Por favor, que el área de diseño "
            f"se contacte conmigo al {phone} para coordinar y empezar desde cero."
        )

    return (
        f"¡Hola, {settings.SHOP_NAME}! 👋 He registrado mi pedido desde la web.\n\n"
        f"📝 Orden: {order_code}\n"
        f"🔍 Rastrea tu pedido en: {settings.TRACKING_URL}\n"
        f"👤 Cliente: {first_name} {last_name}\n"
        f"📦 Producto: {product_name} ({quantity} unidades)\n\n"
        f"💵 Resumen de Pago:\n"
        f"----------------------------\n"
        f"Total de la Orden: {_money(total_amount)}\n"
        f"Estado: {status}\n"
        f"Monto Pagado: {_money(amount_paid)}\n"
        f"Saldo por Pagar: {_money(balance)}\n\n"
        f"{design_note}\n\n"
        "Ya subí mi comprobante en la web, pero se los envío por aquí también para "
        "mayor seguridad. 😊 Me avisan cuando mi pedido pase a fase de producción."
    )


def order_link(order, paid_in_full: bool, deposit_percent: float = 60) -> str:
    text = order_message(
        order_code=order.order_code,
        first_name=order.customer_name,
        last_name=order.customer_lastname,
        phone=order.customer_phone,
        product_name=order.product_name,
        quantity=order.quantity,
        total_amount=order.total_amount,
        amount_paid=order.amount_paid,
        paid_in_full=paid_in_full,
        has_designs=bool(order.design_files),
        deposit_percent=deposit_percent,
    )
    return wa_link(settings.WHATSAPP_NUMBER, text)


def quote_message(name: str, service_type: str, message: str) -> str:
    return (
        f"Hola {settings.SHOP_NAME}, soy {name}. Quisiera cotizar servicio de: "
        f"{service_type}. Detalles: {message or ''}"
    )


def quote_link(name: str, service_type: str, message: str) -> str:
    return wa_link(settings.WHATSAPP_QUOTES_NUMBER, quote_message(name, service_type, message))
