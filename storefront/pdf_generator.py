"""
PDF documents for the admin dashboard.

- Order sheet: one order — customer, product, payment, files — for the
  production floor.
- Orders report: a table of orders (optionally one status) with totals.

Uses fpdf2 (pure Python, no system dependencies). Built-in fonts are
latin-1, which covers Spanish accents; emoji and other symbols are replaced.
"""

from datetime import datetime

from fpdf import FPDF

from .config import settings


def _fmt(amount) -> str:
    """Format a number as S/ X,XXX.XX"""
    try:
        return f"{settings.CURRENCY_SYMBOL} {float(amount):,.2f}"
    except (ValueError, TypeError):
        return f"{settings.CURRENCY_SYMBOL} 0.00"


def _date(value) -> str:
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    return str(value or "")


def _safe(text) -> str:
    """Replace Unicode chars that can't be rendered by built-in PDF fonts (latin-1)."""
    if text is None:
        return ""
    return (
        str(text)
        .replace("•", "-")    # bullet
        .replace("—", " - ")  # em dash
        .replace("–", "-")    # en dash
        .replace("“", '"')
        .replace("”", '"')
        .replace("‘", "'")
        .replace("’", "'")
        .encode("latin-1", errors="replace")
        .decode("latin-1")
    )


class ShopPDF(FPDF):
    """Shop-branded page with a footer page counter."""

    def __init__(self, title=""):
        super().__init__()
        self.doc_title = title
        self.set_auto_page_break(auto=True, margin=20)

    def header(self):
        self.set_font("Helvetica", "B", 16)
        self.set_text_color(116, 35, 132)  # brand purple
        self.cell(0, 9, _safe(settings.SHOP_NAME), new_x="LMARGIN", new_y="NEXT")
        self.set_font("Helvetica", "", 8)
        self.set_text_color(100, 100, 100)
        info = " | ".join(p for p in [settings.SHOP_ADDRESS, settings.SHOP_PHONE] if p)
        if info:
            self.cell(0, 4, _safe(info), new_x="LMARGIN", new_y="NEXT")
        self.set_text_color(0, 0, 0)
        if self.doc_title:
            self.ln(2)
            self.set_font("Helvetica", "B", 12)
            self.cell(0, 7, _safe(self.doc_title), new_x="LMARGIN", new_y="NEXT")
        self.ln(3)

    def footer(self):
        self.set_y(-15)
        self.set_font("Helvetica", "I", 8)
        self.set_text_color(150, 150, 150)
        self.cell(0, 10, f"Página {self.page_no()}/{{nb}}", align="C")

    def section_header(self, title):
        self.set_font("Helvetica", "B", 10)
        self.set_fill_color(116, 35, 132)
        self.set_text_color(255, 255, 255)
        self.cell(0, 7, f"  {_safe(title)}", fill=True, new_x="LMARGIN", new_y="NEXT")
        self.set_text_color(0, 0, 0)
        self.ln(2)

    def field(self, label, value):
        self.set_font("Helvetica", "B", 9)
        self.cell(45, 5.5, _safe(label))
        self.set_font("Helvetica", "", 9)
        self.multi_cell(0, 5.5, _safe(value), new_x="LMARGIN", new_y="NEXT")

    def table_header(self, cols):
        """cols: [(label, width), ...]"""
        self.set_font("Helvetica", "B", 8)
        self.set_fill_color(240, 240, 240)
        for label, width in cols:
            self.cell(width, 6, _safe(label), border="B", fill=True)
        self.ln()

    def table_row(self, values, widths):
        self.set_font("Helvetica", "", 8)
        for val, width in zip(values, widths):
            self.cell(width, 5.5, _safe(val)[:40])
        self.ln()


def generate_order_pdf(order) -> bytes:
    """Order sheet for one order."""
    pdf = ShopPDF(title=f"PEDIDO {order.order_code}")
    pdf.alias_nb_pages()
    pdf.add_page()

    pdf.section_header("CLIENTE")
    pdf.field("Nombre:", f"{order.customer_name} {order.customer_lastname}")
    pdf.field("Celular:", order.customer_phone)
    if order.customer_dni:
        pdf.field("DNI:", order.customer_dni)
    if order.customer_ruc:
        pdf.field("RUC:", order.customer_ruc)
    pdf.ln(3)

    pdf.section_header("PEDIDO")
    pdf.field("Fecha:", _date(order.created_at))
    pdf.field("Producto:", order.product_name)
    pdf.field("Cantidad:", f"{order.quantity:,} unidades")
    pdf.field("Material:", order.material_type)
    pdf.field("Estado:", order.status)
    pdf.field("Entrega:", "Envío a domicilio" if order.is_delivery else "Recojo en tienda")
    pdf.ln(3)

    pdf.section_header("PAGO")
    pdf.field("Método:", order.payment_method_type)
    pdf.field("Precio:", _fmt(order.product_price))
    if order.delivery_fee:
        pdf.field("Envío:", _fmt(order.delivery_fee))
    pdf.field("Total:", _fmt(order.total_amount))
    pdf.field("Pagado:", _fmt(order.amount_paid))
    pdf.field("Saldo:", _fmt(order.amount_pending))
    pdf.ln(3)

    pdf.section_header("ARCHIVOS")
    designs = order.design_files or []
    if designs:
        for url in designs:
            pdf.field("Diseño:", url)
    else:
        pdf.field("Diseño:", "Sin diseño — coordinar con el cliente")
    for url in order.payment_proof_files or []:
        pdf.field("Comprobante:", url)
    if order.final_art_url:
        pdf.field("Arte final:", order.final_art_url)

    return bytes(pdf.output())


def generate_orders_report(orders: list, status: str = None) -> bytes:
    """Table of orders with totals at the bottom."""
    title = "REPORTE DE PEDIDOS"
    if status:
        title += f" - {status}"
    pdf = ShopPDF(title=title)
    pdf.alias_nb_pages()
    pdf.add_page()

    pdf.set_font("Helvetica", "", 8)
    pdf.cell(0, 5, f"Generado: {datetime.utcnow().strftime('%d/%m/%Y %H:%M')} UTC",
             new_x="LMARGIN", new_y="NEXT")
    pdf.ln(2)

    cols = [("Código", 22), ("Fecha", 22), ("Cliente", 38), ("Producto", 40),
            ("Cant.", 15), ("Total", 20), ("Pagado", 20), ("Estado", 13)]
    widths = [c[1] for c in cols]
    pdf.table_header(cols)

    total = paid = 0.0
    for o in orders:
        total += o.total_amount or 0
        paid += o.amount_paid or 0
        pdf.table_row([
            o.order_code,
            o.created_at.strftime("%d/%m/%Y") if o.created_at else "",
            f"{o.customer_name} {o.customer_lastname}",
            o.product_name,
            f"{o.quantity:,}",
            f"{o.total_amount or 0:,.2f}",
            f"{o.amount_paid or 0:,.2f}",
            (o.status or "")[:12],
        ], widths)

    pdf.ln(4)
    pdf.set_font("Helvetica", "B", 9)
    pdf.cell(0, 6, f"Pedidos: {len(orders)}", new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 6, f"Total: {_fmt(total)}", new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 6, f"Cobrado: {_fmt(paid)}", new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 6, f"Por cobrar: {_fmt(total - paid)}", new_x="LMARGIN", new_y="NEXT")

    return bytes(pdf.output())
