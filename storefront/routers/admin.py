"""
Admin dashboard endpoints — staff only.

GET   /api/admin/stats                      — counts and money at a glance
GET   /api/admin/orders                     — list/filter/search orders
GET   /api/admin/orders/report.pdf          — printable orders report
GET   /api/admin/orders/{id}                — full order, including private fields
PATCH /api/admin/orders/{id}/status         — move through the pipeline
PATCH /api/admin/orders/{id}/final-art      — link the approved artwork
GET   /api/admin/orders/{id}/files.zip      — designs + payment proofs
GET   /api/admin/orders/{id}/pdf            — order sheet
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_admin
from ..database import get_db
from ..exports import build_order_zip, zip_filename
from ..pdf_generator import generate_order_pdf, generate_orders_report
from .quotes import display_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

ORDER_STATUSES = [s.value for s in models.ORDER_STATUS_FLOW]


def _order_to_dict(o: models.Order) -> dict:
    return {
        "id": o.id,
        "order_code": o.order_code,
        "customer_name": o.customer_name,
        "customer_lastname": o.customer_lastname,
        "customer_phone": o.customer_phone,
        "customer_dni": o.customer_dni,
        "customer_ruc": o.customer_ruc,
        "product_id": o.product_id,
        "product_name": o.product_name,
        "quantity": o.quantity,
        "material_type": o.material_type,
        "design_files": o.design_files or [],
        "payment_proof_files": o.payment_proof_files or [],
        "final_art_url": o.final_art_url,
        "payment_method_type": o.payment_method_type,
        "product_price": o.product_price,
        "delivery_fee": o.delivery_fee,
        "total_amount": o.total_amount,
        "amount_paid": o.amount_paid,
        "amount_pending": o.amount_pending,
        "is_delivery": o.is_delivery,
        "status": o.status,
        "created_at": o.created_at.isoformat() if o.created_at else None,
        "updated_at": o.updated_at.isoformat() if o.updated_at else None,
    }


def _get_order(db: Session, order_id: str) -> models.Order:
    order = db.query(models.Order).filter(models.Order.id == order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _validate_status(status: Optional[str]) -> None:
    if status and status not in ORDER_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"status must be one of {ORDER_STATUSES}, got {status!r}",
        )


def _filtered_orders(db: Session, status: Optional[str], search: Optional[str]):
    query = db.query(models.Order)
    if status:
        query = query.filter(models.Order.status == status)
    if search:
        term = f"%{search.strip()}%"
        full_name = models.Order.customer_name + " " + models.Order.customer_lastname
        query = query.filter(or_(
            models.Order.order_code.ilike(term),
            models.Order.customer_name.ilike(term),
            models.Order.customer_lastname.ilike(term),
            full_name.ilike(term),
            models.Order.customer_phone.ilike(term),
        ))
    return query.order_by(models.Order.created_at.desc())


@router.get("/stats")
def dashboard_stats(
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    counts = dict(
        db.query(models.Order.status, func.count(models.Order.id))
        .group_by(models.Order.status).all()
    )
    totals = db.query(
        func.coalesce(func.sum(models.Order.total_amount), 0.0),
        func.coalesce(func.sum(models.Order.amount_paid), 0.0),
        func.coalesce(func.sum(models.Order.amount_pending), 0.0),
    ).one()
    pending_quotes = sum(
        1 for q in db.query(models.Quote.status).all()
        if display_status(q.status) == models.QuoteStatus.PENDING.value
    )
    return {
        "orders_by_status": {s: counts.get(s, 0) for s in ORDER_STATUSES},
        "orders_total": sum(counts.values()),
        "total_amount": round(float(totals[0]), 2),
        "amount_paid": round(float(totals[1]), 2),
        "amount_pending": round(float(totals[2]), 2),
        "pending_quotes": pending_quotes,
    }


@router.get("/orders")
def list_orders(
    status: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    _validate_status(status)
    orders = _filtered_orders(db, status, search).offset(skip).limit(limit).all()
    return [_order_to_dict(o) for o in orders]


@router.get("/orders/report.pdf")
def orders_report(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    _validate_status(status)
    orders = _filtered_orders(db, status, None).all()
    pdf_bytes = generate_orders_report(orders, status)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="Reporte_Pedidos.pdf"'},
    )


@router.get("/orders/{order_id}")
def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    return _order_to_dict(_get_order(db, order_id))


@router.patch("/orders/{order_id}/status")
def update_order_status(
    order_id: str,
    update: schemas.OrderStatusUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    _validate_status(update.status)
    if not update.status:
        raise HTTPException(status_code=400, detail="status is required")
    order = _get_order(db, order_id)
    previous = order.status
    order.status = update.status
    db.commit()
    db.refresh(order)
    logger.info("Order %s: %s -> %s (by %s)", order.order_code, previous, order.status, admin.email)
    return _order_to_dict(order)


@router.patch("/orders/{order_id}/final-art")
def update_final_art(
    order_id: str,
    update: schemas.FinalArtUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    order = _get_order(db, order_id)
    order.final_art_url = update.final_art_url or None
    db.commit()
    db.refresh(order)
    return _order_to_dict(order)


@router.get("/orders/{order_id}/files.zip")
def download_order_files(
    order_id: str,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    order = _get_order(db, order_id)
    if not (order.design_files or order.payment_proof_files):
        raise HTTPException(status_code=404, detail="Order has no files")
    zip_bytes, skipped = build_order_zip(order)
    headers = {"Content-Disposition": f'attachment; filename="{zip_filename(order.order_code)}"'}
    if skipped:
        headers["X-Skipped-Files"] = str(len(skipped))
    return Response(content=zip_bytes, media_type="application/zip", headers=headers)


@router.get("/orders/{order_id}/pdf")
def download_order_pdf(
    order_id: str,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    order = _get_order(db, order_id)
    return Response(
        content=generate_order_pdf(order),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="Pedido_{order.order_code}.pdf"'},
    )
