"""
Public order tracking.

GET  /api/tracking/{code} — look up an order by (roughly) its code
POST /api/tracking        — same, code in the body (for pasted text with slashes)

Only privacy-filtered fields leave this endpoint: no phone, no DNI/RUC,
no amounts, and the last name reduced to an initial.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..order_codes import find_order, mask_customer_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracking", tags=["tracking"])

STEP_DESCRIPTIONS = {
    models.OrderStatus.RECEIVED: "Tu pedido ha ingresado al sistema.",
    models.OrderStatus.IN_DESIGN: "Nuestro equipo está trabajando en tu arte.",
    models.OrderStatus.REVIEW: "Esperando tu visto bueno del diseño.",
    models.OrderStatus.IN_PRODUCTION: "Tu pedido está siendo impreso.",
    models.OrderStatus.READY: "Puedes recoger tu pedido o esperar el envío.",
}

NOT_FOUND = "No encontramos un pedido con ese código. Verifica que esté bien escrito (ej. WK-xxxx)."


def status_timeline(status: str) -> list:
    """Every pipeline status, flagged completed/current relative to `status`."""
    values = [s.value for s in models.ORDER_STATUS_FLOW]
    current_idx = values.index(status) if status in values else -1
    return [
        {
            "status": s.value,
            "label": s.value,
            "description": STEP_DESCRIPTIONS[s],
            "completed": idx <= current_idx,
            "current": idx == current_idx,
        }
        for idx, s in enumerate(models.ORDER_STATUS_FLOW)
    ]


def public_order(order: models.Order) -> dict:
    return {
        "order_code": order.order_code,
        "status": order.status,
        "product_name": order.product_name,
        "quantity": order.quantity,
        "customer_name": mask_customer_name(order.customer_name, order.customer_lastname),
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "final_art_url": order.final_art_url,
        "steps": status_timeline(order.status),
    }


def _track(db: Session, code: str) -> dict:
    try:
        order = find_order(db, code)
    except SQLAlchemyError as e:
        logger.error("Tracking lookup failed for %r: %s", code, e)
        order = None
    if not order:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return public_order(order)


@router.get("/{code}")
def track_order(code: str, db: Session = Depends(get_db)):
    return _track(db, code)


@router.post("/")
def track_order_body(request: schemas.TrackingRequest, db: Session = Depends(get_db)):
    return _track(db, request.code)
