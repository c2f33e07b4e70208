from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from .. import models, schemas
from ..auth import get_current_admin
from ..database import get_db
from ..whatsapp import quote_link

router = APIRouter(prefix="/quotes", tags=["quotes"])

QUOTE_STATUSES = [s.value for s in models.QuoteStatus]


def display_status(status: Optional[str]) -> str:
    """Unknown or empty statuses show as Pendiente."""
    return status if status in QUOTE_STATUSES else models.QuoteStatus.PENDING.value


def _quote_to_dict(q: models.Quote) -> dict:
    return {
        "id": q.id,
        "name": q.name,
        "phone": q.phone,
        "email": q.email,
        "service_type": q.service_type,
        "quantity": q.quantity,
        "message": q.message,
        "status": display_status(q.status),
        "created_at": q.created_at.isoformat() if q.created_at else None,
    }


@router.post("/")
def create_quote(quote: schemas.QuoteCreate, db: Session = Depends(get_db)):
    """Contact form — store the request and hand back the WhatsApp link."""
    db_quote = models.Quote(**quote.model_dump(), status=models.QuoteStatus.PENDING.value)
    db.add(db_quote)
    db.commit()
    db.refresh(db_quote)
    return {
        **_quote_to_dict(db_quote),
        "whatsapp_url": quote_link(quote.name, quote.service_type, quote.message),
    }


@router.get("/service-types")
def list_service_types():
    return models.SERVICE_TYPES


@router.get("/")
def list_quotes(
    status: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    query = db.query(models.Quote)
    if status:
        query = query.filter(models.Quote.status == status)
    quotes = query.order_by(models.Quote.created_at.desc(), models.Quote.id.desc()).offset(skip).limit(limit).all()
    pending = sum(
        1 for q in db.query(models.Quote.status).all()
        if display_status(q.status) == models.QuoteStatus.PENDING.value
    )
    return {
        "quotes": [_quote_to_dict(q) for q in quotes],
        "pending_count": pending,
    }


@router.patch("/{quote_id}/status")
def update_quote_status(
    quote_id: int,
    update: schemas.QuoteStatusUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    quote = db.query(models.Quote).filter(models.Quote.id == quote_id).first()
    if not quote:
        raise HTTPException(status_code=404, detail="Quote not found")
    quote.status = update.status.value
    db.commit()
    db.refresh(quote)
    return _quote_to_dict(quote)
