"""
Checkout API — the 4-step purchase wizard.

POST   /api/checkout/start                   — Start a wizard for a product
GET    /api/checkout/{id}                    — Current wizard state
PUT    /api/checkout/{id}/quantity           — Step 1: pick a tier
PUT    /api/checkout/{id}/customer           — Step 2: customer data
POST   /api/checkout/{id}/designs            — Step 3: upload design files
POST   /api/checkout/{id}/designs/skip       — Step 3: continue without designs
DELETE /api/checkout/{id}/designs/{filename} — Step 3: remove one design
PUT    /api/checkout/{id}/payment-method     — Step 4: ADELANTO_60 | TOTAL
GET    /api/checkout/{id}/summary            — Step 4: payment previews
POST   /api/checkout/{id}/submit             — Step 4: proof upload + create order
POST   /api/checkout/{id}/back | goto/{step} | reset — Navigation
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import models, schemas, storage
from ..checkout import STEP_PAYMENT, CheckoutError, CheckoutWizard
from ..database import get_db
from ..order_codes import OrderCodeConflict, insert_with_unique_code
from ..pricing_engine import PricingError
from ..whatsapp import order_link
from .products import get_product_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])

wizard = CheckoutWizard()


class StartRequest(BaseModel):
    product_id: str


class QuantityRequest(BaseModel):
    quantity: int


class PaymentMethodRequest(BaseModel):
    payment_method: str


def _get_session(db: Session, session_id: str) -> models.CheckoutSession:
    session = db.query(models.CheckoutSession).filter(
        models.CheckoutSession.id == session_id
    ).first()
    if not session:
        raise HTTPException(status_code=404, detail="Checkout session not found")
    return session


def _raise_http(e: Exception):
    if isinstance(e, CheckoutError):
        raise HTTPException(status_code=e.status_code, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


def _session_to_dict(s: models.CheckoutSession) -> dict:
    tier = s.selected_tier
    return {
        "session_id": s.id,
        "product_id": s.product_id,
        "product_name": s.product.name if s.product else None,
        "step": s.step,
        "max_step": wizard.max_reachable_step(s),
        "selected_quantity": s.selected_quantity,
        "selected_tier": wizard.pricing.tier_summary(tier) if tier else None,
        "customer": s.customer or {},
        "design_files": s.design_files or [],
        "designs_done": bool(s.designs_done),
        "payment_method": s.payment_method,
        "order_code": s.order_code,
        "status": s.status,
    }


@router.post("/start")
def start_checkout(request: StartRequest, db: Session = Depends(get_db)):
    product = get_product_or_404(db, request.product_id)
    session = wizard.start(db, product)
    db.commit()
    db.refresh(session)
    return _session_to_dict(session)


@router.get("/{session_id}")
def get_checkout(session_id: str, db: Session = Depends(get_db)):
    return _session_to_dict(_get_session(db, session_id))


@router.put("/{session_id}/quantity")
def set_quantity(session_id: str, request: QuantityRequest, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    try:
        wizard.set_quantity(session, request.quantity)
    except CheckoutError as e:
        _raise_http(e)
    db.commit()
    db.refresh(session)
    return _session_to_dict(session)


@router.put("/{session_id}/customer")
def set_customer(session_id: str, customer: schemas.CustomerData, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    try:
        wizard.set_customer(session, customer.model_dump())
    except CheckoutError as e:
        _raise_http(e)
    db.commit()
    db.refresh(session)
    return _session_to_dict(session)


@router.post("/{session_id}/designs")
async def upload_designs(
    session_id: str,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
):
    """
    Upload design files (images, PDF, Word).

    Invalid files are rejected individually; the step fails only when no
    file is usable. A file that fails to store is skipped and reported.
    """
    session = _get_session(db, session_id)
    try:
        wizard.require_designs_step(session)
    except CheckoutError as e:
        _raise_http(e)

    folder = storage.design_folder()
    uploaded, rejected = [], []
    for upload in files:
        data = await upload.read()
        name = upload.filename or "archivo"
        try:
            ext = storage.validate_upload(name, data, storage.DESIGN_EXTENSIONS)
            key = storage.design_key(folder, name)
            url = storage.save(storage.DESIGNS, key, data, storage.content_type_for(ext))
        except storage.StorageError as e:
            rejected.append({"name": name, "error": str(e)})
            continue
        except Exception as e:
            logger.warning("Design upload failed for %s: %s", name, e)
            rejected.append({"name": name, "error": "Upload failed"})
            continue
        uploaded.append({"name": name, "url": url})

    if not uploaded:
        raise HTTPException(
            status_code=400,
            detail={"message": "Por favor selecciona archivos válidos (Imágenes, PDF, Word)",
                    "rejected": rejected},
        )

    wizard.add_designs(session, uploaded)
    db.commit()
    db.refresh(session)
    return {**_session_to_dict(session), "uploaded": uploaded, "rejected": rejected}


@router.post("/{session_id}/designs/skip")
def skip_designs(session_id: str, db: Session = Depends(get_db)):
    """No artwork yet — the design team will contact the customer."""
    session = _get_session(db, session_id)
    try:
        wizard.skip_designs(session)
    except CheckoutError as e:
        _raise_http(e)
    db.commit()
    db.refresh(session)
    return _session_to_dict(session)


@router.delete("/{session_id}/designs/{filename}")
def remove_design(session_id: str, filename: str, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    try:
        removed = wizard.remove_design(session, filename)
    except CheckoutError as e:
        _raise_http(e)
    if removed is None:
        raise HTTPException(status_code=404, detail="Design file not found")
    db.commit()
    storage.discard([removed["url"]])
    db.refresh(session)
    return _session_to_dict(session)


@router.put("/{session_id}/payment-method")
def set_payment_method(session_id: str, request: PaymentMethodRequest, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    try:
        wizard.set_payment_method(session, request.payment_method)
    except (CheckoutError, PricingError) as e:
        _raise_http(e)
    db.commit()
    db.refresh(session)
    return _session_to_dict(session)


@router.get("/{session_id}/summary")
def checkout_summary(session_id: str, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    try:
        return wizard.summary(session)
    except CheckoutError as e:
        _raise_http(e)


@router.post("/{session_id}/submit")
async def submit_order(
    session_id: str,
    payment_method: str = Form(...),
    payment_proof: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """
    Final step: store the Yape screenshot, create the order, close the wizard.

    The session is claimed before anything is stored, so concurrent submits
    produce one order and the rest get 409. If the order cannot be created
    the proof is deleted and the session reopens.

    Returns the order and a WhatsApp link with the prefilled confirmation.
    """
    session = _get_session(db, session_id)
    try:
        wizard.require_active(session)
        if wizard.max_reachable_step(session) < STEP_PAYMENT:
            raise CheckoutError("Complete the previous steps first")
        wizard.pricing.calculate_payment(
            session.selected_tier, wizard.deposit_percent(session), payment_method,
        )
    except (CheckoutError, PricingError) as e:
        _raise_http(e)

    data = await payment_proof.read()
    try:
        ext = storage.validate_upload(payment_proof.filename or "", data, storage.PROOF_EXTENSIONS)
    except storage.StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        wizard.claim(db, session)
    except CheckoutError as e:
        _raise_http(e)

    stored = []

    def build(order_code: str) -> models.Order:
        key = f"{order_code}_YAPE_{storage.now_ms()}.{ext}"
        proof_url = storage.save(storage.PAYMENTS, key, data, storage.content_type_for(ext))
        stored.append(proof_url)
        return wizard.build_order(session, payment_method, order_code, proof_url)

    def discard_proofs(_order):
        storage.discard(stored)
        stored.clear()

    try:
        order = insert_with_unique_code(db, build, cleanup=discard_proofs)
    except storage.StorageError as e:
        _abandon_submit(db, session, stored)
        raise HTTPException(status_code=400, detail=str(e))
    except OrderCodeConflict as e:
        logger.error("Checkout %s: %s", session_id, e)
        _abandon_submit(db, session, stored)
        raise HTTPException(status_code=503, detail="No pudimos generar el código de pedido, intenta de nuevo")
    except Exception:
        logger.exception("Checkout %s: could not store payment proof", session_id)
        _abandon_submit(db, session, stored)
        raise HTTPException(status_code=502, detail="No pudimos guardar el comprobante, intenta de nuevo")

    deposit = wizard.deposit_percent(session)
    return {
        "order_code": order.order_code,
        "order_id": order.id,
        "status": order.status,
        "total_amount": order.total_amount,
        "amount_paid": order.amount_paid,
        "amount_pending": order.amount_pending,
        "payment_method_type": order.payment_method_type,
        "whatsapp_url": order_link(order, paid_in_full=payment_method == "TOTAL",
                                   deposit_percent=deposit),
    }


def _abandon_submit(db: Session, session: models.CheckoutSession, stored: list) -> None:
    storage.discard(stored)
    wizard.release(db, session)


@router.post("/{session_id}/back")
def previous_step(session_id: str, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    try:
        wizard.back(session)
    except CheckoutError as e:
        _raise_http(e)
    db.commit()
    db.refresh(session)
    return _session_to_dict(session)


@router.post("/{session_id}/goto/{step}")
def go_to_step(session_id: str, step: int, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    try:
        wizard.go_to(session, step)
    except CheckoutError as e:
        _raise_http(e)
    db.commit()
    db.refresh(session)
    return _session_to_dict(session)


@router.post("/{session_id}/reset")
def reset_checkout(session_id: str, db: Session = Depends(get_db)):
    session = _get_session(db, session_id)
    try:
        dropped = wizard.reset(session)
    except CheckoutError as e:
        _raise_http(e)
    db.commit()
    storage.discard(dropped)
    db.refresh(session)
    return _session_to_dict(session)
