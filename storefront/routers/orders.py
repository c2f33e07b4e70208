"""
One-page order form — the pre-wizard purchase flow.

POST /api/orders — customer data, quantity, one design file (optional),
legacy payment method and payment proof in a single multipart request.

Supports delivery (TOTAL_ENVIO adds the delivery fee), which the wizard
does not offer.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from .. import models, schemas, storage
from ..database import get_db
from ..order_codes import OrderCodeConflict, insert_with_unique_code
from ..pricing_engine import PricingEngine, PricingError, get_price_config
from ..whatsapp import order_link
from .products import get_product_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

pricing_engine = PricingEngine()


@router.post("/")
async def create_order(
    product_id: str = Form(...),
    quantity: int = Form(...),
    payment_method: str = Form(...),
    first_name: str = Form(...),
    last_name: str = Form(...),
    phone: str = Form(...),
    dni: Optional[str] = Form(None),
    ruc: Optional[str] = Form(None),
    payment_proof: UploadFile = File(...),
    design_file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    try:
        customer = schemas.CustomerData(
            first_name=first_name, last_name=last_name, phone=phone, dni=dni, ruc=ruc,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors(include_url=False))

    product = get_product_or_404(db, product_id)
    config = get_price_config(product)
    tier = pricing_engine.select_tier(config, quantity)
    if not tier:
        available = [t["quantity"] for t in config["tiers"]]
        raise HTTPException(
            status_code=400,
            detail=f"No price for quantity {quantity}. Available: {available}",
        )
    try:
        pricing = pricing_engine.calculate_pricing(tier["bulk_price"], payment_method)
    except PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    proof_bytes = await payment_proof.read()
    design_bytes = await design_file.read() if design_file is not None else b""
    try:
        proof_ext = storage.validate_upload(
            payment_proof.filename or "", proof_bytes, storage.PROOF_EXTENSIONS,
        )
        design_ext = None
        if design_bytes:
            design_ext = storage.validate_upload(
                design_file.filename or "", design_bytes, storage.DESIGN_EXTENSIONS,
            )
    except storage.StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))

    design_urls = []
    proof_urls = []

    def build(order_code: str) -> models.Order:
        proof_url = storage.save(
            storage.PAYMENTS, f"{order_code}_PAYMENT_{storage.now_ms()}.{proof_ext}",
            proof_bytes, storage.content_type_for(proof_ext),
        )
        proof_urls.append(proof_url)
        if design_ext and not design_urls:
            key = storage.design_key(storage.design_folder(), design_file.filename)
            design_urls.append(storage.save(
                storage.DESIGNS, key, design_bytes, storage.content_type_for(design_ext),
            ))
        return models.Order(
            order_code=order_code,
            customer_name=customer.first_name,
            customer_lastname=customer.last_name,
            customer_phone=customer.phone,
            customer_dni=customer.dni,
            customer_ruc=customer.ruc,
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            design_files=list(design_urls),
            payment_proof_files=[proof_url],
            user_file_url=design_urls[0] if design_urls else "",
            payment_proof_url=proof_url,
            payment_method_type=pricing["payment_method_type"],
            product_price=pricing["product_price"],
            delivery_fee=pricing["delivery_fee"],
            total_amount=pricing["total_amount"],
            amount_paid=pricing["amount_to_pay_now"],
            amount_pending=pricing["amount_pending"],
            is_delivery=pricing["is_delivery"],
            status=models.OrderStatus.RECEIVED.value,
        )

    def discard_proofs(_order):
        # The design key does not depend on the order code; keep it for the retry.
        storage.discard(proof_urls)
        proof_urls.clear()

    try:
        order = insert_with_unique_code(db, build, cleanup=discard_proofs)
    except storage.StorageError as e:
        storage.discard(proof_urls + design_urls)
        raise HTTPException(status_code=400, detail=str(e))
    except OrderCodeConflict as e:
        logger.error("Order form: %s", e)
        storage.discard(proof_urls + design_urls)
        raise HTTPException(status_code=503, detail="No pudimos generar el código de pedido, intenta de nuevo")
    except Exception:
        logger.exception("Order form: could not store uploaded files")
        db.rollback()
        storage.discard(proof_urls + design_urls)
        raise HTTPException(status_code=502, detail="No pudimos guardar los archivos, intenta de nuevo")
    logger.info("Order %s created from order form (%s)", order.order_code, payment_method)

    return {
        "order_code": order.order_code,
        "order_id": order.id,
        "status": order.status,
        "pricing": pricing,
        "whatsapp_url": order_link(order, paid_in_full=pricing["amount_pending"] == 0),
    }
