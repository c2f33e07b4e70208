"""
Purchase wizard — 4 steps, server-held state.

1. Quantity   — pick a tier from the product's price table
2. Customer   — name, phone, optional DNI/RUC
3. Designs    — upload artwork, or skip and let the design team call
4. Payment    — choose deposit or full payment, upload the Yape proof

Each step can only be entered once the steps before it are complete.
Going back never discards data; reset() does.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from . import models
from .config import settings
from .pricing_engine import PricingEngine, get_price_config

logger = logging.getLogger(__name__)

STEP_QUANTITY = 1
STEP_CUSTOMER = 2
STEP_DESIGNS = 3
STEP_PAYMENT = 4
STEPS = (STEP_QUANTITY, STEP_CUSTOMER, STEP_DESIGNS, STEP_PAYMENT)


class CheckoutError(Exception):
    """Wizard rule violated — missing prerequisite or bad input."""
    status_code = 400


class CheckoutClosed(CheckoutError):
    """Session already produced an order."""
    status_code = 409


class CheckoutWizard:
    """Applies wizard transitions to a CheckoutSession row. Caller commits."""

    def __init__(self, pricing_engine: Optional[PricingEngine] = None):
        self.pricing = pricing_engine or PricingEngine()

    # --- Lifecycle ---

    def start(self, db: Session, product: models.Product) -> models.CheckoutSession:
        session = models.CheckoutSession(product_id=product.id)
        session.product = product
        self._apply_defaults(session)
        db.add(session)
        return session

    def reset(self, session: models.CheckoutSession) -> list:
        """Back to defaults. Returns the URLs of the dropped design files."""
        self.require_active(session)
        dropped = [d["url"] for d in session.design_files or []]
        self._apply_defaults(session)
        return dropped

    def claim(self, db: Session, session: models.CheckoutSession) -> None:
        """
        Atomically move an active session to complete and commit.

        Only one of several concurrent submits can win the conditional
        UPDATE; the rest get CheckoutClosed.
        """
        claimed = db.query(models.CheckoutSession).filter(
            models.CheckoutSession.id == session.id,
            models.CheckoutSession.status == models.CheckoutStatus.ACTIVE.value,
        ).update(
            {"status": models.CheckoutStatus.COMPLETE.value},
            synchronize_session=False,
        )
        db.commit()
        if not claimed:
            raise CheckoutClosed("Checkout is complete")
        db.refresh(session)

    def release(self, db: Session, session: models.CheckoutSession) -> None:
        """Undo claim() when the order could not be created."""
        db.rollback()
        session.status = models.CheckoutStatus.ACTIVE.value
        session.order_code = None
        db.commit()
        logger.info("Checkout %s released after failed submit", session.id)

    def _apply_defaults(self, session: models.CheckoutSession) -> None:
        config = get_price_config(session.product)
        tier = self.pricing.select_tier(config, settings.DEFAULT_QUANTITY)
        if tier is None:
            tier = self.pricing.default_tier(config)
        session.step = STEP_QUANTITY
        session.selected_quantity = tier["quantity"] if tier else settings.DEFAULT_QUANTITY
        session.selected_tier = tier
        session.customer = {}
        session.design_files = []
        session.designs_done = False
        session.payment_method = "TOTAL"
        session.order_code = None
        session.status = models.CheckoutStatus.ACTIVE.value

    def require_active(self, session: models.CheckoutSession) -> None:
        if session.status != models.CheckoutStatus.ACTIVE.value:
            raise CheckoutClosed(f"Checkout is {session.status}")

    # --- Navigation ---

    def max_reachable_step(self, session: models.CheckoutSession) -> int:
        if not session.selected_tier:
            return STEP_QUANTITY
        if not self.customer_complete(session):
            return STEP_CUSTOMER
        if not session.designs_done:
            return STEP_DESIGNS
        return STEP_PAYMENT

    def go_to(self, session: models.CheckoutSession, step: int) -> None:
        self.require_active(session)
        if step not in STEPS:
            raise CheckoutError(f"step must be one of {list(STEPS)}")
        reachable = self.max_reachable_step(session)
        if step > reachable:
            raise CheckoutError(f"Complete step {reachable} before going to step {step}")
        session.step = step

    def back(self, session: models.CheckoutSession) -> None:
        self.require_active(session)
        session.step = max(STEP_QUANTITY, (session.step or STEP_QUANTITY) - 1)

    # --- Step 1 ---

    def set_quantity(self, session: models.CheckoutSession, quantity: int) -> dict:
        self.require_active(session)
        config = get_price_config(session.product)
        tier = self.pricing.select_tier(config, quantity)
        if tier is None:
            available = [t.get("quantity") for t in config["tiers"]]
            raise CheckoutError(f"No price for quantity {quantity}. Available: {available}")
        session.selected_quantity = quantity
        session.selected_tier = tier
        session.step = STEP_CUSTOMER
        return tier

    # --- Step 2 ---

    def customer_complete(self, session: models.CheckoutSession) -> bool:
        customer = session.customer or {}
        return all(customer.get(k) for k in ("first_name", "last_name", "phone"))

    def set_customer(self, session: models.CheckoutSession, customer: dict) -> None:
        self.require_active(session)
        if not session.selected_tier:
            raise CheckoutError("Select a quantity first")
        merged = dict(session.customer or {})
        merged.update(customer)
        session.customer = merged
        flag_modified(session, "customer")
        session.step = STEP_DESIGNS

    # --- Step 3 ---

    def require_designs_step(self, session: models.CheckoutSession) -> None:
        self.require_active(session)
        if self.max_reachable_step(session) < STEP_DESIGNS:
            raise CheckoutError("Complete customer data first")

    def add_designs(self, session: models.CheckoutSession, uploaded: list) -> None:
        """uploaded: [{"name": original filename, "url": stored url}]"""
        self.require_designs_step(session)
        session.design_files = list(session.design_files or []) + list(uploaded)
        flag_modified(session, "design_files")
        session.designs_done = True
        session.step = STEP_PAYMENT

    def skip_designs(self, session: models.CheckoutSession) -> None:
        self.require_designs_step(session)
        session.designs_done = True
        session.step = STEP_PAYMENT

    def remove_design(self, session: models.CheckoutSession, filename: str) -> Optional[dict]:
        """Drop a design by original filename. Returns the removed entry or None."""
        self.require_active(session)
        removed = None
        kept = []
        for entry in session.design_files or []:
            if removed is None and entry.get("name") == filename:
                removed = entry
            else:
                kept.append(entry)
        session.design_files = kept
        flag_modified(session, "design_files")
        return removed

    # --- Step 4 ---

    def set_payment_method(self, session: models.CheckoutSession, method: str) -> None:
        self.require_active(session)
        # Validates the method
        self.pricing.calculate_payment(session.selected_tier, self.deposit_percent(session), method)
        session.payment_method = method

    def deposit_percent(self, session: models.CheckoutSession) -> float:
        return get_price_config(session.product)["deposit_percent"]

    def summary(self, session: models.CheckoutSession) -> dict:
        """Step 4 cards: both payment options plus the selected one."""
        if self.max_reachable_step(session) < STEP_PAYMENT:
            raise CheckoutError("Complete the previous steps first")
        tier = session.selected_tier
        deposit = self.deposit_percent(session)
        return {
            "product_name": session.product.name,
            "quantity": session.selected_quantity,
            "tier": self.pricing.tier_summary(tier),
            "customer": session.customer,
            "design_files": session.design_files or [],
            "selected_method": session.payment_method,
            "options": self.pricing.payment_options(tier, deposit),
        }

    def build_order(
        self,
        session: models.CheckoutSession,
        method: str,
        order_code: str,
        proof_url: str,
    ) -> models.Order:
        """Create the Order for a wizard already taken by claim()."""
        if session.status != models.CheckoutStatus.COMPLETE.value:
            raise CheckoutError("Checkout must be claimed before creating its order")
        if self.max_reachable_step(session) < STEP_PAYMENT:
            raise CheckoutError("Complete the previous steps first")

        payment = self.pricing.calculate_payment(
            session.selected_tier, self.deposit_percent(session), method,
        )
        customer = session.customer or {}
        design_urls = [d["url"] for d in session.design_files or []]

        order = models.Order(
            order_code=order_code,
            customer_name=customer.get("first_name", ""),
            customer_lastname=customer.get("last_name", ""),
            customer_phone=customer.get("phone", ""),
            customer_dni=customer.get("dni") or None,
            customer_ruc=customer.get("ruc") or None,
            product_id=session.product_id,
            product_name=session.product.name,
            quantity=session.selected_quantity,
            material_type="Estándar",
            design_files=design_urls,
            payment_proof_files=[proof_url],
            user_file_url=design_urls[0] if design_urls else "",
            payment_proof_url=proof_url,
            payment_method_type=payment["payment_method_type"],
            product_price=payment["product_price"],
            delivery_fee=0.0,
            total_amount=payment["total_amount"],
            amount_paid=payment["amount_to_pay"],
            amount_pending=payment["amount_pending"],
            is_delivery=False,
            status=models.OrderStatus.RECEIVED.value,
        )

        session.payment_method = method
        session.order_code = order_code
        session.status = models.CheckoutStatus.COMPLETE.value
        logger.info("Checkout %s produced order %s", session.id, order_code)
        return order
