"""
Pricing Engine — tiered print pricing.

Pure math, no database access. Products carry a price table of quantity
tiers (market price vs. bulk price, plus a fixed bonus for paying in full)
and a deposit percentage. The engine turns a tier + payment method into
the amounts the customer pays now and later.

Two method families:
- Wizard methods: ADELANTO_60 (deposit now, balance at pickup) and TOTAL
  (full payment, bonus discounted)
- Legacy single-form methods: ADELANTO_60_RECOJO, TOTAL_RECOJO, TOTAL_ENVIO
"""

from typing import Optional

from .config import settings


class PricingError(ValueError):
    """Invalid price table, tier, or payment method."""


WIZARD_METHODS = {
    "ADELANTO_60": {
        "label": "Adelanto 60%",
        "description": "Paga el adelanto ahora y el resto al recoger.",
    },
    "TOTAL": {
        "label": "Pago Total",
        "description": "Paga todo ahora y recibe un bono de descuento.",
    },
}

LEGACY_METHODS = {
    "ADELANTO_60_RECOJO": {
        "label": "Adelanto 60% (Recojo en Tienda)",
        "description": "Paga el 60% ahora y el resto al recoger.",
        "percentage": 0.60,
        "includes_delivery": False,
    },
    "TOTAL_RECOJO": {
        "label": "Pago Completo (Recojo en Tienda)",
        "description": "Sin costo de envío.",
        "percentage": 1.00,
        "includes_delivery": False,
    },
    "TOTAL_ENVIO": {
        "label": "Pago Completo + Envío",
        "description": "Recibe en tu domicilio",
        "percentage": 1.00,
        "includes_delivery": True,
    },
}

# Legacy default table — used for products created before price_config existed.
# Market price is S/ 95 per thousand; bulk prices after 3k step by S/ 50.
_LEGACY_MARKET_PER_THOUSAND = 95.0
_LEGACY_BULK_DEFAULTS = [59.0, 110.0, 160.0, 210.0, 260.0, 310.0, 360.0, 410.0, 460.0, 510.0]


def _round(amount: float) -> float:
    return round(float(amount), 2)


def legacy_price_config(product=None) -> dict:
    """
    Build the default 10-tier table (1000..10000 units).

    The first three bulk prices come from the product's legacy
    base_price_1k/2k/3k columns when set.
    """
    overrides = [
        getattr(product, "base_price_1k", None),
        getattr(product, "base_price_2k", None),
        getattr(product, "base_price_3k", None),
    ]
    tiers = []
    for i, default_bulk in enumerate(_LEGACY_BULK_DEFAULTS):
        thousands = i + 1
        bulk = default_bulk
        if i < len(overrides) and overrides[i]:
            bulk = float(overrides[i])
        tiers.append({
            "quantity": thousands * 1000,
            "market_price": _LEGACY_MARKET_PER_THOUSAND * thousands,
            "bulk_price": bulk,
            "full_payment_bonus": 2.0 if thousands <= 2 else 3.0,
        })
    return {
        "tiers": tiers,
        "cash_discount_percent": 10,
        "deposit_percent": settings.DEFAULT_DEPOSIT_PERCENT,
    }


def get_price_config(product) -> dict:
    """
    Return the product's price_config, falling back to the legacy table
    when it is missing or its tiers are not a non-empty list.
    """
    config = getattr(product, "price_config", None)
    if not isinstance(config, dict):
        return legacy_price_config(product)
    tiers = config.get("tiers")
    if not isinstance(tiers, list) or len(tiers) == 0:
        return legacy_price_config(product)
    return {
        "tiers": tiers,
        "cash_discount_percent": config.get("cash_discount_percent", 0),
        "deposit_percent": config.get("deposit_percent") or settings.DEFAULT_DEPOSIT_PERCENT,
    }


def validate_price_config(config: dict) -> dict:
    """
    Validate an admin-supplied price table. Returns a normalized copy.

    Rules: at least one tier, positive unique quantities, non-negative
    prices, bulk price not above market price, bonus not above bulk price,
    0 < deposit_percent <= 100. Tiers are sorted by quantity.
    """
    if not isinstance(config, dict):
        raise PricingError("price_config must be an object")
    tiers = config.get("tiers")
    if not isinstance(tiers, list) or not tiers:
        raise PricingError("price_config.tiers must be a non-empty list")

    seen = set()
    normalized = []
    for tier in tiers:
        try:
            quantity = int(tier["quantity"])
            market = float(tier["market_price"])
            bulk = float(tier["bulk_price"])
            bonus = float(tier.get("full_payment_bonus") or 0)
        except (KeyError, TypeError, ValueError):
            raise PricingError(
                "Each tier needs quantity, market_price and bulk_price"
            )
        if quantity <= 0:
            raise PricingError(f"Tier quantity must be positive, got {quantity}")
        if quantity in seen:
            raise PricingError(f"Duplicate tier quantity {quantity}")
        if market < 0 or bulk < 0 or bonus < 0:
            raise PricingError(f"Tier {quantity}: prices cannot be negative")
        if bulk > market:
            raise PricingError(f"Tier {quantity}: bulk_price exceeds market_price")
        if bonus > bulk:
            raise PricingError(f"Tier {quantity}: full_payment_bonus exceeds bulk_price")
        seen.add(quantity)
        normalized.append({
            "quantity": quantity,
            "market_price": market,
            "bulk_price": bulk,
            "full_payment_bonus": bonus,
        })

    deposit = config.get("deposit_percent", settings.DEFAULT_DEPOSIT_PERCENT)
    try:
        deposit = float(deposit)
    except (TypeError, ValueError):
        raise PricingError("deposit_percent must be a number")
    if not 0 < deposit <= 100:
        raise PricingError("deposit_percent must be between 0 and 100")

    return {
        "tiers": sorted(normalized, key=lambda t: t["quantity"]),
        "cash_discount_percent": config.get("cash_discount_percent", 0),
        "deposit_percent": deposit,
    }


class PricingEngine:
    """Turns price tables into payable amounts."""

    def __init__(self, delivery_fee: Optional[float] = None,
                 default_deposit_percent: Optional[float] = None):
        self.delivery_fee = settings.DELIVERY_FEE if delivery_fee is None else delivery_fee
        self.default_deposit_percent = (
            default_deposit_percent
            if default_deposit_percent is not None
            else settings.DEFAULT_DEPOSIT_PERCENT
        )

    # --- Tiers ---

    def select_tier(self, config: dict, quantity: int) -> Optional[dict]:
        """Exact quantity match, else None."""
        for tier in config.get("tiers") or []:
            if tier.get("quantity") == quantity:
                return tier
        return None

    def default_tier(self, config: dict) -> Optional[dict]:
        tiers = config.get("tiers") or []
        return tiers[0] if tiers else None

    def tier_summary(self, tier: dict) -> dict:
        """
        Price per thousand units and savings vs. market price.
        """
        quantity = tier.get("quantity") or 0
        bulk = tier.get("bulk_price") or 0
        market = tier.get("market_price") or 0
        per_thousand = bulk / (quantity / 1000) if quantity else 0.0
        return {
            "quantity": quantity,
            "market_price": market,
            "bulk_price": bulk,
            "full_payment_bonus": tier.get("full_payment_bonus") or 0,
            "price_per_thousand": _round(per_thousand),
            "savings": _round(market - bulk),
        }

    def price_table(self, config: dict) -> list:
        return [self.tier_summary(t) for t in config.get("tiers") or []]

    def starting_price(self, config: dict) -> Optional[float]:
        tier = self.default_tier(config)
        return tier.get("bulk_price") if tier else None

    # --- Wizard payments ---

    def calculate_payment(self, tier: dict, deposit_percent: Optional[float], method: str) -> dict:
        """
        Amounts for a wizard payment method.

        - ADELANTO_60: pay deposit_percent of the bulk price now, rest later
        - TOTAL: pay bulk price minus the full-payment bonus, nothing pending

        total_amount is always the bulk price; the bonus only lowers what is
        actually paid.
        """
        if method not in WIZARD_METHODS:
            raise PricingError(
                f"payment_method must be one of {sorted(WIZARD_METHODS)}, got {method!r}"
            )
        if not tier:
            raise PricingError("No price tier selected")

        bulk_price = float(tier.get("bulk_price") or 0)
        bonus = float(tier.get("full_payment_bonus") or 0)
        deposit_pct = deposit_percent or self.default_deposit_percent

        final_with_bonus = _round(bulk_price - bonus)
        deposit_amount = _round(bulk_price * deposit_pct / 100)

        if method == "ADELANTO_60":
            amount_to_pay = deposit_amount
            amount_pending = _round(bulk_price - deposit_amount)
            bonus_applied = 0.0
        else:
            amount_to_pay = final_with_bonus
            amount_pending = 0.0
            bonus_applied = bonus

        return {
            "payment_method": method,
            "payment_method_type": WIZARD_METHODS[method]["label"],
            "quantity": tier.get("quantity"),
            "product_price": bulk_price,
            "total_amount": bulk_price,
            "deposit_percent": deposit_pct,
            "deposit_amount": deposit_amount,
            "full_payment_bonus": bonus_applied,
            "final_price_with_bonus": final_with_bonus,
            "amount_to_pay": amount_to_pay,
            "amount_pending": amount_pending,
            "delivery_fee": 0.0,
        }

    def payment_options(self, tier: dict, deposit_percent: Optional[float]) -> dict:
        """Both wizard previews side by side — step 4 summary cards."""
        return {
            method: self.calculate_payment(tier, deposit_percent, method)
            for method in WIZARD_METHODS
        }

    # --- Legacy single-form payments ---

    def calculate_pricing(self, product_price: float, payment_method: str) -> dict:
        """
        Legacy pricing for the one-page order form.

        ADELANTO_60_RECOJO: 60% now, pickup. TOTAL_RECOJO: 100% now, pickup.
        TOTAL_ENVIO: 100% + delivery fee now.
        """
        if payment_method not in LEGACY_METHODS:
            raise PricingError(
                f"payment_method must be one of {sorted(LEGACY_METHODS)}, got {payment_method!r}"
            )

        delivery_fee = 0.0
        total_amount = product_price
        amount_pending = 0.0

        if payment_method == "ADELANTO_60_RECOJO":
            amount_to_pay_now = _round(product_price * LEGACY_METHODS[payment_method]["percentage"])
            amount_pending = _round(product_price - amount_to_pay_now)
        elif payment_method == "TOTAL_RECOJO":
            amount_to_pay_now = product_price
        else:
            delivery_fee = self.delivery_fee
            total_amount = _round(product_price + delivery_fee)
            amount_to_pay_now = total_amount

        return {
            "payment_method": payment_method,
            "payment_method_type": LEGACY_METHODS[payment_method]["label"],
            "product_price": product_price,
            "delivery_fee": delivery_fee,
            "total_amount": total_amount,
            "amount_to_pay_now": amount_to_pay_now,
            "amount_pending": amount_pending,
            "is_delivery": LEGACY_METHODS[payment_method]["includes_delivery"],
        }
