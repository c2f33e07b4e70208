from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from .. import models, schemas
from ..auth import get_current_admin
from ..database import get_db
from ..pricing_engine import (
    LEGACY_METHODS,
    WIZARD_METHODS,
    PricingEngine,
    PricingError,
    get_price_config,
    validate_price_config,
)

router = APIRouter(prefix="/products", tags=["products"])

pricing_engine = PricingEngine()

PLACEHOLDER_IMAGE = "/images/placeholder.png"


def _tiers(bulk_prices, bonuses, market_per_thousand=95.0):
    return [
        {
            "quantity": (i + 1) * 1000,
            "market_price": market_per_thousand * (i + 1),
            "bulk_price": bulk,
            "full_payment_bonus": bonuses[i],
        }
        for i, bulk in enumerate(bulk_prices)
    ]


# Default catalog — seeded on first run when the products table is empty
DEFAULT_PRODUCTS = [
    {
        "name": "Tarjetas de Presentación",
        "description": "Couché 300g, impresión full color a una o dos caras.",
        "image_url": "/images/tarjetas.png",
        "price_config": {
            "tiers": _tiers([59, 110, 160, 210, 260], [2, 2, 3, 3, 3]),
            "deposit_percent": 60,
            "cash_discount_percent": 10,
        },
    },
    {
        "name": "Volantes A5",
        "description": "Papel bond 75g, full color tiro.",
        "image_url": "/images/volantes.png",
        "price_config": {
            "tiers": _tiers([85, 160, 230], [2, 3, 3], market_per_thousand=130.0),
            "deposit_percent": 60,
            "cash_discount_percent": 0,
        },
    },
    {
        "name": "Stickers Troquelados",
        "description": "Vinil adhesivo con corte al contorno.",
        "image_url": "/images/stickers.png",
        "price_config": {
            "tiers": _tiers([120, 220], [3, 3], market_per_thousand=180.0),
            "deposit_percent": 50,
            "cash_discount_percent": 0,
        },
    },
]


def normalize_image_path(path: Optional[str]) -> str:
    """Always return an absolute path or URL."""
    if not path:
        return PLACEHOLDER_IMAGE
    if path.startswith("/") or path.startswith("http"):
        return path
    return f"/{path}"


def seed_products(db: Session) -> int:
    """Seed the default catalog if no products exist. Returns rows added."""
    if db.query(models.Product).count() > 0:
        return 0
    for data in DEFAULT_PRODUCTS:
        db.add(models.Product(**data))
    db.commit()
    return len(DEFAULT_PRODUCTS)


def get_product_or_404(db: Session, product_id: str, active_only: bool = True) -> models.Product:
    query = db.query(models.Product).filter(models.Product.id == product_id)
    if active_only:
        query = query.filter(models.Product.is_active == True)  # noqa: E712
    product = query.first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _product_summary(p: models.Product) -> dict:
    config = get_price_config(p)
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "image_url": normalize_image_path(p.image_url),
        "starting_price": pricing_engine.starting_price(config),
        "min_quantity": p.min_quantity,
        "is_active": p.is_active,
    }


def _product_detail(p: models.Product) -> dict:
    config = get_price_config(p)
    return {
        **_product_summary(p),
        "deposit_percent": config["deposit_percent"],
        "price_table": pricing_engine.price_table(config),
        "payment_methods": WIZARD_METHODS,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def _validated_config(config: Optional[schemas.PriceConfig]) -> Optional[dict]:
    if config is None:
        return None
    try:
        return validate_price_config(config.model_dump())
    except PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))


# --- Public catalog ---

@router.get("/")
def list_products(db: Session = Depends(get_db)):
    products = db.query(models.Product).filter(
        models.Product.is_active == True  # noqa: E712
    ).order_by(models.Product.created_at).all()
    return [_product_summary(p) for p in products]


@router.get("/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db)):
    return _product_detail(get_product_or_404(db, product_id))


@router.get("/{product_id}/pricing")
def preview_pricing(
    product_id: str,
    quantity: Optional[int] = None,
    method: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """
    Price a quantity before checkout.

    No method → both wizard options. A legacy method (ADELANTO_60_RECOJO,
    TOTAL_RECOJO, TOTAL_ENVIO) prices the tier's bulk price the old way.
    """
    product = get_product_or_404(db, product_id)
    config = get_price_config(product)

    if quantity is None:
        tier = pricing_engine.default_tier(config)
    else:
        tier = pricing_engine.select_tier(config, quantity)
    if not tier:
        available = [t["quantity"] for t in config["tiers"]]
        raise HTTPException(
            status_code=400,
            detail=f"No price for quantity {quantity}. Available: {available}",
        )

    result = {"product_id": product.id, "tier": pricing_engine.tier_summary(tier)}
    try:
        if method is None:
            result["options"] = pricing_engine.payment_options(tier, config["deposit_percent"])
        elif method in LEGACY_METHODS:
            result["pricing"] = pricing_engine.calculate_pricing(tier["bulk_price"], method)
        else:
            result["pricing"] = pricing_engine.calculate_payment(
                tier, config["deposit_percent"], method
            )
    except PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result


# --- Admin ---

@router.post("/")
def create_product(
    product: schemas.ProductCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    data = product.model_dump()
    data["price_config"] = _validated_config(product.price_config)
    db_product = models.Product(**data)
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    return _product_detail(db_product)


@router.patch("/{product_id}")
def update_product(
    product_id: str,
    update: schemas.ProductUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    product = get_product_or_404(db, product_id, active_only=False)
    update_data = update.model_dump(exclude_unset=True)
    if "price_config" in update_data:
        update_data["price_config"] = _validated_config(update.price_config)
    for field, value in update_data.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return _product_detail(product)


@router.delete("/{product_id}")
def deactivate_product(
    product_id: str,
    db: Session = Depends(get_db),
    admin: models.User = Depends(get_current_admin),
):
    """Hide from the catalog. Orders keep their product_id."""
    product = get_product_or_404(db, product_id, active_only=False)
    product.is_active = False
    db.commit()
    return {"ok": True}
