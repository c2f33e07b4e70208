from pydantic import BaseModel, Field, field_validator
from typing import Optional, List

from .models import SERVICE_TYPES, QuoteStatus


PHONE_PATTERN = r"^9\d{8}$"


class CustomerData(BaseModel):
    first_name: str = Field(..., min_length=2)
    last_name: str = Field(..., min_length=2)
    phone: str = Field(..., pattern=PHONE_PATTERN)  # 9 digits, starts with 9
    dni: Optional[str] = None
    ruc: Optional[str] = None

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("phone", mode="before")
    @classmethod
    def strip_phone(cls, v):
        return v.replace(" ", "").strip() if isinstance(v, str) else v

    @field_validator("dni", "ruc", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


class PriceTier(BaseModel):
    quantity: int
    market_price: float
    bulk_price: float
    full_payment_bonus: float = 0.0


class PriceConfig(BaseModel):
    tiers: List[PriceTier]
    deposit_percent: float = 60.0
    cash_discount_percent: float = 0.0  # Deprecated — kept for old rows


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    price_config: Optional[PriceConfig] = None
    min_quantity: int = 1000
    is_active: bool = True


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    price_config: Optional[PriceConfig] = None
    min_quantity: Optional[int] = None
    is_active: Optional[bool] = None


class QuoteCreate(BaseModel):
    name: str = Field(..., min_length=2)
    phone: str = Field(..., min_length=6)
    email: Optional[str] = None
    service_type: str
    quantity: Optional[int] = None
    message: Optional[str] = None

    @field_validator("service_type")
    @classmethod
    def known_service(cls, v):
        if v not in SERVICE_TYPES:
            raise ValueError(f"service_type must be one of {SERVICE_TYPES}")
        return v


class QuoteStatusUpdate(BaseModel):
    status: QuoteStatus


class OrderStatusUpdate(BaseModel):
    status: str


class FinalArtUpdate(BaseModel):
    final_art_url: Optional[str] = None


class TrackingRequest(BaseModel):
    code: str
