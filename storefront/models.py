from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from .database import Base
import enum
import uuid


def _uuid() -> str:
    return str(uuid.uuid4())


# --- Enums ---
# Stored as VARCHAR, not Enum columns, so the shop can rename a status
# without a migration. Enums are the validation reference.

class OrderStatus(str, enum.Enum):
    RECEIVED = "Pedido Recibido"
    IN_DESIGN = "En Diseño"
    REVIEW = "Revisión"
    IN_PRODUCTION = "En Producción"
    READY = "Listo"


# Pipeline order — tracking timeline renders in this order
ORDER_STATUS_FLOW = [
    OrderStatus.RECEIVED,
    OrderStatus.IN_DESIGN,
    OrderStatus.REVIEW,
    OrderStatus.IN_PRODUCTION,
    OrderStatus.READY,
]


class QuoteStatus(str, enum.Enum):
    PENDING = "Pendiente"
    CONTACTED = "Contactado"
    QUOTED = "Cotizado"
    CLOSED = "Cerrado"


SERVICE_TYPES = [
    "Tarjetas de Presentación",
    "Volantes / Flyers",
    "Gigantografías",
    "Merchandising",
    "Otro",
]


class CheckoutStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETE = "complete"
    ABANDONED = "abandoned"


# --- Accounts ---

class User(Base):
    """Admin accounts — customers never sign in."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)
    is_admin = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    auth_tokens = relationship("AuthToken", back_populates="user", cascade="all, delete-orphan")


class AuthToken(Base):
    """JWT refresh token storage — access tokens are stateless."""
    __tablename__ = "auth_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    token_hash = Column(String, nullable=False)
    token_type = Column(String, default="refresh")
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="auth_tokens")


# --- Catalog ---

class Product(Base):
    __tablename__ = "products"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    # {"tiers": [{quantity, market_price, bulk_price, full_payment_bonus}],
    #  "deposit_percent": 60, "cash_discount_percent": 10}
    price_config = Column(JSON, nullable=True)
    # Legacy pricing columns — read only when price_config is missing
    base_price_1k = Column(Float, nullable=True)
    base_price_2k = Column(Float, nullable=True)
    base_price_3k = Column(Float, nullable=True)
    min_quantity = Column(Integer, default=1000)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    orders = relationship("Order", back_populates="product")


# --- Orders ---

class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=_uuid)
    order_code = Column(String, unique=True, nullable=False, index=True)

    customer_name = Column(String, nullable=False)
    customer_lastname = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False)
    customer_dni = Column(String, nullable=True)
    customer_ruc = Column(String, nullable=True)

    product_id = Column(String, ForeignKey("products.id"), nullable=True)
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    material_type = Column(String, default="Estándar")

    design_files = Column(JSON, default=list)
    payment_proof_files = Column(JSON, default=list)
    # Legacy single-file columns — mirror the first entry of the lists above
    user_file_url = Column(String, default="")
    payment_proof_url = Column(String, nullable=True)
    final_art_url = Column(String, nullable=True)

    payment_method_type = Column(String, nullable=False)
    product_price = Column(Float, default=0.0)
    delivery_fee = Column(Float, default=0.0)
    total_amount = Column(Float, default=0.0)
    amount_paid = Column(Float, default=0.0)
    amount_pending = Column(Float, default=0.0)
    is_delivery = Column(Boolean, default=False)

    status = Column(String, default=OrderStatus.RECEIVED.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", back_populates="orders")


class CheckoutSession(Base):
    """Purchase wizard state across the 4 steps."""
    __tablename__ = "checkout_sessions"

    id = Column(String, primary_key=True, default=_uuid)
    product_id = Column(String, ForeignKey("products.id"), nullable=False)
    step = Column(Integer, default=1)
    selected_quantity = Column(Integer, nullable=True)
    selected_tier = Column(JSON, nullable=True)
    customer = Column(JSON, default=dict)
    design_files = Column(JSON, default=list)  # [{"name": str, "url": str}]
    designs_done = Column(Boolean, default=False)  # Step 3 passed, with or without files
    payment_method = Column(String, default="TOTAL")
    order_code = Column(String, nullable=True)
    status = Column(String, default=CheckoutStatus.ACTIVE.value)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product")


# --- Contact form quote requests ---

class Quote(Base):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    email = Column(String, nullable=True)
    service_type = Column(String, nullable=False)
    quantity = Column(Integer, nullable=True)
    message = Column(Text, nullable=True)
    status = Column(String, default=QuoteStatus.PENDING.value)
    created_at = Column(DateTime, default=datetime.utcnow)
