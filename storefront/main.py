from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from .config import settings
from .database import engine, Base
from .routers import admin, auth, checkout, orders, products, quotes, tracking

logger = logging.getLogger("wankaprint")

# Create tables (handles new tables but won't add columns to existing ones)
Base.metadata.create_all(bind=engine)


def _run_migrations():
    """Run pending Alembic migrations on startup.

    Databases created by Base.metadata.create_all() before Alembic have no
    alembic_version table; stamp the base migration first so upgrade only
    applies what came after it.
    """
    try:
        from alembic.config import Config
        from alembic import command
        from sqlalchemy import inspect

        alembic_ini = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")
        if not os.path.exists(alembic_ini):
            logger.info("alembic.ini not found, skipping migrations")
            return

        alembic_cfg = Config(alembic_ini)
        alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

        insp = inspect(engine)
        has_alembic = "alembic_version" in insp.get_table_names()
        has_orders = "orders" in insp.get_table_names()

        if not has_alembic and has_orders:
            logger.info("Stamping base migration 3f1c2a9d7b10 (tables already exist)")
            command.stamp(alembic_cfg, "3f1c2a9d7b10")

        logger.info("Running pending Alembic migrations...")
        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")

    except Exception as e:
        # Never let migration errors prevent app startup
        logger.warning(f"Alembic migration warning: {e}")


app = FastAPI(
    title="WankaPrint Storefront",
    description="Print shop catalog, checkout, order tracking and admin API",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(products.router, prefix="/api")
app.include_router(checkout.router, prefix="/api")
app.include_router(orders.router, prefix="/api")
app.include_router(tracking.router, prefix="/api")
app.include_router(quotes.router, prefix="/api")
app.include_router(auth.router, prefix="/api")
app.include_router(admin.router, prefix="/api")

# Serve uploaded files (local fallback when R2 not configured)
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/health")
def health():
    return {"status": "ok", "app": "wankaprint-storefront"}


@app.on_event("startup")
def auto_migrate():
    _run_migrations()


@app.on_event("startup")
def auto_seed():
    """Seed the default catalog and bootstrap admin on first run."""
    from .auth import ensure_admin
    from .database import SessionLocal
    from .routers.products import seed_products
    db = SessionLocal()
    try:
        seeded = seed_products(db)
        if seeded:
            logger.info("Seeded %d default products", seeded)
        if settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD:
            ensure_admin(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    finally:
        db.close()
