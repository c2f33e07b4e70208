"""
Order codes — generation, sanitization, and forgiving lookup.

Customers type codes from WhatsApp messages, screenshots and memory:
"wk-1234", "WK 1234", "1234", "WNK1234". Lookup strips everything that is
not a letter or digit, then tries the shop prefixes and a partial match.
"""

import logging
import re
import secrets
from typing import Callable, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .config import settings

logger = logging.getLogger(__name__)

MIN_LOOKUP_LENGTH = 4
CODE_DIGITS = 4
LEGACY_PREFIX = "WNK"


class OrderCodeConflict(RuntimeError):
    """Every generated code was taken by a concurrent insert."""


_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def sanitize_lookup(raw: Optional[str]) -> str:
    """Trim, drop non-alphanumerics, uppercase. Returns "" if too short."""
    if not raw:
        return ""
    clean = _NON_ALNUM.sub("", raw.strip()).upper()
    if len(clean) < MIN_LOOKUP_LENGTH:
        return ""
    return clean


def candidate_codes(clean: str) -> list:
    """Prefixed variants of a sanitized code: WK-XXXX and WNK-XXXX."""
    prefix = settings.ORDER_CODE_PREFIX.upper()
    wk = clean if clean.startswith(prefix) else f"{prefix}-{clean}"
    wnk = clean if clean.startswith(LEGACY_PREFIX) else f"{LEGACY_PREFIX}-{clean}"
    return [wk, wnk]


def looks_like_uuid(raw: Optional[str]) -> bool:
    return bool(raw) and bool(_UUID_RE.match(raw.strip()))


def find_order(db: Session, raw: Optional[str]) -> Optional[models.Order]:
    """
    Find an order from whatever the customer typed.

    Exact matches win (prefixed candidates, the code with separators
    removed, or the order id when the input is a UUID); otherwise the
    newest order whose code contains the sanitized input.
    """
    clean = sanitize_lookup(raw)
    if not clean:
        return None

    code_upper = func.upper(models.Order.order_code)
    exact = [
        code_upper.in_(candidate_codes(clean)),
        func.replace(func.replace(code_upper, "-", ""), " ", "") == clean,
    ]
    if looks_like_uuid(raw):
        exact.append(models.Order.id == raw.strip().lower())

    order = db.query(models.Order).filter(or_(*exact)).order_by(
        models.Order.created_at.desc()
    ).first()
    if order:
        return order

    order = db.query(models.Order).filter(
        models.Order.order_code.ilike(f"%{clean}%")
    ).order_by(models.Order.created_at.desc()).first()

    if not order:
        logger.info("No order found for lookup %r (clean=%s)", raw, clean)
    return order


def generate_order_code(db: Session, max_attempts: int = 50) -> str:
    """
    Short customer-facing code like WK-4821.

    Four random digits keep the code easy to dictate; widen to six digits
    only if the four-digit space is crowded.
    """
    prefix = settings.ORDER_CODE_PREFIX.upper()
    digits = CODE_DIGITS
    for attempt in range(max_attempts * 2):
        if attempt == max_attempts:
            logger.warning("Order code space crowded after %d attempts, widening", attempt)
            digits = CODE_DIGITS + 2
        code = f"{prefix}-{secrets.randbelow(10 ** digits):0{digits}d}"
        exists = db.query(models.Order.id).filter(models.Order.order_code == code).first()
        if not exists:
            return code
    raise RuntimeError("Could not generate a unique order code")


def insert_with_unique_code(
    db: Session,
    build: Callable[[str], models.Order],
    cleanup: Optional[Callable[[models.Order], None]] = None,
    max_attempts: int = 3,
) -> models.Order:
    """
    Insert the order returned by build(order_code) and commit.

    generate_order_code() only checks codes already committed, so a
    concurrent insert can still take the same code; the unique index then
    rejects the commit and we retry with a fresh code. cleanup(order) runs
    after every rejected attempt (e.g. to delete a proof stored under the
    losing code).
    """
    for attempt in range(max_attempts):
        order_code = generate_order_code(db)
        order = build(order_code)
        db.add(order)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("Order code %s taken concurrently (attempt %d)", order_code, attempt + 1)
            if cleanup:
                cleanup(order)
            continue
        db.refresh(order)
        return order
    raise OrderCodeConflict(f"No unique order code after {max_attempts} attempts")


def mask_customer_name(first: Optional[str], last: Optional[str]) -> str:
    """'Juan Perez' -> 'Juan P***' — tracking is public."""
    initial = (last or "")[:1]
    return f"{first or ''} {initial}***"
