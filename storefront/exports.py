"""ZIP bundles of an order's uploaded files."""

import logging
import zipfile
from io import BytesIO

from . import storage

logger = logging.getLogger(__name__)


def zip_filename(order_code: str) -> str:
    return f"Pedido_{order_code}.zip"


def build_order_zip(order) -> tuple:
    """
    Bundle design files and payment proofs into one ZIP.

    Returns (zip_bytes, skipped_urls). Files that can't be read are
    skipped, never fatal. Member names are the stored basenames, with a
    fallback of archivo_<n> and a counter suffix on collisions.
    """
    urls = list(order.design_files or []) + list(order.payment_proof_files or [])
    skipped = []
    used = set()
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for index, url in enumerate(urls):
            try:
                data = storage.read(url)
            except Exception as e:
                logger.warning("Skipping %s in ZIP for %s: %s", url, order.order_code, e)
                skipped.append(url)
                continue
            name = storage.basename(url) or f"archivo_{index + 1}"
            candidate, n = name, 1
            while candidate in used:
                n += 1
                candidate = f"{n}_{name}"
            used.add(candidate)
            zf.writestr(candidate, data)
    return buf.getvalue(), skipped
