"""
File storage for customer uploads.

Two logical buckets:
- designs   — artwork/sketches uploaded in wizard step 3
- payments  — Yape payment screenshots uploaded in step 4

Stores to Cloudflare R2 (S3 API) if configured, otherwise the local
uploads/ directory, which main.py serves at /uploads.
"""

import logging
import re
import secrets
import time
from io import BytesIO
from pathlib import Path

from .config import settings

logger = logging.getLogger(__name__)

DESIGNS = "designs"
PAYMENTS = "payments"
BUCKETS = {DESIGNS, PAYMENTS}

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "heic"}
DESIGN_EXTENSIONS = IMAGE_EXTENSIONS | {"pdf", "doc", "docx"}
PROOF_EXTENSIONS = IMAGE_EXTENSIONS | {"pdf"}

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "heic": "image/heic",
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

LOCAL_URL_PREFIX = "/uploads/"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class StorageError(Exception):
    """Upload rejected or file unreadable."""


def get_extension(filename: str) -> str:
    """Extract file extension, lowercased. '' when there is none."""
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def sanitize_filename(filename: str) -> str:
    """Replace anything outside [A-Za-z0-9._-] with '_'."""
    return _UNSAFE_CHARS.sub("_", filename or "file")


def now_ms() -> int:
    return int(time.time() * 1000)


def design_folder() -> str:
    """One folder per upload batch: pedido_<ms>."""
    return f"pedido_{now_ms()}"


def design_key(folder: str, filename: str) -> str:
    """
    <folder>/<ms>_<token>_<sanitized name>

    The random token keeps same-named files (or names that sanitize alike)
    from overwriting each other within a batch.
    """
    return f"{folder}/{now_ms()}_{secrets.token_hex(4)}_{sanitize_filename(filename)}"


def content_type_for(ext: str) -> str:
    return CONTENT_TYPES.get(ext, "application/octet-stream")


def max_upload_bytes() -> int:
    return settings.MAX_UPLOAD_MB * 1024 * 1024


def validate_upload(filename: str, data: bytes, allowed: set) -> str:
    """
    Check extension and size. Returns the extension.

    Raises StorageError with a customer-readable message.
    """
    ext = get_extension(filename or "")
    if ext not in allowed:
        raise StorageError(
            f"File type '{ext}' not allowed. Allowed: {', '.join(sorted(allowed))}"
        )
    if len(data) == 0:
        raise StorageError("Empty file.")
    if len(data) > max_upload_bytes():
        raise StorageError(
            f"File too large ({len(data) / 1024 / 1024:.1f}MB). "
            f"Maximum is {settings.MAX_UPLOAD_MB}MB."
        )
    return ext


def r2_configured() -> bool:
    """Check if Cloudflare R2 credentials are set."""
    return bool(
        settings.R2_ACCOUNT_ID
        and settings.R2_ACCESS_KEY_ID
        and settings.R2_SECRET_ACCESS_KEY
    )


def _r2_client():
    import boto3

    return boto3.client(
        "s3",
        endpoint_url=f"https://{settings.R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=settings.R2_ACCESS_KEY_ID,
        aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
    )


def _r2_public_base() -> str:
    if settings.R2_PUBLIC_BASE_URL:
        return settings.R2_PUBLIC_BASE_URL.rstrip("/")
    return f"https://{settings.R2_BUCKET}.{settings.R2_ACCOUNT_ID}.r2.dev"


def _upload_root() -> Path:
    return Path(settings.UPLOAD_DIR).resolve()


def _local_path(bucket: str, key: str) -> Path:
    root = _upload_root()
    path = (root / bucket / key).resolve()
    if root not in path.parents:
        raise StorageError("Invalid file path")
    return path


def save(bucket: str, key: str, data: bytes, content_type: str) -> str:
    """Store bytes under bucket/key and return the public URL or local path."""
    if bucket not in BUCKETS:
        raise StorageError(f"Unknown bucket '{bucket}'")

    if r2_configured():
        _r2_client().upload_fileobj(
            BytesIO(data),
            settings.R2_BUCKET,
            f"{bucket}/{key}",
            ExtraArgs={"ContentType": content_type},
        )
        return f"{_r2_public_base()}/{bucket}/{key}"

    path = _local_path(bucket, key)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
    return f"{LOCAL_URL_PREFIX}{bucket}/{key}"


def _split_url(url: str):
    """Map a stored URL back to (bucket, key)."""
    if url.startswith(LOCAL_URL_PREFIX):
        rest = url[len(LOCAL_URL_PREFIX):]
    elif r2_configured() and url.startswith(_r2_public_base() + "/"):
        rest = url[len(_r2_public_base()) + 1:]
    else:
        raise StorageError(f"Not a stored file: {url}")
    if "/" not in rest:
        raise StorageError(f"Not a stored file: {url}")
    bucket, key = rest.split("/", 1)
    if bucket not in BUCKETS:
        raise StorageError(f"Unknown bucket '{bucket}'")
    return bucket, key


def read(url: str) -> bytes:
    """Read back a file previously returned by save()."""
    bucket, key = _split_url(url)
    if url.startswith(LOCAL_URL_PREFIX):
        path = _local_path(bucket, key)
        if not path.exists():
            raise StorageError(f"File not found: {url}")
        return path.read_bytes()

    obj = _r2_client().get_object(Bucket=settings.R2_BUCKET, Key=f"{bucket}/{key}")
    return obj["Body"].read()


def delete(url: str) -> None:
    bucket, key = _split_url(url)
    if url.startswith(LOCAL_URL_PREFIX):
        path = _local_path(bucket, key)
        if path.exists():
            path.unlink()
        return
    _r2_client().delete_object(Bucket=settings.R2_BUCKET, Key=f"{bucket}/{key}")


def basename(url: str) -> str:
    """Last path segment of a stored URL — used for ZIP member names."""
    return url.rstrip("/").rsplit("/", 1)[-1]


def discard(urls) -> None:
    """Delete stored files that are no longer referenced. Failures are logged."""
    for url in urls:
        try:
            delete(url)
        except Exception as e:
            logger.warning("Could not delete %s: %s", url, e)
