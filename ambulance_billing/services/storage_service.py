"""
Attachment storage. Bills persist only the returned reference, never bytes.

Backend is picked by settings.STORAGE_BACKEND: "local" writes under
FILE_STORAGE_DIR, "r2" uploads to Cloudflare R2 (S3-compatible).
"""
import asyncio
import time
from io import BytesIO
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError

from ambulance_billing.config import settings
from ambulance_billing.core.exceptions import StoreError, ValidationError
from ambulance_billing.core.logging import get_logger
from ambulance_billing.schemas.billing import AttachmentRef

logger = get_logger(__name__)

KEY_PREFIX = "bills"


def _r2_client():
    if not settings.R2_ACCOUNT_ID or not settings.R2_ACCESS_KEY_ID or not settings.R2_SECRET_ACCESS_KEY:
        raise StoreError(
            "R2 storage not configured: set R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY"
        )
    return boto3.client(
        service_name="s3",
        endpoint_url=f"https://{settings.R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=settings.R2_ACCESS_KEY_ID,
        aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
        region_name="auto",
        config=boto3.session.Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
        ),
    )


def public_url(key: str) -> str:
    """Build public URL for an object key."""
    base = settings.STORAGE_PUBLIC_BASE_URL.rstrip("/")
    key = key.lstrip("/")
    return f"{base}/{key}" if key else base


def object_key(filename: str) -> str:
    """Unique key: bills/<unix millis>-<uuid><ext>. The original name is kept on the ref."""
    ext = Path(filename).suffix or ".dat"
    millis = int(time.time() * 1000)
    return f"{KEY_PREFIX}/{millis}-{uuid4().hex}{ext}"


def _write_local(key: str, content: bytes) -> None:
    path = Path(settings.FILE_STORAGE_DIR) / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


def _put_r2(key: str, content: bytes, content_type: Optional[str]) -> None:
    client = _r2_client()
    extra = {"ContentType": content_type} if content_type else {}
    try:
        client.upload_fileobj(BytesIO(content), settings.R2_BUCKET_NAME, key, ExtraArgs=extra)
    except ClientError as e:
        raise StoreError(f"Storage upload failed: {e}") from e


async def save_attachment(
    filename: str,
    content: bytes,
    content_type: Optional[str] = None,
) -> AttachmentRef:
    """
    Store one attachment and return its reference.

    Raises:
        ValidationError: Empty or oversized file
        StoreError: Backend write failed
    """
    if not content:
        raise ValidationError(f"Attachment {filename!r} is empty")
    if len(content) > settings.MAX_ATTACHMENT_BYTES:
        raise ValidationError(
            f"Attachment {filename!r} exceeds {settings.MAX_ATTACHMENT_BYTES} bytes"
        )

    key = object_key(filename)
    if settings.STORAGE_BACKEND == "r2":
        await asyncio.to_thread(_put_r2, key, content, content_type)
    else:
        try:
            await asyncio.to_thread(_write_local, key, content)
        except OSError as e:
            raise StoreError(f"Storage write failed: {e}") from e

    logger.info("Attachment stored", extra={"key": key, "size": len(content)})
    return AttachmentRef(file_name=filename or Path(key).name, file_url=public_url(key))


def key_from_url(file_url: str) -> Optional[str]:
    """Object key behind a URL built by public_url, or None for a foreign URL."""
    base = settings.STORAGE_PUBLIC_BASE_URL.rstrip("/") + "/"
    if not file_url.startswith(base):
        return None
    return file_url[len(base):] or None


def _unlink_local(key: str) -> None:
    (Path(settings.FILE_STORAGE_DIR) / key).unlink(missing_ok=True)


def _delete_r2(key: str) -> None:
    client = _r2_client()
    try:
        client.delete_object(Bucket=settings.R2_BUCKET_NAME, Key=key)
    except ClientError as e:
        raise StoreError(f"Storage delete failed: {e}") from e


async def delete_attachment(ref: AttachmentRef) -> None:
    """
    Remove a stored attachment. Missing objects are not an error.

    Raises:
        StoreError: Backend delete failed
    """
    key = key_from_url(ref.file_url)
    if key is None:
        logger.warning("Attachment not in this store, skipping delete", extra={"file_url": ref.file_url})
        return

    if settings.STORAGE_BACKEND == "r2":
        await asyncio.to_thread(_delete_r2, key)
    else:
        try:
            await asyncio.to_thread(_unlink_local, key)
        except OSError as e:
            raise StoreError(f"Storage delete failed: {e}") from e

    logger.info("Attachment deleted", extra={"key": key})


async def discard_attachments(refs: List[AttachmentRef]) -> None:
    """Best-effort cleanup of attachments whose bill was never created."""
    for ref in refs:
        try:
            await delete_attachment(ref)
        except StoreError:
            logger.error("Orphaned attachment left in store", extra={"file_url": ref.file_url}, exc_info=True)
