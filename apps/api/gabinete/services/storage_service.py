"""Object storage for demand attachments and user avatars.

S3 (boto3) when STORAGE_BACKEND=s3, local filesystem otherwise.
"""

import hashlib
import logging
import os
import uuid
from typing import BinaryIO

import boto3
from botocore.exceptions import ClientError

from gabinete.core.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

ALLOWED_EXTENSIONS = {"pdf", "png", "jpg", "jpeg", "doc", "docx", "xls", "xlsx", "txt"}
ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/png",
    "image/jpeg",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
}
AVATAR_EXTENSIONS = {"png", "jpg", "jpeg"}
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MB
SIGNED_URL_EXPIRY_SECONDS = 300  # 5 minutes


# =============================================================================
# Storage Backend
# =============================================================================

def _get_s3_client():
    """Get boto3 S3 client."""
    return boto3.client(
        "s3",
        region_name=settings.S3_REGION,
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
    )


def _get_local_storage_path() -> str:
    """Get local storage directory path."""
    path = settings.LOCAL_STORAGE_PATH
    os.makedirs(path, exist_ok=True)
    return path


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


# =============================================================================
# File Operations
# =============================================================================

def calculate_checksum(file: BinaryIO) -> str:
    """Calculate SHA-256 checksum of file."""
    sha256 = hashlib.sha256()
    file.seek(0)
    for chunk in iter(lambda: file.read(8192), b""):
        sha256.update(chunk)
    file.seek(0)
    return sha256.hexdigest()


def file_size(file: BinaryIO) -> int:
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)
    return size


def validate_file(
    filename: str,
    content_type: str,
    size: int,
    allowed_extensions: set[str] = ALLOWED_EXTENSIONS,
) -> tuple[bool, str | None]:
    """
    Validate file against allowlists and size limits.

    Returns (is_valid, error_message)
    """
    ext = _extension(filename)
    if ext not in allowed_extensions:
        return False, f"File extension '.{ext}' not allowed"

    if content_type not in ALLOWED_MIME_TYPES:
        return False, f"Content type '{content_type}' not allowed"

    if size > MAX_FILE_SIZE_BYTES:
        max_mb = MAX_FILE_SIZE_BYTES / (1024 * 1024)
        return False, f"File size exceeds {max_mb:.0f} MB limit"

    return True, None


def build_storage_key(folder: str, filename: str) -> str:
    return f"{folder}/{uuid.uuid4()}.{_extension(filename)}"


def store_file(storage_key: str, file: BinaryIO) -> None:
    """Store file to configured backend."""
    if settings.STORAGE_BACKEND == "s3":
        s3 = _get_s3_client()
        file.seek(0)
        s3.upload_fileobj(file, settings.S3_BUCKET, storage_key)
    else:
        path = os.path.join(_get_local_storage_path(), storage_key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            file.seek(0)
            f.write(file.read())


def generate_url(storage_key: str) -> str:
    """Retrievable URL for a stored object (signed on S3)."""
    if settings.STORAGE_BACKEND == "s3":
        s3 = _get_s3_client()
        try:
            return s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": settings.S3_BUCKET, "Key": storage_key},
                ExpiresIn=SIGNED_URL_EXPIRY_SECONDS,
            )
        except ClientError:
            logger.warning("Could not sign storage URL", exc_info=True)
            return ""
    # Local: served by the API (dev only)
    return f"/files/{storage_key}"


def local_path(storage_key: str) -> str | None:
    """Filesystem path for a locally stored object, if it exists."""
    root = os.path.realpath(_get_local_storage_path())
    path = os.path.realpath(os.path.join(root, storage_key))
    if not path.startswith(root + os.sep) or not os.path.isfile(path):
        return None
    return path


def delete_file(storage_key: str) -> None:
    """Delete file from storage (for permanent deletion)."""
    if settings.STORAGE_BACKEND == "s3":
        s3 = _get_s3_client()
        s3.delete_object(Bucket=settings.S3_BUCKET, Key=storage_key)
    else:
        path = os.path.join(_get_local_storage_path(), storage_key)
        if os.path.exists(path):
            os.remove(path)
