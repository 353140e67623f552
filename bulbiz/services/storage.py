"""
Object storage for dossier media (Cloudflare R2, S3-compatible)
"""

import logging
import uuid
from typing import Optional

import boto3
from botocore.config import Config

from ..config import R2_ACCESS_KEY_ID, R2_ACCOUNT_ID, R2_BUCKET_NAME, R2_PUBLIC_URL, R2_SECRET_ACCESS_KEY
from ..loaders import LazyResource

logger = logging.getLogger(__name__)

# Presigned URL expiration time (1 hour)
PRESIGNED_URL_EXPIRATION = 3600
MAX_UPLOAD_SIZE = 50 * 1024 * 1024  # 50 MB (videos)

ALLOWED_CONTENT_PREFIXES = ("image/", "video/", "audio/", "application/pdf")


def _create_r2_client():
    if not (R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY):
        return None
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
    )


r2_loader = LazyResource("R2 storage", _create_r2_client)


class StorageNotConfiguredError(Exception):
    pass


def media_type_for(content_type: Optional[str]) -> str:
    """photo / video / audio / plan from a MIME type"""
    content_type = content_type or ""
    if content_type.startswith("video/"):
        return "video"
    if content_type.startswith("audio/"):
        return "audio"
    if content_type == "application/pdf":
        return "plan"
    return "photo"


def is_allowed_content_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.startswith(ALLOWED_CONTENT_PREFIXES)


def build_key(user_id: str, dossier_id: str, filename: Optional[str]) -> str:
    extension = ""
    if filename and "." in filename:
        extension = "." + filename.rsplit(".", 1)[1].lower()
    return f"{user_id}/{dossier_id}/{uuid.uuid4()}{extension}"


def upload_file(key: str, content: bytes, content_type: str) -> str:
    """
    Upload bytes to the dossier-medias bucket

    Returns:
        The public URL when R2_PUBLIC_URL is set, else a presigned URL

    Raises:
        StorageNotConfiguredError: R2 credentials missing
    """
    r2 = r2_loader.get()
    if r2 is None:
        raise StorageNotConfiguredError("Stockage non configuré")

    r2.put_object(Bucket=R2_BUCKET_NAME, Key=key, Body=content, ContentType=content_type)
    logger.info(f"✅ Uploaded {len(content)} bytes to {R2_BUCKET_NAME}/{key}")

    if R2_PUBLIC_URL:
        return f"{R2_PUBLIC_URL.rstrip('/')}/{key}"
    return generate_presigned_url(key)


def generate_presigned_url(key: str, expiration: int = PRESIGNED_URL_EXPIRATION) -> str:
    """Generate a presigned URL for accessing a private object in R2."""
    r2 = r2_loader.get()
    if r2 is None:
        raise StorageNotConfiguredError("Stockage non configuré")
    try:
        return r2.generate_presigned_url(
            "get_object",
            Params={"Bucket": R2_BUCKET_NAME, "Key": key, "ResponseContentDisposition": "inline"},
            ExpiresIn=expiration,
        )
    except Exception as e:
        logger.error(f"❌ Failed to generate presigned URL for key {key}: {e}")
        raise
