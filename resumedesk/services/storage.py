# resumedesk/services/storage.py
import asyncio
import concurrent.futures
import logging
import re
import uuid
from pathlib import Path
from typing import Dict, Optional

import aiofiles
import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile

from resumedesk.core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})
ALLOWED_EXTENSIONS = (".pdf", ".doc", ".docx")

# Use synchronous boto3 but run blocking calls in threadpool to keep code async-friendly
_thread_pool = concurrent.futures.ThreadPoolExecutor(max_workers=3)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _local_dir() -> Path:
    path = Path(settings.LOCAL_UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _get_s3_client():
    """
    Return a boto3 S3 client configured for Cloudflare R2 or MinIO.
    If no S3_ENDPOINT or credentials are configured, returns None.
    """
    endpoint = settings.S3_ENDPOINT
    access_key = settings.S3_ACCESS_KEY
    secret_key = settings.S3_SECRET_KEY

    # If we have MinIO specific env set and S3 provider is minio, prefer that
    if settings.S3_PROVIDER and settings.S3_PROVIDER.lower() == "minio" and settings.MINIO_ENDPOINT:
        endpoint = settings.MINIO_ENDPOINT
        access_key = settings.MINIO_ACCESS_KEY
        secret_key = settings.MINIO_SECRET_KEY

    if not endpoint or not access_key or not secret_key or not settings.S3_BUCKET:
        return None

    # Use signature s3v4 for compatibility (Cloudflare R2 & MinIO)
    return boto3.client(
        "s3",
        endpoint_url=str(endpoint),
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        config=Config(signature_version="s3v4"),
        region_name=(settings.S3_REGION or None),
    )


def storage_status() -> Dict[str, object]:
    s3 = _get_s3_client()
    if s3 is None:
        return {
            "available": False,
            "message": "Object storage is not configured; uploads are kept on the local disk.",
        }
    try:
        s3.head_bucket(Bucket=settings.S3_BUCKET)
    except (ClientError, BotoCoreError) as exc:
        logger.warning("Storage bucket %s is not reachable: %r", settings.S3_BUCKET, exc)
        return {
            "available": False,
            "bucketName": settings.S3_BUCKET,
            "error": str(exc),
            "message": "Storage bucket is not reachable.",
        }
    return {"available": True, "bucketName": settings.S3_BUCKET, "message": "Storage is available."}


def build_key(user_id: str, filename: Optional[str]) -> str:
    safe_name = _UNSAFE_CHARS.sub("-", Path(filename or "upload").name).strip("-") or "upload"
    return f"{user_id}/{uuid.uuid4().hex}-{safe_name}"


def key_belongs_to(key: str, user_id: str) -> bool:
    parts = key.split("/")
    return len(parts) >= 2 and parts[0] == user_id and ".." not in parts


def is_allowed_upload(file: UploadFile) -> bool:
    fname = (file.filename or "").lower()
    return fname.endswith(ALLOWED_EXTENSIONS) or (file.content_type or "") in ALLOWED_CONTENT_TYPES


async def store_file(file: UploadFile, user_id: str) -> str:
    """
    Async store: tries configured S3-compatible client, then local filesystem.
    Returns the storage key `<user_id>/<uuid>-<filename>`.
    """
    contents = await file.read()
    key = build_key(user_id, file.filename)

    s3 = _get_s3_client()
    if s3:
        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                _thread_pool,
                lambda: s3.put_object(
                    Bucket=settings.S3_BUCKET,
                    Key=key,
                    Body=contents,
                    ContentType=file.content_type or "application/octet-stream",
                ),
            )
            return key
        except (ClientError, BotoCoreError) as exc:
            logger.warning("S3 upload failed for %s, falling back to local disk: %r", key, exc)

    # Fallback: local filesystem
    local_path = _local_dir() / key
    local_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiofiles.open(local_path, "wb") as out:
        await out.write(contents)
    return key


def local_path_for(key: str) -> Optional[Path]:
    path = _local_dir() / key
    return path if path.is_file() else None


def generate_presigned_url(key: str, expires_in: int = 3600) -> Optional[str]:
    """
    Generate a presigned GET URL. Returns None when storage is not configured
    (callers then serve the local copy).
    """
    s3 = _get_s3_client()
    if s3 is None:
        return None
    try:
        return s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.S3_BUCKET, "Key": key},
            ExpiresIn=expires_in,
        )
    except (ClientError, BotoCoreError) as exc:
        logger.error("generate_presigned_url failed for %s: %r", key, exc)
        return None


def generate_presigned_put_url(key: str, content_type: Optional[str] = None, expires_in: int = 900) -> Optional[str]:
    """
    Generate presigned PUT URL for direct upload.
    Synchronous; see async_generate_presigned_put_url.
    """
    s3 = _get_s3_client()
    if s3 is None:
        return None
    params = {"Bucket": settings.S3_BUCKET, "Key": key}
    if content_type:
        params["ContentType"] = content_type
    return s3.generate_presigned_url("put_object", Params=params, ExpiresIn=expires_in, HttpMethod="PUT")


# Async wrapper for FastAPI usage (run blocking in threadpool)
async def async_generate_presigned_put_url(key: str, content_type: Optional[str] = None,
                                           expires_in: int = 900) -> Optional[str]:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_thread_pool, generate_presigned_put_url, key, content_type, expires_in)
