"""
Media storage for property images, documents, videos and profile pictures.
Uploads go to Cloudflare R2 when configured, otherwise to local disk.
"""

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError
from fastapi import HTTPException, Request, UploadFile

from ..config import (
    MEDIA_ROOT,
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_PUBLIC_URL,
    R2_SECRET_ACCESS_KEY,
)

logger = logging.getLogger(__name__)

PRESIGNED_URL_EXPIRATION = 7 * 24 * 3600  # R2 maximum

MB = 1024 * 1024


@dataclass(frozen=True)
class UploadRule:
    max_files: int
    max_bytes: int
    mime_types: tuple[str, ...]
    label: str


UPLOAD_RULES = {
    "image": UploadRule(
        max_files=10,
        max_bytes=5 * MB,
        mime_types=("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"),
        label="images (jpeg, png, gif, webp)",
    ),
    "document": UploadRule(
        max_files=5,
        max_bytes=10 * MB,
        mime_types=(
            "application/pdf",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ),
        label="documents (pdf, doc, docx)",
    ),
    "video": UploadRule(
        max_files=3,
        max_bytes=80 * MB,
        mime_types=("video/mp4", "video/quicktime", "video/x-msvideo", "video/avi", "video/webm", "video/mpeg"),
        label="videos (mp4, mov, avi, webm, mpeg)",
    ),
}


@dataclass
class StoredMedia:
    url: str
    key: str
    filename: str
    content_type: str
    size: int


async def read_validated_uploads(
    files: list[UploadFile], kind: str, max_files: Optional[int] = None
) -> list[tuple[UploadFile, bytes]]:
    """Read uploaded files into memory, enforcing count, type and size limits"""
    rule = UPLOAD_RULES[kind]
    limit = max_files if max_files is not None else rule.max_files
    files = [f for f in files if f is not None and f.filename]

    if len(files) > limit:
        raise HTTPException(status_code=400, detail=f"Maximum {limit} {kind}s allowed")

    uploads = []
    for upload in files:
        content_type = (upload.content_type or "").lower()
        if content_type not in rule.mime_types:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid file type for {upload.filename}. Allowed: {rule.label}",
            )
        content = await upload.read()
        if len(content) > rule.max_bytes:
            raise HTTPException(
                status_code=400,
                detail=f"{upload.filename} exceeds the {rule.max_bytes // MB}MB limit",
            )
        uploads.append((upload, content))
    return uploads


def build_key(folder: str, filename: str) -> str:
    suffix = Path(filename or "").suffix.lower()
    return f"{folder}/{uuid.uuid4().hex}{suffix}"


class MediaStorage:
    mode = "abstract"

    def save(self, content: bytes, folder: str, filename: str, content_type: str) -> StoredMedia:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


def get_r2_client():
    """Get configured boto3 client for Cloudflare R2"""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


class R2MediaStorage(MediaStorage):
    mode = "r2"

    def __init__(self, bucket: str = R2_BUCKET_NAME, public_url: Optional[str] = R2_PUBLIC_URL):
        self.client = get_r2_client()
        self.bucket = bucket
        self.public_url = public_url.rstrip("/") if public_url else None

    def _url_for(self, key: str) -> str:
        if self.public_url:
            return f"{self.public_url}/{key}"
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key, "ResponseContentDisposition": "inline"},
            ExpiresIn=PRESIGNED_URL_EXPIRATION,
        )

    def save(self, content: bytes, folder: str, filename: str, content_type: str) -> StoredMedia:
        key = build_key(folder, filename)
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=content, ContentType=content_type)
        except ClientError as e:
            logger.error(f"❌ R2 upload failed for {key}: {e}")
            raise HTTPException(status_code=502, detail="File upload failed") from e
        logger.info(f"✅ Uploaded {filename} to R2 as {key}")
        return StoredMedia(
            url=self._url_for(key), key=key, filename=filename, content_type=content_type, size=len(content)
        )

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
            logger.info(f"🗑️ Deleted {key} from R2")
        except ClientError as e:
            # Orphaned objects are left for manual cleanup
            logger.warning(f"⚠️ Failed to delete {key} from R2: {e}")


class LocalMediaStorage(MediaStorage):
    """Stores files under MEDIA_ROOT and serves them from /media"""

    mode = "local"

    def __init__(self, root: str = MEDIA_ROOT, url_prefix: str = "/media"):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")

    def save(self, content: bytes, folder: str, filename: str, content_type: str) -> StoredMedia:
        key = build_key(folder, filename)
        path = self.root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.info(f"💾 Stored {filename} locally at {path}")
        return StoredMedia(
            url=f"{self.url_prefix}/{key}",
            key=key,
            filename=filename,
            content_type=content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream",
            size=len(content),
        )

    def delete(self, key: str) -> None:
        path = self.root / key
        if path.is_file():
            path.unlink()
            logger.info(f"🗑️ Deleted local file {path}")


def build_media_storage() -> MediaStorage:
    if R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY:
        logger.info("✅ R2 media storage configured")
        return R2MediaStorage()
    logger.warning(f"⚠️ R2 credentials missing - storing uploads on local disk under {MEDIA_ROOT}")
    return LocalMediaStorage()


def get_storage(request: Request) -> MediaStorage:
    """Dependency returning the storage backend created during startup"""
    return request.app.state.storage
