"""Chat attachment storage on Cloudflare R2 (S3 API)"""

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import Request

from .config import (
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_PUBLIC_BASE_URL,
    R2_SECRET_ACCESS_KEY,
)
from .errors import UploadError

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024

# Allowed attachment types and the extension stored for each
ALLOWED_ATTACHMENT_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/heic": "heic",
    "application/pdf": "pdf",
}


@dataclass
class StoredAttachment:
    key: str
    url: str
    content_type: str
    size: int


def get_r2_client():
    """Create and return an R2 client."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
    )


def attachment_key(room_id: int, filename: Optional[str], content_type: str) -> str:
    """Object key namespaced by room; the client's filename never reaches the path"""
    ext = ALLOWED_ATTACHMENT_TYPES.get(content_type)
    if not ext and filename:
        ext = os.path.splitext(filename)[1].lstrip(".").lower()[:10] or "bin"
    return f"chat-files/{room_id}/{uuid.uuid4().hex}.{ext or 'bin'}"


class AttachmentStore:
    """Uploads chat attachments and returns publicly fetchable URLs"""

    def __init__(self, bucket: str = R2_BUCKET_NAME, public_base_url: str = R2_PUBLIC_BASE_URL, client=None):
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_r2_client()
        return self._client

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def upload(self, room_id: int, data: bytes, content_type: str, filename: Optional[str] = None) -> StoredAttachment:
        """
        Store the file and return where it can be fetched.

        Raises:
            UploadError: the object store rejected or failed the upload
        """
        key = attachment_key(room_id, filename, content_type)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"❌ Attachment upload failed for room {room_id}: {e}")
            raise UploadError() from e

        logger.info(f"✅ Uploaded attachment {key} ({len(data)} bytes)")
        return StoredAttachment(key=key, url=self.public_url(key), content_type=content_type, size=len(data))


def get_attachment_store(request: Request) -> AttachmentStore:
    return request.app.state.attachment_store
