# tutorhub/services/storage.py
"""Blob storage for chat attachments and teaching demo videos."""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import asyncio
import logging

from ..core.config import settings
from ..core.exceptions import BackendError, ValidationError

logger = logging.getLogger(__name__)

CHAT_FILES_BUCKET = "chat_files"
TEACHER_DEMOS_BUCKET = "teacher_demos"

ALLOWED_ATTACHMENT_TYPES = frozenset({
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/jpg",
})


@dataclass(frozen=True)
class Attachment:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return "bin"
        return self.filename.rsplit(".", 1)[-1].lower()


def validate_attachment(attachment: Attachment, max_bytes: Optional[int] = None) -> Attachment:
    """Reject disallowed chat attachments before anything is uploaded."""
    max_bytes = settings.max_attachment_bytes if max_bytes is None else max_bytes

    if attachment.content_type not in ALLOWED_ATTACHMENT_TYPES:
        raise ValidationError(
            "Only PDF and image files (JPEG, PNG, JPG) are allowed.",
            field="file",
            title="Invalid file type"
        )

    if attachment.size > max_bytes:
        raise ValidationError(
            f"Files must be smaller than {max_bytes // (1024 * 1024)}MB.",
            field="file",
            title="File too large"
        )

    return attachment


class BlobStorage:
    """Named-bucket object storage returning public URLs."""

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        await self._put(bucket, path, data, content_type)
        url = self.public_url(bucket, path)
        logger.info(f"Uploaded {len(data)} bytes to {bucket}/{path}")
        return url

    async def _put(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    def public_url(self, bucket: str, path: str) -> str:
        raise NotImplementedError


class LocalBlobStorage(BlobStorage):
    """Stores objects under MEDIA_ROOT; the app serves them from /media."""

    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    async def _put(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        target = (self.root / bucket / path).resolve()
        if self.root.resolve() not in target.parents:
            raise BackendError("Invalid storage path")
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as e:
            logger.error(f"Local upload failed for {bucket}/{path}: {e}")
            raise BackendError("Failed to upload file.")

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/media/{bucket}/{path}"


class SupabaseBlobStorage(BlobStorage):
    def __init__(self, url: str, service_key: str):
        from supabase import create_client

        self.client = create_client(url, service_key)

    async def _put(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.storage.from_(bucket).upload,
                path,
                data,
                {"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            logger.error(f"Supabase upload failed for {bucket}/{path}: {e}")
            raise BackendError("Failed to upload file.")

    def public_url(self, bucket: str, path: str) -> str:
        return self.client.storage.from_(bucket).get_public_url(path)


_storage: Optional[BlobStorage] = None

def get_blob_storage() -> BlobStorage:
    """Storage singleton; Supabase when configured, local disk otherwise."""
    global _storage

    if _storage is None:
        if settings.supabase_url and settings.supabase_service_key:
            _storage = SupabaseBlobStorage(settings.supabase_url, settings.supabase_service_key)
        else:
            _storage = LocalBlobStorage(settings.media_root, settings.public_base_url)

    return _storage
