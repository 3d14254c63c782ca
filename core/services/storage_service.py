# =============================================================================
# core/services/storage_service.py - Supabase Storage Operations
# =============================================================================
# Handles uploads to Supabase Storage and hands back public URLs.
# Used by the avatar upload flow; the auth service itself only ever sees
# the resulting URL.
# =============================================================================

import logging

from app.config import settings
from app.exceptions import StorageUploadError
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


class SupabaseObjectStorage:
    """
    ObjectStorage backed by one public Supabase Storage bucket.

    Example:
        storage = SupabaseObjectStorage()  # avatars bucket
        url = await storage.upload("u1/avatar-x1.png", data, "image/png")
    """

    def __init__(self, bucket: str | None = None):
        self.bucket = bucket or settings.AVATAR_BUCKET

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        """
        Upload bytes and return the object's public URL.

        Args:
            path: Object path inside the bucket
            content: File bytes
            content_type: MIME type stored with the object

        Returns:
            Public URL string

        Raises:
            StorageUploadError: If upload fails
        """
        try:
            client = await SupabaseClient.get_client()
            bucket = client.storage.from_(self.bucket)

            await bucket.upload(
                path=path,
                file=content,
                file_options={"content-type": content_type, "upsert": "false"}
            )
            public_url = await bucket.get_public_url(path)

            logger.info(f"Uploaded file to storage: {self.bucket}/{path}")
            return public_url

        except Exception as e:
            logger.error(f"Storage upload failed: {e}")
            raise StorageUploadError(path, str(e)) from e

    async def remove(self, path: str) -> bool:
        """
        Delete an object.

        Returns:
            True if deleted successfully
        """
        try:
            client = await SupabaseClient.get_client()
            await client.storage.from_(self.bucket).remove([path])
            logger.info(f"Deleted file from storage: {self.bucket}/{path}")
            return True

        except Exception as e:
            logger.error(f"Failed to delete file: {e}")
            return False
