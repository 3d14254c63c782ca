# =============================================================================
# core/services/avatar_service.py - Avatar Upload Flow
# =============================================================================
# Uploads a profile picture to object storage and points the signed-in
# user's profile at it through AuthService.update_avatar.
#
# Usage:
#   avatars = AvatarService(auth_service)
#   user = await avatars.upload_avatar(data, "me.png", "image/png")
#   user = await avatars.reset_avatar()
# =============================================================================

import logging
import secrets
from pathlib import PurePosixPath

from app.config import Settings, settings
from app.exceptions import ValidationError
from core.models.user import CurrentUser, Notice, NoticeLevel
from core.services.auth_service import AuthService
from core.services.interfaces import ObjectStorage
from lib.utils import generated_avatar_url

logger = logging.getLogger(__name__)


class AvatarService:
    """
    Profile picture upload and reset.

    Notices go out on the auth service's notice channel so views see one
    stream of messages.
    """

    def __init__(
        self,
        auth: AuthService,
        storage: ObjectStorage | None = None,
        config: Settings | None = None,
    ):
        if storage is None:
            from core.services.storage_service import SupabaseObjectStorage
            storage = SupabaseObjectStorage()

        self._auth = auth
        self._storage = storage
        self._config = config or settings

    def _notify(self, title: str, message: str, level: NoticeLevel = NoticeLevel.INFO) -> None:
        self._auth.notices.publish(Notice(title=title, message=message, level=level))

    def _validate(self, content: bytes, content_type: str) -> None:
        if not (content_type or "").startswith("image/"):
            raise ValidationError("the file must be an image.", field="content_type")
        if len(content) > self._config.max_avatar_size_bytes:
            raise ValidationError(
                f"the image cannot exceed {self._config.MAX_AVATAR_SIZE_MB}MB.",
                field="content",
            )

    @staticmethod
    def build_path(user_id: str, filename: str) -> str:
        """
        Storage path for a new avatar: {user_id}/avatar-{random}.{ext}

        Example:
            build_path("u1", "me.PNG")  # "u1/avatar-3f9a1c2b7d4e.png"
        """
        ext = PurePosixPath(filename).suffix.lstrip(".").lower() or "img"
        return f"{user_id}/avatar-{secrets.token_hex(6)}.{ext}"

    async def upload_avatar(
        self,
        content: bytes,
        filename: str,
        content_type: str,
    ) -> CurrentUser | None:
        """
        Upload an image and make it the signed-in user's avatar.

        If the profile write fails after the upload, the uploaded object is
        removed again before the error is re-raised.

        Returns:
            Updated CurrentUser, or None when nobody is signed in

        Raises:
            ValidationError: not an image, or too large
            StorageUploadError: upload failed
            TransientError: profile write failed
        """
        user = self._auth.user
        if user is None:
            logger.warning("Avatar upload requested with no signed-in user")
            return None

        try:
            self._validate(content, content_type)
        except ValidationError as error:
            self._notify("Error", error.user_message, NoticeLevel.ERROR)
            raise

        path = self.build_path(user.id, filename)

        try:
            public_url = await self._storage.upload(path, content, content_type)
        except Exception as e:
            logger.error(f"Avatar upload failed for {user.id}: {e}")
            self._notify("Upload error", "The image could not be uploaded.", NoticeLevel.ERROR)
            raise

        try:
            updated = await self._auth.update_avatar(public_url)
        except Exception:
            # update_avatar already produced the error notice
            logger.info(f"Removing orphaned avatar {path}")
            await self._storage.remove(path)
            raise

        if updated is None:
            logger.warning(f"User signed out during avatar upload, removing {path}")
            await self._storage.remove(path)
            return None

        self._notify("Picture uploaded", "Your profile picture has been updated.")
        return updated

    async def reset_avatar(self) -> CurrentUser | None:
        """Replace the avatar with the generated initials image."""
        user = self._auth.user
        if user is None:
            return None

        updated = await self._auth.update_avatar(generated_avatar_url(user.display_name or user.email or ""))
        if updated is not None:
            self._notify("Avatar reset", "Your profile picture has been reset.")
        return updated
