"""
Image sources: Telegram photos play the camera, image documents play the gallery.
Both hand back a CapturedImage with the bytes base64-encoded.
"""

import base64
import io
import logging

from aiogram import Bot, types
from aiogram.exceptions import TelegramAPIError
from PIL import Image, UnidentifiedImageError

from ..exceptions import CaptureFailure, PermissionDenied, SelectionFailure
from ..models import CapturedImage

log = logging.getLogger(__name__)


class CameraPermissions:
    """
    Per-user camera grant, kept in memory.
    An empty allow-list grants anyone who asks.
    """

    def __init__(self, allowed_user_ids=()):
        self.allowed = frozenset(allowed_user_ids)
        self._granted: dict[int, bool] = {}

    def status(self, user_id: int) -> bool | None:
        """None until the user has been asked."""
        return self._granted.get(user_id)

    def request(self, user_id: int) -> bool:
        ok = not self.allowed or user_id in self.allowed
        self._granted[user_id] = ok
        log.info("Camera permission %s for user %s", "granted" if ok else "denied", user_id)
        return ok

    def require(self, user_id: int) -> None:
        if not self._granted.get(user_id):
            raise PermissionDenied(f"camera permission not granted for user {user_id}")


def image_from_bytes(uri: str, data: bytes, width: int | None = None, height: int | None = None) -> CapturedImage:
    """Build a CapturedImage; reads the size from the bytes when not given."""
    if width is None or height is None:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    return CapturedImage(
        uri=uri,
        width=width,
        height=height,
        base64=base64.b64encode(data).decode("ascii"),
    )


async def _download(bot: Bot, file_id: str) -> bytes:
    fobj = await bot.get_file(file_id)
    b = await bot.download_file(fobj.file_path)
    return b.read() if hasattr(b, "read") else b.getvalue()


async def capture_from_camera(bot: Bot, m: types.Message, permissions: CameraPermissions) -> CapturedImage:
    """Largest size of a photo message."""
    permissions.require(m.from_user.id)
    photo = m.photo[-1]
    try:
        data = await _download(bot, photo.file_id)
    except TelegramAPIError as e:
        log.error("Error taking picture: %s", e)
        raise CaptureFailure("Failed to take picture") from e
    return image_from_bytes(photo.file_id, data, photo.width, photo.height)


def _is_image_document(m: types.Message) -> bool:
    return bool(m.document and m.document.mime_type and m.document.mime_type.startswith("image/"))


async def pick_from_gallery(bot: Bot, m: types.Message, permissions: CameraPermissions) -> CapturedImage | None:
    """
    Image sent as a file. Anything that is not an image counts as a
    cancelled selection and yields None.
    """
    permissions.require(m.from_user.id)
    if not _is_image_document(m):
        return None
    try:
        data = await _download(bot, m.document.file_id)
        return image_from_bytes(m.document.file_id, data)
    except (TelegramAPIError, UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        log.error("Error selecting an image: %s", e)
        raise SelectionFailure("Failed to pick an image from the gallery.") from e
