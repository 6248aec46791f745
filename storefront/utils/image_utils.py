import io
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Protocol
import cloudinary
import cloudinary.uploader
from PIL import Image, UnidentifiedImageError
from storefront.core.config import settings
from storefront.core.logging import get_logger
from storefront.utils.exceptions import BadRequestError

logger = get_logger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png"}
MAX_DIMENSIONS = (1080, 1080)


@dataclass(frozen=True)
class StoredImage:
    url: str
    public_id: Optional[str]


class ImageStorage(Protocol):
    def store(self, data: bytes) -> StoredImage:
        ...

    def delete(self, public_id: str) -> None:
        ...


def normalize_image(data: bytes) -> bytes:
    """Re-encode as an RGB JPEG no larger than MAX_DIMENSIONS."""
    try:
        image = Image.open(io.BytesIO(data))
        if image.mode in ("RGBA", "P", "LA"):
            image = image.convert("RGB")
        image.thumbnail(MAX_DIMENSIONS)
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=80, optimize=True)
    except (UnidentifiedImageError, OSError):
        raise BadRequestError("Uploaded file is not a valid image")
    return buffer.getvalue()


def validate_image_upload(content_type: Optional[str], size: int) -> None:
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise BadRequestError("Only .png and .jpg/.jpeg images are allowed")
    if size > settings.MAX_IMAGE_BYTES:
        raise BadRequestError("Image too large")


class CloudinaryImageStorage:
    """Object storage capability backed by Cloudinary."""

    def __init__(self, folder: str = None):
        self.folder = folder or settings.CLOUDINARY_FOLDER
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True,
        )

    def store(self, data: bytes) -> StoredImage:
        result = cloudinary.uploader.upload(
            normalize_image(data),
            folder=self.folder,
            resource_type="image",
        )
        return StoredImage(url=result.get("secure_url"), public_id=result.get("public_id"))

    def delete(self, public_id: str) -> None:
        """
        Deletes an image from Cloudinary.
        Intended to be run as a BackgroundTask.
        """
        if not public_id:
            return
        try:
            cloudinary.uploader.destroy(public_id)
            logger.info("Cleaned up product image", public_id=public_id)
        except Exception as e:
            # Orphaned remote files do not affect catalog consistency
            logger.error("Failed to delete product image", public_id=public_id, error=str(e))


@lru_cache
def get_image_storage() -> ImageStorage:
    return CloudinaryImageStorage()
