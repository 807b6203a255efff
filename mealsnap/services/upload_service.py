"""Reading uploaded kitchen photos into memory for the vision model."""
import logging
from io import BytesIO
from typing import Optional

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from mealsnap.config import settings
from mealsnap.services.ai_service import ImagePart

logger = logging.getLogger(__name__)

ALLOWED_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp"]


class UploadValidationError(ValueError):
    """Uploaded file cannot be used as an ingredient photo."""

    pass


class UploadService:
    """Service for turning uploaded files into in-memory ImageParts."""

    def __init__(self, max_size_mb: Optional[int] = None, max_width: Optional[int] = None):
        self.max_bytes = (max_size_mb or settings.max_upload_size_mb) * 1024 * 1024
        self.max_width = max_width or settings.upload_max_width

    async def read_image(self, file: UploadFile) -> ImagePart:
        """
        Read one uploaded image fully into memory.

        Args:
            file: Uploaded file from FastAPI (or anything with the same shape)

        Returns:
            ImagePart with the (possibly downscaled) bytes and mime type

        Raises:
            UploadValidationError: If file type, size or content is invalid
        """
        name = file.filename or "upload"

        if file.content_type not in ALLOWED_TYPES:
            raise UploadValidationError(
                f"Invalid file type for {name}: {file.content_type}. Allowed: {ALLOWED_TYPES}"
            )

        contents = await file.read()

        if not contents:
            raise UploadValidationError(f"File {name} is empty")
        if len(contents) > self.max_bytes:
            raise UploadValidationError(
                f"File {name} is larger than {self.max_bytes // (1024 * 1024)} MB"
            )

        mime_type = "image/jpeg" if file.content_type == "image/jpg" else file.content_type
        data = self._optimize_image(contents, mime_type, name)
        return ImagePart(data=data, mime_type=mime_type, filename=file.filename)

    def _optimize_image(self, contents: bytes, mime_type: str, name: str) -> bytes:
        """
        Downscale wide images so vision requests stay small.

        Returns the original bytes when the image is already small enough or
        cannot be re-encoded.

        Raises:
            UploadValidationError: If the bytes are not an image at all
        """
        try:
            img = Image.open(BytesIO(contents))
        except UnidentifiedImageError as e:
            raise UploadValidationError(f"File {name} is not a readable image") from e

        try:
            with img:
                if img.width <= self.max_width:
                    return contents

                if img.mode == "RGBA" and mime_type == "image/jpeg":
                    rgb_img = Image.new("RGB", img.size, (255, 255, 255))
                    rgb_img.paste(img, mask=img.split()[3])
                    img = rgb_img

                ratio = self.max_width / img.width
                new_height = int(img.height * ratio)
                resized = img.resize((self.max_width, new_height), Image.Resampling.LANCZOS)

                buffer = BytesIO()
                image_format = {"image/png": "PNG", "image/webp": "WEBP"}.get(mime_type, "JPEG")
                resized.save(buffer, format=image_format, optimize=True, quality=85)
                return buffer.getvalue()

        except OSError as e:
            # Truncated or exotic encodings: let the vision model try the original
            logger.warning("Could not optimize image %s, sending original: %s", name, e)
            return contents


# Singleton instance
upload_service = UploadService()
