"""
Inkling: Upload Validation Service
==================================

What:  Checks an uploaded image before it is sent to the vision model.
Why:   The client's file picker restricts selection to image/*, but nothing
       stops another client from posting anything. The server re-validates.
How:   Cheapest checks first, each rejecting early:

       1. Emptiness          → 400 "No image provided"
       2. Declared type      → 400 "Only image files are allowed"
       3. Size               → 413 "File too large" (Content-Length, then actual bytes)
       4. Image bytes        → 400 "Only image files are allowed" (Pillow must identify it)
       5. Provider format    → formats the models do not accept are re-encoded as PNG

Nothing is written to disk. The detected format, not the client's claim,
decides the media type forwarded upstream.
"""

import io
import logging
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from inkling.config import settings
from inkling.exceptions import UploadTooLargeError, ValidationError

logger = logging.getLogger(__name__)

NO_IMAGE_MESSAGE = "No image provided"
NOT_AN_IMAGE_MESSAGE = "Only image files are allowed"

# Media types both Claude and Gemini accept as-is
PROVIDER_MEDIA_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}


class UploadService:
    """Stateless validator; one shared instance serves every request."""

    def __init__(self, max_bytes: Optional[int] = None):
        self.max_bytes = max_bytes or settings.max_upload_bytes

    def validate_content_type(self, content_type: Optional[str]) -> None:
        if not content_type or not content_type.lower().startswith("image/"):
            raise ValidationError(
                message=NOT_AN_IMAGE_MESSAGE,
                field="image",
                context={"declared_type": content_type},
            )

    def validate_size(self, content_length: Optional[int], actual_size: Optional[int] = None) -> None:
        """
        Rejects uploads larger than max_bytes.

        content_length comes from the multipart part and may be missing or wrong,
        so the actual byte count is checked as well once it is known.
        """
        if content_length and content_length > self.max_bytes:
            raise UploadTooLargeError(limit_bytes=self.max_bytes, actual_bytes=content_length)
        if actual_size is not None and actual_size > self.max_bytes:
            raise UploadTooLargeError(limit_bytes=self.max_bytes, actual_bytes=actual_size)

    def detect_media_type(self, content: bytes) -> str:
        """
        Identifies the image format from the bytes themselves.

        Returns:
            MIME type such as "image/jpeg".

        Raises:
            ValidationError if Pillow cannot identify or verify the bytes as an image.
        """
        try:
            with Image.open(io.BytesIO(content)) as img:
                fmt = img.format
                img.verify()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            logger.info("Rejected upload that is not a decodable image: %s", e)
            raise ValidationError(
                message=NOT_AN_IMAGE_MESSAGE,
                field="image",
                context={"reason": str(e)},
            )

        media_type = Image.MIME.get(fmt or "", "")
        if not media_type.startswith("image/"):
            raise ValidationError(
                message=NOT_AN_IMAGE_MESSAGE,
                field="image",
                context={"detected_format": fmt},
            )
        return media_type

    def to_provider_format(self, content: bytes, media_type: str) -> Tuple[bytes, str]:
        """Re-encodes formats outside PROVIDER_MEDIA_TYPES (BMP, TIFF, ...) as PNG."""
        if media_type in PROVIDER_MEDIA_TYPES:
            return content, media_type

        with Image.open(io.BytesIO(content)) as img:
            if img.mode not in ("RGB", "RGBA", "L", "LA"):
                img = img.convert("RGBA")
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
        logger.info("Re-encoded %s upload as PNG (%d bytes)", media_type, buffer.tell())
        return buffer.getvalue(), "image/png"

    def validate(
        self,
        content_type: Optional[str],
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[bytes, str]:
        """
        Full validation pipeline.

        Returns:
            (image_bytes, media_type) ready for VisionEngine.transcribe().
        """
        if not content:
            raise ValidationError(message=NO_IMAGE_MESSAGE, field="image")
        self.validate_content_type(content_type)
        self.validate_size(content_length, len(content))
        media_type = self.detect_media_type(content)
        return self.to_provider_format(content, media_type)


upload_service = UploadService()
