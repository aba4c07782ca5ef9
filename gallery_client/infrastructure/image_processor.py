"""
Upload checks and naming for image files
"""
from PIL import Image, UnidentifiedImageError
from io import BytesIO
from typing import Tuple
import secrets
import time

from ..config import settings
from ..exceptions import InvalidFileError

# Pillow format name -> MIME type
FORMAT_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


class ImageProcessor:
    """Image validation and storage naming"""

    @staticmethod
    def generate_unique_filename(original_filename: str, content_type: str = "") -> str:
        """Storage key of the form '<epoch ms>-<random>.<ext>'"""
        if "." in original_filename:
            ext = original_filename.rsplit(".", 1)[-1].lower()
        else:
            ext = MIME_EXTENSIONS.get(content_type, "jpg")
        millis = int(time.time() * 1000)
        return f"{millis}-{secrets.token_hex(6)}.{ext}"

    @staticmethod
    def get_image_dimensions(image_bytes: bytes) -> Tuple[int, int]:
        """
        Get image dimensions without fully loading it

        Raises:
            InvalidFileError: If the bytes are not a readable image
        """
        try:
            with Image.open(BytesIO(image_bytes)) as img:
                return img.size
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidFileError() from e

    @staticmethod
    def validate_image_file(image_bytes: bytes, content_type: str) -> str:
        """
        Check an upload against the size and type limits

        Args:
            image_bytes: File contents
            content_type: MIME type declared by the caller

        Returns:
            The MIME type detected from the file contents

        Raises:
            InvalidFileError: If the file is too large, of a disallowed type,
                or not a decodable image
        """
        max_mb = settings.MAX_UPLOAD_SIZE_BYTES // (1024 * 1024)
        if len(image_bytes) > settings.MAX_UPLOAD_SIZE_BYTES:
            raise InvalidFileError(f"File size must be less than {max_mb}MB")

        if content_type not in settings.ALLOWED_IMAGE_TYPES:
            raise InvalidFileError("File must be a valid image (JPEG, PNG, WebP, or GIF)")

        try:
            with Image.open(BytesIO(image_bytes)) as img:
                detected = FORMAT_MIME_TYPES.get(img.format or "")
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise InvalidFileError() from e

        if detected not in settings.ALLOWED_IMAGE_TYPES:
            raise InvalidFileError("File must be a valid image (JPEG, PNG, WebP, or GIF)")

        return detected
