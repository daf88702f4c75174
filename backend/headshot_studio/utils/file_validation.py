"""Upload validation for source images."""

from typing import Optional

from headshot_studio.core.config import settings

# Magic number signatures for image type detection
JPEG_SIGNATURE = b"\xff\xd8\xff"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
RIFF_SIGNATURE = b"RIFF"
WEBP_MARKER = b"WEBP"

ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")


class FileValidationError(Exception):
    """Raised when file validation fails."""

    pass


def detect_image_type(file_content: bytes) -> Optional[str]:
    """
    Detect an image MIME type from its magic number.

    Args:
        file_content: Leading bytes of the upload

    Returns:
        MIME type, or None if the content is not a supported image
    """
    if file_content.startswith(JPEG_SIGNATURE):
        return "image/jpeg"
    if file_content.startswith(PNG_SIGNATURE):
        return "image/png"
    if file_content.startswith(GIF_SIGNATURES):
        return "image/gif"
    if file_content.startswith(RIFF_SIGNATURE) and file_content[8:12] == WEBP_MARKER:
        return "image/webp"
    return None


def validate_image_upload(
    file_content: bytes,
    filename: str = "",
    max_size: Optional[int] = None,
) -> str:
    """
    Validate an uploaded image by signature and size.

    The declared content type of the upload is ignored; only the bytes count.

    Args:
        file_content: Full upload content
        filename: Original filename (for error messages)
        max_size: Size limit in bytes (defaults to settings.MAX_UPLOAD_BYTES)

    Returns:
        Detected MIME type

    Raises:
        FileValidationError: If the file is empty, too large or not an image
    """
    if not file_content:
        raise FileValidationError("Empty file provided. Please upload an image.")

    max_size = max_size or settings.MAX_UPLOAD_BYTES
    if len(file_content) > max_size:
        raise FileValidationError(
            f"File size ({len(file_content) / 1024 / 1024:.2f} MB) exceeds maximum allowed "
            f"size ({max_size / 1024 / 1024:.0f} MB)"
        )

    mime_type = detect_image_type(file_content)
    if mime_type is None:
        raise FileValidationError(
            f"Unsupported file type. Only JPEG, PNG, WebP and GIF images are accepted. "
            f"File '{filename}' does not match expected format."
        )
    return mime_type
