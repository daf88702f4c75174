"""Utility functions for the Headshot Studio backend."""

from headshot_studio.utils.file_validation import (
    ALLOWED_MIME_TYPES,
    FileValidationError,
    detect_image_type,
    validate_image_upload,
)

__all__ = [
    "ALLOWED_MIME_TYPES",
    "FileValidationError",
    "detect_image_type",
    "validate_image_upload",
]
