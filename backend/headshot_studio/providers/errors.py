"""Typed failures raised by generation providers.

The ledger treats every subclass the same way (refund the reservation); the
distinction only matters for the message shown to the user.
"""

from typing import Optional


class ProviderFailure(Exception):
    """Base exception for any failed generation attempt."""

    user_message = "Failed to generate image"

    def __init__(self, message: str, *, details: Optional[str] = None):
        super().__init__(message)
        self.details = details or message
        # Filled in by GenerationService once the reservation is settled
        self.record = None
        self.balance: Optional[int] = None
        self.refunded = False


class ContentPolicyError(ProviderFailure):
    """The provider rejected the input or output as unsafe."""

    user_message = "Image rejected: content not suitable for generation"


class InputQualityError(ProviderFailure):
    """The input image is unusable (e.g. no face detected)."""

    user_message = "No clear face detected in the image"


class ProviderTimeoutError(ProviderFailure):
    """The provider did not finish in time."""

    user_message = "Generation timed out"


class MalformedOutputError(ProviderFailure):
    """The provider reported success but returned no usable result."""

    user_message = "Unexpected output from the image service"


def classify_failure(message: str) -> type[ProviderFailure]:
    """Map a provider error message to the matching failure type."""
    lowered = message.lower()
    if "nsfw" in lowered or "sensitive" in lowered or "safety" in lowered:
        return ContentPolicyError
    if "face" in lowered:
        return InputQualityError
    if "timeout" in lowered or "timed out" in lowered:
        return ProviderTimeoutError
    return ProviderFailure
