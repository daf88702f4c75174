"""Generation providers and their typed failures."""

from headshot_studio.providers.base import GenerationProvider
from headshot_studio.providers.errors import (
    ContentPolicyError,
    InputQualityError,
    MalformedOutputError,
    ProviderFailure,
    ProviderTimeoutError,
    classify_failure,
)
from headshot_studio.providers.replicate import ReplicateProvider

__all__ = [
    "GenerationProvider",
    "ReplicateProvider",
    "ProviderFailure",
    "ContentPolicyError",
    "InputQualityError",
    "MalformedOutputError",
    "ProviderTimeoutError",
    "classify_failure",
]
