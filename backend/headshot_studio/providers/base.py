"""Generation provider interface."""

from abc import ABC, abstractmethod
from typing import Any

from headshot_studio.models.generation import GenerationKind


class GenerationProvider(ABC):
    """Executes one costed image generation.

    Implementations return a reference to the result (a URL) or raise a
    ProviderFailure subclass. They may block for seconds to tens of seconds
    and must not touch the ledger.
    """

    name: str = "provider"

    @abstractmethod
    async def generate(
        self,
        kind: GenerationKind,
        parameters: dict[str, Any],
        image: bytes,
        mime_type: str,
    ) -> str:
        """Run the model and return the result URL.

        Args:
            kind: Which product to generate
            parameters: Opaque model options (prompt, background, ...)
            image: Uploaded source image
            mime_type: MIME type of the upload

        Returns:
            URL of the generated image

        Raises:
            ProviderFailure: On any failure (policy, input, timeout, output)
        """
