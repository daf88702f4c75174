"""Replicate HTTP adapter for headshot and image-edit models.

Creates a prediction with `Prefer: wait` and polls it until it reaches a
terminal state. Errors are mapped onto the ProviderFailure hierarchy so the
generation service can refund uniformly.
"""

import asyncio
import base64
import logging
from typing import Any, Optional

import httpx

from headshot_studio.core.config import settings
from headshot_studio.models.generation import GenerationKind
from headshot_studio.providers.base import GenerationProvider
from headshot_studio.providers.errors import (
    MalformedOutputError,
    ProviderFailure,
    ProviderTimeoutError,
    classify_failure,
)

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}


def to_data_uri(image: bytes, mime_type: str) -> str:
    """Encode an upload as a data URI accepted by Replicate inputs."""
    encoded = base64.b64encode(image).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def extract_output_url(output: Any) -> str:
    """Normalize prediction output to a single URL.

    Models return either a URL string or a list of URLs.

    Raises:
        MalformedOutputError: If no URL can be found
    """
    if isinstance(output, str) and output:
        return output
    if isinstance(output, list) and output and isinstance(output[0], str) and output[0]:
        return output[0]
    raise MalformedOutputError(f"Unexpected output format from Replicate: {output!r}")


class ReplicateProvider(GenerationProvider):
    """Generation provider backed by the Replicate predictions API."""

    name = "replicate"

    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        models: Optional[dict[GenerationKind, str]] = None,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Replicate provider.

        Args:
            api_token: Replicate API token (defaults to settings)
            base_url: API base URL (defaults to settings)
            models: Model reference per generation kind
            timeout: Overall deadline for one prediction in seconds
            poll_interval: Delay between status polls in seconds
            transport: Optional httpx transport (tests)
        """
        self.api_token = api_token or settings.REPLICATE_API_TOKEN
        self.base_url = (base_url or settings.REPLICATE_API_URL).rstrip("/")
        self.models = models or {
            GenerationKind.HEADSHOT: settings.HEADSHOT_MODEL,
            GenerationKind.IMAGE_EDIT: settings.IMAGE_EDIT_MODEL,
        }
        self.timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self.poll_interval = (
            poll_interval if poll_interval is not None
            else settings.PROVIDER_POLL_INTERVAL_SECONDS
        )
        self._transport = transport

        if not self.api_token:
            logger.warning("Replicate API token not configured")

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            "Prefer": "wait",
        }

    def build_input(
        self,
        kind: GenerationKind,
        parameters: dict[str, Any],
        image: bytes,
        mime_type: str,
    ) -> dict[str, Any]:
        """Build the model input payload, dropping unset options."""
        payload = {key: value for key, value in parameters.items() if value not in (None, "")}
        payload["input_image"] = to_data_uri(image, mime_type)
        return payload

    async def generate(
        self,
        kind: GenerationKind,
        parameters: dict[str, Any],
        image: bytes,
        mime_type: str,
    ) -> str:
        if not self.api_token:
            raise ProviderFailure("Replicate API token not configured")

        model = self.models[kind]
        payload = {"input": self.build_input(kind, parameters, image, mime_type)}
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout

        logger.info(f"Starting {kind.value} prediction on {model}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/models/{model}/predictions",
                    headers=self._get_headers(),
                    json=payload,
                )
                response.raise_for_status()
                prediction = response.json()

                while prediction.get("status") not in TERMINAL_STATUSES:
                    if loop.time() >= deadline:
                        raise ProviderTimeoutError(
                            f"Prediction {prediction.get('id')} timed out after {self.timeout}s"
                        )
                    await asyncio.sleep(self.poll_interval)
                    get_url = (prediction.get("urls") or {}).get("get") or (
                        f"{self.base_url}/predictions/{prediction['id']}"
                    )
                    response = await client.get(get_url, headers=self._get_headers())
                    response.raise_for_status()
                    prediction = response.json()

        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Replicate request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:500]
            raise classify_failure(detail)(
                f"Replicate returned HTTP {e.response.status_code}", details=detail
            ) from e
        except httpx.HTTPError as e:
            raise ProviderFailure(f"Replicate request failed: {e}") from e

        status = prediction.get("status")
        if status != "succeeded":
            error = str(prediction.get("error") or f"prediction {status}")
            logger.warning(f"Prediction {prediction.get('id')} {status}: {error}")
            raise classify_failure(error)(error)

        url = extract_output_url(prediction.get("output"))
        logger.info(f"Prediction {prediction.get('id')} succeeded")
        return url
