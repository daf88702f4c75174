"""Tests for the Replicate provider adapter using httpx.MockTransport."""

import json

import httpx
import pytest

from headshot_studio.models import GenerationKind
from headshot_studio.providers.errors import (
    ContentPolicyError,
    InputQualityError,
    MalformedOutputError,
    ProviderFailure,
    ProviderTimeoutError,
)
from headshot_studio.providers.replicate import (
    ReplicateProvider,
    extract_output_url,
    to_data_uri,
)

BASE_URL = "https://replicate.test/v1"
IMAGE = b"\x89PNG\r\n\x1a\nimage"


def make_provider(handler, **kwargs) -> ReplicateProvider:
    kwargs.setdefault("timeout", 5.0)
    kwargs.setdefault("poll_interval", 0)
    return ReplicateProvider(
        api_token="r8_test",
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestOutputParsing:
    """Tests for output normalization helpers."""

    def test_string_output(self):
        assert extract_output_url("https://x/y.jpg") == "https://x/y.jpg"

    def test_list_output_uses_first_element(self):
        assert extract_output_url(["https://x/1.jpg", "https://x/2.jpg"]) == "https://x/1.jpg"

    @pytest.mark.parametrize("output", [None, "", [], [None], {"url": "https://x"}, 42])
    def test_malformed_output(self, output):
        with pytest.raises(MalformedOutputError):
            extract_output_url(output)

    def test_data_uri(self):
        assert to_data_uri(b"abc", "image/png") == "data:image/png;base64,YWJj"


class TestGenerate:
    """Tests for prediction creation and polling."""

    @pytest.mark.asyncio
    async def test_headshot_prediction_succeeds_immediately(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201,
                json={"id": "p1", "status": "succeeded", "output": "https://cdn/out.jpg"},
            )

        provider = make_provider(handler)
        url = await provider.generate(
            GenerationKind.HEADSHOT,
            {"background": "office", "gender": None, "aspect_ratio": "1:1"},
            IMAGE,
            "image/png",
        )

        assert url == "https://cdn/out.jpg"
        assert seen["url"] == (
            f"{BASE_URL}/models/flux-kontext-apps/professional-headshot/predictions"
        )
        assert seen["auth"] == "Bearer r8_test"
        body = seen["body"]["input"]
        assert body["background"] == "office"
        assert "gender" not in body
        assert body["input_image"].startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_image_edit_polls_until_complete(self):
        polls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                assert "black-forest-labs/flux-kontext-pro" in str(request.url)
                return httpx.Response(
                    201,
                    json={
                        "id": "p2",
                        "status": "processing",
                        "urls": {"get": f"{BASE_URL}/predictions/p2"},
                    },
                )
            polls.append(str(request.url))
            status = "processing" if len(polls) < 2 else "succeeded"
            return httpx.Response(
                200,
                json={"id": "p2", "status": status, "output": ["https://cdn/edit.jpg"]},
            )

        provider = make_provider(handler)
        url = await provider.generate(
            GenerationKind.IMAGE_EDIT, {"prompt": "blue sky"}, IMAGE, "image/png"
        )

        assert url == "https://cdn/edit.jpg"
        assert polls == [f"{BASE_URL}/predictions/p2"] * 2

    @pytest.mark.asyncio
    async def test_failed_prediction_is_classified(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                201,
                json={"id": "p3", "status": "failed", "error": "No face detected in image"},
            )

        with pytest.raises(InputQualityError):
            await make_provider(handler).generate(
                GenerationKind.HEADSHOT, {}, IMAGE, "image/png"
            )

    @pytest.mark.asyncio
    async def test_http_error_is_classified(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, text="Input flagged as sensitive (E005)")

        with pytest.raises(ContentPolicyError) as exc_info:
            await make_provider(handler).generate(
                GenerationKind.IMAGE_EDIT, {"prompt": "x"}, IMAGE, "image/png"
            )
        assert "sensitive" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_connection_error_is_provider_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderFailure):
            await make_provider(handler).generate(GenerationKind.HEADSHOT, {}, IMAGE, "image/png")

    @pytest.mark.asyncio
    async def test_request_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(ProviderTimeoutError):
            await make_provider(handler).generate(GenerationKind.HEADSHOT, {}, IMAGE, "image/png")

    @pytest.mark.asyncio
    async def test_polling_deadline(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": "p4", "status": "processing"})

        provider = make_provider(handler, timeout=0.05, poll_interval=0.01)
        with pytest.raises(ProviderTimeoutError):
            await provider.generate(GenerationKind.HEADSHOT, {}, IMAGE, "image/png")

    @pytest.mark.asyncio
    async def test_succeeded_without_output_is_malformed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"id": "p5", "status": "succeeded", "output": None})

        with pytest.raises(MalformedOutputError):
            await make_provider(handler).generate(GenerationKind.HEADSHOT, {}, IMAGE, "image/png")

    @pytest.mark.asyncio
    async def test_missing_token(self):
        provider = ReplicateProvider(api_token="", base_url=BASE_URL)
        provider.api_token = ""

        with pytest.raises(ProviderFailure):
            await provider.generate(GenerationKind.HEADSHOT, {}, IMAGE, "image/png")
