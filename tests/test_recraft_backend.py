"""Tests for the Recraft HTTP backend (httpx.MockTransport, no network)."""

from __future__ import annotations

import asyncio
import base64
import json

import httpx
import pytest

from podremix.errors import BackendError, ConfigError, NoImageReturnedError, RateLimitError
from podremix.recraft_backend import (
    ISOLATED_TEMPLATE,
    MAX_PROMPT_BYTES,
    RECRAFT_BASE_URL,
    RecraftBackgroundRemover,
    RecraftSynthesizer,
    build_isolated_prompt,
    truncate_to_byte_limit,
)

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
PNG_B64 = base64.b64encode(PNG).decode()


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=RECRAFT_BASE_URL)


def run(coro_factory, handler, cls):
    async def scenario():
        async with cls(client=client_for(handler)) as backend:
            return await coro_factory(backend)
    return asyncio.run(scenario())


class TestPrompt:
    def test_truncation_is_utf8_safe(self):
        text = "é" * 600          # 1200 bytes
        cut = truncate_to_byte_limit(text, 999)
        assert len(cut.encode("utf-8")) <= 999
        assert cut == "é" * 499

    def test_short_text_untouched(self):
        assert truncate_to_byte_limit("fox", 10) == "fox"
        assert truncate_to_byte_limit("fox", 0) == ""

    def test_full_prompt_within_limit(self):
        prompt = build_isolated_prompt("🦊 fox " * 400)
        assert prompt.startswith(ISOLATED_TEMPLATE)
        assert len(prompt.encode("utf-8")) <= MAX_PROMPT_BYTES


class TestGenerate:
    def test_request_and_response(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [{"b64_json": PNG_B64}]})

        data = run(lambda b: b.generate("a retro fox", reference_image=b"ignored"), handler, RecraftSynthesizer)

        assert data == PNG
        assert seen["path"] == "/v1/images/generations"
        body = seen["body"]
        assert body["prompt"] == ISOLATED_TEMPLATE + "a retro fox"
        assert body["style"] == "vector_illustration"
        assert body["model"] == "recraftv3"
        assert body["response_format"] == "b64_json"
        assert body["n"] == 1

    def test_svg_rejected(self):
        svg = base64.b64encode(b'<svg xmlns="http://www.w3.org/2000/svg"></svg>').decode()

        def handler(request):
            return httpx.Response(200, json={"data": [{"b64_json": svg}]})

        with pytest.raises(BackendError):
            run(lambda b: b.generate("fox"), handler, RecraftSynthesizer)

    def test_empty_response(self):
        with pytest.raises(NoImageReturnedError):
            run(lambda b: b.generate("fox"), lambda r: httpx.Response(200, json={"data": []}), RecraftSynthesizer)

    def test_rate_limit(self):
        with pytest.raises(RateLimitError):
            run(lambda b: b.generate("fox"), lambda r: httpx.Response(429, text="slow down"), RecraftSynthesizer)

    def test_server_error(self):
        with pytest.raises(BackendError):
            run(lambda b: b.generate("fox"), lambda r: httpx.Response(500, text="oops"), RecraftSynthesizer)

    def test_missing_key(self, clean_env):
        with pytest.raises(ConfigError):
            RecraftSynthesizer()


class TestRemoveBackground:
    @pytest.mark.parametrize("payload", [
        {"image": PNG_B64},
        {"image": {"b64_json": PNG_B64}},
        {"image": {"data": PNG_B64}},
        {"image": {"base64": "data:image/png;base64," + PNG_B64}},
        {"data": [{"b64_json": PNG_B64}]},
        {"b64_json": PNG_B64},
    ])
    def test_response_shapes(self, payload):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=payload)

        assert run(lambda b: b.remove_background(PNG), handler, RecraftBackgroundRemover) == PNG
        req = requests[0]
        assert req.url.path == "/v1/images/removeBackground"
        assert req.headers["content-type"].startswith("multipart/form-data")
        assert b'name="response_format"' in req.content
        assert b'name="file"' in req.content

    def test_api_key_not_sent_to_result_host(self):
        seen = {}

        def handler(request):
            seen[request.url.host] = request.headers.get("authorization")
            if request.url.host == "cdn.example.org":
                return httpx.Response(200, content=PNG)
            return httpx.Response(200, json={"image": {"url": "https://cdn.example.org/out.png"}})

        async def scenario():
            client = httpx.AsyncClient(
                transport=httpx.MockTransport(handler),
                base_url=RECRAFT_BASE_URL,
                headers={"Authorization": "Bearer SECRET"},
            )
            async with RecraftBackgroundRemover(client=client) as backend:
                return await backend.remove_background(PNG)

        assert asyncio.run(scenario()) == PNG
        assert seen[httpx.URL(RECRAFT_BASE_URL).host] == "Bearer SECRET"
        assert seen["cdn.example.org"] is None

    def test_url_result_is_fetched(self):
        def handler(request):
            if request.url.host == "cdn.example.com":
                return httpx.Response(200, content=PNG)
            return httpx.Response(200, json={"image": {"url": "https://cdn.example.com/out.png"}})

        assert run(lambda b: b.remove_background(PNG), handler, RecraftBackgroundRemover) == PNG

    def test_no_image(self):
        with pytest.raises(NoImageReturnedError):
            run(lambda b: b.remove_background(PNG), lambda r: httpx.Response(200, json={}), RecraftBackgroundRemover)

    def test_http_error(self):
        with pytest.raises(BackendError):
            run(lambda b: b.remove_background(PNG), lambda r: httpx.Response(400, text="bad"), RecraftBackgroundRemover)
