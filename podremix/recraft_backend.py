"""
recraft_backend.py — Recraft v3 generation and background removal over HTTP.

  POST /v1/images/generations       JSON body, base64 image in data[0].b64_json
  POST /v1/images/removeBackground  multipart upload (file + response_format)

Recraft caps prompts at 1000 BYTES (not characters), so prompts are
truncated on a UTF-8 boundary after a fixed isolated-clipart template.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from .codec import data_uri_to_bytes, is_vector, sniff_mime
from .config import require_api_key
from .errors import BackendError, NoImageReturnedError, RateLimitError

logger = logging.getLogger(__name__)

RECRAFT_BASE_URL = "https://external.api.recraft.ai"
MAX_PROMPT_BYTES = 1000
PROMPT_SAFETY_BYTES = 10

ISOLATED_TEMPLATE = (
    "Isolated flat 2D clipart design with bold outlines, NO background patterns "
    "or textures, completely transparent background: "
)


def truncate_to_byte_limit(text: str, max_bytes: int) -> str:
    """Cut text to at most max_bytes of UTF-8 without splitting a character."""
    if max_bytes <= 0:
        return ""
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


def build_isolated_prompt(instructions: str) -> str:
    budget = MAX_PROMPT_BYTES - len(ISOLATED_TEMPLATE.encode("utf-8")) - PROMPT_SAFETY_BYTES
    return ISOLATED_TEMPLATE + truncate_to_byte_limit(instructions, budget)


class _RecraftClient:
    """Shared async HTTP plumbing for the Recraft endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = RECRAFT_BASE_URL,
        timeout: float = 120.0,
    ):
        if client is None:
            api_key = api_key or require_api_key("RECRAFT_API_KEY")
            client = httpx.AsyncClient(
                base_url=base_url,
                timeout=timeout,
                headers={"Authorization": f"Bearer {api_key}"},
            )
        self._http = client

    async def aclose(self) -> None:
        if not self._http.is_closed:
            await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(
        self, method: str, endpoint: str, send_auth: bool = True, **kwargs,
    ) -> httpx.Response:
        request = self._http.build_request(method, endpoint, **kwargs)
        if not send_auth:
            request.headers.pop("Authorization", None)
        try:
            response = await self._http.send(request)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("[Recraft] HTTP %s for %s %s: %s", status, method, endpoint, e.response.text[:500])
            if status == 429:
                raise RateLimitError(f"Recraft rate limited ({endpoint})") from e
            raise BackendError(f"Recraft {endpoint} failed with status {status}") from e
        except httpx.RequestError as e:
            logger.error("[Recraft] Request error for %s: %s", endpoint, e)
            raise BackendError(f"Recraft request to {endpoint} failed: {e}") from e

    async def _post_json(self, endpoint: str, **kwargs) -> Dict[str, Any]:
        response = await self._request("POST", endpoint, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Recraft {endpoint} returned invalid JSON") from e


class RecraftSynthesizer(_RecraftClient):
    """Guaranteed-isolated fallback: vector-illustration style, no reference image."""

    style = "vector_illustration"
    model = "recraftv3"
    size  = "1024x1024"

    async def generate(self, prompt: str, reference_image: Optional[bytes] = None) -> bytes:
        if reference_image is not None:
            logger.debug("Recraft ignores reference images")
        full_prompt = build_isolated_prompt(prompt)
        payload = await self._post_json("/v1/images/generations", json={
            "prompt": full_prompt,
            "style": self.style,
            "model": self.model,
            "size": self.size,
            "response_format": "b64_json",
            "n": 1,
        })

        items = payload.get("data") or []
        b64 = items[0].get("b64_json") if items and isinstance(items[0], dict) else None
        if not b64:
            raise NoImageReturnedError("Recraft returned no image data")

        data = data_uri_to_bytes(b64)
        if is_vector(data):
            raise BackendError("Recraft returned SVG output, raster expected")
        return data


def _extract_removed_image(payload: Dict[str, Any]) -> Optional[str]:
    """Find the result in any of the response shapes removeBackground uses."""
    image = payload.get("image")
    if isinstance(image, str) and image:
        return image
    if isinstance(image, dict):
        for key in ("url", "data", "b64_json", "base64"):
            if image.get(key):
                return image[key]
    items = payload.get("data")
    if isinstance(items, list) and items and isinstance(items[0], dict) and items[0].get("b64_json"):
        return items[0]["b64_json"]
    return payload.get("b64_json") or None


class RecraftBackgroundRemover(_RecraftClient):
    """Background matting through Recraft's removeBackground endpoint."""

    async def remove_background(self, image: bytes) -> bytes:
        mime = sniff_mime(image)
        ext = mime.split("/")[-1]
        payload = await self._post_json(
            "/v1/images/removeBackground",
            data={"response_format": "b64_json"},
            files={"file": (f"image.{ext}", image, mime)},
        )

        found = _extract_removed_image(payload)
        if not found:
            logger.error("[Recraft] No image in removeBackground response: %s", list(payload))
            raise NoImageReturnedError("Recraft background removal returned no image")

        if found.startswith(("http://", "https://")):
            # result URLs may live on another host; the API key stays with Recraft
            same_host = httpx.URL(found).host == self._http.base_url.host
            response = await self._request("GET", found, send_auth=same_host)
            return response.content
        return data_uri_to_bytes(found)
