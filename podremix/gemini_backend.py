"""
gemini_backend.py — Gemini image synthesis and mockup classification.

GeminiImageSynthesizer walks a model ladder: a model that is missing or not
enabled for the key is skipped, anything else is surfaced so the tier chain
can decide what to do next. Rate limits raise RateLimitError.

GeminiMockupClassifier asks a text model whether an image is a product
mockup and reads a structured JSON answer.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, List, Optional, Sequence

from google import genai
from google.genai import types
from pydantic import BaseModel, Field, ValidationError

from .codec import sniff_mime
from .collaborators import MockupVerdict
from .config import require_api_key
from .errors import BackendError, NoImageReturnedError, RateLimitError

logger = logging.getLogger(__name__)

# Model ladder: confirmed-working first
IMAGE_MODELS: Sequence[str] = (
    "gemini-2.5-flash-image",
    "gemini-2.0-flash-exp-image-generation",
)
VISION_MODEL = "gemini-2.5-flash"

_SKIP_MODEL_ERRORS = ("not found", "permission", "not supported", "invalid")
_RATE_LIMIT_ERRORS = ("429", "RESOURCE_EXHAUSTED", "quota", "rateLimitExceeded")

MOCKUP_PROMPT = (
    "Is this image a PRODUCT MOCKUP or just GRAPHIC ARTWORK?\n\n"
    "PRODUCT MOCKUP: Design shown ON a t-shirt, mug, hoodie, poster, or any physical product\n"
    "GRAPHIC ARTWORK: Just the flat graphic/illustration (even if it has a colored background)\n\n"
    "Answer with is_product_mockup and a brief reason."
)


def _make_client(client: Optional[genai.Client]) -> genai.Client:
    if client is not None:
        return client
    return genai.Client(api_key=require_api_key("GEMINI_API_KEY"))


def _is_rate_limit(exc: BaseException) -> bool:
    err = str(exc)
    return any(k in err for k in _RATE_LIMIT_ERRORS)


def extract_image_from_response(response: Any) -> Optional[bytes]:
    """Pull the first image blob out of a Gemini response."""
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        if not content:
            continue
        for part in content.parts or []:
            inline = getattr(part, "inline_data", None)
            if inline and inline.data:
                data = inline.data
                if isinstance(data, str):
                    data = base64.b64decode(data)
                return data
    return None


class GeminiImageSynthesizer:
    """Primary synthesizer: Gemini image models with an optional reference image."""

    def __init__(
        self,
        client: Optional[genai.Client] = None,
        models: Sequence[str] = IMAGE_MODELS,
    ):
        self.client = _make_client(client)
        self.models = list(models)

    def _contents(self, prompt: str, reference_image: Optional[bytes]) -> List[Any]:
        parts = [types.Part.from_text(text=prompt)]
        if reference_image:
            parts.append(types.Part.from_bytes(
                data=reference_image, mime_type=sniff_mime(reference_image),
            ))
        return parts

    async def generate(self, prompt: str, reference_image: Optional[bytes] = None) -> bytes:
        contents = self._contents(prompt, reference_image)
        skipped: List[str] = []

        for model in self.models:
            try:
                response = await self.client.aio.models.generate_content(
                    model=model,
                    contents=contents,
                    config=types.GenerateContentConfig(
                        response_modalities=["IMAGE", "TEXT"],
                    ),
                )
            except Exception as e:
                if _is_rate_limit(e):
                    raise RateLimitError(str(e)) from e
                if any(k in str(e).lower() for k in _SKIP_MODEL_ERRORS):
                    logger.debug("Skipping image model %s: %s", model, e)
                    skipped.append(f"{model}: {e}")
                    continue
                raise BackendError(f"Gemini {model} failed: {e}") from e

            data = extract_image_from_response(response)
            if data is None:
                raise NoImageReturnedError(f"Gemini {model} returned no image")
            return data

        raise BackendError("No usable Gemini image model (" + "; ".join(skipped) + ")")


# ── Mockup classifier ─────────────────────────────────────────────────────────

class MockupJudgement(BaseModel):
    is_product_mockup: bool = Field(
        description="True when the artwork is shown on a physical product (shirt, mug, poster...)"
    )
    reason: str = Field(description="One short sentence explaining the judgement")


class GeminiMockupClassifier:
    """Vision classifier used by the output validator."""

    def __init__(self, client: Optional[genai.Client] = None, model: str = VISION_MODEL):
        self.client = _make_client(client)
        self.model = model

    async def classify_mockup(self, image: bytes) -> MockupVerdict:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_text(text=MOCKUP_PROMPT),
                    types.Part.from_bytes(data=image, mime_type=sniff_mime(image)),
                ],
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=MockupJudgement,
                ),
            )
        except Exception as e:
            if _is_rate_limit(e):
                raise RateLimitError(str(e)) from e
            raise BackendError(f"Gemini {self.model} failed: {e}") from e

        text = getattr(response, "text", None)
        if not text:
            raise BackendError("Mockup classifier returned no content")
        try:
            judgement = MockupJudgement.model_validate_json(text)
        except ValidationError as e:
            raise BackendError(f"Unparseable mockup judgement: {e}") from e

        logger.debug("Mockup judgement: %s (%s)", judgement.is_product_mockup, judgement.reason)
        return MockupVerdict(is_mockup=judgement.is_product_mockup, reason=judgement.reason)
