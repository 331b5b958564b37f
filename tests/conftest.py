"""Shared test fixtures: image builders and scripted collaborators."""

from __future__ import annotations

import asyncio
import io
from types import SimpleNamespace
from typing import List, Optional, Tuple

import pytest
from PIL import Image

from podremix.collaborators import MockupVerdict


# ── Image builders ────────────────────────────────────────────────────────────

def make_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def solid(width: int, height: int, color=(255, 0, 0, 255)) -> bytes:
    return make_png(Image.new("RGBA", (width, height), color))


def block(
    size: Tuple[int, int],
    box: Tuple[int, int, int, int],
    color=(255, 255, 255, 255),
) -> bytes:
    """Transparent image of size with an opaque rectangle at box (x1, y1, x2, y2)."""
    im = Image.new("RGBA", size, (0, 0, 0, 0))
    im.paste(Image.new("RGBA", (box[2] - box[0], box[3] - box[1]), color), box[:2])
    return make_png(im)


def open_png(data: bytes) -> Image.Image:
    im = Image.open(io.BytesIO(data))
    im.load()
    return im


# ── Scripted collaborators ────────────────────────────────────────────────────

class ScriptedSynthesizer:
    """Returns (or raises) scripted outputs in order; records every call."""

    def __init__(self, outputs: List[object], delay: float = 0.0, default: Optional[object] = None):
        self.outputs = list(outputs)
        self.delay = delay
        self.default = default
        self.calls: List[Tuple[str, Optional[bytes]]] = []
        self.cancelled = 0

    async def generate(self, prompt: str, reference_image: Optional[bytes] = None) -> bytes:
        self.calls.append((prompt, reference_image))
        item = self.outputs.pop(0) if self.outputs else self.default
        if callable(item) and not isinstance(item, BaseException):
            item = item(prompt)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if isinstance(item, BaseException):
            raise item
        if item is None:
            raise RuntimeError("script exhausted")
        return item


class ScriptedClassifier:
    """is_mockup verdicts in order (True = mockup); exceptions are raised."""

    def __init__(self, verdicts: List[object], default: object = False):
        self.verdicts = list(verdicts)
        self.default = default
        self.calls = 0

    async def classify_mockup(self, image: bytes) -> MockupVerdict:
        self.calls += 1
        item = self.verdicts.pop(0) if self.verdicts else self.default
        if isinstance(item, BaseException):
            raise item
        return MockupVerdict(bool(item), "mockup" if item else "flat artwork")


class FakeRemover:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = 0

    async def remove_background(self, image: bytes) -> bytes:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return image


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def images() -> SimpleNamespace:
    return SimpleNamespace(solid=solid, block=block, open=open_png, png=make_png)


@pytest.fixture
def fakes() -> SimpleNamespace:
    return SimpleNamespace(
        Synthesizer=ScriptedSynthesizer,
        Classifier=ScriptedClassifier,
        Remover=FakeRemover,
    )


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def sink(events):
    return events.append


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "PODREMIX_PRODUCT_FAMILY",
        "PODREMIX_TIER_TIMEOUT",
        "PODREMIX_VALIDATOR_FAIL_OPEN",
        "PODREMIX_MAX_FILL",
        "PODREMIX_TRIM_THRESHOLD",
        "PODREMIX_LOG_LEVEL",
        "GEMINI_API_KEY",
        "RECRAFT_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
