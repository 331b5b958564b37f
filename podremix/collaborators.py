"""
collaborators.py — Interfaces for the external services the pipeline drives.

All calls are coroutines so cancelling a strategy cancels its in-flight
request. Concrete implementations live in gemini_backend / recraft_backend;
tests substitute scripted fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class MockupVerdict:
    is_mockup: bool
    reason: str = ""


@runtime_checkable
class ImageSynthesizer(Protocol):
    async def generate(self, prompt: str, reference_image: Optional[bytes] = None) -> bytes:
        """Return encoded image bytes for prompt (optionally guided by a reference)."""
        ...


@runtime_checkable
class MockupClassifier(Protocol):
    async def classify_mockup(self, image: bytes) -> MockupVerdict:
        """Judge whether image shows a product mockup rather than isolated artwork."""
        ...


@runtime_checkable
class BackgroundRemover(Protocol):
    async def remove_background(self, image: bytes) -> bytes:
        """Return image bytes with the background made transparent."""
        ...
