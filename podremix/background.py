"""
background.py — Recommend a product background polarity for a design.

A mostly light design reads best on dark garments and vice versa. The
decision is a single threshold on average visible luminance.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from PIL import Image

from .pixels import sample_average_luminance

DARK_CUTOFF = 120.0


class Polarity(str, Enum):
    LIGHT = "light"
    DARK  = "dark"


@dataclass(frozen=True)
class BackgroundRecommendation:
    polarity: Polarity

    @property
    def label(self) -> str:
        return f"Best on {self.polarity.value} products"


def classify(
    image: Image.Image,
    cutoff: float = DARK_CUTOFF,
    visibility_threshold: int = 50,
) -> BackgroundRecommendation:
    """Luminance above cutoff means a light design, so recommend DARK products."""
    luminance = sample_average_luminance(image, visibility_threshold)
    polarity = Polarity.DARK if luminance > cutoff else Polarity.LIGHT
    return BackgroundRecommendation(polarity)
