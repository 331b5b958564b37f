"""
models.py — Records passed between pipeline stages.

  SourceImage        the uploaded image every variant is remixed from
  VariationStrategy  one planned variant (from the upstream planner)
  GenerationAttempt  the image a tier produced for a strategy
  Variant            the finished, print-ready result
  VariantBatch       variants + per-strategy failures for one run
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from .background import BackgroundRecommendation
from .codec import decode_image, sniff_mime


@dataclass(frozen=True)
class SourceImage:
    data: bytes
    width: int
    height: int
    upload_id: str = ""

    @classmethod
    def from_bytes(cls, data: bytes, upload_id: str = "") -> "SourceImage":
        """Decode once to verify the payload and record its dimensions."""
        image = decode_image(data)
        return cls(bytes(data), image.width, image.height, upload_id)

    @property
    def mime_type(self) -> str:
        return sniff_mime(self.data)


class VariationStrategy(BaseModel):
    id: int = Field(description="Unique within one run; results correlate on it")
    label: str = Field(description="Short display name, e.g. 'Retro Sunset'")
    instructions: str = Field(description="Prompt text describing how to remix the source")


class Tier(IntEnum):
    PRIMARY             = 1
    CONSTRAINED         = 2
    NO_CONTEXT          = 3
    GUARANTEED_FALLBACK = 4

    @property
    def label(self) -> str:
        name = self.name.replace("_", " ").title()
        return f"Tier {self.value} ({name})"


@dataclass(frozen=True)
class GenerationAttempt:
    strategy_id: int
    tier: Tier
    raw_image: bytes
    validated: bool
    rejections: Tuple[str, ...] = ()       # reasons earlier tiers were abandoned


@dataclass(frozen=True)
class Variant:
    strategy_id: int
    label: str
    final_image: bytes                      # PNG, exact canvas size, DPI-tagged
    recommendation: BackgroundRecommendation
    tier: Tier
    normalized: bool = True                 # False when the canvas fit fell back to native size


@dataclass(frozen=True)
class StrategyFailure:
    strategy_id: int
    stage: str                              # "synthesis" | "postprocess"
    error: str


@dataclass
class VariantBatch:
    variants: List[Variant] = field(default_factory=list)
    failures: List[StrategyFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def partial(self) -> bool:
        return bool(self.variants) and bool(self.failures)

    def get(self, strategy_id: int) -> Optional[Variant]:
        return next((v for v in self.variants if v.strategy_id == strategy_id), None)
