"""
postprocess.py — Turn an accepted generation into a print-ready variant.

  1. background removal (skipped for the guaranteed-isolated fallback tier)
  2. decode
  3. trim transparent border          (failure → pass-through)
  4. fit onto the print canvas         (failure → native size, centred)
  5. classify product background polarity
  6. encode PNG tagged with the canvas DPI

Matting is awaited; steps 2–6 are CPU-bound and run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Tuple

from .background import BackgroundRecommendation, classify
from .codec import decode_image, encode_png
from .collaborators import BackgroundRemover
from .config import PrintCanvas
from .errors import BackgroundRemovalError, ImageDecodeError, PostProcessingError, TransformError
from .events import POSTPROCESS_PASS, POSTPROCESS_SKIPPED, EventSink, emit
from .models import GenerationAttempt, Tier, Variant, VariationStrategy
from .pixels import center_unscaled, resize_and_center_on_canvas, trim_transparent_border

logger = logging.getLogger(__name__)


class PostProcessingChain:
    def __init__(
        self,
        remover: BackgroundRemover,
        canvas: PrintCanvas,
        trim_threshold: int = 5,
        max_fill_fraction: float = 0.96,
        visibility_threshold: int = 50,
        dark_cutoff: float = 120.0,
        on_event: Optional[EventSink] = None,
    ):
        self.remover = remover
        self.canvas = canvas
        self.trim_threshold = trim_threshold
        self.max_fill_fraction = max_fill_fraction
        self.visibility_threshold = visibility_threshold
        self.dark_cutoff = dark_cutoff
        self.on_event = on_event

    async def _isolate(self, attempt: GenerationAttempt) -> bytes:
        if attempt.tier == Tier.GUARANTEED_FALLBACK:
            emit(self.on_event, POSTPROCESS_SKIPPED, attempt.strategy_id, tier=int(attempt.tier))
            return attempt.raw_image
        try:
            return await self.remover.remove_background(attempt.raw_image)
        except Exception as e:
            raise BackgroundRemovalError(
                attempt.strategy_id, f"Background removal failed for strategy {attempt.strategy_id}: {e}",
            ) from e

    def _normalize(
        self, data: bytes, strategy_id: int,
    ) -> Tuple[bytes, BackgroundRecommendation, bool]:
        try:
            image = decode_image(data)
        except ImageDecodeError as e:
            raise PostProcessingError(strategy_id, f"Could not decode image for strategy {strategy_id}: {e}") from e

        try:
            trimmed = trim_transparent_border(image, threshold=self.trim_threshold)
        except TransformError as e:
            logger.warning("Strategy %s: trim skipped (%s)", strategy_id, e)
            emit(self.on_event, POSTPROCESS_PASS, strategy_id, step="trim", error=str(e))
            trimmed = image

        normalized = True
        try:
            fitted = resize_and_center_on_canvas(
                trimmed, self.canvas.width, self.canvas.height,
                max_fill_fraction=self.max_fill_fraction,
            )
        except (TransformError, ValueError, OSError) as e:
            logger.warning("Strategy %s: canvas fit failed, using native size (%s)", strategy_id, e)
            emit(self.on_event, POSTPROCESS_PASS, strategy_id, step="normalize", error=str(e))
            fitted = center_unscaled(trimmed, self.canvas.width, self.canvas.height)
            normalized = False

        recommendation = classify(
            fitted, cutoff=self.dark_cutoff, visibility_threshold=self.visibility_threshold,
        )
        return encode_png(fitted, dpi=self.canvas.dpi), recommendation, normalized

    async def process(self, attempt: GenerationAttempt, strategy: VariationStrategy) -> Variant:
        isolated = await self._isolate(attempt)
        png, recommendation, normalized = await asyncio.to_thread(
            self._normalize, isolated, attempt.strategy_id,
        )
        return Variant(
            strategy_id=attempt.strategy_id,
            label=strategy.label,
            final_image=png,
            recommendation=recommendation,
            tier=attempt.tier,
            normalized=normalized,
        )
