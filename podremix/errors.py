"""
errors.py — Exception hierarchy for the variant pipeline.

Collaborator failures (BackendError) are recoverable inside the tiered
synthesizer; everything else is surfaced to the caller of the step that
raised it.
"""

from __future__ import annotations

from typing import Optional, Sequence


class PodRemixError(Exception):
    """Base class for every error raised by podremix."""


class ConfigError(PodRemixError):
    """Missing or invalid configuration (env vars, product family)."""


class ImageDecodeError(PodRemixError, ValueError):
    """Bytes or data URI could not be decoded into a raster."""


class TransformError(PodRemixError):
    """A pixel transform could not be applied to the given image."""


class UnknownPresetError(PodRemixError, KeyError):
    """Requested style preset does not exist."""


# ── Collaborator errors ───────────────────────────────────────────────────────

class BackendError(PodRemixError):
    """An external collaborator (generation, vision, matting) failed."""


class RateLimitError(BackendError):
    """Collaborator answered 429 / RESOURCE_EXHAUSTED."""


class NoImageReturnedError(BackendError):
    """Collaborator answered but the response carried no image."""


# ── Pipeline errors ───────────────────────────────────────────────────────────

class SynthesisFailedError(PodRemixError):
    """Every tier failed for one strategy, including the guaranteed fallback."""

    def __init__(
        self,
        strategy_id: int,
        tier: object,
        reasons: Sequence[str] = (),
        message: Optional[str] = None,
    ) -> None:
        self.strategy_id = strategy_id
        self.tier = tier
        self.reasons = tuple(reasons)
        if message is None:
            message = f"All generation tiers failed for strategy {strategy_id}"
            if self.reasons:
                message += f" ({'; '.join(self.reasons)})"
        super().__init__(message)


class PostProcessingError(PodRemixError):
    """A fatal post-processing step failed for one variant."""

    def __init__(self, strategy_id: int, message: str) -> None:
        self.strategy_id = strategy_id
        super().__init__(message)


class BackgroundRemovalError(PostProcessingError):
    """Matting collaborator failed; the variant cannot be isolated safely."""


class ExportError(PodRemixError, ValueError):
    """Export request is invalid (scale, canvas dimensions)."""
