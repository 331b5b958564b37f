"""
export.py — Final print file from an edited variant.

The editor sends the variant, a filter string, a scale and an offset from
centre. export_variant() reproduces that edit at print resolution:

  decode → (invert lightness) → filter → Lanczos scale → centre + offset
        → clamp inside canvas → composite on transparent canvas → PNG

Offsets are in canvas pixels. Nothing here is retried: invalid input and
decode errors go straight back to the caller.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from PIL import Image

from .codec import decode_image, encode_png
from .errors import ExportError
from .filters import IDENTITY, FilterDescriptor, get_preset, parse_filter
from .models import VariationStrategy
from .pixels import TRANSPARENT, apply_filter, composite_onto, invert_lightness

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportRequest:
    source_variant: bytes
    filter: FilterDescriptor = IDENTITY
    canvas_width: int = 4500
    canvas_height: int = 5400
    scale: float = 1.0
    offset: Tuple[int, int] = (0, 0)
    invert: bool = False
    dpi: Optional[int] = None


def _validate(request: ExportRequest) -> None:
    if not request.scale > 0:
        raise ExportError(f"scale must be > 0, got {request.scale}")
    if request.canvas_width <= 0 or request.canvas_height <= 0:
        raise ExportError(f"Invalid canvas {request.canvas_width}x{request.canvas_height}")
    if request.dpi is not None and request.dpi <= 0:
        raise ExportError(f"dpi must be > 0, got {request.dpi}")


def export_variant(request: ExportRequest) -> bytes:
    """Render the edited variant onto a fresh transparent canvas and encode it."""
    _validate(request)
    image = decode_image(request.source_variant)

    if request.invert:
        image = invert_lightness(image)
    image = apply_filter(image, request.filter)

    sw = max(1, int(round(image.width * request.scale)))
    sh = max(1, int(round(image.height * request.scale)))
    if (sw, sh) != image.size:
        image = image.resize((sw, sh), Image.LANCZOS)

    cw, ch = request.canvas_width, request.canvas_height
    dx, dy = request.offset
    x = int(round((cw - sw) / 2)) + int(dx)
    y = int(round((ch - sh) / 2)) + int(dy)
    logger.debug("export: %dx%d at (%d, %d) on %dx%d", sw, sh, x, y, cw, ch)

    canvas = Image.new("RGBA", (cw, ch), TRANSPARENT)
    return encode_png(composite_onto(canvas, image, x, y), dpi=request.dpi)


def export_with_preset(
    variant: bytes,
    preset_name: str,
    canvas_width: int,
    canvas_height: int,
    scale: float = 1.0,
    offset: Tuple[int, int] = (0, 0),
    dpi: Optional[int] = None,
) -> bytes:
    preset = get_preset(preset_name)
    return export_variant(ExportRequest(
        source_variant=variant,
        filter=preset.descriptor,
        canvas_width=canvas_width,
        canvas_height=canvas_height,
        scale=scale,
        offset=offset,
        invert=preset.invert_lightness,
        dpi=dpi,
    ))


def apply_filters_to_design(image: bytes, filter_text: Optional[str]) -> bytes:
    """Apply a filter string at native size. Identity filters return input unchanged."""
    descriptor = parse_filter(filter_text)
    if descriptor.is_identity:
        return image
    filtered = apply_filter(decode_image(image), descriptor)
    return encode_png(filtered)


# ── Download names ────────────────────────────────────────────────────────────

def sanitize_filename(text: str) -> str:
    text = re.sub(r"[^a-zA-Z0-9\s-]", "", text).strip()
    return re.sub(r"\s+", "_", text)


def download_filename(
    strategy: Union[str, VariationStrategy],
    design_name: str = "Design",
    batch: int = 1,
    variant: Optional[int] = None,
    style: str = "Original",
) -> str:
    """
    Standard download name: [Design]_V[batch](-[variant])_[Strategy]_[Style].png

    e.g. "Sunset_Beach_V1-2_Color_Pop_Vibrant.png"
    """
    label = strategy.label if isinstance(strategy, VariationStrategy) else strategy
    batch_part = f"V{batch}-{variant}" if variant else f"V{batch}"
    parts = [sanitize_filename(design_name), batch_part, sanitize_filename(label), sanitize_filename(style)]
    return "_".join(parts) + ".png"
