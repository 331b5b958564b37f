"""
pixels.py — Deterministic RGBA pixel transforms.

Every function takes a Pillow image, treats it as RGBA and returns a new
image; inputs are never mutated. Heavy lifting is numpy over (H, W, 4)
arrays, resampling is Pillow's Lanczos.

  sample_average_luminance   mean perceived luminance of visible pixels
  invert_lightness           HSL lightness flip (hue/saturation preserved)
  trim_transparent_border    crop transparent margins, re-pad evenly
  resize_and_center_on_canvas fit + centre on an exact print canvas
  apply_filter               brightness / contrast / saturation / sepia
  composite_onto             clamped alpha composite
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from PIL import Image, ImageFilter

from .errors import TransformError
from .filters import FilterDescriptor

# Rec. 601 luma weights
LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)

SEPIA_TINT    = np.array([112.0, 66.0, 20.0])
NO_VISIBLE_LUMINANCE = 128.0

TRANSPARENT = (0, 0, 0, 0)


def _rgba_array(image: Image.Image) -> np.ndarray:
    return np.asarray(image.convert("RGBA"), dtype=np.float64)


def _to_image(arr: np.ndarray) -> Image.Image:
    return Image.fromarray(np.rint(np.clip(arr, 0, 255)).astype(np.uint8), "RGBA")


def _mask_bbox(mask: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
    """(x1, y1, x2, y2) inclusive bounding box of True pixels, or None."""
    rows = np.any(mask, axis=1)
    cols = np.any(mask, axis=0)
    if not rows.any():
        return None
    y1 = int(np.argmax(rows))
    y2 = int(len(rows) - 1 - np.argmax(rows[::-1]))
    x1 = int(np.argmax(cols))
    x2 = int(len(cols) - 1 - np.argmax(cols[::-1]))
    return (x1, y1, x2, y2)


# ── Luminance ─────────────────────────────────────────────────────────────────

def sample_average_luminance(image: Image.Image, visibility_threshold: int = 50) -> float:
    """
    Mean 0.299R + 0.587G + 0.114B over pixels with alpha > visibility_threshold.

    Returns 128.0 (mid-grey) when no pixel is visible.
    """
    arr = _rgba_array(image)
    visible = arr[:, :, 3] > visibility_threshold
    if not visible.any():
        return NO_VISIBLE_LUMINANCE
    lum = arr[:, :, :3][visible] @ LUMA
    return float(np.clip(lum.mean(), 0.0, 255.0))


# ── HSL ───────────────────────────────────────────────────────────────────────

def rgb_to_hsl(rgb: np.ndarray) -> np.ndarray:
    """(..., 3) RGB in 0–255 → (..., 3) HSL with H in degrees, S/L in 0–1."""
    rgb = np.asarray(rgb, dtype=np.float64) / 255.0
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    mx = rgb.max(axis=-1)
    mn = rgb.min(axis=-1)
    d  = mx - mn
    l  = (mx + mn) / 2.0

    flat = d == 0
    ds   = np.where(flat, 1.0, d)
    denom = 1.0 - np.abs(2.0 * l - 1.0)
    s = np.where(flat, 0.0, d / np.where(denom == 0, 1.0, denom))

    h = np.select(
        [flat, mx == r, mx == g],
        [0.0, np.mod((g - b) / ds, 6.0), (b - r) / ds + 2.0],
        default=(r - g) / ds + 4.0,
    ) * 60.0

    return np.stack([np.mod(h, 360.0), np.clip(s, 0.0, 1.0), l], axis=-1)


def hsl_to_rgb(hsl: np.ndarray) -> np.ndarray:
    """(..., 3) HSL → (..., 3) float RGB in 0–255."""
    hsl = np.asarray(hsl, dtype=np.float64)
    h, s, l = hsl[..., 0], hsl[..., 1], hsl[..., 2]
    a = s * np.minimum(l, 1.0 - l)

    def f(n: int) -> np.ndarray:
        k = np.mod(n + h / 30.0, 12.0)
        return l - a * np.clip(np.minimum(k - 3.0, 9.0 - k), -1.0, 1.0)

    return np.stack([f(0), f(8), f(4)], axis=-1) * 255.0


def invert_lightness(image: Image.Image) -> Image.Image:
    """Flip HSL lightness (L → 1 − L). Alpha is copied unchanged."""
    arr = _rgba_array(image)
    hsl = rgb_to_hsl(arr[:, :, :3])
    hsl[..., 2] = 1.0 - hsl[..., 2]
    out = arr.copy()
    out[:, :, :3] = hsl_to_rgb(hsl)
    return _to_image(out)


# ── Trim / normalize ──────────────────────────────────────────────────────────

def trim_transparent_border(
    image: Image.Image,
    threshold: int = 5,
    min_padding: int = 20,
    padding_fraction: float = 0.02,
) -> Image.Image:
    """
    Crop away the border whose alpha is below threshold, then pad each axis
    symmetrically with max(min_padding, round(padding_fraction * size)) px.
    """
    rgba = image.convert("RGBA")
    alpha = np.asarray(rgba.getchannel("A"))
    bbox = _mask_bbox(alpha >= threshold)
    if bbox is None:
        raise TransformError(f"Nothing above alpha {threshold} to trim around")

    x1, y1, x2, y2 = bbox
    content = rgba.crop((x1, y1, x2 + 1, y2 + 1))
    pad_x = max(min_padding, int(round(content.width * padding_fraction)))
    pad_y = max(min_padding, int(round(content.height * padding_fraction)))

    out = Image.new("RGBA", (content.width + 2 * pad_x, content.height + 2 * pad_y), TRANSPARENT)
    out.paste(content, (pad_x, pad_y))
    return out


def _sharpen_colour(image: Image.Image) -> Image.Image:
    """Mild unsharp mask on RGB only; alpha is left as-is."""
    r, g, b, a = image.split()
    rgb = Image.merge("RGB", (r, g, b)).filter(
        ImageFilter.UnsharpMask(radius=1.2, percent=60, threshold=2)
    )
    return Image.merge("RGBA", (*rgb.split(), a))


def resize_and_center_on_canvas(
    image: Image.Image,
    canvas_width: int,
    canvas_height: int,
    max_fill_fraction: float = 0.96,
    sharpen: bool = True,
) -> Image.Image:
    """Scale uniformly to fill at most max_fill_fraction of each axis, centre it."""
    if canvas_width <= 0 or canvas_height <= 0:
        raise TransformError(f"Invalid canvas {canvas_width}x{canvas_height}")
    if not 0 < max_fill_fraction <= 1:
        raise TransformError(f"max_fill_fraction must be in (0, 1], got {max_fill_fraction}")
    if image.width <= 0 or image.height <= 0:
        raise TransformError("Cannot resize an empty image")

    rgba  = image.convert("RGBA")
    scale = min(
        canvas_width  * max_fill_fraction / rgba.width,
        canvas_height * max_fill_fraction / rgba.height,
    )
    sw = max(1, int(rgba.width * scale))
    sh = max(1, int(rgba.height * scale))

    resized = rgba.resize((sw, sh), Image.LANCZOS)
    if sharpen:
        resized = _sharpen_colour(resized)

    canvas = Image.new("RGBA", (canvas_width, canvas_height), TRANSPARENT)
    canvas.paste(resized, ((canvas_width - sw) // 2, (canvas_height - sh) // 2))
    return canvas


def center_unscaled(image: Image.Image, canvas_width: int, canvas_height: int) -> Image.Image:
    """Place image at native size in the middle of the canvas (cropped if larger)."""
    canvas = Image.new("RGBA", (canvas_width, canvas_height), TRANSPARENT)
    rgba = image.convert("RGBA")
    x = (canvas_width - rgba.width) // 2
    y = (canvas_height - rgba.height) // 2
    return composite_onto(canvas, rgba, x, y)


# ── Filters ───────────────────────────────────────────────────────────────────

def apply_filter(image: Image.Image, descriptor: FilterDescriptor) -> Image.Image:
    """
    Apply a FilterDescriptor in the editor's order:

      1. brightness × and saturation × (modulate)
      2. contrast as c·x + round(128·(1 − c))
      3. sepia: luminance-matched warm tint blended by the sepia fraction
    """
    if descriptor.is_identity:
        return image.convert("RGBA").copy()

    arr = _rgba_array(image)
    rgb = arr[:, :, :3]

    if descriptor.brightness != 1.0:
        rgb = rgb * descriptor.brightness
    if descriptor.saturation != 1.0:
        grey = (rgb @ LUMA)[..., None]
        rgb  = grey + (rgb - grey) * descriptor.saturation
    rgb = np.clip(rgb, 0, 255)

    if descriptor.contrast != 1.0:
        c = descriptor.contrast
        rgb = np.clip(c * rgb + round(128 * (1 - c)), 0, 255)

    if descriptor.sepia > 0:
        lum    = (rgb @ LUMA)[..., None]
        tinted = np.clip(SEPIA_TINT * (lum / float(SEPIA_TINT @ LUMA)), 0, 255)
        rgb    = (1.0 - descriptor.sepia) * rgb + descriptor.sepia * tinted

    out = arr.copy()
    out[:, :, :3] = rgb
    return _to_image(out)


# ── Compositing ───────────────────────────────────────────────────────────────

def clamp_position(
    x: int, y: int,
    overlay_size: Tuple[int, int],
    canvas_size: Tuple[int, int],
) -> Tuple[int, int]:
    """
    Keep an overlay inside the canvas. When the overlay is larger than the
    canvas on an axis, it is clamped so it still covers the canvas there.
    """
    (ow, oh), (cw, ch) = overlay_size, canvas_size
    x = max(min(0, cw - ow), min(max(0, cw - ow), x))
    y = max(min(0, ch - oh), min(max(0, ch - oh), y))
    return x, y


def composite_onto(canvas: Image.Image, overlay: Image.Image, x: int, y: int) -> Image.Image:
    """Alpha-composite overlay at (x, y), clamped, into a copy of canvas."""
    result  = canvas.convert("RGBA").copy()
    overlay = overlay.convert("RGBA")
    x, y = clamp_position(x, y, overlay.size, result.size)

    sx, sy = max(0, -x), max(0, -y)
    dx, dy = max(0, x), max(0, y)
    w = min(overlay.width - sx, result.width - dx)
    h = min(overlay.height - sy, result.height - dy)
    if w <= 0 or h <= 0:
        return result

    result.alpha_composite(overlay.crop((sx, sy, sx + w, sy + h)), dest=(dx, dy))
    return result
