"""
filters.py — Filter descriptor parsing and named style presets.

The editor expresses adjustments as a compact CSS-like string, e.g.

    "sepia(0.3) saturate(0.9) brightness(1.05)"

parse_filter() turns that into a FilterDescriptor. It never raises: unknown
tokens are ignored and missing fields keep their identity value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from .errors import UnknownPresetError


@dataclass(frozen=True)
class FilterDescriptor:
    brightness: float = 1.0
    contrast:   float = 1.0
    saturation: float = 1.0
    sepia:      float = 0.0

    @property
    def is_identity(self) -> bool:
        return self == IDENTITY

    def to_css(self) -> str:
        if self.is_identity:
            return "none"
        parts = []
        if self.brightness != 1.0:
            parts.append(f"brightness({self.brightness:g})")
        if self.contrast != 1.0:
            parts.append(f"contrast({self.contrast:g})")
        if self.saturation != 1.0:
            parts.append(f"saturate({self.saturation:g})")
        if self.sepia != 0.0:
            parts.append(f"sepia({self.sepia:g})")
        return " ".join(parts)


IDENTITY = FilterDescriptor()

_TOKEN = re.compile(r"([a-z-]+)\s*\(\s*([^()]*?)\s*\)", re.I)
_NUMBER = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")

# token name → descriptor field
_FIELDS: Mapping[str, str] = MappingProxyType({
    "brightness": "brightness",
    "contrast":   "contrast",
    "saturate":   "saturation",
    "saturation": "saturation",
    "sepia":      "sepia",
})


def parse_filter(text: Optional[str]) -> FilterDescriptor:
    """Parse a filter string into a FilterDescriptor (never raises)."""
    if not text or text.strip().lower() == "none":
        return IDENTITY

    values: Dict[str, float] = {}
    for name, raw in _TOKEN.findall(text):
        field_name = _FIELDS.get(name.lower())
        if field_name is None or field_name in values:
            continue
        if not _NUMBER.match(raw):
            continue
        values[field_name] = float(raw)

    if "sepia" in values:
        values["sepia"] = min(1.0, values["sepia"])
    return FilterDescriptor(**values)


# ── Style presets ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StylePreset:
    id: str
    name: str
    description: str
    best_for: str                   # "light" | "dark" | "both"
    filter_text: str
    invert_lightness: bool = False

    @property
    def descriptor(self) -> FilterDescriptor:
        return parse_filter(self.filter_text)


PRESETS: Mapping[str, StylePreset] = MappingProxyType({
    "original": StylePreset("original", "Original", "No adjustments, original design",
                            "both", "none"),
    "vibrant":  StylePreset("vibrant", "Vibrant", "Enhanced saturation and contrast",
                            "light", "saturate(1.3) contrast(1.1)"),
    "vintage":  StylePreset("vintage", "Vintage", "Warm, sepia-toned effect",
                            "light", "sepia(0.3) saturate(0.9) brightness(1.05)"),
    "invert":   StylePreset("invert", "Invert", "Inverted lightness for dark backgrounds",
                            "dark", "none", invert_lightness=True),
    "muted":    StylePreset("muted", "Muted", "Softer, desaturated look",
                            "light", "saturate(0.7) brightness(1.05)"),
    "bold":     StylePreset("bold", "Bold", "High contrast for dark backgrounds",
                            "dark", "contrast(1.2) brightness(1.1)"),
})


def get_preset(name: str) -> StylePreset:
    try:
        return PRESETS[name.strip().lower()]
    except KeyError:
        raise UnknownPresetError(name) from None


def presets_for(polarity: str) -> List[StylePreset]:
    """Presets suited to a product background polarity ("light" / "dark")."""
    polarity = str(getattr(polarity, "value", polarity)).lower()
    return [p for p in PRESETS.values() if p.best_for in (polarity, "both")]


def default_preset(polarity: str) -> StylePreset:
    polarity = str(getattr(polarity, "value", polarity)).lower()
    return PRESETS["vibrant"] if polarity == "light" else PRESETS["invert"]
