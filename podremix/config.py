"""
config.py — Print canvases and pipeline settings.

Settings come from the environment (and a local .env file). Print canvas
sizes follow the print-provider blueprints the product publishes to:

  tshirt      15" x 18" @ 300 DPI → 4500 x 5400 px
  sweatshirt  14" x 16" @ 300 DPI → 4200 x 4800 px
  hoodie      14" x 16" @ 300 DPI → 4200 x 4800 px
  canvas      16" x 16" @ 300 DPI → 4800 x 4800 px
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

load_dotenv()


# ── Print canvases ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PrintCanvas:
    family: str
    width: int
    height: int
    dpi: int = 300

    @property
    def size(self) -> tuple:
        return (self.width, self.height)

    @property
    def inches(self) -> tuple:
        return (self.width / self.dpi, self.height / self.dpi)


PRINT_CANVASES: Mapping[str, PrintCanvas] = MappingProxyType({
    "tshirt":     PrintCanvas("tshirt",     4500, 5400, 300),
    "sweatshirt": PrintCanvas("sweatshirt", 4200, 4800, 300),
    "hoodie":     PrintCanvas("hoodie",     4200, 4800, 300),
    "canvas":     PrintCanvas("canvas",     4800, 4800, 300),
})

DEFAULT_FAMILY = "tshirt"


def get_canvas(family: str) -> PrintCanvas:
    """Look up the print canvas for a product family (case-insensitive)."""
    key = (family or "").strip().lower()
    try:
        return PRINT_CANVASES[key]
    except KeyError:
        known = ", ".join(sorted(PRINT_CANVASES))
        raise ConfigError(f"Unknown product family {family!r} (known: {known})") from None


# ── Pipeline settings ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PipelineConfig:
    canvas: PrintCanvas = PRINT_CANVASES[DEFAULT_FAMILY]
    tier_timeout: Optional[float] = 120.0   # seconds per tier; None = no limit
    validator_fail_open: bool = True
    max_fill_fraction: float = 0.96
    trim_threshold: int = 5
    visibility_threshold: int = 50
    dark_cutoff: float = 120.0

    def with_family(self, family: str) -> "PipelineConfig":
        return replace(self, canvas=get_canvas(family))


_TRUE  = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def load_config() -> PipelineConfig:
    """Build a PipelineConfig from PODREMIX_* environment variables."""
    canvas = get_canvas(os.getenv("PODREMIX_PRODUCT_FAMILY", DEFAULT_FAMILY))

    timeout = _env_float("PODREMIX_TIER_TIMEOUT", 120.0)
    if not math.isfinite(timeout) or timeout < 0:
        raise ConfigError(f"PODREMIX_TIER_TIMEOUT must be a finite number >= 0, got {timeout}")

    max_fill = _env_float("PODREMIX_MAX_FILL", 0.96)
    if not 0 < max_fill <= 1:
        raise ConfigError(f"PODREMIX_MAX_FILL must be in (0, 1], got {max_fill}")

    trim = _env_float("PODREMIX_TRIM_THRESHOLD", 5)
    if not 0 <= trim <= 255:
        raise ConfigError(f"PODREMIX_TRIM_THRESHOLD must be in [0, 255], got {trim}")

    return PipelineConfig(
        canvas=canvas,
        tier_timeout=timeout or None,
        validator_fail_open=_env_bool("PODREMIX_VALIDATOR_FAIL_OPEN", True),
        max_fill_fraction=max_fill,
        trim_threshold=int(trim),
    )


def require_api_key(name: str) -> str:
    """Return an API key from the environment or raise ConfigError."""
    key = os.environ.get(name)
    if not key:
        raise ConfigError(f"{name} not set in environment / .env")
    return key
