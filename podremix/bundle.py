"""
bundle.py — Bundle finished variants into a ZIP file.

Layout:
  variants/      — one print-ready PNG per variant (download naming)
  manifest.json  — per-variant tier / recommendation, plus failures
"""

from __future__ import annotations

import json
import logging
import zipfile
from pathlib import Path
from typing import Optional

from .export import download_filename, sanitize_filename
from .models import VariantBatch

logger = logging.getLogger(__name__)


def _manifest(batch: VariantBatch, design_name: str, batch_number: int) -> dict:
    return {
        "design_name": design_name,
        "batch": batch_number,
        "variants": [
            {
                "strategy_id": v.strategy_id,
                "label": v.label,
                "tier": int(v.tier),
                "tier_label": v.tier.label,
                "recommendation": v.recommendation.polarity.value,
                "recommendation_label": v.recommendation.label,
                "normalized": v.normalized,
                "file": f"variants/{download_filename(v.label, design_name, batch_number, v.strategy_id)}",
            }
            for v in batch.variants
        ],
        "failures": [
            {"strategy_id": f.strategy_id, "stage": f.stage, "error": f.error}
            for f in batch.failures
        ],
    }


def create_variant_bundle(
    batch: VariantBatch,
    output_dir: Path,
    design_name: str = "Design",
    batch_number: int = 1,
) -> Optional[Path]:
    """
    Write all variants of a batch plus a manifest into a ZIP.

    Returns:
        Path to created ZIP file, or None on failure.
    """
    manifest = _manifest(batch, design_name, batch_number)
    safe_name = sanitize_filename(design_name) or "Design"
    zip_path = Path(output_dir) / f"{safe_name}_V{batch_number}_variants.zip"

    try:
        Path(output_dir).mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
            for variant, entry in zip(batch.variants, manifest["variants"]):
                zf.writestr(entry["file"], variant.final_image)
            zf.writestr("manifest.json", json.dumps(manifest, indent=2))
    except OSError as e:
        logger.warning("ZIP creation failed: %s", e)
        return None

    logger.info("ZIP created: %s (%d KB)", zip_path.name, zip_path.stat().st_size // 1024)
    return zip_path
