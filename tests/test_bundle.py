"""Tests for the variant ZIP bundle."""

from __future__ import annotations

import json
import zipfile

from podremix.background import BackgroundRecommendation, Polarity
from podremix.bundle import create_variant_bundle
from podremix.models import StrategyFailure, Tier, Variant, VariantBatch


def make_batch(images):
    return VariantBatch(
        variants=[
            Variant(1, "Retro Sunset", images.solid(4, 4), BackgroundRecommendation(Polarity.DARK), Tier.PRIMARY),
            Variant(3, "Neon Glow", images.solid(4, 4), BackgroundRecommendation(Polarity.LIGHT),
                    Tier.GUARANTEED_FALLBACK, normalized=False),
        ],
        failures=[StrategyFailure(2, "synthesis", "All generation tiers failed for strategy 2")],
    )


def test_bundle_contents(images, tmp_path):
    zip_path = create_variant_bundle(make_batch(images), tmp_path, design_name="Sunset Beach")

    assert zip_path == tmp_path / "Sunset_Beach_V1_variants.zip"
    with zipfile.ZipFile(zip_path) as zf:
        names = set(zf.namelist())
        manifest = json.loads(zf.read("manifest.json"))

    assert names == {
        "manifest.json",
        "variants/Sunset_Beach_V1-1_Retro_Sunset_Original.png",
        "variants/Sunset_Beach_V1-3_Neon_Glow_Original.png",
    }
    assert [v["strategy_id"] for v in manifest["variants"]] == [1, 3]
    assert manifest["variants"][1]["tier"] == 4
    assert manifest["variants"][1]["normalized"] is False
    assert manifest["variants"][0]["recommendation"] == "dark"
    assert manifest["failures"] == [
        {"strategy_id": 2, "stage": "synthesis", "error": "All generation tiers failed for strategy 2"},
    ]


def test_bundle_io_failure_returns_none(images, tmp_path, caplog):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    with caplog.at_level("WARNING", logger="podremix.bundle"):
        assert create_variant_bundle(make_batch(images), blocker) is None
    assert "ZIP creation failed:" in caplog.text
