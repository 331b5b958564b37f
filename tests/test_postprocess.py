"""Tests for the post-processing chain."""

from __future__ import annotations

import asyncio

import pytest

import podremix.postprocess as postprocess
from podremix.background import Polarity
from podremix.codec import read_dpi
from podremix.config import PrintCanvas
from podremix.errors import BackendError, BackgroundRemovalError, PostProcessingError, TransformError
from podremix.events import POSTPROCESS_PASS, POSTPROCESS_SKIPPED
from podremix.models import GenerationAttempt, Tier, VariationStrategy
from podremix.postprocess import PostProcessingChain

CANVAS = PrintCanvas("test", 450, 540, 300)
STRATEGY = VariationStrategy(id=3, label="Neon", instructions="neon outline")


def attempt(raw, tier=Tier.PRIMARY):
    return GenerationAttempt(strategy_id=3, tier=tier, raw_image=raw, validated=True)


def run(chain, att):
    return asyncio.run(chain.process(att, STRATEGY))


class TestProcess:
    def test_produces_print_ready_variant(self, images, fakes):
        remover = fakes.Remover()
        chain = PostProcessingChain(remover, CANVAS)
        variant = run(chain, attempt(images.block((400, 300), (100, 100, 200, 150))))

        out = images.open(variant.final_image)
        assert out.size == (450, 540)
        assert read_dpi(variant.final_image) == (300, 300)
        assert variant.normalized
        assert variant.strategy_id == 3
        assert variant.label == "Neon"
        assert variant.tier is Tier.PRIMARY
        assert remover.calls == 1

    def test_recommendation_uses_design_colours(self, images, fakes):
        chain = PostProcessingChain(fakes.Remover(), CANVAS)
        white = run(chain, attempt(images.block((100, 100), (10, 10, 60, 60), (255, 255, 255, 255))))
        black = run(chain, attempt(images.block((100, 100), (10, 10, 60, 60), (0, 0, 0, 255))))
        assert white.recommendation.polarity is Polarity.DARK
        assert black.recommendation.polarity is Polarity.LIGHT

    def test_fallback_tier_skips_matting(self, images, fakes, events, sink):
        remover = fakes.Remover(error=BackendError("should not be called"))
        chain = PostProcessingChain(remover, CANVAS, on_event=sink)
        variant = run(chain, attempt(images.solid(64, 64), Tier.GUARANTEED_FALLBACK))
        assert remover.calls == 0
        assert variant.tier is Tier.GUARANTEED_FALLBACK
        assert events[0].kind == POSTPROCESS_SKIPPED

    def test_matting_failure_is_fatal(self, images, fakes):
        chain = PostProcessingChain(fakes.Remover(error=BackendError("recraft 500")), CANVAS)
        with pytest.raises(BackgroundRemovalError) as info:
            run(chain, attempt(images.solid(8, 8)))
        assert info.value.strategy_id == 3

    def test_undecodable_image_is_fatal(self, fakes):
        chain = PostProcessingChain(fakes.Remover(), CANVAS)
        with pytest.raises(PostProcessingError):
            run(chain, attempt(b"definitely not a png"))

    def test_trim_failure_passes_through(self, images, fakes, events, sink):
        chain = PostProcessingChain(fakes.Remover(), CANVAS, on_event=sink)
        variant = run(chain, attempt(images.solid(40, 40, (0, 0, 0, 0))))
        assert images.open(variant.final_image).size == (450, 540)
        passes = [e for e in events if e.kind == POSTPROCESS_PASS]
        assert [e.detail["step"] for e in passes] == ["trim"]
        assert passes[0].strategy_id == 3

    def test_normalize_failure_keeps_canvas_size(self, images, fakes, events, sink, monkeypatch):
        def broken(*args, **kwargs):
            raise TransformError("resampler exploded")

        monkeypatch.setattr(postprocess, "resize_and_center_on_canvas", broken)
        chain = PostProcessingChain(fakes.Remover(), CANVAS, on_event=sink)
        variant = run(chain, attempt(images.block((100, 100), (10, 10, 60, 60))))

        out = images.open(variant.final_image)
        assert out.size == (450, 540)
        assert not variant.normalized
        # trimmed 50x50 + 20px padding, centred at native size
        assert out.getchannel("A").getbbox() == (200, 245, 250, 295)
        assert [e.detail["step"] for e in events if e.kind == POSTPROCESS_PASS] == ["normalize"]
