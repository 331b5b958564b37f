"""
pipeline.py — Fan-out / fan-in over variation strategies.

Each strategy gets its own task: tiered synthesis, then post-processing as
soon as its attempt is accepted (no batch barrier). A failing strategy
becomes a StrategyFailure entry; the batch as a whole only fails on
cancellation or invalid input.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence, Tuple

from rich.console import Console

from .config import PipelineConfig, load_config
from .events import STRATEGY_FAILED, VARIANT_READY, EventSink, emit
from .gemini_backend import GeminiImageSynthesizer, GeminiMockupClassifier
from .models import SourceImage, StrategyFailure, Variant, VariantBatch, VariationStrategy
from .postprocess import PostProcessingChain
from .recraft_backend import RecraftBackgroundRemover, RecraftSynthesizer
from .synthesizer import TieredVariantSynthesizer, ensure_unique_ids
from .validator import OutputValidator

console = Console()
logger = logging.getLogger(__name__)

Outcome = Tuple[Optional[Variant], Optional[StrategyFailure]]


class VariantPipeline:
    def __init__(
        self,
        synthesizer: TieredVariantSynthesizer,
        postprocessor: PostProcessingChain,
        on_event: Optional[EventSink] = None,
    ):
        self.synthesizer = synthesizer
        self.postprocessor = postprocessor
        self.on_event = on_event

    async def _run_strategy(self, source: SourceImage, strategy: VariationStrategy) -> Outcome:
        try:
            attempt = await self.synthesizer.synthesize(source.data, strategy)
        except Exception as e:
            return None, self._fail(strategy, "synthesis", e)

        try:
            variant = await self.postprocessor.process(attempt, strategy)
        except Exception as e:
            return None, self._fail(strategy, "postprocess", e)

        emit(
            self.on_event, VARIANT_READY, strategy.id,
            tier=int(variant.tier), polarity=variant.recommendation.polarity.value,
        )
        return variant, None

    def _fail(self, strategy: VariationStrategy, stage: str, error: Exception) -> StrategyFailure:
        logger.error("Strategy %s failed during %s: %s", strategy.id, stage, error)
        console.print(f"  [red]✗ Variant {strategy.id} ({strategy.label}) failed: {error}[/red]")
        emit(self.on_event, STRATEGY_FAILED, strategy.id, stage=stage, error=str(error))
        return StrategyFailure(strategy.id, stage, str(error))

    async def synthesize_variants(
        self,
        source: SourceImage,
        strategies: Sequence[VariationStrategy],
    ) -> VariantBatch:
        """
        Produce one print-ready variant per strategy, concurrently.

        Variants keep the order of strategies. Cancelling this call cancels
        every in-flight strategy and nothing is returned.
        """
        ensure_unique_ids(strategies)
        console.print(f"\n[bold]Remixing {len(strategies)} variant(s)[/bold] from upload {source.upload_id or '-'}")

        outcomes = await asyncio.gather(*(self._run_strategy(source, s) for s in strategies))

        batch = VariantBatch()
        for variant, failure in outcomes:
            if variant is not None:
                batch.variants.append(variant)
            else:
                batch.failures.append(failure)
        return batch

    async def aclose(self) -> None:
        """Close collaborators that hold network resources."""
        for collaborator in (
            self.synthesizer.primary,
            self.synthesizer.fallback,
            self.postprocessor.remover,
        ):
            closer = getattr(collaborator, "aclose", None)
            if closer is not None:
                await closer()


def build_pipeline(
    config: Optional[PipelineConfig] = None,
    on_event: Optional[EventSink] = None,
) -> VariantPipeline:
    """Wire Gemini (generation + vision) and Recraft (fallback + matting)."""
    config = config or load_config()

    primary = GeminiImageSynthesizer()
    classifier = GeminiMockupClassifier(client=primary.client)
    fallback = RecraftSynthesizer()
    remover = RecraftBackgroundRemover()

    validator = OutputValidator(classifier, fail_open=config.validator_fail_open, on_event=on_event)
    synthesizer = TieredVariantSynthesizer(
        primary, fallback, validator,
        tier_timeout=config.tier_timeout,
        on_event=on_event,
    )
    postprocessor = PostProcessingChain(
        remover, config.canvas,
        trim_threshold=config.trim_threshold,
        max_fill_fraction=config.max_fill_fraction,
        visibility_threshold=config.visibility_threshold,
        dark_cutoff=config.dark_cutoff,
        on_event=on_event,
    )
    return VariantPipeline(synthesizer, postprocessor, on_event=on_event)


def run_variants(
    source: SourceImage,
    strategies: Sequence[VariationStrategy],
    config: Optional[PipelineConfig] = None,
    on_event: Optional[EventSink] = None,
) -> VariantBatch:
    """Blocking wrapper around synthesize_variants for scripts and the CLI."""

    async def _run() -> VariantBatch:
        pipeline = build_pipeline(config, on_event=on_event)
        try:
            return await pipeline.synthesize_variants(source, strategies)
        finally:
            await pipeline.aclose()

    return asyncio.run(_run())
