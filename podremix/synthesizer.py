"""
synthesizer.py — Tiered variant generation with graceful degradation.

Each strategy walks an ordered tier table until one tier produces an image
that is accepted:

  Tier 1  Primary              full instructions + source as reference, validated
  Tier 2  Constrained          forbids product framing, + reference, validated
  Tier 3  No Context           constrained wording, no reference, validated
  Tier 4  Guaranteed Fallback  different backend, isolated by contract, terminal

A backend error, a timeout or a negative validation all advance to the next
tier. Strategies run concurrently; tiers within a strategy never do.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from rich.console import Console

from .collaborators import ImageSynthesizer
from .errors import SynthesisFailedError
from .events import TIER_ACCEPTED, TIER_ERROR, TIER_REJECTED, TIER_STARTED, EventSink, emit
from .models import GenerationAttempt, StrategyFailure, Tier, VariationStrategy
from .validator import OutputValidator, ValidationResult

console = Console()
logger = logging.getLogger(__name__)

PromptBuilder = Callable[[str], str]


# ── Prompt builders ───────────────────────────────────────────────────────────

def primary_prompt(instructions: str) -> str:
    return (
        f"Inspired by the reference image, {instructions}\n\n"
        "Keep the EXACT same pose/action from the reference.\n"
        "Generate only the design elements (characters, text, graphics)."
    )


def constrained_prompt(instructions: str) -> str:
    return (
        f"{instructions}\n\n"
        "IMPORTANT: Generate ONLY the artwork itself - no t-shirts or products.\n"
        "Keep the EXACT same pose/action."
    )


def no_context_prompt(instructions: str) -> str:
    return (
        f"Create a flat 2D graphic illustration: {instructions}\n\n"
        "IMPORTANT: Generate ONLY the artwork itself - no t-shirts or products.\n"
        "Generate only the design elements (characters, text, graphics)."
    )


def fallback_prompt(instructions: str) -> str:
    # The fallback backend wraps this in its own isolated-clipart template
    return instructions


# ── Tier table ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TierPlan:
    tier: Tier
    backend: str                # "primary" | "fallback"
    send_reference: bool
    validate: bool
    build_prompt: PromptBuilder


DEFAULT_TIERS: Tuple[TierPlan, ...] = (
    TierPlan(Tier.PRIMARY,             "primary",  True,  True,  primary_prompt),
    TierPlan(Tier.CONSTRAINED,         "primary",  True,  True,  constrained_prompt),
    TierPlan(Tier.NO_CONTEXT,          "primary",  False, True,  no_context_prompt),
    TierPlan(Tier.GUARANTEED_FALLBACK, "fallback", False, False, fallback_prompt),
)

_UNVALIDATED = ValidationResult(True, "isolated by contract")


class TieredVariantSynthesizer:
    def __init__(
        self,
        primary: ImageSynthesizer,
        fallback: ImageSynthesizer,
        validator: OutputValidator,
        tier_timeout: Optional[float] = None,
        tiers: Sequence[TierPlan] = DEFAULT_TIERS,
        on_event: Optional[EventSink] = None,
    ):
        if not tiers:
            raise ValueError("At least one tier is required")
        for plan in tiers:
            if plan.backend not in ("primary", "fallback"):
                raise ValueError(f"Unknown tier backend {plan.backend!r}")
        self.primary = primary
        self.fallback = fallback
        self.validator = validator
        self.tier_timeout = tier_timeout
        self.tiers = tuple(tiers)
        self.on_event = on_event

    async def _run_tier(
        self,
        plan: TierPlan,
        source: bytes,
        strategy: VariationStrategy,
    ) -> Tuple[bytes, ValidationResult]:
        backend = self.primary if plan.backend == "primary" else self.fallback
        image = await backend.generate(
            plan.build_prompt(strategy.instructions),
            source if plan.send_reference else None,
        )
        if not plan.validate:
            return image, _UNVALIDATED
        return image, await self.validator.validate(image, strategy.id)

    async def synthesize(self, source: bytes, strategy: VariationStrategy) -> GenerationAttempt:
        """Walk the tier table for one strategy; raise SynthesisFailedError if all fail."""
        reasons: List[str] = []

        for plan in self.tiers:
            label = plan.tier.label
            emit(self.on_event, TIER_STARTED, strategy.id, tier=int(plan.tier))
            try:
                image, result = await asyncio.wait_for(
                    self._run_tier(plan, source, strategy), timeout=self.tier_timeout,
                )
            except asyncio.TimeoutError:
                reason = f"{label}: timed out after {self.tier_timeout}s"
                reasons.append(reason)
                logger.warning("Strategy %s %s", strategy.id, reason)
                emit(self.on_event, TIER_ERROR, strategy.id, tier=int(plan.tier), error="timeout")
                continue
            except Exception as e:
                reason = f"{label}: {e}"
                reasons.append(reason)
                logger.warning("Strategy %s %s", strategy.id, reason)
                emit(self.on_event, TIER_ERROR, strategy.id, tier=int(plan.tier), error=str(e))
                continue

            if result.is_isolated:
                console.print(f"  [green]✓[/green] Variant {strategy.id}: {label}")
                emit(
                    self.on_event, TIER_ACCEPTED, strategy.id,
                    tier=int(plan.tier), reason=result.reason, failed_open=result.failed_open,
                )
                return GenerationAttempt(
                    strategy_id=strategy.id,
                    tier=plan.tier,
                    raw_image=image,
                    validated=plan.validate and not result.failed_open,
                    rejections=tuple(reasons),
                )

            reasons.append(f"{label}: {result.reason}")
            console.print(f"  [yellow]⚠ Variant {strategy.id}: {label} rejected ({result.reason})[/yellow]")
            emit(self.on_event, TIER_REJECTED, strategy.id, tier=int(plan.tier), reason=result.reason)

        raise SynthesisFailedError(strategy.id, self.tiers[-1].tier, reasons)

    async def _guarded(
        self, source: bytes, strategy: VariationStrategy,
    ) -> Tuple[Optional[GenerationAttempt], Optional[Exception]]:
        try:
            return await self.synthesize(source, strategy), None
        except Exception as e:
            return None, e

    async def synthesize_all(
        self,
        source: bytes,
        strategies: Sequence[VariationStrategy],
    ) -> Tuple[Dict[int, GenerationAttempt], List[StrategyFailure]]:
        """Run every strategy concurrently; failures are isolated per strategy."""
        ensure_unique_ids(strategies)
        outcomes = await asyncio.gather(*(self._guarded(source, s) for s in strategies))

        attempts: Dict[int, GenerationAttempt] = {}
        failures: List[StrategyFailure] = []
        for strategy, (attempt, error) in zip(strategies, outcomes):
            if error is not None:
                failures.append(StrategyFailure(strategy.id, "synthesis", str(error)))
            else:
                attempts[strategy.id] = attempt
        return attempts, failures


def ensure_unique_ids(strategies: Sequence[VariationStrategy]) -> None:
    seen = set()
    for s in strategies:
        if s.id in seen:
            raise ValueError(f"Duplicate strategy id {s.id}")
        seen.add(s.id)
