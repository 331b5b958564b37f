"""
events.py — Structured pipeline events.

Judgement calls (validator failing open, trim/normalize pass-through) and
tier transitions are reported as PipelineEvent objects to an optional sink
(a plain callable, e.g. a progress callback or list.append).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Event kinds
TIER_STARTED        = "tier.started"
TIER_ACCEPTED       = "tier.accepted"
TIER_REJECTED       = "tier.rejected"
TIER_ERROR          = "tier.error"
VALIDATOR_ERROR     = "validator.collaborator_error"
POSTPROCESS_PASS    = "postprocess.passthrough"
POSTPROCESS_SKIPPED = "postprocess.matting_skipped"
VARIANT_READY       = "variant.ready"
STRATEGY_FAILED     = "strategy.failed"


@dataclass(frozen=True)
class PipelineEvent:
    kind: str
    strategy_id: Optional[int] = None
    detail: Dict[str, Any] = field(default_factory=dict)


EventSink = Callable[[PipelineEvent], None]


def emit(
    sink: Optional[EventSink],
    kind: str,
    strategy_id: Optional[int] = None,
    **detail: Any,
) -> None:
    """Deliver an event to sink. A failing sink is logged, never raised."""
    event = PipelineEvent(kind=kind, strategy_id=strategy_id, detail=detail)
    logger.debug("event %s strategy=%s %s", kind, strategy_id, detail)
    if sink is None:
        return
    try:
        sink(event)
    except Exception:
        logger.exception("Event sink raised while handling %s", kind)
