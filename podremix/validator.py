"""
validator.py — Reject generated images that show a product mockup.

The vision classifier is an external service; when it errors the validator
either lets the image through (fail-open, the default) or rejects it.
Both outcomes are logged and emitted as events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .collaborators import MockupClassifier
from .events import VALIDATOR_ERROR, EventSink, emit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    is_isolated: bool
    reason: str = ""
    failed_open: bool = False


class OutputValidator:
    def __init__(
        self,
        classifier: MockupClassifier,
        fail_open: bool = True,
        on_event: Optional[EventSink] = None,
    ):
        self.classifier = classifier
        self.fail_open = fail_open
        self.on_event = on_event

    async def validate(self, image: bytes, strategy_id: Optional[int] = None) -> ValidationResult:
        try:
            verdict = await self.classifier.classify_mockup(image)
        except Exception as e:
            logger.warning(
                "Mockup classifier failed (%s); %s",
                e, "accepting image" if self.fail_open else "rejecting image",
            )
            emit(
                self.on_event, VALIDATOR_ERROR, strategy_id,
                error=str(e), fail_open=self.fail_open,
            )
            if self.fail_open:
                return ValidationResult(True, f"Validation error, proceeding anyway: {e}", failed_open=True)
            return ValidationResult(False, f"Validation error: {e}")

        return ValidationResult(not verdict.is_mockup, verdict.reason)
