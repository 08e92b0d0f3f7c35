"""Confidence-gated decision policy.

A completed result that asks to create a task is only allowed through when
its confidence reaches the threshold. Below the threshold the task is not
created and the user is asked to clarify; intent and params stay as they
were so callers can still inspect the attempted task.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, replace

from .fallback import FallbackResolver
from .taxonomy import CLARIFY_REPLY, IntentConfidence, IntentResult, TaskParams

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = IntentConfidence.THRESHOLD


class DecisionPolicy:
    """Apply the create-task confidence gate.

    Attributes:
        threshold: Minimum confidence for creating a task
        fallback: Used to re-derive params when a confident result has none
    """

    def __init__(
        self,
        threshold: float = CONFIDENCE_THRESHOLD,
        fallback: FallbackResolver | None = None,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"Confidence threshold must be within [0, 1], got {threshold}")
        self.threshold = threshold
        self.fallback = fallback or FallbackResolver()

    def apply(self, result: IntentResult, user_input: str) -> IntentResult:
        """Decide whether a task should be created.

        Args:
            result: Completed IntentResult
            user_input: Original user message, for param re-derivation

        Returns:
            The same result, or an adjusted copy
        """
        if not result.should_create_task:
            logger.debug(f"Decision: reply only ({result.intent.value})")
            return result

        if result.confidence >= self.threshold:
            if result.params is None or not result.params.is_complete():
                params = self._rederive(result.params, user_input)
                logger.info(f"Decision: create task, params re-derived ({params.task_type})")
                return result.with_changes(params=params)
            logger.info(f"Decision: create task (confidence {result.confidence:.2f})")
            return result

        logger.info(
            f"Decision: confidence {result.confidence:.2f} below {self.threshold:.2f}, "
            "asking for clarification"
        )
        return result.with_changes(should_create_task=False, reply=CLARIFY_REPLY)

    def _rederive(self, params: TaskParams | None, user_input: str) -> TaskParams:
        derived = self.fallback.generate_task_params(user_input)
        if params is None:
            return derived
        kept = {name: value for name, value in asdict(params).items() if value}
        return replace(derived, **kept)


__all__ = ["CONFIDENCE_THRESHOLD", "DecisionPolicy"]
