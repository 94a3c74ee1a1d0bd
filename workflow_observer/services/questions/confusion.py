from __future__ import annotations

from typing import Any, Optional, Union

from ...logging_config import logger
from ...models import ConfusionResponse, ConfusionSignal, InvalidResponse, decode_response
from ..context.session import SessionContextAggregator


class ConfusionEvaluator:
    """Turns a confusion-evaluation reply into a signal, or into nothing.

    Unusable replies and low-confidence claims are silent. A confident
    "not confused" reply refreshes the session's task theory.
    """

    def __init__(self, aggregator: SessionContextAggregator, *, threshold: float = 0.7) -> None:
        self._aggregator = aggregator
        self._threshold = threshold

    def evaluate(
        self, result: Union[str, dict, ConfusionResponse, InvalidResponse, Any]
    ) -> Optional[ConfusionSignal]:
        if isinstance(result, (ConfusionResponse, InvalidResponse)):
            response = result
        else:
            response = decode_response(ConfusionResponse, result)

        if isinstance(response, InvalidResponse):
            logger.info("confusion reply discarded", extra={"reason": response.reason})
            return None

        if not response.confused:
            if response.understanding:
                self._aggregator.set_task_theory(response.understanding)
            return None

        confidence = response.confidence or 0.0
        if confidence < self._threshold:
            logger.debug(
                "confusion below threshold",
                extra={"confidence": confidence, "threshold": self._threshold},
            )
            return None

        return ConfusionSignal(
            type=response.type,
            confidence=confidence,
            trigger_context=(response.context or "").strip(),
            suggested_question=(response.question or "").strip(),
        )


__all__ = ["ConfusionEvaluator"]
