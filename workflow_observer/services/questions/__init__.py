"""Confusion evaluation and question throttling."""

from .confusion import ConfusionEvaluator
from .throttler import RATE_WINDOW, QuestionThrottler

__all__ = ["ConfusionEvaluator", "QuestionThrottler", "RATE_WINDOW"]
