"""Alert decision rules."""

from .evaluator import AlertEvaluator

__all__ = ["AlertEvaluator"]
