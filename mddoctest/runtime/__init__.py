"""Pluggable transpiler and evaluator implementations."""

from .babel import BabelTranspiler
from .base import EvaluationError, Evaluator, TranspileError, Transpiler
from .quickjs_evaluator import QuickJsEvaluator

__all__ = [
    "BabelTranspiler",
    "EvaluationError",
    "Evaluator",
    "QuickJsEvaluator",
    "TranspileError",
    "Transpiler",
]
