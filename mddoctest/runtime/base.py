"""Capability contracts for transpiling and evaluating snippets."""

from __future__ import annotations

from typing import Optional, Protocol

from ..sandbox import Sandbox


class TranspileError(RuntimeError):
    """Raised when a snippet cannot be transpiled."""

    def __init__(self, diagnostic: str) -> None:
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


class EvaluationError(RuntimeError):
    """Raised when a snippet throws while executing in its sandbox.

    ``line`` and ``column`` are positions inside the executed snippet text, when the
    evaluator reports them.
    """

    def __init__(
        self,
        message: str,
        *,
        stack: str = "",
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stack = stack
        self.line = line
        self.column = column

    @property
    def diagnostic(self) -> str:
        if not self.stack:
            return self.message
        if self.stack.startswith(self.message):
            return self.stack
        return f"{self.message}\n{self.stack}"


class Transpiler(Protocol):
    """Turns snippet source into text the evaluator can run."""

    def transpile(self, code: str, language: str) -> str:
        """Return executable code or raise :class:`TranspileError`."""


class Evaluator(Protocol):
    """Runs code against a sandbox's bindings."""

    def evaluate(self, code: str, sandbox: Sandbox) -> None:
        """Execute ``code`` or raise :class:`EvaluationError`."""


__all__ = [
    "EvaluationError",
    "Evaluator",
    "TranspileError",
    "Transpiler",
]
