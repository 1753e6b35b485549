"""QuickJS-backed evaluator keeping one JavaScript context per sandbox."""

from __future__ import annotations

import json
import re
import weakref
from typing import Any, Optional

from ..logging import get_logger
from ..sandbox import Sandbox, prelude_source
from .base import EvaluationError

try:  # pragma: no cover - optional dependency
    import quickjs

    QUICKJS_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    quickjs = None  # type: ignore[assignment]
    QUICKJS_AVAILABLE = False

_EVAL_FRAME = re.compile(r"at <eval> \([^()]*?:(\d+)(?::(\d+))?\)")
_BARE_FRAME = re.compile(r"^\s+at [^\s()]+?:(\d+)(?::(\d+))?\s*$", re.MULTILINE)


class QuickJsEvaluator:
    """Evaluates snippets with the ``quickjs`` bindings.

    A context is created lazily the first time a sandbox is used and reused for every
    later snippet run against the same sandbox, so a shared sandbox keeps its JavaScript
    state for the whole document.
    """

    def __init__(
        self,
        *,
        time_limit: Optional[float] = None,
        memory_limit: Optional[int] = None,
    ) -> None:
        self.time_limit = time_limit
        self.memory_limit = memory_limit
        self.logger = get_logger("runtime.quickjs")
        self._contexts: "weakref.WeakKeyDictionary[Sandbox, Any]" = weakref.WeakKeyDictionary()

    def evaluate(self, code: str, sandbox: Sandbox) -> None:
        context = self._context_for(sandbox)
        try:
            context.eval(code)
        except quickjs.JSException as exc:
            raise parse_exception(str(exc)) from exc

    def _context_for(self, sandbox: Sandbox) -> Any:
        context = self._contexts.get(sandbox)
        if context is None:
            context = self._create_context(sandbox)
            self._contexts[sandbox] = context
        return context

    def _create_context(self, sandbox: Sandbox) -> Any:
        if not QUICKJS_AVAILABLE:
            raise RuntimeError(
                "The quickjs package is required to run snippets. Install it with `pip install quickjs`."
            )
        self.logger.debug("Creating JavaScript context for sandbox %x", id(sandbox))
        context = quickjs.Context()
        if self.time_limit is not None:
            context.set_time_limit(self.time_limit)
        if self.memory_limit is not None:
            context.set_memory_limit(self.memory_limit)
        for name, function in sandbox.host_functions().items():
            context.add_callable(name, function)
        try:
            context.eval(prelude_source())
            for name, source in sandbox.global_sources().items():
                context.eval(f"globalThis[{json.dumps(name)}] = {source};")
        except TypeError as exc:
            raise EvaluationError(f"Invalid global: {exc}") from exc
        except quickjs.JSException as exc:
            raise parse_exception(f"Failed to install globals: {exc}") from exc
        return context


def parse_exception(text: str) -> EvaluationError:
    """Split QuickJS exception text into message, stack and snippet position."""
    message = text.split("\n", 1)[0]
    frames = list(_EVAL_FRAME.finditer(text)) or list(_BARE_FRAME.finditer(text))
    line = column = None
    if frames:
        # The outermost frame is the snippet's top-level code.
        outermost = frames[-1]
        line = int(outermost.group(1))
        column = int(outermost.group(2)) if outermost.group(2) else None
    return EvaluationError(message, stack=text.rstrip(), line=line, column=column)


__all__ = ["QUICKJS_AVAILABLE", "QuickJsEvaluator", "parse_exception"]
