"""Babel transpiler backed by the dukpy bundle."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Sequence

from .base import TranspileError

try:  # pragma: no cover - optional dependency
    import dukpy

    DUKPY_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    dukpy = None  # type: ignore[assignment]
    DUKPY_AVAILABLE = False

DEFAULT_PRESETS = ("es2015",)
BABEL_BUNDLE = "babel-6.26.0.min.js"

_TRANSFORM = "Babel.transform(dukpy.source, dukpy.options).code;"


@lru_cache(maxsize=1)
def babel_source() -> str:
    """Return the Babel standalone bundle shipped inside the dukpy package."""
    bundle = Path(dukpy.__file__).parent / "jsmodules" / BABEL_BUNDLE
    return bundle.read_text(encoding="utf-8")


class BabelTranspiler:
    """Compiles snippets down to ES5 with Babel, keeping line numbers stable.

    Babel is loaded once into a persistent dukpy interpreter. TypeScript snippets are
    first compiled with the bundled TypeScript compiler.
    """

    def __init__(self, presets: Sequence[str] = DEFAULT_PRESETS) -> None:
        self.presets = list(presets) or list(DEFAULT_PRESETS)
        self._interpreter: Optional[Any] = None

    def transpile(self, code: str, language: str) -> str:
        if not DUKPY_AVAILABLE:
            raise RuntimeError(
                "The dukpy package is required to transpile snippets. "
                "Install it with `pip install dukpy` or disable transpilation."
            )
        try:
            if language == "typescript":
                code = dukpy.typescript_compile(code)
            compiled = self._babel().evaljs(
                _TRANSFORM,
                source=code,
                options={"presets": self.presets, "retainLines": True},
            )
        except dukpy.JSRuntimeError as exc:
            raise TranspileError(str(exc)) from exc
        return compiled

    def _babel(self) -> Any:
        if self._interpreter is None:
            interpreter = dukpy.JSInterpreter()
            interpreter.evaljs(babel_source() + "\n;null;")
            self._interpreter = interpreter
        return self._interpreter


__all__ = ["BABEL_BUNDLE", "BabelTranspiler", "DEFAULT_PRESETS", "DUKPY_AVAILABLE", "babel_source"]
