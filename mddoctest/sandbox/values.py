"""Conversion of host values into JavaScript source for the sandbox."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


@dataclass(frozen=True)
class JsExpression:
    """Raw JavaScript expression text injected into the sandbox unchanged."""

    source: str

    @classmethod
    def from_commonjs(cls, path: Path) -> "JsExpression":
        """Evaluate a CommonJS file to its ``module.exports`` inside the sandbox."""
        body = Path(path).read_text(encoding="utf-8")
        return cls(
            "(function () {\n"
            "var module = {exports: {}};\n"
            "var exports = module.exports;\n"
            f"{body}\n"
            "return module.exports;\n"
            "})()"
        )


def to_js(value: object) -> str:
    """Render ``value`` as a JavaScript expression.

    JSON-compatible data is serialised, :class:`JsExpression` values are inlined
    verbatim, and anything else raises ``TypeError``.
    """
    if isinstance(value, JsExpression):
        return f"({value.source})"
    if isinstance(value, Mapping):
        items = ", ".join(f"{json.dumps(str(key))}: {to_js(item)}" for key, item in value.items())
        return "{" + items + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(to_js(item) for item in value) + "]"
    if value is None or isinstance(value, (str, int, float, bool)):
        return json.dumps(value)
    raise TypeError(
        f"Cannot pass a {type(value).__name__} into the sandbox; "
        "use JSON-compatible data or a JsExpression"
    )


__all__ = ["JsExpression", "to_js"]
