"""Sandbox construction: module resolution, console capture and assertion helpers."""

from .factory import (
    RESERVED_NAMES,
    ConsoleQueue,
    ModuleResolutionError,
    ModuleResolver,
    Sandbox,
    format_output,
    make_sandbox,
    prelude_source,
)
from .values import JsExpression, to_js

__all__ = [
    "RESERVED_NAMES",
    "ConsoleQueue",
    "JsExpression",
    "ModuleResolutionError",
    "ModuleResolver",
    "Sandbox",
    "format_output",
    "make_sandbox",
    "prelude_source",
    "to_js",
]
