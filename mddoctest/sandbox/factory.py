"""Builds the binding environment a snippet executes against."""

from __future__ import annotations

import json
import re
from collections import deque
from dataclasses import dataclass, field
from functools import lru_cache
from importlib import resources
from typing import TYPE_CHECKING, Callable, Deque, Dict, List, Mapping, Optional, Pattern, Tuple

from .values import to_js

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from ..config import DoctestConfig

HOST_REQUIRE = "__hostRequire"
HOST_LOG = "__hostLog"
HOST_NEXT_OUTPUT = "__hostNextOutput"
HOST_FORMAT_OUTPUT = "__hostFormatOutput"
HOST_PENDING_OUTPUT = "__hostPendingOutput"

RESERVED_NAMES = frozenset(
    {
        "require",
        "console",
        "__deepStrictEqual",
        "__nextOutput",
        "__formatOutput",
        "__assertOutputDrained",
        HOST_REQUIRE,
        HOST_LOG,
        HOST_NEXT_OUTPUT,
        HOST_FORMAT_OUTPUT,
        HOST_PENDING_OUTPUT,
    }
)


class ModuleResolutionError(RuntimeError):
    """Raised when a snippet requires a module the configuration does not provide."""

    def __init__(self, module_name: str) -> None:
        super().__init__(
            f"Attempted to require '{module_name}' but it was not found in config.\n"
            "You need to include it in the require section of your .mddoctest.yml file.\n"
            "\n"
            "For example:\n"
            "# .mddoctest.yml\n"
            "require:\n"
            f"  {json.dumps(module_name)}: !js-file ./path/to/module.js\n"
        )
        self.module_name = module_name


def format_output(values: List[object]) -> str:
    """Stringify one console call: strings as-is, everything else as JSON, space separated."""
    parts = []
    for value in values:
        if isinstance(value, str):
            parts.append(value)
        else:
            parts.append(json.dumps(value, separators=(",", ":"), ensure_ascii=False))
    return " ".join(parts)


class ConsoleQueue:
    """FIFO of formatted console lines captured from one sandbox."""

    def __init__(self) -> None:
        self._lines: Deque[str] = deque()

    def log(self, line: str) -> None:
        self._lines.append(line)

    def pop(self) -> Optional[str]:
        """Return the oldest queued line, or ``None`` when nothing was logged."""
        return self._lines.popleft() if self._lines else None

    def __len__(self) -> int:
        return len(self._lines)

    def snapshot(self) -> List[str]:
        return list(self._lines)


class ModuleResolver:
    """Resolves ``require`` requests from configured modules.

    Regex patterns are tried first, in declaration order, with search semantics; the
    first match wins and its factory receives the full match followed by the capture
    groups. Exact names in ``require`` are the fallback.
    """

    def __init__(
        self,
        require: Mapping[str, object] | None = None,
        regex_require: Mapping[str, Callable[..., object]] | None = None,
    ) -> None:
        self._require: Dict[str, object] = dict(require or {})
        self._patterns: List[Tuple[Pattern[str], Callable[..., object]]] = [
            (re.compile(pattern), factory) for pattern, factory in (regex_require or {}).items()
        ]

    def resolve(self, module_name: str) -> object:
        for pattern, factory in self._patterns:
            match = pattern.search(module_name)
            if match:
                return factory(match.group(0), *match.groups())
        if module_name not in self._require:
            raise ModuleResolutionError(module_name)
        return self._require[module_name]


@dataclass(eq=False)
class Sandbox:
    """Bindings visible to an executing snippet.

    The host functions exchange JSON text with the JavaScript prelude, which builds
    ``require``, ``console`` and the assertion helpers on top of them. Caller globals
    are applied after the prelude, so they may shadow reserved names.
    """

    resolver: ModuleResolver = field(default_factory=ModuleResolver)
    console: ConsoleQueue = field(default_factory=ConsoleQueue)
    globals: Dict[str, object] = field(default_factory=dict)

    def require(self, module_name: str) -> object:
        return self.resolver.resolve(module_name)

    def host_functions(self) -> Dict[str, Callable[..., str]]:
        return {
            HOST_REQUIRE: self._host_require,
            HOST_LOG: self._host_log,
            HOST_NEXT_OUTPUT: self._host_next_output,
            HOST_FORMAT_OUTPUT: self._host_format_output,
            HOST_PENDING_OUTPUT: self._host_pending_output,
        }

    def global_sources(self) -> Dict[str, str]:
        """Return caller globals rendered as JavaScript expressions."""
        return {name: to_js(value) for name, value in self.globals.items()}

    def _host_require(self, module_name: str) -> str:
        try:
            module = self.require(module_name)
            return json.dumps({"ok": True, "source": to_js(module)})
        except ModuleResolutionError as exc:
            return json.dumps({"ok": False, "message": str(exc)})
        except Exception as exc:  # factories are user code; report their failure in the snippet
            message = f"Resolving '{module_name}' failed: {type(exc).__name__}: {exc}"
            return json.dumps({"ok": False, "message": message})

    def _host_log(self, payload: str) -> str:
        self.console.log(format_output(json.loads(payload)))
        return ""

    def _host_next_output(self) -> str:
        return json.dumps(self.console.pop())

    def _host_format_output(self, payload: str) -> str:
        return json.dumps(format_output(json.loads(payload)))

    def _host_pending_output(self) -> str:
        return json.dumps(self.console.snapshot())


@lru_cache(maxsize=1)
def prelude_source() -> str:
    """Return the JavaScript prelude installed into every sandbox."""
    return resources.files(__package__).joinpath("prelude.js").read_text(encoding="utf-8")


def make_sandbox(config: "DoctestConfig") -> Sandbox:
    """Build a fresh sandbox with its own console queue and module cache."""
    return Sandbox(
        resolver=ModuleResolver(config.require, config.regex_require),
        globals=dict(config.globals),
    )


__all__ = [
    "ConsoleQueue",
    "ModuleResolutionError",
    "ModuleResolver",
    "RESERVED_NAMES",
    "Sandbox",
    "format_output",
    "make_sandbox",
    "prelude_source",
]
