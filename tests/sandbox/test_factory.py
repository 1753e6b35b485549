"""Tests for sandbox construction, module resolution and console capture."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mddoctest.config import DoctestConfig
from mddoctest.sandbox import (
    ConsoleQueue,
    JsExpression,
    ModuleResolutionError,
    ModuleResolver,
    Sandbox,
    format_output,
    make_sandbox,
    prelude_source,
    to_js,
)


def test_resolver_prefers_regex_patterns_over_exact_names() -> None:
    resolver = ModuleResolver(
        require={"@lib/core": "exact"},
        regex_require={r"^@lib/(.*)$": lambda full, name: {"full": full, "name": name}},
    )

    assert resolver.resolve("@lib/core") == {"full": "@lib/core", "name": "core"}


def test_resolver_uses_first_declared_matching_pattern() -> None:
    resolver = ModuleResolver(
        regex_require={
            r"lib": lambda full: "first",
            r"^lib-(\w+)$": lambda full, name: "second",
        }
    )

    assert resolver.resolve("lib-extra") == "first"


def test_resolver_falls_back_to_exact_require() -> None:
    resolver = ModuleResolver(require={"lodash": {"VERSION": "4"}})

    assert resolver.resolve("lodash") == {"VERSION": "4"}


def test_unknown_module_raises_with_guidance() -> None:
    resolver = ModuleResolver(require={"known": 1})

    with pytest.raises(ModuleResolutionError) as excinfo:
        resolver.resolve("missing-lib")

    assert excinfo.value.module_name == "missing-lib"
    message = str(excinfo.value)
    assert "'missing-lib'" in message
    assert "require section" in message
    assert '"missing-lib": !js-file' in message


def test_format_output_keeps_strings_and_serialises_the_rest() -> None:
    assert format_output(["total:", 3, {"a": [1, 2]}, None, True]) == 'total: 3 {"a":[1,2]} null true'


def test_console_queue_is_fifo() -> None:
    queue = ConsoleQueue()
    queue.log("first")
    queue.log("second")

    assert len(queue) == 2
    assert queue.snapshot() == ["first", "second"]
    assert queue.pop() == "first"
    assert queue.pop() == "second"
    assert queue.pop() is None


def test_host_functions_exchange_json() -> None:
    sandbox = Sandbox(resolver=ModuleResolver(require={"lib": {"answer": 42}}))
    host = sandbox.host_functions()

    host["__hostLog"](json.dumps(["value", 1]))
    assert json.loads(host["__hostPendingOutput"]()) == ["value 1"]
    assert json.loads(host["__hostNextOutput"]()) == "value 1"
    assert json.loads(host["__hostNextOutput"]()) is None
    assert json.loads(host["__hostFormatOutput"](json.dumps(["a", [1]]))) == "a [1]"

    reply = json.loads(host["__hostRequire"]("lib"))
    assert reply == {"ok": True, "source": '{"answer": 42}'}


def test_host_require_reports_failures_as_messages() -> None:
    def broken(full: str) -> object:
        raise ValueError("no luck")

    sandbox = Sandbox(resolver=ModuleResolver(regex_require={"^bad$": broken}))
    host = sandbox.host_functions()

    missing = json.loads(host["__hostRequire"]("other"))
    failed = json.loads(host["__hostRequire"]("bad"))

    assert missing["ok"] is False
    assert "'other'" in missing["message"]
    assert failed["ok"] is False
    assert "ValueError: no luck" in failed["message"]


def test_make_sandbox_builds_independent_sandboxes(tmp_path: Path) -> None:
    config = DoctestConfig(root=tmp_path, globals={"answer": 42}, require={"lib": 1})

    first = make_sandbox(config)
    second = make_sandbox(config)
    first.console.log("only in first")

    assert first is not second
    assert len(second.console) == 0
    assert first.global_sources() == {"answer": "42"}
    assert second.require("lib") == 1


def test_to_js_renders_data_and_expressions() -> None:
    value = {"n": 1, "items": ["a", None], "fn": JsExpression("function () { return 1; }")}

    assert to_js(value) == '{"n": 1, "items": ["a", null], "fn": (function () { return 1; })}'


def test_to_js_rejects_arbitrary_objects() -> None:
    with pytest.raises(TypeError):
        to_js(object())


def test_commonjs_expression_returns_module_exports(tmp_path: Path) -> None:
    module = tmp_path / "lib.js"
    module.write_text("module.exports = { double: function (x) { return x * 2; } };", encoding="utf-8")

    expression = JsExpression.from_commonjs(module)

    assert "module.exports = { double" in expression.source
    assert expression.source.rstrip().endswith("})()")


def test_prelude_defines_helpers() -> None:
    source = prelude_source()

    for name in ("require", "console", "__deepStrictEqual", "__nextOutput", "__assertOutputDrained"):
        assert f"global.{name}" in source
