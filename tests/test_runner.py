"""Runner tests using in-memory evaluator and transpiler doubles."""

from __future__ import annotations

from typing import List, Tuple

from mddoctest.config import DoctestConfig, TranspileConfig
from mddoctest.models import ExecutionResult, Status
from mddoctest.parsing import UnreadableDocumentError
from mddoctest.runner import DoctestRunner, run_tests
from mddoctest.runtime import EvaluationError, TranspileError
from mddoctest.sandbox import JsExpression, Sandbox

from tests._fixtures.doc_builder import DocBuilder


class _RecordingEvaluator:
    def __init__(self) -> None:
        self.calls: List[Tuple[str, Sandbox]] = []

    def evaluate(self, code: str, sandbox: Sandbox) -> None:
        self.calls.append((code, sandbox))
        if "throw" in code:
            raise EvaluationError("Error: boom", stack="Error: boom\n    at <eval>", line=2, column=5)


class _RecordingTranspiler:
    def __init__(self) -> None:
        self.calls: List[Tuple[str, str]] = []

    def transpile(self, code: str, language: str) -> str:
        self.calls.append((code, language))
        if "@@" in code:
            raise TranspileError("SyntaxError: unexpected token")
        return code


def _runner(config: DoctestConfig, **kwargs: object) -> Tuple[DoctestRunner, _RecordingEvaluator, _RecordingTranspiler]:
    evaluator = _RecordingEvaluator()
    transpiler = _RecordingTranspiler()
    runner = DoctestRunner(config, evaluator=evaluator, transpiler=transpiler, **kwargs)  # type: ignore[arg-type]
    return runner, evaluator, transpiler


def test_runner_reports_pass_fail_and_skip(doc_builder: DocBuilder) -> None:
    doc_builder.write(
        {
            "guide.md": """
            ```js
            var ok = 1;
            ```

            ```js
            var x = 1;
            throw new Error('boom');
            ```

            <!-- skip-example -->
            ```js
            throw new Error('never runs');
            ```
            """
        }
    )
    progress: List[ExecutionResult] = []
    runner, evaluator, _ = _runner(DoctestConfig(root=doc_builder.path()), progress=progress.append)

    results = runner.run([doc_builder.path("guide.md")])

    assert [result.status for result in results] == [Status.PASS, Status.FAIL, Status.SKIP]
    failure = results[1]
    assert failure.diagnostic.startswith("Error: boom")
    assert (failure.line, failure.column) == (2, 5)
    assert len(evaluator.calls) == 2
    assert [result.status for result in progress] == [Status.PASS, Status.FAIL]


def test_each_snippet_gets_a_fresh_sandbox_by_default(doc_builder: DocBuilder) -> None:
    doc_builder.write({"a.md": "```js\nvar a = 1;\n```\n```js\na;\n```\n"})
    runner, evaluator, _ = _runner(DoctestConfig(root=doc_builder.path()))

    runner.run([doc_builder.path("a.md")])

    first, second = (sandbox for _, sandbox in evaluator.calls)
    assert first is not second


def test_share_directive_reuses_one_sandbox(doc_builder: DocBuilder) -> None:
    doc_builder.write(
        {
            "a.md": "<!-- share-code-between-examples -->\n```js\nvar a = 1;\n```\n```js\na;\n```\n",
            "b.md": "```js\nvar b = 1;\n```\n",
        }
    )
    runner, evaluator, _ = _runner(DoctestConfig(root=doc_builder.path()))

    runner.run([doc_builder.path("a.md"), doc_builder.path("b.md")])

    sandboxes = [sandbox for _, sandbox in evaluator.calls]
    assert sandboxes[0] is sandboxes[1]
    assert sandboxes[2] is not sandboxes[0]


def test_before_each_runs_for_every_attempted_snippet(doc_builder: DocBuilder) -> None:
    doc_builder.write(
        {"a.md": "```js\n1;\n```\n<!-- skip-example -->\n```js\n2;\n```\n```js\n3;\n```\n"}
    )
    calls: List[str] = []
    config = DoctestConfig(root=doc_builder.path(), before_each=lambda: calls.append("hook"))
    runner, _, _ = _runner(config)

    runner.run([doc_builder.path("a.md")])

    assert calls == ["hook", "hook"]


def test_javascript_before_each_runs_inside_the_snippet_sandbox(doc_builder: DocBuilder) -> None:
    doc_builder.write({"a.md": "```js\n1;\n```\n"})
    config = DoctestConfig(
        root=doc_builder.path(),
        transpile=TranspileConfig(enabled=False),
        before_each=JsExpression("function () { reset(); }"),
    )
    runner, evaluator, _ = _runner(config)

    results = runner.run([doc_builder.path("a.md")])

    assert results[0].status is Status.PASS
    assert [code for code, _ in evaluator.calls] == ["(function () { reset(); })();\n", "1;\n"]
    assert evaluator.calls[0][1] is evaluator.calls[1][1]


def test_failing_before_each_fails_only_its_snippet(doc_builder: DocBuilder) -> None:
    doc_builder.write({"a.md": "```js\n1;\n```\n```js\n2;\n```\n"})
    calls: List[str] = []

    def hook() -> None:
        calls.append("hook")
        if len(calls) == 1:
            raise ValueError("reset failed")

    runner, _, _ = _runner(DoctestConfig(root=doc_builder.path(), before_each=hook))

    results = runner.run([doc_builder.path("a.md")])

    assert [result.status for result in results] == [Status.FAIL, Status.PASS]
    assert results[0].diagnostic == "before_each failed: ValueError: reset failed"


class _ExplodingTranspiler:
    def transpile(self, code: str, language: str) -> str:
        raise ValueError("bad")


def test_unexpected_runtime_error_is_a_snippet_failure(doc_builder: DocBuilder) -> None:
    doc_builder.write({"a.md": "```js\n1;\n```\n", "b.md": "```js\n2;\n```\n"})
    evaluator = _RecordingEvaluator()
    runner = DoctestRunner(
        DoctestConfig(root=doc_builder.path()),
        evaluator=evaluator,
        transpiler=_ExplodingTranspiler(),
    )

    results = runner.run([doc_builder.path("a.md"), doc_builder.path("b.md")])

    assert [result.status for result in results] == [Status.FAIL, Status.FAIL]
    assert results[0].diagnostic == "ValueError: bad"
    assert runner.errors == []


def test_non_utf8_document_is_recorded_and_others_still_run(doc_builder: DocBuilder) -> None:
    doc_builder.write({"good.md": "```js\nvar ok;\n```\n"})
    doc_builder.path("latin.md").write_bytes(b"```js\nvar caf\xe9 = 1;\n```\n")
    runner, _, _ = _runner(DoctestConfig(root=doc_builder.path()))

    results = runner.run([doc_builder.path("latin.md"), doc_builder.path("good.md")])

    assert [result.status for result in results] == [Status.PASS]
    assert len(runner.errors) == 1
    assert isinstance(runner.errors[0], UnreadableDocumentError)
    assert "latin.md" in str(runner.errors[0])


def test_transpile_failure_is_a_snippet_failure(doc_builder: DocBuilder) -> None:
    doc_builder.write({"a.md": "```ts\nlet x = @@;\n```\n"})
    runner, evaluator, transpiler = _runner(DoctestConfig(root=doc_builder.path()))

    results = runner.run([doc_builder.path("a.md")])

    assert results[0].status is Status.FAIL
    assert results[0].diagnostic == "SyntaxError: unexpected token"
    assert results[0].line is None
    assert transpiler.calls[0][1] == "typescript"
    assert evaluator.calls == []


def test_disabled_transpile_evaluates_code_as_written(doc_builder: DocBuilder) -> None:
    doc_builder.write({"a.md": "```js\nvar a = 1;\n```\n"})
    config = DoctestConfig(root=doc_builder.path(), transpile=TranspileConfig(enabled=False))
    runner, evaluator, transpiler = _runner(config)

    results = runner.run([doc_builder.path("a.md")])

    assert results[0].status is Status.PASS
    assert transpiler.calls == []
    assert evaluator.calls[0][0] == "var a = 1;\n"


def test_unterminated_document_is_recorded_and_others_still_run(doc_builder: DocBuilder) -> None:
    doc_builder.write(
        {
            "broken.md": "```js\nvar never;\n",
            "good.md": "```js\nvar ok;\n```\n",
        }
    )
    runner, _, _ = _runner(DoctestConfig(root=doc_builder.path()))

    results = runner.run([doc_builder.path("broken.md"), doc_builder.path("good.md")])

    assert [result.status for result in results] == [Status.PASS]
    assert len(runner.errors) == 1
    assert runner.errors[0].line == 1


def test_run_tests_returns_flat_results(doc_builder: DocBuilder) -> None:
    doc_builder.write({"a.md": "```js\n1;\n```\n", "b.md": "```js\n2;\n```\n```js\n3;\n```\n"})

    results = run_tests(
        [doc_builder.path("a.md"), doc_builder.path("b.md")],
        DoctestConfig(root=doc_builder.path()),
        evaluator=_RecordingEvaluator(),
        transpiler=_RecordingTranspiler(),
    )

    assert len(results) == 3
    assert all(result.status is Status.PASS for result in results)
