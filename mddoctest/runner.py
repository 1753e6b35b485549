"""Runs parsed snippets against sandboxes and collects their results."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .config import DoctestConfig
from .logging import get_logger
from .models import DocumentSnippets, ExecutionResult, Snippet, Status
from .parsing import DocumentError, parse_document, read_document
from .runtime import (
    BabelTranspiler,
    EvaluationError,
    Evaluator,
    QuickJsEvaluator,
    TranspileError,
    Transpiler,
)
from .sandbox import JsExpression, Sandbox, make_sandbox

ProgressCallback = Callable[[ExecutionResult], None]


class DoctestRunner:
    """Executes every snippet of every document in source order.

    Snippet failures are recorded as results and never stop the run. A document that
    cannot be read or has an unterminated fence contributes no results; its error is
    kept in ``errors``.
    """

    def __init__(
        self,
        config: DoctestConfig | None = None,
        *,
        evaluator: Evaluator | None = None,
        transpiler: Transpiler | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.config = config or DoctestConfig()
        self.evaluator = evaluator or QuickJsEvaluator()
        self.transpiler = transpiler or BabelTranspiler(self.config.transpile.presets)
        self.progress = progress
        self.errors: List[DocumentError] = []
        self.logger = get_logger("runner")

    def run(self, paths: Iterable[str | Path]) -> List[ExecutionResult]:
        """Parse and run each document, returning the flat result list."""
        results: List[ExecutionResult] = []
        for path in paths:
            self.logger.info("Testing %s", path)
            try:
                parsed = parse_document(read_document(path))
            except DocumentError as exc:
                self.logger.error("Skipping %s: %s", path, exc)
                self.errors.append(exc)
                continue
            results.extend(self.run_document(parsed))
        return results

    def run_document(self, parsed: DocumentSnippets) -> List[ExecutionResult]:
        shared = make_sandbox(self.config) if parsed.share_sandbox else None
        if shared is not None:
            self.logger.debug("Sharing one sandbox across %s", parsed.path)
        return [self.run_snippet(snippet, shared) for snippet in parsed.snippets]

    def run_snippet(self, snippet: Snippet, sandbox: Optional[Sandbox] = None) -> ExecutionResult:
        if snippet.skip:
            return ExecutionResult(status=Status.SKIP, snippet=snippet)

        if sandbox is None:
            sandbox = make_sandbox(self.config)
        try:
            self._before_each(sandbox)
        except Exception as exc:
            result = ExecutionResult(
                status=Status.FAIL,
                snippet=snippet,
                diagnostic=f"before_each failed: {_describe(exc)}",
            )
        else:
            result = self._execute(snippet, sandbox)

        self.logger.debug(
            "%s:%d %s", snippet.source_path, snippet.start_line, result.status.value
        )
        if self.progress is not None:
            self.progress(result)
        return result

    def _before_each(self, sandbox: Sandbox) -> None:
        hook = self.config.before_each
        if hook is None:
            return
        if isinstance(hook, JsExpression):
            self.evaluator.evaluate(f"({hook.source})();\n", sandbox)
        else:
            hook()

    def _execute(self, snippet: Snippet, sandbox: Sandbox) -> ExecutionResult:
        code = snippet.code
        try:
            if self.config.transpile.enabled:
                code = self.transpiler.transpile(code, snippet.language)
            self.evaluator.evaluate(code, sandbox)
        except TranspileError as exc:
            return ExecutionResult(status=Status.FAIL, snippet=snippet, diagnostic=exc.diagnostic)
        except EvaluationError as exc:
            return ExecutionResult(
                status=Status.FAIL,
                snippet=snippet,
                diagnostic=exc.diagnostic,
                line=exc.line,
                column=exc.column,
            )
        except Exception as exc:
            # Any other error from a transpiler or evaluator fails only this snippet.
            self.logger.debug("Unexpected error in %s", snippet.source_path, exc_info=True)
            return ExecutionResult(status=Status.FAIL, snippet=snippet, diagnostic=_describe(exc))
        return ExecutionResult(status=Status.PASS, snippet=snippet)


def _describe(exc: Exception) -> str:
    diagnostic = getattr(exc, "diagnostic", None)
    if isinstance(diagnostic, str):
        return diagnostic
    return f"{type(exc).__name__}: {exc}"


def run_tests(
    paths: Iterable[str | Path],
    config: DoctestConfig | None = None,
    **kwargs: object,
) -> List[ExecutionResult]:
    """Run the documents at ``paths`` and return their flat result list."""
    runner = DoctestRunner(config, **kwargs)  # type: ignore[arg-type]
    return runner.run(paths)


__all__ = ["DoctestRunner", "ProgressCallback", "run_tests"]
