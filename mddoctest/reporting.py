"""Tallies results and renders failure diagnostics."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from .models import ExecutionResult, Status
from .parsing import DocumentError

_NOT_DEFINED = re.compile(r"'?([A-Za-z_$][\w$]*)'? is not defined")
_FRAME_LINE = re.compile(r"^\s+at\s", re.MULTILINE)


@dataclass
class RunSummary:
    """Counts per status for a finished run."""

    passed: int
    failed: int
    skipped: int

    @property
    def success(self) -> bool:
        return self.failed == 0


def summarize(results: Iterable[ExecutionResult]) -> RunSummary:
    passed = failed = skipped = 0
    for result in results:
        if result.status is Status.PASS:
            passed += 1
        elif result.status is Status.FAIL:
            failed += 1
        else:
            skipped += 1
    return RunSummary(passed=passed, failed=failed, skipped=skipped)


def error_location(result: ExecutionResult) -> str:
    """Return ``path:line[:column]`` of the failure inside its document."""
    snippet = result.snippet
    if result.line is None:
        return f"{snippet.source_path}:{snippet.start_line}"
    line = snippet.start_line + result.line
    if result.column is None:
        return f"{snippet.source_path}:{line}"
    return f"{snippet.source_path}:{line}:{result.column}"


def relevant_stack_details(diagnostic: str) -> str:
    """Drop the evaluator's own stack frames from an error text."""
    match = _FRAME_LINE.search(diagnostic)
    if match is None or match.start() == 0:
        return diagnostic.rstrip()
    return diagnostic[: match.start()].rstrip()


def undefined_name(details: str) -> Optional[str]:
    match = _NOT_DEFINED.search(details)
    return match.group(1) if match else None


def failure_hint(name: str) -> List[str]:
    return [
        f"You can declare [blue]{escape(name)}[/blue] in the [blue]globals[/blue] section "
        "in [grey50].mddoctest.yml[/grey50]",
        "",
        "For example:",
        "[grey50]# .mddoctest.yml[/grey50]",
        "globals:",
        f"  [blue]{escape(name)}[/blue]: ...",
        "",
    ]


class ProgressPrinter:
    """Writes one marker per attempted snippet: a green dot or a red cross."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def __call__(self, result: ExecutionResult) -> None:
        if result.status is Status.PASS:
            self.console.print("[green].[/green]", end="")
        elif result.status is Status.FAIL:
            self.console.print("[red]x[/red]", end="")


def print_failure(result: ExecutionResult, console: Console) -> None:
    console.print(f"[red]Failed - {escape(error_location(result))}[/red]")
    details = relevant_stack_details(result.diagnostic)
    console.print(escape(details), highlight=False)
    name = undefined_name(details)
    if name is not None:
        for line in failure_hint(name):
            console.print(line, highlight=False)


def print_results(
    results: Sequence[ExecutionResult],
    *,
    console: Console | None = None,
    errors: Sequence[DocumentError] = (),
) -> bool:
    """Print failures and the final tally; return True when the run succeeded."""
    console = console or Console()
    console.print()

    for result in results:
        if result.status is Status.FAIL:
            print_failure(result, console)

    for error in errors:
        console.print(f"[red]Error - {escape(str(error))}[/red]")

    summary = summarize(results)
    console.print(f"[green]Passed: {summary.passed}[/green]")
    if summary.skipped:
        console.print(f"[yellow]Skipped: {summary.skipped}[/yellow]")

    success = summary.success and not errors
    if success:
        console.print("[green]\nSuccess![/green]")
    else:
        if summary.failed:
            console.print(f"[red]Failed: {summary.failed}[/red]")
        if errors:
            console.print(f"[red]Unparseable documents: {len(errors)}[/red]")
    return success


__all__ = [
    "ProgressPrinter",
    "RunSummary",
    "error_location",
    "failure_hint",
    "print_failure",
    "print_results",
    "relevant_stack_details",
    "summarize",
    "undefined_name",
]
