"""CLI entrypoints for mddoctest."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from rich.console import Console

from .config import ConfigError, load_config
from .logging import configure_logging
from .reporting import ProgressPrinter, print_results
from .runner import DoctestRunner
from .scanner import DocumentScanner


def _add_verbose_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mddoctest",
        description="Run the JavaScript examples embedded in Markdown documents as tests.",
        epilog="Use `mddoctest serve --help` for service mode.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "paths",
        nargs="*",
        default=["."],
        help="Markdown files or directories to test (defaults to current directory).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Configuration file or directory (defaults to the current directory).",
    )
    parser.add_argument(
        "--no-transpile",
        action="store_true",
        help="Evaluate snippets as written instead of transpiling them first.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write a debug log of the run to this file.",
    )
    return parser


def _build_serve_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mddoctest serve",
        description="Expose doc-test runs over HTTP.",
    )
    _add_verbose_option(parser)
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for mddoctest."""
    argv = list(sys.argv[1:] if argv is None else argv)
    if argv and argv[0] == "serve":
        _serve(argv[1:])
        return

    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        config = load_config(Path(args.config) if args.config else Path.cwd())
    except ConfigError as exc:
        parser.exit(1, f"mddoctest: {exc}\n")
    if args.no_transpile:
        config.transpile.enabled = False

    try:
        documents = DocumentScanner(config.include, config.exclude).collect(args.paths)
    except FileNotFoundError as exc:
        parser.exit(1, f"mddoctest: {exc}\n")

    console = Console()
    runner = DoctestRunner(config, progress=ProgressPrinter(console))
    try:
        results = runner.run(documents)
    except RuntimeError as exc:
        parser.exit(1, f"mddoctest failed: {exc}\nRun with --verbose for more details.\n")

    success = print_results(results, console=console, errors=runner.errors)
    parser.exit(0 if success else 1)


def _serve(argv: list[str]) -> None:
    parser = _build_serve_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=bool(args.verbose))

    from .service import run_service

    try:
        run_service(host=args.host, port=args.port)
    except RuntimeError as exc:
        parser.exit(1, f"{exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
