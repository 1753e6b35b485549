"""Run JavaScript examples embedded in Markdown documents as tests."""

from .config import ConfigError, DoctestConfig, TranspileConfig, load_config
from .models import Document, DocumentSnippets, ExecutionResult, Snippet, Status
from .parsing import DocumentError, SnippetParseError, parse_snippets
from .reporting import print_results, summarize
from .runner import DoctestRunner, run_tests
from .sandbox import JsExpression, ModuleResolutionError

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "Document",
    "DocumentError",
    "DocumentSnippets",
    "DoctestConfig",
    "DoctestRunner",
    "ExecutionResult",
    "JsExpression",
    "ModuleResolutionError",
    "Snippet",
    "SnippetParseError",
    "Status",
    "TranspileConfig",
    "load_config",
    "parse_snippets",
    "print_results",
    "run_tests",
    "summarize",
]
