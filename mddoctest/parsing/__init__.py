"""Snippet extraction from documentation files."""

from .parser import (
    SHARE_DIRECTIVE,
    SKIP_DIRECTIVE,
    DocumentError,
    ParserState,
    SnippetParseError,
    UnreadableDocumentError,
    fence_language,
    parse_document,
    parse_snippets,
    read_document,
    step,
)

__all__ = [
    "SHARE_DIRECTIVE",
    "SKIP_DIRECTIVE",
    "DocumentError",
    "ParserState",
    "SnippetParseError",
    "UnreadableDocumentError",
    "fence_language",
    "parse_document",
    "parse_snippets",
    "read_document",
    "step",
]
