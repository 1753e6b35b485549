"""Line-oriented state machine that extracts code snippets from documents."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from functools import reduce
from pathlib import Path
from typing import Optional, Tuple

from ..models import Document, DocumentSnippets, Snippet
from . import assertions

FENCE = "```"
SKIP_DIRECTIVE = "<!-- skip-example -->"
SHARE_DIRECTIVE = "<!-- share-code-between-examples -->"

_FENCE_OPEN = re.compile(r"^```\W*(?P<language>javascript|js|es6|typescript|ts)\s*$", re.IGNORECASE)
_LANGUAGES = {
    "javascript": "javascript",
    "js": "javascript",
    "es6": "javascript",
    "typescript": "typescript",
    "ts": "typescript",
}

LINE_BLOCK = "line"
COMMENT_BLOCK = "comment"


class DocumentError(RuntimeError):
    """Raised when a document cannot be turned into snippets."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path


class UnreadableDocumentError(DocumentError):
    """Raised when a document is not valid UTF-8 text."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(path, f"{path}: cannot be read as UTF-8 text ({reason})")


class SnippetParseError(DocumentError):
    """Raised when a document contains a fence that is never closed."""

    def __init__(self, path: str, line: int) -> None:
        super().__init__(path, f"{path}:{line}: code fence opened here is never closed")
        self.line = line


@dataclass(frozen=True)
class ParserState:
    """State threaded through every line of one document."""

    path: str
    snippets: Tuple[Snippet, ...] = ()
    share_sandbox: bool = False
    pending_skip: bool = False
    in_block_comment: bool = False
    output_block: Optional[str] = None
    output_lines: int = 0

    @property
    def open_snippet(self) -> Optional[Snippet]:
        if self.snippets and not self.snippets[-1].complete:
            return self.snippets[-1]
        return None

    def with_code(self, code: str) -> "ParserState":
        last = self.snippets[-1]
        return replace(self, snippets=self.snippets[:-1] + (replace(last, code=code),))

    def append(self, line: str) -> "ParserState":
        return self.with_code(self.snippets[-1].code + line + "\n")


def fence_language(line: str) -> Optional[str]:
    """Return the normalised language of a fence-open line, if recognised."""
    match = _FENCE_OPEN.match(line.strip())
    if match is None:
        return None
    return _LANGUAGES[match.group("language").lower()]


def step(state: ParserState, line: str, line_number: int) -> ParserState:
    """Apply one document line to ``state`` and return the next state."""
    line = line.rstrip("\r")
    stripped = line.strip()

    language = fence_language(stripped)
    if language is not None:
        snippet = Snippet(
            source_path=state.path,
            start_line=line_number,
            language=language,
            skip=state.pending_skip,
        )
        return replace(
            state,
            snippets=state.snippets + (snippet,),
            pending_skip=False,
            in_block_comment=False,
            output_block=None,
            output_lines=0,
        )
    if stripped == FENCE:
        return _close_snippet(state)
    if stripped == SKIP_DIRECTIVE:
        return replace(state, pending_skip=True)
    if stripped == SHARE_DIRECTIVE:
        return replace(state, share_sandbox=True)

    if state.open_snippet is None:
        return state

    if state.output_block == LINE_BLOCK and assertions.match_output_continuation(line) is None:
        # Any line that is not a `//` continuation ends a line-comment output block.
        state = _finish_output_block(state)

    if not state.in_block_comment:
        return_assertion = assertions.match_return_assertion(line)
        if return_assertion is not None:
            return _apply_return_assertion(state, line, *return_assertion)

    logged = assertions.match_log_assertion(line)
    if logged is not None:
        code, values = logged
        statement = assertions.expect_logged_values(values, in_comment=state.in_block_comment)
        return state.append(
            assertions.after_code(code, statement, in_comment=state.in_block_comment)
        )

    output = assertions.match_output_assertion(line)
    if output is not None and output[1] and state.output_block is None:
        code, text = output
        statement = assertions.expect_output(text, in_comment=state.in_block_comment)
        return state.append(
            assertions.after_code(code, statement, in_comment=state.in_block_comment)
        )

    if state.output_block == COMMENT_BLOCK:
        if "*/" in line:
            return _close_comment_block(state, line)
        return _expect_block_line(state, stripped, in_comment=True)
    if state.output_block == LINE_BLOCK:
        text = assertions.match_output_continuation(line)
        return _expect_block_line(state, text or "", in_comment=False)
    if output is not None and not output[0].strip() and not state.in_block_comment:
        return replace(state.append(line), output_block=LINE_BLOCK, output_lines=0)
    if state.in_block_comment and assertions.is_comment_output_sentinel(line):
        return replace(state.append(line), output_block=COMMENT_BLOCK, output_lines=0)

    in_comment = assertions.scan_block_comments(line, state.in_block_comment)
    return replace(state.append(line), in_block_comment=in_comment)


def parse_snippets(text: str, path: str = "<string>") -> DocumentSnippets:
    """Parse document text into snippets, raising on an unterminated fence."""
    lines = text.split("\n")
    state = reduce(
        lambda current, item: step(current, item[1], item[0]),
        enumerate(lines, start=1),
        ParserState(path=path),
    )
    for snippet in state.snippets:
        if not snippet.complete:
            raise SnippetParseError(path, snippet.start_line)
    return DocumentSnippets(
        path=path,
        snippets=list(state.snippets),
        share_sandbox=state.share_sandbox,
    )


def parse_document(document: Document) -> DocumentSnippets:
    """Parse a document read from disk."""
    return parse_snippets(document.text, document.path)


def read_document(path: str | Path) -> Document:
    """Read a documentation file once as UTF-8 text."""
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise UnreadableDocumentError(str(file_path), exc.reason) from exc
    return Document(path=str(file_path), text=text)


def _close_snippet(state: ParserState) -> ParserState:
    if state.open_snippet is None:
        return state
    state = _finish_output_block(state)
    last = replace(state.snippets[-1], complete=True)
    return replace(
        state,
        snippets=state.snippets[:-1] + (last,),
        in_block_comment=False,
        output_block=None,
        output_lines=0,
    )


def _apply_return_assertion(
    state: ParserState, line: str, code: str, expected: str
) -> ParserState:
    if code.strip():
        rewritten = assertions.inline_return_assertion(code, expected)
        return state.append(rewritten if rewritten is not None else line)
    wrapped = assertions.wrap_last_line(state.snippets[-1].code, expected)
    if wrapped is None:
        # Nothing to capture: keep the annotation as the plain comment it is.
        return state.append(line)
    return state.with_code(wrapped)


def _expect_block_line(state: ParserState, text: str, *, in_comment: bool) -> ParserState:
    statement = assertions.expect_output(text, in_comment=in_comment)
    return replace(state.append(statement), output_lines=state.output_lines + 1)


def _close_comment_block(state: ParserState, line: str) -> ParserState:
    closing = line
    if line.strip() == "*/" and state.output_lines:
        closing = f"{line} {assertions.expect_output_drained()}"
    in_comment = assertions.scan_block_comments(line, True)
    return replace(
        state.append(closing),
        in_block_comment=in_comment,
        output_block=None,
        output_lines=0,
    )


def _finish_output_block(state: ParserState) -> ParserState:
    if state.output_block != LINE_BLOCK:
        return state
    if state.output_lines:
        code = state.snippets[-1].code
        drained = f"{code[:-1]} {assertions.expect_output_drained()}\n"
        state = state.with_code(drained)
    return replace(state, output_block=None, output_lines=0)


__all__ = [
    "FENCE",
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
