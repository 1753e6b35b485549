"""Rewrites inline doc annotations into runtime assertions.

Three annotation forms are recognised inside a snippet:

* ``expr // => expected`` (or ``// => expected`` on the line after ``expr``) asserts the
  value of the expression statement.
* ``// log => value, ...`` and ``// output: text`` assert the next line written through
  ``console.log``.
* ``// output:`` on its own (or a bare ``output:`` inside a ``/* */`` comment) opens a
  block in which every following line is one expected line of console output.

Every rewrite keeps a one-to-one mapping between document lines and generated lines so
that error positions reported by the evaluator still point at the right document line.
"""

from __future__ import annotations

import json
import re
from typing import Optional

RETURN_VALUE = "__returnValue"
ASSERT_EQUAL = "__deepStrictEqual"
NEXT_OUTPUT = "__nextOutput"
FORMAT_OUTPUT = "__formatOutput"
ASSERT_DRAINED = "__assertOutputDrained"

_RETURN_COMMENT = re.compile(r"^//\s?=>(?P<expected>.+)$")
_LOG_COMMENT = re.compile(r"^//\s?log\s?=>(?P<expected>.+)$")
_OUTPUT_COMMENT = re.compile(r"^//\s?output:(?P<expected>.*)$")
_COMMENT_OUTPUT_SENTINEL = re.compile(r"^\s*output:\s*$")
_LINE_CONTINUATION = re.compile(r"^\s*//(?P<text>.*)$")
_LAST_LINE = re.compile(r"(?P<line>[^\n]*)\n\Z")
_REGEX_PRECEDERS = frozenset("(,=:[!&|?{};+-*%<>~^")
_REGEX_KEYWORD = re.compile(r"(?:^|[^\w$])(?:return|typeof|case|in|of|void|delete|throw|new)$")
_QUOTES = "'\"`"


def match_return_assertion(line: str) -> Optional[tuple[str, str]]:
    """Return ``(code, expected)`` for a return-value annotation, else ``None``."""
    found = _annotation(line, _RETURN_COMMENT)
    if found is None:
        return None
    code, expected = found
    expected = expected.strip()
    if not expected:
        return None
    return code, expected


def match_log_assertion(line: str) -> Optional[tuple[str, str]]:
    """Return ``(code, values)`` for a ``// log =>`` annotation, else ``None``."""
    found = _annotation(line, _LOG_COMMENT)
    if found is None:
        return None
    code, expected = found
    expected = expected.strip()
    if not expected:
        return None
    return code, expected


def match_output_assertion(line: str) -> Optional[tuple[str, str]]:
    """Return ``(code, text)`` for a ``// output:`` annotation, else ``None``.

    An empty text on a line without code marks the opening sentinel of an output block.
    """
    found = _annotation(line, _OUTPUT_COMMENT)
    if found is None:
        return None
    code, expected = found
    return code, expected.strip()


def is_comment_output_sentinel(line: str) -> bool:
    """Return True for a bare ``output:`` line inside a block comment."""
    return _COMMENT_OUTPUT_SENTINEL.match(line) is not None


def match_output_continuation(line: str) -> Optional[str]:
    """Return the expected text carried by a ``// text`` continuation line."""
    match = _LINE_CONTINUATION.match(line)
    if match is None:
        return None
    return match.group("text").strip()


def wrap_last_line(code: str, expected: str) -> Optional[str]:
    """Capture the value of the last accumulated line and assert it equals ``expected``.

    Returns the rewritten code, or ``None`` when the last line is empty or only a
    comment, in which case there is no expression to capture.
    """
    match = _LAST_LINE.search(code)
    if match is None:
        return None
    last_line = match.group("line")
    statement = _statement_body(last_line)
    if statement is None:
        return None
    indent = last_line[: len(last_line) - len(last_line.lstrip())]
    head = code[: match.start("line")]
    return (
        f"{head}{indent}var {RETURN_VALUE} = {statement};\n"
        f"{indent}{ASSERT_EQUAL}({RETURN_VALUE}, {expected});\n"
    )


def inline_return_assertion(code: str, expected: str) -> Optional[str]:
    """Rewrite ``expr // => expected`` into a single capturing line."""
    statement = _statement_body(code)
    if statement is None:
        return None
    indent = code[: len(code) - len(code.lstrip())]
    return (
        f"{indent}var {RETURN_VALUE} = {statement}; "
        f"{ASSERT_EQUAL}({RETURN_VALUE}, {expected});"
    )


def expect_output(text: str, *, in_comment: bool = False) -> str:
    """Assert that the next console line equals ``text`` exactly."""
    statement = f"{ASSERT_EQUAL}({NEXT_OUTPUT}(), {json.dumps(text)});"
    return reopen_comment(statement) if in_comment else statement


def expect_logged_values(values: str, *, in_comment: bool = False) -> str:
    """Assert that the next console line equals the formatted ``values`` list."""
    statement = f"{ASSERT_EQUAL}({NEXT_OUTPUT}(), {FORMAT_OUTPUT}([{values}]));"
    return reopen_comment(statement) if in_comment else statement


def expect_output_drained() -> str:
    """Assert that no console lines are left unchecked."""
    return f"{ASSERT_DRAINED}();"


def reopen_comment(statement: str) -> str:
    """Close the open block comment around ``statement`` and reopen it afterwards."""
    return f"*/ {statement} /*"


def after_code(code: str, statement: str, *, in_comment: bool = False) -> str:
    """Place ``statement`` on the same line as the code preceding a trailing annotation."""
    body = code.rstrip()
    if not body.strip():
        return code + statement
    if not in_comment and not body.endswith((";", "{", "}")):
        body += ";"
    return f"{body} {statement}"


def scan_block_comments(line: str, in_comment: bool) -> bool:
    """Return whether a ``/* */`` comment is still open after ``line``.

    Comment markers inside string, template and regular expression literals are ignored.
    """
    return _scan(line, in_comment)[0]


def line_comment_start(line: str) -> Optional[int]:
    """Return the index of the ``//`` that starts a line comment, if any."""
    return _scan(line, False)[1]


def _annotation(line: str, pattern: re.Pattern[str]) -> Optional[tuple[str, str]]:
    if line.lstrip().startswith("//"):
        code, comment = "", line.lstrip()
    else:
        index = line_comment_start(line)
        if index is None:
            return None
        code, comment = line[:index], line[index:]
    match = pattern.match(comment)
    if match is None:
        return None
    return code, match.group("expected")


def _scan(line: str, in_comment: bool) -> tuple[bool, Optional[int]]:
    index = 0
    while index < len(line):
        if in_comment:
            end = line.find("*/", index)
            if end == -1:
                return True, None
            in_comment = False
            index = end + 2
            continue
        pair = line[index : index + 2]
        if pair == "//":
            return False, index
        if pair == "/*":
            in_comment = True
            index += 2
            continue
        char = line[index]
        if char in _QUOTES or (char == "/" and _starts_regex(line, index)):
            index = _skip_literal(line, index)
            continue
        index += 1
    return in_comment, None


def _starts_regex(line: str, index: int) -> bool:
    before = line[:index].rstrip()
    if not before:
        return True
    return before[-1] in _REGEX_PRECEDERS or _REGEX_KEYWORD.search(before) is not None


def _skip_literal(line: str, start: int) -> int:
    """Return the index just past the literal opened at ``start``."""
    delimiter = line[start]
    in_class = False
    index = start + 1
    while index < len(line):
        char = line[index]
        if char == "\\":
            index += 2
            continue
        if delimiter == "/":
            if char == "[":
                in_class = True
            elif char == "]":
                in_class = False
            elif char == "/" and not in_class:
                return index + 1
        elif char == delimiter:
            return index + 1
        index += 1
    return len(line)


def _statement_body(line: str) -> Optional[str]:
    body = line.strip()
    while body.endswith(";"):
        body = body[:-1].rstrip()
    if not body or body.startswith("//") or body.startswith("/*") or body.startswith("*"):
        return None
    return body


__all__ = [
    "ASSERT_DRAINED",
    "ASSERT_EQUAL",
    "FORMAT_OUTPUT",
    "NEXT_OUTPUT",
    "RETURN_VALUE",
    "after_code",
    "expect_logged_values",
    "expect_output",
    "expect_output_drained",
    "inline_return_assertion",
    "is_comment_output_sentinel",
    "line_comment_start",
    "match_log_assertion",
    "match_output_assertion",
    "match_output_continuation",
    "match_return_assertion",
    "reopen_comment",
    "scan_block_comments",
    "wrap_last_line",
]
