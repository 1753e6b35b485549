"""Core data models shared across mddoctest components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class Document:
    """A documentation file read once from disk."""

    path: str
    text: str


@dataclass(frozen=True)
class Snippet:
    """One fenced code block extracted from a document."""

    source_path: str
    start_line: int
    language: str = "javascript"
    code: str = ""
    skip: bool = False
    complete: bool = False


@dataclass
class DocumentSnippets:
    """Parse result for a single document."""

    path: str
    snippets: List[Snippet] = field(default_factory=list)
    share_sandbox: bool = False


class Status(str, Enum):
    """Outcome of running a snippet."""

    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


@dataclass
class ExecutionResult:
    """Outcome of one snippet, produced exactly once per recognized snippet."""

    status: Status
    snippet: Snippet
    diagnostic: str = ""
    line: Optional[int] = None
    column: Optional[int] = None
