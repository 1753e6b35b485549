"""Discovery of documentation files to doc-test."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from .config import DEFAULT_INCLUDE

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".idea",
}


@dataclass(frozen=True)
class IgnorePattern:
    """One line of a ``.gitignore`` file or one ``exclude`` entry.

    Patterns containing a ``/`` are matched against the path relative to the walked
    root. Other patterns are matched against every path component.
    """

    glob: str
    negated: bool = False
    dirs_only: bool = False

    @classmethod
    def parse(cls, line: str) -> Optional["IgnorePattern"]:
        text = line.strip()
        if not text or text.startswith("#"):
            return None
        negated = text.startswith("!")
        text = text.lstrip("!")
        dirs_only = text.endswith("/")
        glob = text.strip("/")
        if not glob:
            return None
        if "/" in text.rstrip("/"):
            glob = "/" + glob
        return cls(glob=glob, negated=negated, dirs_only=dirs_only)

    def applies_to(self, rel_path: str, is_dir: bool) -> bool:
        if self.dirs_only and not is_dir:
            return False
        if self.glob.startswith("/"):
            anchored = self.glob[1:]
            return fnmatchcase(rel_path, anchored) or rel_path.startswith(anchored + "/")
        return any(fnmatchcase(part, self.glob) for part in rel_path.split("/"))


class IgnoreSpec:
    """Ordered ignore patterns where the last matching pattern decides."""

    def __init__(self, patterns: Iterable[IgnorePattern] = ()) -> None:
        self.patterns: List[IgnorePattern] = list(patterns)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "IgnoreSpec":
        parsed = (IgnorePattern.parse(line) for line in lines)
        return cls(pattern for pattern in parsed if pattern is not None)

    @classmethod
    def from_file(cls, path: Path) -> "IgnoreSpec":
        if not path.is_file():
            return cls()
        return cls.from_lines(path.read_text(encoding="utf-8").splitlines())

    def extend(self, lines: Iterable[str]) -> "IgnoreSpec":
        return IgnoreSpec(self.patterns + IgnoreSpec.from_lines(lines).patterns)

    def ignores(self, rel_path: str, is_dir: bool) -> bool:
        for pattern in reversed(self.patterns):
            if pattern.applies_to(rel_path, is_dir):
                return not pattern.negated
        return False


class DocumentScanner:
    """Expands files and directories into the list of documents to test."""

    def __init__(
        self,
        include: Sequence[str] = DEFAULT_INCLUDE,
        exclude: Sequence[str] = (),
    ) -> None:
        self.include = list(include) or list(DEFAULT_INCLUDE)
        self.exclude = list(exclude)

    def collect(self, paths: Iterable[str | Path]) -> List[Path]:
        """Return sorted, de-duplicated document paths.

        Explicit files are always kept; directories are walked for files matching
        ``include`` while honouring ``.gitignore`` and ``exclude``.
        """
        found: set[Path] = set()
        for raw in paths:
            path = Path(raw).expanduser()
            if not path.exists():
                raise FileNotFoundError(f"Document path not found: {raw}")
            if path.is_file():
                found.add(path.resolve())
                continue
            found.update(self._walk(path.resolve()))
        return sorted(found)

    def _walk(self, root: Path) -> Iterator[Path]:
        spec = IgnoreSpec.from_file(root / ".gitignore").extend(self.exclude)

        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            prefix = "" if current == root else current.relative_to(root).as_posix() + "/"

            dirnames[:] = [
                name
                for name in sorted(dirnames)
                if name not in _EXCLUDED_DIRS and not spec.ignores(prefix + name, True)
            ]
            for filename in filenames:
                if not self._included(filename) or spec.ignores(prefix + filename, False):
                    continue
                yield current / filename

    def _included(self, filename: str) -> bool:
        return any(fnmatchcase(filename.lower(), pattern) for pattern in self.include)


__all__ = ["DocumentScanner", "IgnorePattern", "IgnoreSpec"]
