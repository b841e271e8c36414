"""Hard error kinds raised by the corpus tools.

Every error is fatal to the call that raised it and is surfaced immediately
with enough context (path, expected bound) to diagnose. Validation problems
found during ingestion are NOT exceptions: see `kjvtools.model.ValidationError`.
"""

from __future__ import annotations

from typing import Optional


class CorpusError(Exception):
    """Base class for file/parse/range/content failures."""

    kind = "corpus"

    def __init__(self, message: str, path: Optional[str] = None, expected: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.expected = expected

    def __str__(self) -> str:
        parts = [f"{self.kind} error: {self.message}"]
        if self.path:
            parts.append(f"(path: {self.path})")
        if self.expected:
            parts.append(f"(expected: {self.expected})")
        return " ".join(parts)


class FileError(CorpusError):
    """Missing or unreadable file or directory."""
    kind = "file"


class ParseError(CorpusError):
    """Malformed persisted JSON/YAML/metadata, or an unparseable source document."""
    kind = "parse"


class RangeError(CorpusError):
    """Unknown book, or chapter/verse outside canonical bounds."""
    kind = "range"


class ContentError(CorpusError):
    """Structurally empty or invalid extracted content (e.g. zero verses)."""
    kind = "content"
