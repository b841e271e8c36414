"""Corpus configuration and book metadata loading.

Everything loaded here is built once and then passed by reference into the
components that need it (tokenizer, validator, builder, resolver):

  - CorpusConfig   config/corpus.yaml (work id, schema, exempt books, extensions)
  - BookTable      index/books.json, indexed by OSIS code and source abbreviation
  - ChapterIndex   index/aliases.json, OSIS -> {source_abbr, chapters{n: path}}
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, replace
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Optional

import yaml

from kjvtools.errors import FileError, ParseError
from kjvtools.model import Book
from kjvtools.schemas import ALIASES_SCHEMA, BOOKS_SCHEMA, check

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = REPO_ROOT / "config" / "corpus.yaml"

BOOKS_FILE = "books.json"
ALIASES_FILE = "aliases.json"
FILEMAP_FILE = "filemap.json"

# aliases.json chapter keys are ASCII decimal integers
CHAPTER_KEY_RE = re.compile(r"[0-9]+")


# ─── JSON helpers ───────────────────────────────────────────────────────────

def read_json(path: Path | str, what: str = "file"):
    """Read a JSON file, mapping OS errors to FileError and decode errors to ParseError."""
    p = Path(path)
    try:
        with open(p, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise FileError(f"{what} not found", path=str(p)) from e
    except OSError as e:
        raise FileError(f"failed to read {what}: {e}", path=str(p)) from e
    except json.JSONDecodeError as e:
        raise ParseError(f"failed to parse {what}: {e}", path=str(p)) from e


def write_json(path: Path | str, data) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.write("\n")


# ─── Corpus configuration ───────────────────────────────────────────────────

@dataclass(frozen=True)
class CorpusConfig:
    work: str = "KJV"
    schema: int = 1
    # Books whose verse numbering is irregular (e.g. Greek Esther) skip the
    # verse-continuity check and the book-level chapter-count check.
    verse_continuity_exempt: frozenset = frozenset({"ESG"})
    source_extensions: tuple = (".htm",)
    manifest_extensions: tuple = (".htm", ".xml")

    def is_exempt(self, book: Book) -> bool:
        return book.abbr in self.verse_continuity_exempt or book.osis in self.verse_continuity_exempt


def _str_list(data: dict, key: str, path: Path) -> list[str]:
    value = data[key]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ParseError(f"config field '{key}' must be a list of strings", path=str(path))
    return value


def load_config(path: Path | str | None = None) -> CorpusConfig:
    """Load corpus.yaml. A missing file yields the built-in defaults."""
    p = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not p.exists():
        if path is not None:
            raise FileError("corpus config not found", path=str(p))
        return CorpusConfig()

    try:
        with open(p, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ParseError(f"malformed corpus config: {e}", path=str(p)) from e

    if not isinstance(data, dict):
        raise ParseError("corpus config must be a mapping", path=str(p))

    defaults = CorpusConfig()
    kwargs = {}
    if "work" in data:
        if not isinstance(data["work"], str) or not data["work"]:
            raise ParseError("config field 'work' must be a non-empty string", path=str(p))
        kwargs["work"] = data["work"]
    if "schema" in data:
        if not isinstance(data["schema"], int):
            raise ParseError("config field 'schema' must be an integer", path=str(p))
        kwargs["schema"] = data["schema"]
    if "verse_continuity_exempt" in data:
        kwargs["verse_continuity_exempt"] = frozenset(_str_list(data, "verse_continuity_exempt", p))
    if "source_extensions" in data:
        kwargs["source_extensions"] = tuple(_str_list(data, "source_extensions", p))
    if "manifest_extensions" in data:
        kwargs["manifest_extensions"] = tuple(_str_list(data, "manifest_extensions", p))

    return replace(defaults, **kwargs)


# ─── Book table ─────────────────────────────────────────────────────────────

class BookTable:
    """Immutable book reference data, indexed by OSIS code and by source abbreviation."""

    def __init__(self, books, work: str = "", schema: int = 1):
        self.work = work
        self.schema = schema
        self._books = tuple(sorted(books, key=lambda b: b.order))
        by_osis: dict[str, Book] = {}
        by_abbr: dict[str, Book] = {}
        by_name: dict[str, Book] = {}
        for b in self._books:
            if b.osis in by_osis:
                raise ParseError(f"duplicate OSIS code in book metadata: {b.osis}")
            if b.abbr.upper() in by_abbr:
                raise ParseError(f"duplicate abbreviation in book metadata: {b.abbr}")
            by_osis[b.osis] = b
            by_abbr[b.abbr.upper()] = b
            for name in (b.name, *b.aliases):
                by_name.setdefault(name.lower(), b)
        self._by_osis = MappingProxyType(by_osis)
        self._by_abbr = MappingProxyType(by_abbr)
        self._by_name = MappingProxyType(by_name)

    def __iter__(self) -> Iterator[Book]:
        return iter(self._books)

    def __len__(self) -> int:
        return len(self._books)

    def by_osis(self, osis: str) -> Optional[Book]:
        return self._by_osis.get(osis)

    def by_abbr(self, abbr: str) -> Optional[Book]:
        return self._by_abbr.get(abbr.upper())

    def lookup(self, identifier: str) -> Optional[Book]:
        """Find a book by OSIS code, source abbreviation, or name/alias (case-insensitive)."""
        if not identifier:
            return None
        ident = identifier.strip()
        return (
            self._by_osis.get(ident)
            or self._by_abbr.get(ident.upper())
            or self._by_name.get(ident.lower())
            or next((b for b in self._books if b.osis.lower() == ident.lower()), None)
        )

    def abbreviations(self) -> list[str]:
        return [b.abbr for b in self._books]

    def to_json(self) -> dict:
        return {"schema": self.schema, "work": self.work, "books": [b.to_json() for b in self._books]}


def load_books(index_dir: Path | str) -> BookTable:
    path = Path(index_dir) / BOOKS_FILE
    data = read_json(path, BOOKS_FILE)
    check(data, BOOKS_SCHEMA, path=str(path))
    books = [Book.from_json(b) for b in data["books"]]
    try:
        return BookTable(books, work=data.get("work", ""), schema=data.get("schema", 1))
    except ParseError as e:
        e.path = str(path)
        raise


# ─── Chapter index (aliases.json) ───────────────────────────────────────────

@dataclass(frozen=True)
class BookChapters:
    source_abbr: str
    chapters: MappingProxyType        # chapter key (string) -> "raw/..." relative source path

    def sorted_items(self) -> list[tuple[str, str]]:
        """Chapter entries ordered numerically where the key is numeric."""
        def key(item):
            k = item[0]
            return (0, int(k)) if CHAPTER_KEY_RE.fullmatch(k) else (1, k)
        return sorted(self.chapters.items(), key=key)


class ChapterIndex:
    def __init__(self, entries: dict[str, BookChapters]):
        self._entries = MappingProxyType(dict(entries))

    def for_book(self, osis: str) -> Optional[BookChapters]:
        return self._entries.get(osis)


def load_chapter_index(index_dir: Path | str) -> ChapterIndex:
    path = Path(index_dir) / ALIASES_FILE
    data = read_json(path, ALIASES_FILE)
    check(data, ALIASES_SCHEMA, path=str(path))
    return ChapterIndex({
        osis: BookChapters(entry["source_abbr"], MappingProxyType(dict(entry["chapters"])))
        for osis, entry in data.items()
    })


class MetadataLoader:
    """Books, chapter index and config loaded together for ingestion."""

    def __init__(self, index_dir: Path | str, config: CorpusConfig | None = None):
        self.index_dir = Path(index_dir)
        self.config = config or CorpusConfig()
        self.books = load_books(self.index_dir)
        self.chapter_index = load_chapter_index(self.index_dir)

    def book_by_abbr(self, abbr: str) -> Optional[Book]:
        return self.books.by_abbr(abbr)

    def chapters_for_book(self, osis: str) -> Optional[BookChapters]:
        return self.chapter_index.for_book(osis)
