"""Data model for the canonical corpus.

Four groups of types live here:
  - Reference data: Book
  - Canonical records: Token variants, Verse, Footnote, Chapter (immutable)
  - Ingestion records: Extracted*, ValidationError, ValidationResult, ProcessResult
  - Query records: VerseRange, Reference, Resolved

JSON shapes (canonical chapter file):
  {schema, work, osis, abbr, chapter,
   verses: [{v, plain, tokens: [{t|add|nd}]}],
   footnotes?: [{id, mark, at: {v}, text}]}
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, Optional, Union

from kjvtools.errors import ParseError


SCHEMA_VERSION = 1


# ─── Reference data ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Book:
    """One book of the corpus, as described by books.json."""
    osis: str                     # e.g. "Gen", "1Macc", "AddEsth"
    abbr: str                     # source abbreviation, e.g. "GEN", "1MA", "ESG"
    name: str                     # display name
    aliases: tuple[str, ...]
    testament: str                # "OT", "AP" or "NT"
    order: int                    # canonical order, 1-based
    chapters: int                 # declared chapter count

    @classmethod
    def from_json(cls, d: dict) -> "Book":
        return cls(
            osis=d["osis"],
            abbr=d["abbr"],
            name=d["name"],
            aliases=tuple(d.get("aliases") or ()),
            testament=d["testament"],
            order=d["order"],
            chapters=d["chapters"],
        )

    def to_json(self) -> dict:
        return {
            "osis": self.osis,
            "abbr": self.abbr,
            "name": self.name,
            "aliases": list(self.aliases),
            "testament": self.testament,
            "order": self.order,
            "chapters": self.chapters,
        }


# ─── Tokens ─────────────────────────────────────────────────────────────────
# A token is exactly one of three variants. The JSON key doubles as the tag.

@dataclass(frozen=True)
class PlainText:
    text: str
    key: ClassVar[str] = "t"


@dataclass(frozen=True)
class AddedWords:
    """Words supplied by the translators (rendered in italics in print)."""
    text: str
    key: ClassVar[str] = "add"


@dataclass(frozen=True)
class DivineName:
    """The divine name (LORD, GOD) set in small capitals."""
    text: str
    key: ClassVar[str] = "nd"


Token = Union[PlainText, AddedWords, DivineName]

TOKEN_TYPES: dict[str, type] = {cls.key: cls for cls in (PlainText, AddedWords, DivineName)}


def token_to_json(token: Token) -> dict:
    return {token.key: token.text}


def token_from_json(d: dict) -> Token:
    keys = [k for k in d if k in TOKEN_TYPES]
    if len(keys) != 1 or len(d) != 1:
        raise ParseError(f"token must carry exactly one of t/add/nd, got keys {sorted(d)}")
    key = keys[0]
    return TOKEN_TYPES[key](d[key])


# ─── Canonical records ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class Verse:
    v: int
    plain: str
    tokens: tuple[Token, ...]

    def to_json(self) -> dict:
        return {
            "v": self.v,
            "plain": self.plain,
            "tokens": [token_to_json(t) for t in self.tokens],
        }

    @classmethod
    def from_json(cls, d: dict) -> "Verse":
        return cls(
            v=d["v"],
            plain=d["plain"],
            tokens=tuple(token_from_json(t) for t in d["tokens"]),
        )


@dataclass(frozen=True)
class Footnote:
    id: str
    mark: str
    verse: int                    # serialized as at.v
    text: str

    def to_json(self) -> dict:
        return {"id": self.id, "mark": self.mark, "at": {"v": self.verse}, "text": self.text}

    @classmethod
    def from_json(cls, d: dict) -> "Footnote":
        return cls(id=d["id"], mark=d["mark"], verse=d["at"]["v"], text=d["text"])


@dataclass(frozen=True)
class Chapter:
    work: str
    osis: str
    abbr: str
    chapter: int
    verses: tuple[Verse, ...]
    footnotes: tuple[Footnote, ...] = ()
    schema: int = SCHEMA_VERSION

    def to_json(self) -> dict:
        d = {
            "schema": self.schema,
            "work": self.work,
            "osis": self.osis,
            "abbr": self.abbr,
            "chapter": self.chapter,
            "verses": [v.to_json() for v in self.verses],
        }
        # Absent entirely (not emitted empty) when there are no footnotes.
        if self.footnotes:
            d["footnotes"] = [fn.to_json() for fn in self.footnotes]
        return d

    @classmethod
    def from_json(cls, d: dict) -> "Chapter":
        return cls(
            schema=d["schema"],
            work=d["work"],
            osis=d["osis"],
            abbr=d["abbr"],
            chapter=d["chapter"],
            verses=tuple(Verse.from_json(v) for v in d["verses"]),
            footnotes=tuple(Footnote.from_json(fn) for fn in d.get("footnotes") or ()),
        )


# ─── Ingestion records ──────────────────────────────────────────────────────

@dataclass
class ExtractedVerse:
    number: int
    plain: str
    tokens: list[Token]


@dataclass
class ExtractedFootnote:
    id: str                       # e.g. "FN1"
    mark: str                     # e.g. "*", "†"
    verse_num: int                # verse the footnote points back to
    text: str


@dataclass
class ExtractedChapter:
    chapter_number: int
    verses: list[ExtractedVerse]
    footnotes: list[ExtractedFootnote]
    source_file: str


@dataclass
class ValidationError:
    """One accumulated (non-fatal) validation failure."""
    file: str
    type: str                     # filename, label, range, verses, footnotes, roundtrip, chapters, index, parse
    message: str
    expected: object = None
    actual: object = None


class ValidationResult:
    def __init__(self):
        self.errors: list[ValidationError] = []

    def error(self, file: str, type: str, message: str, expected=None, actual=None):
        self.errors.append(ValidationError(file, type, message, expected, actual))

    def extend(self, errors):
        self.errors.extend(errors)

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        if not self.errors:
            return "✓ All checks passed"
        lines = [f"ERRORS ({len(self.errors)}):"]
        for e in self.errors:
            lines.append(f"  ✗ [{e.type}] {e.file}: {e.message}")
        return "\n".join(lines)


@dataclass
class VerificationStats:
    continuity_errors: int = 0    # verse continuity failures
    footnote_issues: int = 0
    roundtrip_failures: int = 0


@dataclass
class ProcessResult:
    book: str
    osis: str = ""
    files_processed: int = 0
    files_skipped: int = 0
    errors: list[ValidationError] = field(default_factory=list)
    file_map: dict[str, str] = field(default_factory=dict)
    stats: VerificationStats = field(default_factory=VerificationStats)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def files_written(self) -> int:
        return len(self.file_map)


# ─── Query records ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VerseRange:
    start: int
    end: Optional[int] = None


REFERENCE_RE = re.compile(
    r"^(?P<book>.+?)(?:\s+(?P<chapter>\d+)(?::(?P<start>\d+)(?:\s*-\s*(?P<end>\d+))?)?)?$"
)


@dataclass(frozen=True)
class Reference:
    """A (book, chapter, optional verse range) query. Never persisted."""
    book: str = ""
    chapter: Optional[int] = None # None means chapter 1
    verses: Optional[VerseRange] = None

    @classmethod
    def parse(cls, ref: str) -> "Reference":
        """Parse 'John 3:16', 'Luke 1:1-4', 'Matt 1' or '1 John'."""
        s = " ".join(ref.split())
        m = REFERENCE_RE.match(s)
        if not s or not m:
            raise ParseError(f"malformed reference: {ref!r}")
        chapter = int(m.group("chapter")) if m.group("chapter") else None
        verses = None
        if m.group("start"):
            end = int(m.group("end")) if m.group("end") else None
            verses = VerseRange(int(m.group("start")), end)
        return cls(book=m.group("book"), chapter=chapter, verses=verses)

    def __str__(self) -> str:
        s = self.book
        if self.chapter is not None:
            s += f" {self.chapter}"
            if self.verses is not None:
                s += f":{self.verses.start}"
                if self.verses.end is not None:
                    s += f"-{self.verses.end}"
        return s


@dataclass(frozen=True)
class Resolved:
    ref: Reference
    book_name: str
    chapter: Chapter
    verses: tuple[Verse, ...]
    footnotes: tuple[Footnote, ...]
