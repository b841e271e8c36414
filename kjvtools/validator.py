"""Structural validation for ingested chapters.

Per chapter file:
  1. filename     ABBR + chapter digits, abbreviation known to books.json
  2. label        filename chapter == <div class='chapterlabel'> chapter
  3. range        filename chapter within 1..book.chapters
  4. verses       numbers run 1..N without gaps (exempt books skip this)
  5. footnotes    non-empty id/mark/text, unique ids, back-reference names a verse
  6. roundtrip    flattened tokens == plain, checked on the built Chapter

Per book:
  - index         every aliases.json chapter key is an integer within range
  - chapters      validated chapter count == book.chapters (exempt books skip this)

Checks accumulate: every applicable error is reported, nothing is raised.
A filename that cannot be resolved to a book short-circuits the rest for
that file, since nothing else can be checked without the book.
"""

from __future__ import annotations

import re
from pathlib import Path

from kjvtools.errors import ParseError
from kjvtools.metadata import CHAPTER_KEY_RE, BookChapters, BookTable, CorpusConfig
from kjvtools.model import Book, Chapter, ExtractedChapter, ValidationError, ValidationResult
from kjvtools.tokenizer import flatten_tokens

FILENAME_RE = re.compile(r"^(?P<abbr>[A-Za-z0-9]*[A-Za-z])(?P<chapter>[0-9]+)$")


def parse_filename(filename: str) -> tuple[str, int]:
    """'PRO01.htm' -> ('PRO', 1); '1MA16.htm' -> ('1MA', 16); 's3y01.htm' -> ('S3Y', 1)."""
    base = Path(filename).stem
    if len(base) < 4:
        raise ParseError(f"filename too short: {filename}")
    m = FILENAME_RE.match(base)
    if not m:
        if base.isdigit():
            raise ParseError(f"filename contains only digits: {filename}")
        raise ParseError(f"no chapter number in filename: {filename}")
    return m.group("abbr").upper(), int(m.group("chapter"))


def chapter_bound(book: Book) -> str:
    return f"1-{book.chapters}"


class Validator:
    def __init__(self, books: BookTable, config: CorpusConfig | None = None):
        self.books = books
        self.config = config or CorpusConfig()

    # ─── Per-file checks ────────────────────────────────────────────────────

    def validate_chapter_file(self, filename: str, extracted: ExtractedChapter) -> list[ValidationError]:
        r = ValidationResult()

        try:
            abbr, chapter = parse_filename(filename)
        except ParseError as e:
            r.error(filename, "filename", e.message)
            return r.errors

        book = self.books.by_abbr(abbr)
        if book is None:
            r.error(filename, "filename", f"unknown book abbreviation: {abbr}", actual=abbr)
            return r.errors

        if chapter != extracted.chapter_number:
            r.error(
                filename, "label",
                "chapter number mismatch between filename and <div class='chapterlabel'>",
                expected=chapter, actual=extracted.chapter_number,
            )

        if chapter < 1 or chapter > book.chapters:
            r.error(
                filename, "range",
                f"chapter number {chapter} outside {book.name} (1-{book.chapters})",
                expected=chapter_bound(book), actual=chapter,
            )

        if not self.config.is_exempt(book):
            r.extend(self.validate_verses_continuous(filename, extracted))

        r.extend(self.validate_footnotes(filename, extracted))
        return r.errors

    def validate_verses_continuous(self, filename: str, extracted: ExtractedChapter) -> list[ValidationError]:
        r = ValidationResult()
        verses = extracted.verses
        if not verses:
            r.error(filename, "verses", "no verses found in chapter")
            return r.errors

        if verses[0].number != 1:
            r.error(filename, "verses", "verses do not start at 1", expected=1, actual=verses[0].number)

        for prev, cur in zip(verses, verses[1:]):
            expected = prev.number + 1
            if cur.number != expected:
                r.error(
                    filename, "verses",
                    f"gap in verse numbers: expected {expected}, got {cur.number}",
                    expected=expected, actual=cur.number,
                )
        return r.errors

    def validate_footnotes(self, filename: str, extracted: ExtractedChapter) -> list[ValidationError]:
        r = ValidationResult()
        verse_nums = {v.number for v in extracted.verses}
        seen: set[str] = set()

        for fn in extracted.footnotes:
            label = f"footnote {fn.id}" if fn.id else "footnote"
            if not fn.id:
                r.error(filename, "footnotes", "footnote has empty ID")
            elif fn.id in seen:
                r.error(filename, "footnotes", f"duplicate footnote ID: {fn.id}", actual=fn.id)
            else:
                seen.add(fn.id)
            if not fn.mark:
                r.error(filename, "footnotes", f"{label} has empty mark")
            if not fn.text:
                r.error(filename, "footnotes", f"{label} has empty text")
            if fn.verse_num < 1:
                r.error(
                    filename, "footnotes",
                    f"{label} references invalid verse number {fn.verse_num}",
                    expected=">= 1", actual=fn.verse_num,
                )
            elif fn.verse_num not in verse_nums:
                r.error(
                    filename, "footnotes",
                    f"{label} references verse {fn.verse_num} that doesn't exist in chapter",
                    expected="verse number in range 1..N", actual=fn.verse_num,
                )
        return r.errors

    def validate_roundtrip(self, filename: str, chapter: Chapter) -> list[ValidationError]:
        """Flattened tokens must equal plain, verse by verse."""
        r = ValidationResult()
        for verse in chapter.verses:
            flat = flatten_tokens(verse.tokens)
            if flat != verse.plain:
                r.error(
                    filename, "roundtrip",
                    f"verse {verse.v}: plain text does not match concatenated tokens",
                    expected=verse.plain, actual=flat,
                )
        return r.errors

    # ─── Per-book checks ────────────────────────────────────────────────────

    def validate_book_index(self, book: Book, chapters: BookChapters) -> list[ValidationError]:
        """Every chapter key listed for the book must be an integer within its bounds."""
        r = ValidationResult()
        for key, path in chapters.sorted_items():
            if not CHAPTER_KEY_RE.fullmatch(key):
                r.error(path, "index", "could not parse chapter number from aliases.json", actual=key)
                continue
            n = int(key)
            if n < 1 or n > book.chapters:
                r.error(
                    path, "range",
                    f"chapter {n} out of range for book {book.abbr}",
                    expected=chapter_bound(book), actual=n,
                )
        return r.errors

    def validate_book_count(self, book: Book, validated_count: int) -> list[ValidationError]:
        r = ValidationResult()
        if self.config.is_exempt(book):
            return r.errors
        if validated_count != book.chapters:
            r.error(
                book.abbr, "chapters",
                f"{book.name}: {validated_count} chapter(s) passed validation, expected {book.chapters}",
                expected=book.chapters, actual=validated_count,
            )
        return r.errors
