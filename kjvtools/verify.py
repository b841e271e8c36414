#!/usr/bin/env python3
"""Verify the raw sources or the canonical corpus.

Subcommands:
  raw     re-hash every file listed in raw/SHA256MANIFEST
  canon   re-validate every canonical chapter file:
            - chapter schema and required metadata fields
            - verse continuity (exempt books skip this)
            - round-trip (flattened tokens == plain), non-empty plain
            - footnote back-references and duplicate ids
          then confirm every file-map target exists and that each book has
          its declared number of chapters (exempt books skip this)

Exit code 1 when anything fails.

Usage:
  python -m kjvtools.verify raw --raw raw
  python -m kjvtools.verify canon --canon canon/kjv --index canon/kjv/index
"""

from __future__ import annotations

import argparse
import os
import sys
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from kjvtools.builder import BOOKS_DIR
from kjvtools.console import abort, rule
from kjvtools.errors import CorpusError
from kjvtools.manifest import print_report, verify_manifest
from kjvtools.metadata import FILEMAP_FILE, BookTable, CorpusConfig, load_books, load_config, read_json
from kjvtools.model import (
    Chapter,
    ExtractedChapter,
    ExtractedFootnote,
    ExtractedVerse,
    ValidationResult,
)
from kjvtools.schemas import CHAPTER_SCHEMA, FILEMAP_SCHEMA, check
from kjvtools.validator import Validator


@dataclass
class CanonReport:
    files: int = 0
    result: ValidationResult = field(default_factory=ValidationResult)
    chapter_counts: Counter = field(default_factory=Counter)   # OSIS -> valid chapter files

    @property
    def ok(self) -> bool:
        return self.result.ok


def find_chapter_files(canon_dir: Path) -> list[Path]:
    books_dir = canon_dir / BOOKS_DIR
    out = []
    for root, dirs, files in os.walk(books_dir):
        dirs.sort()
        for fn in sorted(files):
            if fn.endswith(".json"):
                out.append(Path(root) / fn)
    return out


def as_extracted(chapter: Chapter, source: str) -> ExtractedChapter:
    return ExtractedChapter(
        chapter_number=chapter.chapter,
        verses=[ExtractedVerse(v.v, v.plain, list(v.tokens)) for v in chapter.verses],
        footnotes=[ExtractedFootnote(fn.id, fn.mark, fn.verse, fn.text) for fn in chapter.footnotes],
        source_file=source,
    )


def check_chapter_file(path: Path, label: str, books: BookTable, validator: Validator,
                       config: CorpusConfig, result: ValidationResult) -> Chapter | None:
    """Validate one canonical chapter file. Returns the chapter if it passed."""
    before = len(result.errors)
    try:
        data = read_json(path, "chapter file")
        check(data, CHAPTER_SCHEMA, path=str(path))
        chapter = Chapter.from_json(data)
    except CorpusError as e:
        result.error(label, "parse", e.message)
        return None

    if chapter.schema != config.schema:
        result.error(label, "parse", "invalid or missing schema version", expected=config.schema, actual=chapter.schema)
    if not chapter.work or not chapter.osis or not chapter.abbr:
        result.error(label, "parse", "missing required metadata fields")
    if chapter.chapter < 1:
        result.error(label, "range", f"invalid chapter number: {chapter.chapter}", expected=">= 1", actual=chapter.chapter)

    book = books.by_osis(chapter.osis)
    if book is None:
        result.error(label, "filename", f"unknown OSIS code: {chapter.osis}", actual=chapter.osis)

    extracted = as_extracted(chapter, label)
    exempt = chapter.abbr in config.verse_continuity_exempt or (book is not None and config.is_exempt(book))
    if not exempt:
        result.extend(validator.validate_verses_continuous(label, extracted))
    for v in chapter.verses:
        if v.v < 1:
            result.error(label, "verses", "invalid or missing verse number", expected=">= 1", actual=v.v)
        if not v.plain:
            result.error(label, "verses", f"verse {v.v}: missing plain field")
    result.extend(validator.validate_footnotes(label, extracted))
    result.extend(validator.validate_roundtrip(label, chapter))

    return chapter if len(result.errors) == before else None


def verify_canon(canon_dir: Path | str, index_dir: Path | str, config: CorpusConfig | None = None) -> CanonReport:
    config = config or CorpusConfig()
    canon = Path(canon_dir)
    index = Path(index_dir)
    books = load_books(index)
    validator = Validator(books, config)
    report = CanonReport()
    r = report.result

    for path in find_chapter_files(canon):
        report.files += 1
        label = os.path.relpath(path, canon).replace(os.sep, "/")
        chapter = check_chapter_file(path, label, books, validator, config, r)
        if chapter is not None:
            report.chapter_counts[chapter.osis] += 1

    filemap_path = index / FILEMAP_FILE
    file_map = read_json(filemap_path, FILEMAP_FILE)
    check(file_map, FILEMAP_SCHEMA, path=str(filemap_path))
    for source, target in sorted(file_map.items()):
        if os.path.exists(target):
            continue
        if not os.path.isabs(target) and (canon / target).exists():
            continue
        r.error(FILEMAP_FILE, "index", f"file does not exist - {target}", actual=source)

    for book in books:
        r.extend(validator.validate_book_count(book, report.chapter_counts[book.osis]))

    return report


def print_canon_report(report: CanonReport):
    print(report.result.summary())
    print(rule())
    print(f"Total Files Validated: {report.files}")
    print(f"Total Errors Found: {len(report.result.errors)}")
    print(rule())


def main():
    parser = argparse.ArgumentParser(description="Verify raw sources or the canonical corpus")
    sub = parser.add_subparsers(dest="command", required=True)

    p_raw = sub.add_parser("raw", help="Verify raw/SHA256MANIFEST")
    p_raw.add_argument("--raw", default="raw", help="Raw source directory")

    p_canon = sub.add_parser("canon", help="Re-validate canonical chapter files")
    p_canon.add_argument("--canon", default="canon/kjv", help="Canonical output root")
    p_canon.add_argument("--index", default="canon/kjv/index", help="Directory with books.json and filemap.json")
    p_canon.add_argument("--config", default=None, help="Corpus config (default: config/corpus.yaml)")

    args = parser.parse_args()

    if args.command == "raw":
        try:
            report = verify_manifest(args.raw)
        except CorpusError as e:
            abort(str(e))
        print_report(report)
        if not report.ok:
            print(f"Manifest validation failed: {report.mismatches} mismatches, {report.read_errors} errors")
            sys.exit(1)
        print("Manifest validation completed successfully")
        return

    try:
        config = load_config(args.config)
        report = verify_canon(args.canon, args.index, config)
    except CorpusError as e:
        abort(str(e))

    if report.files == 0:
        print("No chapter files found")
    print_canon_report(report)
    if not report.ok:
        print("Validation completed with errors. Please review the output above for details")
        sys.exit(1)
    print("Validation completed successfully with no errors")


if __name__ == "__main__":
    main()
