#!/usr/bin/env python3
"""Ingest raw HTML chapter files into the canonical JSON corpus.

For every chapter listed in index/aliases.json for a book:
  1. locate the source file ("raw/..." path, resolved under --raw)
  2. tokenize it (chapter label, verses, tokens, footnotes)
  3. run the per-file structural checks
  4. build the canonical Chapter and run the round-trip check
  5. write books/<OSIS>/chNN.json under --output

A unit that fails any step is recorded and skipped; the run continues.
After the book, the number of chapters written is checked against the
declared chapter count. The run exits 1 if any error was recorded.

Successfully written chapters are recorded in index/filemap.json
(source path -> output path relative to --output).

Usage:
  python -m kjvtools.ingest --book GEN
  python -m kjvtools.ingest --book all --jobs 4 --manifest
  python -m kjvtools.ingest --book JHN --raw raw --index canon/kjv/index --output canon/kjv --verbose
"""

from __future__ import annotations

import argparse
import os
import posixpath
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path

from kjvtools.builder import build_chapter, write_chapter
from kjvtools.console import abort, info, rule
from kjvtools.errors import ContentError, CorpusError, FileError, RangeError
from kjvtools.manifest import build_manifest
from kjvtools.metadata import FILEMAP_FILE, CorpusConfig, MetadataLoader, load_config, read_json, write_json
from kjvtools.model import Book, ProcessResult, ValidationError
from kjvtools.schemas import FILEMAP_SCHEMA, check
from kjvtools.tokenizer import parse_chapter
from kjvtools.validator import Validator

RAW_PREFIX = "raw"

STAT_FIELDS = {
    "verses": "continuity_errors",
    "footnotes": "footnote_issues",
    "roundtrip": "roundtrip_failures",
}


def unit_filename(source: str) -> str:
    """'raw/html/GEN01.htm' -> 'GEN01.htm'"""
    return posixpath.basename(source.replace("\\", "/"))


class Processor:
    """Parses, validates and writes the chapters of one or more books."""

    def __init__(
        self,
        index_dir: Path | str,
        raw_dir: Path | str,
        output_dir: Path | str,
        config: CorpusConfig | None = None,
        verbose: bool = False,
    ):
        self.config = config or CorpusConfig()
        self.metadata = MetadataLoader(index_dir, self.config)
        self.raw_dir = Path(raw_dir)
        if not self.raw_dir.is_dir():
            raise FileError("raw directory does not exist or is not accessible", path=str(self.raw_dir))
        self.output_dir = Path(output_dir)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileError(f"failed to create output directory: {e}", path=str(self.output_dir)) from e
        self.validator = Validator(self.metadata.books, self.config)
        self.verbose = verbose

        # source path -> output path, shared by all books of a run
        self.file_map: dict[str, str] = {}
        self._file_map_lock = threading.Lock()

    def all_abbreviations(self) -> list[str]:
        return self.metadata.books.abbreviations()

    # ─── Units ──────────────────────────────────────────────────────────────

    def construct_raw_file_path(self, metadata_path: str) -> Path:
        """'raw/html/GEN35.htm' -> <raw_dir>/html/GEN35.htm, which must exist."""
        parts = [p for p in metadata_path.replace("\\", "/").split("/") if p]
        if len(parts) < 2 or parts[0] != RAW_PREFIX:
            raise FileError(f"invalid metadata path format (expected 'raw/...'): {metadata_path}")
        full = self.raw_dir.joinpath(*parts[1:])
        if not full.is_file():
            raise FileError("file not found", path=str(full))
        return full

    def _skip(self, result: ProcessResult, errors: list[ValidationError]):
        result.errors.extend(errors)
        result.files_skipped += 1
        for e in errors:
            attr = STAT_FIELDS.get(e.type)
            if attr:
                setattr(result.stats, attr, getattr(result.stats, attr) + 1)
        if self.verbose:
            print(f"  {errors[0].file}: {len(errors)} error(s)")
            for e in errors:
                print(f"    - [{e.type}] {e.message}")

    def _process_unit(self, book: Book, source: str, result: ProcessResult) -> bool:
        """Process one chapter file. Returns True if the chapter was written."""
        filename = unit_filename(source)

        try:
            path = self.construct_raw_file_path(source)
            content = path.read_bytes()
        except FileError as e:
            self._skip(result, [ValidationError(filename, "parse", f"failed to locate file: {e}")])
            return False
        except OSError as e:
            self._skip(result, [ValidationError(filename, "parse", f"failed to read file: {e}")])
            return False

        try:
            extracted = parse_chapter(content, filename)
        except CorpusError as e:
            self._skip(result, [ValidationError(filename, "parse", f"failed to parse HTML: {e.message}")])
            return False

        errors = self.validator.validate_chapter_file(filename, extracted)
        if errors:
            self._skip(result, errors)
            return False

        chapter = build_chapter(extracted, book, self.config)
        errors = self.validator.validate_roundtrip(filename, chapter)
        if errors:
            self._skip(result, errors)
            return False

        try:
            out = write_chapter(self.output_dir, chapter)
        except FileError as e:
            self._skip(result, [ValidationError(filename, "parse", f"failed to write output: {e}")])
            return False

        result.file_map[source] = os.path.relpath(out, self.output_dir).replace(os.sep, "/")
        return True

    # ─── Books ──────────────────────────────────────────────────────────────

    def process_book(self, abbr: str) -> ProcessResult:
        """Process every chapter of one book. Raises RangeError/ContentError for book-level problems."""
        result = ProcessResult(book=abbr.upper(), start_time=datetime.now())

        book = self.metadata.book_by_abbr(abbr)
        if book is None:
            raise RangeError(f"unknown book abbreviation: {abbr}")
        result.osis = book.osis
        result.book = book.abbr

        chapters = self.metadata.chapters_for_book(book.osis)
        if chapters is None:
            raise ContentError(f"no chapters found for book: {book.abbr}")

        if self.verbose:
            print(f"Processing book: {book.abbr} ({book.osis})")

        result.errors.extend(self.validator.validate_book_index(book, chapters))

        written = 0
        for _, source in chapters.sorted_items():
            result.files_processed += 1
            try:
                if self._process_unit(book, source, result):
                    written += 1
            except Exception as e:
                # Any failure is charged to the unit; the rest of the book still runs.
                self._skip(result, [ValidationError(unit_filename(source), "parse", f"unexpected error: {type(e).__name__}: {e}")])

        result.errors.extend(self.validator.validate_book_count(book, written))
        result.end_time = datetime.now()

        self.merge_file_map(result.file_map)
        return result

    def _process_book_recorded(self, abbr: str) -> ProcessResult:
        try:
            return self.process_book(abbr)
        except Exception as e:
            message = str(e) if isinstance(e, CorpusError) else f"unexpected error: {type(e).__name__}: {e}"
            now = datetime.now()
            return ProcessResult(
                book=abbr,
                errors=[ValidationError(abbr, "index", message)],
                start_time=now,
                end_time=now,
            )

    def process_books(self, abbrs, jobs: int = 1) -> list[ProcessResult]:
        """Process several books, `jobs` at a time. Results come back in input order.

        A book-level failure is recorded as an "index" error on that book's
        result; the other books still run.
        """
        abbrs = list(abbrs)
        results: dict[int, ProcessResult] = {}
        with ThreadPoolExecutor(max_workers=max(1, jobs)) as pool:
            futures = {pool.submit(self._process_book_recorded, a): i for i, a in enumerate(abbrs)}
            for fut in as_completed(futures):
                results[futures[fut]] = fut.result()
        return [results[i] for i in range(len(abbrs))]

    # ─── File map ───────────────────────────────────────────────────────────

    def merge_file_map(self, entries: dict[str, str]):
        with self._file_map_lock:
            self.file_map.update(entries)

    def file_map_path(self) -> Path:
        return self.output_dir / "index" / FILEMAP_FILE

    def write_file_map(self) -> Path:
        """Write index/filemap.json, keeping entries from earlier runs for other books."""
        path = self.file_map_path()
        merged: dict[str, str] = {}
        if path.exists():
            existing = read_json(path, FILEMAP_FILE)
            check(existing, FILEMAP_SCHEMA, path=str(path))
            merged.update(existing)
        with self._file_map_lock:
            merged.update(self.file_map)
        try:
            write_json(path, dict(sorted(merged.items())))
        except OSError as e:
            raise FileError(f"failed to write filemap: {e}", path=str(path)) from e
        return path


# ─── Reporting ──────────────────────────────────────────────────────────────

def print_result(result: ProcessResult):
    print()
    print(rule())
    print(f"Book: {result.book} ({result.osis})")
    if result.start_time and result.end_time:
        print(f"Duration: {(result.end_time - result.start_time).total_seconds():.2f}s")
    print(f"Files Processed: {result.files_processed}")
    print(f"Files Skipped: {result.files_skipped}")

    stats = result.stats
    if stats.continuity_errors or stats.footnote_issues or stats.roundtrip_failures:
        print("\nVerification Issues:")
        if stats.continuity_errors:
            print(f"  Verse continuity errors: {stats.continuity_errors}")
        if stats.footnote_issues:
            print(f"  Footnote issues: {stats.footnote_issues}")
        if stats.roundtrip_failures:
            print(f"  Round-trip failures: {stats.roundtrip_failures}")

    if result.errors:
        print(f"Errors: {len(result.errors)}")
        for i, e in enumerate(result.errors, 1):
            print(f"  {i}. [{e.type}] {e.message}")
            if e.file:
                print(f"     File: {e.file}")
            if e.expected is not None:
                print(f"     Expected: {e.expected}")
            if e.actual is not None:
                print(f"     Actual: {e.actual}")
    else:
        print("Status: SUCCESS")

    if result.file_map:
        print(f"Output Files: {len(result.file_map)}")
        keys = sorted(result.file_map)
        for k in keys[:5]:
            print(f"  {k} -> {result.file_map[k]}")
        if len(keys) > 5:
            print(f"  ... and {len(keys) - 5} more")
    print(rule())


def main():
    parser = argparse.ArgumentParser(description="Ingest raw KJV HTML chapters into canonical JSON")
    parser.add_argument("--book", required=True, help="Source abbreviation (e.g. GEN) or 'all'")
    parser.add_argument("--raw", default="raw", help="Raw source directory")
    parser.add_argument("--index", default="canon/kjv/index", help="Directory with books.json and aliases.json")
    parser.add_argument("--output", default="canon/kjv", help="Canonical output root")
    parser.add_argument("--config", default=None, help="Corpus config (default: config/corpus.yaml)")
    parser.add_argument("--jobs", type=int, default=1, help="Books processed in parallel")
    parser.add_argument("--manifest", action="store_true", help="Regenerate raw/SHA256MANIFEST afterwards")
    parser.add_argument("--verbose", action="store_true", help="Per-file progress and errors")
    args = parser.parse_args()

    if args.jobs < 1:
        abort("--jobs must be >= 1")

    try:
        config = load_config(args.config)
        proc = Processor(args.index, args.raw, args.output, config, verbose=args.verbose)
    except CorpusError as e:
        abort(str(e))

    if args.book.lower() == "all":
        abbrs = proc.all_abbreviations()
    else:
        if proc.metadata.book_by_abbr(args.book) is None:
            abort(f"unknown book abbreviation: {args.book}")
        abbrs = [args.book]

    results = proc.process_books(abbrs, jobs=args.jobs)
    for r in results:
        print_result(r)

    try:
        path = proc.write_file_map()
        info(f"File map: {path}")
        if args.manifest:
            info(f"Manifest: {build_manifest(args.raw, config)}")
    except CorpusError as e:
        abort(str(e))

    total_errors = sum(len(r.errors) for r in results)
    if len(results) > 1:
        print()
        print(rule())
        print(f"Books: {len(results)}")
        print(f"Files Processed: {sum(r.files_processed for r in results)}")
        print(f"Files Written: {sum(r.files_written for r in results)}")
        print(f"Total Errors: {total_errors}")
        print(rule())

    if total_errors:
        print(f"\nIngestion completed with {total_errors} error(s)")
        sys.exit(1)
    print("\nIngestion completed successfully")


if __name__ == "__main__":
    main()
