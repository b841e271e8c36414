#!/usr/bin/env python3
"""Read-side access to a canonical corpus.

A corpus root holds:
  index/books.json            book metadata
  books/<OSIS>/chNN.json      one canonical chapter per file

`open_corpus(root)` loads the book table once; `Corpus.resolve(ref)` answers
(book, chapter, optional verse range) queries, loading chapters on demand
through a shared ChapterCache.

Usage:
  python -m kjvtools.corpus --root canon/kjv "John 3:16"
  python -m kjvtools.corpus --root canon/kjv "Luke 1:1-4" --footnotes
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from kjvtools.builder import chapter_path
from kjvtools.cache import ChapterCache
from kjvtools.console import abort, rule
from kjvtools.errors import CorpusError, FileError, ParseError, RangeError
from kjvtools.metadata import BookTable, load_books, read_json
from kjvtools.model import Chapter, Footnote, Reference, Resolved, Verse, VerseRange
from kjvtools.schemas import CHAPTER_SCHEMA, check

INDEX_DIR = "index"


def select_verses(chapter: Chapter, verses: Optional[VerseRange]) -> tuple[Verse, ...]:
    """All verses; the one numbered `start`; or those within [start, end], in stored order.

    Numbers in the range that are not stored are simply absent from the result.
    """
    if verses is None:
        return chapter.verses
    if verses.end is None:
        return tuple(v for v in chapter.verses if v.v == verses.start)
    return tuple(v for v in chapter.verses if verses.start <= v.v <= verses.end)


def select_footnotes(chapter: Chapter, verses) -> tuple[Footnote, ...]:
    wanted = {v.v for v in verses}
    return tuple(fn for fn in chapter.footnotes if fn.verse in wanted)


class Corpus:
    def __init__(self, root: Path | str):
        self.root = Path(root)
        if not self.root.is_dir():
            raise FileError("corpus root does not exist", path=str(self.root))
        self.books: BookTable = load_books(self.root / INDEX_DIR)
        self._cache = ChapterCache()

    def resolve(self, ref: Reference | str) -> Resolved:
        """Resolve a reference. Raises RangeError, FileError or ParseError; never returns partial results."""
        if isinstance(ref, str):
            # A blank string is a reference with no book, like Reference().
            ref = Reference.parse(ref) if ref.strip() else Reference()

        if not ref.book:
            raise RangeError("unknown book: no book specified in reference")
        book = self.books.lookup(ref.book)
        if book is None:
            raise RangeError(f"unknown book: {ref.book}")

        n = ref.chapter if ref.chapter is not None else 1
        if n < 1 or n > book.chapters:
            raise RangeError(
                f"chapter {n} out of range for {book.name} (1-{book.chapters})",
                expected=f"1-{book.chapters}",
            )

        chapter = self._cache.get_or_load((book.osis, n), lambda: self._load_chapter(book.osis, n))
        verses = select_verses(chapter, ref.verses)
        return Resolved(
            ref=ref,
            book_name=book.name,
            chapter=chapter,
            verses=verses,
            footnotes=select_footnotes(chapter, verses),
        )

    def _load_chapter(self, osis: str, n: int) -> Chapter:
        path = chapter_path(self.root, osis, n)
        data = read_json(path, "chapter file")
        check(data, CHAPTER_SCHEMA, path=str(path))
        try:
            return Chapter.from_json(data)
        except ParseError as e:
            e.path = str(path)
            raise

    @property
    def cached_chapters(self) -> int:
        return len(self._cache)


def open_corpus(root: Path | str) -> Corpus:
    return Corpus(root)


def print_resolved(res: Resolved, footnotes: bool = False):
    ref = res.ref
    print(f"{res.book_name} {res.chapter.chapter}" + (f" ({ref})" if ref.verses else ""))
    print(rule())
    for v in res.verses:
        print(f"{v.v:>3}  {v.plain}")
    if footnotes and res.footnotes:
        print(rule())
        for fn in res.footnotes:
            print(f"{fn.mark} v{fn.verse}: {fn.text}")


def main():
    parser = argparse.ArgumentParser(description="Look up a reference in a canonical corpus")
    parser.add_argument("reference", help='e.g. "John 3:16", "Luke 1:1-4", "Matt 1"')
    parser.add_argument("--root", default="canon/kjv", help="Corpus root (contains index/ and books/)")
    parser.add_argument("--footnotes", action="store_true", help="Also print footnotes for the selected verses")
    args = parser.parse_args()

    try:
        corpus = open_corpus(args.root)
        res = corpus.resolve(args.reference)
    except CorpusError as e:
        abort(str(e))
    print_resolved(res, footnotes=args.footnotes)


if __name__ == "__main__":
    main()
