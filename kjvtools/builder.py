"""Build canonical Chapter records and write them under books/<OSIS>/chNN.json."""

from __future__ import annotations

from pathlib import Path

from kjvtools.errors import FileError
from kjvtools.metadata import CorpusConfig, write_json
from kjvtools.model import Book, Chapter, ExtractedChapter, Footnote, Verse

BOOKS_DIR = "books"


def build_chapter(extracted: ExtractedChapter, book: Book, config: CorpusConfig | None = None) -> Chapter:
    config = config or CorpusConfig()
    verses = tuple(Verse(v=ev.number, plain=ev.plain, tokens=tuple(ev.tokens)) for ev in extracted.verses)
    footnotes = tuple(
        Footnote(id=fn.id, mark=fn.mark, verse=fn.verse_num, text=fn.text)
        for fn in extracted.footnotes
    )
    return Chapter(
        work=config.work,
        osis=book.osis,
        abbr=book.abbr,
        chapter=extracted.chapter_number,
        verses=verses,
        footnotes=footnotes,
        schema=config.schema,
    )


def chapter_path(output_dir: Path | str, osis: str, chapter: int) -> Path:
    """<output>/books/<OSIS>/chNN.json (two-digit zero padding, wider when needed)."""
    return Path(output_dir) / BOOKS_DIR / osis / f"ch{chapter:02d}.json"


def write_chapter(output_dir: Path | str, chapter: Chapter) -> Path:
    path = chapter_path(output_dir, chapter.osis, chapter.chapter)
    try:
        write_json(path, chapter.to_json())
    except OSError as e:
        raise FileError(f"failed to write chapter: {e}", path=str(path)) from e
    return path
