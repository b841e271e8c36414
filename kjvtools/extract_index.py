#!/usr/bin/env python3
"""Generate the corpus index files from source metadata.

  books    vernacular-parameters XML + config/canon.yaml -> index/books.json
  aliases  raw chapter file listing + index/books.json  -> index/aliases.json

The XML supplies display names only:
  <scriptureBook ubsAbbreviation="GEN" parm="vernacularAbbreviatedName">Genesis</scriptureBook>
  <scriptureBook ubsAbbreviation="GEN" parm="vernacularFullName">The First Book of Moses...</scriptureBook>
Order, testament, OSIS code and chapter count come from canon.yaml.

Usage:
  python -m kjvtools.extract_index books --xml metadata/eng-kjv-VernacularParms.xml --index canon/kjv/index
  python -m kjvtools.extract_index aliases --raw raw --index canon/kjv/index
"""

from __future__ import annotations

import argparse
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path

import yaml

from kjvtools.console import abort, info, warn
from kjvtools.errors import CorpusError, FileError, ParseError
from kjvtools.metadata import (
    ALIASES_FILE,
    BOOKS_FILE,
    REPO_ROOT,
    BookTable,
    CorpusConfig,
    load_books,
    load_config,
    write_json,
)
from kjvtools.model import Book

DEFAULT_CANON_TABLE = REPO_ROOT / "config" / "canon.yaml"
TESTAMENTS = ("OT", "AP", "NT")

FULL_NAME_PARM = "vernacularFullName"
ABBREVIATED_NAME_PARM = "vernacularAbbreviatedName"


@dataclass(frozen=True)
class CanonEntry:
    abbr: str
    osis: str
    testament: str
    order: int
    chapters: int


# ─── Inputs ─────────────────────────────────────────────────────────────────

def load_canon_table(path: Path | str | None = None) -> list[CanonEntry]:
    p = Path(path) if path is not None else DEFAULT_CANON_TABLE
    try:
        with open(p, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise FileError("canon table not found", path=str(p)) from e
    except yaml.YAMLError as e:
        raise ParseError(f"malformed canon table: {e}", path=str(p)) from e

    if not isinstance(data, dict):
        raise ParseError("canon table must be a mapping of testament -> books", path=str(p))

    entries = []
    for testament in TESTAMENTS:
        for row in data.get(testament) or []:
            if (not isinstance(row, list) or len(row) != 3
                    or not isinstance(row[2], int) or row[2] < 1):
                raise ParseError(f"bad canon table row under {testament}: {row!r}", path=str(p))
            entries.append(CanonEntry(
                abbr=str(row[0]).upper(),
                osis=str(row[1]),
                testament=testament,
                order=len(entries) + 1,
                chapters=row[2],
            ))
    if not entries:
        raise ParseError("canon table lists no books", path=str(p))
    return entries


def read_vernacular_names(xml_path: Path | str) -> dict[str, dict[str, str]]:
    """ubsAbbreviation -> {parm: text}, whitespace-normalized."""
    p = Path(xml_path)
    try:
        tree = ET.parse(p)
    except FileNotFoundError as e:
        raise FileError("vernacular parameters XML not found", path=str(p)) from e
    except ET.ParseError as e:
        raise ParseError(f"malformed XML: {e}", path=str(p)) from e

    names: dict[str, dict[str, str]] = {}
    for el in tree.getroot().iter("scriptureBook"):
        abbr = (el.get("ubsAbbreviation") or "").strip().upper()
        parm = (el.get("parm") or "").strip()
        if not abbr or not parm:
            continue
        names.setdefault(abbr, {})[parm] = " ".join((el.text or "").split())
    return names


# ─── books.json ─────────────────────────────────────────────────────────────

def build_books(canon: list[CanonEntry], names: dict[str, dict[str, str]],
                config: CorpusConfig | None = None) -> tuple[BookTable, list[str]]:
    """Returns the table plus warnings for canon books missing from the XML (those are skipped)."""
    config = config or CorpusConfig()
    books = []
    warnings = []
    for entry in canon:
        parms = names.get(entry.abbr)
        short = (parms or {}).get(ABBREVIATED_NAME_PARM, "")
        if not short:
            warnings.append(f"no vernacular name for {entry.abbr} ({entry.osis}), skipped")
            continue
        full = parms.get(FULL_NAME_PARM, "")
        aliases = list(dict.fromkeys(a for a in (short, full) if a))
        books.append(Book(
            osis=entry.osis,
            abbr=entry.abbr,
            name=short,
            aliases=tuple(aliases),
            testament=entry.testament,
            order=entry.order,
            chapters=entry.chapters,
        ))
    return BookTable(books, work=config.work, schema=config.schema), warnings


# ─── aliases.json ───────────────────────────────────────────────────────────

def build_aliases(books: BookTable, raw_dir: Path | str, subdir: str = "html",
                  config: CorpusConfig | None = None) -> dict:
    """OSIS -> {source_abbr, chapters: {"<n>": "raw/<subdir>/<ABBR><NN>.htm"}} for files present on disk.

    Only chapters 1..book.chapters are looked for; introduction files (NN == 00)
    are not chapters and are left out.
    """
    config = config or CorpusConfig()
    src = Path(raw_dir) / subdir
    if not src.is_dir():
        raise FileError("raw source directory does not exist", path=str(src))
    available = {p.name for p in src.iterdir() if p.is_file()}

    out = {}
    for book in books:
        chapters = {}
        for n in range(1, book.chapters + 1):
            for ext in config.source_extensions:
                fn = f"{book.abbr}{n:02d}{ext}"
                if fn in available:
                    chapters[str(n)] = f"raw/{subdir}/{fn}"
                    break
        out[book.osis] = {"source_abbr": book.abbr, "chapters": chapters}
    return out


# ─── CLI ────────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Generate books.json / aliases.json")
    parser.add_argument("--config", default=None, help="Corpus config (default: config/corpus.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_books = sub.add_parser("books", help="Build books.json from the vernacular parameters XML")
    p_books.add_argument("--xml", required=True, help="eng-kjv-VernacularParms.xml")
    p_books.add_argument("--canon-table", default=None, help="Book order table (default: config/canon.yaml)")
    p_books.add_argument("--index", default="canon/kjv/index", help="Output index directory")

    p_aliases = sub.add_parser("aliases", help="Build aliases.json from the raw chapter files")
    p_aliases.add_argument("--raw", default="raw", help="Raw source directory")
    p_aliases.add_argument("--subdir", default="html", help="Subdirectory of --raw holding chapter files")
    p_aliases.add_argument("--index", default="canon/kjv/index", help="Index directory (reads books.json)")

    args = parser.parse_args()

    try:
        config = load_config(args.config)
        index = Path(args.index)
        if args.command == "books":
            table, warnings = build_books(load_canon_table(args.canon_table), read_vernacular_names(args.xml), config)
            for w in warnings:
                warn(w)
            write_json(index / BOOKS_FILE, table.to_json())
            info(f"Wrote {index / BOOKS_FILE} ({len(table)} books)")
        else:
            books = load_books(index)
            aliases = build_aliases(books, args.raw, args.subdir, config)
            write_json(index / ALIASES_FILE, aliases)
            total = sum(len(v["chapters"]) for v in aliases.values())
            info(f"Wrote {index / ALIASES_FILE} ({len(aliases)} books, {total} chapter files)")
    except CorpusError as e:
        abort(str(e))
    except OSError as e:
        abort(f"failed to write index: {e}")


if __name__ == "__main__":
    main()
