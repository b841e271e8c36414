#!/usr/bin/env python3
"""
Tests for index generation (kjvtools/extract_index.py)

Run: pytest tests/test_extract_index.py -v
"""

import pytest

from kjvtools.errors import FileError, ParseError
from kjvtools.extract_index import (
    CanonEntry,
    build_aliases,
    build_books,
    load_canon_table,
    read_vernacular_names,
)
from kjvtools.metadata import load_books, write_json

from kjv_fixtures import book_table, write_books


VERNACULAR_XML = """<?xml version="1.0" encoding="utf-8"?>
<vernacularParms>
  <scriptureBook ubsAbbreviation="GEN" parm="vernacularAbbreviatedName">Genesis</scriptureBook>
  <scriptureBook ubsAbbreviation="GEN" parm="vernacularFullName">The First Book of Moses,
      called   Genesis</scriptureBook>
  <scriptureBook ubsAbbreviation="JHN" parm="vernacularAbbreviatedName">John</scriptureBook>
  <scriptureBook ubsAbbreviation="JHN" parm="vernacularFullName">John</scriptureBook>
  <scriptureBook ubsAbbreviation="TOB" parm="vernacularFullName">Tobit</scriptureBook>
</vernacularParms>
"""

SMALL_CANON = [
    CanonEntry("GEN", "Gen", "OT", 1, 50),
    CanonEntry("TOB", "Tob", "AP", 2, 14),
    CanonEntry("JHN", "John", "NT", 3, 21),
]


# ═══════════════════════════════════════════════════════════════════════════
# canon.yaml
# ═══════════════════════════════════════════════════════════════════════════

class TestCanonTable:
    def test_default_table(self):
        entries = load_canon_table()
        assert len(entries) == 80
        by_abbr = {e.abbr: e for e in entries}
        assert (by_abbr["GEN"].order, by_abbr["GEN"].testament, by_abbr["GEN"].chapters) == (1, "OT", 50)
        assert (by_abbr["TOB"].order, by_abbr["TOB"].testament) == (40, "AP")
        assert (by_abbr["MAT"].order, by_abbr["MAT"].testament) == (54, "NT")
        assert by_abbr["ESG"].osis == "AddEsth"
        assert by_abbr["PSA"].chapters == 150
        assert [e.order for e in entries] == list(range(1, 81))

    def test_osis_codes_have_no_spaces(self):
        assert all(" " not in e.osis for e in load_canon_table())

    def test_bad_row(self, tmp_path):
        path = tmp_path / "canon.yaml"
        path.write_text("OT:\n  - [GEN, Gen]\n", encoding="utf-8")
        with pytest.raises(ParseError):
            load_canon_table(path)

    def test_zero_chapters(self, tmp_path):
        path = tmp_path / "canon.yaml"
        path.write_text("OT:\n  - [GEN, Gen, 0]\n", encoding="utf-8")
        with pytest.raises(ParseError):
            load_canon_table(path)

    def test_empty(self, tmp_path):
        path = tmp_path / "canon.yaml"
        path.write_text("NT: []\n", encoding="utf-8")
        with pytest.raises(ParseError):
            load_canon_table(path)

    def test_missing(self, tmp_path):
        with pytest.raises(FileError):
            load_canon_table(tmp_path / "nope.yaml")


# ═══════════════════════════════════════════════════════════════════════════
# books.json
# ═══════════════════════════════════════════════════════════════════════════

class TestBooks:
    @pytest.fixture
    def names(self, tmp_path):
        path = tmp_path / "parms.xml"
        path.write_text(VERNACULAR_XML, encoding="utf-8")
        return read_vernacular_names(path)

    def test_read_names(self, names):
        assert names["GEN"]["vernacularFullName"] == "The First Book of Moses, called Genesis"
        assert names["TOB"] == {"vernacularFullName": "Tobit"}

    def test_build(self, names):
        table, warnings = build_books(SMALL_CANON, names)
        assert [b.osis for b in table] == ["Gen", "John"]
        gen = table.by_abbr("GEN")
        assert gen.name == "Genesis"
        assert gen.aliases == ("Genesis", "The First Book of Moses, called Genesis")
        assert (gen.testament, gen.order, gen.chapters) == ("OT", 1, 50)
        assert table.by_abbr("JHN").aliases == ("John",)
        assert table.work == "KJV"

    def test_missing_name_skipped_with_warning(self, names):
        _, warnings = build_books(SMALL_CANON, names)
        assert len(warnings) == 1
        assert "TOB" in warnings[0]

    def test_written_table_loads(self, names, tmp_path):
        table, _ = build_books(SMALL_CANON, names)
        write_json(tmp_path / "index" / "books.json", table.to_json())
        loaded = load_books(tmp_path / "index")
        assert loaded.lookup("the first book of moses, called genesis").osis == "Gen"

    def test_malformed_xml(self, tmp_path):
        path = tmp_path / "parms.xml"
        path.write_text("<vernacularParms><scriptureBook>", encoding="utf-8")
        with pytest.raises(ParseError):
            read_vernacular_names(path)

    def test_missing_xml(self, tmp_path):
        with pytest.raises(FileError):
            read_vernacular_names(tmp_path / "nope.xml")


# ═══════════════════════════════════════════════════════════════════════════
# aliases.json
# ═══════════════════════════════════════════════════════════════════════════

class TestAliases:
    def test_lists_present_chapters(self, tmp_path):
        html = tmp_path / "raw" / "html"
        html.mkdir(parents=True)
        for name in ("GEN00.htm", "GEN01.htm", "GEN02.htm", "GEN03.htm", "GEN01.txt", "ESG01.htm"):
            (html / name).write_text("x", encoding="utf-8")

        aliases = build_aliases(book_table(), tmp_path / "raw")
        # Genesis has 2 declared chapters: GEN00 (intro) and GEN03 are left out
        assert aliases["Gen"] == {
            "source_abbr": "GEN",
            "chapters": {"1": "raw/html/GEN01.htm", "2": "raw/html/GEN02.htm"},
        }
        assert aliases["AddEsth"]["chapters"] == {"1": "raw/html/ESG01.htm"}
        assert aliases["John"]["chapters"] == {}

    def test_missing_source_dir(self, tmp_path):
        write_books(tmp_path / "index")
        with pytest.raises(FileError):
            build_aliases(load_books(tmp_path / "index"), tmp_path / "raw")
