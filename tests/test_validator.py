#!/usr/bin/env python3
"""
Tests for the structural validator (kjvtools/validator.py)

Run: pytest tests/test_validator.py -v
"""

from types import MappingProxyType

import pytest

from kjvtools.errors import ParseError
from kjvtools.metadata import BookChapters, CorpusConfig
from kjvtools.model import (
    Chapter,
    DivineName,
    ExtractedChapter,
    ExtractedFootnote,
    ExtractedVerse,
    PlainText,
    Verse,
)
from kjvtools.validator import Validator, parse_filename

from kjv_fixtures import book_table


def extracted(chapter, numbers, footnotes=(), source="GEN01.htm"):
    return ExtractedChapter(
        chapter_number=chapter,
        verses=[ExtractedVerse(n, f"text {n}", [PlainText(f"text {n}")]) for n in numbers],
        footnotes=[ExtractedFootnote(*fn) for fn in footnotes],
        source_file=source,
    )


@pytest.fixture
def validator():
    return Validator(book_table(), CorpusConfig())


def types_of(errors):
    return [e.type for e in errors]


# ═══════════════════════════════════════════════════════════════════════════
# Filename parsing
# ═══════════════════════════════════════════════════════════════════════════

class TestParseFilename:
    @pytest.mark.parametrize("filename,expected", [
        ("PRO01.htm", ("PRO", 1)),
        ("MAT28.htm", ("MAT", 28)),
        ("1MA16.htm", ("1MA", 16)),
        ("S3Y01.htm", ("S3Y", 1)),
        ("psa119.htm", ("PSA", 119)),
        ("GEN01.html", ("GEN", 1)),
        ("raw/html/JHN03.htm", ("JHN", 3)),
    ])
    def test_valid(self, filename, expected):
        assert parse_filename(filename) == expected

    @pytest.mark.parametrize("filename,fragment", [
        ("GE1.htm", "too short"),
        ("GENESIS.htm", "no chapter number"),
        ("0101.htm", "only digits"),
    ])
    def test_invalid(self, filename, fragment):
        with pytest.raises(ParseError) as exc:
            parse_filename(filename)
        assert fragment in exc.value.message


# ═══════════════════════════════════════════════════════════════════════════
# Per-file checks
# ═══════════════════════════════════════════════════════════════════════════

class TestChapterFile:
    def test_clean_chapter(self, validator):
        assert validator.validate_chapter_file("GEN01.htm", extracted(1, [1, 2, 3])) == []

    def test_bad_filename_short_circuits(self, validator):
        errors = validator.validate_chapter_file("GENESIS.htm", extracted(99, [5]))
        assert types_of(errors) == ["filename"]

    def test_unknown_abbreviation_short_circuits(self, validator):
        errors = validator.validate_chapter_file("XYZ01.htm", extracted(2, [3]))
        assert types_of(errors) == ["filename"]
        assert errors[0].actual == "XYZ"

    def test_label_mismatch(self, validator):
        errors = validator.validate_chapter_file("GEN01.htm", extracted(2, [1, 2]))
        assert types_of(errors) == ["label"]
        assert (errors[0].expected, errors[0].actual) == (1, 2)

    def test_range(self, validator):
        errors = validator.validate_chapter_file("TST11.htm", extracted(11, [1]))
        assert types_of(errors) == ["range"]
        assert errors[0].expected == "1-10"
        assert errors[0].actual == 11

    def test_chapter_zero_out_of_range(self, validator):
        errors = validator.validate_chapter_file("GEN00.htm", extracted(0, [1]))
        assert "range" in types_of(errors)

    def test_errors_accumulate(self, validator):
        errors = validator.validate_chapter_file(
            "TST12.htm",
            extracted(4, [2, 3], footnotes=[("FN1", "*", 9, "t")]),
        )
        assert sorted(types_of(errors)) == ["footnotes", "label", "range", "verses"]


class TestVerseContinuity:
    def test_each_gap_reported(self, validator):
        errors = validator.validate_verses_continuous("GEN01.htm", extracted(1, [1, 2, 4, 5, 7]))
        assert [(e.expected, e.actual) for e in errors] == [(3, 4), (6, 7)]
        assert all(e.type == "verses" for e in errors)

    def test_must_start_at_one(self, validator):
        errors = validator.validate_verses_continuous("GEN01.htm", extracted(1, [2, 3]))
        assert len(errors) == 1
        assert (errors[0].expected, errors[0].actual) == (1, 2)

    def test_repeated_verse_reported_once(self, validator):
        # 2 -> 2 is the break; 2 -> 3 follows its predecessor
        errors = validator.validate_verses_continuous("GEN01.htm", extracted(1, [1, 2, 2, 3]))
        assert len(errors) == 1
        assert (errors[0].expected, errors[0].actual) == (3, 2)

    def test_trailing_duplicate_reported(self, validator):
        errors = validator.validate_verses_continuous("GEN01.htm", extracted(1, [1, 2, 3, 2]))
        assert [(e.expected, e.actual) for e in errors] == [(4, 2)]

    def test_empty(self, validator):
        errors = validator.validate_verses_continuous("GEN01.htm", extracted(1, []))
        assert errors[0].message == "no verses found in chapter"

    def test_exempt_book_skips_continuity(self, validator):
        errors = validator.validate_chapter_file("ESG01.htm", extracted(1, [10, 11, 13]))
        assert errors == []

    def test_exempt_book_still_checks_footnotes(self, validator):
        errors = validator.validate_chapter_file(
            "ESG01.htm", extracted(1, [10, 11], footnotes=[("FN1", "*", 3, "t")]),
        )
        assert types_of(errors) == ["footnotes"]

    def test_exemption_comes_from_config(self):
        v = Validator(book_table(), CorpusConfig(verse_continuity_exempt=frozenset()))
        errors = v.validate_chapter_file("ESG01.htm", extracted(1, [10, 11]))
        assert types_of(errors) == ["verses"]


class TestFootnoteChecks:
    def test_valid(self, validator):
        ec = extracted(1, [1, 2], footnotes=[("FN1", "*", 2, "Heb. text")])
        assert validator.validate_footnotes("GEN01.htm", ec) == []

    def test_missing_verse(self, validator):
        ec = extracted(1, [1, 2], footnotes=[("FN1", "*", 5, "t")])
        errors = validator.validate_footnotes("GEN01.htm", ec)
        assert len(errors) == 1
        assert "FN1" in errors[0].message
        assert errors[0].actual == 5

    def test_verse_below_one(self, validator):
        ec = extracted(1, [1], footnotes=[("FN1", "*", 0, "t")])
        errors = validator.validate_footnotes("GEN01.htm", ec)
        assert len(errors) == 1
        assert errors[0].expected == ">= 1"

    def test_empty_fields_reported_individually(self, validator):
        ec = extracted(1, [1], footnotes=[("", "", 1, "")])
        errors = validator.validate_footnotes("GEN01.htm", ec)
        assert len(errors) == 3
        assert any("empty ID" in e.message for e in errors)

    def test_duplicate_ids(self, validator):
        ec = extracted(1, [1, 2], footnotes=[("FN1", "*", 1, "a"), ("FN1", "†", 2, "b")])
        errors = validator.validate_footnotes("GEN01.htm", ec)
        assert len(errors) == 1
        assert "duplicate" in errors[0].message


# ═══════════════════════════════════════════════════════════════════════════
# Round-trip
# ═══════════════════════════════════════════════════════════════════════════

def chapter_with(*verses):
    return Chapter(work="KJV", osis="Gen", abbr="GEN", chapter=1, verses=tuple(verses))


class TestRoundTrip:
    def test_matching(self, validator):
        ch = chapter_with(Verse(1, "the LORD God", (PlainText("the "), DivineName("LORD"), PlainText(" God "))))
        assert validator.validate_roundtrip("GEN01.htm", ch) == []

    def test_mismatch(self, validator):
        ch = chapter_with(
            Verse(1, "fine", (PlainText("fine"),)),
            Verse(2, "and  the", (PlainText("and  the "),)),
        )
        errors = validator.validate_roundtrip("GEN01.htm", ch)
        assert types_of(errors) == ["roundtrip"]
        assert errors[0].expected == "and  the"
        assert errors[0].actual == "and the"
        assert "verse 2" in errors[0].message


# ═══════════════════════════════════════════════════════════════════════════
# Per-book checks
# ═══════════════════════════════════════════════════════════════════════════

class TestBookChecks:
    def test_index_keys(self, validator):
        book = book_table().by_abbr("GEN")
        chapters = BookChapters("GEN", MappingProxyType({
            "1": "raw/html/GEN01.htm",
            "3": "raw/html/GEN03.htm",
            "0": "raw/html/GEN00.htm",
            "intro": "raw/html/GENINTRO.htm",
        }))
        errors = validator.validate_book_index(book, chapters)
        assert sorted(types_of(errors)) == ["index", "range", "range"]
        assert all(e.expected == "1-2" for e in errors if e.type == "range")

    def test_non_ascii_digit_key(self, validator):
        book = book_table().by_abbr("GEN")
        chapters = BookChapters("GEN", MappingProxyType({"1": "raw/html/GEN01.htm", "\u00b2": "raw/html/GEN2.htm"}))
        errors = validator.validate_book_index(book, chapters)
        assert types_of(errors) == ["index"]
        assert errors[0].actual == "\u00b2"

    def test_count_matches(self, validator):
        assert validator.validate_book_count(book_table().by_abbr("GEN"), 2) == []

    def test_count_mismatch(self, validator):
        errors = validator.validate_book_count(book_table().by_abbr("GEN"), 1)
        assert types_of(errors) == ["chapters"]
        assert (errors[0].expected, errors[0].actual) == (2, 1)

    def test_count_exempt(self, validator):
        assert validator.validate_book_count(book_table().by_abbr("ESG"), 1) == []
