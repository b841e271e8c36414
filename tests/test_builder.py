"""Tests for the chapter builder (kjvtools/builder.py)."""

import json

from kjvtools.builder import build_chapter, chapter_path, write_chapter
from kjvtools.metadata import CorpusConfig
from kjvtools.model import Chapter, DivineName, ExtractedChapter, ExtractedFootnote, ExtractedVerse, PlainText

from kjv_fixtures import book_table


def sample_extracted(footnotes=()):
    return ExtractedChapter(
        chapter_number=1,
        verses=[
            ExtractedVerse(1, "In the beginning God created", [PlainText("In the beginning "), DivineName("God"), PlainText(" created ")]),
            ExtractedVerse(2, "And the earth", [PlainText("And the earth ")]),
        ],
        footnotes=list(footnotes),
        source_file="GEN01.htm",
    )


class TestBuildChapter:
    def test_fields(self):
        book = book_table().by_abbr("GEN")
        ch = build_chapter(sample_extracted(), book, CorpusConfig(work="KJV"))
        assert (ch.schema, ch.work, ch.osis, ch.abbr, ch.chapter) == (1, "KJV", "Gen", "GEN", 1)
        assert [v.v for v in ch.verses] == [1, 2]
        assert ch.verses[0].tokens[1] == DivineName("God")

    def test_footnotes_omitted_when_empty(self):
        ch = build_chapter(sample_extracted(), book_table().by_abbr("GEN"))
        assert ch.footnotes == ()
        assert "footnotes" not in ch.to_json()

    def test_footnotes_carried(self):
        ch = build_chapter(
            sample_extracted([ExtractedFootnote("FN1", "*", 2, "Heb. void")]),
            book_table().by_abbr("GEN"),
        )
        assert ch.to_json()["footnotes"] == [{"id": "FN1", "mark": "*", "at": {"v": 2}, "text": "Heb. void"}]

    def test_token_json_shape(self):
        ch = build_chapter(sample_extracted(), book_table().by_abbr("GEN"))
        assert ch.to_json()["verses"][0]["tokens"] == [
            {"t": "In the beginning "}, {"nd": "God"}, {"t": " created "},
        ]


class TestWriteChapter:
    def test_path_padding(self, tmp_path):
        assert chapter_path(tmp_path, "Gen", 1) == tmp_path / "books" / "Gen" / "ch01.json"
        assert chapter_path(tmp_path, "Ps", 119).name == "ch119.json"

    def test_written_file_loads_back(self, tmp_path):
        ch = build_chapter(sample_extracted(), book_table().by_abbr("GEN"))
        path = write_chapter(tmp_path, ch)
        assert path.exists()
        data = json.loads(path.read_text(encoding="utf-8"))
        assert "footnotes" not in data
        assert Chapter.from_json(data) == ch

    def test_non_ascii_kept(self, tmp_path):
        ch = build_chapter(
            sample_extracted([ExtractedFootnote("FN1", "†", 1, "Heb. bārā")]),
            book_table().by_abbr("GEN"),
        )
        text = write_chapter(tmp_path, ch).read_text(encoding="utf-8")
        assert "†" in text and "bārā" in text
