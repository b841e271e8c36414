#!/usr/bin/env python3
"""Segment a KJV chapter document into verses, tokens and footnotes.

Input is one eBible-style HTML chapter file. Output is an ExtractedChapter:
  - the chapter number (from <div class='chapterlabel'>)
  - one ExtractedVerse per <span class="verse"> marker, in document order,
    each with a trimmed `plain` reconstruction and a typed token sequence
  - the footnote records from the <div class="footnote"> block

Verse numbers are taken as found. Gaps, duplicates and ordering problems are
left for the validator to report.

Usage:
  python -m kjvtools.tokenizer raw/html/JHN03.htm [--json]
"""

from __future__ import annotations

import argparse
import json
import re
import sys
from pathlib import Path
from typing import Optional

from kjvtools.console import abort, rule
from kjvtools.errors import ContentError, CorpusError, ParseError
from kjvtools.markup import (
    Element,
    NodeVisitor,
    Text,
    element_matcher,
    find_all,
    find_first,
    iter_elements,
    parse_html,
    text_content,
)
from kjvtools.model import (
    AddedWords,
    DivineName,
    ExtractedChapter,
    ExtractedFootnote,
    ExtractedVerse,
    PlainText,
    Token,
    token_to_json,
)


# ─── Source dialect ─────────────────────────────────────────────────────────

CHAPTER_LABEL_CLASS = "chapterlabel"
VERSE_CLASS = "verse"
ADDED_WORDS_CLASS = "add"
DIVINE_NAME_CLASS = "nd"
NOTEMARK_CLASS = "notemark"
FOOTNOTE_BLOCK_CLASS = "footnote"
FOOTNOTE_PARA_CLASS = "f"
BACKREF_CLASS = "notebackref"
FOOTNOTE_TEXT_CLASS = "ft"

VERSE_NUM_RE = re.compile(r"^\s*([0-9]+)")

# ASCII digits only: str.isdigit() also accepts superscripts and other scripts
CHAPTER_LABEL_RE = re.compile(r"[0-9]+")

# Back-reference target: "#V" + verse number
BACKREF_RE = re.compile(r"^#V([0-9]+)$")

WHITESPACE_RE = re.compile(r"\s+")

# Named entities plus numeric ones. Anything else passes through unchanged.
ENTITY_RE = re.compile(r"&(?:(nbsp|amp|lt|gt|quot|apos)|#([0-9]+));")

NAMED_ENTITIES = {
    "nbsp": " ",
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "apos": "'",
}


def is_verse_marker(el: Element) -> bool:
    return el.tag == "span" and el.has_class(VERSE_CLASS)


# ─── Text normalization ─────────────────────────────────────────────────────

def _entity(m: re.Match) -> str:
    if m.group(1):
        return NAMED_ENTITIES[m.group(1)]
    n = int(m.group(2))
    if n == 160:
        return " "
    if n < 128:
        return chr(n)
    return m.group(0)


def decode_entities(s: str) -> str:
    """Decode &#160; &nbsp; &amp; &lt; &gt; &quot; &apos; and ASCII numeric entities.

    Single pass: "&amp;lt;" becomes "&lt;", not "<".
    """
    return ENTITY_RE.sub(_entity, s)


def clean_text(s: str) -> str:
    """Trim mode: collapse whitespace runs, trim, then decode entities."""
    return decode_entities(WHITESPACE_RE.sub(" ", s).strip())


def clean_text_keep_edges(s: str) -> str:
    """Preserve mode: like clean_text but boundary spaces survive.

    Adjacent tokens are concatenated as-is, so the space between
    "the " and "LORD" has to stay on one of them.
    """
    return decode_entities(WHITESPACE_RE.sub(" ", s))


def flatten_tokens(tokens) -> str:
    """Concatenate token texts and normalize the result the way `plain` is normalized."""
    joined = "".join(t.text for t in tokens)
    return WHITESPACE_RE.sub(" ", joined).strip()


# ─── Chapter label ──────────────────────────────────────────────────────────

def extract_chapter_number(root: Element) -> int:
    for el in iter_elements(root):
        if el.tag != "div" or not el.has_class(CHAPTER_LABEL_CLASS):
            continue
        text = text_content(el).strip()
        if CHAPTER_LABEL_RE.fullmatch(text):
            return int(text)
    raise ParseError("could not find <div class='chapterlabel'>")


# ─── Verses ─────────────────────────────────────────────────────────────────

class VerseCollector(NodeVisitor):
    """Walks the content following one verse marker.

    Two accumulations run side by side over the same nodes:
      plain   raw text, normalized in trim mode once the walk is done
      tokens  typed tokens, each normalized in preserve mode

    The walk covers the marker's following siblings, descending into
    ordinary elements, and ends at the next verse marker (at any depth)
    or when the marker's parent runs out of children.
    """

    def __init__(self):
        self.plain_parts: list[str] = []
        self.tokens: list[Token] = []
        self._pending: list[str] = []
        self.stopped = False

    def collect(self, marker: Element, number: int) -> ExtractedVerse:
        for node in marker.following_siblings():
            if self.stopped:
                break
            self.visit(node)
        self._flush()
        return ExtractedVerse(
            number=number,
            plain=clean_text("".join(self.plain_parts)),
            tokens=self.tokens,
        )

    def _flush(self):
        if not self._pending:
            return
        text = clean_text_keep_edges("".join(self._pending))
        self._pending = []
        if text:
            self.tokens.append(PlainText(text))

    def _emit(self, cls, el: Element):
        self._flush()
        raw = text_content(el)
        self.plain_parts.append(raw)
        text = clean_text_keep_edges(raw)
        if text:
            self.tokens.append(cls(text))

    def visit_text(self, text: Text):
        if self.stopped:
            return
        self.plain_parts.append(text.content)
        self._pending.append(text.content)

    def visit_element(self, el: Element):
        if self.stopped:
            return
        if is_verse_marker(el):
            self.stopped = True
            return
        if el.has_class(NOTEMARK_CLASS):
            return
        if el.has_class(ADDED_WORDS_CLASS):
            self._emit(AddedWords, el)
            return
        if el.has_class(DIVINE_NAME_CLASS):
            self._emit(DivineName, el)
            return

        self._flush()
        for child in el.children:
            if self.stopped:
                break
            self.visit(child)
        self._flush()


def verse_number(marker: Element) -> Optional[int]:
    m = VERSE_NUM_RE.match(text_content(marker))
    return int(m.group(1)) if m else None


def extract_verses(root: Element) -> list[ExtractedVerse]:
    """One ExtractedVerse per numbered verse marker, in document order."""
    verses = []
    for marker in find_all(root, is_verse_marker):
        num = verse_number(marker)
        if num is None:
            continue
        verses.append(VerseCollector().collect(marker, num))
    if not verses:
        raise ContentError("no verses found in chapter")
    return verses


# ─── Footnotes ──────────────────────────────────────────────────────────────

def parse_footnote_paragraph(para: Element) -> Optional[ExtractedFootnote]:
    """Parse one footnote paragraph.

    <p class="f" id="FN1"><span class="notemark">*</span>
       <a class="notebackref" href="#V3">1.3</a>
       <span class="ft">equity: Heb. equities</span></p>

    Returns None when the glyph or text is missing, or when the
    back-reference is absent or not of the form "#V<n>".
    """
    mark = ""
    text = ""
    verse_num = None
    for child in para.children:
        if not isinstance(child, Element):
            continue
        if child.tag == "span" and child.has_class(NOTEMARK_CLASS):
            mark = text_content(child).strip()
        elif child.tag == "span" and child.has_class(FOOTNOTE_TEXT_CLASS):
            text = clean_text(text_content(child))
        elif child.tag == "a" and child.has_class(BACKREF_CLASS):
            m = BACKREF_RE.match((child.get("href") or "").strip())
            if m:
                verse_num = int(m.group(1))

    if not mark or not text or verse_num is None:
        return None
    # An empty id is kept so the validator can report it.
    return ExtractedFootnote(id=(para.get("id") or "").strip(), mark=mark, verse_num=verse_num, text=text)


def extract_footnotes(root: Element) -> list[ExtractedFootnote]:
    block = find_first(root, element_matcher(tag="div", cls=FOOTNOTE_BLOCK_CLASS))
    if block is None:
        return []
    footnotes = []
    for child in block.children:
        if isinstance(child, Element) and child.tag == "p" and child.has_class(FOOTNOTE_PARA_CLASS):
            fn = parse_footnote_paragraph(child)
            if fn is not None:
                footnotes.append(fn)
    return footnotes


# ─── Entry point ────────────────────────────────────────────────────────────

def parse_chapter(content: bytes | str, filename: str) -> ExtractedChapter:
    """Parse one chapter document. Raises ParseError or ContentError tagged with filename."""
    try:
        root = parse_html(content)
        chapter_number = extract_chapter_number(root)
        verses = extract_verses(root)
    except CorpusError as e:
        e.path = e.path or filename
        raise
    return ExtractedChapter(
        chapter_number=chapter_number,
        verses=verses,
        footnotes=extract_footnotes(root),
        source_file=filename,
    )


def main():
    parser = argparse.ArgumentParser(description="Tokenize one KJV chapter file")
    parser.add_argument("path", help="Chapter HTML file")
    parser.add_argument("--json", action="store_true", help="Print extracted data as JSON")
    args = parser.parse_args()

    path = Path(args.path)
    try:
        content = path.read_bytes()
    except OSError as e:
        abort(f"cannot read {path}: {e}")
    try:
        ch = parse_chapter(content, path.name)
    except CorpusError as e:
        abort(str(e))

    if args.json:
        out = {
            "chapter": ch.chapter_number,
            "verses": [
                {"v": v.number, "plain": v.plain, "tokens": [token_to_json(t) for t in v.tokens]}
                for v in ch.verses
            ],
            "footnotes": [
                {"id": fn.id, "mark": fn.mark, "at": {"v": fn.verse_num}, "text": fn.text}
                for fn in ch.footnotes
            ],
        }
        json.dump(out, sys.stdout, ensure_ascii=False, indent=2)
        print()
        return

    print(f"{path.name}: chapter {ch.chapter_number}")
    print(rule())
    for v in ch.verses:
        print(f"{v.number:>3}  {v.plain}")
    if ch.footnotes:
        print(rule())
        for fn in ch.footnotes:
            print(f"{fn.id} {fn.mark} v{fn.verse_num}: {fn.text}")


if __name__ == "__main__":
    main()
