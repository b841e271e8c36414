"""Abstract markup tree consumed by the tokenizer.

The tokenizer never touches the HTML parser directly. It walks a tree of two
node kinds:
  - Element: tag, class set, attributes, ordered children
  - Text:    character content (entities already decoded by the parser)

`parse_html` builds that tree with BeautifulSoup ("html.parser" backend).
Comments, doctypes and processing instructions are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from bs4 import BeautifulSoup, NavigableString, Tag

from kjvtools.errors import ParseError


@dataclass(eq=False)
class Node:
    parent: Optional["Element"] = field(default=None, repr=False, compare=False)

    def next_sibling(self) -> Optional["Node"]:
        if self.parent is None:
            return None
        siblings = self.parent.children
        i = self.parent.index_of(self)
        return siblings[i + 1] if i + 1 < len(siblings) else None

    def following_siblings(self) -> Iterator["Node"]:
        node = self.next_sibling()
        while node is not None:
            yield node
            node = node.next_sibling()


@dataclass(eq=False)
class Text(Node):
    content: str = ""


@dataclass(eq=False)
class Element(Node):
    tag: str = ""
    classes: frozenset = frozenset()
    attrs: dict = field(default_factory=dict)
    children: list = field(default_factory=list)

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def get(self, attr: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(attr, default)

    def index_of(self, child: Node) -> int:
        for i, c in enumerate(self.children):
            if c is child:
                return i
        raise ValueError("node is not a child of this element")


class NodeVisitor:
    """Dispatch on node kind. Subclasses override visit_element / visit_text."""

    def visit(self, node: Node):
        if isinstance(node, Element):
            return self.visit_element(node)
        return self.visit_text(node)

    def visit_element(self, element: Element):
        for child in element.children:
            self.visit(child)

    def visit_text(self, text: Text):
        pass


# ─── Tree helpers ───────────────────────────────────────────────────────────

def iter_elements(root: Node) -> Iterator[Element]:
    """Depth-first, document-order traversal of all elements under (and including) root."""
    stack = [root]
    while stack:
        node = stack.pop()
        if isinstance(node, Element):
            yield node
            stack.extend(reversed(node.children))


def find_all(root: Node, pred: Callable[[Element], bool]) -> list[Element]:
    return [el for el in iter_elements(root) if pred(el)]


def find_first(root: Node, pred: Callable[[Element], bool]) -> Optional[Element]:
    return next((el for el in iter_elements(root) if pred(el)), None)


def text_content(node: Node) -> str:
    """All text under node, concatenated in document order."""
    if isinstance(node, Text):
        return node.content
    parts = []
    stack = [node]
    while stack:
        n = stack.pop()
        if isinstance(n, Text):
            parts.append(n.content)
        else:
            stack.extend(reversed(n.children))
    return "".join(parts)


def element_matcher(tag: Optional[str] = None, cls: Optional[str] = None) -> Callable[[Element], bool]:
    def match(el: Element) -> bool:
        if tag is not None and el.tag != tag:
            return False
        if cls is not None and not el.has_class(cls):
            return False
        return True
    return match


# ─── BeautifulSoup adapter ──────────────────────────────────────────────────

def _convert(tag: Tag, parent: Optional[Element]) -> Element:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    attrs = {}
    for k, v in tag.attrs.items():
        attrs[k] = " ".join(v) if isinstance(v, list) else v
    el = Element(parent=parent, tag=tag.name, classes=frozenset(classes), attrs=attrs)
    for child in tag.children:
        if isinstance(child, Tag):
            el.children.append(_convert(child, el))
        elif type(child) is NavigableString:
            el.children.append(Text(parent=el, content=str(child)))
    return el


def parse_html(content: bytes | str) -> Element:
    """Parse an HTML document into the abstract tree. Returns the document root."""
    try:
        soup = BeautifulSoup(content, "html.parser")
    except Exception as e:
        raise ParseError(f"failed to parse HTML: {e}") from e
    root = Element(tag="#document")
    for child in soup.children:
        if isinstance(child, Tag):
            root.children.append(_convert(child, root))
        elif type(child) is NavigableString:
            root.children.append(Text(parent=root, content=str(child)))
    return root
