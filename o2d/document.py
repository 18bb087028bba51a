"""Typed content tree for note bodies.

The tree only distinguishes what link rewriting needs to tell apart:
plain text, code, headings, existing links and images.
Parsing is lossless, so ``render_markdown(parse_markdown(text)) == text``
for any input, and untouched regions come out byte-for-byte.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, NamedTuple, Tuple, Union

from .code_block_detector import code_ranges


@dataclass
class TextNode:
    """Plain text; the only node wikilink rewriting looks inside."""

    value: str
    line: int = 1
    column: int = 1

    def position_of(self, offset: int) -> Tuple[int, int]:
        """Line and column of ``offset`` within this node's value."""
        before = self.value[:offset]
        newlines = before.count("\n")
        if newlines == 0:
            return self.line, self.column + offset
        return self.line + newlines, offset - before.rfind("\n")


@dataclass
class CodeNode:
    """Fenced, inline or HTML code, never rewritten."""

    value: str


@dataclass
class LinkNode:
    url: str
    text: str


@dataclass
class ImageNode:
    url: str
    alt: str


InlineNode = Union[TextNode, CodeNode, LinkNode, ImageNode]


@dataclass
class HeadingNode:
    """ATX heading; ``marker`` holds the indent, hashes and separator as written."""

    level: int
    marker: str
    children: List[InlineNode] = field(default_factory=list)
    eol: str = ""


Node = Union[TextNode, CodeNode, HeadingNode, LinkNode, ImageNode]


class Heading(NamedTuple):
    """An ATX heading line located in raw text."""

    start: int
    end: int  # after the line ending
    level: int
    marker: str
    title: str
    eol: str


_HEADING_PATTERN = re.compile(r"^( {0,3}(#{1,6})(?:[ \t]+|(?=\r?$)))([^\r\n]*)(\r?\n)?", re.MULTILINE)
_CLOSING_HASHES = re.compile(r"[ \t]+#+[ \t]*$")
_LINK_PATTERN = re.compile(r"(?<!\[)(!?)\[([^\[\]\n]*)\]\(([^()\s]*)\)")


def iter_headings(text: str, ranges: List[Tuple[int, int]] = None) -> Iterator[Heading]:
    """Yield headings outside code.

    A heading line that a code region starts before, or runs past the end
    of, is treated as ordinary text.

    Args:
        text: Markdown text
        ranges: Precomputed code ranges for ``text``

    Yields:
        Heading tuples in document order
    """
    if ranges is None:
        ranges = code_ranges(text)
    for match in _HEADING_PATTERN.finditer(text):
        start, end = match.start(), match.end()
        if any(r_start < end and start < r_end and not (start <= r_start and r_end <= end)
               for r_start, r_end in ranges):
            continue
        title = _CLOSING_HASHES.sub("", match.group(3)).strip()
        yield Heading(start, end, len(match.group(2)), match.group(1), title, match.group(4) or "")


def parse_markdown(text: str, line_offset: int = 0) -> List[Node]:
    """Parse text into a flat list of block and inline nodes.

    Args:
        text: Markdown body without front matter
        line_offset: Lines preceding ``text`` in the source file, added to
            every recorded line number

    Returns:
        Node list whose rendering reproduces ``text`` exactly
    """
    ranges = code_ranges(text)
    nodes: List[Node] = []
    pos = 0
    for heading in iter_headings(text, ranges):
        nodes.extend(_parse_inline(text, pos, heading.start, ranges, line_offset))
        content_start = heading.start + len(heading.marker)
        content_end = heading.end - len(heading.eol)
        nodes.append(HeadingNode(
            level=heading.level,
            marker=heading.marker,
            children=_parse_inline(text, content_start, content_end, ranges, line_offset),
            eol=heading.eol,
        ))
        pos = heading.end
    nodes.extend(_parse_inline(text, pos, len(text), ranges, line_offset))
    return nodes


def _parse_inline(text: str, start: int, end: int, ranges: List[Tuple[int, int]],
                  line_offset: int) -> List[InlineNode]:
    nodes: List[InlineNode] = []
    pos = start
    for r_start, r_end in ranges:
        if r_end <= start or r_start >= end:
            continue
        nodes.extend(_parse_links(text, pos, r_start, line_offset))
        nodes.append(CodeNode(text[r_start:r_end]))
        pos = r_end
    nodes.extend(_parse_links(text, pos, end, line_offset))
    return nodes


def _parse_links(text: str, start: int, end: int, line_offset: int) -> List[InlineNode]:
    nodes: List[InlineNode] = []
    pos = start
    for match in _LINK_PATTERN.finditer(text, start, end):
        if match.start() > pos:
            nodes.append(_text_node(text, pos, match.start(), line_offset))
        if match.group(1):
            nodes.append(ImageNode(url=match.group(3), alt=match.group(2)))
        else:
            nodes.append(LinkNode(url=match.group(3), text=match.group(2)))
        pos = match.end()
    if end > pos:
        nodes.append(_text_node(text, pos, end, line_offset))
    return nodes


def _text_node(text: str, start: int, end: int, line_offset: int) -> TextNode:
    line = text.count("\n", 0, start) + 1 + line_offset
    column = start - (text.rfind("\n", 0, start) + 1) + 1
    return TextNode(text[start:end], line, column)


def render_markdown(nodes: List[Node]) -> str:
    return "".join(_render_node(node) for node in nodes)


def _render_node(node: Node) -> str:
    if isinstance(node, (TextNode, CodeNode)):
        return node.value
    if isinstance(node, HeadingNode):
        return node.marker + render_markdown(node.children) + node.eol
    if isinstance(node, LinkNode):
        return f"[{node.text}]({node.url})"
    if isinstance(node, ImageNode):
        return f"![{node.alt}]({node.url})"
    raise TypeError(f"Unknown content node: {type(node).__name__}")


def rewrite_text_nodes(nodes: List[Node], rewrite: Callable[[TextNode], List[InlineNode]]) -> List[Node]:
    """Replace every text node, including those inside headings, with ``rewrite(node)``.

    Args:
        nodes: Parsed content tree
        rewrite: Callback returning the replacement nodes for one text node

    Returns:
        New node list; code, link and image nodes are passed through
    """
    result: List[Node] = []
    for node in nodes:
        if isinstance(node, TextNode):
            result.extend(rewrite(node))
        elif isinstance(node, HeadingNode):
            children = rewrite_text_nodes(node.children, rewrite)
            result.append(HeadingNode(node.level, node.marker, children, node.eol))
        elif isinstance(node, (CodeNode, LinkNode, ImageNode)):
            result.append(node)
        else:
            raise TypeError(f"Unknown content node: {type(node).__name__}")
    return result
