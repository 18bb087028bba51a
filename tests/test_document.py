"""Tests for the content tree in o2d.document and code detection."""

import pytest

from o2d.code_block_detector import BlockType, code_ranges, detect_code_blocks
from o2d.document import (
    CodeNode,
    HeadingNode,
    ImageNode,
    LinkNode,
    TextNode,
    iter_headings,
    parse_markdown,
    render_markdown,
    rewrite_text_nodes,
)

SAMPLE = """# Title

Intro with [[Link]] and `inline [[code]]`.

```python
# not a heading
print("[[also code]]")
```

## Section `with code` ##
See [docs](https://example.com) and ![alt](img.png).
<code>[[html code]]</code>
~~~
unclosed tilde fence [[x]]
"""


class TestCodeBlockDetector:
    """Tests for code region detection."""

    def test_detects_fenced_inline_and_html(self):
        """Each kind of code region is found."""
        types = {block.block_type for block in detect_code_blocks(SAMPLE)}
        assert types == {
            BlockType.FENCED_BACKTICK,
            BlockType.FENCED_TILDE,
            BlockType.INLINE_CODE,
            BlockType.HTML_CODE,
        }

    def test_unclosed_fence_runs_to_end(self):
        """An unclosed fence swallows the rest of the document."""
        text = "before\n```\ncode [[x]]\nmore"
        blocks = detect_code_blocks(text)
        assert len(blocks) == 1
        assert blocks[0].end_pos == len(text)

    def test_double_backtick_span(self):
        """A double-backtick span may contain single backticks."""
        text = "a ``code ` tick`` b"
        blocks = detect_code_blocks(text)
        assert text[blocks[0].start_pos:blocks[0].end_pos] == "``code ` tick``"

    def test_indented_list_items_are_not_code(self):
        """Nested list content is ordinary text."""
        text = "- item\n    - nested [[Link]]\n"
        assert code_ranges(text) == []


class TestParseRender:
    """Tests for parse_markdown/render_markdown."""

    @pytest.mark.parametrize(
        "text",
        [
            SAMPLE,
            "",
            "no newline at end",
            "#hashtag is not a heading\r\n# CRLF heading\r\nbody\r\n",
            "# Heading with closing hashes ###\n",
            "[[a]](b) [x](y) ![[embed]]",
        ],
    )
    def test_render_reproduces_input(self, text):
        """Parsing is lossless."""
        assert render_markdown(parse_markdown(text)) == text

    def test_code_regions_become_code_nodes(self):
        """Wikilinks inside code are held in code nodes."""
        nodes = parse_markdown(SAMPLE)
        code = "".join(node.value for node in nodes if isinstance(node, CodeNode))
        assert "[[code]]" in code
        assert "[[also code]]" in code
        assert "[[html code]]" in code

    def test_headings(self):
        """Headings keep their level and inline children."""
        headings = [node for node in parse_markdown(SAMPLE) if isinstance(node, HeadingNode)]
        assert [h.level for h in headings] == [1, 2]
        assert any(isinstance(child, CodeNode) for child in headings[1].children)

    def test_links_and_images(self):
        """Existing Markdown links and images are typed nodes."""
        nodes = parse_markdown(SAMPLE)
        assert LinkNode(url="https://example.com", text="docs") in nodes
        assert ImageNode(url="img.png", alt="alt") in nodes

    def test_text_positions_include_line_offset(self):
        """Text nodes know their line and column in the source file."""
        nodes = parse_markdown("first\nsecond [x](y) third", line_offset=3)
        text_nodes = [node for node in nodes if isinstance(node, TextNode)]
        assert (text_nodes[0].line, text_nodes[0].column) == (4, 1)
        assert (text_nodes[1].line, text_nodes[1].column) == (5, 14)

    def test_position_of_offset(self):
        """Offsets inside a node map to line and column."""
        node = TextNode("ab\ncd [[x]]", line=2, column=4)
        assert node.position_of(1) == (2, 5)
        assert node.position_of(node.value.index("[[")) == (3, 4)


class TestRewrite:
    """Tests for rewrite_text_nodes."""

    def test_rewrites_text_inside_headings(self):
        """Heading text is rewritten; code inside it is not."""
        nodes = parse_markdown("# Hello `Hello`\nHello\n")

        def shout(node):
            return [TextNode(node.value.replace("Hello", "HI"), node.line, node.column)]

        assert render_markdown(rewrite_text_nodes(nodes, shout)) == "# HI `Hello`\nHI\n"

    def test_unknown_nodes_are_rejected(self):
        """Rewriting is exhaustive over node types."""
        with pytest.raises(TypeError):
            rewrite_text_nodes([object()], lambda node: [node])


class TestIterHeadings:
    """Tests for heading discovery."""

    def test_skips_headings_in_code(self):
        """Comment lines in fenced code are not headings."""
        text = "# Real\n```bash\n# comment\n```\n## Also real\n"
        assert [h.title for h in iter_headings(text)] == ["Real", "Also real"]

    def test_strips_closing_hashes(self):
        assert [h.title for h in iter_headings("## Setup ##\n")] == ["Setup"]
