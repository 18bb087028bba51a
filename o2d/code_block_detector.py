"""Code region detection for markdown content.

Wikilinks and embeds inside code must survive untouched, so every rewrite
pass asks this module where the code is first.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple


class BlockType(Enum):
    """Types of code blocks."""
    FENCED_BACKTICK = "fenced_backtick"  # ```
    FENCED_TILDE = "fenced_tilde"        # ~~~
    INLINE_CODE = "inline_code"          # `code`
    HTML_CODE = "html_code"              # <code> or <pre>


@dataclass
class CodeBlock:
    """Represents a code block in the document."""
    block_type: BlockType
    start_pos: int
    end_pos: int


_FENCE_OPEN = re.compile(r"^[ ]{0,3}(`{3,}|~{3,})(.*)$")
_HTML_CODE_PATTERNS = [
    (re.compile(r"<pre\b[^>]*>", re.IGNORECASE), re.compile(r"</pre>", re.IGNORECASE)),
    (re.compile(r"<code\b[^>]*>", re.IGNORECASE), re.compile(r"</code>", re.IGNORECASE)),
]


class CodeBlockDetector:
    """Code block detector using a line-based state machine for fences."""

    def __init__(self):
        self.blocks: List[CodeBlock] = []
        self.content = ""
        self.lines: List[str] = []

    def detect_code_blocks(self, content: str) -> List[CodeBlock]:
        """Detect all code blocks in the content.

        Args:
            content: Markdown content to analyze

        Returns:
            Non-overlapping code blocks sorted by start position
        """
        self.content = content
        self.lines = content.splitlines(True)  # Keep line endings
        self.blocks = []

        # Order matters: later passes skip positions already claimed
        self._detect_fenced_blocks()
        self._detect_html_blocks()
        self._detect_inline_code()

        self.blocks.sort(key=lambda b: b.start_pos)
        return self.blocks

    def _detect_fenced_blocks(self) -> None:
        """Detect fenced code blocks (``` and ~~~).

        An unclosed fence runs to the end of the document.
        """
        current_pos = 0
        i = 0
        while i < len(self.lines):
            line = self.lines[i]
            match = _FENCE_OPEN.match(line.rstrip("\r\n"))
            if not match or (match.group(1)[0] == "`" and "`" in match.group(2)):
                current_pos += len(line)
                i += 1
                continue

            fence = match.group(1)
            start_pos = current_pos
            current_pos += len(line)
            i += 1
            while i < len(self.lines):
                closing = self.lines[i]
                current_pos += len(closing)
                i += 1
                stripped = closing.strip()
                if stripped.startswith(fence) and set(stripped) == {fence[0]}:
                    break

            block_type = BlockType.FENCED_BACKTICK if fence[0] == "`" else BlockType.FENCED_TILDE
            self.blocks.append(CodeBlock(
                block_type=block_type,
                start_pos=start_pos,
                end_pos=current_pos,
            ))

    def _detect_html_blocks(self) -> None:
        """Detect HTML code blocks (<pre>, <code>)."""
        for open_pattern, close_pattern in _HTML_CODE_PATTERNS:
            pos = 0
            while True:
                open_match = open_pattern.search(self.content, pos)
                if not open_match:
                    break
                if self._is_pos_in_existing_blocks(open_match.start()):
                    pos = open_match.end()
                    continue

                close_match = close_pattern.search(self.content, open_match.end())
                if not close_match:
                    pos = open_match.end()
                    continue

                self.blocks.append(CodeBlock(
                    block_type=BlockType.HTML_CODE,
                    start_pos=open_match.start(),
                    end_pos=close_match.end(),
                ))
                pos = close_match.end()

    def _detect_inline_code(self) -> None:
        """Detect inline code spans (`code`, ``code``)."""
        pos = 0
        while True:
            start = self.content.find("`", pos)
            if start == -1:
                break
            if self._is_pos_in_existing_blocks(start):
                pos = start + 1
                continue

            # Opening run length must be matched exactly by the closing run
            run_end = start
            while run_end < len(self.content) and self.content[run_end] == "`":
                run_end += 1
            ticks = self.content[start:run_end]

            close = self._find_closing_run(ticks, run_end)
            if close == -1:
                pos = run_end
                continue

            self.blocks.append(CodeBlock(
                block_type=BlockType.INLINE_CODE,
                start_pos=start,
                end_pos=close + len(ticks),
            ))
            pos = close + len(ticks)

    def _find_closing_run(self, ticks: str, pos: int) -> int:
        """Position of a backtick run exactly as long as ``ticks``, or -1."""
        while True:
            found = self.content.find(ticks, pos)
            if found == -1:
                return -1
            # Inline code doesn't cross a blank line
            if "\n\n" in self.content[pos:found] or self._is_pos_in_existing_blocks(found):
                return -1
            after = found + len(ticks)
            if after < len(self.content) and self.content[after] == "`":
                while after < len(self.content) and self.content[after] == "`":
                    after += 1
                pos = after
                continue
            return found

    def _is_pos_in_existing_blocks(self, pos: int) -> bool:
        """Check if position is in already detected blocks."""
        for block in self.blocks:
            if block.start_pos <= pos < block.end_pos:
                return True
        return False


def detect_code_blocks(content: str) -> List[CodeBlock]:
    """Detect all code blocks in content.

    Args:
        content: Markdown content

    Returns:
        List of detected code blocks
    """
    return CodeBlockDetector().detect_code_blocks(content)


def code_ranges(content: str) -> List[Tuple[int, int]]:
    """``(start, end)`` offsets of every code region, sorted."""
    return [(b.start_pos, b.end_pos) for b in detect_code_blocks(content)]
