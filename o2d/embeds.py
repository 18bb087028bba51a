"""Expansion of Obsidian embeds (``![[note]]``, ``![[note#Heading]]``, ``![[image.png]]``)."""

import posixpath
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .code_block_detector import code_ranges
from .document import iter_headings
from .link_processor import WIKILINK_PATTERN, LinkProcessor
from .logger import StatusLogger
from .models import FileRecord, ImportConfig, ImportResult, Index
from .utils import is_document, is_media, slugify_heading, strip_ext, strip_front_matter

EMBED_PATTERN = re.compile(r"!\[\[([^\[\]|#]*)(?:#([^\[\]|]*))?(?:\|([^\[\]]*))?\]\]")

_BLOCK_ID_PATTERN = re.compile(r"[ \t]+\^([A-Za-z0-9-]+)[ \t]*$")
_IMAGE_SIZE_PATTERN = re.compile(r"^\d+(?:x\d+)?$")


def extract_heading_section(content: str, heading: str) -> Optional[str]:
    """Extract the section under a heading, including the heading line.

    The section runs until the next heading of the same or a shallower
    level. Headings are compared by their anchor slug.

    Args:
        content: Markdown body without front matter
        heading: Heading text to look for

    Returns:
        The trimmed section, or None if no heading matches
    """
    wanted = slugify_heading(heading.strip())
    headings = list(iter_headings(content))
    for i, found in enumerate(headings):
        if slugify_heading(found.title) != wanted:
            continue
        end = len(content)
        for following in headings[i + 1:]:
            if following.level <= found.level:
                end = following.start
                break
        return content[found.start:end].strip()
    return None


def extract_block(content: str, block_id: str) -> Optional[str]:
    """Paragraph ending in ``^block_id``, with the marker removed."""
    paragraphs = re.split(r"\n[ \t]*\n", content)
    for paragraph in paragraphs:
        lines = paragraph.rstrip().split("\n")
        match = _BLOCK_ID_PATTERN.search(lines[-1])
        if match and match.group(1) == block_id:
            lines[-1] = lines[-1][:match.start()]
            return "\n".join(lines).strip()
    return None


def _offset_of(text: str, line: int, column: int) -> int:
    start = 0
    for _ in range(line - 1):
        found = text.find("\n", start)
        if found < 0:
            break
        start = found + 1
    return start + column - 1


def _position_of(text: str, offset: int) -> Tuple[int, int]:
    line = text.count("\n", 0, offset) + 1
    return line, offset - (text.rfind("\n", 0, offset) + 1) + 1


class SourceMap:
    """Maps positions in an expanded body back to the body it came from.

    Text copied from the note keeps its own position. Text brought in by an
    embed is reported at the ``![[...]]`` that produced it.
    """

    def __init__(self, original: str):
        self.original = original
        self._parts: List[str] = []
        # (start in expanded text, start in original, copied verbatim)
        self._segments: List[Tuple[int, int, bool]] = []
        self._length = 0

    def copy(self, start: int, end: int) -> None:
        if end > start:
            self._append(self.original[start:end], start, True)

    def insert(self, text: str, at: int) -> None:
        if text:
            self._append(text, at, False)

    def _append(self, text: str, original_start: int, copied: bool) -> None:
        self._segments.append((self._length, original_start, copied))
        self._parts.append(text)
        self._length += len(text)

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def locate(self, line: int, column: int) -> Tuple[int, int]:
        """Original line and column for a 1-based position in the expanded text."""
        offset = _offset_of(self.text, line, column)
        for start, original_start, copied in reversed(self._segments):
            if start <= offset:
                return _position_of(self.original, original_start + (offset - start if copied else 0))
        return line, column


class EmbedExpander:
    """Inlines embedded notes and sections ahead of link rewriting."""

    def __init__(self, index: Index, config: ImportConfig, log: StatusLogger, result: ImportResult,
                 link_processor: LinkProcessor):
        self.index = index
        self.config = config
        self.log = log
        self.result = result
        self.link_processor = link_processor
        self._by_path: Dict[Path, FileRecord] = {record.source_path.resolve(): record for record in index.files}

    def expand(self, content: str, record: FileRecord) -> str:
        """Expand every embed in ``content``, the body of ``record``.

        Args:
            content: Body text without front matter
            record: The document being converted

        Returns:
            Body with embeds replaced by their content, images or placeholders
        """
        expanded, _ = self.expand_with_map(content, record)
        return expanded

    def expand_with_map(self, content: str, record: FileRecord) -> Tuple[str, SourceMap]:
        """Expand embeds and keep a map from the result back to ``content``."""
        source_map = SourceMap(content)
        stack = ((record.source_path, ""),)
        pos = 0
        if "![[" in content:
            ranges = code_ranges(content)
            for match in EMBED_PATTERN.finditer(content):
                if any(start <= match.start() < end for start, end in ranges):
                    continue
                source_map.copy(pos, match.start())
                source_map.insert(self._expand_one(match, record, record, stack), match.start())
                pos = match.end()
        source_map.copy(pos, len(content))
        return source_map.text, source_map

    def _expand(self, content: str, current: FileRecord, host: FileRecord,
                stack: Tuple[Tuple[Path, str], ...]) -> str:
        if "![[" not in content:
            return content
        ranges = code_ranges(content)

        def replace(match: re.Match) -> str:
            if any(start <= match.start() < end for start, end in ranges):
                return match.group(0)
            return self._expand_one(match, current, host, stack)

        return EMBED_PATTERN.sub(replace, content)

    def _expand_one(self, match: re.Match, current: FileRecord, host: FileRecord,
                    stack: Tuple[Tuple[Path, str], ...]) -> str:
        name = match.group(1).strip()
        heading = (match.group(2) or "").strip()
        alias = (match.group(3) or "").strip()
        label = f"{name}#{heading}" if heading else name

        target = current if not name else self.resolve(name, current)
        if target is None:
            self.log.warning(f"Embed target not found: {name} (in {current.source_path})")
            return f"> **Missing embed: {name}**"

        if not target.is_document:
            # "|300" or "|300x200" is an image size, not a caption
            if _IMAGE_SIZE_PATTERN.match(alias):
                alias = ""
            self.result.embeds_expanded += 1
            return self._attachment_reference(target, host, alias or name)

        key = (target.source_path, slugify_heading(heading))
        if key in stack:
            self.log.warning(f"Embed cycle detected: {label} (in {current.source_path})")
            return f"> **Embed cycle: {label}**"
        if len(stack) > self.config.max_embed_depth:
            self.log.warning(f"Embed depth limit of {self.config.max_embed_depth} reached at {label}")
            return f"> **Embed too deep: {label}**"

        try:
            raw = target.source_path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            self.log.error(f"Error embedding {label}: {e}")
            return f"> **Error embedding {label}**"
        body = strip_front_matter(raw)

        if heading.startswith("^"):
            section = extract_block(body, heading[1:])
        elif heading:
            section = extract_heading_section(body, heading)
        else:
            section = body.strip()
        if section is None:
            self.log.warning(f"Header '{heading}' not found in {name or current.source_name}")
            return f"> **Missing embed section:** {label}"

        if target is not host:
            section = self._repoint_heading_links(section, target)
        section = self._expand(section, target, host, stack + (key,))
        self.result.embeds_expanded += 1
        return section

    def resolve(self, name: str, current: FileRecord) -> Optional[FileRecord]:
        """Resolve an embed target.

        Order: attachment name, file name, slug, full wikilink resolution,
        then a path relative to the embedding note.
        """
        lower = name.lower()
        base = posixpath.basename(lower.replace("\\", "/"))
        if not is_document(base) and posixpath.splitext(base)[1]:
            attachments = self.index.attachment_by_name.get(base)
            if attachments:
                for attachment in attachments:
                    if attachment.source_path.as_posix().lower().endswith("/" + lower):
                        return attachment
                return attachments[0]

        key = strip_ext(lower) if is_document(lower) else lower
        matches = self.index.file_by_name.get(key)
        if matches:
            return matches[0]
        record = self.index.file_by_slug.get(key) or self.link_processor.resolve(name)
        if record:
            return record

        candidate = current.source_dir / name
        if not posixpath.splitext(name)[1]:
            candidate = candidate.with_name(candidate.name + ".md")
        try:
            return self._by_path.get(candidate.resolve())
        except OSError:
            return None

    def _attachment_reference(self, target: FileRecord, host: FileRecord, label: str) -> str:
        relative = posixpath.relpath(target.dest_rel_path, host.dest_dir or ".")
        if not relative.startswith("."):
            relative = "./" + relative
        if is_media(target.file_name):
            return f"![{label}]({relative})"
        return f"[{label}]({relative})"

    def _repoint_heading_links(self, section: str, origin: FileRecord) -> str:
        """Point ``[[#Heading]]`` links in a snippet back at the note it came from."""
        origin_ref = origin.source_name
        if len(self.index.file_by_name.get(origin.source_name.lower(), [])) > 1:
            # Ambiguous name: use the path, which always resolves to this note
            origin_ref = origin.source_path.relative_to(self.index.source_root).as_posix()
        ranges = code_ranges(section)

        def replace(match: re.Match) -> str:
            if match.group(1).strip() or not (match.group(2) or "").strip():
                return match.group(0)
            if any(start <= match.start() < end for start, end in ranges):
                return match.group(0)
            if match.start() > 0 and section[match.start() - 1] == "!":
                return match.group(0)
            alias = f"|{match.group(3)}" if match.group(3) is not None else ""
            return f"[[{origin_ref}#{match.group(2)}{alias}]]"

        return WIKILINK_PATTERN.sub(replace, section)
