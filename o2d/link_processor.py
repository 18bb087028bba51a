"""Wikilink resolution and rewriting for O2D converter."""

import posixpath
import re
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .document import (
    InlineNode,
    LinkNode,
    Node,
    TextNode,
    parse_markdown,
    render_markdown,
    rewrite_text_nodes,
)
from .logger import StatusLogger
from .models import FileRecord, ImportConfig, ImportResult, Index, UnresolvedLink
from .utils import DOCUMENT_EXTENSIONS, normalize_path, slugify, slugify_heading, slugify_path, strip_ext

# [[target]], [[target#heading]], [[target|alias]], [[#heading|alias]]
WIKILINK_PATTERN = re.compile(r"\[\[([^\[\]|#]*)(?:#([^\[\]|]*))?(?:\|([^\[\]]*))?\]\]")

# Maps a (line, column) in the rewritten body to the note as written
Locator = Callable[[int, int], Tuple[int, int]]

UNRESOLVED_LOG_NAME = "unresolved-links.log"
UNRESOLVED_LOG_HEADER = """\
# Wikilinks that matched no document during the last import.
# Each line is path:line:column, so editors and terminals can open the
# source note at the offending link. Line numbers count from the top of
# the source file. Links that arrived through an embed point at the embed.
#
"""


def heading_anchor(heading: str) -> str:
    """Anchor fragment for a heading reference, including the leading '#'.

    Block references (``^block-id``) keep their caret and are not slugified.
    """
    heading = heading.strip().lstrip("#").strip()
    if heading.startswith("^"):
        return "#^" + heading[1:]
    return "#" + slugify_heading(heading)


def is_path_like(target: str) -> bool:
    return "/" in target or "\\" in target or posixpath.splitext(target)[1].lower() in DOCUMENT_EXTENSIONS


class LinkProcessor:
    """Resolves wikilink targets against the index and rewrites them as links."""

    def __init__(self, index: Index, config: ImportConfig, log: StatusLogger, result: ImportResult):
        """Initialize link processor.

        Args:
            index: Completed, read-only index
            config: Import configuration
            log: Status logger
            result: Summary that counters are accumulated into
        """
        self.index = index
        self.config = config
        self.log = log
        self.result = result
        self.unresolved_log_path: Optional[Path] = None

        # Source paths relative to the source root, lower-cased, document extension stripped
        self._relative_paths = [
            (self._relative_key(record), record) for record in index.documents
        ]

    def _relative_key(self, record: FileRecord) -> str:
        try:
            relative = record.source_path.relative_to(self.index.source_root).as_posix()
        except ValueError:
            relative = record.source_path.as_posix()
        return strip_ext(relative).lower()

    def resolve(self, target: str) -> Optional[FileRecord]:
        """Resolve a free-text wikilink target to a document.

        Tries, in order: path-like suffix match, file name, title, slug,
        then the slugified target against slugs and file names.

        Args:
            target: Link target without heading or alias

        Returns:
            The matching record, or None
        """
        target = target.strip()
        if not target:
            return None
        key = target.lower()

        if is_path_like(target):
            record = self._resolve_path(target)
            if record:
                return record

        matches = self.index.file_by_name.get(key)
        if matches:
            return matches[0]

        record = self.index.file_by_title.get(key) or self.index.file_by_slug.get(key)
        if record:
            return record

        slug = slugify(target)
        if slug:
            record = self.index.file_by_slug.get(slug)
            if record:
                return record
            matches = self.index.file_by_name.get(slug)
            if matches:
                return matches[0]
        return None

    def _resolve_path(self, target: str) -> Optional[FileRecord]:
        wanted = normalize_path(target).lower()
        if posixpath.splitext(wanted)[1] in DOCUMENT_EXTENSIONS:
            wanted = strip_ext(wanted)
        if not wanted:
            return None

        # Exact relative path beats a suffix match from a deeper folder
        for relative, record in self._relative_paths:
            if relative == wanted:
                return record
        for relative, record in self._relative_paths:
            if relative.endswith("/" + wanted):
                return record

        wanted_id = slugify_path(wanted)
        for record in self.index.documents:
            doc_id = record.doc_id.lower()
            if doc_id == wanted_id or doc_id.endswith("/" + wanted_id):
                return record
        return None

    def start_unresolved_log(self) -> None:
        """Truncate the unresolved-links log and write its header.

        Failing to create the log disables it with a warning.
        """
        path = self.config.debug_dir / UNRESOLVED_LOG_NAME
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(UNRESOLVED_LOG_HEADER, encoding="utf-8")
        except OSError as e:
            self.log.warning(f"Could not initialize unresolved links log at {path}: {e}")
            self.unresolved_log_path = None
            return
        self.unresolved_log_path = path

    def _append_unresolved(self, line: str) -> None:
        if self.unresolved_log_path is None:
            return
        try:
            with open(self.unresolved_log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            self.log.warning(f"Failed to append to unresolved links log {self.unresolved_log_path}: {e}")

    def convert_content(self, content: str, source_path: Path, line_offset: int = 0, source_map=None) -> str:
        """Rewrite every wikilink in a note body.

        Args:
            content: Body text, embeds already expanded
            source_path: Note being converted, used for diagnostics
            line_offset: Front matter lines above ``content``
            source_map: ``SourceMap`` from embed expansion, so positions are
                reported in the note as written

        Returns:
            Body with wikilinks replaced by Markdown links
        """
        def locate(line: int, column: int) -> Tuple[int, int]:
            if source_map is None:
                return line, column
            line, column = source_map.locate(line - line_offset, column)
            return line + line_offset, column

        nodes = parse_markdown(content, line_offset)
        return render_markdown(self.rewrite(nodes, source_path, locate))

    def rewrite(self, nodes: List[Node], source_path: Path, locate: Optional[Locator] = None) -> List[Node]:
        return rewrite_text_nodes(nodes, lambda node: self._rewrite_text(node, source_path, locate))

    def _rewrite_text(self, node: TextNode, source_path: Path, locate: Optional[Locator]) -> List[InlineNode]:
        if "[[" not in node.value:
            return [node]

        new_nodes: List[InlineNode] = []
        last = 0
        for match in WIKILINK_PATTERN.finditer(node.value):
            target, heading, alias = match.group(1), match.group(2), match.group(3)
            if not target.strip() and not (heading or "").strip():
                continue  # "[[]]", "[[|x]]" and "[[#]]" are not links

            if match.start() > last:
                new_nodes.append(self._sub_text(node, last, match.start()))
            new_nodes.append(self._build_link(node, match, target.strip(), heading, alias, source_path,
                                              locate))
            last = match.end()

        if last == 0:
            return [node]
        if last < len(node.value):
            new_nodes.append(self._sub_text(node, last, len(node.value)))
        return new_nodes

    @staticmethod
    def _sub_text(node: TextNode, start: int, end: int) -> TextNode:
        line, column = node.position_of(start)
        return TextNode(node.value[start:end], line, column)

    def _build_link(self, node: TextNode, match: re.Match, target: str, heading: Optional[str],
                    alias: Optional[str], source_path: Path, locate: Optional[Locator]) -> LinkNode:
        alias = alias.strip() if alias else ""
        heading_text = heading.strip() if heading else ""

        if not target:
            # Heading-only link into the current page
            return LinkNode(url=heading_anchor(heading_text), text=alias or heading_text)

        anchor = heading_anchor(heading_text) if heading_text else ""
        record = self.resolve(target)
        if record is not None:
            record.reference_count += 1
            self.result.wikilinks_rewritten += 1
            self.log.debug(f"Resolved [[{target}]] -> {record.doc_id}")
            return LinkNode(url=self.config.base_url + record.doc_id + anchor,
                            text=alias or heading_text or target)

        line, column = node.position_of(match.start())
        if locate is not None:
            line, column = locate(line, column)
        unresolved = UnresolvedLink(source_path=source_path, line=line, column=column, original=match.group(0))
        self.result.unresolved.append(unresolved)
        self.result.unresolved_links += 1
        self.log.warning(str(unresolved))
        self._append_unresolved(str(unresolved))

        fallback = slugify(target) or "unresolved"
        return LinkNode(url=self.config.base_url + fallback + anchor, text=alias or heading_text or target)
