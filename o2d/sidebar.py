"""Navigation (Docusaurus sidebar) generation from the index."""

import json
import math
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from .logger import StatusLogger
from .models import (
    CategoryNode,
    DocumentNode,
    ExternalRefNode,
    FileRecord,
    FolderRecord,
    ImportConfig,
    Index,
    NavigationNode,
)
from .utils import humanize, natural_key, strip_ext

INTRO_GROUP = "Intro"
DEBUG_TREE_NAME = "docs-tree.txt"
INDEX_BASENAMES = {"index", "readme"}
GENERIC_TITLES = {
    "overview",
    "index",
    "table of contents",
    "table-of-contents",
    "table_of_contents",
    "readme",
    "introduction",
    "intro",
}

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

SIDEBARS_TS_HEADER = """\
//
// sidebars.ts :: generated by o2d
// Multi-sidebar mode for a single docs plugin instance.
// This file is overwritten on every import; edit the notes instead.
//
import type { SidebarsConfig } from '@docusaurus/plugin-content-docs';

"""


def is_generic_title(title: Optional[str]) -> bool:
    return not title or title.strip().lower() in GENERIC_TITLES


def folder_label(folder: FolderRecord) -> str:
    """Explicit folder title unless generic, else the humanized folder slug."""
    title = (folder.dest_title or "").strip()
    if title and not is_generic_title(title):
        return title
    return humanize(folder.dest_slug or folder.source_name) or "Overview"


def document_label(record: FileRecord) -> str:
    """Explicit document title unless generic, else the humanized slug.

    A generic title on an ``index``/``readme`` file is kept as written,
    since humanizing that slug gives no better name.
    """
    title = (record.dest_title or "").strip()
    if title and not is_generic_title(title):
        return title
    base = strip_ext(record.dest_slug)
    if base.lower() in INDEX_BASENAMES:
        return title or "Overview"
    return humanize(base) or title or "Untitled"


def sort_key(position: int, title: str):
    """Order by position with unset (negative) positions last, then natural title."""
    return (position if position >= 0 else math.inf, natural_key(title))


def detect_index_doc(folder: FolderRecord, files: List[FileRecord]) -> Optional[FileRecord]:
    """Find the document that represents a folder.

    Tried in order: doc id equal to the folder path; doc id equal to
    ``<folder>/<variant>`` for the folder's destination name, slug and
    source name; a base name of ``index`` or ``readme``; a base name equal
    to one of those variants.

    Args:
        folder: Folder to inspect
        files: Documents directly inside that folder

    Returns:
        The index document, or None
    """
    folder_path = folder.dest_dir
    variants = []
    for variant in (folder.final_dest_folder, folder.dest_slug, folder.source_name):
        variant = strip_ext(variant or "").lower()
        if variant and variant not in variants:
            variants.append(variant)

    for record in files:
        if record.doc_id == folder_path:
            return record

    for variant in variants:
        expected = f"{folder_path}/{variant}" if folder_path else variant
        for record in files:
            if record.doc_id.lower() == expected:
                return record

    for record in files:
        if strip_ext(record.dest_slug).lower() in INDEX_BASENAMES:
            return record

    for record in files:
        if strip_ext(record.dest_slug).lower() in variants:
            return record
    return None


def load_crosslinks(path: Optional[Path], log: StatusLogger) -> List[ExternalRefNode]:
    """Read external reference links for the Intro group.

    The file holds a JSON list of ``{"id", "label"}`` objects, or an object
    with such a list under ``links``. A missing file yields no links; an
    unreadable one is reported and ignored.
    """
    if path is None or not path.is_file():
        log.debug(f"No intro cross-links file at {path}")
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        log.warning(f"Failed to load intro cross-links from {path}: {e}")
        return []

    entries = data.get("links") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        log.warning(f"Ignoring intro cross-links in {path}: expected a list or an object with 'links'")
        return []

    links = []
    for entry in entries:
        if isinstance(entry, dict) and isinstance(entry.get("id"), str) and isinstance(entry.get("label"), str):
            links.append(ExternalRefNode(target=entry["id"], label=entry["label"]))
        else:
            log.warning(f"Skipping invalid intro cross-link in {path}: {entry!r}")
    log.debug(f"Loaded {len(links)} intro cross-links")
    return links


class SidebarGenerator:
    """Builds one navigation group for the root and one per top-level folder."""

    def __init__(self, index: Index, config: ImportConfig, log: Optional[StatusLogger] = None):
        self.index = index
        self.config = config
        self.log = log or StatusLogger()

    def build(self) -> Dict[str, List[NavigationNode]]:
        """Build every navigation group.

        Returns:
            Ordered mapping of group key to its items, ``Intro`` first
        """
        root = self.index.root
        groups: Dict[str, List[NavigationNode]] = {INTRO_GROUP: self._build_intro(root)}

        for folder in self._sorted_subfolders(root):
            items = self._build_top_level(folder)
            if not items:
                self.log.debug(f"Skipping sidebar for {folder.source_path}: no documents")
                continue
            key = folder_label(folder)
            if key in groups:
                suffix = 2
                while f"{key} {suffix}" in groups:
                    suffix += 1
                self.log.warning(f'Sidebar key "{key}" is used more than once; '
                                 f'using "{key} {suffix}" for {folder.source_path}')
                key = f"{key} {suffix}"
            groups[key] = items
        return groups

    def _sorted_subfolders(self, folder: FolderRecord) -> List[FolderRecord]:
        return sorted(self.index.subfolders_of(folder), key=lambda f: sort_key(f.sidebar_position, f.dest_title))

    def _sorted_documents(self, records: List[FileRecord]) -> List[FileRecord]:
        return sorted(records, key=lambda r: sort_key(r.sidebar_position, r.dest_title))

    def _leaf(self, record: FileRecord) -> DocumentNode:
        return DocumentNode(doc_id=record.doc_id, label=document_label(record), position=record.sidebar_position)

    def _build_intro(self, root: FolderRecord) -> List[NavigationNode]:
        items: List[NavigationNode] = [self._leaf(r) for r in self._sorted_documents(self.index.files_in(root))]
        items.extend(load_crosslinks(self.config.crosslinks_path, self.log))
        return items

    def _build_top_level(self, folder: FolderRecord) -> List[NavigationNode]:
        files = self.index.files_in(folder)
        index_doc = detect_index_doc(folder, files)
        categories = self._categories(self._sorted_subfolders(folder))
        others = self._sorted_documents([r for r in files if r is not index_doc])

        if index_doc is not None and not categories and not others:
            return [self._leaf(index_doc)]

        items: List[NavigationNode] = []
        if index_doc is not None:
            items.append(self._leaf(index_doc))
        items.extend(categories)
        items.extend(self._leaf(r) for r in others)
        return items

    def _categories(self, folders: List[FolderRecord]) -> List[CategoryNode]:
        """Categories for folders, leaving out those with nothing to show."""
        categories = []
        for folder in folders:
            category = self._build_category(folder)
            if category.children or category.link_doc_id:
                categories.append(category)
        return categories

    def _build_category(self, folder: FolderRecord) -> CategoryNode:
        files = self.index.files_in(folder)
        index_doc = detect_index_doc(folder, files)

        children: List[NavigationNode] = self._categories(self._sorted_subfolders(folder))
        children.extend(self._leaf(r) for r in self._sorted_documents([r for r in files if r is not index_doc]))

        return CategoryNode(
            label=folder_label(folder),
            children=children,
            link_doc_id=index_doc.doc_id if index_doc else None,
        )

    def render_debug_tree(self) -> str:
        """Indented text view of folders and documents with ids and positions."""
        root = self.index.root
        lines = [f'Root: {root.source_path}  (dest_dir="{root.dest_dir}")']

        def fmt(position: int) -> str:
            return str(position) if position >= 0 else "auto"

        def walk(folder: FolderRecord, depth: int) -> None:
            indent = "  " * depth
            files = self.index.files_in(folder)
            index_doc = detect_index_doc(folder, files)
            lines.append(f'{indent}- [dir] {folder.dest_title} (final="{folder.final_dest_folder}", '
                         f'pos={fmt(folder.sidebar_position)}, key="{folder.dest_dir}")')
            if index_doc is not None:
                lines.append(f'{indent}  - [index] {index_doc.dest_title} (docId={index_doc.doc_id}, '
                             f'pos={fmt(index_doc.sidebar_position)}, file="{index_doc.file_name}")')
            for record in self._sorted_documents([r for r in files if r is not index_doc]):
                lines.append(f'{indent}  - [doc] {record.dest_title} (docId={record.doc_id}, '
                             f'pos={fmt(record.sidebar_position)}, slug="{record.dest_slug}", '
                             f'file="{record.file_name}")')
            for sub in self._sorted_subfolders(folder):
                walk(sub, depth + 1)

        walk(root, 0)
        return "\n".join(lines) + "\n"


def sidebars_to_dict(groups: Dict[str, List[NavigationNode]]) -> Dict[str, List[Dict[str, Any]]]:
    return {key: [node.to_sidebar_item() for node in items] for key, items in groups.items()}


def _to_ts(value: Any, indent: str = "") -> str:
    if isinstance(value, list):
        if not value:
            return "[]"
        inner = ",\n".join(f"{indent}  {_to_ts(v, indent + '  ')}" for v in value)
        return f"[\n{inner}\n{indent}]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        entries = []
        for k, v in value.items():
            key = k if _IDENTIFIER.match(k) else json.dumps(k, ensure_ascii=False)
            entries.append(f"{indent}  {key}: {_to_ts(v, indent + '  ')}")
        return "{\n" + ",\n".join(entries) + f"\n{indent}}}"
    return json.dumps(value, ensure_ascii=False)


def render_sidebars_ts(groups: Dict[str, List[NavigationNode]]) -> str:
    """Render groups as a ``sidebars.ts`` module.

    Output depends only on the groups, so re-running an import on an
    unchanged tree leaves the file byte-identical.
    """
    body = _to_ts(sidebars_to_dict(groups))
    return f"{SIDEBARS_TS_HEADER}const sidebars: SidebarsConfig = {body};\n\nexport default sidebars;\n"


def render_sidebars_json(groups: Dict[str, List[NavigationNode]]) -> str:
    return json.dumps(sidebars_to_dict(groups), indent=2, ensure_ascii=False) + "\n"


def build_navbar_items(groups: Dict[str, List[NavigationNode]]) -> List[Dict[str, str]]:
    """One ``docSidebar`` navbar entry per group, in group order."""
    return [
        {"type": "docSidebar", "sidebarId": key, "position": "left", "label": key}
        for key in groups
    ]


def write_sidebars(groups: Dict[str, List[NavigationNode]], path: Path) -> Path:
    """Write the sidebar declaration; a ``.json`` path gets JSON, anything else TypeScript."""
    if path.suffix.lower() == ".json":
        text = render_sidebars_json(groups)
    else:
        text = render_sidebars_ts(groups)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
