"""Data models for O2D converter."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


class O2DError(Exception):
    """Base class for fatal import errors."""


class DuplicateDocIdError(O2DError):
    """Raised when strict doc id validation finds a collision."""


class FolderPositionPriority(Enum):
    """Which folder position source wins when both are present."""
    NUMERIC_PREFIX_FIRST = "numeric-prefix-first"
    INDEX_METADATA_FIRST = "index-metadata-first"


@dataclass
class ImportConfig:
    """Configuration for an Obsidian to Docusaurus import run."""

    source_root: Path
    dest_root: Path
    sidebar_path: Optional[Path] = None
    debug_dir: Optional[Path] = None
    navbar_path: Optional[Path] = None
    crosslinks_path: Optional[Path] = None
    ignore_prefix: str = "."
    base_url: str = "/"
    folder_position_priority: FolderPositionPriority = FolderPositionPriority.NUMERIC_PREFIX_FIRST
    number_folders: bool = False
    infer_file_positions: bool = False
    strict_doc_ids: bool = False
    clean_dest: bool = False
    read_only_output: bool = True
    max_embed_depth: int = 8

    def __post_init__(self) -> None:
        self.source_root = Path(self.source_root)
        self.dest_root = Path(self.dest_root)
        if not self.source_root.is_dir():
            raise FileNotFoundError(f"Source directory does not exist: {self.source_root}")
        if not self.dest_root.is_dir():
            raise FileNotFoundError(f"Destination directory does not exist: {self.dest_root}")

        if isinstance(self.folder_position_priority, str):
            self.folder_position_priority = FolderPositionPriority(self.folder_position_priority)
        if self.max_embed_depth < 1:
            raise ValueError("max_embed_depth must be at least 1")
        if not self.base_url.endswith("/"):
            self.base_url += "/"

        # Side outputs live next to the docs folder, not inside it
        project_root = self.dest_root.parent
        if self.sidebar_path is None:
            self.sidebar_path = project_root / "sidebars.ts"
        if self.debug_dir is None:
            self.debug_dir = project_root / "import-debug"
        if self.crosslinks_path is None:
            self.crosslinks_path = project_root / "intro-crosslinks.json"
        for name in ("sidebar_path", "debug_dir", "navbar_path", "crosslinks_path"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value))


@dataclass
class FileRecord:
    """One indexed source file and its destination identity."""

    source_path: Path
    source_dir: Path
    source_name: str
    source_ext: str

    dest_dir: str
    dest_slug: str
    dest_title: str
    doc_id: str

    sidebar_position: int = -1

    has_yaml_title: bool = False
    has_yaml_slug: bool = False
    has_yaml_sidebar: bool = False

    is_document: bool = True
    reference_count: int = 0

    @property
    def file_name(self) -> str:
        return self.source_name + self.source_ext

    @property
    def dest_rel_path(self) -> str:
        """Destination path relative to the docs root."""
        return f"{self.dest_dir}/{self.dest_slug}" if self.dest_dir else self.dest_slug


@dataclass
class FolderRecord:
    """One indexed source folder."""

    source_path: Path
    source_name: str

    dest_dir: str
    dest_slug: str
    dest_title: str
    sidebar_position: int
    final_dest_folder: str
    index_file: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return self.dest_dir == ""


@dataclass
class Index:
    """Everything known about the source tree, built once and read-only afterwards."""

    source_root: Path
    files: List[FileRecord] = field(default_factory=list)
    folders: List[FolderRecord] = field(default_factory=list)
    file_by_title: Dict[str, FileRecord] = field(default_factory=dict)
    file_by_slug: Dict[str, FileRecord] = field(default_factory=dict)
    file_by_name: Dict[str, List[FileRecord]] = field(default_factory=dict)
    folder_by_path: Dict[str, FolderRecord] = field(default_factory=dict)
    attachment_by_name: Dict[str, List[FileRecord]] = field(default_factory=dict)

    @property
    def root(self) -> FolderRecord:
        return self.folder_by_path[""]

    @property
    def documents(self) -> List[FileRecord]:
        return [f for f in self.files if f.is_document]

    def files_in(self, folder: FolderRecord) -> List[FileRecord]:
        """Documents directly inside ``folder``."""
        return [f for f in self.files if f.is_document and f.source_dir == folder.source_path]

    def subfolders_of(self, folder: FolderRecord) -> List[FolderRecord]:
        return [f for f in self.folders if f.source_path.parent == folder.source_path and f is not folder]


@dataclass
class CategoryNode:
    """Sidebar category mirroring a folder."""

    label: str
    children: List["NavigationNode"] = field(default_factory=list)
    link_doc_id: Optional[str] = None

    def to_sidebar_item(self) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "type": "category",
            "label": self.label,
            "items": [child.to_sidebar_item() for child in self.children],
        }
        if self.link_doc_id:
            item["link"] = {"type": "doc", "id": self.link_doc_id}
        return item


@dataclass
class DocumentNode:
    """Sidebar leaf pointing at one document."""

    doc_id: str
    label: str
    position: int = -1

    def to_sidebar_item(self) -> Dict[str, Any]:
        return {"type": "doc", "id": self.doc_id, "label": self.label}


@dataclass
class ExternalRefNode:
    """Sidebar reference to a document owned by another sidebar."""

    target: str
    label: str

    def to_sidebar_item(self) -> Dict[str, Any]:
        return {"type": "ref", "id": self.target, "label": self.label}


NavigationNode = Union[CategoryNode, DocumentNode, ExternalRefNode]


@dataclass
class UnresolvedLink:
    """A wikilink that matched nothing in the index."""

    source_path: Path
    line: Union[int, str]
    column: Union[int, str]
    original: str

    def __str__(self) -> str:
        return f"{self.source_path}:{self.line}:{self.column} - Unresolved wikilink: {self.original}"


@dataclass
class ImportResult:
    """Counters and messages accumulated during an import run."""

    files_copied: int = 0
    documents_transformed: int = 0
    wikilinks_rewritten: int = 0
    unresolved_links: int = 0
    embeds_expanded: int = 0
    unresolved: List[UnresolvedLink] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Per-file errors fail the run; unresolved links do not."""
        return len(self.errors) == 0
