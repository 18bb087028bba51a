"""Source tree walk that builds the O2D index."""

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .logger import StatusLogger
from .models import (
    DuplicateDocIdError,
    FileRecord,
    FolderPositionPriority,
    FolderRecord,
    ImportConfig,
    Index,
)
from .utils import (
    compute_doc_id,
    get_int,
    get_str,
    is_document,
    normalize_path,
    pad_number,
    parse_numeric_prefix,
    slugify,
    split_front_matter,
)

SNAPSHOT_NAME = "master-index.json"
INDEX_FILE_STEMS = ("index", "readme")
INDEX_FILE_EXTENSIONS = (".md", ".txt")
SUGGESTED_POSITION_STEP = 10


class IndexBuilder:
    """Walks the source root once and derives every file and folder identity."""

    def __init__(self, config: ImportConfig, log: Optional[StatusLogger] = None):
        """Initialize index builder.

        Args:
            config: Import configuration
            log: Status logger, defaults to the ``o2d`` logger
        """
        self.config = config
        self.log = log or StatusLogger()
        self.index = Index(source_root=config.source_root.resolve())

    def build(self) -> Index:
        """Walk the source tree and return the completed index.

        Returns:
            The index, read-only from here on except ``reference_count``

        Raises:
            FileNotFoundError: If the source root is missing
            DuplicateDocIdError: If ``strict_doc_ids`` is set and two
                documents share a doc id
        """
        root = self.index.source_root
        if not root.is_dir():
            raise FileNotFoundError(f"Source directory does not exist: {root}")

        self._walk(root, parent_dest_dir="", depth=0, suggested_position=0)
        self._check_duplicate_names()
        self._check_duplicate_doc_ids()
        self.write_snapshot()

        self.log.verbose(f"Index built with {len(self.index.files)} files and {len(self.index.folders)} folders.")
        return self.index

    def _list_entries(self, directory: Path) -> Tuple[List[str], List[str]]:
        """Sorted (subdirectories, files) of a directory, ignored names dropped."""
        prefix = self.config.ignore_prefix
        subdirs: List[str] = []
        files: List[str] = []
        with os.scandir(directory) as entries:
            for entry in entries:
                if prefix and entry.name.startswith(prefix):
                    continue
                if entry.is_dir():
                    subdirs.append(entry.name)
                elif entry.is_file():
                    files.append(entry.name)
        return sorted(subdirs), sorted(files)

    def _read_metadata(self, path: Path) -> Dict[str, Any]:
        """Front matter of a note; unreadable or malformed metadata yields ``{}``."""
        try:
            raw = path.read_text(encoding="utf-8-sig")
            metadata, _, _ = split_front_matter(raw)
        except (OSError, ValueError) as e:
            self.log.warning(f"Could not read metadata from {path}: {e}")
            return {}
        return metadata

    @staticmethod
    def find_index_file(folder_name: str, files_in_dir: List[str]) -> Optional[str]:
        """Pick the file that describes a folder.

        Candidates, in order: ``index``, ``readme``, the folder's own name,
        the folder's slug; each with ``.md`` then ``.txt``. Matching is
        case-insensitive.

        Args:
            folder_name: Source folder name
            files_in_dir: Sorted file names in that folder

        Returns:
            Matching file name as found on disk, or None
        """
        by_lower: Dict[str, str] = {}
        for name in files_in_dir:
            by_lower.setdefault(name.lower(), name)

        stems = list(INDEX_FILE_STEMS) + [folder_name.lower(), slugify(folder_name)]
        for stem in stems:
            for ext in INDEX_FILE_EXTENSIONS:
                found = by_lower.get(stem + ext)
                if found:
                    return found
        return None

    def _folder_position(self, name: str, metadata: Dict[str, Any], depth: int, suggested: int) -> int:
        """Position cascade: root, then prefix/metadata in configured order, then suggestion."""
        if depth == 0:
            return 0

        from_prefix = parse_numeric_prefix(name)
        from_metadata = get_int(metadata, "folder_position")
        if from_metadata is not None and from_metadata < 0:
            from_metadata = None

        if self.config.folder_position_priority == FolderPositionPriority.INDEX_METADATA_FIRST:
            candidates = (from_metadata, from_prefix)
        else:
            candidates = (from_prefix, from_metadata)
        for candidate in candidates:
            if candidate is not None and candidate >= 0:
                return candidate
        return suggested

    def _walk(self, directory: Path, parent_dest_dir: str, depth: int, suggested_position: int) -> int:
        """Index one directory and its subtree.

        Returns:
            The position assigned to this folder, used to suggest the next
            sibling's position
        """
        subdirs, files_in_dir = self._list_entries(directory)
        folder_name = directory.name

        index_file = self.find_index_file(folder_name, files_in_dir)
        index_metadata = self._read_metadata(directory / index_file) if index_file else {}

        position = self._folder_position(folder_name, index_metadata, depth, suggested_position)
        folder_title = get_str(index_metadata, "title") or folder_name
        folder_slug = slugify(get_str(index_metadata, "slug") or folder_name) or slugify(folder_name)

        if depth == 0:
            final_dest_folder = ""
            dest_dir = ""
        else:
            final_dest_folder = folder_slug
            if self.config.number_folders:
                final_dest_folder = f"{pad_number(position)}-{folder_slug}"
            dest_dir = normalize_path(f"{parent_dest_dir}/{final_dest_folder}")

        folder = FolderRecord(
            source_path=directory,
            source_name=folder_name,
            dest_dir=dest_dir,
            dest_slug=folder_slug,
            dest_title=folder_title,
            sidebar_position=position,
            final_dest_folder=final_dest_folder,
            index_file=index_file,
        )
        if dest_dir in self.index.folder_by_path:
            other = self.index.folder_by_path[dest_dir]
            self.log.warning(f"Folders {other.source_path} and {directory} both map to destination '{dest_dir}'")
        self.index.folders.append(folder)
        self.index.folder_by_path[dest_dir] = folder
        if index_file:
            self.log.debug(f"Found folder index file: {index_file} in {directory}")

        for file_name in files_in_dir:
            self._index_file(directory, file_name, dest_dir)
        self.log.verbose(f"Indexed {len(files_in_dir)} files in folder: {directory}")

        highest = 0
        for sub in subdirs:
            sub_position = self._walk(directory / sub, dest_dir, depth + 1, highest + SUGGESTED_POSITION_STEP)
            highest = max(highest, sub_position)

        return position

    def _index_file(self, directory: Path, file_name: str, dest_dir: str) -> None:
        source_path = directory / file_name
        stem, ext = os.path.splitext(file_name)

        if not is_document(file_name):
            # Attachment ids keep the extension
            dest_slug = (slugify(stem) or stem) + ext.lower()
            record = FileRecord(
                source_path=source_path,
                source_dir=directory,
                source_name=stem,
                source_ext=ext,
                dest_dir=dest_dir,
                dest_slug=dest_slug,
                dest_title=stem,
                doc_id=f"{dest_dir}/{dest_slug}" if dest_dir else dest_slug,
                is_document=False,
            )
            self.index.files.append(record)
            self.index.attachment_by_name.setdefault(file_name.lower(), []).append(record)
            self.log.debug(f"Indexed attachment: {source_path}")
            return

        metadata = self._read_metadata(source_path)
        title = get_str(metadata, "title")
        slug = get_str(metadata, "slug")
        position = get_int(metadata, "sidebar_position")

        dest_title = title or stem
        # An authored slug may be a URL path; only its last segment names the file
        dest_base = slugify(slug.strip("/").split("/")[-1]) if slug else ""
        dest_base = dest_base or slugify(stem) or stem
        sidebar_position = position if position is not None else -1
        if sidebar_position < 0 and self.config.infer_file_positions:
            sidebar_position = parse_numeric_prefix(stem)

        dest_slug = dest_base + ext
        record = FileRecord(
            source_path=source_path,
            source_dir=directory,
            source_name=stem,
            source_ext=ext,
            dest_dir=dest_dir,
            dest_slug=dest_slug,
            dest_title=dest_title,
            doc_id=compute_doc_id(dest_dir, dest_slug),
            sidebar_position=sidebar_position,
            has_yaml_title=title is not None,
            has_yaml_slug=slug is not None,
            has_yaml_sidebar=position is not None,
        )
        self.index.files.append(record)

        self.index.file_by_title[dest_title.lower()] = record
        self.index.file_by_slug[dest_base.lower()] = record
        self.index.file_by_name.setdefault(stem.lower(), []).append(record)

        shown = sidebar_position if sidebar_position >= 0 else "(auto)"
        self.log.debug(f'Indexed file: {source_path} => Title: "{dest_title}", Slug: "{dest_base}", '
                       f"Sidebar Position: {shown}")

    def _check_duplicate_names(self) -> None:
        for key, records in self.index.file_by_name.items():
            if len(records) > 1:
                self.log.warning(f'Duplicate source filename detected for wikilink resolution: "{key}"')
                for record in records:
                    self.log.verbose(f"  Duplicate: {record.source_path}")

    def _check_duplicate_doc_ids(self) -> None:
        seen: Dict[str, FileRecord] = {}
        for record in self.index.documents:
            other = seen.get(record.doc_id)
            if other is None:
                seen[record.doc_id] = record
                continue
            message = f'Duplicate doc id "{record.doc_id}": {other.source_path} and {record.source_path}'
            if self.config.strict_doc_ids:
                raise DuplicateDocIdError(message)
            self.log.warning(message)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready dump of every record and lookup map."""
        def dump(record) -> Dict[str, Any]:
            return {k: str(v) if isinstance(v, Path) else v for k, v in asdict(record).items()}

        return {
            "_comment": "Generated by o2d for debugging. Do not edit.",
            "source_root": str(self.index.source_root),
            "files": [dump(f) for f in self.index.files],
            "folders": [dump(f) for f in self.index.folders],
            "file_by_title": {k: v.doc_id for k, v in self.index.file_by_title.items()},
            "file_by_slug": {k: v.doc_id for k, v in self.index.file_by_slug.items()},
            "file_by_name": {k: [r.doc_id for r in v] for k, v in self.index.file_by_name.items()},
            "folder_by_path": {k: str(v.source_path) for k, v in self.index.folder_by_path.items()},
        }

    def write_snapshot(self) -> Optional[Path]:
        """Write ``master-index.json`` to the debug directory.

        Returns:
            Path written, or None if writing failed (logged as a warning)
        """
        path = self.config.debug_dir / SNAPSHOT_NAME
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.snapshot(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.log.warning(f"Could not write index snapshot {path}: {e}")
            return None
        return path


def build_index(config: ImportConfig, log: Optional[StatusLogger] = None) -> Index:
    """Build the index for ``config.source_root``."""
    return IndexBuilder(config, log).build()
