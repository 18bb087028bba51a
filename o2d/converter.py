"""Main converter class for Obsidian to Docusaurus imports."""

import json
import os
import shutil
import stat
from pathlib import Path
from typing import Dict, List, Optional

import frontmatter

from .embeds import EmbedExpander
from .indexer import IndexBuilder
from .link_processor import LinkProcessor
from .logger import StatusLogger
from .models import FileRecord, ImportConfig, ImportResult, Index, NavigationNode
from .sidebar import DEBUG_TREE_NAME, SidebarGenerator, build_navbar_items, write_sidebars
from .utils import split_front_matter, strip_ext, strip_front_matter

KEEP_ON_CLEAN = {".gitkeep", "_category_.json"}
READ_ONLY_MODE = 0o444


class ObsidianToDocsConverter:
    """Runs the import: clean, index, sidebars, docs tree, per-file transform, summary."""

    def __init__(self, config: ImportConfig, log: Optional[StatusLogger] = None):
        """Initialize converter with configuration.

        Args:
            config: Import configuration
            log: Status logger, defaults to the ``o2d`` logger
        """
        self.config = config
        self.log = log or StatusLogger()
        self.result = ImportResult()
        self.index: Optional[Index] = None
        self.sidebars: Dict[str, List[NavigationNode]] = {}
        self.link_processor: Optional[LinkProcessor] = None
        self.embed_expander: Optional[EmbedExpander] = None

    def convert(self) -> ImportResult:
        """Perform the complete import.

        Returns:
            Import result with counters, warnings and per-file errors

        Raises:
            FileNotFoundError: If the source root disappeared
            O2DError: On fatal index validation failures
        """
        self.log.status("Starting import...")

        if self.config.clean_dest:
            self.clean_destination()

        self.index = IndexBuilder(self.config, self.log).build()
        self.write_navigation()
        self.create_docs_tree()
        self.warn_on_basename_collisions()

        self.link_processor = LinkProcessor(self.index, self.config, self.log, self.result)
        self.embed_expander = EmbedExpander(self.index, self.config, self.log, self.result, self.link_processor)
        self.link_processor.start_unresolved_log()

        for record in self.index.files:
            self.process_file(record)

        self.log_summary()
        return self.result

    def clean_destination(self) -> int:
        """Delete previous output, keeping ``.gitkeep`` and ``_category_.json``.

        Returns:
            Number of files removed
        """
        removed = self._clean_folder(self.config.dest_root)
        self.log.verbose(f"Cleaned target folder: {self.config.dest_root} - {removed} files removed")
        return removed

    def _clean_folder(self, folder: Path) -> int:
        removed = 0
        for entry in sorted(folder.iterdir()):
            if entry.is_dir() and not entry.is_symlink():
                removed += self._clean_folder(entry)
                if not any(entry.iterdir()):
                    entry.rmdir()
            elif entry.name not in KEEP_ON_CLEAN:
                self.log.debug(f"Removing file: {entry}")
                _remove_file(entry)
                removed += 1
        return removed

    def write_navigation(self) -> None:
        """Generate sidebars and write the declaration, debug tree and navbar items."""
        generator = SidebarGenerator(self.index, self.config, self.log)
        self.sidebars = generator.build()

        path = write_sidebars(self.sidebars, self.config.sidebar_path)
        self.log.status(f"Wrote multi-sidebar file: {path}")

        tree_path = self.config.debug_dir / DEBUG_TREE_NAME
        try:
            tree_path.parent.mkdir(parents=True, exist_ok=True)
            tree_path.write_text(generator.render_debug_tree(), encoding="utf-8")
            self.log.verbose(f"Wrote debug tree: {tree_path}")
        except OSError as e:
            self.log.warning(f"Could not write debug tree {tree_path}: {e}")

        if self.config.navbar_path is not None:
            navbar_path = self.config.navbar_path
            navbar_path.parent.mkdir(parents=True, exist_ok=True)
            navbar_path.write_text(json.dumps(build_navbar_items(self.sidebars), indent=2) + "\n", encoding="utf-8")
            self.log.verbose(f"Wrote navbar items: {navbar_path}")

    def create_docs_tree(self) -> None:
        for folder in self.index.folders:
            (self.config.dest_root / folder.dest_dir).mkdir(parents=True, exist_ok=True)

    def warn_on_basename_collisions(self) -> Dict[str, List[str]]:
        """Warn once per destination base name shared by several documents.

        Returns:
            Colliding base name to the doc ids sharing it
        """
        by_base: Dict[str, List[str]] = {}
        for record in self.index.documents:
            by_base.setdefault(strip_ext(record.dest_slug).lower(), []).append(record.doc_id)

        collisions = {base: ids for base, ids in by_base.items() if len(ids) > 1}
        for base, ids in collisions.items():
            message = f'basename collision for "{base}": ' + ", ".join(ids)
            self.log.warning(message)
            self.result.warnings.append(message)
        return collisions

    def process_file(self, record: FileRecord) -> bool:
        """Copy or transform one file; failures are logged and recorded, never raised.

        Returns:
            True if the destination file was written
        """
        dest_path = self.config.dest_root / record.dest_rel_path
        self.log.verbose(f"Processing file: {record.source_path} -> {dest_path}")
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            if record.is_document:
                self._write_document(record, dest_path, self.transform_document(record))
                self.result.documents_transformed += 1
            else:
                _remove_file(dest_path)
                shutil.copyfile(record.source_path, dest_path)
                self.log.debug(f"Copied media/other file: {record.source_path} -> {dest_path}")
            self.result.files_copied += 1
            return True
        except Exception as e:
            error_msg = f"Error processing {record.source_path}: {e}"
            self.log.error(error_msg, exc_info=self.log.is_verbose())
            self.result.errors.append(error_msg)
            return False

    def transform_document(self, record: FileRecord) -> str:
        """Return the final text of a document: metadata block plus rewritten body."""
        raw = record.source_path.read_text(encoding="utf-8-sig")
        try:
            metadata, body, line_offset = split_front_matter(raw)
        except ValueError as e:
            self.log.warning(f"{record.source_path}: {e}; using file name defaults")
            metadata = {}
            body = strip_front_matter(raw)
            line_offset = raw[:len(raw) - len(body)].count("\n")

        body, source_map = self.embed_expander.expand_with_map(body, record)
        body = self.link_processor.convert_content(body, record.source_path, line_offset, source_map)

        if not record.has_yaml_title:
            metadata["title"] = record.dest_title
        if not record.has_yaml_slug:
            metadata["slug"] = strip_ext(record.dest_slug)
        if not record.has_yaml_sidebar and record.sidebar_position >= 0:
            metadata["sidebar_position"] = record.sidebar_position

        post = frontmatter.Post(body.lstrip("\r\n"))
        post.metadata.update(metadata)
        return frontmatter.dumps(post, sort_keys=False) + "\n"

    def _write_document(self, record: FileRecord, dest_path: Path, text: str) -> None:
        _remove_file(dest_path)
        with open(dest_path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        if self.config.read_only_output:
            os.chmod(dest_path, READ_ONLY_MODE)
        self.log.debug(f"Wrote {dest_path} ({record.doc_id})")

    def log_summary(self) -> None:
        self.log.status("--- Import Summary ---")
        self.log.status(f"Files copied: {self.result.files_copied}")
        self.log.status(f"Documents transformed: {self.result.documents_transformed}")
        self.log.status(f"Embeds expanded: {self.result.embeds_expanded}")
        self.log.status(f"Wikilinks rewritten: {self.result.wikilinks_rewritten}")
        self.log.status(f"Unresolved links: {self.result.unresolved_links}")
        if self.result.errors:
            self.log.status(f"Errors: {len(self.result.errors)}")
        if self.log.is_verbose():
            self.log.verbose("Title-to-path map:")
            for title, record in self.index.file_by_title.items():
                self.log.verbose(f'  "{title}" -> {record.dest_rel_path}')


def _remove_file(path: Path) -> None:
    """Delete a file even if an earlier run left it read-only."""
    if not path.exists() and not path.is_symlink():
        return
    try:
        path.unlink()
    except PermissionError:
        os.chmod(path, stat.S_IWUSR | stat.S_IRUSR)
        path.unlink()
