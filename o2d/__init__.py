"""O2D - Import Obsidian notes into a Docusaurus docs tree."""

__version__ = "0.1.0"
__title__ = "O2D"
__license__ = "MIT"

from .converter import ObsidianToDocsConverter
from .indexer import IndexBuilder, build_index
from .link_processor import LinkProcessor
from .embeds import EmbedExpander
from .sidebar import SidebarGenerator, render_sidebars_json, render_sidebars_ts
from .models import DuplicateDocIdError, FolderPositionPriority, ImportConfig, ImportResult, O2DError
from .code_block_detector import CodeBlockDetector, detect_code_blocks

__all__ = [
    "ObsidianToDocsConverter",
    "IndexBuilder",
    "build_index",
    "LinkProcessor",
    "EmbedExpander",
    "SidebarGenerator",
    "render_sidebars_json",
    "render_sidebars_ts",
    "ImportConfig",
    "ImportResult",
    "FolderPositionPriority",
    "O2DError",
    "DuplicateDocIdError",
    "CodeBlockDetector",
    "detect_code_blocks",
    "__version__",
    "__title__",
]
