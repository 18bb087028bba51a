"""Command-line interface for O2D converter."""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from . import __title__, __version__
from .converter import ObsidianToDocsConverter
from .logger import VERBOSE, StatusLogger, add_file_handlers, setup_logger
from .models import FolderPositionPriority, ImportConfig, O2DError

DEFAULT_FIXTURE_VAULT = "tests/fixtures/vault"

# Config file keys that hold paths
PATH_KEYS = {"source_root", "dest_root", "sidebar_path", "debug_dir", "navbar_path", "crosslinks_path"}


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    description = f"""{__title__} ver {__version__}

Import an Obsidian vault into a Docusaurus docs folder.

Features:
  - Wikilinks ([[Note#Heading|Alias]]) rewritten to resolved doc links
  - Embeds (![[Note#Section]], ![[image.png]]) expanded inline
  - Multi-sidebar sidebars.ts generated from folders and front matter
  - Diagnostics: index snapshot, docs tree, unresolved-links log

Examples:
  # Import a vault into a Docusaurus site's docs folder
  o2d "/path/to/vault" "/path/to/site/docs"

  # Start from a clean docs folder and number folders by position
  o2d "/path/to/vault" "/path/to/site/docs" --clean-dest --number-folders

  # Read options from a TOML file, overriding one of them
  o2d "/path/to/vault" "/path/to/site/docs" --config o2d.toml --base-url /docs/

  # Import the bundled fixture vault instead of SOURCE
  o2d "/path/to/vault" "/path/to/site/docs" -t
"""

    parser = argparse.ArgumentParser(
        prog=__title__.lower(),
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "source",
        help="Path to the Obsidian vault (or the folder of it to import)",
        type=Path,
    )

    parser.add_argument(
        "dest",
        help="Path to the Docusaurus docs directory",
        type=Path,
    )

    parser.add_argument(
        "--config",
        help="TOML file with import options; command-line flags take precedence",
        type=Path,
        metavar="FILE",
    )

    parser.add_argument(
        "--clean-dest",
        help="Delete previous output in DEST (keeps .gitkeep and _category_.json)",
        action="store_true",
        default=None,
    )

    parser.add_argument(
        "--sidebar-path",
        help="Where to write the sidebar declaration (default: DEST/../sidebars.ts; .json writes JSON)",
        type=Path,
        metavar="PATH",
    )

    parser.add_argument(
        "--navbar-path",
        help="Also write navbar items (one per sidebar) as JSON to this path",
        type=Path,
        metavar="PATH",
    )

    parser.add_argument(
        "--crosslinks",
        dest="crosslinks_path",
        help="JSON file of extra links for the Intro sidebar (default: DEST/../intro-crosslinks.json)",
        type=Path,
        metavar="PATH",
    )

    parser.add_argument(
        "--debug-dir",
        help="Directory for diagnostics (default: DEST/../import-debug)",
        type=Path,
        metavar="DIR",
    )

    parser.add_argument(
        "--base-url",
        help="URL prefix for rewritten links (default: /)",
        type=str,
        metavar="URL",
    )

    parser.add_argument(
        "--number-folders",
        help="Prefix destination folders with their zero-padded position (010-guides)",
        action="store_true",
        default=None,
    )

    parser.add_argument(
        "--infer-file-positions",
        help="Use a leading number in a file name as its sidebar position",
        action="store_true",
        default=None,
    )

    parser.add_argument(
        "--index-position-first",
        help="Let folder_position in a folder's index file win over a numeric folder-name prefix",
        action="store_true",
        default=None,
    )

    parser.add_argument(
        "--strict-doc-ids",
        help="Fail when two documents end up with the same doc id",
        action="store_true",
        default=None,
    )

    parser.add_argument(
        "--test-fixtures", "-t",
        help=f"Import the fixture vault DIR instead of SOURCE (default: {DEFAULT_FIXTURE_VAULT}); "
             "place after the positional arguments",
        nargs="?",
        const=DEFAULT_FIXTURE_VAULT,
        type=Path,
        metavar="DIR",
    )

    parser.add_argument(
        "--verbose", "-v",
        help="Enable verbose logging",
        action="store_true",
    )

    parser.add_argument(
        "--debug", "-d",
        help="Enable debug logging",
        action="store_true",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"{__title__} {__version__}"
    )

    return parser


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read import options from a TOML file.

    Keys mirror ``ImportConfig`` field names. An ``[o2d]`` table is used
    when present, so the options can share a file with other tools.

    Args:
        path: TOML file

    Returns:
        Options dictionary ready to pass to ``ImportConfig``

    Raises:
        ValueError: If the file cannot be parsed or has unknown keys
    """
    try:
        data = toml.load(path)
    except (OSError, toml.TomlDecodeError) as e:
        raise ValueError(f"Could not read config file {path}: {e}") from e

    if isinstance(data.get("o2d"), dict):
        data = data["o2d"]

    known = {f.name for f in dataclasses.fields(ImportConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown option(s) in {path}: {', '.join(unknown)}")

    base = path.parent
    options = dict(data)
    for key in PATH_KEYS & set(options):
        value = Path(options[key]).expanduser()
        options[key] = value if value.is_absolute() else base / value
    return options


def validate_paths(source: Path, dest: Path) -> None:
    """Validate input paths.

    Args:
        source: Path to the vault
        dest: Path to the docs directory

    Raises:
        SystemExit: If paths are invalid
    """
    if not source.is_dir():
        print(f"Error: Source directory not found: {source}", file=sys.stderr)
        sys.exit(1)

    if not dest.is_dir():
        print(f"Error: Destination directory not found: {dest}", file=sys.stderr)
        sys.exit(1)


def create_config_from_args(args: argparse.Namespace) -> ImportConfig:
    """Create ImportConfig from a config file (if any) and parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        ImportConfig instance
    """
    options: Dict[str, Any] = load_config_file(args.config) if args.config else {}

    source = args.test_fixtures if args.test_fixtures is not None else args.source
    options["source_root"] = source.resolve()
    options["dest_root"] = args.dest.resolve()

    for name in ("sidebar_path", "navbar_path", "crosslinks_path", "debug_dir", "base_url",
                 "clean_dest", "number_folders", "infer_file_positions", "strict_doc_ids"):
        value = getattr(args, name)
        if value is not None:
            options[name] = value

    if args.index_position_first:
        options["folder_position_priority"] = FolderPositionPriority.INDEX_METADATA_FIRST

    return ImportConfig(**options)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Setup logging
    if args.debug:
        log_level = logging.DEBUG
    elif args.verbose:
        log_level = VERBOSE
    else:
        log_level = logging.INFO
    logger = setup_logger(level=log_level)
    log = StatusLogger(logger)

    source = args.test_fixtures if args.test_fixtures is not None else args.source
    if args.test_fixtures is not None:
        log.status(f"Test fixture mode: importing {source}")
    validate_paths(source, args.dest)

    try:
        config = create_config_from_args(args)
        add_file_handlers(logger, config.debug_dir)

        converter = ObsidianToDocsConverter(config, log)
        result = converter.convert()
    except KeyboardInterrupt:
        print("\n\nImport interrupted by user", file=sys.stderr)
        sys.exit(1)
    except (O2DError, ValueError, OSError) as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.verbose or args.debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)

    # Unresolved links and per-file errors are reported but don't fail the run
    if result.success:
        print("\nImport completed successfully!")
    else:
        print(f"\nImport completed with {len(result.errors)} errors:")
        for error in result.errors:
            print(f"   - {error}")
    print(f"   {result.documents_transformed} documents transformed, {result.files_copied} files copied")
    if result.unresolved_links:
        print(f"   {result.unresolved_links} unresolved links, see {config.debug_dir / 'unresolved-links.log'}")


if __name__ == "__main__":
    main()
