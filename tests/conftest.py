"""Shared fixtures for O2D tests."""

import logging
from pathlib import Path
from typing import Callable, Dict, Union

import pytest

from o2d.models import ImportConfig


@pytest.fixture(autouse=True)
def reset_o2d_logger():
    """Let caplog see o2d records even after a CLI test called setup_logger."""
    logger = logging.getLogger("o2d")

    def reset():
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    reset()
    yield
    reset()


def write_files(root: Path, files: Dict[str, Union[str, bytes]]) -> Path:
    """Create ``files`` (relative path -> content) under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_vault(tmp_path: Path) -> Callable[[Dict[str, Union[str, bytes]]], Path]:
    """Build a vault under tmp_path/vault from a dict of files."""
    def _make(files: Dict[str, Union[str, bytes]]) -> Path:
        return write_files(tmp_path / "vault", files)
    return _make


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """An empty Docusaurus docs folder at tmp_path/site/docs."""
    path = tmp_path / "site" / "docs"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def make_config(tmp_path: Path, docs_dir: Path) -> Callable[..., ImportConfig]:
    """ImportConfig for tmp_path/vault -> tmp_path/site/docs with overrides."""
    def _make(**overrides) -> ImportConfig:
        source = tmp_path / "vault"
        source.mkdir(exist_ok=True)
        return ImportConfig(source_root=source, dest_root=docs_dir, **overrides)
    return _make
