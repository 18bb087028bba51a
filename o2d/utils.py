"""Naming and path utilities for O2D converter."""

import posixpath
import re
import unicodedata
from typing import Any, Dict, List, Tuple, Union

import frontmatter
from slugify import slugify as _slugify

DOCUMENT_EXTENSIONS = {".md", ".mdx", ".txt"}
MEDIA_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".bmp"}

# Leading "---" block, same boundaries python-frontmatter uses for YAML
_FRONT_MATTER_PATTERN = re.compile(r"\A---[ \t]*\r?\n(.*?\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_NUMERIC_PREFIX_PATTERN = re.compile(r"^(\d+)[\s._-]")


def slugify(text: str) -> str:
    """Convert text to a lowercase, hyphenated, URL-safe slug.

    Args:
        text: Title, file name or free-text target

    Returns:
        Slug string, possibly empty
    """
    return _slugify(str(text), lowercase=True)


def slugify_path(path_str: str) -> str:
    """Slugify every segment of a slash-separated path.

    Args:
        path_str: Path string to slugify

    Returns:
        Slugified path string
    """
    parts = [slugify(part) for part in normalize_path(path_str).split("/") if part]
    return "/".join(part for part in parts if part)


def slugify_heading(text: str) -> str:
    """Anchor slug for a heading, the way the site generator derives heading ids.

    Args:
        text: Heading text without the leading hashes

    Returns:
        Anchor string without the leading '#'
    """
    text = unicodedata.normalize("NFKD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[`*_~]", "", text)
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"\s+", "-", text.strip())
    text = re.sub(r"-+", "-", text)
    return text.lower()


def normalize_path(path_str: str) -> str:
    """Use forward slashes, collapse repeats, strip leading/trailing slashes."""
    path_str = str(path_str).replace("\\", "/")
    path_str = re.sub(r"/{2,}", "/", path_str)
    return path_str.strip("/")


def strip_ext(name: str) -> str:
    """Remove the last extension from a file name."""
    return posixpath.splitext(name)[0]


def compute_doc_id(dest_dir: str, dest_slug: str) -> str:
    """Canonical document id: ``dest_dir/slug`` without extension.

    Args:
        dest_dir: Destination directory relative to the docs root
        dest_slug: Destination file name including extension

    Returns:
        Doc id with no leading slash and no extension
    """
    dest_dir = normalize_path(dest_dir)
    base = strip_ext(normalize_path(dest_slug))
    return f"{dest_dir}/{base}" if dest_dir else base


def is_document(name: str) -> bool:
    """Markdown and text files are documents; everything else is copied as-is."""
    return posixpath.splitext(str(name))[1].lower() in DOCUMENT_EXTENSIONS


def is_media(name: str) -> bool:
    return posixpath.splitext(str(name))[1].lower() in MEDIA_EXTENSIONS


def parse_numeric_prefix(name: str) -> int:
    """Leading digits followed by a separator ("01-Intro" -> 1), or -1."""
    match = _NUMERIC_PREFIX_PATTERN.match(name)
    return int(match.group(1)) if match else -1


def pad_number(n: int) -> str:
    return str(n).zfill(3)


def natural_key(text: str) -> List[Union[int, str]]:
    """Case-insensitive sort key that orders "Step 2" before "Step 10"."""
    return [int(part) if part.isdigit() else part.casefold() for part in re.split(r"(\d+)", text or "")]


def humanize(slug: str) -> str:
    """Turn "how-to-guides" into "How To Guides"."""
    words = [w for w in re.split(r"[-_/\s]+", slug or "") if w]
    return " ".join(w[0].upper() + w[1:] for w in words)


def _strip_bom(raw: str) -> str:
    return raw[1:] if raw.startswith("\ufeff") else raw


def split_front_matter(raw: str) -> Tuple[Dict[str, Any], str, int]:
    """Split a note into metadata, body and the number of lines the metadata occupied.

    Args:
        raw: Complete file content

    Returns:
        Tuple of (metadata, body, line_offset)

    Raises:
        ValueError: If the front matter is present but cannot be parsed
    """
    raw = _strip_bom(raw)
    match = _FRONT_MATTER_PATTERN.match(raw)
    if not match:
        return {}, raw, 0

    body = raw[match.end():]
    line_offset = match.group(0).count("\n")
    try:
        metadata, _ = frontmatter.parse(raw)
    except Exception as e:
        raise ValueError(f"Malformed front matter: {e}") from e
    return metadata, body, line_offset


def strip_front_matter(raw: str) -> str:
    """Body of a note without its leading metadata block."""
    raw = _strip_bom(raw)
    match = _FRONT_MATTER_PATTERN.match(raw)
    return raw[match.end():] if match else raw


def get_str(metadata: Dict[str, Any], key: str) -> Union[str, None]:
    value = metadata.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def get_int(metadata: Dict[str, Any], key: str) -> Union[int, None]:
    value = metadata.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None
