"""Markdown front-matter and level-2 section parsing for instruction documents."""

from __future__ import annotations

import hashlib
import re
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..models import Provenance, Section

FRONT_MATTER_DELIMITER = "---"

_H1_PATTERN = re.compile(r"^#\s+(\S.*?)\s*$")
_H2_PATTERN = re.compile(r"^##\s+(\S.*?)\s*$")
_FENCE_PREFIXES = ("```", "~~~")
_KEY_VALUE_PATTERN = re.compile(r"^\s*([^:#][^:]*):\s*(.*?)\s*$")
_MARKUP_PATTERN = re.compile(r"[*`_#]+")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_front_matter(text: str) -> Tuple[Optional[str], str]:
    """Return ``(front_matter_block, body)``.

    The block is ``None`` when the document does not open with a ``---`` line
    or when the opening delimiter is never closed; the body is then the whole
    text.
    """
    text = normalize_newlines(text).lstrip("\ufeff")
    lines = text.split("\n")
    if not lines or lines[0].rstrip() != FRONT_MATTER_DELIMITER:
        return None, text
    for index in range(1, len(lines)):
        if lines[index].rstrip() == FRONT_MATTER_DELIMITER:
            block = "\n".join(lines[1:index])
            body = "\n".join(lines[index + 1 :])
            return block, body
    return None, text


def has_unterminated_front_matter(text: str) -> bool:
    stripped = normalize_newlines(text).lstrip("\ufeff")
    first_line = stripped.split("\n", 1)[0]
    return first_line.rstrip() == FRONT_MATTER_DELIMITER and split_front_matter(text)[0] is None


def parse_front_matter(block: Optional[str]) -> Dict[str, Any]:
    """Parse a front-matter block into a mapping.

    Blocks are read as YAML. Blocks that are YAML-like but not valid YAML (for
    example ``applyTo: **/*.ts`` with an unquoted glob) are read as plain
    ``key: value`` lines. Raises ``ValueError`` when valid YAML yields
    something other than a mapping.
    """
    if block is None or not block.strip():
        return {}
    try:
        loaded = yaml.safe_load(block)
    except yaml.YAMLError:
        return _parse_key_value_lines(block)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError("front-matter must be a mapping of key: value pairs")
    return {str(key): value for key, value in loaded.items()}


def _parse_key_value_lines(block: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for line in block.split("\n"):
        match = _KEY_VALUE_PATTERN.match(line)
        if not match or not match.group(2):
            continue
        result[match.group(1).strip()] = _unquote(match.group(2))
    return result


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def parse_sections(text: str, provenance: Provenance) -> List[Section]:
    """Split ``text`` into ordered level-2 sections.

    Front-matter is removed first. Content before the first ``## `` header is
    not part of any section, and header-looking lines inside fenced code
    blocks do not start a new section.
    """
    _, body = split_front_matter(text)
    sections: List[Section] = []
    header: Optional[str] = None
    body_lines: List[str] = []
    in_fence = False

    def _flush() -> None:
        if header is not None:
            sections.append(
                Section(header=header, body="\n".join(body_lines).strip(), provenance=provenance)
            )

    for line in body.split("\n"):
        if not in_fence:
            match = _H2_PATTERN.match(line)
            if match:
                _flush()
                header = match.group(1)
                body_lines = []
                continue
        if line.lstrip().startswith(_FENCE_PREFIXES):
            in_fence = not in_fence
        if header is not None:
            body_lines.append(line)
    _flush()
    return sections


def extract_title(text: Optional[str]) -> Optional[str]:
    """Return the first level-1 header outside front-matter and code fences."""
    if not text:
        return None
    _, body = split_front_matter(text)
    in_fence = False
    for line in body.split("\n"):
        if line.lstrip().startswith(_FENCE_PREFIXES):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = _H1_PATTERN.match(line)
        if match:
            return match.group(1)
    return None


def normalize_content(text: str) -> str:
    """Canonical form used for duplicate detection."""
    normalized = normalize_newlines(text.lower())
    normalized = _MARKUP_PATTERN.sub("", normalized)
    normalized = _WHITESPACE_PATTERN.sub(" ", normalized)
    return normalized.strip()


def content_hash(text: str) -> str:
    return hashlib.sha256(normalize_content(text).encode("utf-8")).hexdigest()


__all__ = [
    "content_hash",
    "extract_title",
    "has_unterminated_front_matter",
    "normalize_content",
    "parse_front_matter",
    "parse_sections",
    "split_front_matter",
]
