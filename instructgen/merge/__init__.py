"""Section parsing and baseline/override merging."""

from .merger import ContentMerger, build_source_summary
from .sections import content_hash, normalize_content, parse_front_matter, parse_sections

__all__ = [
    "ContentMerger",
    "build_source_summary",
    "content_hash",
    "normalize_content",
    "parse_front_matter",
    "parse_sections",
]
