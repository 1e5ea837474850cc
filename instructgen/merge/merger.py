"""Section-level merge of a baseline document with organization overrides."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from ..detection.rules import default_apply_to, display_name
from ..errors import InvalidStateError
from ..logging import get_logger
from ..models import LocalGuideline, MergedDocument, Provenance, RemoteDocument, Section
from .sections import (
    content_hash,
    extract_title,
    parse_front_matter,
    parse_sections,
    split_front_matter,
)


class ContentMerger:
    """Combines one baseline and zero or more overrides into a single document.

    Precedence rules:

    * baseline sections are deduplicated by normalized content hash, first wins;
    * an override section whose header already exists replaces that section
      unconditionally, keeping the header's original position;
    * any other override section is dropped when its normalized content was
      already seen under a different header, otherwise appended.

    Overrides are applied in the order given, so later overrides win over
    earlier ones. The result depends only on the inputs, which makes repeated
    merges byte-identical.
    """

    def __init__(self) -> None:
        self.logger = get_logger("merge")

    def merge(
        self,
        baseline: Optional[RemoteDocument],
        overrides: Sequence[LocalGuideline],
        *,
        technology: Optional[str] = None,
    ) -> MergedDocument:
        overrides = list(overrides)
        if baseline is None and not overrides:
            raise InvalidStateError(
                "Cannot merge: neither a baseline nor any override guideline was provided"
            )

        if technology is None:
            technology = baseline.technology if baseline else overrides[0].technology
        technology = technology.lower()
        self.logger.info(
            "Merging %s for %s with %d override(s)",
            "baseline" if baseline else "no baseline",
            technology,
            len(overrides),
        )

        sections: Dict[str, Section] = {}
        seen_hashes: Set[str] = set()

        if baseline is not None:
            parsed = parse_sections(baseline.content, Provenance.BASELINE)
            for section in parsed:
                digest = content_hash(section.body)
                if section.header in sections or digest in seen_hashes:
                    self.logger.debug("Skipping duplicate baseline section: %s", section.header)
                    continue
                sections[section.header] = section
                seen_hashes.add(digest)
            self.logger.debug("Parsed %d sections from baseline %s", len(parsed), baseline.filename)

        for guideline in overrides:
            parsed = parse_sections(guideline.content, Provenance.OVERRIDE)
            for section in parsed:
                digest = content_hash(section.body)
                if section.header in sections:
                    self.logger.debug("Override replacing section: %s", section.header)
                    sections[section.header] = section
                    seen_hashes.add(digest)
                elif digest in seen_hashes:
                    self.logger.debug("Skipping duplicate content in section: %s", section.header)
                else:
                    sections[section.header] = section
                    seen_hashes.add(digest)
            self.logger.debug("Merged %d sections from %s", len(parsed), guideline.path)

        baseline_meta = _baseline_front_matter(baseline)
        override_metas = [_override_front_matter(guideline) for guideline in overrides]
        name = display_name(technology)

        title = (
            _last_text(override_metas, "title")
            or _text(baseline_meta.get("title"))
            or extract_title(baseline.content if baseline else None)
            or _first_title(overrides)
            or f"{name} Instructions"
        )
        description = (
            _last_text(override_metas, "description")
            or _text(baseline_meta.get("description"))
            or f"{name} coding guidelines"
        )
        apply_to = (
            _last_globs(override_metas)
            or _globs(baseline_meta.get("applyTo"))
            or default_apply_to(technology)
        )

        merged = MergedDocument(
            technology=technology,
            title=title,
            description=description,
            apply_to=apply_to,
            sections=list(sections.values()),
            source_summary=build_source_summary(baseline, overrides),
        )
        self.logger.info(
            "Merge complete: %d sections, %s", len(merged.sections), merged.source_summary
        )
        return merged


def build_source_summary(
    baseline: Optional[RemoteDocument], overrides: Sequence[LocalGuideline]
) -> str:
    parts: List[str] = []
    if baseline is not None:
        label = f"baseline {baseline.filename}"
        if baseline.stale:
            label += " (stale catalog)"
        parts.append(label)
    if overrides:
        count = len(overrides)
        names = ", ".join(guideline.filename for guideline in overrides)
        parts.append(f"{count} organization guideline{'s' if count > 1 else ''} ({names})")
    return " + ".join(parts)


def _baseline_front_matter(baseline: Optional[RemoteDocument]) -> Mapping[str, Any]:
    if baseline is None:
        return {}
    block, _ = split_front_matter(baseline.content)
    try:
        return parse_front_matter(block)
    except ValueError:
        return {}


def _override_front_matter(guideline: LocalGuideline) -> Mapping[str, Any]:
    if guideline.front_matter is not None:
        return guideline.front_matter
    block, _ = split_front_matter(guideline.content)
    try:
        return parse_front_matter(block)
    except ValueError:
        return {}


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _last_text(metas: Sequence[Mapping[str, Any]], key: str) -> Optional[str]:
    for meta in reversed(metas):
        text = _text(meta.get(key))
        if text:
            return text
    return None


def _globs(value: Any) -> List[str]:
    if value is None:
        return []
    items = value if isinstance(value, list) else str(value).split(",")
    globs = []
    for item in items:
        glob = str(item).strip().strip("'\"").strip()
        if glob:
            globs.append(glob)
    return globs


def _last_globs(metas: Sequence[Mapping[str, Any]]) -> List[str]:
    for meta in reversed(metas):
        globs = _globs(meta.get("applyTo"))
        if globs:
            return globs
    return []


def _first_title(overrides: Sequence[LocalGuideline]) -> Optional[str]:
    for guideline in overrides:
        title = extract_title(guideline.content)
        if title:
            return title
    return None


__all__ = ["ContentMerger", "build_source_summary"]
