"""Organization guideline overrides stored as ``{technology}[-{aspect}].md`` files."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional

from .errors import MalformedInputError
from .logging import get_logger
from .merge.sections import has_unterminated_front_matter, parse_front_matter, split_front_matter
from .models import LocalGuideline

_FILENAME_PATTERN = re.compile(r"^([a-z]+)(?:-(.+))?$")
_GUIDELINE_SUFFIX = ".md"


class LocalGuidelineRepository:
    """Indexes guideline files in a single directory by technology.

    Files are discovered in lexicographic filename order so that later files
    deterministically override earlier ones during merging. A missing
    directory is treated as empty. Misnamed, unreadable or malformed files are
    skipped and reported as warnings.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory).expanduser()
        self.logger = get_logger("guidelines")

    def for_technology(
        self, technology: str, *, warnings: Optional[List[str]] = None
    ) -> List[LocalGuideline]:
        """Return every guideline for ``technology`` in discovery order."""
        technology = technology.lower()
        self.logger.info("Retrieving guidelines for technology: %s", technology)

        guidelines: List[LocalGuideline] = []
        for path in self._candidates(warnings):
            match = _FILENAME_PATTERN.match(path.stem)
            if match is None:
                if path.stem.lower().startswith(technology):
                    self._warn(_misnamed(path), warnings)
                continue
            if match.group(1) != technology:
                continue
            try:
                guidelines.append(self._load(path, match))
            except MalformedInputError as exc:
                self._warn(exc, warnings)

        self.logger.info("Found %d guidelines for %s", len(guidelines), technology)
        return guidelines

    def discover_all(
        self, *, warnings: Optional[List[str]] = None
    ) -> Dict[str, List[LocalGuideline]]:
        """Return all guidelines grouped by technology."""
        self.logger.info("Discovering all guidelines in %s", self.directory)

        discovered: Dict[str, List[LocalGuideline]] = {}
        for path in self._candidates(warnings):
            match = _FILENAME_PATTERN.match(path.stem)
            if match is None:
                self._warn(_misnamed(path), warnings)
                continue
            try:
                guideline = self._load(path, match)
            except MalformedInputError as exc:
                self._warn(exc, warnings)
                continue
            discovered.setdefault(guideline.technology, []).append(guideline)

        self.logger.info("Discovered guidelines for %d technologies", len(discovered))
        return discovered

    def _candidates(self, warnings: Optional[List[str]]) -> List[Path]:
        if not self.directory.is_dir():
            self.logger.debug("Guidelines directory does not exist: %s", self.directory)
            return []
        try:
            entries = list(self.directory.iterdir())
        except OSError as exc:
            message = f"Failed to list guidelines directory {self.directory}: {exc}"
            self.logger.warning(message)
            if warnings is not None:
                warnings.append(message)
            return []
        return sorted(
            (path for path in entries if path.suffix == _GUIDELINE_SUFFIX and path.is_file()),
            key=lambda path: path.name,
        )

    def _load(self, path: Path, match: re.Match[str]) -> LocalGuideline:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise MalformedInputError(path, f"unreadable guideline file ({exc})") from exc

        if has_unterminated_front_matter(content):
            raise MalformedInputError(path, "front-matter block is never closed")
        block, _ = split_front_matter(content)
        try:
            front_matter = parse_front_matter(block)
        except ValueError as exc:
            raise MalformedInputError(path, str(exc)) from exc

        return LocalGuideline(
            technology=match.group(1),
            aspect=match.group(2),
            path=str(path),
            content=content,
            front_matter=front_matter or None,
        )

    def _warn(self, error: MalformedInputError, warnings: Optional[List[str]]) -> None:
        message = f"Skipping guideline {error}"
        self.logger.warning(message)
        if warnings is not None:
            warnings.append(message)


def _misnamed(path: Path) -> MalformedInputError:
    return MalformedInputError(path, "file name does not match {technology}[-{aspect}].md")


__all__ = ["LocalGuidelineRepository"]
