"""Project technology detection driven by the indicator rule table."""

from __future__ import annotations

import os
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..errors import NotFoundError, OperationCancelledError
from ..logging import get_logger
from ..models import Confidence, DetectedTechnology, DetectionResult, IndicatorRule
from .rules import INDICATOR_RULES, ProjectTree, TextReader, evaluate_rule

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".vs",
    "bin",
    "obj",
}


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="strict")


class ProjectTechnologyDetector:
    """Walks a project tree and scores every indicator rule against it."""

    def __init__(
        self,
        rules: Sequence[IndicatorRule] = INDICATOR_RULES,
        *,
        exclude_dirs: Iterable[str] = (),
        reader: TextReader | None = None,
    ) -> None:
        self.rules = tuple(rules)
        self.exclude_dirs = _EXCLUDED_DIRS | set(exclude_dirs)
        self._read_text = reader or _read_text
        self.logger = get_logger("detection")

    def detect(
        self, project_root: str | Path, *, cancel_event: threading.Event | None = None
    ) -> DetectionResult:
        """Return the technologies whose indicators match ``project_root``."""
        root = Path(project_root).expanduser()
        if not root.exists():
            raise NotFoundError(f"Project path does not exist: {project_root}")
        if not root.is_dir():
            raise NotFoundError(f"Project path is not a directory: {project_root}")
        root = root.resolve()

        self.logger.info("Detecting technologies in %s", root)
        warnings: List[str] = []
        tree = self.scan(root, warnings=warnings, cancel_event=cancel_event)
        self.logger.debug("Indexed %d files under %s", len(tree.files), root)

        detected: List[DetectedTechnology] = []
        indicators = {}
        ambiguous: List[str] = []
        for rule in self.rules:
            _check_cancelled(cancel_event)
            evaluation = evaluate_rule(rule, tree, self._read_text, warnings)
            if evaluation.confidence is None:
                continue
            if evaluation.confidence is not Confidence.HIGH:
                ambiguous.append(rule.technology)
            indicators[rule.technology] = list(evaluation.matched)
            detected.append(
                DetectedTechnology(
                    technology=rule.technology,
                    display_name=rule.display_name,
                    indicators=list(evaluation.matched),
                    confidence=evaluation.confidence,
                )
            )

        for warning in warnings:
            self.logger.warning(warning)
        self.logger.info(
            "Detected %d technologies: %s",
            len(detected),
            ", ".join(item.technology for item in detected) or "(none)",
        )
        return DetectionResult(
            project_path=str(root),
            technologies=detected,
            indicators=indicators,
            ambiguous=ambiguous,
            analyzed_at=datetime.now(UTC),
            warnings=warnings,
        )

    def scan(
        self,
        root: Path,
        *,
        warnings: Optional[List[str]] = None,
        cancel_event: threading.Event | None = None,
    ) -> ProjectTree:
        """Collect relative file paths below ``root``, pruning excluded directories."""

        def _on_error(exc: OSError) -> None:
            message = f"Failed to list {exc.filename}: {exc.strerror or exc}"
            if warnings is not None:
                warnings.append(message)

        files: List[str] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
            _check_cancelled(cancel_event)
            current = Path(dirpath)
            rel_dir = current.relative_to(root).as_posix() if current != root else ""
            dirnames[:] = sorted(name for name in dirnames if name not in self.exclude_dirs)
            for filename in sorted(filenames):
                files.append(f"{rel_dir}/{filename}" if rel_dir else filename)
        return ProjectTree(root=root, files=tuple(files))


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError("Technology detection cancelled")


__all__ = ["ProjectTechnologyDetector"]
