"""Pipeline orchestration: detect, resolve, fetch, merge and write per technology."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from functools import partial
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from .catalog import BaselineProvider, CatalogCache, RemoteCatalogFetcher
from .config import InstructGenConfig, load_config
from .detection import ProjectTechnologyDetector, display_name
from .errors import NotFoundError, TransientFetchError
from .guidelines import LocalGuidelineRepository
from .logging import get_logger
from .merge import ContentMerger
from .models import (
    CatalogEntry,
    CatalogLookup,
    DetectionResult,
    FileResult,
    FileStatus,
    LocalGuideline,
    RemoteDocument,
    SetupSummary,
    TechnologyInfo,
    TechnologyOutcome,
)
from .writer import InstructionWriter

MERGED = "merged"
SKIPPED = "skipped"


class Orchestrator:
    """Coordinates the detection, catalog, guideline, merge and write steps."""

    def __init__(
        self,
        config: InstructGenConfig | None = None,
        *,
        detector: ProjectTechnologyDetector | None = None,
        fetcher: RemoteCatalogFetcher | None = None,
        cache: CatalogCache | None = None,
        baselines: BaselineProvider | None = None,
        guidelines: LocalGuidelineRepository | None = None,
        merger: ContentMerger | None = None,
        writer: InstructionWriter | None = None,
    ) -> None:
        self.config = config or load_config()
        self.fetcher = fetcher or RemoteCatalogFetcher(self.config.catalog)
        self.cache = cache or CatalogCache(self.fetcher, ttl=self.config.catalog.cache_ttl)
        self.baselines = baselines or BaselineProvider(self.cache, self.fetcher)
        self.guidelines = guidelines or LocalGuidelineRepository(self.config.guidelines_dir)
        self.detector = detector or ProjectTechnologyDetector(
            exclude_dirs=self.config.detection.exclude_dirs
        )
        self.merger = merger or ContentMerger()
        self.writer = writer or InstructionWriter(self.config.output)
        self.logger = get_logger("orchestrator")

    def detect(
        self, project_path: str | Path, *, cancel_event: threading.Event | None = None
    ) -> DetectionResult:
        """Detect technologies and annotate each with baseline/guideline availability."""
        result = self.detector.detect(project_path, cancel_event=cancel_event)
        entries = self._catalog_entries(result.warnings, cancel_event=cancel_event)
        available = self.guidelines.discover_all(warnings=result.warnings)
        for item in result.technologies:
            item.has_baseline = item.technology in entries
            item.has_guideline = item.technology in available

        self.logger.info(
            "Detected %d technologies (%d with baselines, %d with guidelines)",
            len(result.technologies),
            sum(1 for item in result.technologies if item.has_baseline),
            sum(1 for item in result.technologies if item.has_guideline),
        )
        return result

    def list_technologies(
        self, *, cancel_event: threading.Event | None = None
    ) -> List[TechnologyInfo]:
        """Return every technology offered by the catalog or the local guidelines."""
        entries = self.cache.lookup(cancel_event=cancel_event).entries
        available = self.guidelines.discover_all()
        names = sorted(set(entries) | set(available))
        return [
            TechnologyInfo(
                technology=name,
                display_name=display_name(name),
                has_baseline=name in entries,
                has_guideline=name in available,
            )
            for name in names
        ]

    def get_baseline(
        self, technology: str, *, cancel_event: threading.Event | None = None
    ) -> RemoteDocument:
        return self.baselines.get_baseline(technology, cancel_event=cancel_event)

    def get_guidelines(
        self, technology: str, *, warnings: Optional[List[str]] = None
    ) -> List[LocalGuideline]:
        return self.guidelines.for_technology(technology, warnings=warnings)

    def refresh_catalog(self, *, cancel_event: threading.Event | None = None) -> CatalogLookup:
        return self.cache.refresh_now(cancel_event=cancel_event)

    def build_technology(
        self, technology: str, *, cancel_event: threading.Event | None = None
    ) -> TechnologyOutcome:
        """Run resolve -> fetch -> merge for one technology without raising on missing content."""
        technology = technology.lower()
        warnings: List[str] = []

        baseline: Optional[RemoteDocument] = None
        try:
            baseline = self.baselines.get_baseline(technology, cancel_event=cancel_event)
        except NotFoundError as exc:
            warnings.append(f"{technology}: {exc}")
        except TransientFetchError as exc:
            warnings.append(f"{technology}: baseline unavailable ({exc})")
        if baseline is not None and baseline.stale:
            warnings.append(f"{technology}: baseline resolved from a stale catalog snapshot")

        overrides = self.guidelines.for_technology(technology, warnings=warnings)
        if baseline is None and not overrides:
            warnings.append(f"{technology}: no baseline or guidelines available, skipped")
            self.logger.warning("Skipping %s: no content available", technology)
            return TechnologyOutcome(technology=technology, status=SKIPPED, warnings=warnings)

        document = self.merger.merge(baseline, overrides, technology=technology)
        return TechnologyOutcome(
            technology=technology,
            status=MERGED,
            document=document,
            stale=bool(baseline and baseline.stale),
            warnings=warnings,
        )

    def run_setup(
        self,
        project_path: str | Path,
        *,
        technologies: Sequence[str] | None = None,
        update_existing: bool | None = None,
        dry_run: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> SetupSummary:
        """Generate instruction files for ``project_path``.

        When ``technologies`` is omitted they are detected. Technologies that
        cannot be resolved are reported in the summary instead of aborting
        the run. ``dry_run`` merges everything but writes nothing.
        """
        started = time.perf_counter()
        root = Path(project_path).expanduser()
        if not root.is_dir():
            raise NotFoundError(f"Project path does not exist: {project_path}")
        root = root.resolve()
        self.logger.info("Starting setup run for %s", root)

        warnings: List[str] = []
        if technologies is None:
            detection = self.detect(root, cancel_event=cancel_event)
            warnings.extend(detection.warnings)
            selected = detection.names()
            if detection.ambiguous:
                warnings.append(
                    "Low-confidence detections, confirm manually: "
                    + ", ".join(detection.ambiguous)
                )
        else:
            selected = list(
                dict.fromkeys(name.strip().lower() for name in technologies if name.strip())
            )

        outcomes: List[TechnologyOutcome] = []
        file_results: List[FileResult] = []
        if not selected:
            warnings.append("No technologies detected or selected")
        else:
            outcomes = self._build_all(selected, cancel_event)
            for outcome in outcomes:
                warnings.extend(outcome.warnings)
            if not dry_run:
                update = (
                    self.config.output.update_existing if update_existing is None else update_existing
                )
                file_results = self._write_all(root, outcomes, update)

        for result in file_results:
            if result.status in (FileStatus.SKIPPED, FileStatus.FAILED) and result.message:
                warnings.append(f"{result.path}: {result.message}")

        summary = SetupSummary(
            project_path=str(root),
            technologies=selected,
            outcomes=outcomes,
            file_results=file_results,
            warnings=warnings,
            duration_seconds=time.perf_counter() - started,
            completed_at=datetime.now(UTC),
        )
        self.logger.info(
            "Setup finished: %d created, %d updated, %d skipped, %d failed",
            summary.files_created,
            summary.files_updated,
            summary.files_skipped,
            summary.files_failed,
        )
        return summary

    # ------------------------------------------------------------------
    # Internal helpers

    def _catalog_entries(
        self, warnings: List[str], *, cancel_event: threading.Event | None
    ) -> Mapping[str, CatalogEntry]:
        try:
            lookup = self.cache.lookup(cancel_event=cancel_event)
        except TransientFetchError as exc:
            warnings.append(f"Baseline catalog unavailable: {exc}")
            return {}
        if lookup.stale:
            warnings.append("Baseline catalog served from a stale snapshot")
        return lookup.entries

    def _build_all(
        self, technologies: Sequence[str], cancel_event: threading.Event | None
    ) -> List[TechnologyOutcome]:
        build = partial(self.build_technology, cancel_event=cancel_event)
        workers = min(self.config.workers, len(technologies))
        if workers <= 1:
            return [build(technology) for technology in technologies]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="instructgen") as executor:
            return list(executor.map(build, technologies))

    def _write_all(
        self, root: Path, outcomes: Sequence[TechnologyOutcome], update_existing: bool
    ) -> List[FileResult]:
        documents = [outcome.document for outcome in outcomes if outcome.document is not None]
        if not documents:
            return []
        results = [
            self.writer.write_repository(
                root,
                [document.technology for document in documents],
                update_existing=update_existing,
            )
        ]
        for document in documents:
            results.append(
                self.writer.write_technology(root, document, update_existing=update_existing)
            )
        return results


__all__ = ["MERGED", "Orchestrator", "SKIPPED"]
