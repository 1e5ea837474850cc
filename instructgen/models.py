"""Core data models shared across instructgen components."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml


class Confidence(str, Enum):
    """How strongly a technology's indicators matched the project tree."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Provenance(str, Enum):
    """Where a merged section came from."""

    BASELINE = "baseline"
    OVERRIDE = "override"


class FileStatus(str, Enum):
    """Outcome of writing a single instruction file."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class IndicatorRule:
    """Primary and secondary indicator patterns for one technology."""

    technology: str
    display_name: str
    primary: Tuple[str, ...]
    secondary: Tuple[str, ...] = ()
    extension: Optional[str] = None


@dataclass
class DetectedTechnology:
    """A technology found in a project together with its evidence."""

    technology: str
    display_name: str
    indicators: List[str]
    confidence: Confidence
    has_baseline: bool = False
    has_guideline: bool = False


@dataclass
class DetectionResult:
    """Output of a single detection run."""

    project_path: str
    technologies: List[DetectedTechnology]
    indicators: Dict[str, List[str]]
    ambiguous: List[str]
    analyzed_at: datetime
    warnings: List[str] = field(default_factory=list)

    def names(self) -> List[str]:
        return [item.technology for item in self.technologies]


@dataclass(frozen=True)
class CatalogEntry:
    """Remote catalog document that provides a technology's baseline."""

    technology: str
    path: str
    sha: Optional[str] = None
    download_url: Optional[str] = None


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable view of the remote catalog captured at one point in time."""

    entries: Mapping[str, CatalogEntry]
    captured_at: datetime
    captured_monotonic: float

    @classmethod
    def capture(
        cls, entries: Mapping[str, CatalogEntry], captured_at: datetime, captured_monotonic: float
    ) -> "CatalogSnapshot":
        return cls(
            entries=MappingProxyType(dict(entries)),
            captured_at=captured_at,
            captured_monotonic=captured_monotonic,
        )


@dataclass(frozen=True)
class CatalogLookup:
    """Snapshot handed to a caller, flagged when it was served past its TTL."""

    snapshot: CatalogSnapshot
    stale: bool = False
    error: Optional[str] = None

    @property
    def entries(self) -> Mapping[str, CatalogEntry]:
        return self.snapshot.entries


@dataclass
class RemoteDocument:
    """Baseline document retrieved from the remote catalog."""

    technology: str
    filename: str
    content: str
    source_url: str
    retrieved_at: datetime
    sha: Optional[str] = None
    stale: bool = False


@dataclass
class LocalGuideline:
    """Organization-authored override document for one technology."""

    technology: str
    aspect: Optional[str]
    path: str
    content: str
    front_matter: Optional[Dict[str, Any]] = None

    @property
    def filename(self) -> str:
        return self.path.replace("\\", "/").rsplit("/", 1)[-1]


@dataclass
class Section:
    """A level-2 markdown section and where it came from."""

    header: str
    body: str
    provenance: Provenance


@dataclass
class MergedDocument:
    """Final per-technology instruction document."""

    technology: str
    title: str
    description: str
    apply_to: List[str]
    sections: List[Section]
    source_summary: str

    def to_markdown(self) -> str:
        """Render the document with front-matter, title and ordered sections."""
        lines = [
            "---",
            _front_matter_field("description", self.description),
            f"applyTo: '{','.join(self.apply_to)}'",
            "---",
            "",
            f"# {self.title}",
            "",
        ]
        for section in self.sections:
            lines.append(f"## {section.header}")
            lines.append("")
            if section.body:
                lines.append(section.body)
                lines.append("")
        return "\n".join(lines).rstrip() + "\n"


def _front_matter_field(key: str, value: str) -> str:
    """Render one front-matter line, quoting the value only when YAML needs it."""
    return yaml.safe_dump(
        {key: value}, default_flow_style=False, allow_unicode=True, width=float("inf")
    ).rstrip("\n")


@dataclass
class TechnologyInfo:
    """A technology the catalog or the local guidelines can provide content for."""

    technology: str
    display_name: str
    has_baseline: bool
    has_guideline: bool


@dataclass
class FileResult:
    """Result of creating or updating one instruction file."""

    path: str
    technology: Optional[str]
    status: FileStatus
    backup_path: Optional[str] = None
    bytes_written: int = 0
    message: Optional[str] = None


@dataclass
class TechnologyOutcome:
    """Result of one technology's resolve, fetch and merge pipeline."""

    technology: str
    status: str
    document: Optional[MergedDocument] = None
    stale: bool = False
    warnings: List[str] = field(default_factory=list)


@dataclass
class SetupSummary:
    """Aggregated result of a full setup run."""

    project_path: str
    technologies: List[str]
    outcomes: List[TechnologyOutcome]
    file_results: List[FileResult]
    warnings: List[str]
    duration_seconds: float
    completed_at: datetime

    def _count(self, status: FileStatus) -> int:
        return sum(1 for result in self.file_results if result.status == status)

    @property
    def files_created(self) -> int:
        return self._count(FileStatus.CREATED)

    @property
    def files_updated(self) -> int:
        return self._count(FileStatus.UPDATED)

    @property
    def files_skipped(self) -> int:
        return self._count(FileStatus.SKIPPED)

    @property
    def files_failed(self) -> int:
        return self._count(FileStatus.FAILED)
