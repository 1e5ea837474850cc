"""End-to-end flows across detection, catalog, guidelines and merging."""

from __future__ import annotations

from pathlib import Path

from instructgen.catalog import BaselineProvider, CatalogCache
from instructgen.detection import ProjectTechnologyDetector
from instructgen.guidelines import LocalGuidelineRepository
from instructgen.merge import ContentMerger
from instructgen.models import Confidence
from tests._fixtures.catalog import FakeCatalogFetcher, FakeClock
from tests._fixtures.project_builder import write_files


def test_csproj_and_program_detect_only_csharp(project_builder) -> None:
    root = project_builder.write({"app.csproj": "<Project />\n", "Program.cs": "class P {}\n"})

    result = ProjectTechnologyDetector().detect(root)

    assert len(result.technologies) == 1
    assert result.technologies[0].technology == "csharp"
    assert result.technologies[0].confidence is Confidence.HIGH


def test_baseline_and_override_merge_from_disk(guidelines_dir: Path) -> None:
    fetcher = FakeCatalogFetcher(
        {"csharp.instructions.md": "## Naming\n\nBaseline naming.\n\n## Testing\n\nBaseline testing.\n"}
    )
    provider = BaselineProvider(CatalogCache(fetcher, clock=FakeClock()), fetcher)
    write_files(guidelines_dir, {"csharp.md": "## Naming\n\nOrganization naming.\n"})

    baseline = provider.get_baseline("csharp")
    overrides = LocalGuidelineRepository(guidelines_dir).for_technology("csharp")
    document = ContentMerger().merge(baseline, overrides)

    assert [(s.header, s.body) for s in document.sections] == [
        ("Naming", "Organization naming."),
        ("Testing", "Baseline testing."),
    ]


def test_later_discovered_duplicate_guideline_is_dropped(guidelines_dir: Path) -> None:
    write_files(
        guidelines_dir,
        {
            "react-a.md": "## Hooks\n\nCall hooks at the **top level**.\n",
            "react-b.md": "## Rules of Hooks\n\ncall hooks at the top level.\n",
        },
    )

    overrides = LocalGuidelineRepository(guidelines_dir).for_technology("react")
    document = ContentMerger().merge(None, overrides)

    assert [section.header for section in document.sections] == ["Hooks"]
    assert document.source_summary == "2 organization guidelines (react-a.md, react-b.md)"
