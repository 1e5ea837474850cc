"""Tests for the local guideline repository."""

from __future__ import annotations

from pathlib import Path

from instructgen.guidelines import LocalGuidelineRepository
from tests._fixtures.project_builder import write_files


def test_for_technology_returns_matching_files_in_name_order(guidelines_dir: Path) -> None:
    write_files(
        guidelines_dir,
        {
            "csharp.md": "## Naming\nPascalCase.\n",
            "csharp-testing.md": "## Testing\nxUnit.\n",
            "csharp-async.md": "## Async\nAwait.\n",
            "python.md": "## Style\nPEP 8.\n",
        },
    )

    guidelines = LocalGuidelineRepository(guidelines_dir).for_technology("CSharp")

    assert [guideline.filename for guideline in guidelines] == [
        "csharp-async.md",
        "csharp-testing.md",
        "csharp.md",
    ]
    assert [guideline.aspect for guideline in guidelines] == ["async", "testing", None]
    assert all(guideline.technology == "csharp" for guideline in guidelines)


def test_front_matter_is_parsed(guidelines_dir: Path) -> None:
    write_files(
        guidelines_dir,
        {"typescript.md": "---\ndescription: Org rules\napplyTo: '**/*.ts'\n---\n## Types\n"},
    )

    (guideline,) = LocalGuidelineRepository(guidelines_dir).for_technology("typescript")

    assert guideline.front_matter == {"description": "Org rules", "applyTo": "**/*.ts"}
    assert guideline.content.startswith("---\n")


def test_missing_directory_is_empty(tmp_path: Path) -> None:
    warnings: list[str] = []
    repository = LocalGuidelineRepository(tmp_path / "nowhere")

    assert repository.for_technology("python", warnings=warnings) == []
    assert repository.discover_all(warnings=warnings) == {}
    assert warnings == []


def test_malformed_files_are_skipped_with_warning(guidelines_dir: Path) -> None:
    write_files(
        guidelines_dir,
        {
            "python.md": "## Style\nPEP 8.\n",
            "python-broken.md": "---\ndescription: never closed\n## Style\n",
            "python-list.md": "---\n- one\n- two\n---\n## Lists\n",
        },
    )
    warnings: list[str] = []

    guidelines = LocalGuidelineRepository(guidelines_dir).for_technology(
        "python", warnings=warnings
    )

    assert [guideline.filename for guideline in guidelines] == ["python.md"]
    assert len(warnings) == 2
    assert any("python-broken.md" in warning and "never closed" in warning for warning in warnings)
    assert any("python-list.md" in warning for warning in warnings)


def test_discover_all_groups_and_reports_misnamed(guidelines_dir: Path) -> None:
    write_files(
        guidelines_dir,
        {
            "go.md": "## Errors\nWrap.\n",
            "go-modules.md": "## Modules\nTidy.\n",
            "rust.md": "## Ownership\nBorrow.\n",
            "Readme.md": "# About these files\n",
            "notes.txt": "ignored\n",
            "archive/java.md": "## Old\n",
        },
    )
    warnings: list[str] = []

    discovered = LocalGuidelineRepository(guidelines_dir).discover_all(warnings=warnings)

    assert sorted(discovered) == ["go", "rust"]
    assert [guideline.aspect for guideline in discovered["go"]] == ["modules", None]
    assert len(warnings) == 1
    assert "Readme.md" in warnings[0]


def test_misnamed_files_for_technology_are_reported(guidelines_dir: Path) -> None:
    write_files(
        guidelines_dir,
        {
            "python_style.md": "## Style\nPEP 8.\n",
            "python3.md": "## Typing\nHints.\n",
            "python-testing.md": "## Testing\npytest.\n",
            "pythonic.md": "## Idioms\n",
            "Readme.md": "# About\n",
        },
    )
    warnings: list[str] = []

    guidelines = LocalGuidelineRepository(guidelines_dir).for_technology(
        "python", warnings=warnings
    )

    assert [guideline.filename for guideline in guidelines] == ["python-testing.md"]
    assert len(warnings) == 2
    assert any("python3.md" in message for message in warnings)
    assert any("python_style.md" in message for message in warnings)
    assert all("does not match" in message for message in warnings)
