"""Tests for instruction file writing."""

from __future__ import annotations

from pathlib import Path

from instructgen.config import OutputConfig
from instructgen.models import FileStatus, MergedDocument, Provenance, Section
from instructgen.writer import InstructionWriter, render_repository_instructions


def _document(body: str = "Use PascalCase.") -> MergedDocument:
    return MergedDocument(
        technology="csharp",
        title="C# Development",
        description="C# coding standards",
        apply_to=["**/*.cs"],
        sections=[Section(header="Naming", body=body, provenance=Provenance.BASELINE)],
        source_summary="baseline csharp.instructions.md",
    )


def test_write_technology_creates_file(tmp_path: Path) -> None:
    result = InstructionWriter().write_technology(tmp_path, _document())

    target = tmp_path / ".github" / "instructions" / "csharp.instructions.md"
    assert result.status is FileStatus.CREATED
    assert result.path == str(target)
    assert result.bytes_written == target.stat().st_size
    assert target.read_text(encoding="utf-8") == _document().to_markdown()
    assert result.message == "Merged baseline csharp.instructions.md"


def test_existing_file_is_skipped_by_default(tmp_path: Path) -> None:
    writer = InstructionWriter()
    writer.write_technology(tmp_path, _document("Original."))

    result = writer.write_technology(tmp_path, _document("Changed."))

    assert result.status is FileStatus.SKIPPED
    target = writer.technology_path(tmp_path, "csharp")
    assert "Original." in target.read_text(encoding="utf-8")


def test_update_existing_keeps_backup(tmp_path: Path) -> None:
    writer = InstructionWriter()
    writer.write_technology(tmp_path, _document("Original."))

    result = writer.write_technology(tmp_path, _document("Changed."), update_existing=True)

    assert result.status is FileStatus.UPDATED
    assert result.backup_path is not None
    backup = Path(result.backup_path)
    assert backup.name.startswith("csharp.instructions.md.")
    assert backup.name.endswith(".backup")
    assert "Original." in backup.read_text(encoding="utf-8")
    assert "Changed." in Path(result.path).read_text(encoding="utf-8")
    assert result.message.endswith(", created backup")


def test_write_failure_is_reported(tmp_path: Path) -> None:
    blocker = tmp_path / ".github"
    blocker.write_text("not a directory", encoding="utf-8")

    result = InstructionWriter().write_technology(tmp_path, _document())

    assert result.status is FileStatus.FAILED
    assert result.message.startswith("Failed to write file")


def test_custom_output_locations(tmp_path: Path) -> None:
    writer = InstructionWriter(
        OutputConfig(instructions_dir="docs/ai", repository_file="docs/ai/README.md")
    )

    writer.write_repository(tmp_path, ["csharp"])

    content = (tmp_path / "docs" / "ai" / "README.md").read_text(encoding="utf-8")
    assert "`docs/ai/csharp.instructions.md`" in content


def test_repository_instructions_list_every_technology() -> None:
    content = render_repository_instructions(["csharp", "typescript"])

    assert content.startswith("---\ndescription: Repository-wide")
    assert "applyTo: '**'" in content
    assert "This repository uses the following technologies: C#, TypeScript" in content
    assert "- TypeScript: See `.github/instructions/typescript.instructions.md`" in content
    assert content.endswith("\n")
