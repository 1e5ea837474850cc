"""Writes merged instruction documents into a project's ``.github`` directory."""

from __future__ import annotations

import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional, Sequence

from .config import OutputConfig
from .detection.rules import display_name
from .logging import get_logger
from .models import FileResult, FileStatus, MergedDocument


def render_repository_instructions(
    technologies: Sequence[str], *, instructions_dir: str = ".github/instructions"
) -> str:
    """Return the repository-wide summary document listing every technology."""
    names = ", ".join(display_name(technology) for technology in technologies)
    stack = "\n".join(
        f"- {display_name(technology)}: See `{instructions_dir}/{technology}.instructions.md`"
        for technology in technologies
    )
    lines = [
        "---",
        "description: Repository-wide coding standards and GitHub Copilot instructions",
        "applyTo: '**'",
        "---",
        "",
        "# GitHub Copilot Instructions",
        "",
        f"This repository uses the following technologies: {names}",
        "",
        f"Technology-specific instructions can be found in the `{instructions_dir}/` directory.",
        "",
        "## General Guidelines",
        "",
        "- Follow the coding standards defined for each technology",
        "- Write clear, maintainable code",
        "- Include appropriate documentation and comments",
        "- Follow established patterns and conventions",
        "",
        "## Technology Stack",
        "",
        stack,
    ]
    return "\n".join(lines).rstrip() + "\n"


class InstructionWriter:
    """Creates instruction files, backing up existing ones before replacing them."""

    def __init__(self, output: OutputConfig | None = None) -> None:
        self.output = output or OutputConfig()
        self.logger = get_logger("writer")

    def technology_path(self, project_root: Path | str, technology: str) -> Path:
        return (
            Path(project_root)
            / self.output.instructions_dir
            / f"{technology.lower()}.instructions.md"
        )

    def repository_path(self, project_root: Path | str) -> Path:
        return Path(project_root) / self.output.repository_file

    def write_technology(
        self,
        project_root: Path | str,
        document: MergedDocument,
        *,
        update_existing: bool = False,
    ) -> FileResult:
        path = self.technology_path(project_root, document.technology)
        self.logger.info("Creating technology instruction file at %s", path)
        return self._write(
            path,
            document.to_markdown(),
            technology=document.technology,
            update_existing=update_existing,
            summary=f"Merged {document.source_summary}",
        )

    def write_repository(
        self,
        project_root: Path | str,
        technologies: Sequence[str],
        *,
        update_existing: bool = False,
    ) -> FileResult:
        path = self.repository_path(project_root)
        self.logger.info("Creating repository instruction file at %s", path)
        content = render_repository_instructions(
            technologies, instructions_dir=self.output.instructions_dir
        )
        return self._write(
            path,
            content,
            technology=None,
            update_existing=update_existing,
            summary="Repository-wide instruction file",
        )

    def _write(
        self,
        path: Path,
        content: str,
        *,
        technology: Optional[str],
        update_existing: bool,
        summary: str,
    ) -> FileResult:
        if path.exists() and not update_existing:
            self.logger.warning("%s already exists and update_existing is off, skipping", path)
            return FileResult(
                path=str(path),
                technology=technology,
                status=FileStatus.SKIPPED,
                message="File already exists. Enable update_existing to replace it.",
            )

        backup_path: Optional[Path] = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.exists():
                backup_path = self._backup(path)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            self.logger.error("Failed to write %s: %s", path, exc)
            return FileResult(
                path=str(path),
                technology=technology,
                status=FileStatus.FAILED,
                backup_path=str(backup_path) if backup_path else None,
                message=f"Failed to write file: {exc}",
            )

        status = FileStatus.UPDATED if backup_path is not None else FileStatus.CREATED
        bytes_written = path.stat().st_size
        message = summary
        if backup_path is not None:
            message += ", created backup"
        self.logger.info("%s %s: %d bytes", path, status.value, bytes_written)
        return FileResult(
            path=str(path),
            technology=technology,
            status=status,
            backup_path=str(backup_path) if backup_path else None,
            bytes_written=bytes_written,
            message=message,
        )

    def _backup(self, path: Path) -> Path:
        timestamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.name}.{timestamp}.backup")
        shutil.copy2(path, backup_path)
        self.logger.info("Created backup at %s", backup_path)
        return backup_path


__all__ = ["InstructionWriter", "render_repository_instructions"]
