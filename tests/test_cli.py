"""CLI parser and command behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from instructgen import cli
from instructgen.catalog import CatalogCache
from instructgen.cli import _build_parser
from instructgen.config import InstructGenConfig
from instructgen.orchestrator import Orchestrator
from tests._fixtures.catalog import FakeCatalogFetcher, FakeClock
from tests._fixtures.project_builder import write_files


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "detect"])
    assert args.verbose is True
    assert args.command == "detect"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["list", "--verbose"])
    assert args.verbose is True
    assert args.command == "list"


def test_cli_setup_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["setup", "repo", "-t", "csharp", "--technology", "python", "--update-existing", "--dry-run"]
    )
    assert args.command == "setup"
    assert args.path == "repo"
    assert args.technologies == ["csharp", "python"]
    assert args.update_existing is True
    assert args.dry_run is True


def test_cli_setup_defaults_defer_to_config() -> None:
    args = _build_parser().parse_args(["setup"])
    assert args.technologies is None
    assert args.update_existing is None
    assert args.dry_run is False


def test_cli_common_options() -> None:
    args = _build_parser().parse_args(
        ["merge", "typescript", "--config", "conf.yml", "--guidelines-dir", "org", "--output", "out.md"]
    )
    assert args.technology == "typescript"
    assert args.config == "conf.yml"
    assert args.guidelines_dir == "org"
    assert args.output == "out.md"


def test_cli_requires_command() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args([])


@pytest.fixture
def offline_orchestrator(tmp_path: Path, monkeypatch) -> Orchestrator:
    fetcher = FakeCatalogFetcher({"python.instructions.md": "# Python\n\n## Style\n\nPEP 8.\n"})
    config = InstructGenConfig(root=tmp_path)
    config.guidelines.directory = tmp_path / "guidelines"
    orchestrator = Orchestrator(config, fetcher=fetcher, cache=CatalogCache(fetcher, clock=FakeClock()))
    monkeypatch.setattr(cli, "_build_orchestrator", lambda args: orchestrator)
    return orchestrator


def test_setup_command_prints_summary(offline_orchestrator, project_builder, capsys) -> None:
    root = project_builder.write({"requirements.txt": "requests\n", "app.py": "print('hi')\n"})

    cli.main(["setup", str(root)])

    out = capsys.readouterr().out
    assert "python: merged (baseline python.instructions.md)" in out
    assert "2 created, 0 updated, 0 skipped, 0 failed" in out
    assert (root / ".github/instructions/python.instructions.md").exists()


def test_merge_command_writes_output(offline_orchestrator, tmp_path, capsys) -> None:
    write_files(tmp_path / "guidelines", {"python.md": "## Style\n\nUse ruff.\n"})
    target = tmp_path / "out" / "python.md"

    cli.main(["merge", "python", "--output", str(target)])

    content = target.read_text(encoding="utf-8")
    assert "Use ruff." in content
    assert "PEP 8." not in content
    assert "Merged document written to" in capsys.readouterr().out


def test_missing_project_exits_with_error(offline_orchestrator, tmp_path, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["detect", str(tmp_path / "missing")])

    assert excinfo.value.code == 1
    assert "does not exist" in capsys.readouterr().err


def test_merge_without_content_exits_with_error(offline_orchestrator) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["merge", "cobol"])
    assert excinfo.value.code == 1
