"""CLI entrypoints for instructgen commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import load_config
from .errors import InstructGenError, NotFoundError
from .logging import configure_logging
from .models import DetectionResult, SetupSummary
from .orchestrator import MERGED, Orchestrator


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    _add_verbose_option(parser, suppress_default=True)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to .instructgen.yml or the directory holding it (defaults to cwd).",
    )
    parser.add_argument(
        "--guidelines-dir",
        default=None,
        help="Directory containing organization guideline overrides.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="instructgen",
        description="Generate AI coding assistant instruction files for a project.",
    )
    _add_verbose_option(parser)
    parser.add_argument("--log-file", default=None, help="Also write logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    detect_parser = subparsers.add_parser(
        "detect",
        help="Detect the technologies used by a project.",
    )
    _add_common_options(detect_parser)
    _add_path_argument(detect_parser)

    list_parser = subparsers.add_parser(
        "list",
        help="List technologies with a baseline or an organization guideline.",
    )
    _add_common_options(list_parser)

    baseline_parser = subparsers.add_parser(
        "baseline",
        help="Print the remote baseline instructions for a technology.",
    )
    _add_common_options(baseline_parser)
    baseline_parser.add_argument("technology", help="Technology id, e.g. csharp.")

    guidelines_parser = subparsers.add_parser(
        "guidelines",
        help="List organization guideline files for a technology.",
    )
    _add_common_options(guidelines_parser)
    guidelines_parser.add_argument("technology", help="Technology id, e.g. python.")

    merge_parser = subparsers.add_parser(
        "merge",
        help="Merge a technology's baseline with organization guidelines.",
    )
    _add_common_options(merge_parser)
    merge_parser.add_argument("technology", help="Technology id, e.g. typescript.")
    merge_parser.add_argument(
        "--output",
        default=None,
        help="Write the merged document to this file instead of stdout.",
    )

    setup_parser = subparsers.add_parser(
        "setup",
        help="Detect technologies and write instruction files into the project.",
    )
    _add_common_options(setup_parser)
    _add_path_argument(setup_parser)
    setup_parser.add_argument(
        "-t",
        "--technology",
        dest="technologies",
        action="append",
        default=None,
        help="Technology to set up (repeatable). Skips detection when given.",
    )
    setup_parser.add_argument(
        "--update-existing",
        action="store_true",
        default=None,
        help="Replace existing instruction files, keeping a timestamped backup.",
    )
    setup_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Merge documents and report what would be written without writing.",
    )

    refresh_parser = subparsers.add_parser(
        "refresh",
        help="Refetch the remote catalog listing.",
    )
    _add_common_options(refresh_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_common_options(serve_parser)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def _build_orchestrator(args: argparse.Namespace) -> Orchestrator:
    config = load_config(Path(args.config) if args.config else None)
    if args.guidelines_dir:
        config.guidelines.directory = Path(args.guidelines_dir).expanduser().resolve()
    return Orchestrator(config)


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for instructgen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    try:
        orchestrator = _build_orchestrator(args)
        _dispatch(args, orchestrator)
    except NotFoundError as exc:
        parser.exit(1, f"{exc}\n")
    except InstructGenError as exc:
        parser.exit(
            1,
            f"instructgen {args.command} failed: {exc}\nRun with --verbose for more details.\n",
        )
    except KeyboardInterrupt:
        parser.exit(130, "Interrupted\n")


def _dispatch(args: argparse.Namespace, orchestrator: Orchestrator) -> None:
    if args.command == "detect":
        _print_detection(orchestrator.detect(args.path))
    elif args.command == "list":
        technologies = orchestrator.list_technologies()
        if not technologies:
            print("No technologies available")
        for info in technologies:
            sources = _sources(info.has_baseline, info.has_guideline)
            print(f"{info.technology:<12} {info.display_name:<12} {sources}")
    elif args.command == "baseline":
        document = orchestrator.get_baseline(args.technology)
        if document.stale:
            print(f"warning: {document.filename} resolved from a stale catalog", file=sys.stderr)
        sys.stdout.write(document.content)
    elif args.command == "guidelines":
        warnings: list[str] = []
        guidelines = orchestrator.get_guidelines(args.technology, warnings=warnings)
        for message in warnings:
            print(f"warning: {message}", file=sys.stderr)
        if not guidelines:
            print(f"No organization guidelines for {args.technology}")
        for guideline in guidelines:
            aspect = f" ({guideline.aspect})" if guideline.aspect else ""
            print(f"{guideline.filename}{aspect}")
    elif args.command == "merge":
        _run_merge(args, orchestrator)
    elif args.command == "setup":
        summary = orchestrator.run_setup(
            args.path,
            technologies=args.technologies,
            update_existing=args.update_existing,
            dry_run=bool(args.dry_run),
        )
        _print_summary(summary, dry_run=bool(args.dry_run))
    elif args.command == "refresh":
        lookup = orchestrator.refresh_catalog()
        message = f"Catalog refreshed: {len(lookup.entries)} technologies"
        if lookup.stale:
            message = f"Catalog refresh failed, serving stale snapshot ({lookup.error})"
        print(message)
    elif args.command == "serve":
        from .service.app import run_service

        run_service(host=args.host, port=args.port, orchestrator=orchestrator)
    else:  # pragma: no cover - argparse enforces choices
        raise InstructGenError("Unknown command")


def _run_merge(args: argparse.Namespace, orchestrator: Orchestrator) -> None:
    outcome = orchestrator.build_technology(args.technology)
    for message in outcome.warnings:
        print(f"warning: {message}", file=sys.stderr)
    if outcome.status != MERGED or outcome.document is None:
        raise NotFoundError(f"Nothing to merge for technology: {args.technology}")
    markdown = outcome.document.to_markdown()
    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(markdown, encoding="utf-8")
        print(f"Merged document written to {_relativize(output)}")
    else:
        sys.stdout.write(markdown)


def _print_detection(result: DetectionResult) -> None:
    if not result.technologies:
        print("No technologies detected")
    for item in result.technologies:
        sources = _sources(item.has_baseline, item.has_guideline)
        print(f"{item.display_name} ({item.confidence.value}) {sources}")
        for indicator in item.indicators:
            print(f"  - {indicator}")
    if result.ambiguous:
        print("Needs confirmation: " + ", ".join(result.ambiguous))
    for message in result.warnings:
        print(f"warning: {message}", file=sys.stderr)


def _print_summary(summary: SetupSummary, *, dry_run: bool) -> None:
    for outcome in summary.outcomes:
        detail = outcome.document.source_summary if outcome.document else "no content"
        print(f"{outcome.technology}: {outcome.status} ({detail})")
    if dry_run:
        print("Dry run, no files written")
    for result in summary.file_results:
        print(f"{result.status.value:<8} {_relativize(Path(result.path))}")
    print(
        f"{summary.files_created} created, {summary.files_updated} updated, "
        f"{summary.files_skipped} skipped, {summary.files_failed} failed "
        f"in {summary.duration_seconds:.2f}s"
    )
    for message in summary.warnings:
        print(f"warning: {message}", file=sys.stderr)


def _sources(has_baseline: bool, has_guideline: bool) -> str:
    sources = [
        name
        for name, present in (("baseline", has_baseline), ("guideline", has_guideline))
        if present
    ]
    return f"[{', '.join(sources)}]" if sources else "[no content]"


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
