"""CLI entrypoints for ontogen commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .logging import configure_logging
from .models import BuildReport, OntologyMetadata
from .pipeline import OntologyPipeline


def _add_logging_options(parser: argparse.ArgumentParser, *, subcommand: bool = False) -> None:
    # Subcommand defaults never overwrite a value given before the command name.
    suppressed = argparse.SUPPRESS if subcommand else None
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if subcommand else False,
        help="Show debug output, prefixed with the module that logged it.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=suppressed,
        metavar="PATH",
        help="Also write a timestamped debug log to PATH.",
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
        prog="ontogen",
        description="Build and refresh a layered code ontology for a project.",
    )
    _add_logging_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Build every enabled ontology layer from scratch.",
    )
    _add_logging_options(build_parser, subcommand=True)
    _add_path_argument(build_parser)

    refresh_parser = subparsers.add_parser(
        "refresh",
        help="Update the ontology for files changed since the last build.",
    )
    _add_logging_options(refresh_parser, subcommand=True)
    _add_path_argument(refresh_parser)

    status_parser = subparsers.add_parser(
        "status",
        help="Show the state of the cached ontology.",
    )
    _add_logging_options(status_parser, subcommand=True)
    _add_path_argument(status_parser)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for ontogen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    pipeline = OntologyPipeline()

    if args.command in ("build", "refresh"):
        run = pipeline.build if args.command == "build" else pipeline.refresh
        try:
            report = run(args.path)
        except NotADirectoryError as exc:
            parser.exit(1, f"{exc}\n")
        except Exception as exc:  # pragma: no cover
            parser.exit(
                1, f"ontogen {args.command} failed: {exc}\nRun with --verbose for more details.\n"
            )
        _print_report(report)
    elif args.command == "status":
        try:
            metadata = pipeline.status(args.path)
        except NotADirectoryError as exc:
            parser.exit(1, f"{exc}\n")
        if metadata is None:
            print("No ontology found. Run `ontogen build` first.")
        else:
            _print_status(metadata)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _print_report(report: BuildReport) -> None:
    for result in report.results:
        if result.success:
            line = f"{result.layer}: ok ({result.file_count} files, {result.duration} ms)"
        else:
            line = f"{result.layer}: failed ({result.error})"
        print(line)
        for warning in result.warnings:
            print(f"  warning: {warning}")
    if report.annotation_summary is not None:
        summary = report.annotation_summary
        print(
            f"annotations: {summary.total} "
            f"({len(summary.top_anchors)} anchors, {len(summary.warnings)} warnings)"
        )
    if report.domain_context is not None:
        print("domain: context collected for host-side analysis")
    for path in report.output_files:
        print(f"wrote {_relativize(Path(path))}")
    print(f"done in {report.total_duration} ms")


def _print_status(metadata: OntologyMetadata) -> None:
    print(f"{metadata.project_name} (ontogen {metadata.tool_version})")
    print(f"built at {metadata.generated_at}")
    for layer, status in metadata.layer_status.items():
        if not status.enabled:
            print(f"{layer}: not built")
            continue
        print(f"{layer}: {status.file_count} files, last built {status.last_built}")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
