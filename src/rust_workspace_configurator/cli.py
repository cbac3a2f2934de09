"""
Command-line entry point.

Usage:
    rust-workspace-configurator [--root ROOT] [--config FILE] [--jobs N]

Searches ROOT (default: current directory) for Rust projects and writes
``<root-name>.code-workspace`` with LLDB launch configurations for every
binary and example, backing up any existing file first.
"""

import argparse
import sys
from pathlib import Path

from . import __version__
from .config_loader import load_config
from .generator import RunStatus, RunSummary, generate_workspace
from .logging_config import setup_logger
from .metadata_provider import CargoMetadataProvider

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rust-workspace-configurator",
        description="Generate VS Code multi-root workspace configurations for all discovered Rust projects",
    )
    parser.add_argument(
        "-r", "--root",
        type=Path,
        default=None,
        help="Root directory to search for Rust projects (defaults to current directory)",
    )
    parser.add_argument("-c", "--config", type=Path, default=None, help="TOML configuration file")
    parser.add_argument("-j", "--jobs", type=int, default=None, help="Parallel cargo metadata queries")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    parser.add_argument("--no-log-file", action="store_true", help="Do not write the rotating log file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _print_summary(summary: RunSummary) -> None:
    print(f"Found {len(summary.projects)} Rust project(s):")
    for project in summary.projects:
        print(f"  {project.path}")

    print(f"Found {len(summary.configurations)} runnables:")
    for config in summary.configurations:
        print(f"  {config.name}")

    if summary.status is RunStatus.NO_RUNNABLES:
        print("No runnables found; no workspace file written")

    if summary.outcome is not None:
        if summary.outcome.backup_path is not None:
            print(f"Backed up existing {summary.outcome.path.name} to {summary.outcome.backup_path}")
        print(f"Created {summary.outcome.path.name} with launch configurations in {summary.outcome.path.parent}")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    setup_logger(level="DEBUG" if args.verbose else "WARNING", log_file=not args.no_log_file)

    config_result = load_config(args.config)
    if config_result.is_err():
        print(f"Error: {config_result.error.message}", file=sys.stderr)
        return EXIT_CONFIG
    config = config_result.value

    jobs = args.jobs if args.jobs is not None else config["metadata"]["jobs"]
    if jobs < 1:
        parser.error("--jobs must be at least 1")

    root = args.root if args.root is not None else Path.cwd()
    print(f"Searching for Rust projects in: {root}")

    provider = CargoMetadataProvider(
        command=config["cargo"]["command"],
        timeout=config["cargo"]["timeout_seconds"],
    )
    summary = generate_workspace(
        root,
        provider,
        skip_dirs=config["scan"]["skip_dirs"],
        jobs=jobs,
        backup_suffix=config["output"]["backup_suffix"],
    )

    _print_summary(summary)

    problems = summary.report.summary_lines()
    if problems:
        print(f"{len(problems)} problem(s):", file=sys.stderr)
        for line in problems:
            print(f"  {line}", file=sys.stderr)

    if not summary.ok:
        print(f"Error: {summary.fatal.message}", file=sys.stderr)
        return EXIT_FAILED

    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
