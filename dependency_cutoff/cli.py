"""
Command-line interface for the dependency cutoff tool.
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import CheckerConfig
from .errors import CutoffError
from .lockfile import LOCKFILE_NAME, find_project_root, load_lockfile
from .registry import NpmRegistryClient
from .reporting import export_decisions_csv, print_decisions, print_summary
from .time_utils import format_timestamp, parse_cutoff
from .walker import DependencyWalker, WalkMode


def positive_int(value: str) -> int:
    """argparse type for counts and sizes that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dependency-cutoff",
        description=(
            "Check that every locked npm dependency was published before a date "
            "and suggest downgrades for those that were not"
        ),
    )

    parser.add_argument(
        "date",
        help="Cutoff date (YYYY-MM-DD or ISO 8601 timestamp)"
    )

    parser.add_argument(
        "--lockfile",
        type=Path,
        default=None,
        help="Path to package-lock.json. Default: <npm prefix>/package-lock.json"
    )

    parser.add_argument(
        "--full-graph",
        action="store_true",
        default=None,
        help="Also check transitive dependencies (env: PROCESS_FULL_GRAPH)"
    )

    parser.add_argument(
        "--include-prerelease",
        action="store_true",
        default=None,
        help="Allow pre-release versions as recommendations (env: USE_PARTIAL_VERSIONS)"
    )

    parser.add_argument(
        "--ignore-cache",
        action="store_true",
        default=None,
        help="Refetch metadata even when cached (env: IGNORE_CACHE)"
    )

    parser.add_argument(
        "--parallel-limit",
        type=positive_int,
        default=None,
        help="Maximum concurrent lookups (env: PARALLEL_LIMIT). Default: 8"
    )

    parser.add_argument(
        "--max-buffer",
        type=positive_int,
        default=None,
        help="Maximum npm info output size in bytes (env: MAX_BUFFER_FOR_EXEC)"
    )

    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Metadata cache directory. Default: ~/.npm-dependency-date"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds before an npm info call is abandoned. Default: no timeout"
    )

    parser.add_argument(
        "--output-csv",
        type=Path,
        default=None,
        help="Also write all decisions to this CSV file"
    )

    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar on stderr"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    return parser


def build_config(args: argparse.Namespace) -> CheckerConfig:
    """Environment settings overridden by explicit command-line flags."""
    config = CheckerConfig.from_env()
    overrides = {
        "ignore_cache": args.ignore_cache,
        "use_partial_versions": args.include_prerelease,
        "process_full_graph": args.full_graph,
        "parallel_limit": args.parallel_limit,
        "max_output_buffer": args.max_buffer,
        "cache_dir": args.cache_dir,
        "lookup_timeout": args.timeout,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    return replace(config, show_progress=args.progress, **overrides)


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = build_config(args)
    try:
        cutoff = parse_cutoff(args.date)
        lockfile = args.lockfile or find_project_root() / LOCKFILE_NAME
        graph = load_lockfile(lockfile)
    except CutoffError as e:
        print(f"#! {e}", file=sys.stderr)
        sys.exit(1)

    print(f"#  Looking for packages released after {format_timestamp(cutoff)}.")

    client = NpmRegistryClient.from_config(config)
    walker = DependencyWalker(client, config)
    mode = WalkMode.FULL_GRAPH if config.process_full_graph else WalkMode.DIRECT_ONLY
    decisions = walker.walk(graph, cutoff, mode)

    print_decisions(decisions)
    print_summary(decisions)

    if args.output_csv:
        csv_file = export_decisions_csv(decisions, args.output_csv)
        print(f"\nDecisions saved to: {csv_file}")


if __name__ == "__main__":
    main()
