from __future__ import annotations

import argparse
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from .analysis_run import print_stats, run_analysis
from .config import build_run_options, load_config
from .errors import GitContribError


def _version() -> str:
    try:
        return version("git-contrib")
    except PackageNotFoundError:
        return "(unversioned)"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-contrib",
        description="Count one author's commits, changed lines and largest commit in a git repository.",
    )
    parser.add_argument("repo", metavar="REPO", help="Repository path.")
    parser.add_argument("author", metavar="AUTHOR", help="Author name (exact, case-sensitive match).")
    parser.add_argument(
        "-e",
        "--exclude",
        metavar="EXCLUDE",
        action="append",
        default=[],
        help="Exclude changes to specified directories. Multiple directories are delimited by commas.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Optional config.json with default exclusions and git settings.")
    parser.add_argument("-q", "--quiet", action="store_true", help="Do not print progress to stderr.")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {_version()}")
    return parser


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    if not argv:
        parser.print_help(sys.stderr)
        return 2
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config) if args.config is not None else None
        options = build_run_options(
            repo=args.repo,
            author=args.author,
            exclude=args.exclude,
            config=config,
            quiet=bool(args.quiet),
        )
        stats = run_analysis(options)
    except GitContribError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print_stats(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
