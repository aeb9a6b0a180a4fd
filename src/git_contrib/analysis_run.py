from __future__ import annotations

import sys
from pathlib import Path

from .analysis_render import format_progress, render_stats
from .analysis_repo import analyze_repo
from .git import open_repository, walk_commits
from .identity import AuthorMatcher
from .models import AggregateStats, RunOptions

PROGRESS_EVERY = 100


def _progress(msg: str, *, quiet: bool) -> None:
    if not quiet:
        print(msg, file=sys.stderr, flush=True)


def run_analysis(options: RunOptions) -> AggregateStats:
    """Open the repository, walk HEAD and fold the author's commits. Prints progress to stderr only."""
    repo = open_repository(Path(options.repo), timeout_s=options.git_timeout_s)

    _progress("Collecting commits...", quiet=options.quiet)
    commits = list(walk_commits(repo, timeout_s=options.git_timeout_s))
    total_pairs = max(0, len(commits) - 1)

    def on_pair(done: int) -> None:
        if done % PROGRESS_EVERY == 0 or done == total_pairs:
            _progress(format_progress(done, total_pairs), quiet=options.quiet)

    return analyze_repo(
        repo,
        commits,
        author=AuthorMatcher(options.author),
        exclude_path_prefixes=options.exclude_path_prefixes,
        ignore_blank_lines=options.ignore_blank_lines,
        timeout_s=options.git_timeout_s,
        on_pair=on_pair,
    )


def print_stats(stats: AggregateStats) -> None:
    print("\n".join(render_stats(stats)))
