from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from .analysis_aggregate import fold
from .analysis_paths import should_exclude_path
from .errors import RunCancelledError
from .git import iter_diff_lines
from .identity import AuthorMatcher
from .models import EMPTY_STATS, NO_SUMMARY, AggregateStats, Commit, CommitRecord, LineKind

DiffSource = Callable[[Commit, Commit], Iterable[tuple[str, LineKind]]]


def commit_pairs(commits: Iterable[Commit]) -> Iterator[tuple[Commit, Commit]]:
    """
    Adjacent (current, predecessor) pairs of a newest-first commit sequence.

    The predecessor is the next commit in walk order, not necessarily a
    parent. The last commit is never a "current" commit.
    """
    it = iter(commits)
    current = next(it, None)
    if current is None:
        return
    for prev in it:
        yield current, prev
        current = prev


def summarize_commit(
    commit: Commit,
    lines: Iterable[tuple[str, LineKind]],
    exclude_path_prefixes: Iterable[str] = (),
) -> CommitRecord:
    prefixes = tuple(exclude_path_prefixes)
    additions = 0
    deletions = 0
    binary_files = 0

    excluded_cache: dict[str, bool] = {}
    for path, kind in lines:
        excluded = excluded_cache.get(path)
        if excluded is None:
            excluded = should_exclude_path(path, prefixes)
            excluded_cache[path] = excluded
        if excluded:
            continue

        if kind is LineKind.ADDITION:
            additions += 1
        elif kind is LineKind.DELETION:
            deletions += 1
        elif kind is LineKind.BINARY:
            binary_files += 1
        elif kind is LineKind.OTHER:
            continue
        else:
            raise ValueError(f"unknown line kind: {kind!r}")

    return CommitRecord(
        sha=commit.sha,
        summary=commit.summary or NO_SUMMARY,
        additions=additions,
        deletions=deletions,
        binary_files=binary_files,
    )


def git_diff_source(repo: Path, *, ignore_blank_lines: bool = True, timeout_s: int = 300) -> DiffSource:
    def diff(commit: Commit, prev: Commit) -> Iterable[tuple[str, LineKind]]:
        return iter_diff_lines(repo, prev.sha, commit.sha, ignore_blank_lines=ignore_blank_lines, timeout_s=timeout_s)

    return diff


def analyze_commits(
    commits: Iterable[Commit],
    *,
    author: AuthorMatcher,
    diff: DiffSource,
    exclude_path_prefixes: Iterable[str] = (),
    on_pair: Callable[[int], None] | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> AggregateStats:
    """
    Fold every commit by `author` into an AggregateStats, in walk order.

    `on_pair` is called with the number of pairs processed so far.
    `should_stop` is consulted between pairs only. A stop raises
    RunCancelledError, so partial totals never reach the caller.
    """
    prefixes = tuple(exclude_path_prefixes)
    stats = EMPTY_STATS
    for i, (commit, prev) in enumerate(commit_pairs(commits), start=1):
        if should_stop is not None and should_stop():
            raise RunCancelledError(f"run stopped after {i - 1} commit pairs")
        if author.matches_commit(commit):
            record = summarize_commit(commit, diff(commit, prev), prefixes)
            stats = fold(stats, record)
        if on_pair is not None:
            on_pair(i)
    return stats


def analyze_repo(
    repo: Path,
    commits: Iterable[Commit],
    *,
    author: AuthorMatcher,
    exclude_path_prefixes: Iterable[str] = (),
    ignore_blank_lines: bool = True,
    timeout_s: int = 300,
    on_pair: Callable[[int], None] | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> AggregateStats:
    return analyze_commits(
        commits,
        author=author,
        diff=git_diff_source(repo, ignore_blank_lines=ignore_blank_lines, timeout_s=timeout_s),
        exclude_path_prefixes=exclude_path_prefixes,
        on_pair=on_pair,
        should_stop=should_stop,
    )
