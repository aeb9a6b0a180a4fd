from __future__ import annotations

from collections.abc import Iterable

from .models import EMPTY_STATS, AggregateStats, CommitRecord


def commit_size(record: CommitRecord) -> int:
    return max(record.additions, record.deletions)


def fold(stats: AggregateStats, record: CommitRecord) -> AggregateStats:
    """
    Add one commit to the running totals.

    `largest` is replaced only when the new record is strictly bigger, so on
    equal size the record folded first is kept.
    """
    largest = stats.largest
    if largest is None or commit_size(record) > commit_size(largest):
        largest = record
    return AggregateStats(
        commits=stats.commits + 1,
        additions=stats.additions + record.additions,
        deletions=stats.deletions + record.deletions,
        binary_files=stats.binary_files + record.binary_files,
        largest=largest,
    )


def aggregate(records: Iterable[CommitRecord], initial: AggregateStats = EMPTY_STATS) -> AggregateStats:
    stats = initial
    for record in records:
        stats = fold(stats, record)
    return stats
