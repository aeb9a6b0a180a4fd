from __future__ import annotations

from .analysis_aggregate import commit_size
from .models import AggregateStats


def render_stats(stats: AggregateStats) -> list[str]:
    lines = [
        f" {stats.commits} commits",
        f"+{stats.additions}",
        f"-{stats.deletions}",
    ]
    if stats.binary_files > 0:
        lines.append(f"~{stats.binary_files} binary files")
    if stats.largest is not None:
        lines.append(stats.largest.sha)
        lines.append(str(commit_size(stats.largest)))
        lines.append(stats.largest.summary)
    return lines


def format_progress(done: int, total: int) -> str:
    return f"Analyzed {done}/{total} commits..."
