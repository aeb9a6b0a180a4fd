from __future__ import annotations

import dataclasses
import enum

NO_SUMMARY = "(no summary)"


class LineKind(enum.Enum):
    ADDITION = "+"
    DELETION = "-"
    BINARY = "B"
    OTHER = " "


@dataclasses.dataclass(frozen=True)
class Commit:
    sha: str
    author_name: str | None = None
    summary: str | None = None


@dataclasses.dataclass(frozen=True)
class CommitRecord:
    sha: str
    summary: str
    additions: int = 0
    deletions: int = 0
    binary_files: int = 0


@dataclasses.dataclass(frozen=True)
class AggregateStats:
    commits: int = 0
    additions: int = 0
    deletions: int = 0
    binary_files: int = 0
    largest: CommitRecord | None = None


EMPTY_STATS = AggregateStats()


@dataclasses.dataclass(frozen=True)
class RunOptions:
    repo: str
    author: str
    exclude_path_prefixes: tuple[str, ...] = ()
    ignore_blank_lines: bool = True
    git_timeout_s: int = 300
    quiet: bool = False
