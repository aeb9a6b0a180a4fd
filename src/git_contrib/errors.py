from __future__ import annotations


class GitContribError(RuntimeError):
    """Base class for failures that abort a run."""


class RepositoryOpenError(GitContribError):
    """The given path is not an accessible repository root."""


class GraphTraversalError(GitContribError):
    """The commit walk could not be started or iterated."""


class DiffComputationError(GitContribError):
    """A tree-to-tree diff failed for a specific commit pair."""

    def __init__(self, message: str, *, sha: str = "", prev_sha: str = "") -> None:
        super().__init__(message)
        self.sha = sha
        self.prev_sha = prev_sha


class ConfigError(GitContribError):
    """The config file is missing, unreadable or malformed."""


class RunCancelledError(GitContribError):
    """The run was stopped between commit pairs; no totals are reported."""
