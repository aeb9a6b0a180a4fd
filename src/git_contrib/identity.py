from __future__ import annotations

import dataclasses

from .models import Commit


@dataclasses.dataclass(frozen=True)
class AuthorMatcher:
    """
    Exact author-name match: case-sensitive, no trimming, no email or alias
    resolution. A commit without an author name never matches.
    """

    name: str

    def matches(self, author_name: str | None) -> bool:
        if not self.name or not author_name:
            return False
        return author_name == self.name

    def matches_commit(self, commit: Commit) -> bool:
        return self.matches(commit.author_name)
