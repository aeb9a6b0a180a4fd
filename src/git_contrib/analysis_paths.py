from __future__ import annotations

from collections.abc import Iterable


def split_exclude_values(values: Iterable[str]) -> tuple[str, ...]:
    """Flatten repeated and comma-joined `--exclude` values, keeping order and dropping blanks/duplicates."""
    out: list[str] = []
    for value in values:
        for item in (value or "").split(","):
            if item and item not in out:
                out.append(item)
    return tuple(out)


def should_exclude_path(path: str, exclude_prefixes: Iterable[str]) -> bool:
    # Literal string prefix, not path-segment aware: "docs" also excludes "docs2/x".
    for pref in exclude_prefixes:
        if pref and path.startswith(pref):
            return True
    return False
