from __future__ import annotations

import os
import subprocess
from pathlib import Path

import pytest

from git_contrib.analysis_aggregate import commit_size
from git_contrib.analysis_repo import analyze_repo
from git_contrib.git import iter_diff_lines, open_repository, walk_commits
from git_contrib.identity import AuthorMatcher
from git_contrib.errors import RepositoryOpenError
from git_contrib.models import LineKind


def _run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> str:
    proc = subprocess.run(cmd, cwd=str(cwd), env=env, check=True, capture_output=True, text=True)
    return proc.stdout.strip()


def _init_repo(repo: Path) -> None:
    repo.mkdir(parents=True, exist_ok=True)
    _run(["git", "init", "-q"], cwd=repo)
    _run(["git", "config", "commit.gpgsign", "false"], cwd=repo)


def _commit(repo: Path, *, author: str, message: str, files: dict[str, str | bytes]) -> str:
    for name, content in files.items():
        p = repo / name
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            p.write_bytes(content)
        else:
            p.write_text(content, encoding="utf-8")
    env = os.environ.copy()
    env["GIT_AUTHOR_NAME"] = author
    env["GIT_AUTHOR_EMAIL"] = f"{author.lower()}@example.com"
    env["GIT_COMMITTER_NAME"] = author
    env["GIT_COMMITTER_EMAIL"] = f"{author.lower()}@example.com"
    _run(["git", "add", "-A"], cwd=repo)
    _run(["git", "commit", "-q", "--allow-empty", "-m", message], cwd=repo, env=env)
    return _run(["git", "rev-parse", "HEAD"], cwd=repo)


def _lines(prefix: str, n: int) -> str:
    return "".join(f"{prefix} {i}\n" for i in range(n))


def _scenario_repo(repo: Path) -> tuple[str, str, str]:
    _init_repo(repo)
    a = _commit(repo, author="Bob", message="root", files={"src/x": _lines("old", 2), "vendor/y": "v0\n"})
    b = _commit(repo, author="Alice", message="rewrite x", files={"src/x": _lines("new", 10)})
    c = _commit(repo, author="Alice", message="vendor bump", files={"vendor/y": _lines("v1", 3), "src/z": "z\n"})
    return a, b, c


def _analyze(repo: Path, author: str, exclude: list[str] | None = None):
    root = open_repository(repo)
    commits = list(walk_commits(root))
    return analyze_repo(root, commits, author=AuthorMatcher(author), exclude_path_prefixes=exclude or [])


def test_scenario_counts_and_largest(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _a, b, _c = _scenario_repo(repo)

    stats = _analyze(repo, "Alice", ["vendor"])
    assert stats.commits == 2
    assert stats.additions == 11
    assert stats.deletions == 2
    assert stats.largest is not None
    assert stats.largest.sha == b
    assert stats.largest.summary == "rewrite x"
    assert commit_size(stats.largest) == 10


def test_without_exclusions_vendor_lines_count(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _scenario_repo(repo)

    stats = _analyze(repo, "Alice")
    assert stats.additions == 14
    assert stats.deletions == 3


def test_walk_is_newest_first(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    a, b, c = _scenario_repo(repo)

    commits = list(walk_commits(open_repository(repo)))
    assert [x.sha for x in commits] == [c, b, a]
    assert commits[0].author_name == "Alice"
    assert commits[0].summary == "vendor bump"
    assert commits[-1].author_name == "Bob"


def test_author_match_is_exact(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _scenario_repo(repo)

    stats = _analyze(repo, "alice")
    assert stats.commits == 0
    assert stats.additions == 0
    assert stats.deletions == 0
    assert stats.largest is None


def test_single_commit_repository_has_no_pairs(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _init_repo(repo)
    _commit(repo, author="Alice", message="only", files={"a.txt": _lines("a", 5)})

    stats = _analyze(repo, "Alice")
    assert stats.commits == 0
    assert stats.largest is None


def test_empty_repository_is_not_an_error(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _init_repo(repo)

    assert list(walk_commits(open_repository(repo))) == []
    stats = _analyze(repo, "Alice")
    assert stats.commits == 0
    assert stats.largest is None


def test_binary_files_are_counted_separately(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _init_repo(repo)
    _commit(repo, author="Bob", message="root", files={"README": "hi\n"})
    sha = _commit(repo, author="Alice", message="add logo", files={"logo.bin": b"\x00\x01\x02binary\x00", "notes.txt": "one\n"})

    stats = _analyze(repo, "Alice")
    assert stats.commits == 1
    assert stats.additions == 1
    assert stats.deletions == 0
    assert stats.binary_files == 1
    assert stats.largest is not None
    assert stats.largest.sha == sha


def test_blank_lines_are_ignored_by_default(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _init_repo(repo)
    first = _commit(repo, author="Bob", message="root", files={"a.txt": "a\nb\n"})
    second = _commit(repo, author="Alice", message="spacing", files={"a.txt": "a\n\n\nb\n"})

    root = open_repository(repo)
    assert list(iter_diff_lines(root, first, second)) == []
    kinds = [k for _p, k in iter_diff_lines(root, first, second, ignore_blank_lines=False)]
    assert kinds == [LineKind.ADDITION, LineKind.ADDITION]


def test_equal_sized_commits_keep_the_newest(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _init_repo(repo)
    _commit(repo, author="Bob", message="root", files={"README": "hi\n"})
    _commit(repo, author="Alice", message="older", files={"a.txt": _lines("a", 4)})
    newer = _commit(repo, author="Alice", message="newer", files={"b.txt": _lines("b", 4)})

    stats = _analyze(repo, "Alice")
    assert stats.commits == 2
    assert stats.largest is not None
    assert stats.largest.sha == newer


def test_open_repository_rejects_subdirectory_and_plain_dirs(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _scenario_repo(repo)

    assert open_repository(repo) == repo.resolve()
    with pytest.raises(RepositoryOpenError):
        open_repository(repo / "src")
    with pytest.raises(RepositoryOpenError):
        open_repository(tmp_path / "missing")
    plain = tmp_path / "plain"
    plain.mkdir()
    with pytest.raises(RepositoryOpenError):
        open_repository(plain)


def test_diff_paths_with_spaces_match_the_file_name(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    _init_repo(repo)
    first = _commit(repo, author="Bob", message="root", files={"my dir/f.txt": "old\n"})
    second = _commit(repo, author="Alice", message="edit", files={"my dir/f.txt": "new\n"})

    lines = list(iter_diff_lines(open_repository(repo), first, second))
    assert lines == [("my dir/f.txt", LineKind.DELETION), ("my dir/f.txt", LineKind.ADDITION)]


def test_user_diff_algorithm_does_not_change_counts(tmp_path: Path, monkeypatch) -> None:
    repo = tmp_path / "repo"
    _init_repo(repo)
    # patience anchors on the unique line "U" and reports 4/4; myers reports 1/1
    _commit(repo, author="Bob", message="root", files={"a.txt": "U\nx\nx\nx\nx\n"})
    _commit(repo, author="Alice", message="move U", files={"a.txt": "x\nx\nx\nx\nU\n"})

    default = _analyze(repo, "Alice")

    global_cfg = tmp_path / "gitconfig"
    global_cfg.write_text("[diff]\n\talgorithm = patience\n\tsubmodule = log\n", encoding="utf-8")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_cfg))
    patience = _analyze(repo, "Alice")

    assert (default.additions, default.deletions) == (1, 1)
    assert (patience.additions, patience.deletions) == (1, 1)


def test_open_repository_accepts_bare_repository_root(tmp_path: Path) -> None:
    work = tmp_path / "work"
    _scenario_repo(work)
    bare = tmp_path / "bare.git"
    _run(["git", "clone", "-q", "--bare", str(work), str(bare)], cwd=tmp_path)

    assert open_repository(bare) == bare.resolve()
    with pytest.raises(RepositoryOpenError):
        open_repository(bare / "objects")

    stats = _analyze(bare, "Alice", ["vendor"])
    assert stats.commits == 2
    assert stats.additions == 11
    assert stats.deletions == 2
