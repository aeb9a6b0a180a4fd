from __future__ import annotations

import subprocess
import threading
from collections.abc import Iterator
from pathlib import Path

from .errors import DiffComputationError, GraphTraversalError, RepositoryOpenError
from .models import Commit, LineKind

# Flags that keep porcelain output stable regardless of user config.
GIT_CONFIG_OVERRIDES = [
    "-c",
    "core.quotePath=false",
    "-c",
    "log.showSignature=false",
    "-c",
    "i18n.logOutputEncoding=UTF-8",
    "-c",
    "color.ui=false",
]

SHA_LENGTHS = (40, 64)


def run_git(args: list[str], cwd: Path, timeout_s: int = 300) -> tuple[int, str, str]:
    proc = subprocess.run(
        ["git", *GIT_CONFIG_OVERRIDES, *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        timeout=timeout_s,
    )
    return proc.returncode, proc.stdout, proc.stderr


def _excerpt(stderr: str, limit: int = 500) -> str:
    return stderr.strip()[:limit]


def open_repository(path: Path, timeout_s: int = 300) -> Path:
    """
    Resolve `path` to a repository root, or raise RepositoryOpenError.

    A work tree must be given by its top-level directory and a bare repository
    by its git directory; subdirectories are rejected rather than searched
    upward.
    """
    if not path.exists():
        raise RepositoryOpenError(f"failed to open {path}: no such file or directory")
    if not path.is_dir():
        raise RepositoryOpenError(f"failed to open {path}: not a directory")
    root = path.resolve()

    try:
        code, out, err = run_git(["rev-parse", "--is-bare-repository", "--absolute-git-dir"], cwd=root, timeout_s=timeout_s)
    except FileNotFoundError as e:
        raise RepositoryOpenError(f"failed to open {path}: git executable not found") from e
    except (OSError, subprocess.TimeoutExpired) as e:
        raise RepositoryOpenError(f"failed to open {path}: {e}") from e
    if code != 0:
        raise RepositoryOpenError(f"failed to open {path}: {_excerpt(err) or 'not a git repository'}")

    lines = out.splitlines()
    is_bare = bool(lines) and lines[0].strip() == "true"
    if is_bare:
        git_dir = Path(lines[1].strip()).resolve() if len(lines) > 1 else None
        if git_dir != root:
            raise RepositoryOpenError(f"failed to open {path}: not the root of a bare repository ({git_dir})")
        return root

    code, out, err = run_git(["rev-parse", "--show-toplevel"], cwd=root, timeout_s=timeout_s)
    if code != 0:
        raise RepositoryOpenError(f"failed to open {path}: {_excerpt(err) or 'no work tree'}")
    toplevel = Path(out.strip()).resolve()
    if toplevel != root:
        raise RepositoryOpenError(f"failed to open {path}: not a repository root (work tree root is {toplevel})")
    return root


def has_head(repo: Path, timeout_s: int = 300) -> bool:
    """False for an unborn HEAD (a repository without commits)."""
    try:
        code, _out, err = run_git(["rev-parse", "--verify", "--quiet", "HEAD^{commit}"], cwd=repo, timeout_s=timeout_s)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise GraphTraversalError(f"failed to resolve HEAD in {repo}: {e}") from e
    if code == 0:
        return True
    if err.strip():
        raise GraphTraversalError(f"failed to resolve HEAD in {repo}: {_excerpt(err)}")
    return False


def _stream_git(args: list[str], cwd: Path, *, timeout_s: int) -> Iterator[str]:
    """
    Yield stdout lines of a git command as they arrive.

    stderr is drained on a background thread so a large stderr can never
    block the child. The process is killed once `timeout_s` elapses or when
    the consumer stops iterating early. On a non-zero exit or timeout a
    `subprocess.CalledProcessError` / `subprocess.TimeoutExpired` is raised
    after the last line; callers wrap these in their own error types.
    """
    cmd = ["git", *GIT_CONFIG_OVERRIDES, *args]
    proc = subprocess.Popen(
        cmd,
        cwd=str(cwd),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
    )

    stderr_chunks: list[str] = []
    stderr_chars = 0
    max_stderr_chars = 50_000

    def drain_stderr() -> None:
        nonlocal stderr_chars
        if proc.stderr is None:
            return
        while True:
            chunk = proc.stderr.read(8192)
            if not chunk:
                return
            if stderr_chars >= max_stderr_chars:
                continue
            take = chunk[: max_stderr_chars - stderr_chars]
            stderr_chunks.append(take)
            stderr_chars += len(take)

    stderr_thread = threading.Thread(target=drain_stderr, daemon=True)
    stderr_thread.start()

    timed_out = threading.Event()

    def on_timeout() -> None:
        timed_out.set()
        proc.kill()

    timer = threading.Timer(timeout_s, on_timeout)
    timer.daemon = True
    timer.start()

    finished = False
    try:
        assert proc.stdout is not None
        for raw_line in proc.stdout:
            yield raw_line.rstrip("\n")
        finished = True
    finally:
        timer.cancel()
        if not finished and proc.poll() is None:
            proc.kill()
        code = proc.wait()
        stderr_thread.join()
        if proc.stdout is not None:
            proc.stdout.close()
        if proc.stderr is not None:
            proc.stderr.close()

    if timed_out.is_set():
        raise subprocess.TimeoutExpired(cmd, timeout_s, stderr="".join(stderr_chunks))
    if code != 0:
        raise subprocess.CalledProcessError(code, cmd, stderr="".join(stderr_chunks))


def _parse_commit_line(line: str) -> Commit:
    parts = line.split("\t", 2)
    sha = parts[0].strip()
    if len(sha) not in SHA_LENGTHS or any(c not in "0123456789abcdef" for c in sha):
        raise GraphTraversalError(f"malformed commit record from git log: {line[:200]!r}")
    author_name = parts[1] if len(parts) > 1 else ""
    summary = parts[2] if len(parts) > 2 else ""
    return Commit(sha=sha, author_name=author_name or None, summary=summary or None)


def walk_commits(repo: Path, timeout_s: int = 300) -> Iterator[Commit]:
    """Commits reachable from HEAD, newest first in topological order."""
    if not has_head(repo, timeout_s=timeout_s):
        return

    pretty = "%H\t%an\t%s"
    cmd = ["log", "--topo-order", "--no-color", f"--pretty=tformat:{pretty}", "HEAD", "--"]
    seen: set[str] = set()
    try:
        for line in _stream_git(cmd, repo, timeout_s=timeout_s):
            if not line:
                continue
            commit = _parse_commit_line(line)
            if commit.sha in seen:
                raise GraphTraversalError(f"git log yielded {commit.sha} twice")
            seen.add(commit.sha)
            yield commit
    except subprocess.CalledProcessError as e:
        raise GraphTraversalError(f"git log exited {e.returncode} in {repo}: {_excerpt(e.stderr or '')}") from e
    except subprocess.TimeoutExpired as e:
        raise GraphTraversalError(f"git log timed out after {timeout_s}s in {repo}") from e
    except OSError as e:
        raise GraphTraversalError(f"failed to start git log in {repo}: {e}") from e


def unquote_git_path(s: str) -> str:
    # git wraps names containing quotes, backslashes or control bytes in "..." with C escapes
    if len(s) < 2 or not (s.startswith('"') and s.endswith('"')):
        return s
    body = s[1:-1]
    return body.encode("utf-8").decode("unicode_escape").encode("latin-1").decode("utf-8", errors="replace")


def _strip_side_prefix(path: str, prefix: str) -> str:
    return path[len(prefix) :] if path.startswith(prefix) else path


def _file_header_path(name: str, prefix: str) -> str:
    # git ends "---"/"+++" names that contain a space with a TAB
    if name.endswith("\t"):
        name = name[:-1]
    return _strip_side_prefix(unquote_git_path(name), prefix)


def _path_from_diff_header(rest: str) -> str:
    # Without rename detection both sides name the same file: "a/P b/P".
    half = (len(rest) - 1) // 2
    return _strip_side_prefix(unquote_git_path(rest[:half]), "a/")


def parse_unified_diff(lines: Iterator[str]) -> Iterator[tuple[str, LineKind]]:
    """Classify the lines of `git diff` patch output as (path, kind) pairs."""
    path = ""
    in_hunk = False
    for line in lines:
        if line.startswith("diff --git "):
            path = _path_from_diff_header(line[len("diff --git ") :])
            in_hunk = False
            continue
        if not in_hunk:
            if line.startswith("--- "):
                old = line[4:]
                if old.rstrip("\t") != "/dev/null":
                    path = _file_header_path(old, "a/")
            elif line.startswith("+++ "):
                new = line[4:]
                if new.rstrip("\t") != "/dev/null":
                    path = _file_header_path(new, "b/")
            elif line.startswith("Binary files ") and line.endswith(" differ"):
                yield path, LineKind.BINARY
            elif line.startswith("@@"):
                in_hunk = True
            continue

        if line.startswith("@@"):
            continue
        head = line[:1]
        if head == "+":
            yield path, LineKind.ADDITION
        elif head == "-":
            yield path, LineKind.DELETION
        else:
            # context lines and "\ No newline at end of file"
            yield path, LineKind.OTHER


def iter_diff_lines(
    repo: Path,
    prev_sha: str,
    sha: str,
    *,
    ignore_blank_lines: bool = True,
    timeout_s: int = 300,
) -> Iterator[tuple[str, LineKind]]:
    """Lazily classify every changed line between the trees of `prev_sha` and `sha`."""
    cmd = [
        "diff",
        "--no-color",
        "--no-ext-diff",
        "--no-textconv",
        "--no-renames",
        "--diff-algorithm=myers",
        "--submodule=short",
        "--unified=0",
        "--src-prefix=a/",
        "--dst-prefix=b/",
    ]
    if ignore_blank_lines:
        cmd.append("--ignore-blank-lines")
    cmd.extend([prev_sha, sha, "--"])
    try:
        yield from parse_unified_diff(_stream_git(cmd, repo, timeout_s=timeout_s))
    except subprocess.CalledProcessError as e:
        raise DiffComputationError(
            f"git diff {prev_sha[:12]}..{sha[:12]} exited {e.returncode}: {_excerpt(e.stderr or '')}",
            sha=sha,
            prev_sha=prev_sha,
        ) from e
    except subprocess.TimeoutExpired as e:
        raise DiffComputationError(
            f"git diff {prev_sha[:12]}..{sha[:12]} timed out after {timeout_s}s",
            sha=sha,
            prev_sha=prev_sha,
        ) from e
    except OSError as e:
        raise DiffComputationError(f"failed to start git diff {prev_sha[:12]}..{sha[:12]}: {e}", sha=sha, prev_sha=prev_sha) from e
