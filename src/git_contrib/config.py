from __future__ import annotations

import json
from pathlib import Path

from .analysis_paths import split_exclude_values
from .errors import ConfigError
from .models import RunOptions


def load_config(config_path: Path) -> dict:
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to read config {config_path}: {e}") from e
    try:
        config = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in config {config_path}: {e}") from e
    if not isinstance(config, dict):
        raise ConfigError(f"config {config_path} must contain a JSON object")
    return config


def _config_str_list(config: dict, key: str) -> list[str]:
    value = config.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"config key {key!r} must be a list of strings")
    return value


def build_run_options(
    *,
    repo: str,
    author: str,
    exclude: list[str] | None,
    config: dict | None = None,
    quiet: bool = False,
) -> RunOptions:
    """Merge CLI values over an optional config dict; config exclusions come first."""
    config = config or {}

    exclude_path_prefixes = split_exclude_values([*_config_str_list(config, "exclude_path_prefixes"), *(exclude or [])])

    ignore_blank_lines = config.get("ignore_blank_lines", True)
    if not isinstance(ignore_blank_lines, bool):
        raise ConfigError("config key 'ignore_blank_lines' must be true or false")

    git_timeout_s = config.get("git_timeout_s", 300)
    if isinstance(git_timeout_s, bool) or not isinstance(git_timeout_s, int) or git_timeout_s <= 0:
        raise ConfigError("config key 'git_timeout_s' must be a positive integer")

    return RunOptions(
        repo=repo,
        author=author,
        exclude_path_prefixes=exclude_path_prefixes,
        ignore_blank_lines=ignore_blank_lines,
        git_timeout_s=git_timeout_s,
        quiet=quiet,
    )
