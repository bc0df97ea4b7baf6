"""Git remote lookup from a working directory's .git/config."""

from __future__ import annotations

from pathlib import Path


def get_git_remote_url(folder_path: str | Path) -> str:
    """Return the origin remote URL of the repository at folder_path.

    Reads the `[remote "origin"]` section of `.git/config` directly and strips
    a trailing `.git`. Returns "" when there is no folder, no config, or no
    origin remote.
    """
    if not folder_path:
        return ""

    config_path = Path(folder_path) / ".git" / "config"
    try:
        with open(config_path, encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except OSError:
        return ""

    in_origin = False
    for line in lines:
        stripped = line.strip()
        if stripped.startswith("[") and stripped.endswith("]"):
            in_origin = stripped.startswith('[remote "origin"')
            continue
        if in_origin and stripped.startswith("url"):
            key, sep, value = stripped.partition("=")
            if not sep or key.strip() != "url":
                continue
            url = value.strip()
            if url.endswith(".git"):
                url = url[: -len(".git")]
            return url

    return ""
