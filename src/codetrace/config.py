"""Configuration loader: reads optional YAML config and merges with defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

CONFIG_PATH = Path("~/.config/codetrace/config.yaml")

LITELLM_PRICING_URL = (
    "https://github.com/BerriAI/litellm/raw/refs/heads/main/"
    "model_prices_and_context_window.json"
)

DEFAULTS = {
    "claude_dir": "~/.claude/projects",
    "codex_dir": "~/.codex/sessions",
    "gemini_dir": "~/.gemini/tmp",
    "copilot_dir": "~/.copilot/history-session-state",
    "pricing_cache_dir": "~/.cache/codetrace",
    "pricing_url": LITELLM_PRICING_URL,
    "cache_capacity": 100,
    "port": 8787,
}

_PATH_KEYS = ("claude_dir", "codex_dir", "gemini_dir", "copilot_dir", "pricing_cache_dir")


@dataclass
class CodetraceConfig:
    claude_dir: Path
    codex_dir: Path
    gemini_dir: Path
    copilot_dir: Path
    pricing_cache_dir: Path
    pricing_url: str
    cache_capacity: int
    port: int


def load_config(config_path: Path | None = None) -> CodetraceConfig:
    """Load config from ~/.config/codetrace/config.yaml, merged with defaults.

    Expand ~ in paths. If no config file exists, return defaults (don't error).
    """
    if config_path is None:
        config_path = CONFIG_PATH

    config_path = config_path.expanduser()

    merged = dict(DEFAULTS)

    if config_path.is_file():
        with open(config_path) as f:
            user_config = yaml.safe_load(f)
        if isinstance(user_config, dict):
            for key in DEFAULTS:
                if key in user_config:
                    merged[key] = user_config[key]

    paths = {key: Path(str(merged[key])).expanduser() for key in _PATH_KEYS}

    return CodetraceConfig(
        **paths,
        pricing_url=str(merged["pricing_url"]),
        cache_capacity=max(1, int(merged["cache_capacity"])),
        port=int(merged["port"]),
    )
