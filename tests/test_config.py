"""Tests for codetrace.config module."""

from pathlib import Path

from codetrace.config import DEFAULTS, LITELLM_PRICING_URL, CodetraceConfig, load_config


def test_load_config_no_file(tmp_path):
    """When config file doesn't exist, return defaults without error."""
    config = load_config(config_path=tmp_path / "nonexistent.yaml")
    assert isinstance(config, CodetraceConfig)
    assert config.port == 8787
    assert config.cache_capacity == 100
    assert config.pricing_url == LITELLM_PRICING_URL


def test_load_config_defaults_paths(tmp_path):
    """Default paths should be expanded (no ~ remaining)."""
    config = load_config(config_path=tmp_path / "nonexistent.yaml")
    for path in (
        config.claude_dir,
        config.codex_dir,
        config.gemini_dir,
        config.copilot_dir,
        config.pricing_cache_dir,
    ):
        assert "~" not in str(path)


def test_load_config_partial_override(tmp_path):
    """A partial config file merges with defaults correctly."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("port: 9999\n")

    config = load_config(config_path=config_file)
    assert config.port == 9999
    assert config.claude_dir == Path(DEFAULTS["claude_dir"]).expanduser()


def test_load_config_custom_paths(tmp_path):
    """Custom session dirs from config are expanded."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "codex_dir: ~/work/codex\n"
        "pricing_cache_dir: ~/.cache/other\n"
    )

    config = load_config(config_path=config_file)
    assert config.codex_dir == Path("~/work/codex").expanduser()
    assert config.pricing_cache_dir == Path("~/.cache/other").expanduser()


def test_load_config_unknown_keys_ignored(tmp_path):
    """Unknown keys in the YAML file are silently ignored."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("unknown_key: some_value\nport: 1234\n")

    config = load_config(config_path=config_file)
    assert config.port == 1234
    assert not hasattr(config, "unknown_key")


def test_load_config_cache_capacity_floor(tmp_path):
    """A cache capacity below 1 is raised to 1."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("cache_capacity: 0\n")

    assert load_config(config_path=config_file).cache_capacity == 1


def test_load_config_empty_yaml(tmp_path):
    """An empty YAML file returns defaults."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")

    config = load_config(config_path=config_file)
    assert config.port == 8787


def test_load_config_non_mapping_yaml(tmp_path):
    """A YAML list instead of a mapping is ignored."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- port\n- 1234\n")

    config = load_config(config_path=config_file)
    assert config.port == 8787
