"""Shared test fixtures for codetrace tests."""

from pathlib import Path

import pytest

from codetrace.config import CodetraceConfig

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir():
    """Path to test fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def claude_jsonl():
    """Claude-Code session: one read, one edit, one write, a Bash and a TodoWrite."""
    return FIXTURES_DIR / "claude.jsonl"


@pytest.fixture
def codex_jsonl():
    """Codex session: cat and sed reads, an apply_patch call, one plain command."""
    return FIXTURES_DIR / "codex.jsonl"


@pytest.fixture
def copilot_json():
    """Copilot-CLI session document with view/str_replace/create/bash events."""
    return FIXTURES_DIR / "copilot.json"


@pytest.fixture
def gemini_json():
    """Gemini chat document using two models."""
    return FIXTURES_DIR / "gemini.json"


@pytest.fixture
def session_dirs(tmp_path, claude_jsonl, codex_jsonl, copilot_json, gemini_json):
    """A config whose log directories hold one copy of each fixture."""
    claude_dir = tmp_path / "claude" / "projects" / "-home-dev-project"
    codex_dir = tmp_path / "codex" / "sessions" / "2025" / "10" / "06"
    gemini_dir = tmp_path / "gemini" / "tmp" / "0f3c9a" / "chats"
    copilot_dir = tmp_path / "copilot"
    for d in (claude_dir, codex_dir, gemini_dir, copilot_dir):
        d.mkdir(parents=True)

    (claude_dir / "claude-sess-1.jsonl").write_text(claude_jsonl.read_text())
    (codex_dir / "rollout-codex-task-1.jsonl").write_text(codex_jsonl.read_text())
    (gemini_dir / "session-gemini-sess-1.json").write_text(gemini_json.read_text())
    (copilot_dir / "copilot-sess-1.json").write_text(copilot_json.read_text())

    return CodetraceConfig(
        claude_dir=tmp_path / "claude" / "projects",
        codex_dir=tmp_path / "codex" / "sessions",
        gemini_dir=tmp_path / "gemini" / "tmp",
        copilot_dir=copilot_dir,
        pricing_cache_dir=tmp_path / "pricing-cache",
        pricing_url="https://example.invalid/prices.json",
        cache_capacity=10,
        port=8787,
    )
