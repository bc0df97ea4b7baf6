"""Tests for the JSON API: app factory and routes."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from codetrace.cache import ParseCache
from codetrace.pricing import PriceTable
from codetrace.web.app import create_app

PRICES = PriceTable({"gpt-5": {"input_cost_per_token": 1.25e-06, "output_cost_per_token": 1e-05}})


@pytest.fixture
def cache(session_dirs):
    return ParseCache(capacity=session_dirs.cache_capacity)


@pytest.fixture
def app(session_dirs, cache):
    app = create_app(session_dirs, cache=cache, price_table=PRICES)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Flask test client with a fixed price table."""
    with app.test_client() as c:
        yield c


# ===========================================================================
# App Factory Tests
# ===========================================================================


class TestAppFactory:
    def test_create_app_returns_flask(self, session_dirs):
        app = create_app(session_dirs)
        assert app.__class__.__name__ == "Flask"

    def test_config_values_set(self, app, session_dirs, cache):
        assert app.config["CODETRACE"] is session_dirs
        assert app.config["PARSE_CACHE"] is cache
        assert app.config["PRICE_TABLE"] is PRICES

    def test_empty_injected_cache_kept(self, session_dirs):
        cache = ParseCache(capacity=3)
        assert len(cache) == 0
        app = create_app(session_dirs, cache=cache)
        assert app.config["PARSE_CACHE"] is cache

    def test_default_cache_uses_configured_capacity(self, session_dirs):
        app = create_app(session_dirs)
        assert app.config["PARSE_CACHE"].capacity == session_dirs.cache_capacity
        assert app.config["PRICE_TABLE"] is None


# ===========================================================================
# /api/analysis
# ===========================================================================


class TestAnalysisRoute:
    def test_returns_analysis(self, client, claude_jsonl):
        resp = client.get("/api/analysis", query_string={"path": str(claude_jsonl)})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["extensionName"] == "Claude-Code"
        assert data["records"][0]["taskId"] == "claude-sess-1"

    def test_result_is_cached(self, client, cache, gemini_json):
        client.get("/api/analysis", query_string={"path": str(gemini_json)})
        assert gemini_json in cache

    def test_missing_path_param(self, client):
        resp = client.get("/api/analysis")
        assert resp.status_code == 400
        assert "path" in resp.get_json()["error"]

    def test_file_not_found(self, client, tmp_path):
        resp = client.get("/api/analysis", query_string={"path": str(tmp_path / "nope.jsonl")})
        assert resp.status_code == 404

    def test_unparseable_file(self, client, tmp_path):
        bad = tmp_path / "bad.jsonl"
        bad.write_text("<html>\n")
        resp = client.get("/api/analysis", query_string={"path": str(bad)})
        assert resp.status_code == 422
        assert "invalid JSON" in resp.get_json()["error"]

    def test_directory_path(self, client, tmp_path):
        resp = client.get("/api/analysis", query_string={"path": str(tmp_path)})
        assert resp.status_code == 400
        assert "cannot read" in resp.get_json()["error"]

    def test_invalid_utf8_file(self, client, tmp_path):
        bad = tmp_path / "latin1.jsonl"
        bad.write_bytes(b"\xff\xfe\n")
        resp = client.get("/api/analysis", query_string={"path": str(bad)})
        assert resp.status_code == 422


# ===========================================================================
# /api/usage
# ===========================================================================


class TestUsageRoute:
    def test_rows_for_discovered_sessions(self, client):
        resp = client.get("/api/usage")
        assert resp.status_code == 200
        rows = resp.get_json()
        models = {r["model"] for r in rows}
        assert models == {
            "claude-sonnet-4-20250514",
            "copilot",
            "gemini-2.5-flash",
            "gemini-2.5-pro",
            "gpt-5-codex",
        }
        codex = [r for r in rows if r["model"] == "gpt-5-codex"][0]
        assert codex["matched_model"] == "gpt-5"
        assert codex["cost_usd"] > 0

    def test_fetches_prices_when_not_fixed(self, session_dirs):
        app = create_app(session_dirs)
        with patch("codetrace.web.routes.fetch_model_pricing", return_value=PriceTable()) as fetch:
            with app.test_client() as c:
                resp = c.get("/api/usage")
        assert resp.status_code == 200
        fetch.assert_called_once_with(session_dirs.pricing_cache_dir, session_dirs.pricing_url)
        assert all(r["cost_usd"] == 0 for r in resp.get_json())


# ===========================================================================
# /api/cache/*
# ===========================================================================


class TestCacheRoutes:
    def test_stats_after_usage(self, client):
        client.get("/api/usage")
        stats = client.get("/api/cache/stats").get_json()
        assert stats["entry_count"] == 4
        assert stats["estimated_memory_kb"] == 4 * 50

    def test_stats_drop_deleted_files(self, client, cache, tmp_path, codex_jsonl):
        doomed = tmp_path / "doomed.jsonl"
        doomed.write_text(codex_jsonl.read_text())
        client.get("/api/analysis", query_string={"path": str(doomed)})
        assert len(cache) == 1
        doomed.unlink()
        assert client.get("/api/cache/stats").get_json()["entry_count"] == 0

    def test_clear(self, client, cache, claude_jsonl):
        client.get("/api/analysis", query_string={"path": str(claude_jsonl)})
        resp = client.post("/api/cache/clear")
        assert resp.status_code == 200
        assert resp.get_json() == {"cleared": True}
        assert len(cache) == 0

    def test_clear_requires_post(self, client):
        assert client.get("/api/cache/clear").status_code == 405
