"""Route handlers: maps URLs to the parse cache and usage aggregation."""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path

from flask import Blueprint, current_app, jsonify, request

from codetrace.parser import UnparseableFileError, discover_session_files
from codetrace.pricing import fetch_model_pricing
from codetrace.usage import build_usage_rows, collect_usage

bp = Blueprint("api", __name__, url_prefix="/api")


@bp.route("/analysis")
def analysis():
    """Analysis of one session file, served from the parse cache."""
    path = request.args.get("path")
    if not path:
        return jsonify({"error": "missing 'path' query parameter"}), 400

    cache = current_app.config["PARSE_CACHE"]
    try:
        result = cache.get_or_compute(Path(path))
    except FileNotFoundError:
        return jsonify({"error": f"file not found: {path}"}), 404
    except OSError as e:
        return jsonify({"error": f"cannot read {path}: {e.strerror or e}"}), 400
    except UnparseableFileError as e:
        return jsonify({"error": e.reason}), 422
    return jsonify(result.to_dict())


@bp.route("/usage")
def usage():
    """Token usage and cost per date and model across all discovered sessions."""
    config = current_app.config["CODETRACE"]
    cache = current_app.config["PARSE_CACHE"]

    price_table = current_app.config["PRICE_TABLE"]
    if price_table is None:
        price_table = fetch_model_pricing(config.pricing_cache_dir, config.pricing_url)

    usage_by_date = collect_usage(discover_session_files(config), cache)
    rows = build_usage_rows(usage_by_date, price_table)
    return jsonify([asdict(r) for r in rows])


@bp.route("/cache/stats")
def cache_stats():
    cache = current_app.config["PARSE_CACHE"]
    cache.cleanup_stale()
    return jsonify(asdict(cache.stats()))


@bp.route("/cache/clear", methods=["POST"])
def cache_clear():
    cache = current_app.config["PARSE_CACHE"]
    cache.clear()
    return jsonify({"cleared": True})
