"""Flask app factory: exposes analyses and usage as a JSON API."""

from __future__ import annotations

from flask import Flask

from codetrace.cache import ParseCache
from codetrace.config import CodetraceConfig
from codetrace.pricing import PriceTable


def create_app(
    config: CodetraceConfig,
    cache: ParseCache | None = None,
    price_table: PriceTable | None = None,
) -> Flask:
    """Create the Flask app with config values and registered routes.

    Args:
        config: CodetraceConfig with session dirs, pricing settings, etc.
        cache: ParseCache shared by all requests; a new one is built if omitted.
        price_table: Fixed price table. If omitted, prices are fetched on demand.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)

    app.config["CODETRACE"] = config
    app.config["PARSE_CACHE"] = cache if cache is not None else ParseCache(capacity=config.cache_capacity)
    app.config["PRICE_TABLE"] = price_table

    from codetrace.web.routes import bp

    app.register_blueprint(bp)

    return app
