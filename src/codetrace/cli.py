"""CLI entrypoint: codetrace analyze, codetrace usage, codetrace serve."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path

import click

from codetrace.cache import ParseCache
from codetrace.config import load_config
from codetrace.parser import UnparseableFileError, analyze_file, discover_session_files
from codetrace.pricing import fetch_model_pricing
from codetrace.usage import aggregate_analysis, build_usage_rows, collect_usage


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool):
    """codetrace: reconstruct what AI coding assistants did in a session."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("path", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write JSON here.")
@click.option("--all", "all_sessions", is_flag=True, help="Analyze every discovered session file.")
def analyze(path: Path | None, output: Path | None, all_sessions: bool):
    """Analyze one session log, or all of them with --all."""
    if all_sessions:
        config = load_config()
        files = discover_session_files(config)
        if not files:
            click.echo("No session files found.")
            return
        rows = aggregate_analysis(files, ParseCache(capacity=config.cache_capacity))
        if output:
            output.write_text(json.dumps([asdict(r) for r in rows], indent=2))
            click.echo(f"Wrote {len(rows)} rows to {output}")
            return
        for r in rows:
            click.echo(
                f"{r.date}  {r.model}: "
                f"edit {r.edit_lines} lines, read {r.read_lines} lines, write {r.write_lines} lines, "
                f"{r.bash_count} bash, {r.todo_write_count} todo"
            )
        return

    if path is None:
        raise click.UsageError("Give a PATH or use --all.")

    try:
        analysis = analyze_file(path)
    except UnparseableFileError as e:
        click.echo(f"Cannot analyze {path}: {e.reason}", err=True)
        raise SystemExit(1)

    payload = json.dumps(analysis.to_dict(), indent=2)
    if output:
        output.write_text(payload)
        click.echo(f"Wrote analysis to {output}")
    else:
        click.echo(payload)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print rows as JSON.")
def usage(as_json: bool):
    """Print token usage and estimated cost per date and model."""
    config = load_config()
    files = discover_session_files(config)
    if not files:
        click.echo("No session files found.")
        return

    usage_by_date = collect_usage(files, ParseCache(capacity=config.cache_capacity))
    price_table = fetch_model_pricing(config.pricing_cache_dir, config.pricing_url)
    rows = build_usage_rows(usage_by_date, price_table)

    if as_json:
        click.echo(json.dumps([asdict(r) for r in rows], indent=2))
        return

    total = 0.0
    for r in rows:
        matched = f" (priced as {r.matched_model})" if r.matched_model else ""
        click.echo(
            f"{r.date}  {r.model}{matched}: "
            f"{r.input_tokens} in, {r.output_tokens} out, "
            f"{r.cache_read_tokens} cache read, {r.cache_creation_tokens} cache write, "
            f"${r.cost_usd:.2f}"
        )
        total += r.cost_usd
    click.echo(f"\nTotal: ${total:.2f}")


@cli.command()
@click.option("--port", default=None, type=int, help="Port to serve on (default: 8787).")
def serve(port: int | None):
    """Start the JSON API server."""
    config = load_config()
    serve_port = port or config.port

    click.echo(f"Serving codetrace API at http://localhost:{serve_port}")
    click.echo("Press Ctrl+C to stop.")

    from codetrace.web.app import create_app

    app = create_app(config)
    app.run(host="localhost", port=serve_port)
