"""Usage aggregation: token totals and costs per (date, model) across many files.

Files are grouped by the date of their modification time. Every file goes
through the injected ParseCache so a refreshing caller only re-parses what
changed.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from codetrace.accumulator import merge_usage
from codetrace.cache import ParseCache
from codetrace.parser import UnparseableFileError, file_modified_date
from codetrace.pricing import PriceTable, calculate_cost

logger = logging.getLogger("codetrace.usage")

# Codex reports these as snapshots of the latest turn.
SNAPSHOT_FIELDS = ("last_token_usage", "model_context_window")


@dataclass
class TokenCounts:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read: int = 0
    cache_creation: int = 0
    total: int = 0


@dataclass
class UsageRow:
    date: str
    model: str
    input_tokens: int
    output_tokens: int
    cache_read_tokens: int
    cache_creation_tokens: int
    total_tokens: int
    cost_usd: float
    matched_model: str | None = None


@dataclass
class AnalysisRow:
    date: str
    model: str
    edit_lines: int = 0
    read_lines: int = 0
    write_lines: int = 0
    bash_count: int = 0
    edit_count: int = 0
    read_count: int = 0
    todo_write_count: int = 0
    write_count: int = 0


def _int(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def extract_token_counts(usage: dict[str, Any]) -> TokenCounts:
    """Read token counts from a Claude, Gemini or Codex usage entry."""
    counts = TokenCounts()
    if not isinstance(usage, dict):
        return counts

    counts.input_tokens = _int(usage.get("input_tokens"))
    counts.output_tokens = _int(usage.get("output_tokens"))
    counts.cache_read = _int(usage.get("cache_read_input_tokens"))
    counts.cache_creation = _int(usage.get("cache_creation_input_tokens"))

    total_usage = usage.get("total_token_usage")
    if isinstance(total_usage, dict):
        if "input_tokens" in total_usage:
            counts.input_tokens = _int(total_usage["input_tokens"])
        counts.output_tokens += _int(total_usage.get("output_tokens"))
        counts.output_tokens += _int(total_usage.get("reasoning_output_tokens"))
        if "cached_input_tokens" in total_usage:
            counts.cache_read = _int(total_usage["cached_input_tokens"])
        if "total_tokens" in total_usage:
            counts.total = _int(total_usage["total_tokens"])
            return counts

    counts.total = counts.input_tokens + counts.output_tokens + counts.cache_read + counts.cache_creation
    return counts


def _analyze_cached(cache: ParseCache, path: Path):
    try:
        return cache.get_or_compute(path)
    except (UnparseableFileError, OSError) as e:
        logger.warning("Skipping %s: %s", path, e)
        return None


def collect_usage(files: Iterable[Path], cache: ParseCache) -> dict[str, dict[str, dict[str, Any]]]:
    """Merge conversation usage of every file into {date: {model: usage}}."""
    by_date: dict[str, dict[str, dict[str, Any]]] = {}

    for path in files:
        analysis = _analyze_cached(cache, path)
        if analysis is None:
            continue
        date_entry = by_date.setdefault(file_modified_date(path), {})
        for record in analysis.records:
            for model, usage in record.conversation_usage.items():
                if model in date_entry:
                    merge_usage(date_entry[model], usage, SNAPSHOT_FIELDS)
                else:
                    date_entry[model] = copy.deepcopy(usage)

    return by_date


def build_usage_rows(
    usage_by_date: dict[str, dict[str, dict[str, Any]]],
    price_table: PriceTable,
) -> list[UsageRow]:
    """Price every (date, model) pair. Rows are sorted by date, then model."""
    rows: list[UsageRow] = []
    for day in sorted(usage_by_date):
        for model in sorted(usage_by_date[day]):
            counts = extract_token_counts(usage_by_date[day][model])
            match = price_table.get(model)
            cost = calculate_cost(
                counts.input_tokens,
                counts.output_tokens,
                counts.cache_read,
                counts.cache_creation,
                match.pricing,
            )
            rows.append(UsageRow(
                date=day,
                model=model,
                input_tokens=counts.input_tokens,
                output_tokens=counts.output_tokens,
                cache_read_tokens=counts.cache_read,
                cache_creation_tokens=counts.cache_creation,
                total_tokens=counts.total,
                cost_usd=cost,
                matched_model=match.matched_model,
            ))
    return rows


def aggregate_analysis(files: Iterable[Path], cache: ParseCache) -> list[AnalysisRow]:
    """Sum file activity per (date, model).

    A session's activity is attributed to every model it used.
    """
    aggregated: dict[tuple[str, str], AnalysisRow] = {}

    for path in files:
        analysis = _analyze_cached(cache, path)
        if analysis is None:
            continue
        day = file_modified_date(path)
        for record in analysis.records:
            counts = record.tool_call_counts
            for model in record.conversation_usage:
                row = aggregated.setdefault((day, model), AnalysisRow(date=day, model=model))
                row.edit_lines += record.total_edit_lines
                row.read_lines += record.total_read_lines
                row.write_lines += record.total_write_lines
                row.bash_count += counts.bash
                row.edit_count += counts.edit
                row.read_count += counts.read
                row.todo_write_count += counts.todo_write
                row.write_count += counts.write

    return [aggregated[key] for key in sorted(aggregated)]
