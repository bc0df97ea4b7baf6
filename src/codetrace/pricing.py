"""Model pricing: price table, tiered model-name resolution, and cost calculation.

Rates are USD per token, in the LiteLLM price map format. The price table is
fetched at most once per day and cached on disk; see fetch_model_pricing().
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, fields
from datetime import date
from pathlib import Path
from typing import Any, Mapping

import requests
from rapidfuzz.distance import JaroWinkler

from codetrace.config import LITELLM_PRICING_URL

logger = logging.getLogger("codetrace.pricing")

# Each token type switches to its above-200K rate when its count exceeds this.
TOKEN_THRESHOLD = 200_000
SIMILARITY_THRESHOLD = 0.7
CACHE_FILE_PREFIX = "model_pricing_"
FETCH_TIMEOUT_SECONDS = 30

_DATE_SUFFIX = re.compile(r"-\d{8}$")
_VERSION_SUFFIX = re.compile(r"-v\d+(?:[.:]\d+)*$", re.IGNORECASE)


@dataclass(frozen=True)
class ModelPricing:
    input_cost_per_token: float = 0.0
    output_cost_per_token: float = 0.0
    cache_read_input_token_cost: float = 0.0
    cache_creation_input_token_cost: float = 0.0
    input_cost_per_token_above_200k_tokens: float = 0.0
    output_cost_per_token_above_200k_tokens: float = 0.0
    cache_read_input_token_cost_above_200k_tokens: float = 0.0
    cache_creation_input_token_cost_above_200k_tokens: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ModelPricing:
        """Build from a price-map entry; unset above-200K rates take the base rate.

        Missing or non-numeric fields count as 0.
        """
        values: dict[str, float] = {}
        for f in fields(cls):
            raw = data.get(f.name)
            is_number = isinstance(raw, (int, float)) and not isinstance(raw, bool)
            values[f.name] = float(raw) if is_number else 0.0

        for base in (
            "input_cost_per_token",
            "output_cost_per_token",
            "cache_read_input_token_cost",
            "cache_creation_input_token_cost",
        ):
            above = f"{base}_above_200k_tokens"
            if values[above] == 0.0:
                values[above] = values[base]

        return cls(**values)

    def to_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class PricingMatch:
    """Resolved rates; matched_model names the table key when it differs from the query."""

    pricing: ModelPricing
    matched_model: str | None = None


NO_MATCH = PricingMatch(pricing=ModelPricing(), matched_model=None)


def normalize_model_name(name: str) -> str:
    """Strip a provider/ prefix, a -v<version> suffix and a -YYYYMMDD date suffix.

    e.g. 'bedrock/claude-3-sonnet-20240229' -> 'claude-3-sonnet'
    """
    if "/" in name:
        name = name.split("/", 1)[1]
    name = _VERSION_SUFFIX.sub("", name)
    name = _DATE_SUFFIX.sub("", name)
    return name


class PriceTable:
    """An immutable, indexed snapshot of model prices.

    Refreshing prices means building a new PriceTable, never mutating one.
    """

    def __init__(self, raw: Mapping[str, ModelPricing | Mapping[str, Any]] | None = None) -> None:
        entries: dict[str, ModelPricing] = {}
        for name, value in (raw or {}).items():
            if isinstance(value, ModelPricing):
                entries[name] = value
            elif isinstance(value, Mapping):
                entries[name] = ModelPricing.from_dict(value)

        normalized: dict[str, str] = {}
        for name in entries:
            key = normalize_model_name(name)
            # A key already in normalized form owns its slot.
            if key == name or key not in normalized:
                normalized[key] = name

        self._entries = entries
        self._normalized = normalized
        self._lowercase = sorted((name.lower(), name) for name in entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def is_empty(self) -> bool:
        return not self._entries

    def names(self) -> list[str]:
        return list(self._entries)

    def get(self, model_name: str) -> PricingMatch:
        """Resolve a model name: exact, then normalized, then substring, then fuzzy."""
        if not model_name or not self._entries:
            return NO_MATCH

        pricing = self._entries.get(model_name)
        if pricing is not None:
            return PricingMatch(pricing=pricing, matched_model=None)

        key = self._normalized.get(normalize_model_name(model_name))
        if key is not None:
            return PricingMatch(pricing=self._entries[key], matched_model=key)

        key = self._substring_match(model_name.lower())
        if key is None:
            key = self._fuzzy_match(model_name.lower())
        if key is not None:
            return PricingMatch(pricing=self._entries[key], matched_model=key)

        return NO_MATCH

    def _substring_match(self, lowered: str) -> str | None:
        first: str | None = None
        for key_lower, key in self._lowercase:
            if key_lower == lowered:
                return key
            if first is None and (key_lower in lowered or lowered in key_lower):
                first = key
        return first

    def _fuzzy_match(self, lowered: str) -> str | None:
        best_key: str | None = None
        best_score = 0.0
        for key_lower, key in self._lowercase:
            score = JaroWinkler.normalized_similarity(lowered, key_lower)
            if score >= SIMILARITY_THRESHOLD and score > best_score:
                best_key, best_score = key, score
        return best_key


def resolve_model_pricing(model_name: str, table: PriceTable) -> PricingMatch:
    return table.get(model_name)


def calculate_cost(
    input_tokens: int,
    output_tokens: int,
    cache_read_tokens: int,
    cache_creation_tokens: int,
    pricing: ModelPricing,
) -> float:
    """Cost in USD. Each token type is tiered independently against 200K tokens.

    A type over the threshold is billed entirely at its above-200K rate.
    """

    def price(tokens: int, base: float, above: float) -> float:
        return tokens * (above if tokens > TOKEN_THRESHOLD else base)

    return (
        price(input_tokens, pricing.input_cost_per_token,
              pricing.input_cost_per_token_above_200k_tokens)
        + price(output_tokens, pricing.output_cost_per_token,
                pricing.output_cost_per_token_above_200k_tokens)
        + price(cache_read_tokens, pricing.cache_read_input_token_cost,
                pricing.cache_read_input_token_cost_above_200k_tokens)
        + price(cache_creation_tokens, pricing.cache_creation_input_token_cost,
                pricing.cache_creation_input_token_cost_above_200k_tokens)
    )


# ---------------------------------------------------------------------------
# Price feed with a daily disk cache
# ---------------------------------------------------------------------------


def pricing_cache_path(cache_dir: Path, day: date) -> Path:
    return Path(cache_dir) / f"{CACHE_FILE_PREFIX}{day.isoformat()}.json"


def _cleanup_old_cache(cache_dir: Path, keep: Path) -> None:
    for path in Path(cache_dir).glob(f"{CACHE_FILE_PREFIX}*.json"):
        if path != keep:
            try:
                path.unlink()
                logger.debug("Removed old pricing cache %s", path)
            except OSError as e:
                logger.warning("Could not remove old pricing cache %s: %s", path, e)


def _load_raw(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"pricing data in {path} is not an object")
    return data


def fetch_model_pricing(
    cache_dir: Path,
    url: str = LITELLM_PRICING_URL,
    today: date | None = None,
) -> PriceTable:
    """Return today's price table, downloading it at most once per day.

    Falls back to an empty table (every model costs 0) when neither the disk
    cache nor the network can provide prices.
    """
    today = today or date.today()
    cache_path = pricing_cache_path(cache_dir, today)

    if cache_path.is_file():
        try:
            table = PriceTable(_load_raw(cache_path))
            logger.debug("Loaded model pricing from %s", cache_path)
            return table
        except (OSError, ValueError) as e:
            logger.warning("Failed to load pricing cache %s: %s, fetching from remote", cache_path, e)

    logger.info("Fetching model pricing from %s", url)
    try:
        response = requests.get(url, timeout=FETCH_TIMEOUT_SECONDS)
        response.raise_for_status()
        raw = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Model pricing unavailable (%s); costs will be reported as 0", e)
        return PriceTable()

    if not isinstance(raw, dict):
        logger.warning("Model pricing feed returned %s, expected an object", type(raw).__name__)
        return PriceTable()

    table = PriceTable(raw)

    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        normalized = {name: table.get(name).pricing.to_dict() for name in table.names()}
        with open(cache_path, "w", encoding="utf-8") as f:
            json.dump(normalized, f, indent=2)
        _cleanup_old_cache(cache_dir, keep=cache_path)
    except OSError as e:
        logger.warning("Failed to save pricing cache %s: %s", cache_path, e)

    return table
