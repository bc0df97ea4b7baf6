"""Format detection: decides which provider wrote a batch of log records."""

from __future__ import annotations

from enum import Enum
from typing import Any, Sequence

# Claude-Code records carry parentUuid from the first line; a small prefix is enough.
SAMPLE_SIZE = 5


class SessionFormat(str, Enum):
    CLAUDE_CODE = "Claude-Code"
    CODEX = "Codex"
    COPILOT = "Copilot-CLI"
    GEMINI = "Gemini"


class EmptyBatchError(ValueError):
    """Raised when asked to detect the format of zero records."""


def _has_keys(record: Any, *keys: str) -> bool:
    return isinstance(record, dict) and all(k in record for k in keys)


def detect_format(records: Sequence[Any]) -> SessionFormat:
    """Classify a record batch by structural markers.

    Single-document files are checked for Gemini (sessionId, projectHash,
    messages) then Copilot (sessionId, startTime, timeline). Otherwise the
    first few records are sampled for Claude's parentUuid, and anything else
    is treated as Codex.
    """
    if not records:
        raise EmptyBatchError("cannot detect format of an empty record batch")

    if len(records) == 1:
        only = records[0]
        if _has_keys(only, "sessionId", "projectHash", "messages"):
            return SessionFormat.GEMINI
        if _has_keys(only, "sessionId", "startTime", "timeline"):
            return SessionFormat.COPILOT

    for record in records[:SAMPLE_SIZE]:
        if _has_keys(record, "parentUuid"):
            return SessionFormat.CLAUDE_CODE

    return SessionFormat.CODEX
