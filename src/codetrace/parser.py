"""Session log pipeline: reads a log file, detects its format, reconstructs it."""

from __future__ import annotations

import getpass
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from codetrace.accumulator import Accumulator
from codetrace.config import CodetraceConfig
from codetrace.detector import SessionFormat, detect_format
from codetrace.models import SessionAnalysis
from codetrace.providers.claude import reconstruct_claude
from codetrace.providers.codex import reconstruct_codex
from codetrace.providers.copilot import reconstruct_copilot
from codetrace.providers.gemini import reconstruct_gemini

logger = logging.getLogger("codetrace.parser")

INSIGHTS_VERSION = "0.1.0"


class UnparseableFileError(ValueError):
    """The file is neither JSONL nor a single JSON document."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


def read_records(file_path: Path) -> list[Any]:
    """Read a log file as JSONL, falling back to one JSON document.

    Blank lines are ignored. Raises UnparseableFileError when the text is not
    UTF-8 or neither reading works; OSError from opening the file propagates.
    """
    file_path = Path(file_path)
    try:
        with open(file_path, encoding="utf-8") as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise UnparseableFileError(file_path, "not valid UTF-8") from e

    records: list[Any] = []
    try:
        for line in text.splitlines():
            line = line.strip()
            if not line:
                continue
            records.append(json.loads(line))
        return records
    except json.JSONDecodeError:
        pass

    try:
        return [json.loads(text)]
    except json.JSONDecodeError as e:
        raise UnparseableFileError(file_path, f"invalid JSON/JSONL ({e.msg} at line {e.lineno})") from e


_RECONSTRUCTORS: dict[SessionFormat, Callable[[list[Any]], Accumulator]] = {
    SessionFormat.CLAUDE_CODE: reconstruct_claude,
    SessionFormat.CODEX: reconstruct_codex,
    SessionFormat.COPILOT: lambda records: reconstruct_copilot(records[0]),
    SessionFormat.GEMINI: lambda records: reconstruct_gemini(records[0]),
}


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def analyze_records(records: list[Any]) -> SessionAnalysis:
    """Detect the format of a record batch and reconstruct it."""
    if not records:
        return SessionAnalysis(extension_name="", user=_current_user(), insights_version=INSIGHTS_VERSION)

    session_format = detect_format(records)
    state = _RECONSTRUCTORS[session_format](records)
    return SessionAnalysis(
        extension_name=session_format.value,
        user=_current_user(),
        insights_version=INSIGHTS_VERSION,
        records=(state.finalize(),),
    )


def analyze_file(file_path: Path) -> SessionAnalysis:
    """Run the full read, detect and reconstruct pipeline on one file."""
    file_path = Path(file_path)
    records = read_records(file_path)
    analysis = analyze_records(records)
    logger.debug(
        "Analyzed %s as %s (%d records)",
        file_path, analysis.extension_name or "empty", len(records),
    )
    return analysis


# ---------------------------------------------------------------------------
# Session discovery
# ---------------------------------------------------------------------------


def _is_gemini_chat_file(path: Path) -> bool:
    return path.suffix == ".json" and path.parent.name == "chats"


def discover_session_files(config: CodetraceConfig) -> list[Path]:
    """Find session logs of every supported tool under the configured dirs."""
    results: list[Path] = []

    for log_dir in (config.claude_dir, config.codex_dir):
        if log_dir.is_dir():
            results.extend(p for p in log_dir.rglob("*.jsonl") if p.is_file())

    if config.gemini_dir.is_dir():
        results.extend(p for p in config.gemini_dir.rglob("*.json") if _is_gemini_chat_file(p))

    if config.copilot_dir.is_dir():
        results.extend(p for p in config.copilot_dir.glob("*.json") if p.is_file())

    results.sort()
    return results


def file_modified_date(file_path: Path) -> str:
    """YYYY-MM-DD of the file's modification time, local time."""
    return datetime.fromtimestamp(Path(file_path).stat().st_mtime).strftime("%Y-%m-%d")
