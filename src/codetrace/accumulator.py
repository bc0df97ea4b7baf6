"""Accumulator: the canonical per-file aggregation every reconstructor writes into.

All mutation goes through the add_* methods so the trimming, path
normalization, counter and usage-merge rules live in one place.
"""

from __future__ import annotations

import copy
import os
import re
from datetime import datetime, timezone
from typing import Any, Iterable

from codetrace.git import get_git_remote_url
from codetrace.models import (
    AnalysisRecord,
    EditDetail,
    ReadDetail,
    RunCommandDetail,
    ToolCallCounts,
    WriteDetail,
)

SYNTHETIC_MODEL_MARKER = "<synthetic>"

# fromisoformat on 3.10 only takes 3- or 6-digit fractions.
_FRACTION = re.compile(r"(T\d{2}:\d{2}:\d{2})\.(\d+)")


def count_lines(text: str) -> int:
    """Number of newline-delimited lines; a trailing newline does not open a new one."""
    if not text:
        return 0
    newlines = text.count("\n")
    return newlines if text.endswith("\n") else newlines + 1


def trim_trailing_newlines(text: str) -> str:
    return text.rstrip("\n")


def parse_timestamp_ms(value: Any) -> int:
    """Parse an ISO 8601 timestamp into epoch milliseconds, 0 if unparseable."""
    if not isinstance(value, str) or not value:
        return 0
    ts = value.replace("Z", "+00:00")
    ts = _FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", ts)
    try:
        dt = datetime.fromisoformat(ts)
    except ValueError:
        return 0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def merge_usage(
    target: dict[str, Any],
    delta: dict[str, Any],
    replace_fields: Iterable[str] = (),
) -> None:
    """Merge one usage delta into target in place.

    Numbers are summed, nested objects are merged key by key (numbers summed,
    anything else overwritten), other values overwrite. Fields named in
    replace_fields are snapshots and always overwrite.
    """
    replace = set(replace_fields)
    for key, value in delta.items():
        if key in replace:
            target[key] = copy.deepcopy(value)
        elif _is_number(value):
            current = target.get(key)
            target[key] = (current if _is_number(current) else 0) + value
        elif isinstance(value, dict):
            nested = target.get(key)
            if not isinstance(nested, dict):
                nested = {}
                target[key] = nested
            for sub_key, sub_value in value.items():
                if _is_number(sub_value):
                    current = nested.get(sub_key)
                    nested[sub_key] = (current if _is_number(current) else 0) + sub_value
                else:
                    nested[sub_key] = copy.deepcopy(sub_value)
        else:
            target[key] = copy.deepcopy(value)


class Accumulator:
    """Mutable aggregation state for one analyzed file."""

    def __init__(self, folder_path: str = "") -> None:
        self.write_details: list[WriteDetail] = []
        self.read_details: list[ReadDetail] = []
        self.edit_details: list[EditDetail] = []
        self.run_details: list[RunCommandDetail] = []
        self.unique_files: set[str] = set()
        self.total_write_lines = 0
        self.total_read_lines = 0
        self.total_edit_lines = 0
        self.total_write_characters = 0
        self.total_read_characters = 0
        self.total_edit_characters = 0
        self.read_count = 0
        self.write_count = 0
        self.edit_count = 0
        self.todo_write_count = 0
        self.bash_count = 0
        self.usage: dict[str, dict[str, Any]] = {}
        self.folder_path = folder_path
        self.git_remote_url = ""
        self.task_id = ""
        self.last_timestamp = 0

    # -- session metadata -------------------------------------------------

    def observe_timestamp(self, ts: int) -> None:
        if ts > self.last_timestamp:
            self.last_timestamp = ts

    def set_folder_path(self, folder_path: str | None) -> None:
        """Record the working directory; the first one stated wins."""
        if not self.folder_path and folder_path:
            self.folder_path = folder_path

    def normalize_path(self, path: str) -> str:
        if not path:
            return ""
        if os.path.isabs(path) or not self.folder_path:
            return path
        return os.path.join(self.folder_path, path)

    # -- canonical operations ---------------------------------------------

    def add_read(self, path: str, content: str, ts: int) -> None:
        trimmed = trim_trailing_newlines(content or "")
        line_count = count_lines(trimmed)
        if line_count == 0:
            return
        resolved = self.normalize_path(path)
        if not resolved:
            return

        char_count = len(trimmed)
        self.read_details.append(ReadDetail(
            file_path=resolved,
            line_count=line_count,
            character_count=char_count,
            timestamp=ts,
        ))
        self.unique_files.add(resolved)
        self.total_read_lines += line_count
        self.total_read_characters += char_count
        self.read_count += 1

    def add_write(self, path: str, content: str, ts: int) -> None:
        trimmed = trim_trailing_newlines(content or "")
        resolved = self.normalize_path(path)
        if not resolved:
            return

        line_count = count_lines(trimmed)
        char_count = len(trimmed)
        self.write_details.append(WriteDetail(
            file_path=resolved,
            line_count=line_count,
            character_count=char_count,
            timestamp=ts,
            content=trimmed,
        ))
        self.unique_files.add(resolved)
        self.total_write_lines += line_count
        self.total_write_characters += char_count
        self.write_count += 1

    def add_edit(self, path: str, old: str, new: str, ts: int) -> None:
        trimmed_old = trim_trailing_newlines(old or "")
        trimmed_new = trim_trailing_newlines(new or "")

        # Replacing nothing with something is a file creation.
        if not trimmed_old and trimmed_new:
            self.add_write(path, trimmed_new, ts)
            return

        resolved = self.normalize_path(path)
        if not resolved:
            return

        line_count = count_lines(trimmed_new)
        char_count = len(trimmed_new)
        self.edit_details.append(EditDetail(
            file_path=resolved,
            line_count=line_count,
            character_count=char_count,
            timestamp=ts,
            old_string=trimmed_old,
            new_string=trimmed_new,
        ))
        self.unique_files.add(resolved)
        self.total_edit_lines += line_count
        self.total_edit_characters += char_count
        self.edit_count += 1

    def add_run_command(self, command: str, description: str, ts: int) -> None:
        command = (command or "").strip()
        if not command:
            return
        self.run_details.append(RunCommandDetail(
            file_path=self.folder_path,
            line_count=0,
            character_count=len(command),
            timestamp=ts,
            command=command,
            description=description or "",
        ))
        self.bash_count += 1

    def add_todo_write(self) -> None:
        self.todo_write_count += 1

    # -- token usage ------------------------------------------------------

    def add_usage(
        self,
        model: str,
        delta: dict[str, Any],
        template: dict[str, Any] | None = None,
        replace_fields: Iterable[str] = (),
    ) -> None:
        """Merge a usage delta for model; template seeds a model's first entry."""
        if not model or SYNTHETIC_MODEL_MARKER in model:
            return
        if not isinstance(delta, dict):
            return
        existing = self.usage.get(model)
        if existing is None:
            existing = copy.deepcopy(template) if template else {}
            self.usage[model] = existing
        merge_usage(existing, delta, replace_fields)

    # -- finalization -----------------------------------------------------

    def counts(self) -> ToolCallCounts:
        return ToolCallCounts(
            read=self.read_count,
            write=self.write_count,
            edit=self.edit_count,
            todo_write=self.todo_write_count,
            bash=self.bash_count,
        )

    def finalize(self) -> AnalysisRecord:
        """Build the immutable record, resolving the git remote if none was stated."""
        if not self.git_remote_url:
            self.git_remote_url = get_git_remote_url(self.folder_path)

        return AnalysisRecord(
            total_unique_files=len(self.unique_files),
            total_write_lines=self.total_write_lines,
            total_read_lines=self.total_read_lines,
            total_edit_lines=self.total_edit_lines,
            total_write_characters=self.total_write_characters,
            total_read_characters=self.total_read_characters,
            total_edit_characters=self.total_edit_characters,
            write_file_details=tuple(self.write_details),
            read_file_details=tuple(self.read_details),
            edit_file_details=tuple(self.edit_details),
            run_command_details=tuple(self.run_details),
            tool_call_counts=self.counts(),
            conversation_usage=copy.deepcopy(self.usage),
            task_id=self.task_id,
            timestamp=self.last_timestamp,
            folder_path=self.folder_path,
            git_remote_url=self.git_remote_url,
        )
