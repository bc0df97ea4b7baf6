"""Shell call correlation and classification for Codex logs.

Codex never records file operations directly. A shell invocation is logged
once when issued and again when its output arrives; the two are paired by
call id and the command text decides what kind of effect it was.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable

from codetrace.accumulator import Accumulator
from codetrace.providers.patch import BEGIN_MARKER, apply_hunk, parse_patch

logger = logging.getLogger("codetrace.providers.shell")

SED_READ_PATTERN = re.compile(r"sed\s+-n\s+'[^']*'\s+(\S+)")
CAT_OUTPUT_DELIMITER = "\n---"


@dataclass(frozen=True)
class PendingShellCall:
    call_id: str
    timestamp: int
    script: str
    argv: tuple[str, ...] = field(default_factory=tuple)


def _strip_quotes(value: str) -> str:
    return value.strip("\"'")


def parse_shell_arguments(arguments: Any) -> tuple[str, tuple[str, ...]]:
    """Return (script, argv) from a function call's argument payload.

    The script is the last argv element (the body of `bash -lc <script>`) or
    a plain string command. Arguments that are not valid JSON are kept as
    the script so the call is still recorded.
    """
    parsed = arguments
    if isinstance(arguments, str):
        try:
            parsed = json.loads(arguments)
        except json.JSONDecodeError:
            logger.debug("Unparseable shell arguments, keeping raw text")
            return arguments, ()

    if not isinstance(parsed, dict):
        return "", ()

    command = parsed.get("command")
    if isinstance(command, list):
        argv = tuple(str(part) for part in command)
        return (argv[-1] if argv else ""), argv
    if isinstance(command, str):
        return command, ()
    return "", ()


def parse_shell_output(output: Any) -> str:
    """Return the text a shell call produced.

    Outputs are usually a JSON document {"output": ..., "metadata": ...};
    anything else is taken verbatim.
    """
    if output is None:
        return ""
    if isinstance(output, dict):
        text = output.get("output")
        return text if isinstance(text, str) else ""
    if not isinstance(output, str):
        return ""
    try:
        parsed = json.loads(output)
    except json.JSONDecodeError:
        return output
    if isinstance(parsed, dict) and isinstance(parsed.get("output"), str):
        return parsed["output"]
    return output


# ---------------------------------------------------------------------------
# Classifiers: each returns True when it recorded the call
# ---------------------------------------------------------------------------


def classify_patch(state: Accumulator, call: PendingShellCall, output: str) -> bool:
    if BEGIN_MARKER not in call.script:
        return False
    for hunk in parse_patch(call.script):
        apply_hunk(state, hunk, call.timestamp)
    return True


def extract_sed_path(script: str) -> str | None:
    match = SED_READ_PATTERN.search(script)
    if match is None:
        return None
    return _strip_quotes(match.group(1))


def classify_sed_read(state: Accumulator, call: PendingShellCall, output: str) -> bool:
    path = extract_sed_path(call.script)
    if path is None:
        return False
    # The printed range is taken as-is; it is not checked against the file.
    state.add_read(path, output, call.timestamp)
    return True


def extract_cat_read(script: str, output: str) -> tuple[str, str] | None:
    """Return (path, content) for the first `cat <path>` line of a script."""
    for line in script.splitlines():
        stripped = line.strip()
        if not stripped.startswith("cat "):
            continue
        fields = stripped.split()
        if len(fields) < 2:
            continue
        path = _strip_quotes(fields[1])
        idx = output.find(CAT_OUTPUT_DELIMITER)
        content = output[:idx] if idx != -1 else output
        return path, content.rstrip("\n")
    return None


def classify_cat_read(state: Accumulator, call: PendingShellCall, output: str) -> bool:
    extracted = extract_cat_read(call.script, output)
    if extracted is None:
        return False
    path, content = extracted
    state.add_read(path, content, call.timestamp)
    return True


def classify_run_command(state: Accumulator, call: PendingShellCall, output: str) -> bool:
    command = " ".join(call.argv) if call.argv else call.script.strip()
    state.add_run_command(command, "", call.timestamp)
    return True


CLASSIFIERS: tuple[Callable[[Accumulator, PendingShellCall, str], bool], ...] = (
    classify_patch,
    classify_sed_read,
    classify_cat_read,
    classify_run_command,
)


class ShellCorrelator:
    """Pairs issued shell calls with their results by call id."""

    def __init__(self, state: Accumulator) -> None:
        self.state = state
        self.pending: dict[str, PendingShellCall] = {}

    def issue(self, call_id: str, timestamp: int, script: str, argv: tuple[str, ...] = ()) -> None:
        # A repeated call id replaces the earlier pending call.
        self.pending[call_id] = PendingShellCall(call_id, timestamp, script, tuple(argv))

    def resolve(self, call_id: str, output: str) -> bool:
        """Classify and record the call for call_id. Unknown ids are ignored."""
        call = self.pending.pop(call_id, None)
        if call is None:
            return False
        for classifier in CLASSIFIERS:
            if classifier(self.state, call, output):
                break
        return True
