"""Parser for the apply-patch mini-language embedded in Codex shell calls.

A patch looks like::

    *** Begin Patch
    *** Update File: src/app.py
    @@ def main():
    -    return 1
    +    return 2
    *** End Patch

Each Add/Update/Delete header opens a hunk; body lines use unified-diff
prefixes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from codetrace.accumulator import Accumulator

BEGIN_MARKER = "*** Begin Patch"
END_MARKER = "*** End Patch"

HEADERS = (
    ("*** Add File:", "add"),
    ("*** Update File:", "update"),
    ("*** Delete File:", "delete"),
)


@dataclass(frozen=True)
class PatchHunk:
    action: str  # add, update, delete
    file_path: str
    lines: tuple[str, ...] = field(default_factory=tuple)


def _header(line: str) -> tuple[str, str] | None:
    for prefix, action in HEADERS:
        if line.startswith(prefix):
            return action, line[len(prefix):].strip()
    return None


def parse_patch(script: str) -> list[PatchHunk]:
    """Split a patch script into hunks. No Begin marker means no hunks."""
    start = script.find(BEGIN_MARKER)
    if start == -1:
        return []

    hunks: list[PatchHunk] = []
    current: tuple[str, str, list[str]] | None = None

    for raw_line in script[start:].splitlines():
        line = raw_line.rstrip("\r")

        if line.startswith(END_MARKER):
            break
        if line.startswith(BEGIN_MARKER):
            continue

        header = _header(line)
        if header is not None:
            if current is not None:
                hunks.append(PatchHunk(current[0], current[1], tuple(current[2])))
            current = (header[0], header[1], [])
        elif current is not None:
            current[2].append(line)

    if current is not None:
        hunks.append(PatchHunk(current[0], current[1], tuple(current[2])))

    return hunks


def split_hunk_lines(lines: tuple[str, ...] | list[str]) -> tuple[str, str]:
    """Return (old_text, new_text) from a hunk body, trailing newlines trimmed."""
    old_parts: list[str] = []
    new_parts: list[str] = []

    for line in lines:
        if not line or line.startswith("@@") or line.startswith("\\"):
            continue
        if line[0] == "+":
            new_parts.append(line[1:])
        elif line[0] == "-":
            old_parts.append(line[1:])

    old_text = "\n".join(old_parts).rstrip("\n")
    new_text = "\n".join(new_parts).rstrip("\n")
    return old_text, new_text


def apply_hunk(state: Accumulator, hunk: PatchHunk, ts: int) -> None:
    """Record one hunk as a canonical write or edit. Malformed hunks are dropped."""
    if not hunk.file_path:
        return

    old_text, new_text = split_hunk_lines(hunk.lines)

    if hunk.action == "add":
        state.add_write(hunk.file_path, new_text, ts)
    elif hunk.action == "delete":
        if old_text:
            state.add_edit(hunk.file_path, old_text, "", ts)
    elif hunk.action == "update":
        # add_edit records an update with no removed lines as a write.
        state.add_edit(hunk.file_path, old_text, new_text, ts)
