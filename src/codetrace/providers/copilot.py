"""Copilot-CLI reconstructor: one session document with a timeline of events."""

from __future__ import annotations

from typing import Any

from codetrace.accumulator import Accumulator, parse_timestamp_ms

# Copilot CLI logs carry no token counts; report the model with zero usage.
COPILOT_MODEL = "copilot"
ZERO_USAGE = {
    "input_tokens": 0,
    "output_tokens": 0,
    "cache_read_input_tokens": 0,
    "cache_creation_input_tokens": 0,
}


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _view_content(event: dict[str, Any]) -> str:
    result = event.get("result")
    if isinstance(result, dict):
        return _str(result.get("log"))
    return ""


def _handle_editor(state: Accumulator, event: dict[str, Any], args: dict[str, Any], ts: int) -> None:
    path = args.get("path")
    if not isinstance(path, str):
        return

    command = args.get("command")
    if command == "view":
        state.add_read(path, _view_content(event), ts)
    elif command == "str_replace":
        state.add_edit(path, _str(args.get("old_str")), _str(args.get("new_str")), ts)
    elif command == "create":
        state.add_write(path, _str(args.get("file_text")), ts)


def reconstruct_copilot(session: Any) -> Accumulator:
    state = Accumulator()
    state.add_usage(COPILOT_MODEL, {}, template=ZERO_USAGE)

    if not isinstance(session, dict):
        return state

    timeline = session.get("timeline")
    if not isinstance(timeline, list):
        timeline = []

    for event in timeline:
        if not isinstance(event, dict) or event.get("type") != "tool_call_completed":
            continue

        tool_title = event.get("toolTitle")
        args = event.get("arguments")
        if not isinstance(tool_title, str) or not isinstance(args, dict):
            continue

        ts = parse_timestamp_ms(event.get("timestamp"))
        state.observe_timestamp(ts)

        if tool_title == "str_replace_editor":
            _handle_editor(state, event, args, ts)
        elif tool_title == "bash":
            state.add_run_command(_str(args.get("command")), _str(args.get("description")), ts)

    state.task_id = _str(session.get("sessionId"))
    return state
