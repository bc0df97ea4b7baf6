"""Gemini reconstructor: one session document with a message list."""

from __future__ import annotations

from typing import Any

from codetrace.accumulator import Accumulator, parse_timestamp_ms

USAGE_TEMPLATE = {
    "input_tokens": 0,
    "cache_read_input_tokens": 0,
    "output_tokens": 0,
    "thoughts_tokens": 0,
    "tool_tokens": 0,
    "total_tokens": 0,
}

# Gemini token field -> canonical usage field
TOKEN_FIELDS = {
    "input": "input_tokens",
    "cached": "cache_read_input_tokens",
    "output": "output_tokens",
    "thoughts": "thoughts_tokens",
    "tool": "tool_tokens",
    "total": "total_tokens",
}


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _usage_delta(tokens: dict[str, Any]) -> dict[str, int]:
    delta: dict[str, int] = {}
    for source, target in TOKEN_FIELDS.items():
        value = tokens.get(source)
        if isinstance(value, int) and not isinstance(value, bool):
            delta[target] = value
    return delta


def _function_output(call: dict[str, Any]) -> str:
    """Pull the text a tool returned out of its recorded function response."""
    result = call.get("result")
    if isinstance(result, list):
        for part in result:
            function_response = part.get("functionResponse") if isinstance(part, dict) else None
            if not isinstance(function_response, dict):
                continue
            response = function_response.get("response")
            if isinstance(response, dict) and isinstance(response.get("output"), str):
                return response["output"]
    return ""


def _file_arg(args: dict[str, Any]) -> str:
    return _str(args.get("file_path")) or _str(args.get("absolute_path")) or _str(args.get("path"))


def _handle_tool_call(state: Accumulator, call: Any, default_ts: int) -> None:
    if not isinstance(call, dict):
        return
    args = call.get("args")
    if not isinstance(args, dict):
        return

    ts = parse_timestamp_ms(call.get("timestamp")) or default_ts
    name = call.get("name")

    if name == "read_file":
        state.add_read(_file_arg(args), _function_output(call), ts)
    elif name == "write_file":
        state.add_write(_file_arg(args), _str(args.get("content")), ts)
    elif name == "replace":
        state.add_edit(_file_arg(args), _str(args.get("old_string")), _str(args.get("new_string")), ts)
    elif name == "run_shell_command":
        state.add_run_command(_str(args.get("command")), _str(args.get("description")), ts)
    elif name == "write_todos":
        state.add_todo_write()


def reconstruct_gemini(session: Any) -> Accumulator:
    state = Accumulator()
    if not isinstance(session, dict):
        return state

    messages = session.get("messages")
    if not isinstance(messages, list):
        messages = []

    for message in messages:
        if not isinstance(message, dict):
            continue

        ts = parse_timestamp_ms(message.get("timestamp"))
        state.observe_timestamp(ts)

        if message.get("type") != "gemini":
            continue

        tokens = message.get("tokens")
        model = message.get("model")
        if isinstance(tokens, dict) and isinstance(model, str):
            state.add_usage(model, _usage_delta(tokens), template=USAGE_TEMPLATE)

        tool_calls = message.get("toolCalls")
        if isinstance(tool_calls, list):
            for call in tool_calls:
                _handle_tool_call(state, call, ts)

    state.task_id = _str(session.get("sessionId"))
    return state
