"""Claude-Code reconstructor: JSONL records linked by parentUuid."""

from __future__ import annotations

from typing import Any, Iterable

from codetrace.accumulator import Accumulator, parse_timestamp_ms

USAGE_TEMPLATE = {
    "input_tokens": 0,
    "cache_creation_input_tokens": 0,
    "cache_read_input_tokens": 0,
    "cache_creation": {},
    "output_tokens": 0,
    "service_tier": "",
}


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _handle_tool_use(state: Accumulator, item: dict[str, Any], ts: int) -> None:
    name = item.get("name")
    if name == "TodoWrite":
        state.add_todo_write()
    elif name == "Bash":
        tool_input = item.get("input")
        if isinstance(tool_input, dict):
            state.add_run_command(
                _str(tool_input.get("command")),
                _str(tool_input.get("description")),
                ts,
            )
    # Read/Write/Edit are counted from their toolUseResult, which carries the content.


def _handle_assistant_message(state: Accumulator, message: Any, ts: int) -> None:
    if not isinstance(message, dict):
        return

    model = message.get("model")
    usage = message.get("usage")
    if isinstance(model, str) and isinstance(usage, dict):
        state.add_usage(model, usage, template=USAGE_TEMPLATE)

    content = message.get("content")
    if not isinstance(content, list):
        return
    for item in content:
        if isinstance(item, dict) and item.get("type") == "tool_use":
            _handle_tool_use(state, item, ts)


def _handle_tool_use_result(state: Accumulator, result: Any, ts: int) -> None:
    if not isinstance(result, dict):
        return

    result_type = result.get("type")

    if result_type == "text":
        file_info = result.get("file")
        if isinstance(file_info, dict):
            state.add_read(_str(file_info.get("filePath")), _str(file_info.get("content")), ts)
        return

    file_path = result.get("filePath")
    if not isinstance(file_path, str):
        return

    if isinstance(result.get("newString"), str):
        state.add_edit(file_path, _str(result.get("oldString")), result["newString"], ts)
    elif result_type in ("create", "update") and isinstance(result.get("content"), str):
        state.add_write(file_path, result["content"], ts)


def reconstruct_claude(records: Iterable[Any]) -> Accumulator:
    state = Accumulator()

    for record in records:
        if not isinstance(record, dict):
            continue

        state.set_folder_path(_str(record.get("cwd")))
        session_id = record.get("sessionId")
        if isinstance(session_id, str) and session_id:
            state.task_id = session_id

        ts = parse_timestamp_ms(record.get("timestamp"))
        state.observe_timestamp(ts)

        if record.get("type") == "assistant":
            _handle_assistant_message(state, record.get("message"), ts)

        if "toolUseResult" in record:
            _handle_tool_use_result(state, record.get("toolUseResult"), ts)

    return state
