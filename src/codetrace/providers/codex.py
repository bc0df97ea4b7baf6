"""Codex reconstructor: JSONL of {timestamp, type, payload} records.

File effects are inferred from shell calls; see codetrace.providers.shell.
"""

from __future__ import annotations

from typing import Any, Iterable

from codetrace.accumulator import Accumulator, parse_timestamp_ms
from codetrace.providers.shell import ShellCorrelator, parse_shell_arguments, parse_shell_output

SHELL_FUNCTION_NAMES = frozenset({"shell", "shell_command", "container.exec", "local_shell"})
PATCH_TOOL_NAME = "apply_patch"

USAGE_TEMPLATE = {
    "total_token_usage": {},
    "last_token_usage": {},
    "model_context_window": None,
}
# Snapshots of the latest turn, not deltas.
USAGE_REPLACE_FIELDS = ("last_token_usage", "model_context_window")


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _token_usage_delta(info: dict[str, Any]) -> dict[str, Any]:
    delta: dict[str, Any] = {}
    total = info.get("total_token_usage")
    if isinstance(total, dict):
        delta["total_token_usage"] = total
    for key in USAGE_REPLACE_FIELDS:
        if key in info:
            delta[key] = info[key]
    return delta


class CodexReconstructor:
    def __init__(self) -> None:
        self.state = Accumulator()
        self.shell = ShellCorrelator(self.state)
        self.current_model = ""

    def feed(self, record: Any) -> None:
        if not isinstance(record, dict):
            return
        payload = record.get("payload")
        if not isinstance(payload, dict):
            return

        ts = parse_timestamp_ms(record.get("timestamp"))
        self.state.observe_timestamp(ts)

        record_type = record.get("type")
        if record_type == "session_meta":
            self._session_meta(payload)
        elif record_type == "turn_context":
            self.state.set_folder_path(_str(payload.get("cwd")))
            model = payload.get("model")
            if isinstance(model, str) and model:
                self.current_model = model
        elif record_type == "event_msg":
            self._event_msg(payload)
        elif record_type == "response_item":
            self._response_item(payload, ts)

    def _session_meta(self, payload: dict[str, Any]) -> None:
        self.state.set_folder_path(_str(payload.get("cwd")))
        if not self.state.task_id:
            self.state.task_id = _str(payload.get("id"))
        git = payload.get("git")
        if not self.state.git_remote_url and isinstance(git, dict):
            self.state.git_remote_url = _str(git.get("repository_url"))

    def _event_msg(self, payload: dict[str, Any]) -> None:
        if payload.get("type") != "token_count" or not self.current_model:
            return
        info = payload.get("info")
        if isinstance(info, dict):
            self.state.add_usage(
                self.current_model,
                _token_usage_delta(info),
                template=USAGE_TEMPLATE,
                replace_fields=USAGE_REPLACE_FIELDS,
            )

    def _response_item(self, payload: dict[str, Any], ts: int) -> None:
        payload_type = payload.get("type")
        call_id = payload.get("call_id")
        if not isinstance(call_id, str):
            return

        if payload_type == "function_call":
            if payload.get("name") in SHELL_FUNCTION_NAMES:
                script, argv = parse_shell_arguments(payload.get("arguments"))
                self.shell.issue(call_id, ts, script, argv)
        elif payload_type == "custom_tool_call":
            if payload.get("name") == PATCH_TOOL_NAME:
                self.shell.issue(call_id, ts, _str(payload.get("input")))
        elif payload_type in ("function_call_output", "custom_tool_call_output"):
            self.shell.resolve(call_id, parse_shell_output(payload.get("output")))


def reconstruct_codex(records: Iterable[Any]) -> Accumulator:
    reconstructor = CodexReconstructor()
    for record in records:
        reconstructor.feed(record)
    return reconstructor.state
