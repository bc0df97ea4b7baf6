"""Shared data models: the contract between reconstructors, cache, and consumers.

Reconstructors write into an Accumulator, which finalizes into an
AnalysisRecord. The parse cache hands out SessionAnalysis objects, so
everything here is frozen once built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ReadDetail:
    """A file read observed in a session."""

    file_path: str
    line_count: int
    character_count: int
    timestamp: int  # epoch milliseconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "lineCount": self.line_count,
            "characterCount": self.character_count,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class WriteDetail:
    """A whole-file write (or creation), with the written content."""

    file_path: str
    line_count: int
    character_count: int
    timestamp: int
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "lineCount": self.line_count,
            "characterCount": self.character_count,
            "timestamp": self.timestamp,
            "content": self.content,
        }


@dataclass(frozen=True)
class EditDetail:
    """An in-place edit. Counts describe the new side of the edit."""

    file_path: str
    line_count: int
    character_count: int
    timestamp: int
    old_string: str
    new_string: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "lineCount": self.line_count,
            "characterCount": self.character_count,
            "timestamp": self.timestamp,
            "oldString": self.old_string,
            "newString": self.new_string,
        }


@dataclass(frozen=True)
class RunCommandDetail:
    """A shell command. file_path holds the session working directory."""

    file_path: str
    line_count: int
    character_count: int
    timestamp: int
    command: str
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "lineCount": self.line_count,
            "characterCount": self.character_count,
            "timestamp": self.timestamp,
            "command": self.command,
            "description": self.description,
        }


@dataclass(frozen=True)
class ToolCallCounts:
    read: int = 0
    write: int = 0
    edit: int = 0
    todo_write: int = 0
    bash: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "Read": self.read,
            "Write": self.write,
            "Edit": self.edit,
            "TodoWrite": self.todo_write,
            "Bash": self.bash,
        }


@dataclass(frozen=True)
class AnalysisRecord:
    """The reconstruction of one session file.

    Produced by Accumulator.finalize(), shared read-only through the cache.
    """

    total_unique_files: int
    total_write_lines: int
    total_read_lines: int
    total_edit_lines: int
    total_write_characters: int
    total_read_characters: int
    total_edit_characters: int
    write_file_details: tuple[WriteDetail, ...]
    read_file_details: tuple[ReadDetail, ...]
    edit_file_details: tuple[EditDetail, ...]
    run_command_details: tuple[RunCommandDetail, ...]
    tool_call_counts: ToolCallCounts
    conversation_usage: dict[str, dict[str, Any]]
    task_id: str = ""
    timestamp: int = 0  # last event, epoch milliseconds
    folder_path: str = ""
    git_remote_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalUniqueFiles": self.total_unique_files,
            "totalWriteLines": self.total_write_lines,
            "totalReadLines": self.total_read_lines,
            "totalEditLines": self.total_edit_lines,
            "totalWriteCharacters": self.total_write_characters,
            "totalReadCharacters": self.total_read_characters,
            "totalEditCharacters": self.total_edit_characters,
            "writeFileDetails": [d.to_dict() for d in self.write_file_details],
            "readFileDetails": [d.to_dict() for d in self.read_file_details],
            "editFileDetails": [d.to_dict() for d in self.edit_file_details],
            "runCommandDetails": [d.to_dict() for d in self.run_command_details],
            "toolCallCounts": self.tool_call_counts.to_dict(),
            "conversationUsage": self.conversation_usage,
            "taskId": self.task_id,
            "timestamp": self.timestamp,
            "folderPath": self.folder_path,
            "gitRemoteUrl": self.git_remote_url,
        }


@dataclass(frozen=True)
class SessionAnalysis:
    """Top-level result for one analyzed file.

    records is empty when the file held no records at all.
    """

    extension_name: str
    user: str
    insights_version: str
    records: tuple[AnalysisRecord, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "extensionName": self.extension_name,
            "user": self.user,
            "insightsVersion": self.insights_version,
            "records": [r.to_dict() for r in self.records],
        }
