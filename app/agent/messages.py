"""
Conversation messages and tool calls.

Messages are immutable once appended. They round-trip through plain dicts for
checkpoints and render to the OpenAI chat format for the model.
"""

import json
from dataclasses import dataclass, field
from typing import Any

USER = "user"
ASSISTANT = "assistant"
TOOL = "tool"
SYSTEM = "system"


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": dict(self.arguments)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        return cls(id=data.get("id") or "", name=data.get("name") or "", arguments=dict(data.get("arguments") or {}))


@dataclass(frozen=True)
class Message:
    role: str
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return self.role == ASSISTANT and bool(self.tool_calls)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            out["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            role=data.get("role") or USER,
            content=data.get("content") or "",
            tool_calls=tuple(ToolCall.from_dict(tc) for tc in data.get("tool_calls") or []),
            tool_call_id=data.get("tool_call_id"),
        )

    def to_openai(self) -> dict[str, Any]:
        """OpenAI chat completions format (assistant tool_calls carry JSON-encoded arguments)."""
        msg: dict[str, Any] = {"role": self.role, "content": self.content or ""}
        if self.tool_calls:
            msg["tool_calls"] = [
                {"id": tc.id, "type": "function", "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)}}
                for tc in self.tool_calls
            ]
        if self.role == TOOL:
            msg["tool_call_id"] = self.tool_call_id or ""
        return msg


def user_message(content: str) -> Message:
    return Message(role=USER, content=content)


def assistant_message(content: str, tool_calls: list[ToolCall] | None = None) -> Message:
    return Message(role=ASSISTANT, content=content, tool_calls=tuple(tool_calls or ()))


def tool_message(tool_call_id: str, content: str) -> Message:
    return Message(role=TOOL, content=content, tool_call_id=tool_call_id)


def system_message(content: str) -> Message:
    return Message(role=SYSTEM, content=content)


def pending_tool_calls(messages: list[Message] | tuple[Message, ...]) -> tuple[ToolCall, ...]:
    """Tool calls of the latest message, if it is an assistant message requesting tools."""
    if not messages:
        return ()
    last = messages[-1]
    return last.tool_calls if last.has_tool_calls else ()
