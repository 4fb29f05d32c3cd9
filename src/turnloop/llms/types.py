from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines common provider-agnostic types used in model interactions.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, NotRequired, TypeAlias, TypedDict


JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
JSONSchema: TypeAlias = dict[str, JSONValue]

Role = Literal["user", "assistant", "system", "tool"]


class TextContentPart(TypedDict):
    type: Literal["text"]
    text: str


class ToolUseContentPart(TypedDict):
    type: Literal["tool_use"]
    id: str
    name: str
    input: JSONObject


class ToolResultContentPart(TypedDict):
    type: Literal["tool_result"]
    tool_use_id: str
    content: str
    is_error: NotRequired[bool]


MessagePart: TypeAlias = TextContentPart | ToolUseContentPart | ToolResultContentPart
MessageContent: TypeAlias = str | list[MessagePart]


class ToolFunctionSpec(TypedDict):
    name: str
    parameters: JSONSchema
    description: NotRequired[str]


class ToolDefinition(TypedDict):
    type: Literal["function"]
    function: ToolFunctionSpec


ToolChoice: TypeAlias = Literal["auto", "none", "required"]


@dataclass(frozen=True, slots=True)
class Message:
    role: Role
    content: MessageContent
    name: str | None = None

    def parts(self) -> list[MessagePart]:
        """Return content as a list of parts, wrapping plain strings as text."""
        if isinstance(self.content, str):
            return [{"type": "text", "text": self.content}]
        return list(self.content)

    def text(self) -> str:
        """Concatenate the text parts of this message."""
        if isinstance(self.content, str):
            return self.content
        return "".join(p["text"] for p in self.content if p.get("type") == "text")


@dataclass(frozen=True, slots=True)
class Usage:
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class ToolCall:
    """
    Data-only representation of a model-returned tool call.
    The driver decides if/when/how to execute this.

    `id` is the correlation id used to pair the call with its tool result in
    the conversation log; providers may omit it.
    """

    id: str | None = None
    tool_name: str = ""
    arguments: JSONObject = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LLMResponse:
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    usage: Usage = field(default_factory=Usage)
    raw: dict[str, Any] = field(default_factory=dict)
    model: str | None = None

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True, slots=True)
class LLMRequest:
    """
    Canonical request type sent to a model client for one query.
    """

    model: str
    messages: list[Message] = field(default_factory=list)
    tools: list[ToolDefinition] | None = None
    tool_choice: ToolChoice | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    metadata: JSONObject = field(default_factory=dict)
