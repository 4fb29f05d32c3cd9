from __future__ import annotations

"""
Shared normalization helpers used by model clients and the conversation log.
"""

import json
from dataclasses import asdict, is_dataclass
from typing import Any

from .types import ToolCall, Usage


def safe_json_loads(s: str) -> dict[str, Any] | None:
    try:
        obj = json.loads(s)
        return obj if isinstance(obj, dict) else None
    except (TypeError, ValueError):
        return None


def to_plain_dict(value: Any) -> dict[str, Any]:
    """Best-effort conversion of SDK/provider objects into plain dictionaries."""
    if isinstance(value, dict):
        return value

    if hasattr(value, "model_dump"):
        dumped = value.model_dump()
        if isinstance(dumped, dict):
            return dumped

    if hasattr(value, "to_dict"):
        dumped = value.to_dict()
        if isinstance(dumped, dict):
            return dumped

    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)

    if hasattr(value, "__dict__"):
        return dict(value.__dict__)

    return {}


def to_jsonable(value: Any) -> Any:
    """Recursively coerce values into JSON-serializable primitives/containers."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]

    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))

    as_dict = to_plain_dict(value)
    if as_dict:
        return to_jsonable(as_dict)

    return repr(value)


def render_tool_payload(value: Any) -> str:
    """Render a tool result payload as the text the model will see."""
    if isinstance(value, str):
        return value
    return json.dumps(to_jsonable(value), ensure_ascii=True, default=str)


def extract_text_from_content(content: Any) -> str:
    """Extract plain text from common OpenAI/LiteLLM content shapes."""
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        out: list[str] = []
        for item in content:
            if isinstance(item, str):
                out.append(item)
                continue
            if isinstance(item, dict) and isinstance(item.get("text"), str):
                out.append(item["text"])
        return "".join(out)

    return ""


def extract_tool_calls(raw_tool_calls: Any) -> list[ToolCall]:
    """Extract normalized tool calls from chat completion payloads."""
    if not isinstance(raw_tool_calls, list):
        return []

    out: list[ToolCall] = []
    for item in raw_tool_calls:
        tc = to_plain_dict(item)
        function = tc.get("function")
        if not isinstance(function, dict):
            function = {}

        name = function.get("name")
        if not isinstance(name, str):
            name = ""

        args_obj: dict[str, Any] = {}
        raw_args = function.get("arguments")
        if isinstance(raw_args, dict):
            args_obj = raw_args
        elif isinstance(raw_args, str):
            parsed = safe_json_loads(raw_args)
            if isinstance(parsed, dict):
                args_obj = parsed

        call_id = tc.get("id") if isinstance(tc.get("id"), str) else None
        out.append(ToolCall(id=call_id, tool_name=name, arguments=args_obj))

    return out


def extract_usage(raw_dict: dict[str, Any]) -> Usage:
    """Normalize usage token counters from provider payloads."""
    usage = raw_dict.get("usage")
    if not isinstance(usage, dict):
        return Usage()

    input_tokens = usage.get("prompt_tokens")
    if input_tokens is None:
        input_tokens = usage.get("input_tokens")

    output_tokens = usage.get("completion_tokens")
    if output_tokens is None:
        output_tokens = usage.get("output_tokens")

    total_tokens = usage.get("total_tokens")
    return Usage(
        input_tokens=input_tokens if isinstance(input_tokens, int) else None,
        output_tokens=output_tokens if isinstance(output_tokens, int) else None,
        total_tokens=total_tokens if isinstance(total_tokens, int) else None,
    )
