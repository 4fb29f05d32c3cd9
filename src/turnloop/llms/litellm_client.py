from __future__ import annotations

"""
LiteLLM-backed model client using the chat completions API.
"""

import json
from typing import Any

from .config import LLMConfig
from .errors import LLMConfigurationError, LLMInvalidResponseError
from .normalization import (
    extract_text_from_content,
    extract_tool_calls,
    extract_usage,
    to_plain_dict,
)
from .types import LLMRequest, LLMResponse, Message


_CACHE_CONTROL = {"type": "ephemeral"}


class LiteLLMModelClient:
    """Concrete model client dispatching to `litellm.acompletion`."""

    def __init__(self, config: LLMConfig | None = None) -> None:
        self.config = config or LLMConfig.from_env()

    @property
    def provider_id(self) -> str:
        return "litellm"

    async def chat(self, req: LLMRequest) -> LLMResponse:
        try:
            from litellm import acompletion
        except Exception as e:  # pragma: no cover - environment dependent
            raise LLMConfigurationError(
                "litellm is not installed. Install the dependency to use LiteLLMModelClient."
            ) from e

        raw = await acompletion(**self._build_payload(req))
        return self._normalize_response(raw)

    def _build_payload(self, req: LLMRequest) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        for message in req.messages:
            messages.extend(self._message_to_chat_items(message))

        if req.metadata.get("caching_enabled"):
            _mark_cache_breakpoint(messages)

        payload: dict[str, Any] = {
            "model": req.model or self.config.default_model,
            "messages": messages,
            "timeout": self.config.timeout_s,
        }
        if req.tools:
            payload["tools"] = list(req.tools)
            payload["tool_choice"] = req.tool_choice or "auto"
        max_tokens = req.max_tokens if req.max_tokens is not None else self.config.max_tokens
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if req.temperature is not None:
            payload["temperature"] = req.temperature
        if self.config.api_base_url:
            payload["api_base"] = self.config.api_base_url
        if self.config.api_key:
            payload["api_key"] = self.config.api_key
        return payload

    def _message_to_chat_items(self, message: Message) -> list[dict[str, Any]]:
        """Convert one conversation entry into OpenAI-style chat messages."""
        if message.role == "tool":
            items: list[dict[str, Any]] = []
            for part in message.parts():
                if part.get("type") == "tool_result":
                    items.append(
                        {
                            "role": "tool",
                            "tool_call_id": part["tool_use_id"],
                            "content": part.get("content", ""),
                        }
                    )
            return items

        if message.role == "assistant":
            tool_calls = [
                {
                    "id": part["id"],
                    "type": "function",
                    "function": {
                        "name": part["name"],
                        "arguments": json.dumps(part.get("input") or {}, ensure_ascii=True, default=str),
                    },
                }
                for part in message.parts()
                if part.get("type") == "tool_use"
            ]
            item: dict[str, Any] = {"role": "assistant", "content": message.text() or None}
            if tool_calls:
                item["tool_calls"] = tool_calls
            return [item]

        return [{"role": message.role, "content": message.text()}]

    def _normalize_response(self, raw: Any) -> LLMResponse:
        raw_dict = to_plain_dict(raw)
        choices = raw_dict.get("choices")
        if not isinstance(choices, list) or not choices:
            raise LLMInvalidResponseError("Model response contained no choices")

        choice = to_plain_dict(choices[0])
        message = to_plain_dict(choice.get("message"))
        finish_reason = choice.get("finish_reason")
        return LLMResponse(
            text=extract_text_from_content(message.get("content")),
            tool_calls=extract_tool_calls(message.get("tool_calls")),
            finish_reason=finish_reason if isinstance(finish_reason, str) else None,
            usage=extract_usage(raw_dict),
            raw=raw_dict,
            model=raw_dict.get("model") if isinstance(raw_dict.get("model"), str) else None,
        )


def _mark_cache_breakpoint(messages: list[dict[str, Any]]) -> None:
    """Attach a prompt-cache marker to the last text-bearing user/system message."""
    for item in reversed(messages):
        if item.get("role") not in ("user", "system"):
            continue
        content = item.get("content")
        if isinstance(content, str) and content:
            item["content"] = [{"type": "text", "text": content, "cache_control": dict(_CACHE_CONTROL)}]
            return
