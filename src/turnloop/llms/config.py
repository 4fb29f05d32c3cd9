from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Model-client settings read from the environment.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LLMConfig:
    # Models
    default_model: str

    # Transport
    timeout_s: float
    max_tokens: int | None = None
    api_base_url: str | None = None
    api_key: str | None = None

    @staticmethod
    def from_env() -> "LLMConfig":
        max_tokens = os.getenv("TURNLOOP_LLM_MAX_TOKENS")
        return LLMConfig(
            default_model=os.getenv("TURNLOOP_LLM_MODEL", "claude-3-7-sonnet-20250219"),
            api_base_url=os.getenv("TURNLOOP_LLM_API_BASE_URL"),
            api_key=os.getenv("TURNLOOP_LLM_API_KEY"),
            timeout_s=float(os.getenv("TURNLOOP_LLM_TIMEOUT_S", "120")),
            max_tokens=int(max_tokens) if max_tokens else None,
        )
