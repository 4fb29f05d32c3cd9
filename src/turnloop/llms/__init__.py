"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Model-client contract, provider adapter and shared message types.
"""

from .client import ModelClient, ScriptedModelClient
from .config import LLMConfig
from .errors import LLMConfigurationError, LLMError, LLMInvalidResponseError
from .litellm_client import LiteLLMModelClient
from .types import (
    JSONObject,
    JSONValue,
    LLMRequest,
    LLMResponse,
    Message,
    ToolCall,
    ToolDefinition,
    Usage,
)

__all__ = [
    "ModelClient",
    "ScriptedModelClient",
    "LiteLLMModelClient",
    "LLMConfig",
    "LLMError",
    "LLMConfigurationError",
    "LLMInvalidResponseError",
    "JSONObject",
    "JSONValue",
    "LLMRequest",
    "LLMResponse",
    "Message",
    "ToolCall",
    "ToolDefinition",
    "Usage",
]
