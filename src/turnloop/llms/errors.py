from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines custom exceptions for error handling in the llms package.
"""


class LLMError(Exception):
    """Base exception for all model-client errors."""

    pass


class LLMConfigurationError(LLMError):
    pass


class LLMInvalidResponseError(LLMError):
    """
    The model returned a response that we couldn't parse.
    This may indicate a provider issue or unexpected content.
    """

    pass
