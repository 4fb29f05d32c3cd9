"""
Prebuilt tool factories.
"""

from .execution import build_execution_tools

__all__ = ["build_execution_tools"]
