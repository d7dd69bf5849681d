"""
AI Provider Clients

Chat-completion adapters used by the content analyzer.
"""

from .anthropic import AnthropicProvider
from .base import BaseProvider
from .openrouter import OpenRouterProvider

__all__ = ["BaseProvider", "AnthropicProvider", "OpenRouterProvider"]
