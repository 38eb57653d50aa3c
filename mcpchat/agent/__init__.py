"""Conversation turn driver package."""

from .manager import ChatService
from .settings import (
    APP_CONFIG,
    AVAILABLE_MODELS,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    MAX_DURATION,
    MAX_STEPS,
    PROMPTS_CONFIG,
)
from .turn import ConversationTurn

__all__ = [
    "APP_CONFIG",
    "PROMPTS_CONFIG",
    "DEFAULT_SYSTEM_PROMPT",
    "DEFAULT_MODEL",
    "AVAILABLE_MODELS",
    "DEFAULT_MAX_OUTPUT_TOKENS",
    "MAX_STEPS",
    "MAX_DURATION",
    "ChatService",
    "ConversationTurn",
]
