"""Shared utilities and config loading."""

from .config import load_app_config, load_prompts_config, mcp_config_path, project_path
from .text import chunk_text

__all__ = [
    "load_app_config",
    "load_prompts_config",
    "mcp_config_path",
    "project_path",
    "chunk_text",
]
