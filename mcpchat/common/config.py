import os
import tomllib
from pathlib import Path
from typing import Any, Dict

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def project_path(path: str | Path) -> Path:
    """Resolve a relative path against the project root, leaving absolute paths alone."""
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return PROJECT_ROOT / candidate


def _load_toml(path: Path) -> Dict[str, Any]:
    # Let errors propagate if the file is missing or malformed.
    return tomllib.loads(path.read_text())


def load_app_config(path: str | None = None) -> Dict[str, Any]:
    config_path = project_path(path or os.getenv("APP_CONFIG_FILE", "config/config.toml"))
    data = _load_toml(config_path)

    app_cfg = data["app"]
    turn_cfg = data["turn"]
    tools_cfg = data["tools"]

    return {
        "default_model": app_cfg["default_model"],
        "available_models": app_cfg["available_models"],
        "max_output_tokens": app_cfg["max_output_tokens"],
        "openai_base_url": app_cfg["openai_base_url"],
        "max_steps": int(turn_cfg["max_steps"]),
        "max_duration": float(turn_cfg["max_duration"]),
        "connect_timeout": float(turn_cfg["connect_timeout"]),
        "comparison_delay": float(tools_cfg["comparison_delay"]),
        "chart_tool": bool(tools_cfg["chart_tool"]),
    }


def load_prompts_config(path: str | None = None) -> Dict[str, str]:
    config_path = project_path(path or os.getenv("PROMPTS_CONFIG_FILE", "config/prompts.toml"))
    data = _load_toml(config_path)
    return {"system": data["prompts"]["system"]}


def mcp_config_path(path: str | None = None) -> Path:
    return project_path(path or os.getenv("MCP_CONFIG_FILE", "config/mcp.json"))
