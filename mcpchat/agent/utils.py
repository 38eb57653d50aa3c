import json
import logging
import os
from typing import Any, Dict, Optional

from fastapi import HTTPException
from openai import AsyncOpenAI

from ..errors import InvocationError
from .settings import APP_CONFIG

logger = logging.getLogger(__name__)

_client: Optional[AsyncOpenAI] = None


def parse_tool_arguments(name: str, raw_args: Any) -> Dict[str, Any]:
    """Decode a function call's arguments; anything but a JSON object raises ``InvocationError``."""
    if raw_args is None:
        return {}
    if isinstance(raw_args, str):
        if not raw_args.strip():
            return {}
        try:
            args = json.loads(raw_args)
        except json.JSONDecodeError as exc:
            logger.warning("Model sent unparseable arguments for %s: %r", name, raw_args)
            raise InvocationError(f"Arguments for {name} are not valid JSON: {exc}") from exc
    else:
        args = raw_args
    if not isinstance(args, dict):
        raise InvocationError(f"Arguments for {name} are not a JSON object: {raw_args!r}")
    return dict(args)


def get_openai_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise HTTPException(status_code=500, detail="OPENAI_API_KEY is not set.")

        base_url = APP_CONFIG["openai_base_url"] or None
        _client = AsyncOpenAI(api_key=api_key, base_url=base_url)
    return _client
