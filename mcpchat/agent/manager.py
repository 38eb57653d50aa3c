import logging
from typing import Any, Dict, List, Optional, Sequence

from fastapi import HTTPException

from ..errors import ConfigError
from ..registry import ServerRegistry
from ..schemas import ChatMessage
from ..tools import AgentTool, Connector, builtin_tools, connect
from .settings import (
    APP_CONFIG,
    AVAILABLE_MODELS,
    CONNECT_TIMEOUT,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    MAX_DURATION,
    MAX_STEPS,
)
from .turn import ConversationTurn
from .utils import get_openai_client

logger = logging.getLogger(__name__)


class ChatService:
    """Wires the server registry, built-in tools and model client into per-request turns."""

    def __init__(
        self,
        registry: ServerRegistry,
        *,
        model_client: Any = None,
        connector: Connector = connect,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_steps: int = MAX_STEPS,
        max_duration: float = MAX_DURATION,
        comparison_delay: float = APP_CONFIG["comparison_delay"],
        chart_tool: bool = APP_CONFIG["chart_tool"],
    ) -> None:
        self.registry = registry
        self.model_client = model_client
        self.connector = connector
        self.system_prompt = system_prompt
        self.max_steps = max_steps
        self.max_duration = max_duration
        self.comparison_delay = comparison_delay
        self.chart_tool = chart_tool
        self.current_model = DEFAULT_MODEL
        self.available_models: List[str] = list(AVAILABLE_MODELS)

    def builtins(self) -> List[AgentTool]:
        return list(builtin_tools(comparison_delay=self.comparison_delay, chart_tool=self.chart_tool))

    def _client(self) -> Any:
        return self.model_client if self.model_client is not None else get_openai_client()

    def start_turn(self, messages: Sequence[ChatMessage | Dict[str, Any]], model: Optional[str] = None) -> ConversationTurn:
        model = model or self.current_model
        if model not in self.available_models:
            raise HTTPException(status_code=400, detail="Model not supported")
        client = self._client()
        try:
            servers = self.registry.list()
        except ConfigError as exc:
            logger.error("Server registry is invalid: %s", exc)
            raise HTTPException(status_code=500, detail=f"Server registry is invalid: {exc}") from exc

        history = [m.model_dump() if isinstance(m, ChatMessage) else dict(m) for m in messages]
        logger.info("Starting turn: model=%s messages=%d servers=%s", model, len(history), list(servers))
        return ConversationTurn(
            history,
            servers=servers,
            builtins=self.builtins(),
            model_client=client,
            model=model,
            system_prompt=self.system_prompt,
            max_steps=self.max_steps,
            max_duration=self.max_duration,
            max_output_tokens=DEFAULT_MAX_OUTPUT_TOKENS,
            connector=self.connector,
            connect_timeout=CONNECT_TIMEOUT,
        )
