import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional

from pydantic import BaseModel, ValidationError

from ..errors import InvocationError
from .clients import ToolSession

logger = logging.getLogger(__name__)

LocalHandler = Callable[..., Awaitable[Any] | Any]


class AgentTool:
    """A named, schema-described capability the model may call."""

    source: str = "local"
    reports_progress: bool = False

    def __init__(self, name: str, description: str) -> None:
        self.name = name
        self.description = description

    @property
    def parameters(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def invoke(self, arguments: Dict[str, Any]) -> str:
        raise NotImplementedError

    def as_response_tool(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def summary(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "source": self.source}


def _encode_local_result(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps(value)


class LocalTool(AgentTool):
    """In-process tool with a statically typed parameter model."""

    def __init__(
        self,
        name: str,
        description: str,
        params: type[BaseModel],
        handler: LocalHandler,
        *,
        reports_progress: bool = False,
    ) -> None:
        super().__init__(name, description)
        self.params = params
        self.handler = handler
        self.reports_progress = reports_progress

    @property
    def parameters(self) -> Dict[str, Any]:
        return self.params.model_json_schema()

    async def invoke(self, arguments: Dict[str, Any]) -> str:
        try:
            parsed = self.params.model_validate(arguments or {})
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}" for err in exc.errors()
            )
            raise InvocationError(f"Invalid arguments for {self.name}: {problems}") from exc
        result = self.handler(parsed)
        if asyncio.iscoroutine(result):
            result = await result
        return _encode_local_result(result)


class RemoteTool(AgentTool):
    """Tool advertised by an MCP server; its schema is passed through as-is."""

    def __init__(
        self,
        name: str,
        description: str,
        input_schema: Optional[Dict[str, Any]],
        *,
        session: ToolSession,
        remote_name: Optional[str] = None,
    ) -> None:
        super().__init__(name, description)
        self.input_schema = input_schema or {"type": "object", "additionalProperties": True}
        self.session = session
        self.remote_name = remote_name or name
        self.source = f"mcp:{session.server}"

    @property
    def parameters(self) -> Dict[str, Any]:
        return self.input_schema

    def missing_arguments(self, arguments: Dict[str, Any]) -> List[str]:
        required = self.input_schema.get("required") or []
        return [field for field in required if field not in arguments]

    async def invoke(self, arguments: Dict[str, Any]) -> str:
        # Pre-validate required args to give the model actionable feedback without a round-trip.
        missing = self.missing_arguments(arguments or {})
        if missing:
            raise InvocationError(f"Missing required arguments for {self.name}: {', '.join(missing)}")
        return await self.session.call_tool(self.remote_name, arguments or {})


@dataclass(frozen=True)
class Collision:
    name: str
    replaced: str
    winner: str


class ToolNamespace:
    """Flat name -> tool mapping; registering an existing name replaces it."""

    def __init__(self) -> None:
        self._tools: Dict[str, AgentTool] = {}
        self.collisions: List[Collision] = []

    def register(self, tool: AgentTool) -> None:
        previous = self._tools.get(tool.name)
        if previous is not None:
            self.collisions.append(Collision(tool.name, previous.source, tool.source))
            logger.warning(
                "Tool name collision: %s from %s replaces the one from %s",
                tool.name,
                tool.source,
                previous.source,
            )
        self._tools[tool.name] = tool
        logger.debug("Registered tool %s (source=%s)", tool.name, tool.source)

    def get(self, name: str) -> AgentTool:
        return self._tools[name]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def list_for_responses(self) -> List[Dict[str, Any]]:
        return [tool.as_response_tool() for tool in self._tools.values()]

    def summary(self) -> List[Dict[str, Any]]:
        return [tool.summary() for tool in self._tools.values()]
