import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

import anyio

from ..errors import DiscoveryError, ServerConnectionError
from ..schemas import ServerDescriptor
from .clients import ToolSession, connect
from .registry import AgentTool, RemoteTool, ToolNamespace

logger = logging.getLogger(__name__)

Connector = Callable[..., Awaitable[ToolSession]]


class ToolNamespaceAggregator:
    """Opens one session per configured server and merges every tool set into one namespace.

    Sessions are owned by the aggregator and live until ``aclose()``; use it as
    an async context manager scoped to a single conversation turn.
    """

    def __init__(self, connector: Connector = connect, *, connect_timeout: Optional[float] = None) -> None:
        self.connector = connector
        self.connect_timeout = connect_timeout
        self.sessions: Dict[str, ToolSession] = {}
        self.failures: Dict[str, Exception] = {}

    async def __aenter__(self) -> "ToolNamespaceAggregator":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def open_sessions(self) -> int:
        return sum(1 for session in self.sessions.values() if session.is_open)

    async def _connect_one(self, name: str, descriptor: ServerDescriptor) -> ToolSession:
        session = await self.connector(name, descriptor, timeout=self.connect_timeout)
        # Recorded immediately so teardown sees it even if the fan-out is cancelled.
        self.sessions[name] = session
        return session

    async def _discover_one(self, session: ToolSession) -> List[AgentTool]:
        discovered: List[AgentTool] = []
        for tool in await session.list_tools():
            name = getattr(tool, "name", None)
            if not name:
                raise DiscoveryError(session.server, f"tool without a name: {tool!r}")
            discovered.append(
                RemoteTool(
                    name=name,
                    description=getattr(tool, "description", "") or "",
                    input_schema=getattr(tool, "inputSchema", None),
                    session=session,
                )
            )
        return discovered

    def _record_failure(self, name: str, error: Exception) -> None:
        self.failures[name] = error
        logger.warning("MCP server %s unavailable for this turn: %s", name, error)

    async def build(
        self,
        servers: Mapping[str, ServerDescriptor],
        builtins: Iterable[AgentTool] = (),
    ) -> ToolNamespace:
        names = list(servers)
        if names:
            logger.info("Connecting to %d MCP servers", len(names))

        results = await asyncio.gather(
            *(self._connect_one(name, servers[name]) for name in names),
            return_exceptions=True,
        )
        connected: List[ToolSession] = []
        for name, result in zip(names, results):
            if isinstance(result, ServerConnectionError):
                self._record_failure(name, result)
            elif isinstance(result, Exception):
                self._record_failure(name, ServerConnectionError(name, str(result) or type(result).__name__))
            elif isinstance(result, BaseException):
                raise result
            else:
                connected.append(result)

        tool_sets = await asyncio.gather(
            *(self._discover_one(session) for session in connected),
            return_exceptions=True,
        )

        namespace = ToolNamespace()
        for tool in builtins:
            namespace.register(tool)
        # Overlay in registry order, not completion order: the later server wins a name.
        for session, tools in zip(connected, tool_sets):
            if isinstance(tools, Exception):
                self._record_failure(session.server, tools)
                continue
            if isinstance(tools, BaseException):
                raise tools
            for tool in tools:
                namespace.register(tool)

        logger.info(
            "Tool namespace ready: %d tools, %d/%d servers available",
            len(namespace),
            len(names) - len(self.failures),
            len(names),
        )
        return namespace

    async def aclose(self) -> None:
        with anyio.CancelScope(shield=True):
            for session in list(self.sessions.values()):
                await session.close()
        if self.sessions:
            logger.debug("Closed %d MCP sessions", len(self.sessions))
