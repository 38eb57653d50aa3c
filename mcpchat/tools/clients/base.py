import asyncio
import json
import logging
from contextlib import AsyncExitStack
from typing import Any, Dict, List, Optional

import anyio
from fastmcp import Client
from mcp.types import Implementation

from ...errors import DiscoveryError, InvocationError

logger = logging.getLogger(__name__)

_CLIENT_INFO = Implementation(name="mcpchat", version="0.1.0")


def _result_to_string(result: Any) -> str:
    """Convert a CallToolResult (or a bare content list) into the string handed to the model."""
    content = result if isinstance(result, list) else getattr(result, "content", None)
    if isinstance(content, list) and content:
        texts = [getattr(item, "text", None) for item in content]
        if all(text is not None for text in texts):
            return "\n".join(str(text) for text in texts)
    structured = getattr(result, "structured_content", None) or getattr(result, "structuredContent", None)
    if structured is not None:
        return json.dumps(structured)
    if hasattr(result, "model_dump"):
        return json.dumps(result.model_dump(exclude_none=True, by_alias=True))
    if isinstance(content, list):
        return json.dumps(
            [item.model_dump(exclude_none=True) if hasattr(item, "model_dump") else repr(item) for item in content]
        )
    return json.dumps(result, default=repr)


class ToolSession:
    """One live connection to one MCP server, owned by a single conversation turn.

    FastMCP infers the transport (stdio/http/in-memory) from the object
    passed to ``Client(...)``. Calls are serialized per session; the MCP
    client is not assumed safe for interleaved requests.
    """

    def __init__(self, server: str, transport: Any) -> None:
        self.server = server
        self.client = Client(transport, name=f"mcpchat-{server}", client_info=_CLIENT_INFO)
        self._stack: Optional[AsyncExitStack] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._stack is not None

    async def open(self) -> None:
        if self._stack is not None:
            return
        stack = AsyncExitStack()
        try:
            await stack.enter_async_context(self.client)
        except BaseException:
            with anyio.CancelScope(shield=True):
                try:
                    await self.client.close()
                except Exception:
                    logger.debug("Error cleaning up failed MCP session %s", self.server, exc_info=True)
            raise
        self._stack = stack
        logger.debug("Opened MCP session %s", self.server)

    async def list_tools(self) -> List[Any]:
        if not self.is_open:
            raise DiscoveryError(self.server, "session is not open")
        async with self._lock:
            try:
                return await self.client.list_tools()
            except Exception as exc:
                raise DiscoveryError(self.server, str(exc) or type(exc).__name__) from exc

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> str:
        if not self.is_open:
            raise InvocationError(f"{self.server}/{tool_name}: session is closed")
        async with self._lock:
            try:
                result = await self.client.call_tool(tool_name, arguments or {})
            except Exception as exc:
                raise InvocationError(f"{self.server}/{tool_name}: {exc}") from exc
        if getattr(result, "is_error", False) or getattr(result, "isError", False):
            raise InvocationError(f"{self.server}/{tool_name}: {_result_to_string(result)}")
        return _result_to_string(result)

    async def close(self) -> None:
        stack, self._stack = self._stack, None
        if stack is None:
            return
        # Teardown must finish even when the owning turn is being cancelled.
        with anyio.CancelScope(shield=True):
            try:
                await stack.aclose()
            except Exception:
                logger.warning("Error closing MCP session %s", self.server, exc_info=True)
        logger.debug("Closed MCP session %s", self.server)
