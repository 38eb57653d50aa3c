import asyncio
import logging
from typing import Any, Optional

from ...errors import ServerConnectionError
from ...schemas import NetworkServer, ProcessServer, ServerDescriptor
from .base import ToolSession
from .http import http_transport
from .stdio import stdio_transport

logger = logging.getLogger(__name__)


def transport_for(descriptor: ServerDescriptor) -> Any:
    if isinstance(descriptor, ProcessServer):
        return stdio_transport(descriptor)
    if isinstance(descriptor, NetworkServer):
        return http_transport(descriptor)
    raise TypeError(f"Unsupported server descriptor: {type(descriptor).__name__}")


async def connect(name: str, descriptor: ServerDescriptor, *, timeout: Optional[float] = None) -> ToolSession:
    """Open a session to one MCP server or raise ServerConnectionError."""
    try:
        session = ToolSession(name, transport_for(descriptor))
    except Exception as exc:
        raise ServerConnectionError(name, f"cannot build transport: {exc}") from exc

    logger.debug("Connecting to MCP server %s (%s)", name, descriptor.kind)
    try:
        await asyncio.wait_for(session.open(), timeout)
    except asyncio.TimeoutError as exc:
        await session.close()
        raise ServerConnectionError(name, f"no handshake within {timeout}s") from exc
    except Exception as exc:
        await session.close()
        raise ServerConnectionError(name, str(exc) or type(exc).__name__) from exc
    return session


__all__ = [
    "ToolSession",
    "connect",
    "transport_for",
]
