"""Tool namespace, MCP integration and execution bridge.

Public surface is re-exported here so callers can keep using
`from mcpchat.tools import ToolNamespaceAggregator, ToolExecutor`, etc.
"""

from .aggregator import Connector, ToolNamespaceAggregator
from .bridge import AnnotationChannel, CallState, ToolCall, ToolExecutor, ToolResult
from .builtin import builtin_tools
from .clients import ToolSession, connect, transport_for
from .registry import AgentTool, Collision, LocalTool, RemoteTool, ToolNamespace

__all__ = [
    "AgentTool",
    "AnnotationChannel",
    "CallState",
    "Collision",
    "Connector",
    "LocalTool",
    "RemoteTool",
    "ToolCall",
    "ToolExecutor",
    "ToolNamespace",
    "ToolNamespaceAggregator",
    "ToolResult",
    "ToolSession",
    "builtin_tools",
    "connect",
    "transport_for",
]
