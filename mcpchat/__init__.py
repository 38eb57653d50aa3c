"""Chat service whose model can call built-in tools and tools from configured MCP servers."""

__version__ = "0.1.0"
