class BridgeError(Exception):
    """Base class for failures raised by the tool bridge."""


class ConfigError(BridgeError, ValueError):
    """A server descriptor is malformed or missing required fields."""


class ServerConnectionError(BridgeError, ConnectionError):
    """An MCP server process could not be spawned or its endpoint reached."""

    def __init__(self, server: str, message: str) -> None:
        super().__init__(f"{server}: {message}")
        self.server = server


class DiscoveryError(BridgeError):
    """A session opened but listing its tools failed."""

    def __init__(self, server: str, message: str) -> None:
        super().__init__(f"{server}: {message}")
        self.server = server


class InvocationError(BridgeError):
    """A single tool call failed on the local or remote side."""


class BudgetExceeded(BridgeError):
    """The step budget ran out before the model produced a final answer."""


class TurnTimeout(BridgeError):
    """The turn ran past its wall-clock budget."""
