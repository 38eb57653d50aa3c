from fastmcp.client.transports import StdioTransport

from ...common.config import project_path
from ...schemas import ProcessServer


def stdio_transport(descriptor: ProcessServer) -> StdioTransport:
    """Spawn the server process per session; it exits when the session closes."""
    return StdioTransport(
        command=descriptor.command,
        args=list(descriptor.args),
        env=dict(descriptor.env) or None,
        cwd=str(project_path(descriptor.cwd or ".")),
        keep_alive=False,
    )
