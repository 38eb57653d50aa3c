from fastmcp.client.transports import StreamableHttpTransport

from ...schemas import NetworkServer


def http_transport(descriptor: NetworkServer) -> StreamableHttpTransport:
    return StreamableHttpTransport(
        url=descriptor.url,
        headers=dict(descriptor.headers) if descriptor.headers else None,
    )
