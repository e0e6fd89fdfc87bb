"""
Device link: transport, connection/liveness management and inbound dispatch.

- `transport`: text-frame channel (`WebSocketTransport`)
- `connection_manager`: connection state, keepalive watchdog, outbound sends
- `dispatcher`: inbound decoding and the closed `Action` -> handler table
"""

from .connection_manager import CONNECTION_ERROR, ConnectionManager, LinkState
from .dispatcher import ROUTER, ProtocolDispatcher, get_router_map, handler
from .transport import Transport, WebSocketTransport, device_url

__all__ = [
    "CONNECTION_ERROR",
    "ConnectionManager",
    "LinkState",
    "ROUTER",
    "ProtocolDispatcher",
    "get_router_map",
    "handler",
    "Transport",
    "WebSocketTransport",
    "device_url",
]
