from .connection import ConnectionContext, WebSocketEndpoint
from .registry import ChannelRegistry
from .repeater import Endpoint, Repeater, Subscription
from .server import RelayServer
from .static import StaticFiles

__all__ = [
    "ChannelRegistry",
    "ConnectionContext",
    "Endpoint",
    "RelayServer",
    "Repeater",
    "StaticFiles",
    "Subscription",
    "WebSocketEndpoint",
]
