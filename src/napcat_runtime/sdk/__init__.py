"""NapCat SDK - Connections to OneBot bridge endpoints.

Provides:
- Connection: call/response correlation plus event dispatch
- Normalized events with bound reply/recall/approve actions
- Transports: WebSocket for real bridges, mock for tests
"""

from .classifier import classify, remap_notice
from .connection import Connection, ConnectionState, PendingCall, create_test_connection
from .emitter import EventEmitter
from .events import (
    BridgeEvent,
    GroupMessageEvent,
    MessageEvent,
    MessageSentEvent,
    MetaEvent,
    NoticeEvent,
    PrivateMessageEvent,
    RequestEvent,
    UnrecognizedEvent,
)
from .facades import FriendFacade, GroupFacade
from .transport import (
    BaseClientTransport,
    ClientTransport,
    ClientTransportConfig,
    MockClientTransport,
    TransportState,
    WebSocketClientTransport,
    create_mock_transport,
    create_websocket_transport,
)

__all__ = [
    # Connection
    "Connection",
    "ConnectionState",
    "PendingCall",
    "create_test_connection",
    # Events
    "classify",
    "remap_notice",
    "EventEmitter",
    "BridgeEvent",
    "MetaEvent",
    "MessageEvent",
    "GroupMessageEvent",
    "PrivateMessageEvent",
    "MessageSentEvent",
    "NoticeEvent",
    "RequestEvent",
    "UnrecognizedEvent",
    "GroupFacade",
    "FriendFacade",
    # Transport Protocol & Base
    "ClientTransport",
    "BaseClientTransport",
    "ClientTransportConfig",
    "TransportState",
    # Transport Implementations
    "WebSocketClientTransport",
    "MockClientTransport",
    # Transport Factory Functions
    "create_websocket_transport",
    "create_mock_transport",
]
