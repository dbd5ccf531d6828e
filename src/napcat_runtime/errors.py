"""Error taxonomy for the bridge runtime.

Transport and protocol failures are local to a single call or connection.
Plugin failures are local to a single plugin. Nothing here is meant to
escape to the top of the process.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all runtime errors."""


class NotConnectedError(BridgeError, ConnectionError):
    """An action was attempted on a connection that is not open."""


class ConnectionClosedError(BridgeError, ConnectionError):
    """The connection closed while a call was still waiting for its response."""


class RemoteError(BridgeError):
    """The bridge answered a call with a non-zero retcode."""

    def __init__(self, code: int, message: str = "", action: str | None = None):
        self.code = code
        self.message = message
        self.action = action
        where = f" ({action})" if action else ""
        super().__init__(f"Remote error {code}{where}: {message or 'no message'}")


class MalformedFrameError(BridgeError, ValueError):
    """Inbound data could not be decoded into a wire frame."""


class DuplicateConnectionError(BridgeError):
    """A connection resolved to an identity that is already registered."""

    def __init__(self, self_id: int):
        self.self_id = self_id
        super().__init__(f"Connection for account {self_id} is already registered")


class PluginError(BridgeError):
    """Base class for plugin lifecycle errors."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(f"Plugin {name}: {message}")


class PluginStateError(PluginError):
    """A lifecycle transition was requested from the wrong state."""


class PluginSetupError(PluginError):
    """A plugin's setup function raised."""

    def __init__(self, name: str, cause: BaseException):
        self.cause = cause
        super().__init__(name, f"setup failed: {type(cause).__name__}: {cause}")


class PluginLoadError(PluginError):
    """A plugin module could not be located or imported."""
