"""napcat-runtime - plugin host for OneBot 11 bridges (NapCat).

Key pieces:
- sdk.Connection: one bridge session, call/response correlation
- ConnectionRegistry: every live connection, keyed by account id
- Deduplicator: handle an occurrence once across connections
- plugin.PluginHost: plugin lifecycle and handler wiring
- BridgeRuntime: all of the above, started from a config file
"""

__version__ = "0.1.0"

from .config import BotConfig, ConnectionConfig, load_config  # noqa: E402
from .dedup import Deduplicator  # noqa: E402
from .plugin import PluginContext, PluginHost, define_plugin  # noqa: E402
from .protocol import segment  # noqa: E402
from .registry import ConnectionRegistry  # noqa: E402
from .runtime import BridgeRuntime  # noqa: E402
from .sdk import Connection  # noqa: E402

__all__ = [
    "__version__",
    "BotConfig",
    "ConnectionConfig",
    "load_config",
    "Deduplicator",
    "PluginContext",
    "PluginHost",
    "define_plugin",
    "segment",
    "ConnectionRegistry",
    "BridgeRuntime",
    "Connection",
]
