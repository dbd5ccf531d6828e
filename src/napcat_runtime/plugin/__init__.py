"""Plugin system: descriptors, per-connection contexts, the host and loaders."""

from .base import (
    DEFAULT_PRIORITY,
    PluginDescriptor,
    PluginFailure,
    PluginRegistration,
    PluginState,
    PluginType,
    define_plugin,
)
from .context import PluginContext
from .host import PluginHost, Subscription
from .loader import DirectoryLoader, ModuleLoader, PluginLoader, RegistryLoader

__all__ = [
    "DEFAULT_PRIORITY",
    "PluginDescriptor",
    "PluginFailure",
    "PluginRegistration",
    "PluginState",
    "PluginType",
    "define_plugin",
    "PluginContext",
    "PluginHost",
    "Subscription",
    "PluginLoader",
    "ModuleLoader",
    "DirectoryLoader",
    "RegistryLoader",
]
