"""Plugins shipped with the runtime, enabled before any user plugin."""

from ..plugin import PluginDescriptor
from .core import plugin as core_plugin

BUILTIN_PLUGINS: list[PluginDescriptor] = [core_plugin]

__all__ = ["BUILTIN_PLUGINS", "core_plugin"]
