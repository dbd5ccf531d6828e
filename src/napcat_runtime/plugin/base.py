"""Plugin descriptors and lifecycle records.

A plugin module exports a descriptor named ``plugin``:

    from napcat_runtime.plugin import define_plugin

    async def setup(ctx):
        ctx.handle("message.group", on_group_message)

    plugin = define_plugin("hi", setup, version="1.0.0")

``setup`` may be a coroutine function and may return a no-argument cleanup
callable, which runs when the plugin is disabled.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .context import PluginContext

DEFAULT_PRIORITY = 100

# A teardown callable; may return an awaitable
Teardown = Callable[[], Awaitable[Any] | Any]
SetupFunction = Callable[["PluginContext"], Awaitable[Teardown | None] | Teardown | None]


class PluginType(str, Enum):
    """Where a plugin comes from."""

    BUILTIN = "builtin"
    EXTERNAL = "external"


class PluginState(str, Enum):
    """Plugin lifecycle: unregistered -> enabling -> active -> disabling -> unregistered."""

    UNREGISTERED = "unregistered"
    ENABLING = "enabling"
    ACTIVE = "active"
    DISABLING = "disabling"


@dataclass(frozen=True)
class PluginDescriptor:
    """Static description of a plugin."""

    name: str
    setup: SetupFunction | None = None
    version: str = "0.0.0"
    priority: int = DEFAULT_PRIORITY
    description: str = ""
    # Advisory only; the host logs missing ones but does not resolve them
    dependencies: tuple[str, ...] = ()

    @property
    def label(self) -> str:
        return f"{self.name}@{self.version}"


def define_plugin(
    name: str,
    setup: SetupFunction | None = None,
    *,
    version: str = "0.0.0",
    priority: int = DEFAULT_PRIORITY,
    description: str = "",
    dependencies: list[str] | tuple[str, ...] = (),
) -> PluginDescriptor:
    """Create a plugin descriptor.

    Args:
        name: Unique plugin name, usually the plugin's directory name
        setup: Called once when the plugin is enabled
        version: Plugin version
        priority: Load order among user plugins; lower loads first
        description: Human-readable summary
        dependencies: Names of plugins this one expects to be loaded

    Raises:
        ValueError: If the name is empty
    """
    if not name:
        raise ValueError("Plugin name must not be empty")
    return PluginDescriptor(
        name=name,
        setup=setup,
        version=version,
        priority=priority,
        description=description,
        dependencies=tuple(dependencies),
    )


@dataclass
class PluginRegistration:
    """An active plugin and everything needed to disable it."""

    descriptor: PluginDescriptor
    type: PluginType
    teardowns: list[Teardown] = field(default_factory=list)
    # Callbacks plugins add themselves through ctx.clears
    clears: list[Teardown] = field(default_factory=list)
    enabled_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def name(self) -> str:
        return self.descriptor.name

    def all_teardowns(self) -> list[Teardown]:
        """Snapshot of every teardown, context-registered and user-added."""
        return [*self.teardowns, *self.clears]


@dataclass
class PluginFailure:
    """A plugin that failed to load, enable or disable."""

    name: str
    stage: str  # "load" | "setup" | "teardown"
    error: str
    exception: BaseException | None = None

    def __str__(self) -> str:
        return f"{self.name} ({self.stage}): {self.error}"
