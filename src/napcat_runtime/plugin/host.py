"""Plugin host.

Enables and disables plugins, wires their handlers across every
connection, and keeps the registry of active plugins.

Lifecycle per plugin name:

    unregistered -> enabling -> active -> disabling -> unregistered

Failures stay local to the plugin they came from: a setup that raises
leaves nothing registered and does not stop its siblings from loading.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from collections.abc import Callable, Iterable, Sequence
from itertools import groupby
from typing import TYPE_CHECKING, Any

from ..config import BotConfig
from ..dedup import Deduplicator
from ..errors import PluginError, PluginSetupError, PluginStateError
from ..registry import ConnectionRegistry, should_deliver
from ..scheduler import Scheduler
from ..sdk.emitter import EventCallback
from ..services import ServiceRegistry
from .base import (
    PluginDescriptor,
    PluginFailure,
    PluginRegistration,
    PluginState,
    PluginType,
    Teardown,
)
from .context import PluginContext
from .loader import PluginLoader

if TYPE_CHECKING:
    from ..sdk.connection import Connection
    from ..sdk.events import BridgeEvent

logger = logging.getLogger(__name__)


class Subscription:
    """Composite unsubscribe handle over every connection a handler runs on.

    Calling it (or :meth:`unsubscribe`) more than once is a no-op.
    """

    def __init__(self, channel: str, unsubscribes: list[Callable[[], None]]):
        self.channel = channel
        self._unsubscribes = unsubscribes

    @property
    def active(self) -> bool:
        return bool(self._unsubscribes)

    def unsubscribe(self) -> None:
        unsubscribes, self._unsubscribes = self._unsubscribes, []
        for unsubscribe in unsubscribes:
            unsubscribe()
        if unsubscribes:
            logger.debug(f"Unsubscribed handler from {self.channel}")

    def __call__(self) -> None:
        self.unsubscribe()


async def _run_teardown(teardown: Teardown) -> None:
    result = teardown()
    if inspect.isawaitable(result):
        await result


class PluginHost:
    """Registry and lifecycle manager for plugins.

    Usage:
        host = PluginHost(registry, config=config)
        failures = await host.load_all(builtins, plugins)
        ...
        await host.shutdown()
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        config: BotConfig | None = None,
        deduplicator: Deduplicator | None = None,
        services: ServiceRegistry | None = None,
        scheduler: Scheduler | None = None,
        loader: PluginLoader | None = None,
    ):
        self.registry = registry
        self.config = config or BotConfig()
        self.deduplicator = deduplicator or Deduplicator(self.config.dedup_capacity)
        self.services = services or ServiceRegistry()
        self.scheduler = scheduler or Scheduler()
        # Used by commands that enable plugins by name at runtime
        self.loader = loader
        self._registrations: dict[str, PluginRegistration] = {}
        self._states: dict[str, PluginState] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def state(self, name: str) -> PluginState:
        return self._states.get(name, PluginState.UNREGISTERED)

    def is_active(self, name: str) -> bool:
        return self.state(name) == PluginState.ACTIVE

    def get(self, name: str) -> PluginRegistration | None:
        return self._registrations.get(name)

    @property
    def active(self) -> list[PluginRegistration]:
        """Active plugins in the order they were enabled."""
        return list(self._registrations.values())

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------

    async def enable(
        self,
        descriptor: PluginDescriptor,
        type: PluginType = PluginType.EXTERNAL,
        connections: Sequence[Connection] | None = None,
    ) -> PluginRegistration:
        """Run a plugin's setup and register it as active.

        Setup runs once, with the context of the first connection. Everything
        registered through any context joins the plugin's teardown set.

        Args:
            descriptor: The plugin
            type: Builtin or external
            connections: Connections to bind; defaults to every active one

        Returns:
            The registration

        Raises:
            PluginStateError: If the plugin is not unregistered
            PluginError: If there is no connection to bind to
            PluginSetupError: If setup raised; nothing stays registered
        """
        name = descriptor.name
        state = self.state(name)
        if state != PluginState.UNREGISTERED:
            raise PluginStateError(name, f"cannot enable while {state.value}")

        bound = list(connections if connections is not None else self.registry.connections)
        if not bound:
            raise PluginError(name, "no active connection to enable on")

        self._states[name] = PluginState.ENABLING
        started = time.perf_counter()

        teardowns: list[Teardown] = []
        clears: list[Teardown] = []
        contexts = [PluginContext(self, descriptor, c, bound, teardowns, clears) for c in bound]

        for dependency in descriptor.dependencies:
            if not self.is_active(dependency):
                logger.warning(f"Plugin {name} expects {dependency}, which is not active")

        try:
            result: Any = None
            if descriptor.setup is not None:
                result = descriptor.setup(contexts[0])
                if inspect.isawaitable(result):
                    result = await result
        except Exception as e:
            del self._states[name]
            for failure in await self._run_teardowns(name, [*teardowns, *clears]):
                logger.warning(f"Cleanup after failed setup: {failure}")
            logger.error(f"Failed to enable plugin {descriptor.label}: {e}")
            raise PluginSetupError(name, e) from e

        if callable(result):
            teardowns.append(result)

        registration = PluginRegistration(descriptor, type, teardowns=teardowns, clears=clears)
        self._registrations[name] = registration
        self._states[name] = PluginState.ACTIVE

        elapsed = (time.perf_counter() - started) * 1000
        logger.info(f"Enabled plugin [{type.value}] {descriptor.label} in {elapsed:.2f} ms")
        return registration

    async def disable(self, name: str) -> list[PluginFailure]:
        """Run a plugin's teardowns and remove it.

        Teardowns run concurrently. The plugin is removed even when some of
        them fail, so it can be enabled again.

        Returns:
            One failure per teardown that raised

        Raises:
            PluginStateError: If the plugin is not active
        """
        state = self.state(name)
        registration = self._registrations.get(name)
        if state != PluginState.ACTIVE or registration is None:
            raise PluginStateError(name, f"cannot disable while {state.value}")

        self._states[name] = PluginState.DISABLING
        try:
            failures = await self._run_teardowns(name, registration.all_teardowns())
        finally:
            del self._registrations[name]
            del self._states[name]

        if failures:
            logger.warning(f"Disabled plugin {name} with {len(failures)} teardown failure(s)")
        else:
            logger.info(f"Disabled plugin {name}")
        return failures

    async def _run_teardowns(self, name: str, teardowns: list[Teardown]) -> list[PluginFailure]:
        results = await asyncio.gather(
            *(_run_teardown(teardown) for teardown in teardowns), return_exceptions=True
        )

        failures = []
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Teardown of plugin {name} failed: {result}")
                failures.append(PluginFailure(name, "teardown", str(result), result))
            elif isinstance(result, BaseException):
                raise result
        return failures

    # ------------------------------------------------------------------
    # Bulk loading
    # ------------------------------------------------------------------

    async def _try_enable(
        self, descriptor: PluginDescriptor, type: PluginType
    ) -> PluginFailure | None:
        try:
            await self.enable(descriptor, type)
            return None
        except PluginSetupError as e:
            return PluginFailure(descriptor.name, "setup", str(e.cause), e.cause)
        except PluginError as e:
            return PluginFailure(descriptor.name, "setup", str(e), e)

    async def load_all(
        self,
        builtins: Iterable[PluginDescriptor] = (),
        plugins: Iterable[PluginDescriptor] = (),
    ) -> list[PluginFailure]:
        """Enable built-ins, then user plugins tier by tier.

        Built-ins load concurrently. User plugins are grouped by priority,
        lowest first; a tier loads concurrently and fully settles before the
        next one starts.

        Returns:
            Failures across every plugin; an empty list means all loaded
        """
        failures: list[PluginFailure] = []

        results = await asyncio.gather(
            *(self._try_enable(d, PluginType.BUILTIN) for d in builtins)
        )
        failures.extend(f for f in results if f is not None)

        ordered = sorted(plugins, key=lambda d: d.priority)
        for priority, tier in groupby(ordered, key=lambda d: d.priority):
            tier_plugins = list(tier)
            logger.debug(f"Loading priority {priority} tier: {[d.name for d in tier_plugins]}")
            results = await asyncio.gather(
                *(self._try_enable(d, PluginType.EXTERNAL) for d in tier_plugins)
            )
            failures.extend(f for f in results if f is not None)

        logger.info(f"Loaded {len(self._registrations)} plugin(s), {len(failures)} failure(s)")
        return failures

    async def shutdown(self) -> list[PluginFailure]:
        """Disable every plugin: externals by descending priority, then built-ins."""
        externals = [r for r in self.active if r.type == PluginType.EXTERNAL]
        builtins = [r for r in self.active if r.type == PluginType.BUILTIN]
        externals.sort(key=lambda r: r.descriptor.priority, reverse=True)

        failures: list[PluginFailure] = []
        for registration in [*externals, *builtins]:
            failures.extend(await self.disable(registration.name))
        return failures

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def handle(
        self,
        connections: Sequence[Connection],
        channel: str,
        handler: EventCallback,
        *,
        deduplicate: bool = True,
        owner: str = "",
    ) -> Subscription:
        """Register ``handler`` on every connection behind one filter chain.

        Each connection gets a wrapper that applies the cross-bot filter
        against the bots active when the event arrives, then the dedup gate
        under a scope unique to this call, then the handler.

        Args:
            connections: Connections to subscribe on
            channel: Event channel
            handler: Function or coroutine function receiving the event
            deduplicate: Gate through the shared deduplicator
            owner: Plugin name, used in the dedup scope

        Returns:
            Subscription removing the wrapper from every connection
        """
        scope = f"{owner}:{channel}:{uuid.uuid4().hex}"
        peers = list(connections)
        unsubscribes = [
            connection.on(channel, self._wrap(connection, peers, handler, scope, deduplicate))
            for connection in peers
        ]
        logger.debug(f"Registered {owner or 'anonymous'} handler on {channel} x{len(peers)}")
        return Subscription(channel, unsubscribes)

    def _wrap(
        self,
        connection: Connection,
        peers: list[Connection],
        handler: EventCallback,
        scope: str,
        deduplicate: bool,
    ) -> Callable[[BridgeEvent], Any]:
        async def wrapped(event: BridgeEvent) -> None:
            # Closed bots stop counting as peers
            active = [*self.registry.connections, *(p for p in peers if p.is_open)]
            if not should_deliver(connection, event, active):
                return

            if deduplicate:
                if self.deduplicator.is_processed(event, scope):
                    return
                self.deduplicator.mark_processed(event, scope)

            result = handler(event)
            if inspect.isawaitable(result):
                await result

        return wrapped
