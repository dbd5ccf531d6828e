"""Runtime bootstrap.

Wires the pieces together: one connection registry, one deduplicator, one
service registry, one scheduler and one plugin host per runtime, created
here and torn down in :meth:`BridgeRuntime.stop`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

from . import __version__
from .actions import notice_main_owner
from .builtins import BUILTIN_PLUGINS
from .config import BotConfig
from .dedup import Deduplicator
from .errors import PluginLoadError
from .plugin import DirectoryLoader, PluginDescriptor, PluginFailure, PluginHost, PluginLoader
from .registry import ConnectionRegistry, TransportFactory, default_transport_factory
from .scheduler import Scheduler
from .services import ServiceRegistry

logger = logging.getLogger(__name__)


class BridgeRuntime:
    """Connects every endpoint and hosts the configured plugins.

    Usage:
        runtime = BridgeRuntime(load_config("bot.yaml"))
        await runtime.run()  # until every connection closes
    """

    def __init__(
        self,
        config: BotConfig,
        *,
        transport_factory: TransportFactory = default_transport_factory,
        loader: PluginLoader | None = None,
        builtins: Sequence[PluginDescriptor] | None = None,
    ):
        self.config = config
        self.registry = ConnectionRegistry(transport_factory)
        self.deduplicator = Deduplicator(config.dedup_capacity)
        self.services = ServiceRegistry()
        self.scheduler = Scheduler()
        self.loader = loader or DirectoryLoader(config.plugins_path())
        self.builtins = list(BUILTIN_PLUGINS if builtins is None else builtins)
        self.host = PluginHost(
            self.registry,
            config=config,
            deduplicator=self.deduplicator,
            services=self.services,
            scheduler=self.scheduler,
            loader=self.loader,
        )
        self._started = False

    def load_descriptors(self) -> tuple[list[PluginDescriptor], list[PluginFailure]]:
        """Resolve every configured plugin name through the loader."""
        descriptors: list[PluginDescriptor] = []
        failures: list[PluginFailure] = []

        for name in self.config.plugins:
            try:
                descriptors.append(self.loader.load(name))
            except PluginLoadError as e:
                logger.error(f"Failed to load plugin {name}: {e}")
                failures.append(PluginFailure(name, "load", str(e), e))
        return descriptors, failures

    async def start(self) -> list[PluginFailure]:
        """Connect, then enable built-in and configured plugins.

        Returns:
            Plugin load and setup failures

        Raises:
            ConnectionError: If no endpoint could be connected
        """
        started = time.perf_counter()

        connect_failures = await self.registry.connect_all(self.config.connections)
        if not self.registry.connections:
            raise ConnectionError("No bridge endpoint could be connected")
        self._started = True

        descriptors, failures = self.load_descriptors()
        failures.extend(await self.host.load_all(self.builtins, descriptors))

        elapsed = (time.perf_counter() - started) * 1000
        logger.info(
            f"Runtime ready: {len(self.registry)} connection(s), "
            f"{len(self.host.active)} plugin(s), {len(failures)} failure(s) in {elapsed:.0f} ms"
        )

        await self._report(failures, [f"{c.label}: {e}" for c, e in connect_failures])
        return failures

    async def _report(self, failures: list[PluginFailure], connect_errors: list[str]) -> None:
        primary = self.registry.primary
        if primary is None or self.config.main_owner is None:
            return

        lines = []
        if connect_errors:
            lines.append(f"{len(connect_errors)} endpoint(s) failed to connect:")
            lines.extend(connect_errors)
        if failures:
            lines.append(f"{len(failures)} plugin(s) failed:")
            lines.extend(str(failure) for failure in failures)
        if self.config.online_push:
            lines.append(f"napcat-runtime v{__version__} ready")

        if not lines:
            return
        try:
            await notice_main_owner(primary, self.config, "\n".join(lines))
        except Exception as e:
            logger.error(f"Could not notify main owner: {e}")

    async def stop(self) -> None:
        """Disable plugins, cancel tasks and close every connection."""
        if not self._started:
            await self.registry.close_all()
            return
        self._started = False

        for failure in await self.host.shutdown():
            logger.warning(f"Shutdown: {failure}")
        self.scheduler.cancel_all()
        await self.registry.close_all()
        logger.info("Runtime stopped")

    async def run(self) -> None:
        """Start and block until every connection has closed."""
        await self.start()
        try:
            await self.registry.wait_closed()
        finally:
            await self.stop()
