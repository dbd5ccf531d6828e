"""Per-connection plugin context.

The host builds one context per active connection when it enables a
plugin. All contexts of one plugin share the same teardown lists, so
anything registered through any of them is released on disable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .. import actions
from ..config import BotConfig, Principal
from ..protocol import segment
from ..protocol.actions import ActionType
from ..protocol.segment import Sendable
from ..scheduler import CronTask, RecurringTask
from ..sdk.emitter import EventCallback
from ..sdk.facades import FriendFacade, GroupFacade
from .base import PluginDescriptor, Teardown

if TYPE_CHECKING:
    from ..dedup import Deduplicator
    from ..sdk.connection import Connection
    from ..services import ServiceRegistry
    from .host import PluginHost, Subscription


class PluginContext:
    """What a plugin's ``setup`` receives.

    Attributes:
        connection: The connection this context acts through
        connections: Every connection the plugin was enabled on
        self_id: The connection's account id
        config: Runtime configuration
        logger: Logger named after the plugin
        deduplicator: Shared deduplicator
        services: Shared service registry
        clears: Extra teardown callables; anything appended runs on disable
        segment: Message element builders
    """

    segment = segment

    def __init__(
        self,
        host: PluginHost,
        descriptor: PluginDescriptor,
        connection: Connection,
        connections: list[Connection],
        teardowns: list[Teardown],
        clears: list[Teardown],
    ):
        self.host = host
        self.descriptor = descriptor
        self.connection = connection
        self.connections = connections
        self.clears = clears
        self._teardowns = teardowns
        self.logger = logging.getLogger(f"napcat_runtime.plugin.{descriptor.name}")

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def self_id(self) -> int | None:
        return self.connection.self_id

    @property
    def config(self) -> BotConfig:
        return self.host.config

    @property
    def deduplicator(self) -> Deduplicator:
        return self.host.deduplicator

    @property
    def services(self) -> ServiceRegistry:
        return self.host.services

    # ------------------------------------------------------------------
    # Registration helpers (released on disable)
    # ------------------------------------------------------------------

    def handle(
        self,
        channel: str,
        handler: EventCallback,
        *,
        deduplicate: bool = True,
    ) -> Subscription:
        """Subscribe ``handler`` on every connection the plugin runs on.

        Events from any bot account are dropped, private messages only reach
        the connection they were addressed to, and with ``deduplicate`` an
        occurrence seen by several connections is handled once.

        Args:
            channel: Event channel (e.g., "message.group", "notice.group.ban")
            handler: Function or coroutine function receiving the event
            deduplicate: Gate through the shared deduplicator

        Returns:
            Subscription; call it to unsubscribe early
        """
        subscription = self.host.handle(
            self.connections,
            channel,
            handler,
            deduplicate=deduplicate,
            owner=self.name,
        )
        self._teardowns.append(subscription)
        return subscription

    def schedule(
        self,
        interval: float,
        callback: Callable[[PluginContext], Any],
        *,
        name: str | None = None,
        run_immediately: bool = False,
    ) -> RecurringTask:
        """Run ``callback(ctx)`` every ``interval`` seconds until disabled."""
        task_name = f"{self.name}:{name or getattr(callback, '__name__', 'task')}"

        def run() -> Any:
            return callback(self)

        task = self.host.scheduler.schedule(task_name, interval, run, run_immediately)
        self._teardowns.append(lambda: self.host.scheduler.cancel(task))
        return task

    def cron(
        self,
        expression: str,
        callback: Callable[[PluginContext], Any],
        *,
        name: str | None = None,
    ) -> CronTask:
        """Run ``callback(ctx)`` at each fire time of a cron expression until disabled.

        Raises:
            ValueError: If the expression does not parse
        """
        task_name = f"{self.name}:{name or getattr(callback, '__name__', 'cron')}"

        def run() -> Any:
            return callback(self)

        task = self.host.scheduler.cron(task_name, expression, run)
        self._teardowns.append(lambda: self.host.scheduler.cancel(task))
        return task

    def add_service(self, name: str, service: Any, replace: bool = False) -> Callable[[], None]:
        """Publish a shared service, removed again on disable."""
        dispose = self.services.add(name, service, replace=replace)
        self._teardowns.append(dispose)
        return dispose

    # ------------------------------------------------------------------
    # Bound actions
    # ------------------------------------------------------------------

    async def call(self, action: str | ActionType, params: dict[str, Any] | None = None) -> Any:
        return await self.connection.call(action, params)

    async def send_private_msg(self, user_id: int, content: Sendable) -> dict[str, Any]:
        return await self.connection.send_private_msg(user_id, content)

    async def send_group_msg(self, group_id: int, content: Sendable) -> dict[str, Any]:
        return await self.connection.send_group_msg(group_id, content)

    def pick_group(self, group_id: int) -> GroupFacade:
        return self.connection.pick_group(group_id)

    def pick_friend(self, user_id: int) -> FriendFacade:
        return self.connection.pick_friend(user_id)

    async def notice_main_owner(self, message: Sendable | None) -> None:
        await actions.notice_main_owner(self.connection, self.config, message)

    async def notice_owners(self, message: Sendable | None) -> None:
        await actions.notice_owners(self.connection, self.config, message)

    async def notice_admins(self, message: Sendable | None) -> None:
        await actions.notice_admins(self.connection, self.config, message)

    def is_bot(self, principal: Principal) -> bool:
        return actions.is_bot(self.connection, principal)

    def is_owner(self, principal: Principal) -> bool:
        return self.config.is_owner(principal)

    def is_admin(self, principal: Principal) -> bool:
        return self.config.is_admin(principal)

    def has_right(self, principal: Principal) -> bool:
        return self.config.has_right(principal)

    def __repr__(self) -> str:
        return f"<PluginContext {self.name} on {self.connection.label}>"
