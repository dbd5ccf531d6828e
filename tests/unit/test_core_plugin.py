"""Unit tests for the built-in management commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from napcat_runtime.builtins import BUILTIN_PLUGINS, core_plugin
from napcat_runtime.config import BotConfig, ConnectionConfig, load_config
from napcat_runtime.plugin import DirectoryLoader, PluginHost, PluginType
from napcat_runtime.protocol import parse_push_frame
from napcat_runtime.registry import ConnectionRegistry
from napcat_runtime.sdk import Connection, MockClientTransport, create_test_connection
from napcat_runtime.utils import text

OWNER = 10001
ADMIN = 10002


def command(content: str, user_id: int = OWNER, time: int = 1) -> dict[str, Any]:
    return {
        "post_type": "message",
        "message_type": "group",
        "sub_type": "normal",
        "group_id": 77,
        "user_id": user_id,
        "message_id": time,
        "raw_message": content,
        "message": [{"type": "text", "data": {"text": content}}],
        "time": time,
        "self_id": 1001,
    }


async def setup_core(
    config: BotConfig, plugins_dir: Path | None = None
) -> tuple[PluginHost, Connection, MockClientTransport]:
    connection, transport = await create_test_connection()
    transport.set_response("send_group_msg", {"message_id": 500})
    registry = ConnectionRegistry()
    registry.register(connection)

    loader = DirectoryLoader(plugins_dir) if plugins_dir else None
    host = PluginHost(registry, config=config, loader=loader)
    await host.enable(core_plugin, PluginType.BUILTIN)
    return host, connection, transport


def replies(transport: MockClientTransport) -> list[str]:
    return [
        text([{"type": el["type"], **el["data"]} for el in frame["params"]["message"]])
        for frame in transport.sent_actions("send_group_msg")
    ]


class TestCoreCommands:
    """Tests for ping, plugins and plugin on/off."""

    @pytest.mark.asyncio
    async def test_ping(self) -> None:
        _, connection, transport = await setup_core(BotConfig(owners=[OWNER]))

        await connection.dispatch(parse_push_frame(command("#ping")))

        [frame] = transport.sent_actions("send_group_msg")
        assert frame["params"]["message"][0] == {"type": "reply", "data": {"id": "1"}}
        assert replies(transport) == ["pong"]
        await connection.close()

    @pytest.mark.asyncio
    async def test_ping_needs_rights(self) -> None:
        _, connection, transport = await setup_core(BotConfig(owners=[OWNER]))

        await connection.dispatch(parse_push_frame(command("#ping", user_id=555)))

        assert transport.sent_actions("send_group_msg") == []
        await connection.close()

    @pytest.mark.asyncio
    async def test_plugins_lists_active_and_available(self, plugins_dir: Path) -> None:
        _, connection, transport = await setup_core(BotConfig(admins=[ADMIN]), plugins_dir)

        await connection.dispatch(parse_push_frame(command("#plugins", user_id=ADMIN)))

        [reply] = replies(transport)
        assert "[builtin] core@1.0.0" in reply
        assert "Available: broken, echo, empty, hello" in reply
        await connection.close()

    @pytest.mark.asyncio
    async def test_plugin_on_and_off(self, config_file: Path, plugins_dir: Path) -> None:
        """Toggling a plugin updates the host and the saved config."""
        config = load_config(config_file)
        config.plugins = []
        host, connection, transport = await setup_core(config, plugins_dir)

        await connection.dispatch(parse_push_frame(command("#plugin on echo", time=1)))
        assert host.is_active("echo")
        assert load_config(config_file).plugins == ["echo"]

        await connection.dispatch(parse_push_frame(command("#plugin off echo", time=2)))
        assert not host.is_active("echo")
        assert load_config(config_file).plugins == []

        assert replies(transport) == ["Enabled plugin echo@0.0.0", "Disabled plugin echo"]
        await connection.close()

    @pytest.mark.asyncio
    async def test_plugin_on_load_error(self, plugins_dir: Path) -> None:
        _, connection, transport = await setup_core(BotConfig(owners=[OWNER]), plugins_dir)

        await connection.dispatch(parse_push_frame(command("#plugin on missing")))

        [reply] = replies(transport)
        assert reply.startswith("PluginLoadError:")
        await connection.close()

    @pytest.mark.asyncio
    async def test_builtin_cannot_be_disabled(self) -> None:
        host, connection, transport = await setup_core(BotConfig(owners=[OWNER]))

        await connection.dispatch(parse_push_frame(command("#plugin off core")))

        assert host.is_active("core")
        assert replies(transport) == ["Plugin core is built in and cannot be disabled"]
        await connection.close()

    @pytest.mark.asyncio
    async def test_plugin_usage_for_owner_only(self) -> None:
        _, connection, transport = await setup_core(
            BotConfig(owners=[OWNER], admins=[ADMIN], connections=[ConnectionConfig()])
        )

        await connection.dispatch(parse_push_frame(command("#plugin", time=1)))
        await connection.dispatch(parse_push_frame(command("#plugin on x", ADMIN, time=2)))

        assert replies(transport) == ["Usage: #plugin on|off <name>"]
        await connection.close()


class TestBuiltinExports:
    """Tests for the builtins package surface."""

    def test_descriptor_and_module_are_distinct(self) -> None:
        """The core submodule stays importable next to its exported descriptor."""
        from napcat_runtime.builtins import core

        assert core.plugin is core_plugin
        assert core_plugin.name == "core"
        assert BUILTIN_PLUGINS == [core_plugin]
