"""Built-in management commands.

    <prefix>ping               reply "pong"
    <prefix>plugins            list active and available plugins
    <prefix>plugin on <name>   load and enable a plugin
    <prefix>plugin off <name>  disable a plugin

Listing and ping need owner or admin rights; enabling and disabling need
an owner.
"""

from __future__ import annotations

from ..config import save_config
from ..errors import BridgeError
from ..plugin import DirectoryLoader, PluginContext, PluginType, define_plugin
from ..sdk.events import MessageEvent
from ..utils import parse_command, stringify_error, text


def _format_plugins(ctx: PluginContext) -> str:
    lines = ["Active plugins:"]
    for registration in ctx.host.active:
        descriptor = registration.descriptor
        lines.append(f"  [{registration.type.value}] {descriptor.label}")

    loader = ctx.host.loader
    if isinstance(loader, DirectoryLoader):
        available = [name for name in loader.discover() if not ctx.host.is_active(name)]
        if available:
            lines.append("Available: " + ", ".join(available))
    return "\n".join(lines)


async def _plugin_on(ctx: PluginContext, name: str) -> str:
    if ctx.host.is_active(name):
        return f"Plugin {name} is already enabled"
    if ctx.host.loader is None:
        return "No plugin loader configured"

    descriptor = ctx.host.loader.load(name)
    await ctx.host.enable(descriptor, PluginType.EXTERNAL)

    if name not in ctx.config.plugins:
        ctx.config.plugins.append(name)
        if ctx.config.source is not None:
            save_config(ctx.config)
    return f"Enabled plugin {descriptor.label}"


async def _plugin_off(ctx: PluginContext, name: str) -> str:
    registration = ctx.host.get(name)
    if registration is None:
        return f"Plugin {name} is not enabled"
    if registration.type == PluginType.BUILTIN:
        return f"Plugin {name} is built in and cannot be disabled"

    failures = await ctx.host.disable(name)

    if name in ctx.config.plugins:
        ctx.config.plugins.remove(name)
        if ctx.config.source is not None:
            save_config(ctx.config)

    if failures:
        details = "\n".join(str(failure) for failure in failures)
        return f"Disabled plugin {name} with errors:\n{details}"
    return f"Disabled plugin {name}"


async def setup(ctx: PluginContext) -> None:
    prefix = ctx.config.prefix

    async def on_message(event: MessageEvent) -> None:
        command = parse_command(text(event), prefix)
        if command.name is None or not ctx.has_right(event):
            return

        match command.name, command.args:
            case "ping", _:
                await event.reply("pong", quote=True)

            case "plugins", _:
                await event.reply(_format_plugins(ctx))

            case "plugin", [("on" | "off") as action, name] if ctx.is_owner(event):
                try:
                    if action == "on":
                        reply = await _plugin_on(ctx, name)
                    else:
                        reply = await _plugin_off(ctx, name)
                except BridgeError as e:
                    ctx.logger.warning(f"plugin {action} {name} failed: {e}")
                    reply = stringify_error(e)
                await event.reply(reply)

            case "plugin", _ if ctx.is_owner(event):
                await event.reply(f"Usage: {prefix}plugin on|off <name>")

    ctx.handle("message", on_message)
    ctx.logger.debug(f"Core commands ready with prefix {prefix!r}")


plugin = define_plugin(
    "core",
    setup,
    version="1.0.0",
    priority=0,
    description="Plugin management and health commands",
)
