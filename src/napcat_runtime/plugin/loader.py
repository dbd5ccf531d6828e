"""Plugin loaders.

A loader turns an identifier into a :class:`PluginDescriptor`. The host
never imports code itself; the runtime picks a loader:

- ModuleLoader: identifier is a dotted module path
- DirectoryLoader: identifier is a plugin directory (or ``.py`` file) name
  inside the configured plugins directory
- RegistryLoader: identifier is a key in a static mapping

A plugin module exports its descriptor as the module attribute ``plugin``.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from types import ModuleType
from typing import Protocol, runtime_checkable

from ..errors import PluginLoadError
from .base import PluginDescriptor

logger = logging.getLogger(__name__)

PLUGIN_ATTRIBUTE = "plugin"


@runtime_checkable
class PluginLoader(Protocol):
    """Resolves plugin identifiers to descriptors."""

    def load(self, identifier: str) -> PluginDescriptor:
        """Load one plugin.

        Raises:
            PluginLoadError: If the plugin cannot be found or is invalid
        """
        ...


def descriptor_from_module(identifier: str, module: ModuleType) -> PluginDescriptor:
    """Read the ``plugin`` attribute of an imported module.

    Raises:
        PluginLoadError: If the attribute is missing or not a descriptor
    """
    descriptor = getattr(module, PLUGIN_ATTRIBUTE, None)
    if not isinstance(descriptor, PluginDescriptor):
        raise PluginLoadError(
            identifier, f"module {module.__name__} does not export a PluginDescriptor as 'plugin'"
        )
    if descriptor.name != identifier.rsplit(".", 1)[-1]:
        logger.warning(
            f"Plugin {identifier} declares name {descriptor.name!r}; "
            "keep them identical so enable/disable by name works"
        )
    return descriptor


class ModuleLoader:
    """Loads plugins by dotted module path."""

    def __init__(self, package: str | None = None):
        self.package = package

    def load(self, identifier: str) -> PluginDescriptor:
        module_name = f"{self.package}.{identifier}" if self.package else identifier
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise PluginLoadError(identifier, f"cannot import {module_name}: {e}") from e
        return descriptor_from_module(identifier, module)


class DirectoryLoader:
    """Loads plugins from a directory on disk.

    Each plugin is a package directory ``<root>/<name>/__init__.py`` or a
    single module ``<root>/<name>.py``. Modules are registered in
    ``sys.modules`` under ``napcat_plugins.<name>``.
    """

    MODULE_PREFIX = "napcat_plugins"

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def discover(self) -> list[str]:
        """Names of every plugin found under the root."""
        if not self.root.is_dir():
            return []

        names = []
        for entry in sorted(self.root.iterdir()):
            if entry.name.startswith(("_", ".")):
                continue
            if entry.is_dir() and (entry / "__init__.py").is_file():
                names.append(entry.name)
            elif entry.is_file() and entry.suffix == ".py":
                names.append(entry.stem)
        return names

    def _locate(self, identifier: str) -> Path:
        package = self.root / identifier / "__init__.py"
        if package.is_file():
            return package
        module = self.root / f"{identifier}.py"
        if module.is_file():
            return module
        raise PluginLoadError(identifier, f"not found in {self.root}")

    def load(self, identifier: str) -> PluginDescriptor:
        path = self._locate(identifier)
        module_name = f"{self.MODULE_PREFIX}.{identifier}"
        search = [str(path.parent)] if path.name == "__init__.py" else None

        spec = importlib.util.spec_from_file_location(
            module_name, path, submodule_search_locations=search
        )
        if spec is None or spec.loader is None:
            raise PluginLoadError(identifier, f"cannot load {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise PluginLoadError(identifier, f"error importing {path}: {e}") from e

        logger.debug(f"Imported plugin {identifier} from {path}")
        return descriptor_from_module(identifier, module)


class RegistryLoader:
    """Loads plugins from a static name -> descriptor mapping."""

    def __init__(self, plugins: Mapping[str, PluginDescriptor]):
        self._plugins = dict(plugins)

    def load(self, identifier: str) -> PluginDescriptor:
        try:
            return self._plugins[identifier]
        except KeyError:
            raise PluginLoadError(identifier, "not in registry") from None
