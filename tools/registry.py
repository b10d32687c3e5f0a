"""
tools/registry.py — Name-to-tool lookup with package discovery.

Every concrete MergeTool subclass defined under a package is instantiated
once and registered under its ``name``; adding a module to tools/session/
is enough to expose a new tool.
"""

import importlib
import inspect
import logging
import pkgutil

from tools.base import MergeTool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Session-merge tools by name.

    Usage:
        registry = ToolRegistry()
        registry.discover()

        tool = registry.get("load_sessions")
        result = tool(session_paths=["/projects/song_a.rpp"])
    """

    def __init__(self):
        self._tools: dict[str, MergeTool] = {}

    def register(self, tool: MergeTool) -> None:
        """
        Add ``tool`` under its name.

        Raises:
            ValueError: If the name is taken
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> MergeTool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[dict]:
        """``to_dict()`` of every tool, in registration order."""
        return [tool.to_dict() for tool in self._tools.values()]

    def discover(self, package_name: str = "tools") -> int:
        """
        Register the tools defined anywhere below ``package_name``.

        Names already present are left alone, so discovery can run twice.
        A package that cannot be imported yields 0.

        Returns:
            Number of tools newly registered
        """
        try:
            package = importlib.import_module(package_name)
        except ImportError:
            logger.warning("Tool package %s cannot be imported", package_name)
            return 0
        if not hasattr(package, "__path__"):
            return 0

        added = 0
        modules = pkgutil.walk_packages(list(package.__path__), prefix=f"{package_name}.")
        for _finder, module_name, _is_pkg in modules:
            try:
                module = importlib.import_module(module_name)
            except ImportError as exc:
                logger.warning("Skipping tool module %s: %s", module_name, exc)
                continue

            for _name, cls in inspect.getmembers(module, inspect.isclass):
                # Imported names are registered by their defining module.
                if cls.__module__ != module.__name__:
                    continue
                if not issubclass(cls, MergeTool) or inspect.isabstract(cls):
                    continue
                tool = cls()
                if tool.name not in self._tools:
                    self.register(tool)
                    added += 1

        logger.info("Discovered %d tool(s) in %s", added, package_name)
        return added

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


_registry: ToolRegistry | None = None


def get_registry() -> ToolRegistry:
    """Process-wide registry, discovered on first use."""
    global _registry
    if _registry is None:
        _registry = ToolRegistry()
        _registry.discover()
    return _registry
