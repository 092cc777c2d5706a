"""Extension layer — change notifications via pluggy.

Discovery: entry_points (pip-installed) via pluggy setuptools entrypoints,
plus direct registration of listener objects.
INVARIANT: Listener failures are warnings, never errors.
"""

from routekeeper.plugins.event_bus import EventBus
from routekeeper.plugins.hookspecs import hookimpl
from routekeeper.plugins.manager import PluginManager

__all__ = ["EventBus", "PluginManager", "hookimpl"]
