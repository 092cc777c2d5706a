"""Synchronous change-notification dispatch via pluggy.

Events are delivered in mutation order on the caller's thread, after the
mutation and its snapshot write have completed.

INVARIANT: Listener failures are warnings, never errors.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from routekeeper.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class EventBus:
    """Dispatches store notifications to registered plugins.

    Parameters:
        plugin_manager: PluginManager whose hook relay receives events.
    """

    def __init__(self, plugin_manager: PluginManager) -> None:
        self._pm = plugin_manager
        self._failures = 0

    @property
    def failures(self) -> int:
        """Count of dispatches where a listener raised."""
        return self._failures

    def dispatch(self, hook_name: str, payload: dict[str, Any]) -> bool:
        """Call *hook_name* with *payload*. Returns False if a listener raised."""
        hook_fn = getattr(self._pm.hook, hook_name, None)
        if hook_fn is None:
            return True

        try:
            hook_fn(**payload)
        except Exception:
            self._failures += 1
            logger.warning("Listener for %s failed", hook_name, exc_info=True)
            return False
        return True
