"""
Connectivity signal for the offline queue.

Architecture Decision: Observer Pattern (Qt Signals)
Consumers connect to `online_changed` instead of polling. The base class holds
the state and emits only on transitions; subclasses decide where the state
comes from (manual toggling, periodic health checks).
"""

import asyncio
import logging
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal

logger = logging.getLogger(__name__)


class ConnectivityMonitor(QObject):
    """
    Online/offline state holder.

    Used directly when the host reports connectivity itself (and in tests).
    """

    online_changed = Signal(bool)

    def __init__(self, online: bool = True):
        super().__init__()
        self._online = online

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Update the state; emits online_changed only on a transition"""
        if online == self._online:
            return
        self._online = online
        logger.info("Network %s", "online" if online else "offline")
        self.online_changed.emit(online)

    def start_monitoring(self):
        pass

    def stop_monitoring(self):
        pass


class HttpConnectivityMonitor(ConnectivityMonitor):
    """
    Polls the API health endpoint on a QTimer.

    Args:
        api: Object exposing `async health() -> bool` (ApiClient)
        interval_seconds: Poll interval
    """

    def __init__(self, api, interval_seconds: int = 30, online: bool = True):
        super().__init__(online=online)
        self.api = api
        self.timer = QTimer()
        self.timer.setInterval(interval_seconds * 1000)
        self.timer.timeout.connect(self._on_timeout)
        self._probe_task: Optional[asyncio.Task] = None

    def start_monitoring(self):
        if not self.timer.isActive():
            self.timer.start()

    def stop_monitoring(self):
        self.timer.stop()
        if self._probe_task and not self._probe_task.done():
            self._probe_task.cancel()

    def _on_timeout(self):
        if self._probe_task and not self._probe_task.done():
            return
        try:
            self._probe_task = asyncio.get_running_loop().create_task(self.probe())
        except RuntimeError:
            logger.debug("No running event loop; skipping connectivity probe")

    async def probe(self) -> bool:
        """Run one health check and update the state"""
        online = await self.api.health()
        self.set_online(online)
        return online
