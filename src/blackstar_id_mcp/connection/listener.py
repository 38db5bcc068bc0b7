"""Hot-plug watcher that connects to an amplifier when one appears.

Discovery is re-run on a fixed interval; there is no OS-level hot-plug
notification on every platform the backends support.
"""

from __future__ import annotations

import logging
import threading

from ..errors import BlackstarIDError, DiscoveryError
from .manager import ConnectionManager, ConnectionState

logger = logging.getLogger(__name__)


class DeviceListener:
    """Periodically scans for amplifiers and keeps the manager in sync.

    Usage::

        with DeviceListener(manager, interval=6.0):
            ...  # manager connects and polls while a device is plugged in

    Args:
        manager: The connection manager to drive.
        interval: Seconds between scans.
        auto_poll: Start polling right after an automatic connect.
    """

    def __init__(self, manager: ConnectionManager, interval: float = 6.0, auto_poll: bool = True) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._manager = manager
        self._interval = interval
        self._auto_poll = auto_poll
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="bsid-listener", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        logger.debug("Device listener started (every %.1fs)", self._interval)
        while not self._stop.is_set():
            self.scan()
            self._stop.wait(self._interval)
        logger.debug("Device listener stopped")

    def scan(self) -> None:
        """Run one discovery pass and connect or disconnect as needed."""
        try:
            devices = list(self._manager.discover())
        except DiscoveryError as e:
            logger.warning("Device scan failed: %s", e)
            return

        state = self._manager.state
        if state is ConnectionState.CONNECTED:
            current = self._manager.descriptor
            if current is not None and all(d.key != current.key for d in devices):
                self._manager.handle_device_removed(current)
            return

        if state is not ConnectionState.DISCONNECTED or not devices:
            return

        try:
            self._manager.connect(devices[0])
            if self._auto_poll:
                self._manager.start_polling()
        except BlackstarIDError as e:
            logger.warning("Automatic connect failed: %s", e)

    def __enter__(self) -> DeviceListener:
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
