"""Connection lifecycle for a single Blackstar ID amplifier.

State machine::

    DISCONNECTED --connect()--> CONNECTING --initialized--> CONNECTED
                                CONNECTING --failure------> DISCONNECTED
    CONNECTED --disconnect() / device removed-------------> DISCONNECTED

At most one device handle is open at a time. ``{state, handle, poller}``
are guarded by one lock; disconnecting cancels and joins the polling
thread before the handle is closed, so a read never races the close. If
the join times out the handle is left to the polling thread to close.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Iterator

from ..config import DEFAULT_FILTER, DEFAULT_POLLING, DeviceFilter, PollingConfig
from ..errors import (
    AlreadyConnectedError,
    DiscoveryError,
    InitFailedError,
    NotConnectedError,
    NotFoundError,
    TransportFault,
)
from ..events import Connected, Disconnected, DeviceInfo, EventBus, PollingStopped
from ..models.amp_state import PresetModel
from .polling import PollingLoop

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionManager:
    """Owns the amplifier's device handle and its polling loop.

    Usage::

        manager = ConnectionManager(AggregateTransport())
        manager.events.subscribe(print)
        manager.connect_first()
        manager.start_polling()
        ...
        manager.disconnect()

    Args:
        transport: Object with ``discover(device_filter)`` and ``open(descriptor)``.
        device_filter: Which devices count as an amplifier.
        config: Polling timing parameters.
        model: Preset model to update; a fresh one is created if omitted.
        events: Event bus to emit on; a fresh one is created if omitted.
    """

    def __init__(
        self,
        transport,
        device_filter: DeviceFilter = DEFAULT_FILTER,
        config: PollingConfig = DEFAULT_POLLING,
        model: PresetModel | None = None,
        events: EventBus | None = None,
    ) -> None:
        self._transport = transport
        self._filter = device_filter
        self._config = config
        self._model = model if model is not None else PresetModel()
        self._events = events if events is not None else EventBus()

        self._lock = threading.RLock()
        self._disconnect_lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._handle = None
        self._descriptor = None
        self._device_info: DeviceInfo | None = None
        self._poller: PollingLoop | None = None

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def device_info(self) -> DeviceInfo | None:
        with self._lock:
            return self._device_info

    @property
    def descriptor(self):
        with self._lock:
            return self._descriptor

    @property
    def is_polling(self) -> bool:
        with self._lock:
            return self._poller is not None and self._poller.is_running

    @property
    def model(self) -> PresetModel:
        return self._model

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def device_filter(self) -> DeviceFilter:
        return self._filter

    def discover(self) -> Iterator:
        """Lazily enumerate matching amplifiers.

        Each call returns a new generator; enumeration happens on first
        iteration.

        Raises:
            DiscoveryError: If the bus cannot be enumerated.
        """
        yield from self._transport.discover(self._filter)

    def connect(self, descriptor):
        """Open and initialize the given amplifier.

        Returns:
            The open device handle.

        Raises:
            AlreadyConnectedError: If a connection is open or being opened.
            NotFoundError: If the device is no longer enumerated.
            InitFailedError: If opening or initializing the device fails.
        """
        with self._lock:
            if self._state is not ConnectionState.DISCONNECTED:
                raise AlreadyConnectedError(
                    f"Already {self._state.value}; disconnect first"
                )
            self._state = ConnectionState.CONNECTING

        try:
            handle = self._open(descriptor)
        except Exception:
            with self._lock:
                self._state = ConnectionState.DISCONNECTED
            raise

        info = descriptor.to_device_info()
        with self._lock:
            self._handle = handle
            self._descriptor = descriptor
            self._device_info = info
            self._state = ConnectionState.CONNECTED

        logger.info("Connected: %s %s (%s)", info.manufacturer, info.product, info.backend)
        self._events.emit(Connected(info))
        return handle

    def _open(self, descriptor):
        try:
            present = any(d.key == descriptor.key for d in self.discover())
        except DiscoveryError as e:
            raise NotFoundError(f"Could not enumerate devices: {e}") from e
        if not present:
            raise NotFoundError(
                f"Amplifier {descriptor.vendor_id:#06x}:{descriptor.product_id:#06x} "
                f"at {descriptor.path!r} is no longer present"
            )

        try:
            handle = self._transport.open(descriptor)
        except TransportFault as e:
            raise InitFailedError(str(e)) from e

        try:
            handle.initialize()
        except TransportFault as e:
            handle.close()
            raise InitFailedError(f"Could not initialize amplifier: {e}") from e
        return handle

    def connect_first(self):
        """Connect to the first amplifier found.

        Raises:
            NotFoundError: If no amplifier is present.
        """
        try:
            descriptor = next(self.discover(), None)
        except DiscoveryError as e:
            raise NotFoundError(f"Could not enumerate devices: {e}") from e
        if descriptor is None:
            logger.info("Amplifier device not found")
            raise NotFoundError("Amplifier device not found")
        logger.debug("First device: %s %s", descriptor.backend, descriptor.product)
        return self.connect(descriptor)

    def start_polling(self) -> PollingLoop:
        """Start the polling loop, or return the one already running.

        Raises:
            NotConnectedError: If no amplifier is connected.
        """
        with self._lock:
            if self._state is not ConnectionState.CONNECTED:
                raise NotConnectedError("Not connected to an amplifier")
            if self._poller is not None and self._poller.is_running:
                return self._poller
            poller = PollingLoop(
                self._handle,
                self._model,
                self._events,
                on_exit=self._on_polling_exit,
                is_connected=lambda: self.connected,
                config=self._config,
            )
            self._poller = poller
            poller.start()
        return poller

    def _on_polling_exit(self, poller: PollingLoop, cause: BaseException | None) -> None:
        with self._lock:
            if self._poller is poller:
                self._poller = None
        # A fault after cancellation belongs to a connection already torn down
        if cause is not None and not poller.cancelled:
            self._events.emit(PollingStopped(cause))

    def stop_polling(self) -> None:
        """Cancel the polling loop and wait for it, keeping the connection open."""
        with self._lock:
            poller = self._poller
        if poller is not None:
            self._stop(poller)

    def _stop(self, poller: PollingLoop) -> bool:
        """Cancel and join the loop; returns False if its read is still running."""
        poller.cancel()
        if poller.thread is threading.current_thread():
            # Called from a listener; the loop exits once the callback returns
            return True
        if not poller.join(self._config.join_timeout):
            logger.warning(
                "Polling thread did not stop within %.1fs", self._config.join_timeout
            )
            return False
        return True

    def disconnect(self) -> None:
        """Stop polling, close the handle and reset the preset model.

        Safe to call repeatedly; a no-op when already disconnected.
        """
        with self._disconnect_lock:
            with self._lock:
                if self._state is not ConnectionState.CONNECTED:
                    return
                poller = self._poller

            stopped = poller is None or self._stop(poller)

            with self._lock:
                handle = self._handle
                self._handle = None
                try:
                    if handle is not None:
                        if stopped or not poller.close_handle_on_exit():
                            handle.close()
                        else:
                            logger.warning(
                                "Read still in progress; polling thread will close the handle"
                            )
                finally:
                    self._poller = None
                    self._descriptor = None
                    self._device_info = None
                    self._state = ConnectionState.DISCONNECTED
                    self._model.reset()

        logger.info("Disconnected")
        self._events.emit(Disconnected())

    def handle_device_removed(self, descriptor=None) -> None:
        """React to the transport reporting that the amplifier went away.

        Ignored if ``descriptor`` is given and is not the connected device.
        """
        with self._lock:
            current = self._descriptor
        if current is None:
            return
        if descriptor is not None and descriptor.key != current.key:
            return
        logger.info("Amplifier removed")
        self.disconnect()

    def close(self) -> None:
        self.disconnect()

    def __enter__(self) -> ConnectionManager:
        return self

    def __exit__(self, *exc) -> None:
        self.disconnect()

    def __repr__(self) -> str:
        return f"ConnectionManager(state={self.state.value}, polling={self.is_polling})"


__all__ = [
    "ConnectionManager",
    "ConnectionState",
]
