"""Background polling of the amplifier's input reports.

One ``PollingLoop`` thread per connection is the only reader of the device
handle. Each report is stripped of its report id, decoded, applied to the
preset model, and the resulting events are emitted.

Cancellation is cooperative: an in-flight read is never interrupted, the
loop checks the cancel event once the read returns. If the owner gives up
waiting for a read to return, it hands the handle over with
``close_handle_on_exit()`` and the loop closes it on its way out.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from ..config import DEFAULT_POLLING, PollingConfig
from ..errors import DecodeError, OutOfRangeValue
from ..events import EventBus
from ..models.amp_state import PresetModel
from ..protocol.framing import format_data, parse_frame
from ..protocol.parser import decode_packet

logger = logging.getLogger(__name__)


class PollingLoop:
    """Reads reports on a daemon thread until cancelled or the transport fails.

    Args:
        handle: An initialized device handle with ``read(cancel_event)``.
        model: Preset model updated from each decoded packet.
        events: Bus that receives the events produced by the model.
        on_exit: Called from the polling thread when the loop ends, with the
            loop and the fatal exception (``None`` after a clean exit).
        is_connected: Checked before each read; the loop ends once it is false.
        config: Timing parameters.
    """

    def __init__(
        self,
        handle,
        model: PresetModel,
        events: EventBus,
        on_exit: Callable[[PollingLoop, BaseException | None], None] | None = None,
        is_connected: Callable[[], bool] | None = None,
        config: PollingConfig = DEFAULT_POLLING,
    ) -> None:
        self._handle = handle
        self._model = model
        self._events = events
        self._on_exit = on_exit
        self._is_connected = is_connected or (lambda: True)
        self._config = config
        self._cancel = threading.Event()
        self._thread: threading.Thread | None = None
        self._exit_lock = threading.Lock()
        self._exited = False
        self._owns_handle = False
        self.frames_read = 0
        self.frames_dropped = 0

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def thread(self) -> threading.Thread | None:
        return self._thread

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("Polling loop already started")
        self._thread = threading.Thread(target=self._run, name="bsid-polling", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        """Request the loop to stop after the current read returns."""
        self._cancel.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the thread to end; returns False if it is still running."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def close_handle_on_exit(self) -> bool:
        """Make the polling thread close the handle once its read returns.

        Returns:
            True if the loop took ownership, False if it has already exited
            and the caller must close the handle itself.
        """
        with self._exit_lock:
            if self._exited:
                return False
            self._owns_handle = True
            return True

    def _run(self) -> None:
        logger.debug("Polling started")
        cause: BaseException | None = None
        try:
            while not self._cancel.is_set() and self._is_connected():
                data = self._handle.read(self._cancel)
                if self._cancel.is_set():
                    break
                frame = parse_frame(data)
                if frame is None:
                    self._cancel.wait(self._config.idle_wait)
                    continue
                self.frames_read += 1
                if frame.payload:
                    self.process(frame.payload)
                else:
                    logger.debug("Empty report %r", frame)
        except Exception as e:
            cause = e
            logger.exception("Polling stopped by transport error")
        finally:
            with self._exit_lock:
                self._exited = True
                owns_handle = self._owns_handle
            if owns_handle:
                logger.debug("Closing handle left to the polling thread")
                try:
                    self._handle.close()
                except Exception:
                    logger.exception("Failed to close device handle")
            logger.debug(
                "Polling ended: %d frames read, %d dropped",
                self.frames_read,
                self.frames_dropped,
            )
            if self._on_exit is not None:
                self._on_exit(self, cause)

    def process(self, payload: bytes) -> None:
        """Decode one payload and apply it; bad frames are logged and dropped."""
        logger.debug("Received %d bytes\n%s", len(payload), format_data(payload))
        try:
            packet = decode_packet(payload)
        except DecodeError as e:
            self.frames_dropped += 1
            logger.warning("Dropping frame: %s\n%s", e, format_data(payload))
            return

        try:
            events = self._model.apply(packet)
        except OutOfRangeValue as e:
            self.frames_dropped += 1
            logger.warning("Rejected update from %r: %s", packet, e)
            return

        logger.debug("Applied %r", packet)
        for event in events:
            # A listener may have disconnected; later events would be stale
            if self._cancel.is_set():
                logger.debug("Cancelled, not emitting %r", event)
                break
            self._events.emit(event)
