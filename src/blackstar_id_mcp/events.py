"""Events surfaced to callers and a small listener registry.

Events are level-triggered: a listener only sees events emitted after it
subscribed. Listeners run on the thread that emits the event, which for
packet-driven events is the polling thread.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Union

from .models.preset import AmpPreset
from .protocol.controls import ControlId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceInfo:
    """Identification of the connected amplifier."""

    vendor_id: int
    product_id: int
    manufacturer: str = ""
    product: str = ""
    path: str = ""
    backend: str = ""

    def to_dict(self) -> dict:
        return {
            "vendor_id": f"0x{self.vendor_id:04x}",
            "product_id": f"0x{self.product_id:04x}",
            "manufacturer": self.manufacturer,
            "product": self.product,
            "path": self.path,
            "backend": self.backend,
        }


@dataclass(frozen=True)
class Connected:
    device_info: DeviceInfo


@dataclass(frozen=True)
class Disconnected:
    pass


@dataclass(frozen=True)
class PollingStopped:
    """The polling loop ended on its own; ``cause`` is the fatal error."""

    cause: BaseException | None


@dataclass(frozen=True)
class PresetChanged:
    """The whole snapshot was replaced, or the amp switched preset."""

    preset_number: int | None
    preset: AmpPreset


@dataclass(frozen=True)
class ControlChanged:
    control: ControlId
    value: int


@dataclass(frozen=True)
class PresetNameReceived:
    preset_number: int
    name: str


@dataclass(frozen=True)
class ModeChanged:
    manual_mode: bool
    tuner_mode: bool


@dataclass(frozen=True)
class TunerReading:
    note: str | None
    delta: int


Event = Union[
    Connected,
    Disconnected,
    PollingStopped,
    PresetChanged,
    ControlChanged,
    PresetNameReceived,
    ModeChanged,
    TunerReading,
]

Listener = Callable[[Event], None]


def event_to_dict(event: Event) -> dict:
    """Convert an event to a JSON-serializable dictionary."""
    d: dict = {"event": type(event).__name__}
    if isinstance(event, Connected):
        d["device"] = event.device_info.to_dict()
    elif isinstance(event, PollingStopped):
        d["cause"] = repr(event.cause) if event.cause is not None else None
    elif isinstance(event, PresetChanged):
        d["preset_number"] = event.preset_number
        d["preset"] = event.preset.to_dict()
    elif isinstance(event, ControlChanged):
        d["control"] = event.control.name.lower()
        d["value"] = event.value
    elif isinstance(event, PresetNameReceived):
        d["preset_number"] = event.preset_number
        d["name"] = event.name
    elif isinstance(event, ModeChanged):
        d["manual_mode"] = event.manual_mode
        d["tuner_mode"] = event.tuner_mode
    elif isinstance(event, TunerReading):
        d["note"] = event.note
        d["delta"] = event.delta
    return d


class EventBus:
    """Thread-safe listener registration and dispatch.

    Usage::

        bus = EventBus()
        unsubscribe = bus.subscribe(print)
        bus.emit(Disconnected())
        unsubscribe()
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it again."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def emit(self, event: Event) -> None:
        """Deliver an event to every listener.

        A listener that raises is logged and skipped; the others still run.
        """
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener %r failed on %r", listener, event)
