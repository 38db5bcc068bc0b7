"""Tests for event dispatch and serialization."""

import logging

from blackstar_id_mcp.events import (
    Connected,
    ControlChanged,
    DeviceInfo,
    Disconnected,
    EventBus,
    PollingStopped,
    PresetChanged,
    TunerReading,
    event_to_dict,
)
from blackstar_id_mcp.errors import TransportFault
from blackstar_id_mcp.models.preset import AmpPreset
from blackstar_id_mcp.protocol.controls import ControlId


def test_subscribe_and_emit():
    """Subscribed listeners receive emitted events."""
    bus = EventBus()
    received = []
    bus.subscribe(received.append)
    bus.emit(Disconnected())
    assert received == [Disconnected()]


def test_late_subscriber_sees_no_replay():
    """Events emitted before subscribing are not delivered."""
    bus = EventBus()
    bus.emit(Disconnected())
    received = []
    bus.subscribe(received.append)
    assert received == []


def test_unsubscribe_callable():
    """The callable returned by subscribe removes the listener."""
    bus = EventBus()
    received = []
    unsubscribe = bus.subscribe(received.append)
    unsubscribe()
    bus.emit(Disconnected())
    assert received == []
    # A second call is harmless
    unsubscribe()


def test_failing_listener_does_not_stop_others(caplog):
    """A listener that raises is logged and the next one still runs."""
    bus = EventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(received.append)
    with caplog.at_level(logging.ERROR, logger="blackstar_id_mcp.events"):
        bus.emit(Disconnected())
    assert received == [Disconnected()]
    assert "boom" in caplog.text


def test_listener_may_unsubscribe_during_emit():
    """Removing a listener from inside a callback is safe."""
    bus = EventBus()
    calls = []

    def once(event):
        calls.append(event)
        bus.unsubscribe(once)

    bus.subscribe(once)
    bus.emit(Disconnected())
    bus.emit(Disconnected())
    assert len(calls) == 1


def test_device_info_to_dict():
    """Ids are rendered as hex strings."""
    info = DeviceInfo(vendor_id=0x27D4, product_id=0x0010, product="ID:Core")
    d = info.to_dict()
    assert d["vendor_id"] == "0x27d4"
    assert d["product_id"] == "0x0010"
    assert d["product"] == "ID:Core"


def test_event_to_dict():
    """Events serialize with their type name."""
    info = DeviceInfo(vendor_id=0x27D4, product_id=0x0001)
    assert event_to_dict(Connected(info))["device"]["product_id"] == "0x0001"
    assert event_to_dict(ControlChanged(ControlId.GAIN, 5)) == {
        "event": "ControlChanged", "control": "gain", "value": 5,
    }
    assert event_to_dict(TunerReading("E", 2))["note"] == "E"
    assert event_to_dict(PresetChanged(1, AmpPreset()))["preset"]["gain"] == 0
    stopped = event_to_dict(PollingStopped(TransportFault("unplugged")))
    assert "unplugged" in stopped["cause"]
