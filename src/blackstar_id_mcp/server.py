"""MCP server entry point for Blackstar ID amplifiers.

Exposes the live amplifier state and recent events as tools and resources
via the Model Context Protocol using the official Python MCP SDK with stdio
transport. The server only listens; nothing is written to the amplifier.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import BlackstarSettings
from .connection.manager import ConnectionManager
from .errors import BlackstarIDError
from .events import Event, event_to_dict
from .protocol.controls import CONTROL_REGISTRY, ENUM_NAMES, control_by_name, enum_display_name
from .transport.usb_connection import AggregateTransport

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "blackstar-id",
    instructions="Read-only access to a Blackstar ID guitar amplifier over USB",
)

MAX_RECENT_EVENTS = 200

# Global connection state
_settings = BlackstarSettings()
_manager: ConnectionManager | None = None
_recent_events: deque[dict] = deque(maxlen=MAX_RECENT_EVENTS)


def _record_event(event: Event) -> None:
    _recent_events.append(event_to_dict(event))


def _get_manager() -> ConnectionManager:
    """Get the connection manager, creating it on first use."""
    global _manager
    if _manager is None:
        _manager = ConnectionManager(
            AggregateTransport(read_timeout_ms=_settings.polling.read_timeout_ms),
            device_filter=_settings.device_filter,
            config=_settings.polling,
        )
        _manager.events.subscribe(_record_event)
    return _manager


def _get_connection() -> ConnectionManager:
    """Get the connection manager, raising if not connected."""
    manager = _get_manager()
    if not manager.connected:
        raise RuntimeError(
            "Not connected to amplifier. Use the 'connect' tool first."
        )
    return manager


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect() -> dict[str, Any]:
    """Connect to the first Blackstar ID amplifier found and start listening.

    Auto-discovers the device by USB vendor ID (0x27D4) and the vendor HID
    interface, then starts the background polling loop that tracks every
    knob turned on the amp.
    """
    manager = _get_manager()
    if manager.connected:
        manager.start_polling()
        return {
            "connected": True,
            "message": "Already connected",
            "model": manager.device_info.product,
        }

    try:
        manager.connect_first()
        manager.start_polling()
    except BlackstarIDError as e:
        return {"connected": False, "error": str(e)}

    info = manager.device_info
    return {
        "connected": True,
        "model": info.product,
        "manufacturer": info.manufacturer,
        "backend": info.backend,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Stop listening and close the USB connection to the amplifier."""
    if _manager is not None:
        _manager.disconnect()
    return {"disconnected": True}


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Report the connection state, polling state and connected device."""
    manager = _get_manager()
    info = manager.device_info
    return {
        "state": manager.state.value,
        "polling": manager.is_polling,
        "device": info.to_dict() if info else None,
        "preset_number": manager.model.preset_number,
        "manual_mode": manager.model.manual_mode,
        "tuner_mode": manager.model.tuner_mode,
    }


# ─── AMP STATE TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def get_amp_settings() -> dict[str, Any]:
    """Read the current value of every control on the amplifier.

    Values are the last ones reported by the amp; the full set is refreshed
    whenever a preset is selected.
    """
    manager = _get_connection()
    return manager.model.to_dict()


@mcp.tool()
def get_control(name: str) -> dict[str, Any]:
    """Read one control's current value.

    Args:
        name: Control name, e.g. 'gain', 'middle', 'delay_time', 'Reverb Type'.
    """
    try:
        control = control_by_name(name)
    except ValueError as e:
        return {"error": str(e)}

    manager = _get_connection()
    spec = CONTROL_REGISTRY[control]
    value = manager.model.snapshot().value(control)
    result: dict[str, Any] = {
        "control": spec.attr,
        "id": int(control),
        "value": value,
        "min": spec.minimum,
        "max": spec.maximum,
    }
    display = enum_display_name(control, value)
    if display is not None:
        result["display"] = display
    return result


@mcp.tool()
def list_preset_names() -> dict[str, Any]:
    """List the preset names the amplifier has reported so far."""
    manager = _get_connection()
    names = manager.model.preset_names
    return {
        "current": manager.model.preset_number,
        "presets": [{"number": n, "name": names[n]} for n in sorted(names)],
    }


@mcp.tool()
def get_recent_events(limit: int = 20) -> dict[str, Any]:
    """Get the most recent amplifier events, oldest first.

    Args:
        limit: Maximum number of events to return (1-200, default 20).
    """
    if not 1 <= limit <= MAX_RECENT_EVENTS:
        return {"error": f"limit must be 1-{MAX_RECENT_EVENTS}"}
    events = list(_recent_events)[-limit:]
    return {"events": events, "count": len(events)}


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("blackstar://controls")
def resource_controls() -> str:
    """Catalog of every control with its id, range and type names."""
    controls = []
    for control, spec in CONTROL_REGISTRY.items():
        entry: dict[str, Any] = {
            "id": int(control),
            "name": spec.name,
            "field": spec.attr,
            "kind": spec.kind.value,
            "min": spec.minimum,
            "max": spec.maximum,
        }
        if control in ENUM_NAMES:
            entry["values"] = list(ENUM_NAMES[control])
        controls.append(entry)
    return json.dumps(controls, indent=2)


@mcp.resource("blackstar://amp/settings")
def resource_amp_settings() -> str:
    """Current amplifier settings as JSON."""
    manager = _get_manager()
    result = manager.model.to_dict()
    result["connected"] = manager.connected
    return json.dumps(result, indent=2)


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    global _settings
    _settings = BlackstarSettings.from_env()
    logging.basicConfig(level=_settings.log_level.upper())
    try:
        mcp.run(transport="stdio")
    finally:
        if _manager is not None:
            _manager.disconnect()


if __name__ == "__main__":
    main()
