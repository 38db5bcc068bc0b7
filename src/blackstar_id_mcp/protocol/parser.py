"""Decoding of inbound payloads into typed packets.

``decode_packet`` is a pure function: it never touches the device or the
preset model. Every byte access is bounds-checked, so a truncated payload
raises ``MalformedFrame`` instead of ``IndexError``.
"""

from __future__ import annotations

from ..errors import MalformedFrame, UnrecognizedEnumValue
from ..models.preset import AmpPreset
from .controls import (
    DELAY_TYPES,
    MODULATION_TYPES,
    REVERB_TYPES,
    TUNER_NOTES,
    ControlId,
    lookup_control,
)
from .packets import (
    ControlChangePacket,
    ControlSettingsPacket,
    ControlSubtype,
    DelayTimeChangePacket,
    DelayTypeChangePacket,
    ManualModePacket,
    MessageType,
    ModeSubtype,
    ModulationTypeChangePacket,
    Packet,
    PresetChangePacket,
    PresetNamePacket,
    PresetSettingsPacket,
    PresetSubtype,
    ReverbTypeChangePacket,
    StartupPacket,
    TunerModePacket,
    TunerPacket,
)

# Preset packets
OFF_PRESET_SUBTYPE = 1
OFF_PRESET_NUMBER = 2
OFF_NAME = 5
NAME_LENGTH = 20

# Control packets
OFF_CONTROL_ID = 1
OFF_CONTROL_SUBTYPE = 3
OFF_VALUE = 4
OFF_VALUE_2 = 5

# Mode packets
OFF_MODE_SUBTYPE = 1
OFF_MODE_FLAG = 4

# Tuner packets
OFF_TUNER_NOTE = 1
OFF_TUNER_PITCH = 2
TUNER_CENTER = 50
TUNER_PITCH_MAX = 99


def _byte(payload: bytes, offset: int, field: str) -> int:
    """Read one byte, raising ``MalformedFrame`` if the payload is too short."""
    if offset >= len(payload):
        raise MalformedFrame(
            f"Payload too short for {field}: need {offset + 1} bytes, "
            f"got {len(payload)}"
        )
    return payload[offset]


def _slice(payload: bytes, start: int, length: int, field: str) -> bytes:
    if start + length > len(payload):
        raise MalformedFrame(
            f"Payload too short for {field}: need {start + length} bytes, "
            f"got {len(payload)}"
        )
    return bytes(payload[start : start + length])


def _enum(enum_cls, value: int, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise UnrecognizedEnumValue(field, value) from None


def _check_type(value: int, names: tuple[str, ...], field: str) -> int:
    if not 0 <= value < len(names):
        raise UnrecognizedEnumValue(field, value)
    return value


def decode_name(raw: bytes) -> str:
    """Decode a fixed-width preset name field.

    The name is ASCII, NUL-terminated or right-padded with NULs/spaces.
    Non-printable characters are replaced with ``?``.
    """
    text = raw.split(b"\x00")[0].decode("ascii", errors="replace")
    text = "".join(c if c.isprintable() and c != "\ufffd" else "?" for c in text)
    return text.rstrip()


def decode_preset(payload: bytes) -> Packet:
    """Decode a Preset (0x02) packet."""
    subtype = _enum(
        PresetSubtype, _byte(payload, OFF_PRESET_SUBTYPE, "preset subtype"), "preset subtype"
    )
    preset_number = _byte(payload, OFF_PRESET_NUMBER, "preset number")

    if subtype is PresetSubtype.PRESET_NAME:
        raw = _slice(payload, OFF_NAME, NAME_LENGTH, "preset name")
        return PresetNamePacket(preset_number=preset_number, name=decode_name(raw))
    if subtype is PresetSubtype.PRESET_CHANGE:
        return PresetChangePacket(preset_number=preset_number)
    if subtype is PresetSubtype.PRESET_SETTINGS:
        return PresetSettingsPacket(
            preset_number=preset_number,
            preset=AmpPreset.from_settings_bytes(payload),
        )
    raise UnrecognizedEnumValue("preset subtype", subtype)


def _decode_effect_change(payload: bytes, control: ControlId) -> Packet:
    """Decode a two-value Control packet (subtype 0x02)."""
    first = _byte(payload, OFF_VALUE, "value")
    second = _byte(payload, OFF_VALUE_2, "second value")

    if control is ControlId.DELAY_TIME:
        return DelayTimeChangePacket(value=first + 256 * second)
    if control is ControlId.DELAY_TYPE:
        return DelayTypeChangePacket(
            delay_type=_check_type(first, DELAY_TYPES, "delay type"),
            feedback=second,
        )
    if control is ControlId.REVERB_TYPE:
        return ReverbTypeChangePacket(
            reverb_type=_check_type(first, REVERB_TYPES, "reverb type"),
            size=second,
        )
    if control is ControlId.MODULATION_TYPE:
        return ModulationTypeChangePacket(
            modulation_type=_check_type(first, MODULATION_TYPES, "modulation type"),
            feedback=second,
        )
    raise UnrecognizedEnumValue("effect change control", control)


def decode_control(payload: bytes) -> Packet:
    """Decode a Control (0x03) packet."""
    subtype = _enum(
        ControlSubtype,
        _byte(payload, OFF_CONTROL_SUBTYPE, "control subtype"),
        "control subtype",
    )

    if subtype is ControlSubtype.CONTROL_SETTINGS:
        return ControlSettingsPacket(preset=AmpPreset.from_controls_bytes(payload))

    control = lookup_control(_byte(payload, OFF_CONTROL_ID, "control id"))
    if subtype is ControlSubtype.CONTROL_CHANGE:
        return ControlChangePacket(
            control=control, value=_byte(payload, OFF_VALUE, "value")
        )
    if subtype is ControlSubtype.EFFECT_CHANGE:
        return _decode_effect_change(payload, control)
    raise UnrecognizedEnumValue("control subtype", subtype)


def decode_mode(payload: bytes) -> Packet:
    """Decode a Mode (0x08) packet."""
    subtype = _enum(
        ModeSubtype, _byte(payload, OFF_MODE_SUBTYPE, "mode subtype"), "mode subtype"
    )

    if subtype is ModeSubtype.STARTUP:
        return StartupPacket(data=bytes(payload))
    flag = _byte(payload, OFF_MODE_FLAG, "mode flag")
    if subtype is ModeSubtype.MANUAL_MODE:
        return ManualModePacket(enabled=bool(flag))
    if subtype is ModeSubtype.TUNER_MODE:
        return TunerModePacket(enabled=bool(flag))
    raise UnrecognizedEnumValue("mode subtype", subtype)


def decode_tuner(payload: bytes) -> TunerPacket:
    """Decode a Tuner (0x09) packet.

    Note index 0 means no note; 1-12 map to E through D#. Pitch runs
    0-99 around a center of 50.
    """
    index = _byte(payload, OFF_TUNER_NOTE, "tuner note")
    pitch = _byte(payload, OFF_TUNER_PITCH, "tuner pitch")
    if index == 0:
        return TunerPacket(note=None, delta=0)
    if index > len(TUNER_NOTES):
        raise UnrecognizedEnumValue("tuner note", index)
    if pitch > TUNER_PITCH_MAX:
        raise MalformedFrame(f"Tuner pitch {pitch} outside 0-{TUNER_PITCH_MAX}")
    return TunerPacket(note=TUNER_NOTES[index - 1], delta=TUNER_CENTER - pitch)


def decode_startup(payload: bytes) -> StartupPacket:
    """Decode a Startup (0x07) packet."""
    return StartupPacket(data=bytes(payload))


_DECODERS = {
    MessageType.PRESET: decode_preset,
    MessageType.CONTROL: decode_control,
    MessageType.STARTUP: decode_startup,
    MessageType.MODE: decode_mode,
    MessageType.TUNER: decode_tuner,
}


def decode_packet(payload: bytes) -> Packet:
    """Decode a payload (report id already stripped) into a packet.

    Raises:
        MalformedFrame: Empty or truncated payload, or unknown message type.
        UnrecognizedControl: Control id not in the registry.
        UnrecognizedEnumValue: Unknown subtype or effect type selection.
    """
    if len(payload) < 1:
        raise MalformedFrame("Empty payload")

    try:
        message_type = MessageType(payload[0])
    except ValueError:
        raise MalformedFrame(f"Unknown message type: 0x{payload[0]:02X}") from None

    return _DECODERS[message_type](payload)
