"""Tests for decoding payloads into typed packets."""

import pytest

from blackstar_id_mcp.errors import (
    DecodeError,
    MalformedFrame,
    UnrecognizedControl,
    UnrecognizedEnumValue,
)
from blackstar_id_mcp.models.preset import (
    CONTROLS_DUMP_SIZE,
    OFF_DELAY_TIME,
    OFF_GAIN,
    OFF_MIDDLE,
    OFF_REVERB_TYPE,
    OFF_VOICE,
    PRESET_SETTINGS_SIZE,
)
from blackstar_id_mcp.protocol.controls import ControlId
from blackstar_id_mcp.protocol.packets import (
    ControlChangePacket,
    ControlSettingsPacket,
    DelayTimeChangePacket,
    DelayTypeChangePacket,
    ManualModePacket,
    ModulationTypeChangePacket,
    PresetChangePacket,
    PresetNamePacket,
    PresetSettingsPacket,
    ReverbTypeChangePacket,
    StartupPacket,
    TunerModePacket,
    TunerPacket,
)
from blackstar_id_mcp.protocol.parser import decode_name, decode_packet


def _control(control_id: int, subtype: int, *values: int) -> bytes:
    return bytes([0x03, control_id, 0x00, subtype, *values])


def _name_payload(number: int, name: bytes) -> bytes:
    raw = name.ljust(20, b"\x00")
    return bytes([0x02, 0x04, number, 0x00, 0x00]) + raw + bytes(39)


def _settings_payload(number: int = 3) -> bytearray:
    data = bytearray(63)
    data[0] = 0x02
    data[1] = 0x05
    data[2] = number
    data[3] = 0x2A
    data[OFF_VOICE] = 2
    data[OFF_GAIN] = 90
    data[OFF_MIDDLE] = 64
    data[OFF_DELAY_TIME] = 0xF4
    data[OFF_DELAY_TIME + 1] = 0x01
    data[OFF_REVERB_TYPE] = 3
    return data


# ── Preset packets ───────────────────────────────────────────────────

def test_preset_name():
    """Preset name packets carry the preset number and a padded ASCII name."""
    packet = decode_packet(_name_payload(7, b"Crunch Lead"))
    assert packet == PresetNamePacket(preset_number=7, name="Crunch Lead")


def test_preset_name_trailing_spaces_trimmed():
    """Space padding after the name is removed."""
    packet = decode_packet(_name_payload(1, b"Clean" + b" " * 15))
    assert packet.name == "Clean"


def test_preset_name_non_printable_replaced():
    """Control characters and non-ASCII bytes become '?'."""
    assert decode_name(b"A\x07B\xffC\x00junk") == "A?B?C"


def test_preset_change():
    """Preset change packets report the newly selected preset."""
    packet = decode_packet(bytes([0x02, 0x06, 0x05, 0x00]))
    assert packet == PresetChangePacket(preset_number=5)


def test_preset_settings():
    """Preset settings packets decode the full snapshot."""
    packet = decode_packet(bytes(_settings_payload(number=3)))
    assert isinstance(packet, PresetSettingsPacket)
    assert packet.preset_number == 3
    assert packet.preset.voice == 2
    assert packet.preset.gain == 90
    assert packet.preset.middle == 64
    assert packet.preset.delay_time == 500
    assert packet.preset.reverb_type == 3


def test_preset_settings_truncated():
    """A settings payload shorter than the layout is malformed."""
    data = bytes(_settings_payload())[: PRESET_SETTINGS_SIZE - 1]
    with pytest.raises(MalformedFrame):
        decode_packet(data)


def test_preset_settings_bad_enum():
    """An out-of-range type selection in a preset dump is rejected."""
    data = _settings_payload()
    data[OFF_REVERB_TYPE] = 9
    with pytest.raises(UnrecognizedEnumValue):
        decode_packet(bytes(data))


def test_preset_unknown_subtype():
    """An unknown preset subtype is not silently ignored."""
    with pytest.raises(UnrecognizedEnumValue) as exc:
        decode_packet(bytes([0x02, 0x7F, 0x00]))
    assert exc.value.value == 0x7F


# ── Control packets ──────────────────────────────────────────────────

def test_control_change_middle():
    """Single-value control change for Middle."""
    packet = decode_packet(_control(0x05, 0x01, 64))
    assert packet == ControlChangePacket(control=ControlId.MIDDLE, value=64)


def test_control_change_value_not_range_checked():
    """Range checking happens when the value is applied, not while decoding."""
    packet = decode_packet(_control(0x05, 0x01, 200))
    assert packet == ControlChangePacket(control=ControlId.MIDDLE, value=200)


def test_control_change_unknown_control():
    """Control id 0x99 is not in the registry."""
    with pytest.raises(UnrecognizedControl) as exc:
        decode_packet(_control(0x99, 0x01, 0x10))
    assert exc.value.control_id == 0x99


def test_delay_time_change_little_endian():
    """Two-byte delay time is value[4] + 256 * value[5]."""
    packet = decode_packet(_control(0x1B, 0x02, 0x64, 0x01))
    assert packet == DelayTimeChangePacket(value=356)


def test_delay_type_change():
    """Delay type change carries the type and the feedback value."""
    packet = decode_packet(_control(0x17, 0x02, 2, 17))
    assert packet == DelayTypeChangePacket(delay_type=2, feedback=17)


def test_reverb_type_change():
    """Reverb type change carries the type and the room size."""
    packet = decode_packet(_control(0x1D, 0x02, 1, 12))
    assert packet == ReverbTypeChangePacket(reverb_type=1, size=12)


def test_modulation_type_change():
    """Modulation type change carries the type and the segment value."""
    packet = decode_packet(_control(0x12, 0x02, 3, 30))
    assert packet == ModulationTypeChangePacket(modulation_type=3, feedback=30)


def test_type_change_unknown_type():
    """A type selection outside the name list is rejected."""
    with pytest.raises(UnrecognizedEnumValue):
        decode_packet(_control(0x17, 0x02, 4, 0))


def test_effect_change_on_plain_control():
    """Subtype 0x02 is only defined for delay time and the type selectors."""
    with pytest.raises(UnrecognizedEnumValue):
        decode_packet(_control(0x02, 0x02, 10, 0))


def test_control_unknown_subtype():
    """An unknown control subtype raises instead of falling through."""
    with pytest.raises(UnrecognizedEnumValue):
        decode_packet(_control(0x02, 0x05, 10))


def test_control_settings_dump():
    """The all-controls dump stores each value at control id + 3."""
    data = bytearray(CONTROLS_DUMP_SIZE)
    data[0] = 0x03
    data[3] = 0x2A
    data[ControlId.GAIN + 3] = 77
    data[ControlId.DELAY_SWITCH + 3] = 1
    data[ControlId.DELAY_TIME + 3] = 0x20
    data[ControlId.DELAY_TIME + 4] = 0x03
    data[ControlId.FX_FOCUS + 3] = 2
    packet = decode_packet(bytes(data))
    assert isinstance(packet, ControlSettingsPacket)
    assert packet.preset.gain == 77
    assert packet.preset.delay_switch is True
    assert packet.preset.delay_time == 0x0320
    assert packet.preset.delay_time_coarse == 3
    assert packet.preset.fx_focus == 2


def test_control_settings_truncated():
    """A short all-controls dump is malformed."""
    data = bytearray(CONTROLS_DUMP_SIZE - 1)
    data[0] = 0x03
    data[3] = 0x2A
    with pytest.raises(MalformedFrame):
        decode_packet(bytes(data))


# ── Mode, tuner and startup packets ──────────────────────────────────

def test_manual_mode_on():
    """Mode packet with subtype 0x03 toggles manual mode."""
    packet = decode_packet(bytes([0x08, 0x03, 0x00, 0x00, 0x01]))
    assert packet == ManualModePacket(enabled=True)


def test_tuner_mode_off():
    """Mode packet with subtype 0x11 toggles tuner mode."""
    packet = decode_packet(bytes([0x08, 0x11, 0x00, 0x00, 0x00]))
    assert packet == TunerModePacket(enabled=False)


def test_mode_startup():
    """Mode subtype 0x01 is part of the startup sequence."""
    packet = decode_packet(bytes([0x08, 0x01, 0x00]))
    assert isinstance(packet, StartupPacket)


def test_startup_keeps_raw_bytes():
    """Startup packets keep their payload for diagnostics."""
    payload = bytes([0x07, 0x01, 0x02, 0x03])
    assert decode_packet(payload) == StartupPacket(data=payload)


def test_tuner_reading():
    """Tuner note index 1 is E; pitch 47 is 3 cents flat of center."""
    packet = decode_packet(bytes([0x09, 0x01, 47]))
    assert packet == TunerPacket(note="E", delta=3)


def test_tuner_last_note():
    """Note index 12 is D#."""
    packet = decode_packet(bytes([0x09, 12, 60]))
    assert packet == TunerPacket(note="D#", delta=-10)


def test_tuner_no_note():
    """Note index 0 means no signal."""
    packet = decode_packet(bytes([0x09, 0x00, 0x00]))
    assert packet == TunerPacket(note=None, delta=0)


def test_tuner_bad_note():
    """Note indices above 12 are rejected."""
    with pytest.raises(UnrecognizedEnumValue):
        decode_packet(bytes([0x09, 13, 50]))


def test_tuner_pitch_range():
    """Pitch 99 is the sharpest reading; anything above is rejected."""
    assert decode_packet(bytes([0x09, 0x01, 99])) == TunerPacket(note="E", delta=-49)
    with pytest.raises(MalformedFrame):
        decode_packet(bytes([0x09, 0x01, 100]))


# ── Malformed input ──────────────────────────────────────────────────

def test_empty_payload():
    """An empty payload is malformed."""
    with pytest.raises(MalformedFrame):
        decode_packet(b"")


def test_unknown_message_type():
    """Unknown byte 0 is malformed."""
    with pytest.raises(MalformedFrame):
        decode_packet(bytes([0x55, 0x00, 0x00, 0x00]))


@pytest.mark.parametrize("payload", [
    bytes([0x02]),
    bytes([0x02, 0x06]),
    bytes([0x02, 0x04, 0x01, 0x00, 0x00, 0x41]),
    bytes([0x03, 0x05]),
    bytes([0x03, 0x05, 0x00, 0x01]),
    bytes([0x03, 0x1B, 0x00, 0x02, 0x64]),
    bytes([0x08, 0x03, 0x00]),
    bytes([0x09, 0x01]),
])
def test_truncated_payloads(payload):
    """Every truncated variant raises MalformedFrame, never IndexError."""
    with pytest.raises(MalformedFrame):
        decode_packet(payload)


def test_decode_errors_share_base_class():
    """Callers can catch every decoding failure with DecodeError."""
    for exc in (MalformedFrame, UnrecognizedControl, UnrecognizedEnumValue):
        assert issubclass(exc, DecodeError)
