"""Tests for the AmpPreset snapshot."""

import dataclasses

import pytest

from blackstar_id_mcp.errors import MalformedFrame, UnrecognizedEnumValue
from blackstar_id_mcp.models.preset import (
    CONTROLS_DUMP_SIZE,
    OFF_DELAY_SWITCH,
    OFF_DELAY_TIME,
    OFF_DELAY_TYPE,
    OFF_FX_FOCUS,
    OFF_MOD_TYPE,
    OFF_REVERB_LEVEL,
    OFF_REVERB_TYPE,
    OFF_TVP_VALVE,
    PRESET_SETTINGS_SIZE,
    AmpPreset,
)
from blackstar_id_mcp.protocol.controls import CONTROL_REGISTRY, ControlId


def test_defaults_are_valid():
    """A fresh snapshot passes every range check."""
    preset = AmpPreset()
    for control, spec in CONTROL_REGISTRY.items():
        spec.validate(control, preset.value(control))


def test_snapshot_is_immutable():
    """Snapshots cannot be modified in place."""
    preset = AmpPreset()
    with pytest.raises(dataclasses.FrozenInstanceError):
        preset.gain = 10


def test_with_value_returns_copy():
    """with_value leaves the original untouched."""
    preset = AmpPreset()
    updated = preset.with_value(ControlId.GAIN, 99)
    assert updated.gain == 99
    assert preset.gain == 0


def test_with_value_boolean():
    """Switch values are stored as bools."""
    preset = AmpPreset().with_value(ControlId.TVP_SWITCH, 1)
    assert preset.tvp_switch is True
    assert preset.value(ControlId.TVP_SWITCH) == 1


def test_with_value_delay_time_sets_coarse():
    """Setting the delay time keeps the coarse part in step."""
    preset = AmpPreset().with_value(ControlId.DELAY_TIME, 1500)
    assert preset.delay_time == 1500
    assert preset.delay_time_coarse == 1500 >> 8


def test_values_mapping():
    """values() covers every control."""
    values = AmpPreset(bass=12).values()
    assert set(values) == set(CONTROL_REGISTRY)
    assert values[ControlId.BASS] == 12


def test_from_settings_bytes():
    """Fields are read from their documented offsets."""
    data = bytearray(PRESET_SETTINGS_SIZE)
    data[OFF_TVP_VALVE] = 4
    data[OFF_DELAY_SWITCH] = 1
    data[OFF_MOD_TYPE] = 1
    data[OFF_DELAY_TIME] = 0xD0
    data[OFF_DELAY_TIME + 1] = 0x07
    data[OFF_REVERB_LEVEL] = 100
    data[OFF_FX_FOCUS] = 3
    preset = AmpPreset.from_settings_bytes(bytes(data))
    assert preset.tvp_valve == 4
    assert preset.delay_switch is True
    assert preset.mod_switch is False
    assert preset.mod_type == 1
    assert preset.delay_time == 2000
    assert preset.delay_time_coarse == 7
    assert preset.reverb_level == 100
    assert preset.fx_focus == 3


def test_from_settings_bytes_leaves_unreported_controls_default():
    """Resonance, presence and master volume are not in the preset dump."""
    data = bytearray([0x7F]) * PRESET_SETTINGS_SIZE
    data[OFF_MOD_TYPE] = 0
    data[OFF_DELAY_TYPE] = 0
    data[OFF_REVERB_TYPE] = 0
    preset = AmpPreset.from_settings_bytes(bytes(data))
    assert preset.resonance == 0
    assert preset.presence == 0
    assert preset.master_volume == 0


def test_from_settings_bytes_short():
    """Short payloads raise MalformedFrame."""
    with pytest.raises(MalformedFrame):
        AmpPreset.from_settings_bytes(bytes(PRESET_SETTINGS_SIZE - 1))


def test_from_settings_bytes_bad_modulation_type():
    """Modulation type outside Mix..Frequency is rejected."""
    data = bytearray(PRESET_SETTINGS_SIZE)
    data[OFF_MOD_TYPE] = 4
    with pytest.raises(UnrecognizedEnumValue):
        AmpPreset.from_settings_bytes(bytes(data))


def test_from_controls_bytes():
    """The all-controls dump places each value at id + 3."""
    data = bytearray(CONTROLS_DUMP_SIZE)
    data[ControlId.RESONANCE + 3] = 30
    data[ControlId.MASTER_VOLUME + 3] = 110
    data[ControlId.DELAY_TYPE + 3] = 3
    preset = AmpPreset.from_controls_bytes(bytes(data))
    assert preset.resonance == 30
    assert preset.master_volume == 110
    assert preset.delay_type == 3


def test_from_controls_bytes_short():
    """Short all-controls dumps raise MalformedFrame."""
    with pytest.raises(MalformedFrame):
        AmpPreset.from_controls_bytes(bytes(CONTROLS_DUMP_SIZE - 1))


def test_to_dict_includes_type_names():
    """to_dict adds display names for type selections."""
    d = AmpPreset(mod_type=1, delay_type=1, reverb_type=2).to_dict()
    assert d["mod_type"] == 1
    assert d["mod_type_name"] == "Flanger"
    assert d["delay_type_name"] == "Analogue"
    assert d["reverb_type_name"] == "Spring"
    assert d["fx_focus_name"] == "Modulation"
    assert d["delay_time"] == 100


def test_diff():
    """diff reports only the changed fields."""
    a = AmpPreset()
    b = a.with_value(ControlId.GAIN, 5).with_value(ControlId.REVERB_SWITCH, 1)
    assert a.diff(b) == {"gain": (0, 5), "reverb_switch": (False, True)}
    assert a.diff(a) == {}
