"""Amp preset snapshot: the full set of control values the amplifier reports.

A preset settings packet (Preset group, subtype 0x05) carries the whole
snapshot. Layout (offsets within the payload, report id already stripped)::

    +------+------+-----+-------+------+------+-----+--------+-----+----------+
    | 0x02 | 0x05 | No. | 0x2A  |Voice | Gain | Vol | Bass   | Mid | Treble...|
    | [0]  | [1]  | [2] | [3]   | [4]  | [5]  | [6] | [7]    | [8] | [9]      |
    +------+------+-----+-------+------+------+-----+--------+-----+----------+

Remaining fields are at the ``OFF_*`` offsets below. The delay time is
a little-endian 16-bit value in milliseconds at [30], [31].

An all-controls packet (Control group, subtype 0x2A) uses a different
layout: each control's value sits at byte ``control_id + 3``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace

from ..errors import MalformedFrame, UnrecognizedEnumValue
from ..protocol.controls import (
    CONTROL_REGISTRY,
    DELAY_TIME_MIN_MS,
    ENUM_NAMES,
    ControlId,
    ControlKind,
    enum_display_name,
)

# Offsets within a preset settings payload
OFF_PRESET_NUMBER = 2
OFF_VOICE = 4
OFF_GAIN = 5
OFF_VOLUME = 6
OFF_BASS = 7
OFF_MIDDLE = 8
OFF_TREBLE = 9
OFF_ISF = 10
OFF_TVP_VALVE = 11
OFF_MOD_LEVEL = 12
OFF_TVP_SWITCH = 17
OFF_MOD_SWITCH = 18
OFF_DELAY_SWITCH = 19
OFF_REVERB_SWITCH = 20
OFF_MOD_TYPE = 21
OFF_MOD_SEGVAL = 22
OFF_MOD_MANUAL = 23  # Flanger only
OFF_MOD_SPEED = 25
OFF_DELAY_TYPE = 26
OFF_DELAY_FEEDBACK = 27
OFF_DELAY_LEVEL = 29
OFF_DELAY_TIME = 30  # 2 bytes, little-endian
OFF_REVERB_TYPE = 32
OFF_REVERB_SIZE = 33
OFF_REVERB_LEVEL = 35
OFF_FX_FOCUS = 39

PRESET_SETTINGS_SIZE = OFF_FX_FOCUS + 1

# Offset of a control's value inside an all-controls packet
CONTROLS_DUMP_OFFSET = 3
CONTROLS_DUMP_SIZE = max(CONTROL_REGISTRY) + CONTROLS_DUMP_OFFSET + 1


@dataclass(frozen=True)
class AmpPreset:
    """An immutable snapshot of every control value.

    Defaults are each control's minimum, so a fresh snapshot is always valid.
    Use :meth:`with_value` to derive an updated snapshot.
    """

    voice: int = 0
    gain: int = 0
    volume: int = 0
    bass: int = 0
    middle: int = 0
    treble: int = 0
    isf: int = 0
    tvp_valve: int = 0
    resonance: int = 0
    presence: int = 0
    master_volume: int = 0
    tvp_switch: bool = False
    mod_switch: bool = False
    delay_switch: bool = False
    reverb_switch: bool = False
    mod_type: int = 0
    mod_segval: int = 0
    mod_manual: int = 0
    mod_level: int = 0
    mod_speed: int = 0
    delay_type: int = 0
    delay_feedback: int = 0
    delay_level: int = 0
    delay_time: int = DELAY_TIME_MIN_MS
    delay_time_coarse: int = DELAY_TIME_MIN_MS >> 8
    reverb_type: int = 0
    reverb_size: int = 0
    reverb_level: int = 0
    fx_focus: int = 1

    def value(self, control: ControlId) -> int:
        """Get a control's value as an integer (switches give 0 or 1)."""
        return int(getattr(self, CONTROL_REGISTRY[control].attr))

    def values(self) -> dict[ControlId, int]:
        """Mapping view of every control's value."""
        return {control: self.value(control) for control in CONTROL_REGISTRY}

    def with_value(self, control: ControlId, value: int) -> AmpPreset:
        """Return a copy with one control changed.

        The value is stored as given; range validation is the caller's job.
        Setting the delay time also updates its coarse (high byte) part.
        """
        spec = CONTROL_REGISTRY[control]
        if spec.kind is ControlKind.BOOLEAN:
            return replace(self, **{spec.attr: bool(value)})
        if control is ControlId.DELAY_TIME:
            return replace(self, delay_time=value, delay_time_coarse=value >> 8)
        return replace(self, **{spec.attr: value})

    @classmethod
    def from_settings_bytes(cls, data: bytes) -> AmpPreset:
        """Parse the snapshot carried by a preset settings payload.

        Raises:
            MalformedFrame: If the payload is too short for the layout.
            UnrecognizedEnumValue: If a type selection is out of range.
        """
        if len(data) < PRESET_SETTINGS_SIZE:
            raise MalformedFrame(
                f"Preset settings payload needs {PRESET_SETTINGS_SIZE} bytes, "
                f"got {len(data)}"
            )

        delay_time = data[OFF_DELAY_TIME] + 256 * data[OFF_DELAY_TIME + 1]
        preset = cls(
            voice=data[OFF_VOICE],
            gain=data[OFF_GAIN],
            volume=data[OFF_VOLUME],
            bass=data[OFF_BASS],
            middle=data[OFF_MIDDLE],
            treble=data[OFF_TREBLE],
            isf=data[OFF_ISF],
            tvp_valve=data[OFF_TVP_VALVE],
            tvp_switch=bool(data[OFF_TVP_SWITCH]),
            mod_switch=bool(data[OFF_MOD_SWITCH]),
            delay_switch=bool(data[OFF_DELAY_SWITCH]),
            reverb_switch=bool(data[OFF_REVERB_SWITCH]),
            mod_type=data[OFF_MOD_TYPE],
            mod_segval=data[OFF_MOD_SEGVAL],
            mod_manual=data[OFF_MOD_MANUAL],
            mod_level=data[OFF_MOD_LEVEL],
            mod_speed=data[OFF_MOD_SPEED],
            delay_type=data[OFF_DELAY_TYPE],
            delay_feedback=data[OFF_DELAY_FEEDBACK],
            delay_level=data[OFF_DELAY_LEVEL],
            delay_time=delay_time,
            delay_time_coarse=delay_time >> 8,
            reverb_type=data[OFF_REVERB_TYPE],
            reverb_size=data[OFF_REVERB_SIZE],
            reverb_level=data[OFF_REVERB_LEVEL],
            fx_focus=data[OFF_FX_FOCUS],
        )
        preset._check_enums()
        return preset

    @classmethod
    def from_controls_bytes(cls, data: bytes) -> AmpPreset:
        """Parse an all-controls payload, where each value sits at ``id + 3``.

        Raises:
            MalformedFrame: If the payload is too short.
            UnrecognizedEnumValue: If a type selection is out of range.
        """
        if len(data) < CONTROLS_DUMP_SIZE:
            raise MalformedFrame(
                f"Control settings payload needs {CONTROLS_DUMP_SIZE} bytes, "
                f"got {len(data)}"
            )

        preset = cls()
        for control in CONTROL_REGISTRY:
            if control is ControlId.DELAY_TIME_COARSE:
                continue  # high byte of DELAY_TIME, read below
            offset = control + CONTROLS_DUMP_OFFSET
            if control is ControlId.DELAY_TIME:
                value = data[offset] + 256 * data[offset + 1]
            else:
                value = data[offset]
            preset = preset.with_value(control, value)
        preset._check_enums()
        return preset

    def _check_enums(self) -> None:
        for control, spec in CONTROL_REGISTRY.items():
            if spec.kind is not ControlKind.ENUMERATED:
                continue
            value = getattr(self, spec.attr)
            if enum_display_name(control, value) is None:
                raise UnrecognizedEnumValue(spec.attr, value)

    def to_dict(self) -> dict:
        """Convert the snapshot to a JSON-serializable dictionary."""
        d = asdict(self)
        for control in ENUM_NAMES:
            attr = CONTROL_REGISTRY[control].attr
            d[f"{attr}_name"] = enum_display_name(control, d[attr])
        return d

    def diff(self, other: AmpPreset) -> dict[str, tuple]:
        """Fields whose values differ, as ``{field: (self_value, other_value)}``."""
        changes = {}
        for f in fields(self):
            mine, theirs = getattr(self, f.name), getattr(other, f.name)
            if mine != theirs:
                changes[f.name] = (mine, theirs)
        return changes
