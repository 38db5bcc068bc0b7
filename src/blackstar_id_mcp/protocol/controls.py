"""Control identifiers and the static control registry.

Every amplifier parameter is addressed on the wire by a single-byte control
id. The registry maps each id to its display name, the ``AmpPreset`` field
that stores it, its inclusive valid range and its value kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import Mapping

from ..errors import OutOfRangeValue, UnrecognizedControl


class ControlId(IntEnum):
    """Control identifiers used in Control (0x03) packets."""

    VOICE = 0x01
    GAIN = 0x02
    VOLUME = 0x03
    BASS = 0x04
    MIDDLE = 0x05
    TREBLE = 0x06
    ISF = 0x07
    TVP_VALVE = 0x08
    RESONANCE = 0x0B
    PRESENCE = 0x0C
    MASTER_VOLUME = 0x0D
    TVP_SWITCH = 0x0E
    MODULATION_SWITCH = 0x0F
    DELAY_SWITCH = 0x10
    REVERB_SWITCH = 0x11
    MODULATION_TYPE = 0x12
    MODULATION_SEGVAL = 0x13
    MODULATION_MANUAL = 0x14  # Flanger only
    MODULATION_LEVEL = 0x15
    MODULATION_SPEED = 0x16
    DELAY_TYPE = 0x17
    DELAY_FEEDBACK = 0x18  # Segment value
    DELAY_LEVEL = 0x1A
    DELAY_TIME = 0x1B
    DELAY_TIME_COARSE = 0x1C
    REVERB_TYPE = 0x1D
    REVERB_SIZE = 0x1E  # Segment value
    REVERB_LEVEL = 0x20
    FX_FOCUS = 0x24


class ControlKind(Enum):
    """How a control's raw value is interpreted."""

    BYTE = "byte"
    BOOLEAN = "boolean"
    ENUMERATED = "enumerated"
    COMPOSITE16 = "composite16"


@dataclass(frozen=True)
class ControlSpec:
    """Static descriptor for a single control."""

    name: str
    attr: str
    minimum: int
    maximum: int
    kind: ControlKind = ControlKind.BYTE

    def validate(self, control: ControlId, value: int) -> int:
        """Return the value to store, or raise ``OutOfRangeValue``.

        Boolean controls accept any byte; non-zero means on.
        """
        if self.kind is ControlKind.BOOLEAN:
            return int(bool(value))
        if not self.minimum <= value <= self.maximum:
            raise OutOfRangeValue(control, value, self.minimum, self.maximum)
        return value


MODULATION_TYPES: tuple[str, ...] = ("Mix", "Flanger", "Feedback", "Frequency")
DELAY_TYPES: tuple[str, ...] = ("Linear", "Analogue", "Tape", "Multi")
REVERB_TYPES: tuple[str, ...] = ("Room", "Hall", "Spring", "Plate")
FX_FOCUS_NAMES: tuple[str, ...] = ("Modulation", "Delay", "Reverb")

TUNER_NOTES: tuple[str, ...] = (
    "E", "F", "F#", "G", "G#", "A", "A#", "B", "C", "C#", "D", "D#",
)

DELAY_TIME_MIN_MS = 100
DELAY_TIME_MAX_MS = 2000

_BYTE = ControlKind.BYTE
_BOOL = ControlKind.BOOLEAN
_ENUM = ControlKind.ENUMERATED

CONTROL_REGISTRY: Mapping[ControlId, ControlSpec] = MappingProxyType({
    ControlId.VOICE: ControlSpec("Voice", "voice", 0, 5),
    ControlId.GAIN: ControlSpec("Gain", "gain", 0, 127),
    ControlId.VOLUME: ControlSpec("Volume", "volume", 0, 127),
    ControlId.BASS: ControlSpec("Bass", "bass", 0, 127),
    ControlId.MIDDLE: ControlSpec("Middle", "middle", 0, 127),
    ControlId.TREBLE: ControlSpec("Treble", "treble", 0, 127),
    ControlId.ISF: ControlSpec("ISF", "isf", 0, 127),
    ControlId.TVP_VALVE: ControlSpec("TVP Valve", "tvp_valve", 0, 5),
    ControlId.RESONANCE: ControlSpec("Resonance", "resonance", 0, 127),
    ControlId.PRESENCE: ControlSpec("Presence", "presence", 0, 127),
    ControlId.MASTER_VOLUME: ControlSpec("Master Volume", "master_volume", 0, 127),
    ControlId.TVP_SWITCH: ControlSpec("TVP Switch", "tvp_switch", 0, 1, _BOOL),
    ControlId.MODULATION_SWITCH: ControlSpec("Modulation Switch", "mod_switch", 0, 1, _BOOL),
    ControlId.DELAY_SWITCH: ControlSpec("Delay Switch", "delay_switch", 0, 1, _BOOL),
    ControlId.REVERB_SWITCH: ControlSpec("Reverb Switch", "reverb_switch", 0, 1, _BOOL),
    ControlId.MODULATION_TYPE: ControlSpec(
        "Modulation Type", "mod_type", 0, len(MODULATION_TYPES) - 1, _ENUM
    ),
    ControlId.MODULATION_SEGVAL: ControlSpec("Modulation Segment", "mod_segval", 0, 31),
    ControlId.MODULATION_MANUAL: ControlSpec("Modulation Manual", "mod_manual", 0, 127),
    ControlId.MODULATION_LEVEL: ControlSpec("Modulation Level", "mod_level", 0, 127),
    ControlId.MODULATION_SPEED: ControlSpec("Modulation Speed", "mod_speed", 0, 127),
    ControlId.DELAY_TYPE: ControlSpec(
        "Delay Type", "delay_type", 0, len(DELAY_TYPES) - 1, _ENUM
    ),
    ControlId.DELAY_FEEDBACK: ControlSpec("Delay Feedback", "delay_feedback", 0, 31),
    ControlId.DELAY_LEVEL: ControlSpec("Delay Level", "delay_level", 0, 127),
    ControlId.DELAY_TIME: ControlSpec(
        "Delay Time", "delay_time", DELAY_TIME_MIN_MS, DELAY_TIME_MAX_MS,
        ControlKind.COMPOSITE16,
    ),
    ControlId.DELAY_TIME_COARSE: ControlSpec("Delay Time Coarse", "delay_time_coarse", 0, 7),
    ControlId.REVERB_TYPE: ControlSpec(
        "Reverb Type", "reverb_type", 0, len(REVERB_TYPES) - 1, _ENUM
    ),
    ControlId.REVERB_SIZE: ControlSpec("Reverb Size", "reverb_size", 0, 31),
    ControlId.REVERB_LEVEL: ControlSpec("Reverb Level", "reverb_level", 0, 127),
    ControlId.FX_FOCUS: ControlSpec("FX Focus", "fx_focus", 1, 3),
})

# Display names indexed by raw value minus the control's minimum
ENUM_NAMES: Mapping[ControlId, tuple[str, ...]] = MappingProxyType({
    ControlId.MODULATION_TYPE: MODULATION_TYPES,
    ControlId.DELAY_TYPE: DELAY_TYPES,
    ControlId.REVERB_TYPE: REVERB_TYPES,
    ControlId.FX_FOCUS: FX_FOCUS_NAMES,
})


def lookup_control(control_id: int) -> ControlId:
    """Convert a raw control byte to a ``ControlId``.

    Raises:
        UnrecognizedControl: If the byte is not a registered control.
    """
    try:
        control = ControlId(control_id)
    except ValueError:
        raise UnrecognizedControl(control_id) from None
    if control not in CONTROL_REGISTRY:
        raise UnrecognizedControl(control_id)
    return control


def control_by_name(name: str) -> ControlId:
    """Resolve a control from its enum name, display name, or preset field name.

    Matching is case-insensitive, e.g. ``"middle"``, ``"MIDDLE"``,
    ``"Master Volume"`` and ``"mod_level"`` are all accepted.
    """
    key = name.strip().lower()
    for control, spec in CONTROL_REGISTRY.items():
        if key in (control.name.lower(), spec.name.lower(), spec.attr):
            return control
    raise ValueError(
        f"Unknown control '{name}'. Valid: {[s.attr for s in CONTROL_REGISTRY.values()]}"
    )


def enum_display_name(control: ControlId, value: int) -> str | None:
    """Get the display name of a control value, if it has one.

    FX Focus counts from 1, so its names are looked up relative to the
    control's minimum.
    """
    names = ENUM_NAMES.get(control)
    if names is None:
        return None
    index = value - CONTROL_REGISTRY[control].minimum
    if not 0 <= index < len(names):
        return None
    return names[index]
