"""Message type constants and decoded packet variants.

Byte 0 of every payload is the message type. Preset and Mode packets carry
their subtype at byte 1; Control packets carry the control id at byte 1 and
the subtype at byte 3.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Union

from ..models.preset import AmpPreset
from .controls import ControlId


class MessageType(IntEnum):
    """Payload byte 0."""

    PRESET = 0x02
    CONTROL = 0x03
    STARTUP = 0x07
    MODE = 0x08
    TUNER = 0x09


class PresetSubtype(IntEnum):
    """Byte 1 of a Preset packet."""

    PRESET_NAME = 0x04
    PRESET_SETTINGS = 0x05
    PRESET_CHANGE = 0x06


class ControlSubtype(IntEnum):
    """Byte 3 of a Control packet: how many value bytes follow."""

    CONTROL_CHANGE = 0x01
    EFFECT_CHANGE = 0x02
    CONTROL_SETTINGS = 0x2A


class ModeSubtype(IntEnum):
    """Byte 1 of a Mode packet."""

    STARTUP = 0x01
    MANUAL_MODE = 0x03
    TUNER_MODE = 0x11


@dataclass(frozen=True)
class PresetNamePacket:
    """Name of a stored preset."""

    preset_number: int
    name: str


@dataclass(frozen=True)
class PresetChangePacket:
    """The amp switched to another preset."""

    preset_number: int


@dataclass(frozen=True)
class PresetSettingsPacket:
    """Full settings of the given preset."""

    preset_number: int
    preset: AmpPreset

    def __repr__(self) -> str:
        return f"PresetSettingsPacket(preset_number={self.preset_number})"


@dataclass(frozen=True)
class ControlChangePacket:
    """A single control knob or switch moved."""

    control: ControlId
    value: int

    def __repr__(self) -> str:
        return f"ControlChangePacket(control={self.control.name}, value={self.value})"


@dataclass(frozen=True)
class DelayTimeChangePacket:
    """Delay time in milliseconds, e.g. from the tap button."""

    value: int


@dataclass(frozen=True)
class DelayTypeChangePacket:
    delay_type: int
    feedback: int


@dataclass(frozen=True)
class ReverbTypeChangePacket:
    reverb_type: int
    size: int


@dataclass(frozen=True)
class ModulationTypeChangePacket:
    modulation_type: int
    feedback: int


@dataclass(frozen=True)
class ControlSettingsPacket:
    """All current control values, sent in reply to the startup request."""

    preset: AmpPreset

    def __repr__(self) -> str:
        return "ControlSettingsPacket()"


@dataclass(frozen=True)
class StartupPacket:
    """First reply to the startup request; contents are not understood."""

    data: bytes

    def __repr__(self) -> str:
        return f"StartupPacket(data_len={len(self.data)})"


@dataclass(frozen=True)
class ManualModePacket:
    """The amp entered (True) or left (False) manual mode."""

    enabled: bool


@dataclass(frozen=True)
class TunerModePacket:
    """The amp entered (True) or left (False) tuner mode."""

    enabled: bool


@dataclass(frozen=True)
class TunerPacket:
    """A tuner reading.

    ``note`` is ``None`` when no note is detected. ``delta`` is the pitch
    offset in cents-like units, from +50 (very flat) to -49 (very sharp).
    """

    note: str | None
    delta: int


Packet = Union[
    PresetNamePacket,
    PresetChangePacket,
    PresetSettingsPacket,
    ControlChangePacket,
    DelayTimeChangePacket,
    DelayTypeChangePacket,
    ReverbTypeChangePacket,
    ModulationTypeChangePacket,
    ControlSettingsPacket,
    StartupPacket,
    ManualModePacket,
    TunerModePacket,
    TunerPacket,
]
