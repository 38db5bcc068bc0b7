"""Live amplifier state, updated from decoded packets.

``PresetModel`` owns the current ``AmpPreset`` snapshot. Every update
builds a new immutable snapshot and swaps it in under a lock, so readers
calling :meth:`PresetModel.snapshot` never see a half-applied update.
"""

from __future__ import annotations

import logging
import threading

from ..errors import OutOfRangeValue
from ..events import (
    ControlChanged,
    Event,
    ModeChanged,
    PresetChanged,
    PresetNameReceived,
    TunerReading,
)
from ..protocol.controls import CONTROL_REGISTRY, ControlId
from ..protocol.packets import (
    ControlChangePacket,
    ControlSettingsPacket,
    DelayTimeChangePacket,
    DelayTypeChangePacket,
    ManualModePacket,
    ModulationTypeChangePacket,
    Packet,
    PresetChangePacket,
    PresetNamePacket,
    PresetSettingsPacket,
    ReverbTypeChangePacket,
    StartupPacket,
    TunerModePacket,
    TunerPacket,
)
from .preset import AmpPreset

logger = logging.getLogger(__name__)


def _validated(control: ControlId, value: int) -> int:
    return CONTROL_REGISTRY[control].validate(control, value)


class PresetModel:
    """Current control values, preset number, preset names and amp mode."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._preset = AmpPreset()
        self._preset_number: int | None = None
        self._preset_names: dict[int, str] = {}
        self._manual_mode = False
        self._tuner_mode = False
        # Low byte of a delay time set from the front panel, waiting for
        # the DELAY_TIME_COARSE packet that carries the high byte
        self._pending_delay_fine: int | None = None

    def snapshot(self) -> AmpPreset:
        """The current preset snapshot (immutable)."""
        with self._lock:
            return self._preset

    @property
    def preset_number(self) -> int | None:
        with self._lock:
            return self._preset_number

    @property
    def preset_names(self) -> dict[int, str]:
        with self._lock:
            return dict(self._preset_names)

    @property
    def manual_mode(self) -> bool:
        with self._lock:
            return self._manual_mode

    @property
    def tuner_mode(self) -> bool:
        with self._lock:
            return self._tuner_mode

    def reset(self) -> None:
        """Restore defaults; called when the amplifier disconnects."""
        with self._lock:
            self._preset = AmpPreset()
            self._preset_number = None
            self._preset_names = {}
            self._manual_mode = False
            self._tuner_mode = False
            self._pending_delay_fine = None

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "preset_number": self._preset_number,
                "manual_mode": self._manual_mode,
                "tuner_mode": self._tuner_mode,
                "settings": self._preset.to_dict(),
            }

    def apply(self, packet: Packet) -> list[Event]:
        """Apply a decoded packet and return the events it produced.

        Raises:
            OutOfRangeValue: A value is outside its control's range. Nothing
                from the packet is applied.
        """
        if isinstance(packet, ControlChangePacket):
            return self._apply_control(packet.control, packet.value)
        if isinstance(packet, DelayTimeChangePacket):
            return self._apply_values({ControlId.DELAY_TIME: packet.value})
        if isinstance(packet, DelayTypeChangePacket):
            return self._apply_values({
                ControlId.DELAY_TYPE: packet.delay_type,
                ControlId.DELAY_FEEDBACK: packet.feedback,
            })
        if isinstance(packet, ReverbTypeChangePacket):
            return self._apply_values({
                ControlId.REVERB_TYPE: packet.reverb_type,
                ControlId.REVERB_SIZE: packet.size,
            })
        if isinstance(packet, ModulationTypeChangePacket):
            return self._apply_values({
                ControlId.MODULATION_TYPE: packet.modulation_type,
                ControlId.MODULATION_SEGVAL: packet.feedback,
            })
        if isinstance(packet, PresetSettingsPacket):
            return self._replace(packet.preset, packet.preset_number)
        if isinstance(packet, ControlSettingsPacket):
            return self._replace(packet.preset, None)
        if isinstance(packet, PresetChangePacket):
            with self._lock:
                self._preset_number = packet.preset_number
                preset = self._preset
            return [PresetChanged(packet.preset_number, preset)]
        if isinstance(packet, PresetNamePacket):
            with self._lock:
                self._preset_names[packet.preset_number] = packet.name
            return [PresetNameReceived(packet.preset_number, packet.name)]
        if isinstance(packet, (ManualModePacket, TunerModePacket)):
            with self._lock:
                if isinstance(packet, ManualModePacket):
                    self._manual_mode = packet.enabled
                else:
                    self._tuner_mode = packet.enabled
                event = ModeChanged(self._manual_mode, self._tuner_mode)
            return [event]
        if isinstance(packet, TunerPacket):
            return [TunerReading(packet.note, packet.delta)]
        if isinstance(packet, StartupPacket):
            logger.debug("Ignoring startup packet (%d bytes)", len(packet.data))
            return []
        raise TypeError(f"Unhandled packet type {type(packet).__name__}")

    def _apply_control(self, control: ControlId, value: int) -> list[Event]:
        if control is ControlId.DELAY_TIME:
            # Single-byte delay time: fine part only, wait for the coarse part
            if not 0 <= value <= 0xFF:
                raise OutOfRangeValue(control, value, 0, 0xFF)
            with self._lock:
                self._pending_delay_fine = value
            return []

        if control is ControlId.DELAY_TIME_COARSE:
            coarse = _validated(control, value)
            with self._lock:
                fine = self._pending_delay_fine
                if fine is None:
                    fine = self._preset.delay_time & 0xFF
                delay_time = _validated(ControlId.DELAY_TIME, coarse * 256 + fine)
                self._preset = self._preset.with_value(ControlId.DELAY_TIME, delay_time)
                self._pending_delay_fine = None
            return [ControlChanged(ControlId.DELAY_TIME, delay_time)]

        return self._apply_values({control: value})

    def _apply_values(self, updates: dict[ControlId, int]) -> list[Event]:
        """Validate every value first, then swap in one new snapshot."""
        validated = {control: _validated(control, value) for control, value in updates.items()}
        with self._lock:
            preset = self._preset
            for control, value in validated.items():
                preset = preset.with_value(control, value)
            self._preset = preset
        return [ControlChanged(control, value) for control, value in validated.items()]

    def _replace(self, preset: AmpPreset, preset_number: int | None) -> list[Event]:
        with self._lock:
            old = self._preset
            self._preset = preset
            self._pending_delay_fine = None
            if preset_number is not None:
                self._preset_number = preset_number
            number = self._preset_number
        logger.debug("Preset snapshot replaced, changed fields: %s", sorted(old.diff(preset)))
        return [PresetChanged(number, preset)]
