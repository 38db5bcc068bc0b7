"""Data models for the amplifier's control values."""

from .preset import AmpPreset
