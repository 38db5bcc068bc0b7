"""Configuration dataclasses for device discovery and polling.

These immutable config objects are passed into the connection manager and
transports explicitly, so nothing reads process-wide constants at runtime.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

BLACKSTAR_VENDOR_ID = 0x27D4
VENDOR_USAGE_PAGE = 0xFF00
VENDOR_USAGE = 0x01

# ID:TVP, ID:Core and the later ID:Core revision
KNOWN_PRODUCT_IDS: tuple[int, ...] = (0x0001, 0x0010, 0x0012)

AMP_MODELS: dict[int, str] = {
    0x0001: "ID:TVP",
    0x0010: "ID:Core",
    0x0012: "ID:Core",
}


@dataclass(frozen=True)
class DeviceFilter:
    """Which USB/HID devices count as a Blackstar ID amplifier.

    A device matches when its vendor id matches and either its HID usage
    page/usage match or its product id is one of ``product_ids``.
    """

    vendor_id: int = BLACKSTAR_VENDOR_ID
    usage_page: int = VENDOR_USAGE_PAGE
    usage: int = VENDOR_USAGE
    product_ids: tuple[int, ...] = KNOWN_PRODUCT_IDS

    def __post_init__(self) -> None:
        if not 0 <= self.vendor_id <= 0xFFFF:
            raise ValueError(f"vendor_id must be a 16-bit value, got {self.vendor_id:#x}")
        if not self.product_ids:
            raise ValueError("product_ids must not be empty")

    def matches(
        self,
        vendor_id: int,
        product_id: int,
        usage_page: int | None = None,
        usage: int | None = None,
    ) -> bool:
        if vendor_id != self.vendor_id:
            return False
        if usage_page == self.usage_page and usage == self.usage:
            return True
        return product_id in self.product_ids


@dataclass(frozen=True)
class PollingConfig:
    """Timing parameters for the polling loop and device listener.

    Attributes:
        read_timeout_ms: Timeout passed to each blocking read. Bounds how
            long a cancellation can go unnoticed.
        idle_wait: Seconds to sleep after a read that returned no data.
        join_timeout: Seconds ``disconnect()`` waits for the polling thread.
        listener_interval: Seconds between hot-plug discovery scans.
    """

    read_timeout_ms: int = 1000
    idle_wait: float = 0.01
    join_timeout: float = 2.0
    listener_interval: float = 6.0

    def __post_init__(self) -> None:
        if self.read_timeout_ms <= 0:
            raise ValueError(f"read_timeout_ms must be positive, got {self.read_timeout_ms}")
        if self.idle_wait < 0:
            raise ValueError(f"idle_wait must be non-negative, got {self.idle_wait}")
        if self.join_timeout <= 0:
            raise ValueError(f"join_timeout must be positive, got {self.join_timeout}")
        if self.join_timeout * 1000 <= self.read_timeout_ms:
            raise ValueError(
                f"join_timeout ({self.join_timeout}s) must be longer than "
                f"read_timeout_ms ({self.read_timeout_ms}ms)"
            )
        if self.listener_interval <= 0:
            raise ValueError(
                f"listener_interval must be positive, got {self.listener_interval}"
            )


@dataclass(frozen=True)
class BlackstarSettings:
    """Settings for the server entry point."""

    log_level: str = "INFO"
    polling: PollingConfig = PollingConfig()
    device_filter: DeviceFilter = DeviceFilter()

    def __post_init__(self) -> None:
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level {self.log_level!r}")

    @classmethod
    def from_env(cls) -> BlackstarSettings:
        """Build settings from ``BSID_*`` environment variables.

        Without ``BSID_JOIN_TIMEOUT`` the join timeout is the default, or one
        second more than the read timeout when that is longer.
        """
        read_timeout_ms = int(os.environ.get("BSID_READ_TIMEOUT_MS", "1000"))
        default_join = max(PollingConfig.join_timeout, read_timeout_ms / 1000 + 1.0)
        polling = PollingConfig(
            read_timeout_ms=read_timeout_ms,
            join_timeout=float(os.environ.get("BSID_JOIN_TIMEOUT", default_join)),
            listener_interval=float(os.environ.get("BSID_LISTENER_INTERVAL", "6.0")),
        )
        return cls(
            log_level=os.environ.get("BSID_LOG_LEVEL", "INFO"),
            polling=polling,
        )


DEFAULT_FILTER = DeviceFilter()
DEFAULT_POLLING = PollingConfig()
