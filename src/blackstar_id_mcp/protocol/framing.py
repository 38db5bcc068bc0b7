"""Transport envelope handling for 64-byte USB HID input reports.

Report layout as returned by a device handle::

    +-----------+--------------+----------+-----------------------+---------+
    | Report ID | Message type | Subtype/ |   Type-specific data  | Padding |
    | 1 byte    | 1 byte       | Control  |                       | to 64 B |
    +-----------+--------------+----------+-----------------------+---------+

- Report ID: the HID envelope tag, 0x00 for unnumbered reports; it carries
  no protocol information and is stripped before decoding
- Everything after it is the *payload* handed to the packet decoder
"""

from __future__ import annotations

from dataclasses import dataclass

HID_REPORT_SIZE = 64
DUMP_COLUMNS = 16


@dataclass(frozen=True)
class Frame:
    """One report read from the device, split into envelope and payload."""

    report_id: int
    payload: bytes

    def __repr__(self) -> str:
        return (
            f"Frame(report_id=0x{self.report_id:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def parse_frame(data: bytes) -> Frame | None:
    """Split a raw report into its report id and payload.

    Returns:
        A ``Frame``, or ``None`` if the read returned no bytes at all.
    """
    if not data:
        return None
    return Frame(report_id=data[0], payload=bytes(data[1:]))


def format_data(data: bytes, columns: int = DUMP_COLUMNS) -> str:
    """Format bytes as hex, 16 per line, for comparison with USB captures."""
    lines = [
        data[start : start + columns].hex(" ").upper()
        for start in range(0, len(data), columns)
    ]
    return "\n".join(lines)
