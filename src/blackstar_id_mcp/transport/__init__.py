"""Device I/O backends (hidapi and pyusb)."""

from .usb_connection import (
    AggregateTransport,
    DeviceDescriptor,
    HidTransport,
    PyUsbTransport,
)
