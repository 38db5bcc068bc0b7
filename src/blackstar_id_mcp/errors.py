"""Exception hierarchy for the Blackstar ID decoder and connection layer."""

from __future__ import annotations


class BlackstarIDError(Exception):
    """Base class for all errors raised by this package."""


class DiscoveryError(BlackstarIDError):
    """Raised when the USB/HID bus cannot be enumerated."""


class ConnectError(BlackstarIDError):
    """Raised by ``ConnectionManager.connect()`` when a connection cannot be made."""


class NotFoundError(ConnectError):
    """The requested amplifier is no longer present on the bus."""


class InitFailedError(ConnectError):
    """The device was found but opening or initializing it failed."""


class AlreadyConnectedError(ConnectError):
    """A connection is already open; disconnect first."""


class NotConnectedError(BlackstarIDError):
    """Raised when an operation requiring a connected amp is called without one."""


class TransportFault(BlackstarIDError):
    """Raised by a device handle when a read fails for a reason other than a timeout."""


class DecodeError(BlackstarIDError):
    """Base class for errors raised while decoding an inbound payload.

    These are never fatal to the polling loop: the frame is logged and dropped.
    """


class MalformedFrame(DecodeError):
    """The payload is empty, truncated, or has an unknown message type."""


class UnrecognizedControl(DecodeError):
    """A control id is not present in the control registry."""

    def __init__(self, control_id: int) -> None:
        super().__init__(f"Unrecognized control ID: 0x{control_id:02X}")
        self.control_id = control_id


class UnrecognizedEnumValue(DecodeError):
    """An enumerated field (message type, subtype, effect type) has an unknown value."""

    def __init__(self, field: str, value: int) -> None:
        super().__init__(f"Unrecognized {field}: 0x{value:02X}")
        self.field = field
        self.value = value


class OutOfRangeValue(BlackstarIDError):
    """A control update carried a value outside the control's valid range.

    The update is rejected, never clamped.
    """

    def __init__(self, control, value: int, minimum: int, maximum: int) -> None:
        super().__init__(
            f"Value {value} is not valid for control {control.name} "
            f"(expected {minimum}-{maximum})"
        )
        self.control = control
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
