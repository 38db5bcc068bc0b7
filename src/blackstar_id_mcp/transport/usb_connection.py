"""USB HID transport for Blackstar ID amplifiers.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends, combined by
:class:`AggregateTransport`. The amp presents a vendor-defined HID
interface (usage page 0xFF00, usage 0x01) with one interrupt IN and one
interrupt OUT endpoint; only the IN side is used here.

Every handle returns reports with a leading report id byte (0x00 for
unnumbered reports) so callers can strip the envelope uniformly.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from ..config import AMP_MODELS, DEFAULT_FILTER, DeviceFilter
from ..errors import DiscoveryError, TransportFault
from ..events import DeviceInfo
from ..protocol.framing import HID_REPORT_SIZE

logger = logging.getLogger(__name__)

REPORT_ID = 0x00
READ_TIMEOUT_MS = 1000
HID_INTERFACE = 0

BACKEND_HIDAPI = "hidapi"
BACKEND_PYUSB = "pyusb"


@dataclass(frozen=True)
class DeviceDescriptor:
    """An enumerated amplifier, as seen by one backend."""

    backend: str
    path: bytes | str
    vendor_id: int
    product_id: int
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""
    usage_page: int | None = None
    usage: int | None = None

    @property
    def key(self) -> tuple:
        """Identity of the physical interface, stable across enumerations."""
        return (self.backend, self.path)

    @property
    def model(self) -> str:
        return AMP_MODELS.get(self.product_id, "unknown")

    def to_device_info(self) -> DeviceInfo:
        path = self.path.decode(errors="replace") if isinstance(self.path, bytes) else self.path
        return DeviceInfo(
            vendor_id=self.vendor_id,
            product_id=self.product_id,
            manufacturer=self.manufacturer,
            product=self.product or self.model,
            path=path,
            backend=self.backend,
        )


class HidDeviceHandle:
    """An open hidapi device."""

    def __init__(self, descriptor: DeviceDescriptor, read_timeout_ms: int = READ_TIMEOUT_MS) -> None:
        self._descriptor = descriptor
        self._read_timeout_ms = read_timeout_ms
        self._device = None

    @property
    def descriptor(self) -> DeviceDescriptor:
        return self._descriptor

    def initialize(self) -> None:
        """Open the HID path.

        Raises:
            TransportFault: If hidapi cannot open the device.
        """
        import hid

        device = hid.device()
        try:
            device.open_path(self._descriptor.path)
            device.set_nonblocking(False)
        except (OSError, ValueError) as e:
            raise TransportFault(f"Could not open HID device: {e}") from e
        self._device = device
        logger.info(
            "Opened via hidapi: %s %s",
            self._descriptor.manufacturer,
            self._descriptor.product,
        )

    def read(self, cancel: threading.Event) -> bytes:
        """Read one 64-byte input report.

        Returns:
            The report prefixed with its report id, or ``b""`` if the read
            timed out or cancellation was already requested.

        Raises:
            TransportFault: If the device is closed or the read fails.
        """
        if cancel.is_set():
            return b""
        if self._device is None:
            raise TransportFault("Device is not open")
        try:
            data = self._device.read(HID_REPORT_SIZE, self._read_timeout_ms)
        except (OSError, ValueError) as e:
            raise TransportFault(f"HID read failed: {e}") from e
        if not data:
            return b""
        return bytes([REPORT_ID]) + bytes(data)

    def close(self) -> None:
        if self._device is None:
            return
        try:
            self._device.close()
        except OSError as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None


class PyUsbDeviceHandle:
    """An amplifier opened through pyusb + libusb."""

    def __init__(self, descriptor: DeviceDescriptor, read_timeout_ms: int = READ_TIMEOUT_MS) -> None:
        self._descriptor = descriptor
        self._read_timeout_ms = read_timeout_ms
        self._device = None
        self._endpoint_in = None
        self._reattach_kernel = False

    @property
    def descriptor(self) -> DeviceDescriptor:
        return self._descriptor

    def initialize(self) -> None:
        """Find the device again, claim the HID interface and locate its IN endpoint.

        Raises:
            TransportFault: If the device vanished or cannot be claimed. The
                kernel driver is reattached before raising.
        """
        import usb.core
        import usb.util

        try:
            bus, address = _parse_usb_path(self._descriptor.path)
            dev = usb.core.find(
                idVendor=self._descriptor.vendor_id,
                idProduct=self._descriptor.product_id,
                bus=bus,
                address=address,
            )
        except ValueError as e:
            # usb.core.NoBackendError is a ValueError, as is a bad path
            raise TransportFault(f"Could not look up USB device: {e}") from e
        if dev is None:
            raise TransportFault("Device not found via pyusb")

        try:
            if dev.is_kernel_driver_active(HID_INTERFACE):
                dev.detach_kernel_driver(HID_INTERFACE)
                self._reattach_kernel = True
            dev.set_configuration()
            usb.util.claim_interface(dev, HID_INTERFACE)
            intf = dev.get_active_configuration()[(HID_INTERFACE, 0)]
            endpoint = usb.util.find_descriptor(
                intf,
                custom_match=lambda e: usb.util.endpoint_direction(e.bEndpointAddress)
                == usb.util.ENDPOINT_IN,
            )
        except usb.core.USBError as e:
            self._release(dev)
            raise TransportFault(f"Could not claim USB interface: {e}") from e
        if endpoint is None:
            self._release(dev)
            raise TransportFault("No interrupt IN endpoint on HID interface")

        self._device = dev
        self._endpoint_in = endpoint.bEndpointAddress
        logger.info(
            "Opened via pyusb: %s %s",
            self._descriptor.manufacturer,
            self._descriptor.product,
        )

    def read(self, cancel: threading.Event) -> bytes:
        """Read one interrupt IN report; see :meth:`HidDeviceHandle.read`."""
        import usb.core

        if cancel.is_set():
            return b""
        if self._device is None:
            raise TransportFault("Device is not open")
        try:
            data = self._device.read(
                self._endpoint_in, HID_REPORT_SIZE, timeout=self._read_timeout_ms
            )
        except usb.core.USBTimeoutError:
            return b""
        except usb.core.USBError as e:
            raise TransportFault(f"USB read failed: {e}") from e
        return bytes([REPORT_ID]) + bytes(data)

    def close(self) -> None:
        if self._device is None:
            return
        try:
            self._release(self._device)
        finally:
            self._device = None
            self._endpoint_in = None

    def _release(self, dev) -> None:
        """Release the interface and hand the device back to the kernel driver."""
        import usb.core
        import usb.util

        try:
            usb.util.release_interface(dev, HID_INTERFACE)
            usb.util.dispose_resources(dev)
        except usb.core.USBError as e:
            logger.warning("Error releasing device: %s", e)
        if self._reattach_kernel:
            self._reattach_kernel = False
            try:
                dev.attach_kernel_driver(HID_INTERFACE)
            except usb.core.USBError as e:
                logger.warning("Could not reattach kernel driver: %s", e)


def _parse_usb_path(path: bytes | str) -> tuple[int, int]:
    """Split a ``usb:<bus>:<address>`` path."""
    if isinstance(path, bytes):
        path = path.decode()
    _, bus, address = path.split(":")
    return int(bus), int(address)


class HidTransport:
    """Discovers and opens amplifiers through hidapi."""

    backend = BACKEND_HIDAPI

    def __init__(self, read_timeout_ms: int = READ_TIMEOUT_MS) -> None:
        self._read_timeout_ms = read_timeout_ms

    def discover(self, device_filter: DeviceFilter = DEFAULT_FILTER) -> list[DeviceDescriptor]:
        """Enumerate HID interfaces matching the filter.

        Raises:
            DiscoveryError: If hidapi is unavailable or enumeration fails.
        """
        try:
            import hid

            entries = hid.enumerate(device_filter.vendor_id, 0)
        except (ImportError, OSError) as e:
            raise DiscoveryError(f"HID enumeration failed: {e}") from e

        found = []
        for entry in entries:
            if not device_filter.matches(
                entry["vendor_id"],
                entry["product_id"],
                entry.get("usage_page"),
                entry.get("usage"),
            ):
                continue
            found.append(DeviceDescriptor(
                backend=self.backend,
                path=entry["path"],
                vendor_id=entry["vendor_id"],
                product_id=entry["product_id"],
                manufacturer=entry.get("manufacturer_string") or "",
                product=entry.get("product_string") or "",
                serial_number=entry.get("serial_number") or "",
                usage_page=entry.get("usage_page"),
                usage=entry.get("usage"),
            ))
        return found

    def open(self, descriptor: DeviceDescriptor) -> HidDeviceHandle:
        return HidDeviceHandle(descriptor, self._read_timeout_ms)


class PyUsbTransport:
    """Discovers and opens amplifiers through pyusb, by product id."""

    backend = BACKEND_PYUSB

    def __init__(self, read_timeout_ms: int = READ_TIMEOUT_MS) -> None:
        self._read_timeout_ms = read_timeout_ms

    def discover(self, device_filter: DeviceFilter = DEFAULT_FILTER) -> list[DeviceDescriptor]:
        """Enumerate USB devices matching the filter's vendor and product ids.

        Raises:
            DiscoveryError: If pyusb has no usable backend or enumeration fails.
        """
        try:
            import usb.core
        except ImportError as e:
            raise DiscoveryError(f"pyusb is not available: {e}") from e

        try:
            devices = list(usb.core.find(
                find_all=True,
                custom_match=lambda d: device_filter.matches(d.idVendor, d.idProduct),
            ))
        except (usb.core.NoBackendError, usb.core.USBError) as e:
            raise DiscoveryError(f"USB enumeration failed: {e}") from e

        found = []
        for dev in devices:
            found.append(DeviceDescriptor(
                backend=self.backend,
                path=f"usb:{dev.bus}:{dev.address}",
                vendor_id=dev.idVendor,
                product_id=dev.idProduct,
                manufacturer=_usb_string(dev, dev.iManufacturer),
                product=_usb_string(dev, dev.iProduct),
            ))
        return found

    def open(self, descriptor: DeviceDescriptor) -> PyUsbDeviceHandle:
        return PyUsbDeviceHandle(descriptor, self._read_timeout_ms)


def _usb_string(dev, index: int) -> str:
    import usb.core
    import usb.util

    if not index:
        return ""
    try:
        return usb.util.get_string(dev, index) or ""
    except (usb.core.USBError, ValueError) as e:
        logger.debug("Could not read USB string descriptor %d: %s", index, e)
        return ""


class AggregateTransport:
    """Tries several transports in order, hidapi first, then pyusb.

    Discovery concatenates what each backend finds; a backend that fails to
    enumerate is skipped as long as another one succeeds.
    """

    def __init__(self, transports=None, read_timeout_ms: int = READ_TIMEOUT_MS) -> None:
        if transports is None:
            transports = [HidTransport(read_timeout_ms), PyUsbTransport(read_timeout_ms)]
        self._transports = {t.backend: t for t in transports}

    def discover(self, device_filter: DeviceFilter = DEFAULT_FILTER) -> list[DeviceDescriptor]:
        found: list[DeviceDescriptor] = []
        errors: list[DiscoveryError] = []
        for transport in self._transports.values():
            try:
                found.extend(transport.discover(device_filter))
            except DiscoveryError as e:
                logger.debug("%s discovery failed: %s", transport.backend, e)
                errors.append(e)
        if errors and len(errors) == len(self._transports):
            raise DiscoveryError(
                "No USB backend could enumerate devices. "
                f"Last error: {errors[-1]}"
            ) from errors[-1]
        return found

    def open(self, descriptor: DeviceDescriptor):
        try:
            transport = self._transports[descriptor.backend]
        except KeyError:
            raise TransportFault(f"No transport for backend {descriptor.backend!r}") from None
        return transport.open(descriptor)
