"""Connection lifecycle, polling and hot-plug handling."""

from .listener import DeviceListener
from .manager import ConnectionManager, ConnectionState
from .polling import PollingLoop
