"""Protocol layer: control registry, report envelope, packet types and decoder."""

from .controls import CONTROL_REGISTRY, ControlId, ControlKind, ControlSpec
from .framing import Frame, parse_frame
