"""Decode usbmon captures of a Bluetooth HCI / L2CAP / SDP / BT-HID stack."""

from .exception import CaptureParseError, ParseFailure, UsbBtDumpError  # noqa: F401
from .session import DissectorSession  # noqa: F401

__version__ = "0.3.0"
