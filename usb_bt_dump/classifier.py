# usb_bt_dump/classifier.py
"""Decide which Bluetooth layer (if any) a usbmon transfer carries."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from .bluetooth.hci import decode_hci_command, decode_hci_event
from .bluetooth.l2cap import ChannelBindings, decode_l2cap
from .const import HCI_CMD_REQUEST_TYPE, HCI_CMD_REQUESTS, HCI_EVENT_MIN_EPNUM
from .usbmon.transfer import EventType, StatusKind, Transfer, TransferType

__all__ = ["Layer", "classify", "dissect"]


class Layer(str, Enum):
    HCI_COMMAND = "hci-command"
    HCI_EVENT = "hci-event"
    L2CAP = "l2cap"


def _is_hci_command(t: Transfer) -> bool:
    if not (
        t.event_type is EventType.SUBMISSION
        and t.xfer_type is TransferType.CONTROL
        and t.endpoint == 0
        and t.setup_captured
        and not t.data_elided
    ):
        return False
    s = t.setup or bytes(8)
    # bmRequestType, bRequest, wValue, wIndex
    return (
        s[0] == HCI_CMD_REQUEST_TYPE
        and s[1] in HCI_CMD_REQUESTS
        and s[2:6] == b"\0\0\0\0"
    )


def _is_hci_event(t: Transfer) -> bool:
    return (
        t.event_type is EventType.COMPLETION
        and t.xfer_type is TransferType.INTERRUPT
        and t.is_input
        and t.epnum >= HCI_EVENT_MIN_EPNUM
        and not t.data_elided
        and t.status_kind is StatusKind.STATUS
        and t.status == 0
    )


def _is_l2cap(t: Transfer) -> bool:
    expected = EventType.COMPLETION if t.is_input else EventType.SUBMISSION
    return (
        t.xfer_type is TransferType.BULK
        and t.endpoint != 0
        and not t.data_elided
        and t.length > 0
        and t.event_type is expected
    )


def classify(t: Transfer) -> Optional[Layer]:
    """First matching rule wins; None leaves the record undissected."""
    if _is_hci_command(t):
        return Layer.HCI_COMMAND
    if _is_hci_event(t):
        return Layer.HCI_EVENT
    if _is_l2cap(t):
        return Layer.L2CAP
    return None


def dissect(t: Transfer, bindings: ChannelBindings) -> List[str]:
    layer = classify(t)
    if layer is Layer.HCI_COMMAND:
        return decode_hci_command(t.data)
    if layer is Layer.HCI_EVENT:
        return decode_hci_event(t.data)
    if layer is Layer.L2CAP:
        return decode_l2cap(t.data, bindings, t.is_input)
    return []
