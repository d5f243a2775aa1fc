# usb_bt_dump/bluetooth/bt_hid.py
"""Bluetooth HID transactions on the HID control (0x11) / interrupt (0x13) PSMs."""

from __future__ import annotations

import logging
from typing import Dict, List

from ..hexutil import FieldReader

__all__ = ["decode_bt_hid", "report_type"]

_LOGGER = logging.getLogger(__name__)

HIDP_HANDSHAKE = 0x0
HIDP_CONTROL = 0x1
HIDP_GET_REPORT = 0x4
HIDP_SET_REPORT = 0x5
HIDP_GET_PROTOCOL = 0x6
HIDP_SET_PROTOCOL = 0x7
HIDP_GET_IDLE = 0x8
HIDP_SET_IDLE = 0x9
HIDP_DATA = 0xA
HIDP_DATC = 0xB

HANDSHAKE_RESULTS: Dict[int, str] = {
    0x0: "SUCCESSFUL",
    0x1: "NOT_READY",
    0x2: "ERR_INVALID_REPORT_ID",
    0x3: "ERR_UNSUPPORTED_REQUEST",
    0x4: "ERR_INVALID_PARAMETER",
    0xE: "ERR_UNKNOWN",
    0xF: "ERR_FATAL",
}

CONTROL_OPERATIONS: Dict[int, str] = {
    0x0: "NOP",
    0x1: "HARD_RESET",
    0x2: "SOFT_RESET",
    0x3: "SUSPEND",
    0x4: "EXIT_SUSPEND",
    0x5: "VIRTUAL_CABLE_UNPLUG",
}

_REPORT_TYPES = ("Reserved", "Input", "Output", "Feature")


def report_type(header: int) -> str:
    return _REPORT_TYPES[header & 3]


def _named(value: int, names: Dict[int, str]) -> str:
    name = names.get(value)
    return f"{value} ({name})" if name else str(value)


def decode_bt_hid(data: bytes) -> List[str]:
    """Decode one HIDP transaction; the header byte is type << 4 | parameter."""
    if not data:
        return ["  BT-HID empty frame"]

    r = FieldReader(data)
    header = data[0]
    kind, param = header >> 4, header & 0x0F
    length = len(data)

    if kind == HIDP_HANDSHAKE:
        return [f"  BT-HID Handshake: Status={_named(param, HANDSHAKE_RESULTS)}"]
    if kind == HIDP_CONTROL:
        return [f"  BT-HID Control: Operation={_named(param, CONTROL_OPERATIONS)}"]
    if kind == HIDP_GET_REPORT:
        # 1 = header, 2 = +id, 3 = +size, 4 = +id +size
        out = f"  BT-HID Get_Report: Type={report_type(header)}"
        pos = 1
        if length in (2, 4):
            out += f", ReportId={r.u8(pos)}"
            pos += 1
        if header & 0x08:
            out += f", BufferSize={r.le16(pos)}"
        lines = [out]
        if r.missing:
            lines.append(f"  (truncated: {length} of {r.wanted} bytes captured)")
        return lines
    if kind == HIDP_SET_REPORT:
        return [f"  BT-HID Set_Report: Type={report_type(header)}, Length={length - 1}"]
    if kind == HIDP_GET_PROTOCOL:
        if length < 2:
            return ["  BT-HID Get_Protocol"]
        return [f"  BT-HID Get_Protocol: Protocol={'Report' if data[1] & 1 else 'Boot'}"]
    if kind == HIDP_SET_PROTOCOL:
        return [f"  BT-HID Set_Protocol: Protocol={'Report' if header & 1 else 'Boot'}"]
    if kind in (HIDP_GET_IDLE, HIDP_SET_IDLE):
        name = "Get_Idle" if kind == HIDP_GET_IDLE else "Set_Idle"
        if length < 2:
            return [f"  BT-HID {name}"]
        return [f"  BT-HID {name}: Rate={data[1]}"]
    if kind in (HIDP_DATA, HIDP_DATC):
        payload = data[1:].hex()
        return [
            f"  BT-HID DAT{'A' if kind == HIDP_DATA else 'C'}: Report={report_type(header)}, "
            f"Length={length - 1}" + (f", Data={payload}" if payload else "")
        ]

    _LOGGER.debug("reserved HIDP transaction type %d", kind)
    return [
        f"  BT-HID Unhandled (reserved) request: Type={kind}, Parameter={param}, Length={length - 1}"
    ]
