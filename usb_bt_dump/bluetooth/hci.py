# usb_bt_dump/bluetooth/hci.py
"""
HCI command and event packets as carried over the USB transport.

Commands arrive on the control endpoint as `opcode(le16) plen(u8) params`;
events arrive on the interrupt endpoint as `code(u8) plen(u8) params`.
Both are decoded from fixed-offset layouts kept in the tables below. A
Command Complete event re-dispatches its return parameters on the echoed
opcode through a second table.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Sequence, Tuple

from ..hexutil import FieldReader

__all__ = [
    "LMP_FEATURES", "HCI_COMMANDS", "HCI_COMMAND_COMPLETE", "HCI_EVENTS",
    "decode_hci_command", "decode_hci_event", "decode_command_complete",
    "opcode_name",
]

_LOGGER = logging.getLogger(__name__)

# (field name, kind, offset)
Field = Tuple[str, str, int]

# ────────────────────────────────────────────────────────────────
# LMP feature mask, bit 0 of byte 0 first
# ────────────────────────────────────────────────────────────────
LMP_FEATURES: Tuple[str, ...] = (
    # byte 0
    "3 slot packets",
    "5 slot packets",
    "Encryption",
    "Slot offset",
    "Timing accuracy",
    "Role switch",
    "Hold mode",
    "Sniff mode",
    # byte 1
    "Park state",
    "Power control requests",
    "Channel quality driven data rate (CQDDR)",
    "SCO link",
    "HV2 packets",
    "HV3 packets",
    "Mu-law log synchronous data",
    "A-law log synchronous data",
    # byte 2
    "CVSD synchronous data",
    "Paging parameter negotiation",
    "Power control",
    "Transparent synchronous data",
    "Flow control lag (LSB)",
    "Flow control lag (middle bit)",
    "Flow control lag (MSB)",
    "Broadcast encryption",
    # byte 3
    "Reserved (bit 24)",
    "Enhanced Data Rate ACL 2 Mbps mode",
    "Enhanced Data Rate ACL 3 Mbps mode",
    "Enhanced inquiry scan",
    "Interlaced inquiry scan",
    "Interlaced page scan",
    "RSSI with inquiry results",
    "Extended SCO link (EV3 packets)",
    # byte 4
    "EV4 packets",
    "EV5 packets",
    "Reserved (bit 34)",
    "AFH capable slave",
    "AFH classification slave",
    "BR/EDR Not Supported",
    "LE Supported (Controller)",
    "3-slot Enhanced Data Rate ACL packets",
    # byte 5
    "5-slot Enhanced Data Rate ACL packets",
    "Sniff subrating",
    "Pause encryption",
    "AFH capable master",
    "AFH classification master",
    "Enhanced Data Rate eSCO 2 Mbps mode",
    "Enhanced Data Rate eSCO 3 Mbps mode",
    "3-slot Enhanced Data Rate eSCO packets",
    # byte 6
    "Extended Inquiry Response",
    "Simultaneous LE and BR/EDR to Same Device Capable (Controller)",
    "Reserved (bit 50)",
    "Secure Simple Pairing",
    "Encapsulated PDU",
    "Erroneous Data Reporting",
    "Non-flushable Packet Boundary Flag",
    "Reserved (bit 55)",
    # byte 7
    "Link Supervision Timeout Changed Event",
    "Inquiry TX Power Level",
    "Enhanced Power Control",
    "Reserved (bit 59)",
    "Reserved (bit 60)",
    "Reserved (bit 61)",
    "Reserved (bit 62)",
    "Extended features",
)
assert len(LMP_FEATURES) == 64, f"LMP feature table has {len(LMP_FEATURES)} entries, expected 64"


# ────────────────────────────────────────────────────────────────
# Field rendering
# ────────────────────────────────────────────────────────────────
def _render_field(r: FieldReader, kind: str, off: int) -> str:
    if kind == "d8":
        return str(r.u8(off))
    if kind == "s8":
        return str(r.s8(off))
    if kind == "d16":
        return str(r.le16(off))
    if kind == "d32":
        return str(r.le32(off))
    if kind == "x8":
        return f"0x{r.u8(off):02x}"
    if kind == "x16":
        return f"0x{r.le16(off):04x}"
    if kind == "x24":
        return f"0x{r.le24(off):06x}"
    if kind == "addr":
        return r.addr(off)
    if kind == "key":
        return "_".join(f"{r.le32(off + 4 * i):08x}" for i in range(4))
    if kind == "mask64":
        return f"{r.le32(off):08x}_{r.le32(off + 4):08x}"
    if kind == "str":
        return f'"{r.cstring(off)}"'
    if kind == "rest":
        return r.raw(off).hex() or "<none>"
    raise ValueError(f"unknown field kind {kind!r}")


def _render_fields(r: FieldReader, fields: Sequence[Field]) -> str:
    return ", ".join(f"{name}={_render_field(r, kind, off)}" for name, kind, off in fields)


def _truncation_note(r: FieldReader) -> List[str]:
    if not r.missing:
        return []
    return [f"  (truncated: {len(r)} of {r.wanted} bytes captured)"]


# ────────────────────────────────────────────────────────────────
# Commands: offsets count from the start of the packet (params at 3)
# ────────────────────────────────────────────────────────────────
_HANDLE: Tuple[Field, ...] = (("Connection_Handle", "d16", 3),)
_ADDR: Tuple[Field, ...] = (("BD_ADDR", "addr", 3),)

HCI_COMMANDS: Dict[int, Tuple[str, Tuple[Field, ...]]] = {
    0x0000: ("HCI_NoOp", ()),
    # Link Control (OGF 0x01)
    0x0401: ("HCI_Inquiry", (("LAP", "x24", 3), ("Inquiry_Length", "d8", 6), ("Num_Responses", "d8", 7))),
    0x0402: ("HCI_Inquiry_Cancel", ()),
    0x0405: ("HCI_Create_Connection", (
        ("BD_ADDR", "addr", 3), ("Packet_Type", "x16", 9), ("Page_Scan_Repetition_Mode", "d8", 11),
        ("Clock_Offset", "d16", 13), ("Allow_Role_Switch", "d8", 15))),
    0x0406: ("HCI_Disconnect", _HANDLE + (("Reason", "x8", 5),)),
    0x0408: ("HCI_Create_Connection_Cancel", _ADDR),
    0x0409: ("HCI_Accept_Connection_Request", _ADDR + (("Role", "d8", 9),)),
    0x040a: ("HCI_Reject_Connection_Request", _ADDR + (("Reason", "x8", 9),)),
    0x040b: ("HCI_Link_Key_Request_Reply", _ADDR + (("Link_Key", "key", 9),)),
    0x040c: ("HCI_Link_Key_Request_Negative_Reply", _ADDR),
    0x040d: ("HCI_PIN_Code_Request_Reply", _ADDR + (("PIN_Code_Length", "d8", 9), ("PIN_Code", "key", 10))),
    0x040e: ("HCI_PIN_Code_Request_Negative_Reply", _ADDR),
    0x0411: ("HCI_Authentication_Requested", _HANDLE),
    0x0413: ("HCI_Set_Connection_Encryption", _HANDLE + (("Encryption_Enable", "d8", 5),)),
    0x0419: ("HCI_Remote_Name_Request", _ADDR + (
        ("Page_Scan_Repetition_Mode", "d8", 9), ("Clock_Offset", "d16", 11))),
    0x041b: ("HCI_Read_Remote_Supported_Features", _HANDLE),
    0x041d: ("HCI_Read_Remote_Version_Information", _HANDLE),
    0x041f: ("HCI_Read_Clock_Offset", _HANDLE),
    # Link Policy (OGF 0x02)
    0x0803: ("HCI_Sniff_Mode", _HANDLE + (
        ("Sniff_Max_Interval", "d16", 5), ("Sniff_Min_Interval", "d16", 7),
        ("Sniff_Attempt", "d16", 9), ("Sniff_Timeout", "d16", 11))),
    0x0804: ("HCI_Exit_Sniff_Mode", _HANDLE),
    0x0807: ("HCI_QoS_Setup", _HANDLE + (
        ("Flags", "x8", 5), ("Service_Type", "d8", 6), ("Token_Rate", "d32", 7),
        ("Peak_Bandwidth", "d32", 11), ("Latency", "d32", 15), ("Delay_Variation", "d32", 19))),
    0x0809: ("HCI_Role_Discovery", _HANDLE),
    0x080d: ("HCI_Write_Link_Policy_Settings", _HANDLE + (("Link_Policy_Settings", "x16", 5),)),
    0x080e: ("HCI_Read_Default_Link_Policy_Settings", ()),
    0x080f: ("HCI_Write_Default_Link_Policy_Settings", (("Default_Link_Policy_Settings", "x16", 3),)),
    # Controller & Baseband (OGF 0x03)
    0x0c01: ("HCI_Set_Event_Mask", (("Event_Mask", "mask64", 3),)),
    0x0c03: ("HCI_Reset", ()),
    0x0c05: ("HCI_Set_Event_Filter", (
        ("Filter_Type", "d8", 3), ("Filter_Condition_Type", "d8", 4), ("Condition", "rest", 5))),
    0x0c0d: ("HCI_Read_Stored_Link_Key", _ADDR + (("Read_All_Flag", "d8", 9),)),
    0x0c13: ("HCI_Write_Local_Name", (("Local_Name", "str", 3),)),
    0x0c14: ("HCI_Read_Local_Name", ()),
    0x0c16: ("HCI_Write_Connection_Accept_Timeout", (("Conn_Accept_Timeout", "d16", 3),)),
    0x0c18: ("HCI_Write_Page_Timeout", (("Page_Timeout", "d16", 3),)),
    0x0c19: ("HCI_Read_Scan_Enable", ()),
    0x0c1a: ("HCI_Write_Scan_Enable", (("Scan_Enable", "d8", 3),)),
    0x0c23: ("HCI_Read_Class_of_Device", ()),
    0x0c24: ("HCI_Write_Class_of_Device", (("Class_of_Device", "x24", 3),)),
    0x0c25: ("HCI_Read_Voice_Setting", ()),
    0x0c28: ("HCI_Write_Automatic_Flush_Timeout", _HANDLE + (("Flush_Timeout", "d16", 5),)),
    0x0c2d: ("HCI_Read_Transmit_Power_Level", _HANDLE + (("Type", "d8", 5),)),
    0x0c36: ("HCI_Read_Link_Supervision_Timeout", _HANDLE),
    0x0c37: ("HCI_Write_Link_Supervision_Timeout", _HANDLE + (("Link_Supervision_Timeout", "d16", 5),)),
    # Informational Parameters (OGF 0x04)
    0x1001: ("HCI_Read_Local_Version_Information", ()),
    0x1003: ("HCI_Read_Local_Supported_Features", ()),
    0x1005: ("HCI_Read_Buffer_Size", ()),
    0x1009: ("HCI_Read_BD_ADDR", ()),
    # Status Parameters (OGF 0x05)
    0x1403: ("HCI_Read_Link_Quality", _HANDLE),
    0x1405: ("HCI_Read_RSSI", _HANDLE),
}


def opcode_name(opcode: int) -> str:
    entry = HCI_COMMANDS.get(opcode)
    if entry:
        return entry[0]
    return f"OGF {opcode >> 10} OCF {opcode & 0x3FF}"


def decode_hci_command(data: bytes) -> List[str]:
    """Decode an HCI command packet sent on the control endpoint."""
    head = FieldReader(data)
    opcode = head.le16(0)
    plen = head.u8(2)
    r = FieldReader(data[:3 + plen])
    r.wanted = head.wanted

    entry = HCI_COMMANDS.get(opcode)
    if entry is None:
        _LOGGER.debug("unhandled HCI command opcode %#06x", opcode)
        lines = [
            f"  Unhandled HCI command with opcode 0x{opcode:04x} "
            f"(OGF {opcode >> 10} OCF {opcode & 0x3FF})"
        ]
    else:
        name, fields = entry
        lines = [f"  {name}({_render_fields(r, fields)})"]
    return lines + _truncation_note(r)


# ────────────────────────────────────────────────────────────────
# Command Complete return parameters (offsets from the status byte)
# ────────────────────────────────────────────────────────────────
_STATUS: Tuple[Field, ...] = (("Status", "d8", 0),)
_STATUS_HANDLE: Tuple[Field, ...] = _STATUS + (("Connection_Handle", "d16", 1),)
_STATUS_ADDR: Tuple[Field, ...] = _STATUS + (("BD_ADDR", "addr", 1),)

HCI_COMMAND_COMPLETE: Dict[int, Tuple[Field, ...]] = {
    0x0402: _STATUS,
    0x0408: _STATUS_ADDR,
    0x040b: _STATUS_ADDR,
    0x040c: _STATUS_ADDR,
    0x040d: _STATUS_ADDR,
    0x040e: _STATUS_ADDR,
    0x0809: _STATUS_HANDLE + (("Current_Role", "d8", 3),),
    0x080d: _STATUS_HANDLE,
    0x080e: _STATUS + (("Default_Link_Policy_Settings", "x16", 1),),
    0x080f: _STATUS,
    0x0c01: _STATUS,
    0x0c03: _STATUS,
    0x0c05: _STATUS,
    0x0c0d: _STATUS + (("Max_Num_Keys", "d16", 1), ("Num_Keys_Read", "d16", 3)),
    0x0c13: _STATUS,
    0x0c14: _STATUS + (("Local_Name", "str", 1),),
    0x0c16: _STATUS,
    0x0c18: _STATUS,
    0x0c19: _STATUS + (("Scan_Enable", "d8", 1),),
    0x0c1a: _STATUS,
    0x0c23: _STATUS + (("Class_of_Device", "x24", 1),),
    0x0c24: _STATUS,
    0x0c25: _STATUS + (("Voice_Setting", "x16", 1),),
    0x0c28: _STATUS_HANDLE,
    0x0c2d: _STATUS_HANDLE + (("Transmit_Power_Level", "s8", 3),),
    0x0c36: _STATUS_HANDLE + (("Link_Supervision_Timeout", "d16", 3),),
    0x0c37: _STATUS_HANDLE,
    0x1001: _STATUS + (
        ("HCI_Version", "d8", 1), ("HCI_Revision", "x16", 2), ("LMP_Version", "d8", 4),
        ("Manufacturer_Name", "x16", 5), ("LMP_Subversion", "x16", 7)),
    0x1003: _STATUS + (("LMP_Features", "mask64", 1),),
    0x1005: _STATUS + (
        ("ACL_Data_Packet_Length", "d16", 1), ("Synchronous_Data_Packet_Length", "d8", 3),
        ("Total_Num_ACL_Data_Packets", "d16", 4), ("Total_Num_Synchronous_Data_Packets", "d16", 6)),
    0x1009: _STATUS_ADDR,
    0x1403: _STATUS_HANDLE + (("Link_Quality", "d8", 3),),
    0x1405: _STATUS_HANDLE + (("RSSI", "s8", 3),),
}


def decode_command_complete(opcode: int, params: bytes) -> List[str]:
    """Return parameters of a completed command, keyed by its opcode."""
    fields = HCI_COMMAND_COMPLETE.get(opcode)
    if fields is None:
        _LOGGER.debug("unhandled command completion for opcode %#06x", opcode)
        return [f"  HCI unhandled command completion (opcode=0x{opcode:04x})"]
    r = FieldReader(params)
    return [f"  {opcode_name(opcode)}: {_render_fields(r, fields)}"] + _truncation_note(r)


# ────────────────────────────────────────────────────────────────
# Events: offsets count from the start of the packet (params at 2)
# ────────────────────────────────────────────────────────────────
_EV_STATUS_HANDLE: Tuple[Field, ...] = (("Status", "d8", 2), ("Connection_Handle", "d16", 3))

HCI_EVENTS: Dict[int, Tuple[str, Tuple[Field, ...]]] = {
    0x00: ("Invalid/empty", ()),
    0x01: ("Inquiry Complete", (("Status", "d8", 2),)),
    0x03: ("Connection Complete", _EV_STATUS_HANDLE + (
        ("BD_ADDR", "addr", 5), ("Link_Type", "d8", 11), ("Encryption_Enabled", "d8", 12))),
    0x04: ("Connection Request", (
        ("BD_ADDR", "addr", 2), ("Class_of_Device", "x24", 8), ("Link_Type", "d8", 11))),
    0x05: ("Disconnection Complete", _EV_STATUS_HANDLE + (("Reason", "x8", 5),)),
    0x06: ("Authentication Complete", _EV_STATUS_HANDLE),
    0x07: ("Remote Name Request Complete", (
        ("Status", "d8", 2), ("BD_ADDR", "addr", 3), ("Remote_Name", "str", 9))),
    0x08: ("Encryption Change", _EV_STATUS_HANDLE + (("Encryption_Enabled", "d8", 5),)),
    0x0b: ("Read Remote Supported Features Complete", _EV_STATUS_HANDLE + (
        ("LMP_Features", "mask64", 5),)),
    0x0c: ("Read Remote Version Information Complete", _EV_STATUS_HANDLE + (
        ("Version", "d8", 5), ("Manufacturer_Name", "x16", 6), ("Subversion", "x16", 8))),
    0x0d: ("QoS Setup Complete", _EV_STATUS_HANDLE + (
        ("Flags", "x8", 5), ("Service_Type", "d8", 6), ("Token_Rate", "d32", 7),
        ("Peak_Bandwidth", "d32", 11), ("Latency", "d32", 15), ("Delay_Variation", "d32", 19))),
    0x0f: ("Command Status", (
        ("Status", "d8", 2), ("Num_HCI_Command_Packets", "d8", 3), ("Command_Opcode", "x16", 4))),
    0x10: ("Hardware Error", (("Hardware_Code", "x8", 2),)),
    0x12: ("Role Change", (("Status", "d8", 2), ("BD_ADDR", "addr", 3), ("New_Role", "d8", 9))),
    0x14: ("Mode Change", _EV_STATUS_HANDLE + (("Current_Mode", "d8", 5), ("Interval", "d16", 6))),
    0x16: ("PIN Code Request", (("BD_ADDR", "addr", 2),)),
    0x17: ("Link Key Request", (("BD_ADDR", "addr", 2),)),
    0x18: ("Link Key Notification", (
        ("BD_ADDR", "addr", 2), ("Link_Key", "key", 8), ("Key_Type", "d8", 24))),
    0x1b: ("Max Slots Change", (("Connection_Handle", "d16", 2), ("LMP_Max_Slots", "d8", 4))),
    0x1c: ("Read Clock Offset Complete", _EV_STATUS_HANDLE + (("Clock_Offset", "d16", 5),)),
}


def _inquiry_result(r: FieldReader) -> List[str]:
    # Parameters are parallel arrays: addresses, scan modes, reserved pairs,
    # classes, clock offsets.
    n = r.u8(2)
    lines = [f"  HCI event: Inquiry Result: {n} responses:"]
    for i in range(n):
        lines.append(
            f"    BD_ADDR={r.addr(3 + 6 * i)}, "
            f"Page_Scan_Repetition_Mode={r.u8(3 + 6 * n + i)}, "
            f"Class_of_Device=0x{r.le24(3 + 9 * n + 3 * i):06x}, "
            f"Clock_Offset={r.le16(3 + 12 * n + 2 * i)}"
        )
    return lines


def _completed_packets(r: FieldReader) -> List[str]:
    n = r.u8(2)
    lines = [f"  HCI event: Number of Completed Packets: {n} handles:"]
    for i in range(n):
        lines.append(
            f"    Connection_Handle={r.le16(3 + 2 * i)}, "
            f"HC_Num_Of_Completed_Packets={r.le16(3 + 2 * n + 2 * i)}"
        )
    return lines


def _remote_features(r: FieldReader) -> List[str]:
    name, fields = HCI_EVENTS[0x0b]
    lines = [f"  HCI event: {name}: {_render_fields(r, fields)}"]
    mask = r.raw(5, 8)
    for bit, feature in enumerate(LMP_FEATURES):
        if (mask[bit // 8] >> (bit % 8)) & 1:
            lines.append(f"    {feature}")
    return lines


def _command_complete(r: FieldReader) -> List[str]:
    plen = r.u8(1)
    opcode = r.le16(3)
    ret_len = max(0, plen - 3)
    lines = [
        f"  HCI event: Command Complete: Num_HCI_Command_Packets={r.u8(2)}, "
        f"Command_Opcode=0x{opcode:04x}, Return_Parameters={ret_len} bytes"
    ]
    return lines + decode_command_complete(opcode, r.raw(5)[:ret_len])


_EVENT_HANDLERS: Dict[int, Callable[[FieldReader], List[str]]] = {
    0x02: _inquiry_result,
    0x0b: _remote_features,
    0x0e: _command_complete,
    0x13: _completed_packets,
}


def decode_hci_event(data: bytes) -> List[str]:
    """Decode an HCI event packet received on the interrupt endpoint."""
    head = FieldReader(data)
    code = head.u8(0)
    plen = head.u8(1)
    r = FieldReader(data[:2 + plen])
    r.wanted = head.wanted

    handler = _EVENT_HANDLERS.get(code)
    if handler is not None:
        lines = handler(r)
    elif code in HCI_EVENTS:
        name, fields = HCI_EVENTS[code]
        body = _render_fields(r, fields)
        lines = [f"  HCI event: {name}" + (f": {body}" if body else "")]
    else:
        _LOGGER.debug("unhandled HCI event code %#04x", code)
        lines = [f"  HCI event: Unhandled event 0x{code:02x} ({plen} parameter bytes)"]
    return lines + _truncation_note(r)
