# usb_bt_dump/bluetooth/l2cap.py
"""
L2CAP over HCI ACL: signaling channel, configuration options and dispatch of
dynamic-channel payloads by the PSM their channel was opened for.

Bulk transfers carry one ACL packet each:

    handle+flags(le16) acl_len(le16) | l2cap_len(le16) cid(le16) | payload

Channel→PSM bindings are learned from Connection Request/Response pairs on
the signaling channel and live in a ChannelBindings owned by the caller.
Host and controller allocate CIDs independently, so every binding is keyed by
the direction of the frames that carry the CID: `inbound` is True for
device→host transfers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..const import (
    ACL_PB_CONTINUATION,
    L2CAP_CID_DYNAMIC,
    L2CAP_CID_SIGNALING,
    L2CAP_HEADER_LEN,
    PSM_HID_CONTROL,
    PSM_HID_INTERRUPT,
    PSM_SDP,
)
from ..hexutil import FieldReader, get_le16
from .bt_hid import decode_bt_hid
from .sdp import decode_sdp_pdu

__all__ = ["ChannelBindings", "decode_l2cap", "decode_config_option"]

_LOGGER = logging.getLogger(__name__)

L2CAP_CMD_REJECT = 0x01
L2CAP_CMD_CONN_REQ = 0x02
L2CAP_CMD_CONN_RESP = 0x03
L2CAP_CMD_CFG_REQ = 0x04
L2CAP_CMD_CFG_RESP = 0x05
L2CAP_CMD_DISCONN_REQ = 0x06
L2CAP_CMD_DISCONN_RESP = 0x07
L2CAP_CMD_ECHO_REQ = 0x08
L2CAP_CMD_ECHO_RESP = 0x09
L2CAP_CMD_INFO_REQ = 0x0A
L2CAP_CMD_INFO_RESP = 0x0B

CONN_SUCCESS = 0
CONN_PENDING = 1

INFO_TYPES: Dict[int, str] = {
    0x0001: "Connectionless MTU",
    0x0002: "Extended features",
    0x0003: "Fixed channels",
}


# ────────────────────────────────────────────────────────────────
# Channel binding state
# ────────────────────────────────────────────────────────────────
@dataclass
class ChannelBindings:
    """
    Per-capture channel state.

    `pending_psm` maps (request direction, request id) to the PSM a
    Connection Request asked for; `channel_psm` maps (frame direction, CID)
    to the PSM of an open channel. Request ids are one byte and get reused,
    so a reused id simply overwrites the older pending entry.

    A Connection Response names the responder's endpoint as Dest_CID and
    echoes the requester's as Source_CID. Frames addressed to the responder
    travel opposite to the response, frames addressed to the requester travel
    with it.
    """

    pending_psm: Dict[Tuple[bool, int], int] = field(default_factory=dict)
    channel_psm: Dict[Tuple[bool, int], int] = field(default_factory=dict)

    def request(self, req_id: int, psm: int, inbound: bool = False) -> None:
        self.pending_psm[(inbound, req_id)] = psm

    def respond(
        self, req_id: int, dest_cid: int, source_cid: int, result: int, inbound: bool = True
    ) -> None:
        if result == CONN_PENDING:
            return
        psm = self.pending_psm.pop((not inbound, req_id), None)
        if result != CONN_SUCCESS:
            return
        if psm is None:
            _LOGGER.debug("connection response id %#04x has no pending request", req_id)
            return
        self._bind((not inbound, dest_cid), psm)
        self._bind((inbound, source_cid), psm)

    def _bind(self, key: Tuple[bool, int], psm: int) -> None:
        if key[1] < L2CAP_CID_DYNAMIC:
            return
        self.channel_psm[key] = psm
        _LOGGER.debug("bound %s CID %d to PSM %#06x", "inbound" if key[0] else "outbound", key[1], psm)

    def release(self, *keys: Tuple[bool, int]) -> None:
        for key in keys:
            if self.channel_psm.pop(key, None) is not None:
                _LOGGER.debug("released %s CID %d", "inbound" if key[0] else "outbound", key[1])

    def disconnect(self, dest_cid: int, source_cid: int, inbound: bool, response: bool) -> None:
        """Both ends of a closed channel; a response echoes the request's CIDs."""
        if response:
            self.release((not inbound, dest_cid), (inbound, source_cid))
        else:
            self.release((inbound, dest_cid), (not inbound, source_cid))

    def psm_for(self, cid: int, inbound: bool = False) -> Optional[int]:
        return self.channel_psm.get((inbound, cid))


# ────────────────────────────────────────────────────────────────
# Configuration options
# ────────────────────────────────────────────────────────────────
def decode_config_option(opt_type: int, value: bytes) -> str:
    """One configuration option; bit 7 of the type marks it as a hint."""
    r = FieldReader(value)
    kind = opt_type & 0x7F
    out = "    " + ("Hint" if opt_type & 0x80 else "Reqd") + " "
    if kind == 0x01:
        out += f"MTU = {r.le16(0)}"
    elif kind == 0x02:
        out += f"Flush_Timeout = {r.le16(0)}"
    elif kind == 0x03:
        out += (
            f"QoS: Flags={r.u8(0)}, Service_Type={r.u8(1)}, Token_Rate={r.le32(2)}, "
            f"Token_Bucket_Size={r.le32(6)}, Peak_Bandwidth={r.le32(10)}, "
            f"Latency={r.le32(14)}, Delay_Variation={r.le32(18)}"
        )
    elif kind == 0x04:
        out += (
            f"Rexmit: Mode={r.u8(0)}, TxWindowSize={r.u8(1)}, MaxTx={r.u8(2)}, "
            f"RexmitTimeout={r.le16(3)}, MonitorTimeout={r.le16(5)}, Max_PDU={r.le16(7)}"
        )
    elif kind == 0x05:
        out += f"FCS = {r.u8(0)}"
    elif kind == 0x07:
        out += f"Extended_Window_Size = {r.le16(0)}"
    else:
        return out + f"unknown option {opt_type} ({len(value)} bytes)"
    if r.missing:
        out += f" (truncated: {len(value)} of {r.wanted} bytes)"
    return out


def _config_options(body: bytes, start: int) -> List[str]:
    lines: List[str] = []
    pos = start
    while pos + 2 <= len(body):
        opt_type, opt_len = body[pos], body[pos + 1]
        lines.append(decode_config_option(opt_type, body[pos + 2:pos + 2 + opt_len]))
        pos += 2 + opt_len
    if pos < len(body):
        lines.append(f"    (partial option header: {len(body) - pos} bytes)")
    return lines


# ────────────────────────────────────────────────────────────────
# Signaling commands
# ────────────────────────────────────────────────────────────────
def _info_data(raw: bytes) -> str:
    if not raw:
        return "<empty>"
    if len(raw) == 2:
        return f"0x{get_le16(raw):04x}"
    if len(raw) == 4:
        return f"0x{int.from_bytes(raw, 'little'):08x}"
    return f"{len(raw)} bytes"


def _info_type(value: int) -> str:
    name = INFO_TYPES.get(value)
    return f"{value} ({name})" if name else str(value)


def _decode_signal(
    code: int, ident: int, clen: int, body: bytes, bindings: ChannelBindings, inbound: bool
) -> List[str]:
    r = FieldReader(body)
    idt = f"Id=0x{ident:02x}"

    if code == L2CAP_CMD_REJECT:
        lines = [f"  L2CAP Command Reject ({idt}, Reason=0x{r.le16(0):04x})"]
    elif code == L2CAP_CMD_CONN_REQ:
        psm, scid = r.le16(0), r.le16(2)
        lines = [f"  L2CAP Connection Request ({idt}, PSM=0x{psm:04x}, Source_CID={scid})"]
        bindings.request(ident, psm, inbound)
    elif code == L2CAP_CMD_CONN_RESP:
        dcid, scid, result, status = r.le16(0), r.le16(2), r.le16(4), r.le16(6)
        lines = [
            f"  L2CAP Connection Response ({idt}, Dest_CID={dcid}, Source_CID={scid}, "
            f"Result={result}, Status={status})"
        ]
        bindings.respond(ident, dcid, scid, result, inbound)
    elif code == L2CAP_CMD_CFG_REQ:
        options = _config_options(body, 4)
        lines = [
            f"  L2CAP Configuration Request ({idt}, Dest_CID={r.le16(0)}, "
            f"Flags=0x{r.le16(2):x})" + (":" if options else "")
        ] + options
    elif code == L2CAP_CMD_CFG_RESP:
        options = _config_options(body, 6)
        lines = [
            f"  L2CAP Configuration Response ({idt}, Source_CID={r.le16(0)}, "
            f"Flags=0x{r.le16(2):x}, Result={r.le16(4)})" + (":" if options else "")
        ] + options
    elif code in (L2CAP_CMD_DISCONN_REQ, L2CAP_CMD_DISCONN_RESP):
        dcid, scid = r.le16(0), r.le16(2)
        name = "Request" if code == L2CAP_CMD_DISCONN_REQ else "Response"
        lines = [f"  L2CAP Disconnection {name} ({idt}, Dest_CID={dcid}, Source_CID={scid})"]
        bindings.disconnect(dcid, scid, inbound, response=(code == L2CAP_CMD_DISCONN_RESP))
    elif code in (L2CAP_CMD_ECHO_REQ, L2CAP_CMD_ECHO_RESP):
        name = "Request" if code == L2CAP_CMD_ECHO_REQ else "Response"
        lines = [f"  L2CAP Echo {name} ({idt}, Length={clen})"]
    elif code == L2CAP_CMD_INFO_REQ:
        lines = [f"  L2CAP Information Request ({idt}, InfoType={_info_type(r.le16(0))})"]
    elif code == L2CAP_CMD_INFO_RESP:
        lines = [
            f"  L2CAP Information Response ({idt}, InfoType={_info_type(r.le16(0))}, "
            f"Result={r.le16(2)}, Data={_info_data(body[4:])})"
        ]
    else:
        _LOGGER.debug("unhandled L2CAP signaling command %#04x", code)
        return [f"  Unhandled L2CAP signaling command (Command=0x{code:02x}, {clen} bytes data)"]

    if r.missing or len(body) < clen:
        lines.append(f"  (truncated: {len(body)} of {max(clen, r.wanted)} bytes captured)")
    return lines


def _decode_signaling(payload: bytes, bindings: ChannelBindings, inbound: bool) -> List[str]:
    lines: List[str] = []
    pos = 0
    while pos + 4 <= len(payload):
        code, ident = payload[pos], payload[pos + 1]
        clen = get_le16(payload, pos + 2)
        body = payload[pos + 4:pos + 4 + clen]
        lines += _decode_signal(code, ident, clen, body, bindings, inbound)
        pos += 4 + clen
    if pos < len(payload):
        lines.append(f"  (partial signaling command header: {len(payload) - pos} bytes)")
    if not lines:
        lines.append("  Empty L2CAP signaling frame")
    return lines


# ────────────────────────────────────────────────────────────────
# Frame entry point
# ────────────────────────────────────────────────────────────────
def decode_l2cap(data: bytes, bindings: ChannelBindings, inbound: bool = False) -> List[str]:
    """Decode one ACL packet captured on a bulk endpoint; `inbound` is device→host."""
    if len(data) < 4:
        return [f"  Truncated ACL header ({len(data)} of 4 bytes captured)"]
    raw_handle = get_le16(data, 0)
    handle = raw_handle & 0x0FFF
    acl_len = get_le16(data, 2)
    if (raw_handle >> 12) & 0x3 == ACL_PB_CONTINUATION:
        return [f"  L2CAP continuation fragment (Handle=0x{handle:03x}, ACL_Length={acl_len})"]
    if len(data) < L2CAP_HEADER_LEN:
        return [f"  Truncated L2CAP header ({len(data)} of {L2CAP_HEADER_LEN} bytes captured)"]

    l2cap_len = get_le16(data, 4)
    cid = get_le16(data, 6)
    limit = max(0, min(len(data) - L2CAP_HEADER_LEN, acl_len - 4, l2cap_len))
    payload = data[L2CAP_HEADER_LEN:L2CAP_HEADER_LEN + limit]

    if cid == L2CAP_CID_SIGNALING:
        return _decode_signaling(payload, bindings, inbound)

    if cid >= L2CAP_CID_DYNAMIC:
        psm = bindings.psm_for(cid, inbound)
        if psm is None:
            return [f"  Unhandled user data on unbound CID={cid} (Length={l2cap_len})"]
        if psm == PSM_SDP:
            return decode_sdp_pdu(payload)
        if psm in (PSM_HID_CONTROL, PSM_HID_INTERRUPT):
            return decode_bt_hid(payload)
        return [f"  Unhandled user data on L2CAP PSM 0x{psm:04x} (CID={cid}, Length={l2cap_len})"]

    return [
        f"  Unhandled L2CAP fragment (Handle=0x{handle:03x}, L2CAP_Length={l2cap_len}, "
        f"L2CAP_CID={cid})"
    ]
