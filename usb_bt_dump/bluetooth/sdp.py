# usb_bt_dump/bluetooth/sdp.py
"""
Service Discovery Protocol: data elements and request/response PDUs.

SDP is big-endian throughout. A data element starts with a tag byte whose
high five bits give the type and low three bits the size index:

    index 0..4  fixed width of 1, 2, 4, 8 or 16 bytes
    index 5..7  an 8-, 16- or 32-bit length field follows the tag

Sequences and alternatives contain further elements up to their declared
length. A declared length larger than the captured bytes is reported as
missing rather than read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..hexutil import FieldReader, escape_text

__all__ = ["SdpElement", "decode_data_element", "decode_sdp_pdu", "TRUNCATION_MARK"]

_LOGGER = logging.getLogger(__name__)

TRUNCATION_MARK = " ..."

_FIXED_SIZES = (1, 2, 4, 8, 16)
_LENGTH_FIELD = {5: 1, 6: 2, 7: 4}

TYPE_NIL = 0
TYPE_UINT = 1
TYPE_INT = 2
TYPE_UUID = 3
TYPE_TEXT = 4
TYPE_BOOL = 5
TYPE_SEQUENCE = 6
TYPE_ALTERNATIVE = 7
TYPE_URL = 8


@dataclass(frozen=True)
class SdpElement:
    """One decoded element: rendered text, position after it, bytes missing."""

    text: str
    pos: int
    missing: int = 0

    @property
    def truncated(self) -> bool:
        return self.missing > 0


# ────────────────────────────────────────────────────────────────
# Scalar rendering
# ────────────────────────────────────────────────────────────────
def _hex_groups(raw: bytes) -> str:
    """0x-prefixed hex, 32-bit groups joined by '_' for values over 4 bytes."""
    words = [raw[i:i + 4].hex() for i in range(0, len(raw), 4)]
    return "0x" + "_".join(words)


def _render_uint(raw: bytes) -> str:
    if len(raw) <= 2:
        return str(int.from_bytes(raw, "big"))
    return _hex_groups(raw)


def _render_int(raw: bytes) -> str:
    if len(raw) <= 8:
        return str(int.from_bytes(raw, "big", signed=True))
    return _hex_groups(raw)


def _render_uuid(raw: bytes) -> str:
    if len(raw) == 2:
        return f"0x{int.from_bytes(raw, 'big'):04x}"
    if len(raw) == 4:
        return f"0x{int.from_bytes(raw, 'big'):08x}"
    if len(raw) == 16:
        h = raw.hex()
        return f"{h[0:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"
    return _hex_groups(raw)


def _render_scalar(type_id: int, raw: bytes) -> str:
    size = len(raw)
    if type_id == TYPE_UINT:
        return f"uint{size}({_render_uint(raw)})"
    if type_id == TYPE_INT:
        return f"int{size}({_render_int(raw)})"
    if type_id == TYPE_UUID:
        return f"uuid{size}({_render_uuid(raw)})"
    if type_id == TYPE_TEXT:
        return f'"{escape_text(raw)}"'
    if type_id == TYPE_URL:
        return f'URL:"{escape_text(raw)}"'
    if type_id == TYPE_BOOL:
        return f"bool({'true' if raw[0] else 'false'})"
    return f"reserved(Type={type_id}, Size={size})"


def _label(type_id: int, size: Optional[int] = None) -> str:
    """Short name for an element whose value could not be rendered."""
    width = "" if size is None else str(size)
    if type_id == TYPE_UINT:
        return f"uint{width}"
    if type_id == TYPE_INT:
        return f"int{width}"
    if type_id == TYPE_UUID:
        return f"uuid{width}"
    if type_id == TYPE_BOOL:
        return "bool"
    if type_id == TYPE_TEXT:
        return "str"
    if type_id == TYPE_URL:
        return "URL"
    if type_id in (TYPE_SEQUENCE, TYPE_ALTERNATIVE):
        return "seq" if type_id == TYPE_SEQUENCE else "alt"
    return f"reserved(Type={type_id}, Size={width or '?'})"


# ────────────────────────────────────────────────────────────────
# Recursive descent
# ────────────────────────────────────────────────────────────────
def decode_data_element(data: bytes, pos: int = 0, end: Optional[int] = None) -> SdpElement:
    """
    Decode the element starting at data[pos], never reading at or past `end`.

    A truncated element (or one containing a truncated element) comes back
    with `missing` > 0; its text ends at the innermost truncation point.
    """
    if end is None or end > len(data):
        end = len(data)
    if pos >= end:
        return SdpElement(TRUNCATION_MARK.lstrip(), pos, 1)

    tag = data[pos]
    pos += 1
    type_id = tag >> 3
    size_idx = tag & 7

    if size_idx in _LENGTH_FIELD:
        width = _LENGTH_FIELD[size_idx]
        if pos + width > end:
            need = pos + width - end
            return SdpElement(_label(type_id) + TRUNCATION_MARK, end, need)
        size = int.from_bytes(data[pos:pos + width], "big")
        pos += width
    elif type_id == TYPE_NIL:
        size = 0
    else:
        size = _FIXED_SIZES[size_idx]

    if type_id == TYPE_NIL:
        return SdpElement("nil", min(pos + size, end))

    avail = end - pos
    if type_id in (TYPE_SEQUENCE, TYPE_ALTERNATIVE):
        return _decode_container(data, type_id, pos, size, end)

    if size > avail:
        return SdpElement(_label(type_id, size) + TRUNCATION_MARK, end, size - avail)
    if type_id == TYPE_BOOL and size == 0:
        return SdpElement("bool()", pos)
    return SdpElement(_render_scalar(type_id, data[pos:pos + size]), pos + size)


def _decode_container(data: bytes, type_id: int, pos: int, size: int, end: int) -> SdpElement:
    own_missing = max(0, pos + size - end)
    sub_end = min(pos + size, end)
    items: List[str] = []
    cur = pos
    child_missing = 0
    while cur < sub_end:
        elem = decode_data_element(data, cur, sub_end)
        items.append(elem.text)
        cur = elem.pos
        if elem.truncated:
            child_missing = elem.missing
            break

    opener = "seq" if type_id == TYPE_SEQUENCE else "alt"
    body = ", ".join(items)
    if own_missing and not child_missing:
        body = (body + TRUNCATION_MARK) if body else TRUNCATION_MARK.lstrip()
    text = f"{opener} {{ {body} }}" if body else f"{opener} {{ }}"
    return SdpElement(text, sub_end, own_missing or child_missing)


# ────────────────────────────────────────────────────────────────
# PDUs
# ────────────────────────────────────────────────────────────────
PDU_NAMES: Dict[int, str] = {
    0x01: "SDP_ErrorResponse",
    0x02: "SDP_ServiceSearchRequest",
    0x03: "SDP_ServiceSearchResponse",
    0x04: "SDP_ServiceAttributeRequest",
    0x05: "SDP_ServiceAttributeResponse",
    0x06: "SDP_ServiceSearchAttributeRequest",
    0x07: "SDP_ServiceSearchAttributeResponse",
}


class _PduWriter:
    """Collects `Name=value` parts while walking a PDU left to right."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.r = FieldReader(data)
        self.parts: List[str] = []
        self.missing = 0

    def add(self, name: str, value: str) -> None:
        self.parts.append(f"{name}={value}")

    def element(self, name: str, pos: int, end: Optional[int] = None) -> int:
        elem = decode_data_element(self.data, pos, end)
        self.add(name, elem.text)
        self.missing += elem.missing
        return elem.pos

    def continuation(self, pos: int) -> None:
        if pos < len(self.data):
            self.add("ContinuationState", f"{self.data[pos]} bytes")
        else:
            self.add("ContinuationState", "? bytes")

    def line(self, name: str) -> str:
        out = f"  {name}({', '.join(self.parts)})"
        if self.missing or self.r.missing:
            out += f" [{self.missing + self.r.missing} bytes missing]"
        return out


def decode_sdp_pdu(data: bytes) -> List[str]:
    """Decode one SDP PDU carried on an L2CAP channel bound to PSM 0x0001."""
    w = _PduWriter(data)
    pdu_id = w.r.u8(0)
    txn_id = w.r.be16(1)
    param_len = w.r.be16(3)
    name = PDU_NAMES.get(pdu_id)
    if name is None:
        _LOGGER.debug("unhandled SDP PDU id %#04x", pdu_id)
        return [f"  Unhandled SDP PDU (PDU_ID={pdu_id}, TxnId={txn_id}, Length={param_len})"]

    w.add("TxnId", str(txn_id))
    if pdu_id == 0x01:
        w.add("ErrorCode", f"0x{w.r.be16(5):04x}")
    elif pdu_id == 0x02:
        pos = w.element("ServiceSearchPattern", 5)
        w.add("MaximumServiceRecordCount", str(w.r.be16(pos)))
        w.continuation(pos + 2)
    elif pdu_id == 0x03:
        current = w.r.be16(7)
        w.add("TotalServiceRecordCount", str(w.r.be16(5)))
        w.add("CurrentServiceRecordCount", str(current))
        # a corrupt count must not outrun the capture
        shown = min(current, max(0, (len(data) - 9) // 4))
        handles = [f"0x{w.r.be32(9 + 4 * i):08x}" for i in range(shown)]
        w.missing += 4 * (current - shown)
        w.add("ServiceRecordHandleList", "[" + ", ".join(handles) + "]")
        w.continuation(9 + 4 * current)
    elif pdu_id == 0x04:
        w.add("ServiceRecordHandle", f"0x{w.r.be32(5):08x}")
        w.add("MaximumAttributeByteCount", str(w.r.be16(9)))
        pos = w.element("AttributeIDList", 11)
        w.continuation(pos)
    elif pdu_id == 0x06:
        pos = w.element("ServiceSearchPattern", 5)
        w.add("MaximumAttributeByteCount", str(w.r.be16(pos)))
        pos = w.element("AttributeIDList", pos + 2)
        w.continuation(pos)
    else:
        # 0x05 / 0x07: the attribute list may continue in a later response
        count = w.r.be16(5)
        label = "AttributeListByteCount" if pdu_id == 0x05 else "AttributeListsByteCount"
        w.add(label, str(count))
        w.element("AttributeList" if pdu_id == 0x05 else "AttributeLists", 7, 7 + count)
        w.continuation(7 + count)
    return [w.line(name)]
