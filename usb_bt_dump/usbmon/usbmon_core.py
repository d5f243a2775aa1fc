# usb_bt_dump/usbmon/usbmon_core.py
"""
usbmon text-API records: parse one line into a Transfer, render it back.

Record layout (fields separated by spaces):

    <urb-id> <timestamp> <event> <kind><dir>:<bus>:<dev>:<ep> <status-block> <length> [<data>]

The timestamp is either `sec.usec` or a bare microseconds counter. The status
block is a captured setup packet (`s bm bR wValue wIndex wLength`), a `-`
for an in-flight submission, a numeric status with `:interval[:start[:errors]]`
suffixes, or a single flag character when the setup packet was not captured.
The data block is absent, `=` followed by hex bytes, or a single flag
character when usbmon elided the payload.
"""

from __future__ import annotations

import logging
import re
import struct
from typing import List, NoReturn, Optional

from ..const import DEFAULT_MAX_PAYLOAD, EINPROGRESS
from ..exception import CaptureParseError, ParseFailure
from ..hexutil import fromhex, hex_words, is_hex_pair
from .transfer import EventType, StatusKind, Transfer, TransferType

__all__ = ["parse_usbmon", "format_usbmon", "SHORT_CAPTURE_MARK"]

_LOGGER = logging.getLogger(__name__)

_HEX_RE = re.compile(r"[0-9A-Fa-f]+")
_DEC_RE = re.compile(r"\d+")
_INT_RE = re.compile(r"-?\d+")

SHORT_CAPTURE_MARK = "..."


class _Cursor:
    """Left-to-right scanner over one record; never backtracks."""

    def __init__(self, text: str, line: str) -> None:
        self.text = text
        self.line = line
        self.pos = 0

    def peek(self, ahead: int = 0) -> str:
        i = self.pos + ahead
        return self.text[i] if i < len(self.text) else ""

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def at_space(self) -> bool:
        return self.peek().isspace()

    def skip_space(self) -> None:
        while self.at_space():
            self.pos += 1

    def take(self, regex: re.Pattern[str]) -> Optional[str]:
        m = regex.match(self.text, self.pos)
        if not m:
            return None
        self.pos = m.end()
        return m.group()

    def take_char(self) -> str:
        ch = self.peek()
        if ch:
            self.pos += 1
        return ch

    def expect(self, ch: str, failure: ParseFailure) -> None:
        if self.peek() != ch:
            self.fail(failure)
        self.pos += 1

    def expect_space(self, failure: ParseFailure) -> None:
        if not self.at_space():
            self.fail(failure)
        self.skip_space()

    def number(self, regex: re.Pattern[str], failure: ParseFailure, base: int = 10) -> int:
        tok = self.take(regex)
        if tok is None:
            self.fail(failure)
        return int(tok, base)

    def fail(self, failure: ParseFailure) -> NoReturn:
        raise CaptureParseError(failure, self.line)


# ────────────────────────────────────────────────────────────────
# Parser
# ────────────────────────────────────────────────────────────────
def parse_usbmon(line: str, max_payload: int = DEFAULT_MAX_PAYLOAD) -> Transfer:
    """
    Parse one usbmon text record.

    At most min(length, max_payload) payload bytes are kept. Raises
    CaptureParseError naming the first token that could not be parsed.
    """
    text = line.rstrip()
    cur = _Cursor(text, line)
    cur.skip_space()

    urb_id = cur.number(_HEX_RE, ParseFailure.URB_ID, 16)
    cur.expect_space(ParseFailure.URB_ID)

    ts = cur.number(_DEC_RE, ParseFailure.TIMESTAMP)
    if cur.peek() == ".":
        cur.pos += 1
        ts_sec = ts
        ts_usec = cur.number(_DEC_RE, ParseFailure.TIMESTAMP_USEC)
        if ts_usec > 999_999:
            cur.fail(ParseFailure.TIMESTAMP_USEC)
        cur.expect_space(ParseFailure.TIMESTAMP_USEC)
    else:
        ts_sec, ts_usec = divmod(ts, 1_000_000)
        cur.expect_space(ParseFailure.TIMESTAMP)

    try:
        event_type = EventType(cur.take_char())
    except ValueError:
        cur.fail(ParseFailure.EVENT_TYPE)
    cur.expect_space(ParseFailure.EVENT_TYPE)

    xfer_type = TransferType.from_letter(cur.take_char())
    if xfer_type is None:
        cur.fail(ParseFailure.TRANSFER_TYPE)
    direction = cur.take_char()
    if direction not in ("i", "o"):
        cur.fail(ParseFailure.DIRECTION)
    cur.expect(":", ParseFailure.ADDRESS)
    bus = cur.number(_DEC_RE, ParseFailure.BUS)
    cur.expect(":", ParseFailure.BUS)
    device = cur.number(_DEC_RE, ParseFailure.DEVICE)
    cur.expect(":", ParseFailure.DEVICE)
    endpoint = cur.number(_DEC_RE, ParseFailure.ENDPOINT) & 0x7F
    cur.expect_space(ParseFailure.ENDPOINT)

    fields = dict(
        urb_id=urb_id, ts_sec=ts_sec, ts_usec=ts_usec,
        event_type=event_type, xfer_type=xfer_type, is_input=(direction == "i"),
        bus=bus, device=device, endpoint=endpoint,
    )
    fields.update(_parse_status_block(cur, event_type, xfer_type))

    length = cur.number(_DEC_RE, ParseFailure.LENGTH)
    if not (cur.at_end() or cur.at_space()):
        cur.fail(ParseFailure.LENGTH)
    cur.skip_space()

    data, data_flag = _parse_data_block(cur, min(length, max_payload), length)
    return Transfer(length=length, data=data, data_flag=data_flag, **fields)


def _parse_status_block(cur: _Cursor, event_type: EventType, xfer_type: TransferType) -> dict:
    ch = cur.peek()
    nxt = cur.peek(1)

    if ch == "s" and nxt.isspace():
        cur.pos += 1
        cur.skip_space()
        words: List[int] = []
        for failure, limit in (
            (ParseFailure.SETUP_REQUEST_TYPE, 0xFF),
            (ParseFailure.SETUP_REQUEST, 0xFF),
            (ParseFailure.SETUP_VALUE, 0xFFFF),
            (ParseFailure.SETUP_INDEX, 0xFFFF),
            (ParseFailure.SETUP_LENGTH, 0xFFFF),
        ):
            v = cur.number(_HEX_RE, failure, 16)
            if v > limit:
                cur.fail(failure)
            cur.expect_space(failure)
            words.append(v)
        setup = bytes(words[:2]) + struct.pack("<HHH", *words[2:])
        return {"status_kind": StatusKind.SETUP, "setup": setup}

    if ch == "-" and not nxt.isdigit() and event_type is EventType.SUBMISSION:
        cur.pos += 1
        cur.expect_space(ParseFailure.STATUS)
        return {"status_kind": StatusKind.IN_PROGRESS, "status": -EINPROGRESS}

    if ch.isdigit() or (ch == "-" and nxt.isdigit()):
        out = {"status_kind": StatusKind.STATUS}
        out["status"] = cur.number(_INT_RE, ParseFailure.STATUS)
        if xfer_type in (TransferType.ISOCHRONOUS, TransferType.INTERRUPT):
            cur.expect(":", ParseFailure.INTERVAL)
            out["interval"] = cur.number(_INT_RE, ParseFailure.INTERVAL)
            if xfer_type is TransferType.ISOCHRONOUS:
                cur.expect(":", ParseFailure.START_FRAME)
                out["start_frame"] = cur.number(_INT_RE, ParseFailure.START_FRAME)
                if event_type is EventType.COMPLETION:
                    cur.expect(":", ParseFailure.ERROR_COUNT)
                    out["error_count"] = cur.number(_INT_RE, ParseFailure.ERROR_COUNT)
        cur.expect_space(ParseFailure.STATUS)
        return out

    if ch and not ch.isspace() and nxt.isspace():
        cur.pos += 1
        cur.skip_space()
        return {"status_kind": StatusKind.NOT_CAPTURED, "setup_flag": ch}

    cur.fail(ParseFailure.STATUS)


def _parse_data_block(cur: _Cursor, keep: int, length: int) -> tuple[bytes, Optional[str]]:
    if cur.at_end():
        return b"", None

    tag = cur.take_char()
    if tag != "=":
        if not cur.at_end():
            cur.fail(ParseFailure.DATA_TAG if not cur.at_space() else ParseFailure.TRAILING)
        return b"", tag

    buf = bytearray()
    seen = 0
    while True:
        cur.skip_space()
        if cur.at_end():
            break
        if cur.text.startswith(SHORT_CAPTURE_MARK, cur.pos):
            cur.pos += len(SHORT_CAPTURE_MARK)
            cur.skip_space()
            if not cur.at_end():
                cur.fail(ParseFailure.TRAILING)
            break
        if seen >= length:
            cur.fail(ParseFailure.TRAILING)
        pair = cur.text[cur.pos:cur.pos + 2]
        if not is_hex_pair(pair):
            cur.fail(ParseFailure.DATA_BYTES)
        cur.pos += 2
        if seen < keep:
            buf.append((fromhex(pair[0]) << 4) | fromhex(pair[1]))
        seen += 1

    if seen > keep:
        _LOGGER.debug("payload capped at %d of %d captured bytes", keep, seen)
    return bytes(buf), None


# ────────────────────────────────────────────────────────────────
# Printer
# ────────────────────────────────────────────────────────────────
def _format_status_block(t: Transfer) -> str:
    if t.status_kind is StatusKind.SETUP:
        s = t.setup or bytes(8)
        bm, br, w_value, w_index, w_length = struct.unpack("<BBHHH", s)
        return f"s {bm:02x} {br:02x} {w_value:04x} {w_index:04x} {w_length:04x}"
    if t.status_kind is StatusKind.IN_PROGRESS:
        return "-"
    if t.status_kind is StatusKind.NOT_CAPTURED:
        return t.setup_flag or "?"
    out = str(t.status)
    for extra in (t.interval, t.start_frame, t.error_count):
        if extra is None:
            break
        out += f":{extra}"
    return out


def format_usbmon(t: Transfer) -> str:
    """Canonical one-line summary; parse_usbmon() accepts it back."""
    out = (
        f"{t.urb_id:016x} {t.ts_sec}.{t.ts_usec:06d} {t.event_type.value} "
        f"{t.xfer_type.letter}{'i' if t.is_input else 'o'}:{t.bus}:{t.device:03d}:{t.endpoint} "
        f"{_format_status_block(t)} {t.length}"
    )
    if t.length == 0:
        return out
    if t.data_flag is not None:
        return f"{out} {t.data_flag}"
    out += " =" + hex_words(t.data)
    if t.short_capture:
        out += " " + SHORT_CAPTURE_MARK
    return out
