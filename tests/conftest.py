"""Shared capture lines and frame builders."""

from __future__ import annotations

import struct

import pytest

SCENARIO_A = "00000001 1.000000 S Ci:0:0:0 s 20 00 0000 0000 0000 4 "
BAD_DEVICE = "00000001 1.000000 S Ci:0:x:0 s 20 00 0000 0000 0000 4"

# SDP_ServiceSearchAttributeRequest: pattern { uuid2 0x0100 }, max 64 bytes,
# attribute ids { 0x0000-0xffff }, no continuation
SDP_SSA_REQUEST = bytes.fromhex("060001000f" "3503190100" "0040" "35050a0000ffff" "00")


def acl(cid: int, payload: bytes, handle: int = 0x2001) -> bytes:
    return struct.pack("<HHHH", handle, len(payload) + 4, len(payload), cid) + payload


def signal(code: int, ident: int, body: bytes) -> bytes:
    return struct.pack("<BBH", code, ident, len(body)) + body


def bulk_line(data: bytes, inbound: bool = False, urb: int = 1) -> str:
    if inbound:
        return f"{urb:08x} 1.{urb:06d} C Bi:1:002:2 0 {len(data)} = {data.hex()}"
    return f"{urb:08x} 1.{urb:06d} S Bo:1:002:2 -115 {len(data)} = {data.hex()}"


def scenario_b_lines() -> list:
    conn_req = signal(0x02, 0x05, struct.pack("<HH", 0x0001, 0x0040))
    conn_resp = signal(0x03, 0x05, struct.pack("<HHHH", 0x0041, 0x0040, 0, 0))
    return [
        bulk_line(acl(0x0001, conn_req), urb=1),
        bulk_line(acl(0x0001, conn_resp), inbound=True, urb=2),
        bulk_line(acl(0x0041, SDP_SSA_REQUEST), urb=3),
    ]


@pytest.fixture
def capture_file(tmp_path):
    def _write(lines, name="capture.txt"):
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write
