# usb_bt_dump/hexutil.py
"""Byte-field extraction and hex formatting helpers shared by all decoders."""

from __future__ import annotations

import string
import struct
from typing import Optional

__all__ = [
    "get_be16", "get_be32", "get_le16", "get_le24", "get_le32", "get_s8",
    "fromhex", "is_hex_pair", "hex_words", "bt_addr", "escape_text",
    "FieldReader",
]

_BE16 = struct.Struct(">H")
_BE32 = struct.Struct(">I")
_LE16 = struct.Struct("<H")
_LE32 = struct.Struct("<I")

_HEXDIGITS = frozenset(string.hexdigits)
_PRINTABLE = frozenset(range(0x20, 0x7F))


# ────────────────────────────────────────────────────────────────
# Endian field extraction (strict: raise struct.error when short)
# ────────────────────────────────────────────────────────────────
def get_be16(data: bytes, off: int = 0) -> int:
    return _BE16.unpack_from(data, off)[0]

def get_be32(data: bytes, off: int = 0) -> int:
    return _BE32.unpack_from(data, off)[0]

def get_le16(data: bytes, off: int = 0) -> int:
    return _LE16.unpack_from(data, off)[0]

def get_le24(data: bytes, off: int = 0) -> int:
    if off < 0 or off + 3 > len(data):
        raise struct.error(f"need 3 bytes at offset {off}, have {len(data)}")
    return data[off] | (data[off + 1] << 8) | (data[off + 2] << 16)

def get_le32(data: bytes, off: int = 0) -> int:
    return _LE32.unpack_from(data, off)[0]

def get_s8(data: bytes, off: int = 0) -> int:
    v = data[off]
    return v - 256 if v & 0x80 else v


# ────────────────────────────────────────────────────────────────
# Hex digits / formatting
# ────────────────────────────────────────────────────────────────
def fromhex(ch: str) -> int:
    """Value of a single hex digit (either case)."""
    return int(ch, 16)

def is_hex_pair(s: str) -> bool:
    return len(s) == 2 and s[0] in _HEXDIGITS and s[1] in _HEXDIGITS

def hex_words(data: bytes, word: int = 4) -> str:
    """Lowercase hex, a space before every `word`-byte group (usbmon layout)."""
    return "".join(
        (" " if i % word == 0 else "") + f"{b:02x}" for i, b in enumerate(data)
    )

def bt_addr(data: bytes, off: int = 0) -> str:
    """Six bytes as colon-separated pairs, in wire order."""
    return ":".join(f"{b:02x}" for b in data[off:off + 6])

def escape_text(raw: bytes) -> str:
    """Printable ASCII passes through; everything else becomes \\xNN."""
    return "".join(chr(b) if b in _PRINTABLE else f"\\x{b:02x}" for b in raw)


class FieldReader:
    """
    Zero-filling view over a captured payload.

    Decoders describe fixed-offset layouts; when the capture is shorter than
    the layout, missing bytes read as zero and `wanted` records how far the
    layout reached so the caller can flag the block as truncated.
    """

    def __init__(self, data: bytes, base: int = 0) -> None:
        self.data = bytes(data)
        self.base = base
        self.wanted = 0

    def __len__(self) -> int:
        return max(0, len(self.data) - self.base)

    def _take(self, off: int, n: int) -> bytes:
        start = self.base + off
        self.wanted = max(self.wanted, off + n)
        chunk = self.data[start:start + n]
        if len(chunk) < n:
            chunk = chunk + bytes(n - len(chunk))
        return chunk

    @property
    def missing(self) -> int:
        return max(0, self.wanted - len(self))

    def u8(self, off: int) -> int:
        return self._take(off, 1)[0]

    def s8(self, off: int) -> int:
        return get_s8(self._take(off, 1))

    def le16(self, off: int) -> int:
        return get_le16(self._take(off, 2))

    def le24(self, off: int) -> int:
        return get_le24(self._take(off, 3))

    def le32(self, off: int) -> int:
        return get_le32(self._take(off, 4))

    def be16(self, off: int) -> int:
        return get_be16(self._take(off, 2))

    def be32(self, off: int) -> int:
        return get_be32(self._take(off, 4))

    def addr(self, off: int) -> str:
        return bt_addr(self._take(off, 6))

    def raw(self, off: int, n: Optional[int] = None) -> bytes:
        """Bytes from `off`; to the end of the capture when n is None."""
        if n is None:
            return self.data[self.base + off:]
        return self._take(off, n)

    def cstring(self, off: int) -> str:
        """NUL-terminated text from `off` to the end of the capture."""
        return escape_text(self.raw(off).split(b"\0", 1)[0])
