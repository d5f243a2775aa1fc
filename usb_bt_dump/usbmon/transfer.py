# usb_bt_dump/usbmon/transfer.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

from ..const import ENDPOINT_DIR_IN

__all__ = ["EventType", "TransferType", "StatusKind", "Transfer"]


class EventType(str, Enum):
    SUBMISSION = "S"
    COMPLETION = "C"
    ERROR = "E"


class TransferType(IntEnum):
    ISOCHRONOUS = 0
    INTERRUPT = 1
    CONTROL = 2
    BULK = 3

    @property
    def letter(self) -> str:
        return "ZICB"[self.value]

    @classmethod
    def from_letter(cls, ch: str) -> Optional["TransferType"]:
        idx = "ZICB".find(ch)
        return cls(idx) if idx >= 0 and ch else None


class StatusKind(Enum):
    """Which of the four status-block shapes a record carried."""

    SETUP = "setup"                  # "s bm bR wValue wIndex wLength"
    IN_PROGRESS = "in_progress"      # "-" on a submission
    STATUS = "status"                # "<status>[:interval[:start[:errors]]]"
    NOT_CAPTURED = "not_captured"    # single flag character


@dataclass(frozen=True)
class Transfer:
    """One usbmon event: a URB submission, completion or submission error."""

    urb_id: int
    ts_sec: int
    ts_usec: int
    event_type: EventType
    xfer_type: TransferType
    is_input: bool
    bus: int
    device: int
    endpoint: int
    status_kind: StatusKind
    status: int = 0
    setup: Optional[bytes] = None
    setup_flag: Optional[str] = None
    interval: Optional[int] = None
    start_frame: Optional[int] = None
    error_count: Optional[int] = None
    length: int = 0
    data: bytes = b""
    data_flag: Optional[str] = None

    def __post_init__(self) -> None:
        if len(self.data) > self.length:
            raise ValueError(f"captured {len(self.data)} bytes of a {self.length} byte transfer")
        if self.setup is not None and len(self.setup) != 8:
            raise ValueError(f"setup packet must be 8 bytes, got {len(self.setup)}")

    # ── derived fields ──────────────────────────────────────────
    @property
    def epnum(self) -> int:
        """Endpoint address: number plus the 0x80 direction bit."""
        return self.endpoint | (ENDPOINT_DIR_IN if self.is_input else 0)

    @property
    def len_cap(self) -> int:
        return len(self.data)

    @property
    def setup_captured(self) -> bool:
        return self.status_kind is StatusKind.SETUP

    @property
    def data_elided(self) -> bool:
        return self.data_flag is not None

    @property
    def short_capture(self) -> bool:
        return not self.data_elided and self.len_cap < self.length

    @property
    def timestamp(self) -> float:
        return self.ts_sec + self.ts_usec / 1_000_000
