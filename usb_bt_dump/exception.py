"""Exceptions for usb_bt_dump."""

from __future__ import annotations

from enum import IntEnum


class UsbBtDumpError(Exception):
    """Base class for dissector errors."""


class ParseFailure(IntEnum):
    """Which token of a usbmon text record could not be parsed."""

    URB_ID = 1
    TIMESTAMP = 2
    TIMESTAMP_USEC = 3
    EVENT_TYPE = 4
    TRANSFER_TYPE = 5
    DIRECTION = 6
    ADDRESS = 7
    BUS = 8
    DEVICE = 9
    ENDPOINT = 10
    SETUP_REQUEST_TYPE = 11
    SETUP_REQUEST = 12
    SETUP_VALUE = 13
    SETUP_INDEX = 14
    SETUP_LENGTH = 15
    INTERVAL = 16
    START_FRAME = 17
    ERROR_COUNT = 18
    STATUS = 19
    LENGTH = 20
    DATA_TAG = 21
    DATA_BYTES = 22
    TRAILING = 23

    @property
    def field_name(self) -> str:
        return _FIELD_NAMES[self]


_FIELD_NAMES = {
    ParseFailure.URB_ID: "URB id",
    ParseFailure.TIMESTAMP: "timestamp",
    ParseFailure.TIMESTAMP_USEC: "timestamp microseconds",
    ParseFailure.EVENT_TYPE: "event type",
    ParseFailure.TRANSFER_TYPE: "transfer type",
    ParseFailure.DIRECTION: "direction",
    ParseFailure.ADDRESS: "address separator",
    ParseFailure.BUS: "bus number",
    ParseFailure.DEVICE: "device number",
    ParseFailure.ENDPOINT: "endpoint number",
    ParseFailure.SETUP_REQUEST_TYPE: "setup bmRequestType",
    ParseFailure.SETUP_REQUEST: "setup bRequest",
    ParseFailure.SETUP_VALUE: "setup wValue",
    ParseFailure.SETUP_INDEX: "setup wIndex",
    ParseFailure.SETUP_LENGTH: "setup wLength",
    ParseFailure.INTERVAL: "interval",
    ParseFailure.START_FRAME: "start frame",
    ParseFailure.ERROR_COUNT: "error count",
    ParseFailure.STATUS: "status",
    ParseFailure.LENGTH: "data length",
    ParseFailure.DATA_TAG: "data tag",
    ParseFailure.DATA_BYTES: "data bytes",
    ParseFailure.TRAILING: "trailing text",
}


class CaptureParseError(UsbBtDumpError, ValueError):
    """A usbmon text record is malformed; the line is skipped."""

    def __init__(self, failure: ParseFailure, line: str = "") -> None:
        self.failure = failure
        self.line = line
        super().__init__(f"parse failure {int(failure)} ({failure.field_name})")
