import pytest
from conftest import BAD_DEVICE, SCENARIO_A

from usb_bt_dump.exception import CaptureParseError, ParseFailure
from usb_bt_dump.usbmon import (
    EventType,
    StatusKind,
    Transfer,
    TransferType,
    format_usbmon,
    parse_usbmon,
)


def test_scenario_a_without_data_block():
    t = parse_usbmon(SCENARIO_A)
    assert t.urb_id == 1
    assert (t.ts_sec, t.ts_usec) == (1, 0)
    assert t.event_type is EventType.SUBMISSION
    assert t.xfer_type is TransferType.CONTROL
    assert t.is_input
    assert (t.bus, t.device, t.endpoint) == (0, 0, 0)
    assert t.status_kind is StatusKind.SETUP
    assert t.setup == bytes([0x20, 0x00, 0, 0, 0, 0, 0, 0])
    assert t.length == 4
    assert t.data == b""
    assert t.short_capture


def test_interrupt_completion():
    t = parse_usbmon("ffff8800 5.000123 C Ii:1:002:1 0:1 3 = 0e0401")
    assert t.status_kind is StatusKind.STATUS
    assert t.status == 0
    assert t.interval == 1
    assert t.epnum == 0x81
    assert t.data == b"\x0e\x04\x01"
    assert format_usbmon(t) == "00000000ffff8800 5.000123 C Ii:1:002:1 0:1 3 = 0e0401"


def test_isochronous_completion_extras():
    t = parse_usbmon("00000001 1.000000 C Zi:1:002:3 0:1:100:2 0")
    assert (t.interval, t.start_frame, t.error_count) == (1, 100, 2)
    assert t.data == b""


def test_in_progress_submission_with_elided_data():
    t = parse_usbmon("00000001 1.000000 S Bi:1:002:2 - 64 <")
    assert t.status_kind is StatusKind.IN_PROGRESS
    assert t.status == -115
    assert t.data_flag == "<"
    assert t.data_elided
    assert format_usbmon(t).endswith(" - 64 <")


def test_setup_not_captured_flag():
    t = parse_usbmon("00000001 1.000000 S Co:1:002:0 D 0")
    assert t.status_kind is StatusKind.NOT_CAPTURED
    assert t.setup_flag == "D"


def test_bare_microsecond_timestamp():
    t = parse_usbmon("00000001 1500000 S Bo:1:002:2 -115 0")
    assert (t.ts_sec, t.ts_usec) == (1, 500000)
    assert t.status == -115


def test_payload_capped_at_capacity():
    t = parse_usbmon("00000001 1.000000 C Bi:1:002:2 0 8 = 01020304 05060708", max_payload=4)
    assert t.length == 8
    assert t.data == b"\x01\x02\x03\x04"
    assert t.short_capture


@pytest.mark.parametrize(
    "line",
    [
        "ffff8800 1234.567890 C Bi:1:005:2 0 10 = 0c000800 04000100 0a0b",
        "00000001 1.000000 S Co:3:012:0 s 20 00 0000 0000 0003 3 = 030c00",
        "00000002 2.000001 C Ii:1:002:1 -32:4 6 = 0e040103 ...",
        SCENARIO_A,
    ],
)
def test_render_reparses_to_same_transfer(line):
    first = parse_usbmon(line)
    second = parse_usbmon(format_usbmon(first))
    assert second == first


@pytest.mark.parametrize(
    "line, failure",
    [
        (BAD_DEVICE, ParseFailure.DEVICE),
        ("zz 1.000000 S Ci:0:0:0 s 20 00 0000 0000 0000 0", ParseFailure.URB_ID),
        ("00000001 1.1000000 S Ci:0:0:0 s 20 00 0000 0000 0000 0", ParseFailure.TIMESTAMP_USEC),
        ("00000001 1.000000 X Ci:0:0:0 s 20 00 0000 0000 0000 0", ParseFailure.EVENT_TYPE),
        ("00000001 1.000000 S Qi:0:0:0 s 20 00 0000 0000 0000 0", ParseFailure.TRANSFER_TYPE),
        ("00000001 1.000000 S Cx:0:0:0 s 20 00 0000 0000 0000 0", ParseFailure.DIRECTION),
        ("00000001 1.000000 S Ci-0:0:0 s 20 00 0000 0000 0000 0", ParseFailure.ADDRESS),
        ("00000001 1.000000 S Ci:0:0:0 s 20 00 10000 0000 0000 0", ParseFailure.SETUP_VALUE),
        ("00000001 1.000000 C Ii:1:002:1 zz 3 = 010203", ParseFailure.STATUS),
        ("00000001 1.000000 C Ii:1:002:1 0 3 = 010203", ParseFailure.INTERVAL),
        ("00000001 1.000000 C Bi:1:002:2 0 x", ParseFailure.LENGTH),
        ("00000001 1.000000 C Bi:1:002:2 0 3 =0102 x", ParseFailure.DATA_BYTES),
        ("00000001 1.000000 C Bi:1:002:2 0 3 = 01zz03", ParseFailure.DATA_BYTES),
        ("00000001 1.000000 C Bi:1:002:2 0 2 = 010203", ParseFailure.TRAILING),
    ],
)
def test_parse_failures_name_the_field(line, failure):
    with pytest.raises(CaptureParseError) as excinfo:
        parse_usbmon(line)
    assert excinfo.value.failure is failure


def test_failure_message():
    with pytest.raises(CaptureParseError) as excinfo:
        parse_usbmon(BAD_DEVICE)
    assert str(excinfo.value) == "parse failure 9 (device number)"
    assert isinstance(excinfo.value, ValueError)


def _bulk_in(**overrides):
    fields = dict(
        urb_id=1,
        ts_sec=0,
        ts_usec=0,
        event_type=EventType.COMPLETION,
        xfer_type=TransferType.BULK,
        is_input=True,
        bus=1,
        device=2,
        endpoint=2,
        status_kind=StatusKind.STATUS,
        length=0,
    )
    fields.update(overrides)
    return Transfer(**fields)


def test_transfer_rejects_more_data_than_length():
    with pytest.raises(ValueError):
        _bulk_in(data=b"\x01")


def test_transfer_rejects_short_setup_packet():
    with pytest.raises(ValueError):
        _bulk_in(status_kind=StatusKind.SETUP, setup=b"\x20\x00")
