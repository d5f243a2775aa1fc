import pytest

from usb_bt_dump.bluetooth.bt_hid import decode_bt_hid, report_type


@pytest.mark.parametrize(
    "raw, line",
    [
        ("00", "  BT-HID Handshake: Status=0 (SUCCESSFUL)"),
        ("03", "  BT-HID Handshake: Status=3 (ERR_UNSUPPORTED_REQUEST)"),
        ("15", "  BT-HID Control: Operation=5 (VIRTUAL_CABLE_UNPLUG)"),
        ("41", "  BT-HID Get_Report: Type=Input"),
        ("4303", "  BT-HID Get_Report: Type=Feature, ReportId=3"),
        ("49014000", "  BT-HID Get_Report: Type=Input, ReportId=1, BufferSize=64"),
        ("520102", "  BT-HID Set_Report: Type=Output, Length=2"),
        ("60", "  BT-HID Get_Protocol"),
        ("6001", "  BT-HID Get_Protocol: Protocol=Report"),
        ("6000", "  BT-HID Get_Protocol: Protocol=Boot"),
        ("70", "  BT-HID Set_Protocol: Protocol=Boot"),
        ("71", "  BT-HID Set_Protocol: Protocol=Report"),
        ("80", "  BT-HID Get_Idle"),
        ("9000", "  BT-HID Set_Idle: Rate=0"),
        ("a10102", "  BT-HID DATA: Report=Input, Length=2, Data=0102"),
        ("b2", "  BT-HID DATC: Report=Output, Length=0"),
        ("20", "  BT-HID Unhandled (reserved) request: Type=2, Parameter=0, Length=0"),
    ],
)
def test_transactions(raw, line):
    assert decode_bt_hid(bytes.fromhex(raw)) == [line]


def test_empty_frame():
    assert decode_bt_hid(b"") == ["  BT-HID empty frame"]


def test_get_report_missing_buffer_size():
    assert decode_bt_hid(bytes.fromhex("480a")) == [
        "  BT-HID Get_Report: Type=Reserved, ReportId=10, BufferSize=0",
        "  (truncated: 2 of 4 bytes captured)",
    ]


def test_report_type():
    assert report_type(0xA3) == "Feature"
