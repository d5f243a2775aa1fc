import pytest
from conftest import SCENARIO_A

from usb_bt_dump.bluetooth.l2cap import ChannelBindings
from usb_bt_dump.classifier import Layer, classify, dissect
from usb_bt_dump.usbmon import parse_usbmon


@pytest.mark.parametrize(
    "line, layer",
    [
        (SCENARIO_A, Layer.HCI_COMMAND),
        ("00000001 1.000000 S Co:1:002:0 s 20 e0 0000 0000 0003 3 = 030c00", Layer.HCI_COMMAND),
        ("00000002 1.000000 C Ii:1:002:1 0:1 6 = 0e040103 0c00", Layer.HCI_EVENT),
        ("00000003 1.000000 S Bo:1:002:2 -115 4 = 01200000", Layer.L2CAP),
        ("00000004 1.000000 C Bi:1:002:2 0 4 = 01200000", Layer.L2CAP),
    ],
)
def test_classified(line, layer):
    assert classify(parse_usbmon(line)) is layer


@pytest.mark.parametrize(
    "line",
    [
        # wrong class request
        "00000001 1.000000 S Co:1:002:0 s 80 06 0100 0000 0012 0",
        # wValue must be zero
        "00000001 1.000000 S Co:1:002:0 s 20 00 0001 0000 0003 3 = 030c00",
        # setup not captured
        "00000001 1.000000 S Co:1:002:0 D 3 = 030c00",
        # interrupt submission, not a completion
        "00000002 1.000000 S Ii:1:002:1 -115:1 16 <",
        # completion with an error status
        "00000002 1.000000 C Ii:1:002:1 -2:1 0",
        # bulk completion of an output transfer
        "00000003 1.000000 C Bo:1:002:2 0 4",
        # bulk submission of an input transfer
        "00000003 1.000000 S Bi:1:002:2 -115 1024 <",
        # elided payload
        "00000004 1.000000 C Bi:1:002:2 0 4 >",
        # zero length
        "00000004 1.000000 C Bi:1:002:2 0 0",
    ],
)
def test_undissected(line):
    t = parse_usbmon(line)
    assert classify(t) is None
    assert dissect(t, ChannelBindings()) == []


def test_dissect_hci_command():
    assert dissect(parse_usbmon(SCENARIO_A), ChannelBindings()) == [
        "  HCI_NoOp()",
        "  (truncated: 0 of 3 bytes captured)",
    ]
