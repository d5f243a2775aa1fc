from usb_bt_dump.bluetooth.hci import (
    LMP_FEATURES,
    decode_command_complete,
    decode_hci_command,
    decode_hci_event,
    opcode_name,
)


def test_noop_with_nothing_captured():
    assert decode_hci_command(b"") == [
        "  HCI_NoOp()",
        "  (truncated: 0 of 3 bytes captured)",
    ]


def test_command_without_parameters():
    assert decode_hci_command(bytes.fromhex("030c00")) == ["  HCI_Reset()"]


def test_command_with_parameters():
    assert decode_hci_command(bytes.fromhex("1a0c0103")) == ["  HCI_Write_Scan_Enable(Scan_Enable=3)"]


def test_inquiry_layout():
    data = bytes.fromhex("010405" "338b9e" "08" "00")
    assert decode_hci_command(data) == [
        "  HCI_Inquiry(LAP=0x9e8b33, Inquiry_Length=8, Num_Responses=0)"
    ]


def test_unknown_command():
    assert decode_hci_command(bytes.fromhex("01fc00")) == [
        "  Unhandled HCI command with opcode 0xfc01 (OGF 63 OCF 1)"
    ]


def test_opcode_name():
    assert opcode_name(0x0c03) == "HCI_Reset"
    assert opcode_name(0xfc01) == "OGF 63 OCF 1"


def test_command_complete_dispatches_on_opcode():
    assert decode_hci_event(bytes.fromhex("0e0401030c00")) == [
        "  HCI event: Command Complete: Num_HCI_Command_Packets=1, "
        "Command_Opcode=0x0c03, Return_Parameters=1 bytes",
        "  HCI_Reset: Status=0",
    ]


def test_command_complete_return_parameters():
    assert decode_command_complete(0x1009, bytes.fromhex("00112233445566")) == [
        "  HCI_Read_BD_ADDR: Status=0, BD_ADDR=11:22:33:44:55:66"
    ]
    assert decode_command_complete(0xfc01, b"\x00") == [
        "  HCI unhandled command completion (opcode=0xfc01)"
    ]


def test_lmp_feature_table_size():
    assert len(LMP_FEATURES) == 64


def test_remote_features_walk_the_mask():
    data = bytes.fromhex("0b0b" "00" "0100" "0500000000000080")
    assert decode_hci_event(data) == [
        "  HCI event: Read Remote Supported Features Complete: Status=0, "
        "Connection_Handle=1, LMP_Features=00000005_80000000",
        "    3 slot packets",
        "    Encryption",
        "    Extended features",
    ]


def test_inquiry_result_one_line_per_response():
    data = bytes.fromhex("020f01" "aabbccddeeff" "01" "0000" "0c025a" "3412")
    assert decode_hci_event(data) == [
        "  HCI event: Inquiry Result: 1 responses:",
        "    BD_ADDR=aa:bb:cc:dd:ee:ff, Page_Scan_Repetition_Mode=1, "
        "Class_of_Device=0x5a020c, Clock_Offset=4660",
    ]


def test_completed_packets_one_line_per_handle():
    assert decode_hci_event(bytes.fromhex("1305012a000300")) == [
        "  HCI event: Number of Completed Packets: 1 handles:",
        "    Connection_Handle=42, HC_Num_Of_Completed_Packets=3",
    ]


def test_unknown_event():
    assert decode_hci_event(bytes.fromhex("ff020000")) == [
        "  HCI event: Unhandled event 0xff (2 parameter bytes)"
    ]


def test_short_event_reads_zero_and_notes_truncation():
    assert decode_hci_event(bytes.fromhex("0504002a00")) == [
        "  HCI event: Disconnection Complete: Status=0, Connection_Handle=42, Reason=0x00",
        "  (truncated: 5 of 6 bytes captured)",
    ]
