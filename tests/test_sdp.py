import pytest
from conftest import SDP_SSA_REQUEST

from usb_bt_dump.bluetooth.sdp import decode_data_element, decode_sdp_pdu


@pytest.mark.parametrize(
    "raw, text",
    [
        ("00", "nil"),
        ("0805", "uint1(5)"),
        ("090100", "uint2(256)"),
        ("0a00010002", "uint4(0x00010002)"),
        ("0b0000000100000002", "uint8(0x00000001_00000002)"),
        ("10ff", "int1(-1)"),
        ("191124", "uuid2(0x1124)"),
        ("1a00001101", "uuid4(0x00001101)"),
        ("1c000102030405060708090a0b0c0d0e0f", "uuid16(00010203-0405-0607-0809-0a0b0c0d0e0f)"),
        ("2503616263", '"abc"'),
        ("2801", "bool(true)"),
        ("2800", "bool(false)"),
        ("45026869", 'URL:"hi"'),
        ("4800", "reserved(Type=9, Size=1)"),
        ("3503190100", "seq { uuid2(0x0100) }"),
        ("3d06080135020800", "alt { uint1(1), seq { uint1(0) } }"),
    ],
)
def test_data_elements(raw, text):
    data = bytes.fromhex(raw)
    elem = decode_data_element(data)
    assert elem.text == text
    assert elem.pos == len(data)
    assert not elem.truncated


def test_truncated_scalar():
    elem = decode_data_element(bytes.fromhex("0a0001"))
    assert elem.text == "uint4 ..."
    assert elem.missing == 2
    assert elem.pos == 3


def test_truncated_element_inside_sequence_stops_the_walk():
    data = bytes.fromhex("3506090001" "0a00")
    elem = decode_data_element(data)
    assert elem.text == "seq { uint2(1), uint4 ... }"
    assert elem.truncated
    assert elem.pos <= len(data)


def test_missing_length_field():
    elem = decode_data_element(bytes.fromhex("36"))
    assert elem.text == "seq ..."
    assert elem.missing == 2


def test_empty_buffer():
    assert decode_data_element(b"").truncated


def test_service_search_attribute_request():
    assert decode_sdp_pdu(SDP_SSA_REQUEST) == [
        "  SDP_ServiceSearchAttributeRequest(TxnId=1, "
        "ServiceSearchPattern=seq { uuid2(0x0100) }, MaximumAttributeByteCount=64, "
        "AttributeIDList=seq { uint4(0x0000ffff) }, ContinuationState=0 bytes)"
    ]


def test_truncated_response_reports_missing_bytes():
    data = bytes.fromhex("070001000d" "000a" "3508090000" "0a00")
    assert decode_sdp_pdu(data) == [
        "  SDP_ServiceSearchAttributeResponse(TxnId=1, AttributeListsByteCount=10, "
        "AttributeLists=seq { uint2(0), uint4 ... }, ContinuationState=? bytes) "
        "[3 bytes missing]"
    ]


def test_service_search_response():
    data = bytes.fromhex("030003000d" "0002" "0002" "00010000" "00010001" "00")
    assert decode_sdp_pdu(data) == [
        "  SDP_ServiceSearchResponse(TxnId=3, TotalServiceRecordCount=2, "
        "CurrentServiceRecordCount=2, ServiceRecordHandleList=[0x00010000, 0x00010001], "
        "ContinuationState=0 bytes)"
    ]


def test_error_response():
    assert decode_sdp_pdu(bytes.fromhex("01000200020003")) == [
        "  SDP_ErrorResponse(TxnId=2, ErrorCode=0x0003)"
    ]


def test_unknown_pdu():
    assert decode_sdp_pdu(bytes.fromhex("4200070000")) == [
        "  Unhandled SDP PDU (PDU_ID=66, TxnId=7, Length=0)"
    ]


def test_service_search_response_count_beyond_capture():
    data = bytes.fromhex("030003000d" "0002" "ffff" "00010000")
    assert decode_sdp_pdu(data) == [
        "  SDP_ServiceSearchResponse(TxnId=3, TotalServiceRecordCount=2, "
        "CurrentServiceRecordCount=65535, ServiceRecordHandleList=[0x00010000], "
        "ContinuationState=? bytes) [262136 bytes missing]"
    ]
