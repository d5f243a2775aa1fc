"""Constants for the usbmon / Bluetooth dissector."""

from __future__ import annotations

# ────────────────────────────────────────────────────────────────
# usbmon
# ────────────────────────────────────────────────────────────────
DEFAULT_MAX_PAYLOAD = 4096   # captured payload buffer capacity, bytes
EINPROGRESS = 115            # status of a not-yet-completed submission
ENDPOINT_DIR_IN = 0x80

# HCI transport (USB): commands go out as class requests on endpoint 0
HCI_CMD_REQUEST_TYPE = 0x20
HCI_CMD_REQUESTS = (0x00, 0xE0)
HCI_EVENT_MIN_EPNUM = 0x81   # first interrupt-IN endpoint

# ────────────────────────────────────────────────────────────────
# L2CAP
# ────────────────────────────────────────────────────────────────
L2CAP_HEADER_LEN = 8         # ACL handle/length + L2CAP length/CID
L2CAP_CID_SIGNALING = 0x0001
L2CAP_CID_DYNAMIC = 0x0040

ACL_PB_CONTINUATION = 0x01

PSM_SDP = 0x0001
PSM_HID_CONTROL = 0x0011
PSM_HID_INTERRUPT = 0x0013

PSM_NAMES = {
    PSM_SDP: "SDP",
    PSM_HID_CONTROL: "HID Control",
    PSM_HID_INTERRUPT: "HID Interrupt",
}
