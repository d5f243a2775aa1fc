# Re-export the decoders so callers can do:
#   from usb_bt_dump.bluetooth import decode_hci_command, decode_l2cap, ChannelBindings
from .bt_hid import *  # noqa: F401,F403
from .hci import *  # noqa: F401,F403
from .l2cap import *  # noqa: F401,F403
from .sdp import *  # noqa: F401,F403
__all__ = [name for name in dir() if not name.startswith("_")]
