# Re-export the public API so callers can do:
#   from usb_bt_dump.usbmon import parse_usbmon, format_usbmon, Transfer
from .transfer import *  # noqa: F401,F403
from .usbmon_core import *  # noqa: F401,F403
__all__ = [name for name in dir() if not name.startswith("_")]
