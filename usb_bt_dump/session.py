# usb_bt_dump/session.py
"""
Dissector session: one per capture.

Holds the L2CAP channel bindings learned so far, the payload capacity and
running counters for the `stats` command. Lines go in, trace lines come out.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .bluetooth.l2cap import ChannelBindings
from .classifier import Layer, classify, dissect
from .const import DEFAULT_MAX_PAYLOAD
from .exception import CaptureParseError, ParseFailure
from .usbmon.transfer import Transfer
from .usbmon.usbmon_core import format_usbmon, parse_usbmon

__all__ = ["DissectorSession"]

_LOGGER = logging.getLogger(__name__)


@dataclass
class DissectorSession:
    max_payload: int = DEFAULT_MAX_PAYLOAD
    bindings: ChannelBindings = field(default_factory=ChannelBindings)
    records: int = 0
    layers: Counter = field(default_factory=Counter)
    failures: Counter = field(default_factory=Counter)

    @property
    def pending_psm(self) -> Dict[Tuple[bool, int], int]:
        return self.bindings.pending_psm

    @property
    def channel_psm(self) -> Dict[Tuple[bool, int], int]:
        return self.bindings.channel_psm

    # ── parsing ─────────────────────────────────────────────────
    def parse(self, line: str) -> Transfer:
        """Parse one record, counting it; CaptureParseError propagates."""
        self.records += 1
        try:
            return parse_usbmon(line, self.max_payload)
        except CaptureParseError as err:
            self.failures[err.failure] += 1
            _LOGGER.debug("line %d: %s: %r", self.records, err, line)
            raise

    def transfers(self, stream: Iterable[str]) -> Iterator[Tuple[Transfer, Optional[Layer]]]:
        """Parsed transfers with their layer; bad and blank lines are skipped."""
        for line in stream:
            if not line.strip():
                continue
            try:
                t = self.parse(line)
            except CaptureParseError:
                continue
            yield t, classify(t)

    # ── trace ───────────────────────────────────────────────────
    def process_line(self, line: str) -> List[str]:
        """
        Trace lines for one record: the transfer summary followed by the
        dissected block and a blank separator, or a single parse diagnostic.
        """
        line = line.rstrip()
        if not line:
            return []
        try:
            t = self.parse(line)
        except CaptureParseError as err:
            return [f" .. {err}"]

        out = [format_usbmon(t)]
        layer = classify(t)
        self.layers[layer.value if layer else "undissected"] += 1
        if layer is not None:
            out += dissect(t, self.bindings)
            out.append("")
        return out

    def process_stream(self, stream: Iterable[str]) -> Iterator[str]:
        for line in stream:
            yield from self.process_line(line)

    # ── summary ─────────────────────────────────────────────────
    def failure_counts(self) -> List[Tuple[ParseFailure, int]]:
        return sorted(self.failures.items())
