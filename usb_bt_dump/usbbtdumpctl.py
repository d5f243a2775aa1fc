# usb_bt_dump/usbbtdumpctl.py
"""usbbtdump CLI entrypoint: decode usbmon captures of a Bluetooth stack."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, TextIO

import typer
from prettytable import PrettyTable, SINGLE_BORDER
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from typing_extensions import Annotated

from .classifier import Layer
from .const import DEFAULT_MAX_PAYLOAD, PSM_NAMES
from .session import DissectorSession

app = typer.Typer(help="Decode usbmon captures of Bluetooth HCI / L2CAP / SDP / BT-HID traffic")

_LOGGER = logging.getLogger(__name__)


def set_log_level(level: str) -> None:
    """Route library logging to stderr through rich."""
    logging.basicConfig(
        level=logging._nameToLevel.get(level.upper(), logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    log_level: Annotated[str, typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR")] = "WARNING",
) -> None:
    set_log_level(log_level)


@contextmanager
def _open_capture(name: str) -> Iterator[TextIO]:
    """'-' reads stdin; anything else is a file path."""
    if name == "-":
        yield typer.get_text_stream("stdin")
        return
    try:
        f = open(name, "r", encoding="utf-8", errors="replace")
    except OSError as e:
        typer.secho(f"{name}: {e.strerror or e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e
    with f:
        yield f


def _psm_label(psm: int) -> str:
    name = PSM_NAMES.get(psm)
    return f"0x{psm:04x} ({name})" if name else f"0x{psm:04x}"


def _direction(inbound: bool) -> str:
    return "in" if inbound else "out"


def _bindings_table(name: str, session: DissectorSession) -> Table:
    table = Table("Direction", "CID", "PSM", title=f"L2CAP channels: {name}")
    for (inbound, cid), psm in sorted(session.channel_psm.items()):
        table.add_row(_direction(inbound), str(cid), _psm_label(psm))
    return table


# ── dump ────────────────────────────────────────────────────────

@app.command("dump")
def dump(
    files: Annotated[List[str], typer.Argument(help="usbmon text captures ('-' for stdin)")],
    max_payload: Annotated[int, typer.Option("--max-payload", min=0, help="Payload bytes kept per transfer")] = DEFAULT_MAX_PAYLOAD,
    bindings: Annotated[bool, typer.Option("--bindings/--no-bindings", help="Print the channel table after each capture")] = False,
) -> None:
    """Print a layered protocol trace for each capture."""
    for name in files:
        session = DissectorSession(max_payload=max_payload)
        _LOGGER.info("decoding %s", name)
        with _open_capture(name) as f:
            for line in session.process_stream(f):
                typer.echo(line)
        if bindings:
            print(_bindings_table(name, session))


# ── peek ────────────────────────────────────────────────────────

@app.command("peek")
def peek(
    infile: Annotated[str, typer.Argument(help="usbmon text capture ('-' for stdin)")],
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of transfers to show", min=1)] = 12,
) -> None:
    """Show the first few parsed transfers and the layer each one carries."""
    table = Table("idx", "time", "event", "address", "status", "len", "layer")
    shown = 0
    session = DissectorSession()
    with _open_capture(infile) as f:
        for t, layer in session.transfers(f):
            shown += 1
            if shown > limit:
                break
            table.add_row(
                str(shown),
                f"{t.ts_sec}.{t.ts_usec:06d}",
                t.event_type.value,
                f"{t.xfer_type.letter}{'i' if t.is_input else 'o'}:{t.bus}:{t.device:03d}:{t.endpoint}",
                "setup" if t.setup_captured else str(t.status),
                t.data_flag or f"{t.len_cap}/{t.length}",
                layer.value if layer else "-",
            )
    if shown == 0:
        typer.secho("No parsable transfers.", fg=typer.colors.YELLOW)
        return
    print(table)


# ── stats ───────────────────────────────────────────────────────

@app.command("stats")
def stats(
    files: Annotated[List[str], typer.Argument(help="usbmon text captures ('-' for stdin)")],
) -> None:
    """Summarise records per layer, parse failures and bound channels."""
    for name in files:
        session = DissectorSession()
        with _open_capture(name) as f:
            for _ in session.process_stream(f):
                pass

        pt = PrettyTable()
        pt.set_style(SINGLE_BORDER)
        pt.title = f"usbmon summary: {name}"
        pt.field_names = ["Category", "Item", "Count"]
        pt.align["Item"] = "l"
        pt.add_row(["records", "total", session.records])
        for layer in Layer:
            pt.add_row(["layer", layer.value, session.layers.get(layer.value, 0)])
        pt.add_row(["layer", "undissected", session.layers.get("undissected", 0)])
        for failure, count in session.failure_counts():
            pt.add_row(["parse failure", f"{int(failure)} ({failure.field_name})", count])
        for (inbound, cid), psm in sorted(session.channel_psm.items()):
            pt.add_row(["channel", f"{_direction(inbound)} CID {cid} -> PSM {_psm_label(psm)}", 1])
        typer.echo(pt.get_string())


if __name__ == "__main__":
    app()
