#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
card_cli.py — entrypoint.
One run: establish context, pick a reader, connect, print reader + ATR, ask the
reader for its firmware version, then exercise a MIFARE Ultralight (default) or
MIFARE Classic card. Cleanup always runs; errors print "<stage> failed: ...".

Reader hint defaults to $CARD_READER_HINT.
"""

import argparse
import logging
import os
import sys

from card_commands import KeyType
from card_context import Scope
from card_controller import ClassicOps, DEFAULT_KEY, UltralightOps, open_session
from card_errors import CardError

ULTRALIGHT_DATA = bytes([0x00, 0x01, 0x02, 0x03])
CLASSIC_DATA = bytes(range(16))


def _hex(data) -> str:
    return " ".join(f"{b:02X}" for b in data)

def _hex_arg(text: str) -> bytes:
    try:
        return bytes.fromhex(text.replace(":", " "))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not hex: {text!r}") from e

def _firmware_text(resp) -> str:
    raw = resp.data if resp.ok else resp.raw
    return f"{_hex(raw)} ({raw.decode('ascii', errors='replace')})"

def _byte_arg(text: str) -> int:
    value = int(text, 0)
    if not 0 <= value <= 0xFF:
        raise argparse.ArgumentTypeError(f"out of range 0..255: {text!r}")
    return value


def _ultralight(session, args):
    print("### MIFARE Ultralight ###")
    ops = UltralightOps(session)
    data = ops.read(args.page, 4)
    print(f"Read page {args.page}+: {_hex(data)}")
    if args.read_only:
        return
    payload = args.data if args.data is not None else ULTRALIGHT_DATA
    ops.write(args.page, payload)
    print(f"Wrote page {args.page}: {_hex(payload)}")
    print(f"Read back: {_hex(ops.read(args.page, 1))}")

def _classic(session, args):
    print("### MIFARE Classic ###")
    ops = ClassicOps(session)
    ops.load_key(args.key, 0)
    print(f"Loaded key slot 0: {_hex(args.key)}")
    ops.authenticate(args.block, KeyType.B if args.key_b else KeyType.A, 0)
    print(f"Authenticated block {args.block}")
    print(f"Read block {args.block}: {_hex(ops.read(args.block))}")
    if args.read_only:
        return
    payload = args.data if args.data is not None else CLASSIC_DATA
    ops.write(args.block, payload)
    print(f"Wrote block {args.block}: {_hex(payload)}")


def run(rm, args) -> None:
    with open_session(rm, args.reader, scope=Scope(args.scope)) as session:
        print(f"Connected to card ({session.connection.protocol.name})")
        st = session.status()
        print()
        print(f"Name of the reader: {st.reader}")
        print(f"ATR: {st.atr_hex()}")
        print()
        fw = session.firmware_version()
        print(f"Firmware: {_firmware_text(fw)}")
        if args.card == "classic":
            _classic(session, args)
        else:
            _ultralight(session, args)
    print("Disconnected, context released")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="PC/SC reader session: firmware query + MIFARE read/write")
    ap.add_argument("--reader", default=os.environ.get("CARD_READER_HINT", ""),
                    help="Substring of the reader name (default: $CARD_READER_HINT, else ACS/ACR122, else first)")
    ap.add_argument("--card", choices=("ultralight", "classic"), default="ultralight")
    ap.add_argument("--page", type=_byte_arg, default=0x04, help="Ultralight page (default 4)")
    ap.add_argument("--block", type=_byte_arg, default=0x04, help="Classic block (default 4)")
    ap.add_argument("--key", type=_hex_arg, default=DEFAULT_KEY, help="Classic 6-byte key, hex")
    ap.add_argument("--key-b", action="store_true", help="Authenticate with Key B instead of Key A")
    ap.add_argument("--data", type=_hex_arg, help="Bytes to write, hex (4 for Ultralight, 16 for Classic)")
    ap.add_argument("--read-only", action="store_true", help="Skip the write step")
    ap.add_argument("--scope", choices=[s.value for s in Scope], default=Scope.SYSTEM.value)
    ap.add_argument("-v", "--verbose", action="store_true", help="Log APDU traffic")
    return ap

def main(argv=None, rm=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    if rm is None:
        from card_pcsc import PcscResourceManager
        rm = PcscResourceManager()
    try:
        run(rm, args)
    except CardError as e:
        print(str(e), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    return 0

if __name__ == "__main__":
    sys.exit(main())
