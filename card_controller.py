#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
card_controller.py
Session controller: one owned Session object instead of process-wide handles.

Exposes:
- open_session(rm, reader_hint="")  -> context manager yielding a Session;
                                       disconnect + release run exactly once on
                                       every exit path
- Session:
    transmit(apdu)          -> Response (status word not checked)
    exchange(apdu, step)    -> Response, raises StatusWordError unless 90 00
    status()                -> CardStatus (reader name, state, protocol, ATR)
    firmware_version()      -> Response (status word not checked)
    get_uid_hex()           -> str
- UltralightOps(session): read(page, block_count), write(page, data4)
- ClassicOps(session):    load_key(key6), authenticate(block), read(block), write(block, data16)
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import card_commands as cmd
from card_channel import Response, TransmissionChannel, require_ok, RESPONSE_CAPACITY
from card_commands import APDU, KeyType
from card_context import ContextManager, ResourceManagerContext, Scope
from card_errors import CardError, InvalidCommandArguments, TransmissionError
from card_readers import list_readers, pick_reader
from card_session import (
    CardConnection, CardSession, CardStatus, Disposition, Protocol, ShareMode,
)

logger = logging.getLogger(__name__)

DEFAULT_KEY = bytes([0xFF] * 6)  # factory Key A/B


@dataclass
class Session:
    ctx: ResourceManagerContext
    reader: str
    card: CardSession
    connection: CardConnection
    channel: TransmissionChannel

    def transmit(self, apdu: APDU) -> Response:
        return self.channel.transmit(self.connection, apdu)

    def exchange(self, apdu: APDU, step: str) -> Response:
        return require_ok(self.transmit(apdu), step)

    def status(self) -> CardStatus:
        return self.card.status(self.connection)

    def firmware_version(self) -> Response:
        # ACR122U answers with bare ASCII ("ACR122U207"), no status word
        return self.transmit(cmd.firmware_version())

    def get_uid_hex(self) -> str:
        resp = self.exchange(cmd.get_uid(), "GET_UID")
        return "".join(f"{b:02X}" for b in resp.data)


def _quietly(fn, *args) -> None:
    # Only used while another error is already propagating.
    try:
        fn(*args)
    except CardError as e:
        logger.warning("cleanup after failure: %s", e)


@contextmanager
def open_session(rm, reader_hint: str = "", *,
                 scope: Scope = Scope.SYSTEM,
                 share_mode: ShareMode = ShareMode.SHARED,
                 protocols: Protocol = Protocol.T0 | Protocol.T1,
                 disposition: Disposition = Disposition.LEAVE,
                 capacity: int = RESPONSE_CAPACITY) -> Iterator[Session]:
    contexts = ContextManager(rm, scope)
    ctx = contexts.establish()
    try:
        reader = pick_reader(list_readers(rm, ctx), hint=reader_hint)
        logger.info("Using reader: %s", reader)
        card = CardSession(rm, ctx)
        connection = card.connect(reader, share_mode, protocols)
        try:
            yield Session(ctx, reader, card, connection, TransmissionChannel(rm, capacity))
        except BaseException:
            _quietly(card.disconnect, connection, disposition)
            raise
        card.disconnect(connection, disposition)
    except BaseException:
        _quietly(contexts.release, ctx)
        raise
    contexts.release(ctx)


# ---------- card families ----------
class UltralightOps:
    def __init__(self, session: Session):
        self.session = session

    def read(self, page: int, block_count: int = cmd.ULTRALIGHT_MAX_BLOCKS) -> bytes:
        resp = self.session.exchange(cmd.ultralight_read(page, block_count), f"READ page {page}")
        return resp.data

    def write(self, page: int, data) -> None:
        self.session.exchange(cmd.ultralight_write(page, data), f"WRITE page {page}")


class ClassicOps:
    """MIFARE Classic 1K/4K through the reader's key slots.

    The card only accepts read/write on a block after the sector holding it was
    authenticated with a loaded key; the builders don't track that, these
    helpers just send what they are told.
    """

    def __init__(self, session: Session):
        self.session = session

    def load_key(self, key=DEFAULT_KEY, slot: int = 0) -> None:
        self.session.exchange(cmd.classic_load_key(key, slot), f"LOAD_KEY slot {slot}")

    def authenticate(self, block: int, key_type: KeyType = KeyType.A, slot: int = 0) -> None:
        self.session.exchange(cmd.classic_authenticate(block, key_type, slot), f"AUTH block {block}")

    def read(self, block: int) -> bytes:
        resp = self.session.exchange(cmd.classic_read(block), f"READ block {block}")
        if len(resp.data) != cmd.CLASSIC_BLOCK_SIZE:
            raise TransmissionError(f"READ block {block} returned {len(resp.data)} bytes, expected 16")
        return resp.data

    def write(self, block: int, data, *, allow_trailer: bool = False) -> None:
        if cmd.is_sector_trailer(block) and not allow_trailer:
            raise InvalidCommandArguments(f"block {block} is a sector trailer (keys/access bits)")
        self.session.exchange(cmd.classic_write(block, data), f"WRITE block {block}")
