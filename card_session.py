#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
card_session.py — connect / status / disconnect against one reader.

States: DISCONNECTED -> CONNECTED -> CLOSED. A session links to one card once;
open a new CardSession for the next card.
"""

import logging
from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Any

from card_context import ResourceManagerContext
from card_errors import CardConnectionError, PcscError, StatusError

logger = logging.getLogger(__name__)

MAX_ATR_SIZE = 33


class Protocol(IntFlag):
    UNDEFINED = 0
    T0 = 1
    T1 = 2


_SUPPORTED = int(Protocol.T0 | Protocol.T1)


def as_protocol(value) -> Protocol:
    """Negotiated protocol as reported; anything but exactly T0 or T1 is UNDEFINED."""
    if value == Protocol.T0:
        return Protocol.T0
    if value == Protocol.T1:
        return Protocol.T1
    return Protocol.UNDEFINED


class ShareMode(Enum):
    SHARED = "shared"
    EXCLUSIVE = "exclusive"
    DIRECT = "direct"


class Disposition(Enum):
    LEAVE = "leave"
    RESET = "reset"
    UNPOWER = "unpower"
    EJECT = "eject"


class SessionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    CLOSED = "closed"


@dataclass
class CardConnection:
    handle: Any
    reader: str
    protocol: Protocol
    active: bool = True


@dataclass(frozen=True)
class CardStatus:
    reader: str
    state: int
    protocol: Protocol
    atr: bytes

    def atr_hex(self) -> str:
        return " ".join(f"{b:02X}" for b in self.atr)


class CardSession:
    def __init__(self, rm, ctx: ResourceManagerContext):
        self.rm = rm
        self.ctx = ctx
        self.state = SessionState.DISCONNECTED
        self.connection = None

    def connect(self, reader: str, share_mode: ShareMode = ShareMode.SHARED,
                protocols: Protocol = Protocol.T0 | Protocol.T1) -> CardConnection:
        if not int(protocols) or int(protocols) & ~_SUPPORTED:
            raise CardConnectionError(f"protocol mask must be a non-empty subset of T0|T1, got {protocols!r}")
        if self.state is not SessionState.DISCONNECTED:
            raise CardConnectionError(f"session is {self.state.value}")
        if self.ctx.released:
            raise CardConnectionError("context already released")
        try:
            handle, negotiated = self.rm.connect(self.ctx.handle, reader, share_mode, protocols)
        except PcscError as e:
            raise CardConnectionError(f"{reader}: {e}") from e
        self.connection = CardConnection(handle, reader, as_protocol(negotiated))
        self.state = SessionState.CONNECTED
        logger.info("Connected to card on %s (protocol %s)", reader, self.connection.protocol.name)
        return self.connection

    def status(self, connection: CardConnection) -> CardStatus:
        if not connection.active:
            raise StatusError("stale connection handle")
        try:
            reader, state, protocol, atr = self.rm.status(connection.handle)
        except PcscError as e:
            raise StatusError(str(e)) from e
        atr = bytes(atr)
        if len(atr) > MAX_ATR_SIZE:
            raise StatusError(f"ATR longer than {MAX_ATR_SIZE} bytes ({len(atr)})")
        return CardStatus(reader, state, as_protocol(protocol), atr)

    def disconnect(self, connection: CardConnection,
                   disposition: Disposition = Disposition.LEAVE) -> None:
        if not connection.active:
            logger.debug("Connection to %s already closed", connection.reader)
            return
        connection.active = False
        self.state = SessionState.CLOSED
        try:
            self.rm.disconnect(connection.handle, disposition)
        except PcscError as e:
            raise CardConnectionError(str(e), stage="disconnect") from e
        logger.info("Disconnected from card (%s)", disposition.value)
