#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
card_channel.py — one APDU in, one bounded response out.

The transport header follows the negotiated protocol (T0 or T1 only). The
channel never decodes the status word itself; callers use Response.sw /
require_ok().
"""

import logging
from dataclasses import dataclass
from enum import Enum

from card_commands import APDU
from card_errors import (
    PcscError, ProtocolError, ResponseOverflow, StatusWordError, TransmissionError,
)
from card_session import CardConnection, Protocol

logger = logging.getLogger(__name__)

RESPONSE_CAPACITY = 300
SW_SUCCESS = 0x9000


class TransportHeader(Enum):
    T0 = "T0"
    T1 = "T1"


def select_transport_header(protocol) -> TransportHeader:
    if protocol == Protocol.T0:
        return TransportHeader.T0
    if protocol == Protocol.T1:
        return TransportHeader.T1
    raise ProtocolError(f"Protocol not found: {protocol!r}")


@dataclass(frozen=True)
class Response:
    raw: bytes

    def __post_init__(self):
        if len(self.raw) < 2:
            raise TransmissionError(f"response shorter than a status word ({len(self.raw)} bytes)")

    @property
    def data(self) -> bytes:
        return self.raw[:-2]

    @property
    def sw1(self) -> int:
        return self.raw[-2]

    @property
    def sw2(self) -> int:
        return self.raw[-1]

    @property
    def sw(self) -> int:
        return (self.sw1 << 8) | self.sw2

    @property
    def ok(self) -> bool:
        return self.sw == SW_SUCCESS

    def hex(self) -> str:
        return " ".join(f"{b:02X}" for b in self.raw)


def require_ok(response: Response, step: str) -> Response:
    if not response.ok:
        raise StatusWordError(step, response.sw)
    return response


class TransmissionChannel:
    def __init__(self, rm, capacity: int = RESPONSE_CAPACITY):
        self.rm = rm
        self.capacity = capacity

    def transmit(self, connection: CardConnection, apdu: APDU) -> Response:
        header = select_transport_header(connection.protocol)
        if not connection.active:
            raise TransmissionError("connection already closed")
        command = apdu.to_bytes()
        try:
            raw = self.rm.transmit(connection.handle, header, command)
        except PcscError as e:
            raise TransmissionError(str(e)) from e
        if len(raw) > self.capacity:
            raise ResponseOverflow(f"response of {len(raw)} bytes exceeds capacity {self.capacity}")
        response = Response(bytes(raw))
        logger.debug("APDU: %s -> SW=%04X", apdu.hex(), response.sw)
        return response
