#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
card_pcsc.py — PC/SC resource manager backend (pyscard `smartcard.scard`).

The only module that talks to pcsc-lite / WinSCard. Every call checks the
hresult and raises PcscError with the resource manager's own message.
"""

import logging
from typing import List, Tuple

from smartcard.scard import (
    SCardEstablishContext,
    SCardReleaseContext,
    SCardListReaders,
    SCardConnect,
    SCardDisconnect,
    SCardStatus,
    SCardTransmit,
    SCardGetErrorMessage,
    SCARD_S_SUCCESS,
    SCARD_SCOPE_SYSTEM,
    SCARD_SCOPE_USER,
    SCARD_SHARE_SHARED,
    SCARD_SHARE_EXCLUSIVE,
    SCARD_SHARE_DIRECT,
    SCARD_PROTOCOL_T0,
    SCARD_PROTOCOL_T1,
    SCARD_LEAVE_CARD,
    SCARD_RESET_CARD,
    SCARD_UNPOWER_CARD,
    SCARD_EJECT_CARD,
    SCARD_PCI_T0,
    SCARD_PCI_T1,
)

from card_errors import PcscError
from card_context import Scope
from card_session import Protocol, ShareMode, Disposition
from card_channel import TransportHeader

logger = logging.getLogger(__name__)

_SCOPES = {Scope.SYSTEM: SCARD_SCOPE_SYSTEM, Scope.USER: SCARD_SCOPE_USER}
_SHARE_MODES = {
    ShareMode.SHARED: SCARD_SHARE_SHARED,
    ShareMode.EXCLUSIVE: SCARD_SHARE_EXCLUSIVE,
    ShareMode.DIRECT: SCARD_SHARE_DIRECT,
}
_DISPOSITIONS = {
    Disposition.LEAVE: SCARD_LEAVE_CARD,
    Disposition.RESET: SCARD_RESET_CARD,
    Disposition.UNPOWER: SCARD_UNPOWER_CARD,
    Disposition.EJECT: SCARD_EJECT_CARD,
}
_HEADERS = {TransportHeader.T0: SCARD_PCI_T0, TransportHeader.T1: SCARD_PCI_T1}


def _check(hresult: int, what: str) -> None:
    if hresult != SCARD_S_SUCCESS:
        msg = SCardGetErrorMessage(hresult)
        logger.debug("%s -> 0x%08X %s", what, hresult & 0xFFFFFFFF, msg)
        raise PcscError(hresult, f"{what}: {msg}")

def _to_pcsc_protocols(protocols: Protocol) -> int:
    mask = 0
    if protocols & Protocol.T0:
        mask |= SCARD_PROTOCOL_T0
    if protocols & Protocol.T1:
        mask |= SCARD_PROTOCOL_T1
    return mask

def _from_pcsc_protocol(value: int) -> Protocol:
    if value == SCARD_PROTOCOL_T0:
        return Protocol.T0
    if value == SCARD_PROTOCOL_T1:
        return Protocol.T1
    return Protocol.UNDEFINED


class PcscResourceManager:
    """Capability set consumed by the controller, backed by the platform PC/SC service."""

    def establish_context(self, scope: Scope = Scope.SYSTEM):
        hresult, hcontext = SCardEstablishContext(_SCOPES[scope])
        _check(hresult, "SCardEstablishContext")
        return hcontext

    def release_context(self, hcontext) -> None:
        _check(SCardReleaseContext(hcontext), "SCardReleaseContext")

    def list_readers(self, hcontext) -> List[str]:
        hresult, readers = SCardListReaders(hcontext, [])
        _check(hresult, "SCardListReaders")
        return list(readers)

    def connect(self, hcontext, reader: str, share_mode: ShareMode,
                protocols: Protocol) -> Tuple[int, Protocol]:
        hresult, hcard, active = SCardConnect(
            hcontext, reader, _SHARE_MODES[share_mode], _to_pcsc_protocols(protocols))
        _check(hresult, "SCardConnect")
        return hcard, _from_pcsc_protocol(active)

    def disconnect(self, hcard, disposition: Disposition) -> None:
        _check(SCardDisconnect(hcard, _DISPOSITIONS[disposition]), "SCardDisconnect")

    def status(self, hcard) -> Tuple[str, int, Protocol, bytes]:
        hresult, reader, state, protocol, atr = SCardStatus(hcard)
        _check(hresult, "SCardStatus")
        return reader, state, _from_pcsc_protocol(protocol), bytes(atr)

    def transmit(self, hcard, header: TransportHeader, apdu: bytes) -> bytes:
        hresult, response = SCardTransmit(hcard, _HEADERS[header], list(apdu))
        _check(hresult, "SCardTransmit")
        return bytes(response)
