#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
card_errors.py — error types for the card session controller.

Every error carries the `stage` that failed so the CLI can print
"<stage> failed: <reason>" without guessing.
"""

from typing import Optional


class PcscError(Exception):
    """Raw resource-manager failure (non-success hresult)."""

    def __init__(self, code: int, message: str = ""):
        self.code = code
        self.message = message or f"hresult 0x{code & 0xFFFFFFFF:08X}"
        super().__init__(f"{self.message} (0x{code & 0xFFFFFFFF:08X})")


class CardError(Exception):
    stage = "card"

    def __init__(self, reason: str, *, stage: Optional[str] = None):
        if stage is not None:
            self.stage = stage
        self.reason = reason
        super().__init__(reason)

    def __str__(self):
        return f"{self.stage} failed: {self.reason}"


class ContextError(CardError):
    stage = "establish"


class NoReadersFound(CardError):
    stage = "list-readers"


class CardConnectionError(CardError):
    stage = "connect"


class StatusError(CardError):
    stage = "status"


class ProtocolError(CardError):
    stage = "protocol"


class InvalidCommandArguments(CardError, ValueError):
    stage = "build"


class TransmissionError(CardError):
    stage = "transmit"


class ResponseOverflow(TransmissionError):
    pass


class StatusWordError(TransmissionError):
    def __init__(self, step: str, sw: int):
        self.step = step
        self.sw = sw
        super().__init__(f"{step} returned SW={sw:04X}")
