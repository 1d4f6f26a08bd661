#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
card_commands.py
PC/SC pseudo-APDU builders for ACR122-class readers (MIFARE Ultralight + Classic).

Exposes:
- APDU                 -> immutable command (header, data, Le)
- firmware_version()   FF 00 48 00 00
- get_uid()            FF CA 00 00 00
- ultralight_read(page, block_count)   FF B0 00 <page> <count*4>
- ultralight_write(page, data4)        FF D6 00 <page> 04 <4 bytes>
- classic_load_key(key6, slot)         FF 82 00 <slot> 06 <6 bytes>
- classic_authenticate(block, key_type, slot)
                                       FF 86 00 00 05 01 00 <block> <60|61> <slot>
- classic_read(block)                  FF B0 00 <block> 10
- classic_write(block, data16)         FF D6 00 <block> 10 <16 bytes>

Builders never emit malformed bytes: bad arguments raise InvalidCommandArguments.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional

from card_errors import InvalidCommandArguments

CLA_PSEUDO = 0xFF

INS_GET_DATA = 0xCA
INS_FIRMWARE = 0x00
INS_LOAD_KEY = 0x82
INS_AUTHENTICATE = 0x86
INS_READ_BINARY = 0xB0
INS_UPDATE_BINARY = 0xD6

ULTRALIGHT_PAGE_SIZE = 4
ULTRALIGHT_MAX_BLOCKS = 4  # 16 bytes per read
CLASSIC_BLOCK_SIZE = 16
CLASSIC_KEY_SIZE = 6
AUTH_BLOCK_VERSION = 0x01


class KeyType(IntEnum):
    A = 0x60
    B = 0x61


@dataclass(frozen=True)
class APDU:
    cla: int
    ins: int
    p1: int
    p2: int
    data: bytes = b""
    le: Optional[int] = None

    def __post_init__(self):
        for name in ("cla", "ins", "p1", "p2"):
            _require_byte(name, getattr(self, name))
        if self.le is not None:
            _require_byte("le", self.le)
        data = _as_bytes("data", self.data)
        if len(data) > 0xFF:
            raise InvalidCommandArguments(f"data too long for short APDU ({len(data)} bytes)")
        object.__setattr__(self, "data", data)

    @property
    def header(self) -> bytes:
        return bytes([self.cla, self.ins, self.p1, self.p2])

    def to_bytes(self) -> bytes:
        out = self.header
        if self.data:
            out += bytes([len(self.data)]) + self.data
        if self.le is not None:
            out += bytes([self.le])
        return out

    def to_list(self) -> List[int]:
        return list(self.to_bytes())

    def __len__(self):
        return len(self.to_bytes())

    def hex(self) -> str:
        return " ".join(f"{b:02X}" for b in self.to_bytes())


# ---------- validation ----------
def _require_byte(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 0xFF:
        raise InvalidCommandArguments(f"{name} must be a byte (0..255), got {value!r}")
    return value

def _as_bytes(name: str, value) -> bytes:
    if isinstance(value, (int, str)):
        raise InvalidCommandArguments(f"{name} must be bytes, got {type(value).__name__}")
    try:
        return bytes(value)
    except (TypeError, ValueError) as e:
        raise InvalidCommandArguments(f"{name} must be bytes: {e}") from e

def _require_bytes(name: str, value, size: int) -> bytes:
    raw = _as_bytes(name, value)
    if len(raw) != size:
        raise InvalidCommandArguments(f"{name} must be exactly {size} bytes, got {len(raw)}")
    return raw


# ---------- reader ----------
def firmware_version() -> APDU:
    return APDU(CLA_PSEUDO, INS_FIRMWARE, 0x48, 0x00, le=0x00)

def get_uid() -> APDU:
    return APDU(CLA_PSEUDO, INS_GET_DATA, 0x00, 0x00, le=0x00)


# ---------- MIFARE Ultralight ----------
def ultralight_read(page: int, block_count: int = ULTRALIGHT_MAX_BLOCKS) -> APDU:
    """Read `block_count` pages (4 bytes each) starting at `page`."""
    _require_byte("page", page)
    if isinstance(block_count, bool) or not isinstance(block_count, int) \
            or not 1 <= block_count <= ULTRALIGHT_MAX_BLOCKS:
        raise InvalidCommandArguments(
            f"block_count must be 1..{ULTRALIGHT_MAX_BLOCKS}, got {block_count!r}")
    return APDU(CLA_PSEUDO, INS_READ_BINARY, 0x00, page, le=block_count * ULTRALIGHT_PAGE_SIZE)

def ultralight_write(page: int, data) -> APDU:
    _require_byte("page", page)
    data4 = _require_bytes("data", data, ULTRALIGHT_PAGE_SIZE)
    return APDU(CLA_PSEUDO, INS_UPDATE_BINARY, 0x00, page, data=data4)


# ---------- MIFARE Classic ----------
def classic_load_key(key, slot: int = 0) -> APDU:
    """Load a 6-byte key into the reader's volatile key slot."""
    _require_byte("slot", slot)
    key6 = _require_bytes("key", key, CLASSIC_KEY_SIZE)
    return APDU(CLA_PSEUDO, INS_LOAD_KEY, 0x00, slot, data=key6)

def classic_authenticate(block: int, key_type: KeyType = KeyType.A, slot: int = 0) -> APDU:
    """Authenticate the sector holding `block` with the key loaded in `slot`."""
    _require_byte("block", block)
    _require_byte("slot", slot)
    try:
        kt = KeyType(key_type)
    except ValueError as e:
        raise InvalidCommandArguments(f"key_type must be A (0x60) or B (0x61), got {key_type!r}") from e
    body = bytes([AUTH_BLOCK_VERSION, 0x00, block, kt, slot])
    return APDU(CLA_PSEUDO, INS_AUTHENTICATE, 0x00, 0x00, data=body)

def classic_read(block: int) -> APDU:
    _require_byte("block", block)
    return APDU(CLA_PSEUDO, INS_READ_BINARY, 0x00, block, le=CLASSIC_BLOCK_SIZE)

def classic_write(block: int, data) -> APDU:
    # caller must have authenticated the sector first
    _require_byte("block", block)
    data16 = _require_bytes("data", data, CLASSIC_BLOCK_SIZE)
    return APDU(CLA_PSEUDO, INS_UPDATE_BINARY, 0x00, block, data=data16)

def is_sector_trailer(block_number: int) -> bool:
    return (block_number % 4) == 3  # 3,7,11,...
