#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
card_readers.py — reader discovery.

list_readers() asks the resource manager every time (the reader set may change
between calls); pick_reader() chooses one name from that list.
"""

import logging
from typing import Sequence, Tuple

from card_context import ResourceManagerContext
from card_errors import NoReadersFound, PcscError

logger = logging.getLogger(__name__)

PREFERRED_READERS = ("ACS", "ACR122")


def list_readers(rm, ctx: ResourceManagerContext) -> Tuple[str, ...]:
    """Reader names in the order the resource manager reports them."""
    if ctx.released:
        raise NoReadersFound("context already released")
    try:
        names = tuple(rm.list_readers(ctx.handle))
    except PcscError as e:
        raise NoReadersFound(str(e)) from e
    if not names:
        raise NoReadersFound("No PC/SC readers found")
    for name in names:
        logger.info("Reader found: %s", name)
    return names

def pick_reader(names: Sequence[str], hint: str = "", prefer=PREFERRED_READERS) -> str:
    if not names:
        raise NoReadersFound("No PC/SC readers found")
    if hint:
        for name in names:
            if hint.lower() in name.lower():
                return name
        raise NoReadersFound(f"no reader matches {hint!r}")
    for name in names:
        if any(s in name for s in prefer):
            return name
    return names[0]
