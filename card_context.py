#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
card_context.py — owns the resource-manager context for the process lifetime.

    cm = ContextManager(rm)
    with cm.managed() as ctx:
        ...                      # released exactly once on every exit path
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

from card_errors import ContextError, PcscError

logger = logging.getLogger(__name__)


class Scope(Enum):
    USER = "user"
    SYSTEM = "system"


@dataclass
class ResourceManagerContext:
    handle: Any
    scope: Scope
    released: bool = False


class ContextManager:
    def __init__(self, rm, scope: Scope = Scope.SYSTEM):
        self.rm = rm
        self.scope = scope

    def establish(self) -> ResourceManagerContext:
        try:
            handle = self.rm.establish_context(self.scope)
        except PcscError as e:
            raise ContextError(f"resource manager unavailable ({e})") from e
        logger.info("Context established (scope=%s)", self.scope.value)
        return ResourceManagerContext(handle, self.scope)

    def release(self, ctx: ResourceManagerContext) -> None:
        if ctx.released:
            logger.debug("Context already released")
            return
        # never retried, even when the release call fails
        ctx.released = True
        try:
            self.rm.release_context(ctx.handle)
        except PcscError as e:
            raise ContextError(str(e), stage="release") from e
        logger.info("Context released")

    @contextmanager
    def managed(self) -> Iterator[ResourceManagerContext]:
        ctx = self.establish()
        try:
            yield ctx
        finally:
            self.release(ctx)
