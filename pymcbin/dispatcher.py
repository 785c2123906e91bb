# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Pipelined dispatch of request batches.

One batch uses one pooled connection for one round trip:

    1. check a connection out of the pool (may block)
    2. turn every request but the last into its quiet variant and stamp
       each with its batch index in ``opaque``
    3. write the whole batch at once
    4. hand the connection to a ResponseStream, which returns it

If the write fails the connection goes straight back to the pool and the
call raises; no response of the batch is ever produced.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .protocol import WireRequest, to_quiet
from .stream import ResponseStream

if TYPE_CHECKING:
    from .pool import ConnectionPool
    from .transcoder import Transcoder
    from .types import Request

logger = logging.getLogger(__name__)


def to_wire_requests(requests: list[Request]) -> list[WireRequest]:
    """Quiet every request except the last and number them by position."""
    last = len(requests) - 1
    return [
        WireRequest(
            opcode=request.opcode if index == last else to_quiet(request.opcode),
            key=request.key,
            value=request.value,
            extras=request.extras,
            cas=request.cas,
            opaque=index,
        )
        for index, request in enumerate(requests)
    ]


class Dispatcher:
    """Sends request batches over pooled connections."""

    def __init__(self, pool: ConnectionPool, transcoder: Transcoder) -> None:
        self._pool = pool
        self._transcoder = transcoder

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    @property
    def transcoder(self) -> Transcoder:
        return self._transcoder

    def dispatch(self, requests: list[Request]) -> ResponseStream:
        """
        Send ``requests`` as one pipelined batch.

        Returns:
            A lazily consumed stream yielding one Response per request.

        Raises:
            TransportError: If the batch could not be written.
            PoolClosedError: If the pool has been closed.
            PoolTimeoutError: If no connection became free in time.
        """
        requests = list(requests)
        if not requests:
            return ResponseStream.empty()

        wire_requests = to_wire_requests(requests)
        connection = self._pool.checkout()
        try:
            connection.submit(wire_requests)
        except BaseException:
            self._pool.checkin(connection)
            raise

        logger.debug(
            "Dispatched batch of %d request(s), terminating opcode %s",
            len(wire_requests),
            wire_requests[-1].opcode.name,
        )
        return ResponseStream(requests, connection, self._pool.checkin, self._transcoder)
