# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Lazy response stream for pipelined batches.

A batch of N requests goes out as N-1 quiet requests followed by one loud
request. The server answers quiet requests only when they have something
to say (a failure, or a hit for a quiet get) and always answers the final
loud request, so the last frame of a batch is the one whose ``opaque``
equals the last request index.

Each request is stamped with its batch index in ``opaque``. When a frame
for index ``i`` arrives, every earlier request the server stayed silent
about is emitted first with the outcome silence implies (``key_not_found``
for a quiet get, ``ok`` for anything else). The stream therefore yields
exactly one Response per request, in request order.

States:
    CONTINUING  more frames are expected on the wire
    HALTED      the terminating frame was read, or the stream failed/closed

The connection is returned to the pool exactly once: as soon as the
terminating frame has been read, when a pull fails, or when the consumer
closes the stream early. Early close drains the rest of the batch off the
wire first so the connection can be reused. A stream that is dropped
without being closed closes its connection when it is collected and hands
it back for the pool to discard.
"""

from __future__ import annotations

import logging
import struct
from collections import deque
from collections.abc import Callable, Iterator
from enum import Enum
from typing import TYPE_CHECKING, Any

from .exceptions import DecodeError, MemcacheError, ProtocolError
from .protocol import GET_EXTRAS_FORMAT, Frame, Opcode, Status, is_get
from .types import Request, Response

if TYPE_CHECKING:
    from .connection import Connection
    from .transcoder import Transcoder

logger = logging.getLogger(__name__)

TRANSCODE_ERROR_VALUE: str = "Transcode error"


class StreamState(Enum):
    CONTINUING = "continuing"
    HALTED = "halted"


def decode_response(response: Response, opcode: Opcode, transcoder: Transcoder) -> Response:
    """
    Apply the transcoder to a get-family response.

    Responses to other opcodes, and responses without extras (misses), pass
    through unchanged. A decode failure downgrades the response to
    ``transcode_error`` instead of raising.
    """
    if not is_get(opcode) or not response.extras:
        return response

    try:
        if len(response.extras) != struct.calcsize(GET_EXTRAS_FORMAT):
            raise DecodeError(f"Get response extras of {len(response.extras)} bytes, expected 4")
        (type_flag,) = struct.unpack(GET_EXTRAS_FORMAT, response.extras)
        value = transcoder.decode(response.value, type_flag)
    except DecodeError as e:
        logger.warning("Failed to decode value for key %r: %s", response.key, e)
        return Response(
            key=response.key,
            value=TRANSCODE_ERROR_VALUE,
            extras=response.extras,
            status=Status.TRANSCODE_ERROR,
            cas=response.cas,
        )

    return Response(
        key=response.key,
        value=value,
        extras=response.extras,
        status=response.status,
        cas=response.cas,
        data_type=type_flag,
    )


class ResponseStream(Iterator[Response]):
    """
    Iterator over the responses of one dispatched batch.

    Always consume a stream to the end or close it; use it as a context
    manager when you may stop early:

        >>> with client.mget(["a", "b", "c"]) as responses:
        ...     first = next(responses)

    Streams are not thread-safe: consume each from a single thread.
    """

    def __init__(
        self,
        requests: list[Request],
        connection: Connection | None,
        release: Callable[[Connection], None] | None,
        transcoder: Transcoder | None,
    ) -> None:
        self._requests = requests
        self._connection = connection
        self._release = release
        self._transcoder = transcoder

        self._pending: deque[Response] = deque()
        self._next_index = 0
        self._terminated = not requests
        self._state = StreamState.HALTED if self._terminated else StreamState.CONTINUING
        # An empty batch never checked a connection out.
        self._released = self._terminated

    @classmethod
    def empty(cls) -> ResponseStream:
        """A stream for an empty batch: no responses, no connection."""
        return cls([], None, None, None)

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def released(self) -> bool:
        """Whether the connection has been handed back to the pool."""
        return self._released

    def __iter__(self) -> ResponseStream:
        return self

    def __next__(self) -> Response:
        if not self._pending:
            if self._state is StreamState.HALTED:
                raise StopIteration
            try:
                self._pull()
            except BaseException:
                self._state = StreamState.HALTED
                self._pending.clear()
                self._connection.close()
                self._release_connection()
                raise

        response = self._pending.popleft()
        if self._terminated and not self._pending:
            self._state = StreamState.HALTED
        return response

    def _pull(self) -> None:
        """Read one frame and queue the responses it settles."""
        frame = self._connection.receive()
        index = frame.header.opaque
        last = len(self._requests) - 1

        if index < self._next_index or index > last:
            raise ProtocolError(
                f"Response opaque {index} outside pending range {self._next_index}..{last}"
            )

        while self._next_index < index:
            self._pending.append(self._silent_response(self._requests[self._next_index]))
            self._next_index += 1

        self._pending.append(self._frame_response(frame, self._requests[index]))
        self._next_index = index + 1

        if index == last:
            self._terminated = True
            self._release_connection()

    def _silent_response(self, request: Request) -> Response:
        # The server stays silent on quiet success, and on a quiet get miss.
        if request.opcode == Opcode.GET:
            return Response(key=request.key, status=Status.KEY_NOT_FOUND)
        return Response(key=request.key, status=Status.OK)

    def _frame_response(self, frame: Frame, request: Request) -> Response:
        response = Response(
            key=frame.key or request.key,
            value=frame.value,
            extras=frame.extras,
            status=frame.status,
            cas=frame.header.cas,
        )
        logger.debug(
            "Frame opaque=%d opcode=%s status=%s",
            frame.header.opaque,
            frame.opcode.name,
            frame.status.name,
        )
        return decode_response(response, frame.opcode, self._transcoder)

    def _release_connection(self) -> None:
        if self._released:
            return
        self._released = True
        self._release(self._connection)

    def close(self) -> None:
        """
        Stop consuming and hand the connection back.

        Unread frames of the batch are drained first; if draining fails the
        connection is closed so the pool discards it.
        """
        if self._released:
            self._state = StreamState.HALTED
            self._pending.clear()
            return

        self._state = StreamState.HALTED
        self._pending.clear()
        try:
            while not self._terminated:
                self._pull()
                self._pending.clear()
        except MemcacheError as e:
            logger.debug("Closing connection after failed drain: %s", e)
            self._connection.close()
        except BaseException:
            self._connection.close()
            raise
        finally:
            self._pending.clear()
            self._release_connection()

    def __enter__(self) -> ResponseStream:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __del__(self) -> None:
        # Dropped without close(): the unread frames cannot be drained from
        # a finalizer, so the connection is closed and the pool discards it.
        if getattr(self, "_released", True):
            return
        logger.debug("Response stream abandoned before completion, closing its connection")
        self._state = StreamState.HALTED
        self._pending.clear()
        self._connection.close()
        self._release_connection()
