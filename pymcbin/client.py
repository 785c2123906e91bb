# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
pymcbin memcached client.

A client for the memcached binary protocol with:
- A bounded connection pool shared by all threads using the client
- Pipelined multi-key operations (one round trip for N keys)
- Lazily consumed response streams
- Type-tagged value transcoding

Usage Patterns:

    # Pattern 1: Simple usage (recommended for scripts)
    from pymcbin import connect
    client = connect("127.0.0.1", 11211)
    client.set("greeting", "Hello!")
    print(client.get("greeting").value)

    # Pattern 2: Context manager (recommended for applications)
    from pymcbin import Client
    with Client(host="127.0.0.1") as client:
        client.set("greeting", "Hello!")
    # Pool is torn down when exiting the block

    # Pattern 3: Pipelined reads
    with client.mget(["a", "b", "c"]) as responses:
        for response in responses:
            print(response.key, response.status.name, response.value)

Protocol statuses are returned, not raised: check ``response.status`` (or
``response.ok``) after every call.
"""

from __future__ import annotations

import dataclasses
import struct
from collections.abc import Iterable, Mapping
from typing import Any

from . import builder
from .dispatcher import Dispatcher
from .exceptions import ProtocolError
from .models import ClientConfig, CounterOptions, FlushOptions, StoreOptions
from .pool import ConnectionPool
from .protocol import COUNTER_VALUE_FORMAT, Opcode, Status
from .stream import ResponseStream
from .transcoder import DefaultTranscoder, Transcoder
from .types import Request, Response


class Client:
    """
    memcached client backed by a connection pool.

    Single-key operations return one Response. Multi-key operations
    (``mget``, ``mset``, ``multi_request``) return a ResponseStream that
    must be consumed to the end or closed.

    Example:
        >>> client = Client(host="127.0.0.1", port=11211, pool_size=10)
        >>> client.set("user:1", {"name": "Ada"}, expires=300).ok
        True
        >>> client.get("user:1").value
        {'name': 'Ada'}
        >>> client.increment("hits", 1, initial_value=0).value
        0
        >>> client.close()
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        pool: ConnectionPool | None = None,
        transcoder: Transcoder | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize client. Connections are opened on first use.

        Args:
            config: Optional ClientConfig object.
            pool: Optional pre-built pool (overrides the config's pool settings).
            transcoder: Value transcoder (default: DefaultTranscoder).
            **kwargs: Override config options (host, port, pool_size, etc.)
        """
        if config is None:
            config = ClientConfig(**kwargs)
        elif kwargs:
            config = ClientConfig.model_validate({**config.model_dump(), **kwargs})

        self._config = config
        self._pool = pool or ConnectionPool.from_config(config)
        self._dispatcher = Dispatcher(self._pool, transcoder or DefaultTranscoder())

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def pool(self) -> ConnectionPool:
        return self._pool

    @property
    def transcoder(self) -> Transcoder:
        return self._dispatcher.transcoder

    def close(self) -> None:
        """Close the connection pool."""
        self._pool.close()

    def __enter__(self) -> Client:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    # =========================================================================
    # Dispatch
    # =========================================================================

    def multi_request(self, requests: Iterable[Request]) -> ResponseStream:
        """
        Send requests as one pipelined batch and stream the responses.

        Every request but the last is sent in its quiet form, so the whole
        batch costs one round trip. The stream yields exactly one Response
        per request, in request order.

        Raises:
            TransportError: If the batch could not be written.
        """
        return self._dispatcher.dispatch(list(requests))

    def _single(self, request: Request) -> Response:
        with self._dispatcher.dispatch([request]) as stream:
            [response] = list(stream)
        return response

    # =========================================================================
    # Retrieval
    # =========================================================================

    def get(self, key: bytes | str) -> Response:
        """
        Get the value stored under ``key``.

        Returns:
            Response with the decoded value, or status KEY_NOT_FOUND.
        """
        return self._single(builder.get_request(key))

    def mget(self, keys: Iterable[bytes | str]) -> ResponseStream:
        """
        Get the values of several keys in one pipelined round trip.

        Returns:
            Stream of one Response per key, in the order given. Missing keys
            yield status KEY_NOT_FOUND.

        Example:
            >>> with client.mget(["a", "b", "c"]) as responses:
            ...     values = {r.decode_key(): r.value for r in responses if r.ok}
        """
        return self.multi_request(builder.get_request(key) for key in keys)

    # =========================================================================
    # Storage
    # =========================================================================

    def _store(self, opcode: Opcode, key: bytes | str, value: Any, opts: Mapping[str, Any]) -> Response:
        options = StoreOptions.model_validate(opts)
        return self._single(builder.store_request(opcode, key, value, options, self.transcoder))

    def set(self, key: bytes | str, value: Any, **opts: Any) -> Response:
        """
        Store ``value`` under ``key``.

        Args:
            key: Key to store under.
            value: Any value the transcoder can encode.
            **opts: ``expires`` (seconds or unix time, default 0 = never),
                ``cas`` (only store if the item's CAS matches, default 0 = no check).
                Unrecognized options are ignored.

        Raises:
            EncodeError: If the value cannot be encoded.
        """
        return self._store(Opcode.SET, key, value, opts)

    def add(self, key: bytes | str, value: Any, **opts: Any) -> Response:
        """Store ``value`` only if ``key`` does not exist yet (else KEY_EXISTS)."""
        return self._store(Opcode.ADD, key, value, opts)

    def replace(self, key: bytes | str, value: Any, **opts: Any) -> Response:
        """Store ``value`` only if ``key`` already exists (else KEY_NOT_FOUND)."""
        return self._store(Opcode.REPLACE, key, value, opts)

    def mset(
        self,
        items: Mapping[bytes | str, Any] | Iterable[tuple[bytes | str, Any]],
        **opts: Any,
    ) -> ResponseStream:
        """
        Set several keys in one pipelined round trip.

        Args:
            items: Mapping or iterable of ``(key, value)`` pairs.
            **opts: Store options applied to every item.

        Returns:
            Stream of one Response per item, in the order given.

        Raises:
            EncodeError: If any value cannot be encoded (nothing is sent).
        """
        options = StoreOptions.model_validate(opts)
        pairs = items.items() if isinstance(items, Mapping) else items
        requests = [
            builder.store_request(Opcode.SET, key, value, options, self.transcoder)
            for key, value in pairs
        ]
        return self.multi_request(requests)

    def append(self, key: bytes | str, value: bytes | str) -> Response:
        """Append raw bytes to an existing value (else ITEM_NOT_STORED)."""
        return self._single(builder.concat_request(Opcode.APPEND, key, value))

    def prepend(self, key: bytes | str, value: bytes | str) -> Response:
        """Prepend raw bytes to an existing value (else ITEM_NOT_STORED)."""
        return self._single(builder.concat_request(Opcode.PREPEND, key, value))

    def delete(self, key: bytes | str) -> Response:
        """Delete ``key`` (KEY_NOT_FOUND if it did not exist)."""
        return self._single(builder.delete_request(key))

    # =========================================================================
    # Counters
    # =========================================================================

    def _counter(self, opcode: Opcode, key: bytes | str, amount: int, opts: Mapping[str, Any]) -> Response:
        options = CounterOptions.model_validate(opts)
        response = self._single(builder.counter_request(opcode, key, amount, options))
        if response.status != Status.OK:
            return response

        if len(response.value) != struct.calcsize(COUNTER_VALUE_FORMAT):
            raise ProtocolError(
                f"Counter response of {len(response.value)} bytes, expected 8"
            )
        (value,) = struct.unpack(COUNTER_VALUE_FORMAT, response.value)
        return dataclasses.replace(response, value=value)

    def increment(self, key: bytes | str, amount: int = 1, **opts: Any) -> Response:
        """
        Increment the counter stored under ``key``.

        A missing key is created with ``initial_value`` (the amount is not
        added). The new counter value is returned as an int.

        Args:
            key: Counter key.
            amount: Delta to add.
            **opts: ``initial_value`` (default 0), ``expires`` (default 0).

        Example:
            >>> client.increment("counter", 5, initial_value=10).value
            10
            >>> client.increment("counter", 5).value
            15
        """
        return self._counter(Opcode.INCREMENT, key, amount, opts)

    def decrement(self, key: bytes | str, amount: int = 1, **opts: Any) -> Response:
        """Decrement the counter stored under ``key``. The server clamps at 0."""
        return self._counter(Opcode.DECREMENT, key, amount, opts)

    # =========================================================================
    # Server
    # =========================================================================

    def flush(self, **opts: Any) -> Response:
        """
        Invalidate every item on the server.

        Args:
            **opts: ``expires`` delays the flush by that many seconds (default 0).
        """
        return self._single(builder.flush_request(FlushOptions.model_validate(opts)))

    def version(self) -> Response:
        """Return the server version string as the response value (bytes)."""
        return self._single(builder.version_request())

    def noop(self) -> Response:
        """Round-trip a no-op, useful as a liveness check."""
        return self._single(builder.noop_request())


def connect(
    host: str = "127.0.0.1",
    port: int = 11211,
    *,
    username: str | None = None,
    password: str | None = None,
    transcoder: Transcoder | None = None,
    **kwargs: Any,
) -> Client:
    """
    Create a memcached client.

    Connections are opened lazily by the pool, so this never touches the
    network; the first operation does.

    Args:
        host: Server host.
        port: Server port.
        username: Optional username; enables SASL PLAIN authentication.
        password: Password for ``username``.
        transcoder: Value transcoder (default: DefaultTranscoder).
        **kwargs: Additional ClientConfig options (pool_size, request_timeout_ms, ...).

    Examples:
        # Simple connection
        >>> client = connect()
        >>> client.set("key", b"value")

        # With authentication
        >>> client = connect("cache.internal", username="app", password="secret")

        # Encrypted values
        >>> from pymcbin import EncryptedTranscoder, generate_key
        >>> client = connect(transcoder=EncryptedTranscoder.from_hex_key(generate_key()))
    """
    if username:
        kwargs.setdefault("auth_method", "plain")
        kwargs["username"] = username
        kwargs["password"] = password or ""
    return Client(host=host, port=port, transcoder=transcoder, **kwargs)
