# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
pymcbin - Python client for the memcached binary protocol.

A pipelining client library for memcached with support for:
- Connection pooling with bounded overflow
- One-round-trip multi-key reads and writes (quiet opcodes)
- Lazily consumed, ordered response streams
- Type-tagged value transcoding (bytes, str, int, JSON)
- AES-256-GCM value encryption
- SASL PLAIN authentication
- Reactive (RxPY) response streams

Quick Start:
    >>> from pymcbin import connect
    >>>
    >>> client = connect("127.0.0.1", 11211)
    >>> client.set("greeting", "Hello, memcached!").ok
    True
    >>> client.get("greeting").value
    'Hello, memcached!'

Context Manager (Recommended for applications):
    >>> from pymcbin import Client
    >>>
    >>> with Client(host="127.0.0.1", pool_size=10) as client:
    ...     client.set("counter", 0)
    # Pool is closed when exiting the block

Pipelining:
    >>> with client.mget(["a", "b", "c"]) as responses:
    ...     for response in responses:
    ...         print(response.key, response.status.name, response.value)

Counters:
    >>> client.increment("hits", 5, initial_value=10).value
    10
    >>> client.increment("hits", 5).value
    15

Authentication:
    >>> client = connect("cache.internal", username="app", password="secret")
"""

from .client import Client, connect
from .connection import Connection
from .crypto import FLAG_ENCRYPTED, EncryptedTranscoder, generate_key, validate_key
from .dispatcher import Dispatcher
from .exceptions import (
    AuthenticationError,
    ConnectionClosedError,
    ConnectionError,
    ConnectionTimeoutError,
    CryptoError,
    DecodeError,
    DecryptionError,
    EncodeError,
    EncryptionError,
    InvalidKeyError,
    InvalidMagicError,
    MemcacheError,
    PoolClosedError,
    PoolError,
    PoolTimeoutError,
    ProtocolError,
    TranscodeError,
    TransportError,
    UnknownOpcodeError,
    UnknownStatusError,
    UnknownTypeFlagError,
    ValueTooLargeError,
)
from .models import ClientConfig, CounterOptions, FlushOptions, StoreOptions
from .pool import ConnectionPool
from .protocol import Opcode, Status, is_get, is_quiet, to_quiet
from .reactive import ReactiveClient
from .stream import ResponseStream, StreamState
from .transcoder import (
    FLAG_BYTES,
    FLAG_INTEGER,
    FLAG_JSON,
    FLAG_STRING,
    BytesTranscoder,
    DefaultTranscoder,
    Transcoder,
)
from .types import Request, Response

__version__ = "1.0.0"
__license__ = "Apache-2.0"

__all__ = [
    # Client
    "Client",
    "connect",
    "Dispatcher",
    "ResponseStream",
    "StreamState",
    # Transport
    "Connection",
    "ConnectionPool",
    # Reactive
    "ReactiveClient",
    # Transcoding
    "Transcoder",
    "DefaultTranscoder",
    "BytesTranscoder",
    "EncryptedTranscoder",
    "generate_key",
    "validate_key",
    "FLAG_BYTES",
    "FLAG_STRING",
    "FLAG_INTEGER",
    "FLAG_JSON",
    "FLAG_ENCRYPTED",
    # Protocol
    "Opcode",
    "Status",
    "to_quiet",
    "is_quiet",
    "is_get",
    # Configuration
    "ClientConfig",
    "StoreOptions",
    "CounterOptions",
    "FlushOptions",
    # Types
    "Request",
    "Response",
    # Exceptions
    "MemcacheError",
    "ConnectionError",
    "ConnectionClosedError",
    "ConnectionTimeoutError",
    "TransportError",
    "AuthenticationError",
    "PoolError",
    "PoolTimeoutError",
    "PoolClosedError",
    "ProtocolError",
    "InvalidMagicError",
    "UnknownOpcodeError",
    "UnknownStatusError",
    "ValueTooLargeError",
    "TranscodeError",
    "EncodeError",
    "DecodeError",
    "UnknownTypeFlagError",
    "CryptoError",
    "EncryptionError",
    "DecryptionError",
    "InvalidKeyError",
]
