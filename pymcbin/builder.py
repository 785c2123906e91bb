# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Request construction for the memcached binary protocol.

Builders turn one public operation into a Request carrying the extras
layout the server expects. They never perform I/O.

Extras Layouts (big-endian):
    set/add/replace:       [4B flags][4B expiry]
    increment/decrement:   [8B delta][8B initial value][4B expiry]
    flush:                 [4B expiry]
    get/delete/version/
    append/prepend/noop:   none
"""

from __future__ import annotations

import struct
from typing import Any

from .exceptions import EncodeError
from .models import CounterOptions, FlushOptions, StoreOptions
from .protocol import (
    COUNTER_EXTRAS_FORMAT,
    FLUSH_EXTRAS_FORMAT,
    STORE_EXTRAS_FORMAT,
    Opcode,
)
from .transcoder import Transcoder
from .types import Request

MAX_KEY_LENGTH: int = 250

STORE_OPCODES = frozenset({Opcode.SET, Opcode.ADD, Opcode.REPLACE})
CONCAT_OPCODES = frozenset({Opcode.APPEND, Opcode.PREPEND})
COUNTER_OPCODES = frozenset({Opcode.INCREMENT, Opcode.DECREMENT})


def encode_key(key: bytes | str) -> bytes:
    """Encode a key to bytes, enforcing the protocol's key length limit."""
    if isinstance(key, str):
        key = key.encode("utf-8")
    if not isinstance(key, bytes):
        raise EncodeError(f"Key must be bytes or str, got {type(key).__name__}")
    if len(key) > MAX_KEY_LENGTH:
        raise EncodeError(f"Key of {len(key)} bytes exceeds maximum {MAX_KEY_LENGTH} bytes")
    return key


def get_request(key: bytes | str) -> Request:
    return Request(opcode=Opcode.GET, key=encode_key(key))


def store_request(
    opcode: Opcode,
    key: bytes | str,
    value: Any,
    options: StoreOptions,
    transcoder: Transcoder,
) -> Request:
    """
    Build a set/add/replace request.

    The value is replaced by the transcoder's encoded form and the type flag
    is stored in the flags extras word.

    Raises:
        EncodeError: If the transcoder cannot encode the value.
    """
    if opcode not in STORE_OPCODES:
        raise ValueError(f"{opcode.name} is not a store operation")
    data, type_flag = transcoder.encode(value)
    extras = struct.pack(STORE_EXTRAS_FORMAT, type_flag, options.expires)
    return Request(
        opcode=opcode,
        key=encode_key(key),
        value=data,
        extras=extras,
        cas=options.cas,
    )


def concat_request(opcode: Opcode, key: bytes | str, value: bytes | str) -> Request:
    """
    Build an append/prepend request.

    The server concatenates raw bytes and keeps the stored flags, so the
    value is not transcoded.
    """
    if opcode not in CONCAT_OPCODES:
        raise ValueError(f"{opcode.name} is not an append/prepend operation")
    if isinstance(value, str):
        value = value.encode("utf-8")
    if not isinstance(value, bytes):
        raise EncodeError(f"{opcode.name.lower()} expects bytes or str, got {type(value).__name__}")
    return Request(opcode=opcode, key=encode_key(key), value=value)


def delete_request(key: bytes | str) -> Request:
    return Request(opcode=Opcode.DELETE, key=encode_key(key))


def counter_request(
    opcode: Opcode,
    key: bytes | str,
    amount: int,
    options: CounterOptions,
) -> Request:
    """Build an increment/decrement request."""
    if opcode not in COUNTER_OPCODES:
        raise ValueError(f"{opcode.name} is not a counter operation")
    if amount < 0 or amount > 0xFFFFFFFFFFFFFFFF:
        raise EncodeError(f"Counter delta must fit in 64 unsigned bits, got {amount}")
    extras = struct.pack(COUNTER_EXTRAS_FORMAT, amount, options.initial_value, options.expires)
    return Request(opcode=opcode, key=encode_key(key), extras=extras)


def flush_request(options: FlushOptions) -> Request:
    return Request(opcode=Opcode.FLUSH, extras=struct.pack(FLUSH_EXTRAS_FORMAT, options.expires))


def version_request() -> Request:
    return Request(opcode=Opcode.VERSION)


def noop_request() -> Request:
    return Request(opcode=Opcode.NOOP)
