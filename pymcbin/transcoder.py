# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Value transcoding for the pymcbin memcached client.

memcached stores opaque bytes plus a 32-bit flags word. Transcoders use the
flags word as a type tag so heterogeneous Python values survive the trip
through the store:

    FLAG_BYTES    raw bytes, stored as-is
    FLAG_STRING   str, stored as UTF-8
    FLAG_INTEGER  int, stored as ASCII decimal
    FLAG_JSON     JSON-native structures (dict/list/float/bool/None)
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from .exceptions import DecodeError, EncodeError, UnknownTypeFlagError

FLAG_BYTES: int = 0x0000
FLAG_STRING: int = 0x0001
FLAG_INTEGER: int = 0x0002
FLAG_JSON: int = 0x0003


class Transcoder(ABC):
    @abstractmethod
    def encode(self, value: Any) -> tuple[bytes, int]:
        """Return the stored form of ``value`` and its type flag."""

    @abstractmethod
    def decode(self, data: bytes, type_flag: int) -> Any:
        """Rebuild a value from its stored form and type flag."""


class BytesTranscoder(Transcoder):
    def encode(self, value: Any) -> tuple[bytes, int]:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value), FLAG_BYTES
        raise EncodeError(f"BytesTranscoder expects bytes, got {type(value).__name__}")

    def decode(self, data: bytes, type_flag: int) -> bytes:
        if type_flag != FLAG_BYTES:
            raise UnknownTypeFlagError(type_flag)
        return data


def _is_json_native(value: Any) -> bool:
    # Only structures that json.loads(json.dumps(v)) == v holds for.
    if value is None or isinstance(value, (str, bool, int, float)):
        return True
    if isinstance(value, list):
        return all(_is_json_native(item) for item in value)
    if isinstance(value, dict):
        return all(
            isinstance(key, str) and _is_json_native(item) for key, item in value.items()
        )
    return False


class DefaultTranscoder(Transcoder):
    """
    Type-tagging transcoder for bytes, str, int and JSON structures.

    Encoding is deterministic: dict keys are sorted and separators fixed,
    so structurally equal values always produce identical bytes.

    Example:
        >>> transcoder = DefaultTranscoder()
        >>> data, flag = transcoder.encode({"b": 1, "a": [True, None]})
        >>> data
        b'{"a":[true,null],"b":1}'
        >>> transcoder.decode(data, flag)
        {'a': [True, None], 'b': 1}
    """

    def encode(self, value: Any) -> tuple[bytes, int]:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value), FLAG_BYTES
        if isinstance(value, str):
            return value.encode("utf-8"), FLAG_STRING
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value).encode("ascii"), FLAG_INTEGER
        if not _is_json_native(value):
            raise EncodeError(f"Cannot encode value of type {type(value).__name__}")
        try:
            data = json.dumps(value, sort_keys=True, separators=(",", ":"), allow_nan=False)
        except ValueError as e:
            raise EncodeError(f"Cannot encode value: {e}") from e
        return data.encode("utf-8"), FLAG_JSON

    def decode(self, data: bytes, type_flag: int) -> Any:
        if type_flag == FLAG_BYTES:
            return data
        try:
            if type_flag == FLAG_STRING:
                return data.decode("utf-8")
            if type_flag == FLAG_INTEGER:
                return int(data.decode("ascii"))
            if type_flag == FLAG_JSON:
                return json.loads(data.decode("utf-8"))
        except ValueError as e:
            raise DecodeError(f"Cannot decode value with type flag 0x{type_flag:08X}: {e}") from e
        raise UnknownTypeFlagError(type_flag)
