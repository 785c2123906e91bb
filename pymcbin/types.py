# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Type definitions for the pymcbin memcached client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .protocol import Opcode, Status


@dataclass(frozen=True)
class Request:
    """One logical cache operation, before the quiet transform."""

    opcode: Opcode
    key: bytes = b""
    value: bytes = b""
    extras: bytes = b""
    cas: int = 0


@dataclass(frozen=True)
class Response:
    """The outcome of one logical cache operation."""

    key: bytes = b""
    value: Any = b""
    extras: bytes = b""
    status: Status = Status.OK
    cas: int = 0
    data_type: int | None = None

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.status == Status.OK

    @property
    def found(self) -> bool:
        """Whether a get found the key."""
        return self.status != Status.KEY_NOT_FOUND

    def decode_key(self, encoding: str = "utf-8") -> str:
        """Decode the key as string."""
        return self.key.decode(encoding)
