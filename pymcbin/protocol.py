# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Memcached Binary Protocol Implementation.

Packet Format:
    +-------+-------+-------+-------+-------+-------+-------+-------+
    | Magic | Op    | Key length    | ExtLen| DType | Status/vbucket|
    +-------+-------+-------+-------+-------+-------+-------+-------+
    | Total body length (4 bytes)   | Opaque (4 bytes)              |
    +-------+-------+-------+-------+-------+-------+-------+-------+
    | CAS (8 bytes)                                                 |
    +---------------------------------------------------------------+
    |              Body: extras ++ key ++ value                     |
    +---------------------------------------------------------------+

Header Fields:
    - Magic (1 byte): 0x80 for requests, 0x81 for responses
    - Op (1 byte): Operation code
    - Key length (2 bytes), Extras length (1 byte), Data type (1 byte)
    - Status (2 bytes): response status; reserved (vbucket) in requests
    - Body length (4 bytes): extras + key + value length
    - Opaque (4 bytes): echoed back verbatim by the server
    - CAS (8 bytes)

All multi-byte integers are big-endian.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING

from .exceptions import (
    InvalidMagicError,
    ProtocolError,
    UnknownOpcodeError,
    UnknownStatusError,
    ValueTooLargeError,
)

if TYPE_CHECKING:
    from typing import BinaryIO

# Protocol constants
REQUEST_MAGIC: int = 0x80
RESPONSE_MAGIC: int = 0x81
HEADER_FORMAT: str = ">BBHBBHIIQ"
HEADER_SIZE: int = 24
MAX_BODY_SIZE: int = 20 * 1024 * 1024  # 20MB

# Extras layouts
STORE_EXTRAS_FORMAT: str = ">II"  # flags, expiry
COUNTER_EXTRAS_FORMAT: str = ">QQI"  # delta, initial value, expiry
FLUSH_EXTRAS_FORMAT: str = ">I"  # expiry
GET_EXTRAS_FORMAT: str = ">I"  # flags
COUNTER_VALUE_FORMAT: str = ">Q"


class Opcode(IntEnum):
    """Operation codes for memcached binary protocol packets."""

    GET = 0x00
    SET = 0x01
    ADD = 0x02
    REPLACE = 0x03
    DELETE = 0x04
    INCREMENT = 0x05
    DECREMENT = 0x06
    FLUSH = 0x08
    GETQ = 0x09
    NOOP = 0x0A
    VERSION = 0x0B
    APPEND = 0x0E
    PREPEND = 0x0F
    SETQ = 0x11
    ADDQ = 0x12
    REPLACEQ = 0x13
    INCREMENTQ = 0x15
    DECREMENTQ = 0x16
    APPENDQ = 0x19
    PREPENDQ = 0x1A

    # SASL authentication
    SASL_LIST_MECHS = 0x20
    SASL_AUTH = 0x21
    SASL_STEP = 0x22


class Status(IntEnum):
    """Response status codes."""

    OK = 0x0000
    KEY_NOT_FOUND = 0x0001
    KEY_EXISTS = 0x0002
    VALUE_TOO_LARGE = 0x0003
    INVALID_ARGUMENTS = 0x0004
    ITEM_NOT_STORED = 0x0005
    NON_NUMERIC_VALUE = 0x0006
    AUTH_ERROR = 0x0020
    AUTH_CONTINUE = 0x0021
    UNKNOWN_COMMAND = 0x0081
    OUT_OF_MEMORY = 0x0082
    NOT_SUPPORTED = 0x0083
    INTERNAL_ERROR = 0x0084
    BUSY = 0x0085
    TEMPORARY_FAILURE = 0x0086

    # Synthesized by the client when a value cannot be decoded. The wire
    # status is 16 bits wide, so the server can never send this value.
    TRANSCODE_ERROR = 0xFFFFFFFF


# Loud opcode -> quiet variant. Opcodes missing here have no quiet form.
QUIET_OPCODES: dict[Opcode, Opcode] = {
    Opcode.GET: Opcode.GETQ,
    Opcode.SET: Opcode.SETQ,
    Opcode.ADD: Opcode.ADDQ,
    Opcode.REPLACE: Opcode.REPLACEQ,
    Opcode.APPEND: Opcode.APPENDQ,
    Opcode.PREPEND: Opcode.PREPENDQ,
    Opcode.INCREMENT: Opcode.INCREMENTQ,
    Opcode.DECREMENT: Opcode.DECREMENTQ,
}

LOUD_OPCODES: dict[Opcode, Opcode] = {quiet: loud for loud, quiet in QUIET_OPCODES.items()}

GET_OPCODES: frozenset[Opcode] = frozenset({Opcode.GET, Opcode.GETQ})


def to_quiet(op: Opcode) -> Opcode:
    """Return the quiet variant of ``op``, or ``op`` itself if it has none."""
    return QUIET_OPCODES.get(op, op)


def to_loud(op: Opcode) -> Opcode:
    """Return the loud variant of a quiet opcode, or ``op`` itself."""
    return LOUD_OPCODES.get(op, op)


def is_quiet(op: Opcode) -> bool:
    """Whether the server suppresses the success response for ``op``."""
    return op in LOUD_OPCODES


def is_get(op: Opcode) -> bool:
    """Whether a successful response to ``op`` carries a type-tagged value."""
    return op in GET_OPCODES


@dataclass(frozen=True)
class Header:
    """Binary protocol packet header.

    ``status`` holds the response status for responses and the reserved
    (vbucket) field for requests.
    """

    magic: int
    opcode: Opcode
    key_length: int = 0
    extras_length: int = 0
    data_type: int = 0
    status: int = 0
    body_length: int = 0
    opaque: int = 0
    cas: int = 0

    def to_bytes(self) -> bytes:
        """Serialize header to bytes."""
        return struct.pack(
            HEADER_FORMAT,
            self.magic,
            self.opcode,
            self.key_length,
            self.extras_length,
            self.data_type,
            self.status,
            self.body_length,
            self.opaque,
            self.cas,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Header:
        """Deserialize a response header from bytes."""
        if len(data) != HEADER_SIZE:
            raise ValueError(f"Invalid header size: {len(data)}, expected {HEADER_SIZE}")

        (
            magic,
            opcode,
            key_length,
            extras_length,
            data_type,
            status,
            body_length,
            opaque,
            cas,
        ) = struct.unpack(HEADER_FORMAT, data)

        if magic != RESPONSE_MAGIC:
            raise InvalidMagicError(magic)

        try:
            op = Opcode(opcode)
        except ValueError:
            raise UnknownOpcodeError(opcode) from None

        try:
            status_code = Status(status)
        except ValueError:
            raise UnknownStatusError(status) from None

        if key_length + extras_length > body_length:
            raise ProtocolError(
                f"Header lengths inconsistent: key {key_length} + extras "
                f"{extras_length} > body {body_length}"
            )

        return cls(
            magic=magic,
            opcode=op,
            key_length=key_length,
            extras_length=extras_length,
            data_type=data_type,
            status=status_code,
            body_length=body_length,
            opaque=opaque,
            cas=cas,
        )


@dataclass(frozen=True)
class WireRequest:
    """A request as it goes on the wire, after the quiet transform."""

    opcode: Opcode
    key: bytes = b""
    value: bytes = b""
    extras: bytes = b""
    cas: int = 0
    opaque: int = 0

    def to_bytes(self) -> bytes:
        """Serialize header and body to bytes."""
        header = Header(
            magic=REQUEST_MAGIC,
            opcode=self.opcode,
            key_length=len(self.key),
            extras_length=len(self.extras),
            body_length=len(self.extras) + len(self.key) + len(self.value),
            opaque=self.opaque,
            cas=self.cas,
        )
        return b"".join((header.to_bytes(), self.extras, self.key, self.value))


@dataclass(frozen=True)
class Frame:
    """A decoded response packet."""

    header: Header
    key: bytes
    value: bytes
    extras: bytes

    @property
    def opcode(self) -> Opcode:
        """Get the operation code."""
        return self.header.opcode

    @property
    def status(self) -> Status:
        """Get the response status."""
        return Status(self.header.status)


def encode_requests(requests: list[WireRequest]) -> bytes:
    """Serialize a batch of requests into a single buffer."""
    return b"".join(request.to_bytes() for request in requests)


def read_header(reader: BinaryIO) -> Header:
    """
    Read and validate a response header from a binary stream.

    Args:
        reader: Binary stream to read from.

    Returns:
        Parsed Header object.

    Raises:
        InvalidMagicError: If magic byte doesn't match.
        UnknownOpcodeError: If the opcode is not known to this client.
        UnknownStatusError: If the status is not known to this client.
        ValueTooLargeError: If body length exceeds maximum.
        EOFError: If stream ends unexpectedly.
    """
    data = reader.read(HEADER_SIZE)
    if len(data) == 0:
        raise EOFError("Connection closed")
    if len(data) < HEADER_SIZE:
        raise EOFError(f"Incomplete header: got {len(data)} bytes, expected {HEADER_SIZE}")

    header = Header.from_bytes(data)

    if header.body_length > MAX_BODY_SIZE:
        raise ValueTooLargeError(header.body_length, MAX_BODY_SIZE)

    return header


def read_frame(reader: BinaryIO) -> Frame:
    """
    Read a complete response (header + body) from a binary stream.

    Raises:
        ProtocolError: If header validation fails.
        EOFError: If stream ends unexpectedly.
    """
    header = read_header(reader)

    body = b""
    if header.body_length > 0:
        body = reader.read(header.body_length)
        if len(body) < header.body_length:
            raise EOFError(
                f"Incomplete body: got {len(body)} bytes, expected {header.body_length}"
            )

    extras_end = header.extras_length
    key_end = extras_end + header.key_length
    return Frame(
        header=header,
        extras=body[:extras_end],
        key=body[extras_end:key_end],
        value=body[key_end:],
    )


def write_requests(writer: BinaryIO, requests: list[WireRequest]) -> None:
    """
    Write a batch of requests to a binary stream in one write.

    Args:
        writer: Binary stream to write to.
        requests: Requests in submission order.
    """
    writer.write(encode_requests(requests))
