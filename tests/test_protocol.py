# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Tests for memcached binary protocol implementation."""

import io
import struct

import pytest

from pymcbin.exceptions import (
    InvalidMagicError,
    ProtocolError,
    UnknownOpcodeError,
    UnknownStatusError,
    ValueTooLargeError,
)
from pymcbin.protocol import (
    HEADER_FORMAT,
    HEADER_SIZE,
    MAX_BODY_SIZE,
    REQUEST_MAGIC,
    RESPONSE_MAGIC,
    Header,
    Opcode,
    Status,
    WireRequest,
    encode_requests,
    is_get,
    is_quiet,
    read_frame,
    read_header,
    to_loud,
    to_quiet,
    write_requests,
)

from tests.fakes import response_bytes


class TestHeader:
    """Tests for Header class."""

    def test_header_to_bytes(self) -> None:
        """Test header serialization."""
        header = Header(
            magic=REQUEST_MAGIC,
            opcode=Opcode.SET,
            key_length=3,
            extras_length=8,
            body_length=16,
            opaque=7,
            cas=0x0102030405060708,
        )
        data = header.to_bytes()
        assert len(data) == HEADER_SIZE
        assert data[0] == REQUEST_MAGIC
        assert data[1] == Opcode.SET
        assert data[2:4] == b"\x00\x03"
        assert data[4] == 8
        assert int.from_bytes(data[8:12], "big") == 16
        assert int.from_bytes(data[12:16], "big") == 7
        assert data[16:24] == bytes(range(1, 9))

    def test_header_from_bytes(self) -> None:
        """Test response header deserialization."""
        data = struct.pack(HEADER_FORMAT, RESPONSE_MAGIC, Opcode.GET, 0, 4, 0, 1, 13, 42, 99)
        header = Header.from_bytes(data)

        assert header.opcode is Opcode.GET
        assert header.extras_length == 4
        assert header.status is Status.KEY_NOT_FOUND
        assert header.body_length == 13
        assert header.opaque == 42
        assert header.cas == 99

    def test_header_from_bytes_invalid_size(self) -> None:
        """Test header deserialization with invalid size."""
        with pytest.raises(ValueError, match="Invalid header size"):
            Header.from_bytes(b"\x00" * 4)

    def test_request_magic_rejected(self) -> None:
        """Responses must carry the response magic."""
        data = struct.pack(HEADER_FORMAT, REQUEST_MAGIC, Opcode.GET, 0, 0, 0, 0, 0, 0, 0)
        with pytest.raises(InvalidMagicError):
            Header.from_bytes(data)

    def test_unknown_opcode(self) -> None:
        data = struct.pack(HEADER_FORMAT, RESPONSE_MAGIC, 0xEE, 0, 0, 0, 0, 0, 0, 0)
        with pytest.raises(UnknownOpcodeError, match="0xEE"):
            Header.from_bytes(data)

    def test_unknown_status(self) -> None:
        data = struct.pack(HEADER_FORMAT, RESPONSE_MAGIC, Opcode.GET, 0, 0, 0, 0x7777, 0, 0, 0)
        with pytest.raises(UnknownStatusError):
            Header.from_bytes(data)

    def test_inconsistent_lengths(self) -> None:
        """Key and extras cannot be longer than the body."""
        data = struct.pack(HEADER_FORMAT, RESPONSE_MAGIC, Opcode.GET, 5, 4, 0, 0, 6, 0, 0)
        with pytest.raises(ProtocolError, match="inconsistent"):
            Header.from_bytes(data)


class TestOpcodes:
    """Tests for the quiet/loud opcode mapping."""

    @pytest.mark.parametrize(
        ("loud", "quiet"),
        [
            (Opcode.GET, Opcode.GETQ),
            (Opcode.SET, Opcode.SETQ),
            (Opcode.ADD, Opcode.ADDQ),
            (Opcode.REPLACE, Opcode.REPLACEQ),
            (Opcode.APPEND, Opcode.APPENDQ),
            (Opcode.PREPEND, Opcode.PREPENDQ),
            (Opcode.INCREMENT, Opcode.INCREMENTQ),
            (Opcode.DECREMENT, Opcode.DECREMENTQ),
        ],
    )
    def test_quiet_variants(self, loud: Opcode, quiet: Opcode) -> None:
        assert to_quiet(loud) is quiet
        assert to_loud(quiet) is loud
        assert is_quiet(quiet)
        assert not is_quiet(loud)

    @pytest.mark.parametrize("op", [Opcode.DELETE, Opcode.FLUSH, Opcode.VERSION, Opcode.NOOP])
    def test_no_quiet_variant(self, op: Opcode) -> None:
        """Opcodes without a quiet form map to themselves."""
        assert to_quiet(op) is op

    def test_is_get(self) -> None:
        assert is_get(Opcode.GET)
        assert is_get(Opcode.GETQ)
        assert not is_get(Opcode.SET)


class TestWireRequest:
    """Tests for request serialization."""

    def test_body_order(self) -> None:
        """Body is extras, then key, then value."""
        request = WireRequest(
            opcode=Opcode.SET, key=b"k", value=b"vv", extras=b"\x00" * 8, opaque=3
        )
        data = request.to_bytes()

        assert len(data) == HEADER_SIZE + 11
        assert data[0] == REQUEST_MAGIC
        assert int.from_bytes(data[8:12], "big") == 11
        assert data[HEADER_SIZE:] == b"\x00" * 8 + b"k" + b"vv"

    def test_encode_requests_concatenates(self) -> None:
        requests = [WireRequest(opcode=Opcode.GETQ, key=b"a"), WireRequest(opcode=Opcode.GET, key=b"b")]
        assert encode_requests(requests) == requests[0].to_bytes() + requests[1].to_bytes()

    def test_write_requests(self) -> None:
        buffer = io.BytesIO()
        write_requests(buffer, [WireRequest(opcode=Opcode.NOOP)])
        assert len(buffer.getvalue()) == HEADER_SIZE


class TestReadFrame:
    """Tests for reading response frames."""

    def test_read_frame(self) -> None:
        """Extras, key and value are split by the header lengths."""
        data = response_bytes(
            Opcode.GET, 5, key=b"key", value=b"hello", extras=b"\x00\x00\x00\x01", cas=12
        )
        frame = read_frame(io.BytesIO(data))

        assert frame.opcode is Opcode.GET
        assert frame.status is Status.OK
        assert frame.header.opaque == 5
        assert frame.header.cas == 12
        assert frame.extras == b"\x00\x00\x00\x01"
        assert frame.key == b"key"
        assert frame.value == b"hello"

    def test_read_frame_empty_body(self) -> None:
        frame = read_frame(io.BytesIO(response_bytes(Opcode.NOOP)))
        assert frame.value == b""
        assert frame.key == b""

    def test_read_consecutive_frames(self) -> None:
        stream = io.BytesIO(
            response_bytes(Opcode.GETQ, 0, value=b"a") + response_bytes(Opcode.GET, 1, value=b"b")
        )
        assert read_frame(stream).value == b"a"
        assert read_frame(stream).value == b"b"

    def test_read_header_connection_closed(self) -> None:
        with pytest.raises(EOFError, match="Connection closed"):
            read_header(io.BytesIO(b""))

    def test_read_header_incomplete(self) -> None:
        with pytest.raises(EOFError, match="Incomplete header"):
            read_header(io.BytesIO(b"\x81\x00\x00"))

    def test_read_frame_incomplete_body(self) -> None:
        data = response_bytes(Opcode.GET, value=b"hello")
        with pytest.raises(EOFError, match="Incomplete body"):
            read_frame(io.BytesIO(data[:-2]))

    def test_body_too_large(self) -> None:
        data = struct.pack(
            HEADER_FORMAT, RESPONSE_MAGIC, Opcode.GET, 0, 0, 0, 0, MAX_BODY_SIZE + 1, 0, 0
        )
        with pytest.raises(ValueTooLargeError):
            read_header(io.BytesIO(data))
