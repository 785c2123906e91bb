# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Custom exceptions for the pymcbin memcached client.

All exceptions inherit from MemcacheError, making it easy to catch every
client-side failure with a single except clause:

    try:
        client.set("key", "value")
    except MemcacheError as e:
        print(f"memcache error: {e}")

Protocol-level outcomes such as a missing key or a failed CAS check are
NOT exceptions. They come back as a normal Response whose ``status`` the
caller branches on. Exceptions are reserved for failures that abort the
whole call: connection and transport problems, pool shutdown, values that
cannot be encoded, and malformed packets.
"""

from __future__ import annotations


class MemcacheError(Exception):
    """
    Base exception for all pymcbin errors.

    All pymcbin exceptions inherit from this class, allowing you to catch
    all client errors with a single except clause.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        self.hint = hint
        if hint:
            message = f"{message}\n\n  Hint: {hint}"
        super().__init__(message)


class ConnectionError(MemcacheError):
    """
    Raised when connection to the memcached server fails.

    Common causes:
    - Server is not running
    - Wrong host or port
    - Firewall blocking connection
    """

    def __init__(
        self,
        message: str,
        host: str | None = None,
        port: int | None = None,
        *,
        hint: str | None = None,
    ) -> None:
        self.host = host
        self.port = port
        if hint is None and host:
            hint = f"Check that memcached is running on {host}:{port}"
        super().__init__(message, hint=hint)


class ConnectionClosedError(ConnectionError):
    """Raised when the server closes the connection mid-batch."""

    def __init__(self, message: str = "Connection closed by server") -> None:
        super().__init__(message, hint="The server may have been restarted. Retry the call.")


class ConnectionTimeoutError(ConnectionError):
    """
    Raised when connecting, or waiting for a response frame, times out.
    """

    def __init__(self, message: str, host: str | None = None, port: int | None = None) -> None:
        super().__init__(
            message,
            host,
            port,
            hint="Try increasing connect_timeout_ms/request_timeout_ms or check network connectivity",
        )


class TransportError(MemcacheError):
    """
    Raised when a batch cannot be written to, or read from, a connection.

    A failed submission is never partially observable: no response for
    any request of the batch is produced.
    """


class AuthenticationError(MemcacheError):
    """Raised when the SASL handshake fails."""

    def __init__(self, message: str = "Authentication failed", status: int | None = None) -> None:
        self.status = status
        super().__init__(
            message,
            hint="Check username/password and that the server has SASL PLAIN enabled",
        )


class PoolError(MemcacheError):
    """Base exception for connection pool errors."""


class PoolTimeoutError(PoolError):
    """Raised when no connection became free within checkout_timeout_ms."""

    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(
            f"No connection available after {timeout_ms} ms",
            hint="Increase pool_size/pool_max_overflow or close abandoned response streams",
        )


class PoolClosedError(PoolError):
    """Raised when checking out from a pool that has been closed."""

    def __init__(self) -> None:
        super().__init__("Connection pool is closed")


class ProtocolError(MemcacheError):
    """Base exception for malformed or unexpected packets."""


class InvalidMagicError(ProtocolError):
    """Raised when a response packet does not start with the response magic."""

    def __init__(self, received: int) -> None:
        super().__init__(
            f"Invalid magic byte: 0x{received:02X}, expected 0x81",
            hint="Check that you are connecting to a memcached binary protocol port",
        )
        self.received = received


class UnknownOpcodeError(ProtocolError):
    """Raised when a response carries an opcode this client never sends."""

    def __init__(self, opcode: int) -> None:
        super().__init__(f"Unknown operation code: 0x{opcode:02X}")
        self.opcode = opcode


class UnknownStatusError(ProtocolError):
    """Raised when a response carries a status this client does not know."""

    def __init__(self, status: int) -> None:
        super().__init__(f"Unknown response status: 0x{status:04X}")
        self.status = status


class ValueTooLargeError(ProtocolError):
    """Raised when a response body exceeds the maximum accepted size."""

    def __init__(self, size: int, max_size: int) -> None:
        self.size = size
        self.max_size = max_size
        super().__init__(f"Response body of {size} bytes exceeds maximum {max_size} bytes")


class TranscodeError(MemcacheError):
    """Base exception for value encoding/decoding errors."""


class EncodeError(TranscodeError):
    """Raised when a value cannot be encoded for storage."""


class DecodeError(TranscodeError):
    """Raised when stored bytes cannot be decoded back into a value."""


class UnknownTypeFlagError(DecodeError):
    """Raised when a stored value carries a type flag no decoder handles."""

    def __init__(self, type_flag: int) -> None:
        self.type_flag = type_flag
        super().__init__(f"Unknown type flag: 0x{type_flag:08X}")


class CryptoError(TranscodeError):
    """Base exception for value encryption errors."""


class EncryptionError(CryptoError, EncodeError):
    """Raised when a value cannot be encrypted."""

    def __init__(self, message: str = "Encryption failed") -> None:
        super().__init__(message, hint="Check that the encryption key is valid")


class DecryptionError(CryptoError, DecodeError):
    """
    Raised when a stored value cannot be decrypted.

    This typically means:
    - Wrong encryption key
    - Data was corrupted
    - Data was tampered with
    """

    def __init__(self, message: str = "Decryption failed") -> None:
        super().__init__(
            message,
            hint="Ensure every client sharing these keys uses the same encryption key",
        )


class InvalidKeyError(CryptoError):
    """
    Raised when an encryption key is invalid.

    Keys must be 32 bytes (256 bits) for AES-256-GCM.
    """

    def __init__(self, message: str = "Invalid encryption key") -> None:
        super().__init__(message, hint="Use generate_key() to create a valid 256-bit key")
