# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Value encryption for the pymcbin memcached client.

Wraps any Transcoder with AES-256-GCM so values are encrypted before they
leave the process and authenticated when they come back.

Stored format:
    nonce (12 bytes) || ciphertext || auth tag (16 bytes)

The inner transcoder's type flag is kept in the low bits of the stored flag
and bound to the ciphertext as associated data, so a flag rewritten in the
store fails authentication instead of decoding garbage.
"""

from __future__ import annotations

import os
import secrets
import struct
from typing import Any, ClassVar

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import DecryptionError, EncryptionError, InvalidKeyError
from .transcoder import DefaultTranscoder, Transcoder

FLAG_ENCRYPTED: int = 0x0100


class EncryptedTranscoder(Transcoder):
    """
    AES-256-GCM encrypting wrapper around another transcoder.

    Example:
        >>> transcoder = EncryptedTranscoder.from_hex_key(generate_key())
        >>> data, flag = transcoder.encode({"user": 42})
        >>> transcoder.decode(data, flag)
        {'user': 42}
    """

    KEY_SIZE: ClassVar[int] = 32  # AES-256 requires 32-byte key
    NONCE_SIZE: ClassVar[int] = 12  # GCM standard nonce size
    TAG_SIZE: ClassVar[int] = 16  # GCM authentication tag size

    def __init__(self, key: bytes, inner: Transcoder | None = None) -> None:
        """
        Initialize with a raw key.

        Args:
            key: 32-byte (256-bit) encryption key.
            inner: Transcoder producing the plaintext (default: DefaultTranscoder).

        Raises:
            InvalidKeyError: If key is not 32 bytes.
        """
        if len(key) != self.KEY_SIZE:
            raise InvalidKeyError(f"Key must be {self.KEY_SIZE} bytes (256 bits), got {len(key)}")
        self._aesgcm = AESGCM(key)
        self._inner = inner or DefaultTranscoder()

    @classmethod
    def from_hex_key(cls, hex_key: str, inner: Transcoder | None = None) -> EncryptedTranscoder:
        """
        Create from a hex-encoded key.

        Raises:
            InvalidKeyError: If hex_key is invalid.
        """
        try:
            key = bytes.fromhex(hex_key)
        except ValueError as e:
            raise InvalidKeyError(f"Invalid hex key: {e}") from e
        return cls(key, inner)

    def encode(self, value: Any) -> tuple[bytes, int]:
        plaintext, inner_flag = self._inner.encode(value)
        if inner_flag & FLAG_ENCRYPTED:
            raise EncryptionError(f"Inner type flag 0x{inner_flag:08X} collides with the encrypted bit")
        try:
            nonce = os.urandom(self.NONCE_SIZE)
            ciphertext = self._aesgcm.encrypt(nonce, plaintext, struct.pack(">I", inner_flag))
        except Exception as e:
            raise EncryptionError(f"Encryption failed: {e}") from e
        return nonce + ciphertext, inner_flag | FLAG_ENCRYPTED

    def decode(self, data: bytes, type_flag: int) -> Any:
        if not type_flag & FLAG_ENCRYPTED:
            raise DecryptionError(f"Value with type flag 0x{type_flag:08X} is not encrypted")

        min_length = self.NONCE_SIZE + self.TAG_SIZE
        if len(data) < min_length:
            raise DecryptionError(f"Ciphertext too short (min {min_length} bytes)")

        inner_flag = type_flag & ~FLAG_ENCRYPTED
        try:
            plaintext = self._aesgcm.decrypt(
                data[: self.NONCE_SIZE],
                data[self.NONCE_SIZE :],
                struct.pack(">I", inner_flag),
            )
        except InvalidTag as e:
            raise DecryptionError("Decryption failed - data may be corrupted or tampered") from e
        return self._inner.decode(plaintext, inner_flag)


def generate_key() -> str:
    """
    Generate a cryptographically secure 256-bit key.

    Returns:
        64-character hex string representing the key.
    """
    return secrets.token_hex(EncryptedTranscoder.KEY_SIZE)


def validate_key(hex_key: str) -> bool:
    """Whether ``hex_key`` is a valid hex-encoded 256-bit key."""
    try:
        key = bytes.fromhex(hex_key)
    except ValueError:
        return False
    return len(key) == EncryptedTranscoder.KEY_SIZE
