# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Tests for value encryption."""

import pytest

from pymcbin.crypto import FLAG_ENCRYPTED, EncryptedTranscoder, generate_key, validate_key
from pymcbin.exceptions import DecryptionError, InvalidKeyError
from pymcbin.transcoder import FLAG_JSON, FLAG_STRING


@pytest.fixture
def transcoder() -> EncryptedTranscoder:
    return EncryptedTranscoder.from_hex_key(generate_key())


class TestKeys:
    """Tests for key generation and validation."""

    def test_generate_key(self) -> None:
        key = generate_key()
        assert len(key) == 64
        assert validate_key(key)

    def test_keys_are_random(self) -> None:
        assert generate_key() != generate_key()

    def test_validate_key(self) -> None:
        assert not validate_key("abcd")
        assert not validate_key("zz" * 32)
        assert validate_key("00" * 32)

    def test_wrong_key_size(self) -> None:
        with pytest.raises(InvalidKeyError):
            EncryptedTranscoder(b"short")

    def test_invalid_hex(self) -> None:
        with pytest.raises(InvalidKeyError):
            EncryptedTranscoder.from_hex_key("not hex")


class TestEncryptedTranscoder:
    """Tests for EncryptedTranscoder."""

    def test_roundtrip(self, transcoder: EncryptedTranscoder) -> None:
        data, flag = transcoder.encode({"user": 42})
        assert flag == FLAG_JSON | FLAG_ENCRYPTED
        assert b"user" not in data
        assert transcoder.decode(data, flag) == {"user": 42}

    def test_nonce_differs_per_encode(self, transcoder: EncryptedTranscoder) -> None:
        first, _ = transcoder.encode("same")
        second, _ = transcoder.encode("same")
        assert first != second

    def test_wrong_key(self, transcoder: EncryptedTranscoder) -> None:
        data, flag = transcoder.encode("secret")
        other = EncryptedTranscoder.from_hex_key(generate_key())
        with pytest.raises(DecryptionError):
            other.decode(data, flag)

    def test_tampered_ciphertext(self, transcoder: EncryptedTranscoder) -> None:
        data, flag = transcoder.encode("secret")
        tampered = data[:-1] + bytes([data[-1] ^ 0x01])
        with pytest.raises(DecryptionError):
            transcoder.decode(tampered, flag)

    def test_rewritten_flag_fails_authentication(self, transcoder: EncryptedTranscoder) -> None:
        """The inner flag is bound to the ciphertext."""
        data, _ = transcoder.encode("secret")
        with pytest.raises(DecryptionError):
            transcoder.decode(data, FLAG_JSON | FLAG_ENCRYPTED)

    def test_unencrypted_value(self, transcoder: EncryptedTranscoder) -> None:
        with pytest.raises(DecryptionError, match="not encrypted"):
            transcoder.decode(b"plain", FLAG_STRING)

    def test_too_short(self, transcoder: EncryptedTranscoder) -> None:
        with pytest.raises(DecryptionError, match="too short"):
            transcoder.decode(b"\x00" * 10, FLAG_STRING | FLAG_ENCRYPTED)
