#!/usr/bin/env python3
"""
03_encryption.py - AES-256-GCM Value Encryption Example

This example demonstrates:
- Generating encryption keys
- Encrypting cached values transparently with EncryptedTranscoder
- What happens when a client reads with the wrong key

Encryption features:
- AES-256-GCM: authenticated encryption of every value
- Random nonce per value: equal values never produce equal ciphertext
- Type flag bound to the ciphertext: a rewritten flag fails authentication

Prerequisites:
    - memcached running on localhost:11211
    - pymcbin installed

Run with:
    python 03_encryption.py
"""

from pymcbin import Client, EncryptedTranscoder, Status, generate_key, validate_key


def main():
    key = generate_key()
    print(f"Generated encryption key: {key[:16]}...{key[-8:]}")
    print(f"Key valid: {validate_key(key)}")

    secure = Client(host="localhost", transcoder=EncryptedTranscoder.from_hex_key(key))
    plain = Client(host="localhost")

    try:
        secure.set("example:secret", {"card": "4111-1111-1111-1111"})
        print(f"Decrypted value: {secure.get('example:secret').value}")

        # A client without the key sees the raw ciphertext flag and cannot decode it
        response = plain.get("example:secret")
        print(f"Plain client status: {response.status.name}")

        # A client with a different key fails authentication
        other = Client(host="localhost", transcoder=EncryptedTranscoder.from_hex_key(generate_key()))
        response = other.get("example:secret")
        if response.status is Status.TRANSCODE_ERROR:
            print("Wrong key: value could not be decrypted")
        other.close()

        secure.delete("example:secret")
    finally:
        secure.close()
        plain.close()


if __name__ == "__main__":
    main()
