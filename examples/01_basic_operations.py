#!/usr/bin/env python3
"""
01_basic_operations.py - pymcbin Basic Operations Example

This is the foundational example for understanding the pymcbin client.

What this example demonstrates:
- Using connect() for a one-liner client
- Storing typed values (str, int, JSON) and reading them back
- Branching on response status instead of catching exceptions
- Counters with an initial value
- Proper resource cleanup with context managers

Key Concepts:
- Response.status: every call returns a status; misses are not errors
- CAS: a token that lets a write succeed only if nobody changed the item

Prerequisites:
    - memcached running on localhost:11211 (default port)
    - pymcbin installed: pip install pymcbin

Run with:
    python 01_basic_operations.py
"""

from pymcbin import Status, connect


def main():
    print("Connecting to memcached at localhost:11211...")
    with connect("localhost", 11211) as client:
        print(f"Server version: {client.version().value.decode()}")

        # Typed values survive the round trip
        client.set("example:greeting", "Hello, memcached!")
        client.set("example:answer", 42)
        client.set("example:user", {"name": "Ada", "roles": ["admin"]}, expires=300)

        for key in ("example:greeting", "example:answer", "example:user"):
            response = client.get(key)
            print(f"{key} -> {response.value!r}")

        # Misses are a status, not an exception
        response = client.get("example:missing")
        if response.status is Status.KEY_NOT_FOUND:
            print("example:missing is not cached")

        # add only stores when the key is absent
        print(f"add existing key: {client.add('example:answer', 0).status.name}")

        # CAS guards against lost updates
        current = client.get("example:user")
        updated = dict(current.value, roles=["admin", "ops"])
        response = client.set("example:user", updated, cas=current.cas)
        print(f"CAS update: {response.status.name}")

        # Counters are created with initial_value on first use
        print(f"hits = {client.increment('example:hits', 1, initial_value=100).value}")
        print(f"hits = {client.increment('example:hits', 1).value}")

        client.delete("example:hits")
        print("\n✓ Done")


if __name__ == "__main__":
    main()
