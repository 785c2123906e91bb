#!/usr/bin/env python3
"""
02_pipelining.py - Pipelined Multi-Key Operations

This example demonstrates:
- mset(): writing many keys in one round trip
- mget(): reading many keys in one round trip, misses included
- Stopping early with a context manager so the connection is reused
- multi_request(): mixing operations in one batch

How it works:
    Every request in a batch but the last is sent in its quiet form. The
    server only answers quiet requests that have something to report, so a
    batch of N keys costs one round trip. The response stream still yields
    exactly one response per request, in request order.

Prerequisites:
    - memcached running on localhost:11211
    - pymcbin installed

Run with:
    python 02_pipelining.py
"""

import time

from pymcbin import Client, Opcode, StoreOptions
from pymcbin import builder


def main():
    with Client(host="localhost", port=11211, pool_size=4) as client:
        items = {f"example:item:{i}": {"id": i, "square": i * i} for i in range(1000)}

        start = time.perf_counter()
        with client.mset(items, expires=60) as responses:
            stored = sum(1 for r in responses if r.ok)
        print(f"Stored {stored} items in {(time.perf_counter() - start) * 1000:.1f} ms")

        keys = ["example:item:1", "example:item:missing", "example:item:3"]
        with client.mget(keys) as responses:
            for response in responses:
                print(f"  {response.decode_key():<24} {response.status.name:<14} {response.value!r}")

        # Only the first response is needed; leaving the block drains the rest
        with client.mget(list(items)) as responses:
            first = next(responses)
            print(f"First of {len(items)}: {first.value}")

        # Mixed batch: store, read back and delete in one round trip
        requests = [
            builder.store_request(Opcode.SET, "example:tmp", "scratch", StoreOptions(), client.transcoder),
            builder.get_request("example:tmp"),
            builder.delete_request("example:tmp"),
        ]
        for response in client.multi_request(requests):
            print(f"  {response.status.name:<14} {response.value!r}")


if __name__ == "__main__":
    main()
