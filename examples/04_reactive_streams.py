#!/usr/bin/env python3
"""
04_reactive_streams.py - Reactive Streams Example

This example demonstrates:
- Turning pipelined batches into RxPY Observables
- Filtering and transforming responses with operators
- Running several batches concurrently on the worker pool

Prerequisites:
    - memcached running on localhost:11211
    - pymcbin installed
    - reactivex installed: pip install reactivex

Run with:
    python 04_reactive_streams.py
"""

import reactivex as rx
from reactivex import operators as ops

from pymcbin import Client, ReactiveClient


def main():
    with Client(host="localhost", pool_size=4) as client:
        reactive = ReactiveClient(client, max_workers=4)

        stored = reactive.mset({f"example:rx:{i}": i for i in range(20)}).pipe(ops.count()).run()
        print(f"Stored {stored} values")

        # Keep the hits, square them, sum the result
        total = (
            reactive.values([f"example:rx:{i}" for i in range(25)])
            .pipe(
                ops.map(lambda pair: pair[1] ** 2),
                ops.sum(),
            )
            .run()
        )
        print(f"Sum of squares: {total}")

        # Two batches in flight at once, merged as they arrive
        evens = reactive.mget([f"example:rx:{i}" for i in range(0, 20, 2)])
        odds = reactive.mget([f"example:rx:{i}" for i in range(1, 20, 2)])
        found = rx.merge(evens, odds).pipe(ops.filter(lambda r: r.ok), ops.count()).run()
        print(f"Found {found} keys across two concurrent batches")


if __name__ == "__main__":
    main()
