# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Reactive Streams support for the pymcbin memcached client.

Exposes pipelined batches as RxPY Observables. Each subscription dispatches
its own batch on a worker thread, and disposing the subscription stops the
stream and hands its connection back to the pool.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

import reactivex as rx
from reactivex import Observable, operators as ops
from reactivex.disposable import CompositeDisposable, Disposable
from reactivex.scheduler import ThreadPoolScheduler

from .builder import get_request

if TYPE_CHECKING:
    from reactivex.abc import ObserverBase, SchedulerBase

    from .client import Client
    from .stream import ResponseStream
    from .types import Request, Response


class ReactiveClient:
    """
    Observable views over a Client's pipelined operations.

    Example:
        >>> reactive = ReactiveClient(client)
        >>> reactive.mget(["a", "b", "c"]).pipe(
        ...     ops.filter(lambda r: r.ok),
        ...     ops.map(lambda r: r.value),
        ... ).subscribe(on_next=print)
    """

    def __init__(
        self,
        client: Client,
        max_workers: int = 4,
        scheduler: ThreadPoolScheduler | None = None,
    ) -> None:
        """
        Initialize reactive client.

        Args:
            client: Client whose pool and transcoder are used.
            max_workers: Threads available for concurrent subscriptions.
            scheduler: Shared scheduler to run on instead of a private one.
                A shared scheduler is left running by close().
        """
        self._client = client
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or ThreadPoolScheduler(max_workers=max_workers)

    @property
    def scheduler(self) -> ThreadPoolScheduler:
        return self._scheduler

    def close(self) -> None:
        """Shut down the private worker threads. The Client stays open."""
        if self._owns_scheduler:
            self._scheduler.executor.shutdown(wait=False)

    def __enter__(self) -> ReactiveClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _observe(self, open_stream: Callable[[], ResponseStream]) -> Observable[Response]:
        def subscribe(observer: ObserverBase[Response], scheduler: SchedulerBase | None = None) -> Any:
            cancelled = threading.Event()

            def run(_scheduler: Any, _state: Any = None) -> None:
                try:
                    stream = open_stream()
                except Exception as e:
                    observer.on_error(e)
                    return

                try:
                    with stream:
                        for response in stream:
                            if cancelled.is_set():
                                return
                            observer.on_next(response)
                except Exception as e:
                    observer.on_error(e)
                    return

                if not cancelled.is_set():
                    observer.on_completed()

            # Blocking socket reads stay off the subscriber's scheduler.
            scheduled = self._scheduler.schedule(run)
            return CompositeDisposable(scheduled, Disposable(cancelled.set))

        return rx.create(subscribe)

    def multi_request(self, requests: Iterable[Request]) -> Observable[Response]:
        """Dispatch ``requests`` as one batch per subscription."""
        batch = list(requests)
        return self._observe(lambda: self._client.multi_request(batch))

    def mget(self, keys: Iterable[bytes | str]) -> Observable[Response]:
        """
        Get several keys in one pipelined round trip per subscription.

        Returns:
            Observable emitting one Response per key, in order.
        """
        return self.multi_request([get_request(key) for key in keys])

    def mset(
        self,
        items: Mapping[bytes | str, Any] | Iterable[tuple[bytes | str, Any]],
        **opts: Any,
    ) -> Observable[Response]:
        """Set several keys in one pipelined round trip per subscription."""
        pairs = list(items.items() if isinstance(items, Mapping) else items)
        return self._observe(lambda: self._client.mset(pairs, **opts))

    def values(self, keys: Iterable[bytes | str]) -> Observable[tuple[bytes, Any]]:
        """
        Emit ``(key, value)`` for every key that was found and decoded.

        Misses and transcode errors are skipped.
        """
        return self.mget(keys).pipe(
            ops.filter(lambda response: response.ok),
            ops.map(lambda response: (response.key, response.value)),
        )
