# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Connection pool for the pymcbin memcached client.

The pool is the only backpressure mechanism in the client: a caller that
needs a connection while ``size + max_overflow`` are already checked out
blocks in ``checkout()`` until another caller checks one back in.

- Up to ``size`` connections are kept open while idle.
- Up to ``max_overflow`` extra connections are opened under load and
  closed again when they are checked in to a full idle set.
- Connections that broke while checked out are discarded at checkin.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .connection import Connection
from .exceptions import PoolClosedError, PoolTimeoutError

if TYPE_CHECKING:
    from .models import ClientConfig

logger = logging.getLogger(__name__)


class ConnectionPool:
    """
    Thread-safe pool of open connections.

    Example:
        >>> pool = ConnectionPool.from_config(ClientConfig(pool_size=2))
        >>> conn = pool.checkout()
        >>> try:
        ...     conn.submit(requests)
        ... finally:
        ...     pool.checkin(conn)
        >>> pool.close()
    """

    def __init__(
        self,
        factory: Callable[[], Connection],
        *,
        size: int = 5,
        max_overflow: int = 10,
        checkout_timeout_ms: int | None = None,
    ) -> None:
        """
        Initialize pool. Connections are opened lazily on first checkout.

        Args:
            factory: Returns a new, open connection.
            size: Connections kept open while idle.
            max_overflow: Extra connections allowed under load.
            checkout_timeout_ms: Maximum wait in checkout(); None waits forever.
        """
        if size < 1:
            raise ValueError(f"Pool size must be at least 1, got {size}")
        if max_overflow < 0:
            raise ValueError(f"max_overflow must not be negative, got {max_overflow}")

        self._factory = factory
        self._size = size
        self._max_overflow = max_overflow
        self._checkout_timeout_ms = checkout_timeout_ms

        self._cond = threading.Condition()
        self._idle: deque[Connection] = deque()
        self._checked_out: set[Connection] = set()
        self._opened = 0
        self._closed = False

    @classmethod
    def from_config(cls, config: ClientConfig) -> ConnectionPool:
        """Create a pool of connections described by a ClientConfig."""

        def factory() -> Connection:
            conn = Connection.from_config(config)
            conn.open()
            return conn

        return cls(
            factory,
            size=config.pool_size,
            max_overflow=config.pool_max_overflow,
            checkout_timeout_ms=config.checkout_timeout_ms,
        )

    @property
    def size(self) -> int:
        return self._size

    @property
    def max_overflow(self) -> int:
        return self._max_overflow

    @property
    def in_use(self) -> int:
        """Number of connections currently checked out."""
        with self._cond:
            return len(self._checked_out)

    @property
    def idle(self) -> int:
        """Number of open connections waiting in the pool."""
        with self._cond:
            return len(self._idle)

    @property
    def closed(self) -> bool:
        return self._closed

    def checkout(self) -> Connection:
        """
        Take a connection out of the pool, opening one if allowed.

        Blocks while every allowed connection is checked out.

        Raises:
            PoolClosedError: If the pool has been closed.
            PoolTimeoutError: If checkout_timeout_ms elapsed while waiting.
            ConnectionError: If opening a new connection failed.
        """
        deadline = None
        if self._checkout_timeout_ms is not None:
            deadline = time.monotonic() + self._checkout_timeout_ms / 1000.0

        stale: list[Connection] = []
        try:
            with self._cond:
                while True:
                    if self._closed:
                        raise PoolClosedError()

                    while self._idle:
                        conn = self._idle.popleft()
                        if conn.usable:
                            self._checked_out.add(conn)
                            return conn
                        self._opened -= 1
                        stale.append(conn)

                    if self._opened < self._size + self._max_overflow:
                        self._opened += 1
                        break

                    remaining = None
                    if deadline is not None:
                        remaining = deadline - time.monotonic()
                        if remaining <= 0:
                            raise PoolTimeoutError(self._checkout_timeout_ms)
                    self._cond.wait(remaining)
        finally:
            for stale_conn in stale:
                logger.warning("Discarding unusable idle connection to %s:%s", stale_conn.host, stale_conn.port)
                stale_conn.close()

        try:
            conn = self._factory()
        except BaseException:
            with self._cond:
                self._opened -= 1
                self._cond.notify()
            raise

        with self._cond:
            self._checked_out.add(conn)
        logger.debug("Opened pooled connection %d of %d", self._opened, self._size + self._max_overflow)
        return conn

    def checkin(self, conn: Connection) -> None:
        """
        Return a connection to the pool. Never raises.

        Broken connections, overflow connections that find the idle set full,
        and every connection of a closed pool are closed instead of kept.
        A second checkin of the same connection is ignored.
        """
        with self._cond:
            if conn not in self._checked_out:
                logger.debug("Ignoring checkin of a connection that is not checked out")
                return
            self._checked_out.discard(conn)

            keep = not self._closed and conn.usable and len(self._idle) < self._size
            if keep:
                self._idle.append(conn)
            else:
                self._opened -= 1
            self._cond.notify()

        if not keep:
            if not conn.usable and not conn.closed:
                logger.warning("Discarding broken connection to %s:%s", conn.host, conn.port)
            conn.close()

    def close(self) -> None:
        """
        Close idle connections and refuse further checkouts.

        Connections still checked out are closed when they are checked in.
        """
        with self._cond:
            if self._closed:
                return
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()
            self._opened -= len(idle)
            self._cond.notify_all()

        for conn in idle:
            conn.close()
        logger.debug("Connection pool closed (%d connection(s) still checked out)", len(self._checked_out))

    def __enter__(self) -> ConnectionPool:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
