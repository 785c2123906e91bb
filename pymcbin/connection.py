# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Connection transport for the pymcbin memcached client.

A Connection owns one TCP socket. Requests are written by the caller's
thread in a single ``sendall`` per batch; responses are read by a daemon
reader thread and delivered, in wire order, through a FIFO queue that the
response stream pulls from one frame at a time.

    caller thread                    reader thread
    -------------                    -------------
    submit([req, req, req])  --->    socket
                                     read_frame() -> queue
    receive() <-------------------------------------'
"""

from __future__ import annotations

import logging
import socket
import threading
from queue import Empty, Queue
from typing import TYPE_CHECKING, Any

from .exceptions import (
    AuthenticationError,
    ConnectionClosedError,
    ConnectionError,
    ConnectionTimeoutError,
    MemcacheError,
    TransportError,
)
from .protocol import Frame, Opcode, Status, WireRequest, encode_requests, read_frame

if TYPE_CHECKING:
    from .models import ClientConfig

logger = logging.getLogger(__name__)


class _ReaderFailure:
    """Queue marker carrying the error that stopped the reader thread."""

    __slots__ = ("error",)

    def __init__(self, error: MemcacheError) -> None:
        self.error = error


class Connection:
    """
    One authenticated socket to a memcached server.

    Example:
        >>> conn = Connection("127.0.0.1", 11211)
        >>> conn.open()
        >>> conn.submit([WireRequest(opcode=Opcode.VERSION)])
        >>> conn.receive().value
        b'1.6.21'
        >>> conn.close()
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 11211,
        *,
        connect_timeout_ms: int = 10000,
        request_timeout_ms: int | None = None,
        auth_method: str = "none",
        username: str = "",
        password: str = "",
    ) -> None:
        self.host = host
        self.port = port
        self._connect_timeout = connect_timeout_ms / 1000.0
        self._request_timeout = request_timeout_ms / 1000.0 if request_timeout_ms else None
        self._auth_method = auth_method
        self._username = username
        self._password = password

        self._sock: socket.socket | None = None
        self._reader = None
        self._thread: threading.Thread | None = None
        self._frames: Queue[Frame | _ReaderFailure] = Queue()
        self._write_lock = threading.Lock()
        self._closed = False
        self._broken = False

    @classmethod
    def from_config(cls, config: ClientConfig) -> Connection:
        """Create an unopened connection from a ClientConfig."""
        return cls(
            config.host,
            config.port,
            connect_timeout_ms=config.connect_timeout_ms,
            request_timeout_ms=config.request_timeout_ms,
            auth_method=config.auth_method,
            username=config.username,
            password=config.password,
        )

    @classmethod
    def from_socket(cls, sock: socket.socket, **kwargs: Any) -> Connection:
        """Wrap an already connected socket (authenticating if configured)."""
        conn = cls(**kwargs)
        conn._start(sock)
        return conn

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def broken(self) -> bool:
        """Whether an I/O failure left the connection unusable."""
        return self._broken

    @property
    def usable(self) -> bool:
        return not (self._closed or self._broken)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open(self) -> None:
        """
        Connect to the server, authenticate and start the reader thread.

        Raises:
            ConnectionError: If no address for the host accepts the connection.
            ConnectionTimeoutError: If connecting times out.
            AuthenticationError: If the SASL handshake fails.
        """
        server = f"{self.host}:{self.port}"
        try:
            addrs = socket.getaddrinfo(self.host, self.port, socket.AF_UNSPEC, socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise ConnectionError(f"Failed to resolve {self.host}: {e}", self.host, self.port) from e

        last_error: MemcacheError | None = None
        for family, socktype, proto, _canonname, sockaddr in addrs:
            sock = None
            try:
                sock = socket.socket(family, socktype, proto)
                sock.settimeout(self._connect_timeout)
                sock.connect(sockaddr)
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except socket.timeout:
                last_error = ConnectionTimeoutError(
                    f"Connection to {server} timed out", self.host, self.port
                )
                if sock:
                    sock.close()
                continue
            except OSError as e:
                last_error = ConnectionError(f"Failed to connect to {server}: {e}", self.host, self.port)
                if sock:
                    sock.close()
                continue

            logger.info("Connected to %s", server)
            self._start(sock)
            return

        if last_error:
            raise last_error
        raise ConnectionError(f"No addresses found for {server}", self.host, self.port)

    def _start(self, sock: socket.socket) -> None:
        self._sock = sock
        self._reader = sock.makefile("rb")
        try:
            if self._auth_method == "plain":
                self._authenticate()
        except BaseException:
            self.close()
            raise
        sock.settimeout(None)

        self._thread = threading.Thread(
            target=self._read_loop,
            name=f"pymcbin-reader-{self.host}:{self.port}",
            daemon=True,
        )
        self._thread.start()

    def close(self) -> None:
        """Close the socket and stop the reader thread. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        if self._sock is not None:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # already disconnected
            self._sock.close()

        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)

        if self._reader is not None:
            self._reader.close()

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # =========================================================================
    # Authentication
    # =========================================================================

    def _authenticate(self) -> None:
        """Run the SASL PLAIN handshake synchronously, before the reader starts."""
        logger.info("Authenticating as %s", self._username)
        try:
            self._write([WireRequest(opcode=Opcode.SASL_LIST_MECHS)])
            frame = read_frame(self._reader)

            if frame.status == Status.UNKNOWN_COMMAND:
                logger.debug("Server does not require authentication")
                return
            if frame.status != Status.OK:
                raise AuthenticationError(
                    f"Listing SASL mechanisms failed: {frame.status.name}", frame.status
                )

            mechanisms = frame.value.decode("ascii", "replace").split()
            if "PLAIN" not in mechanisms:
                raise AuthenticationError(
                    f"Server does not offer SASL PLAIN (offers: {' '.join(mechanisms) or 'none'})"
                )

            credentials = b"\x00".join(
                (b"", self._username.encode("utf-8"), self._password.encode("utf-8"))
            )
            self._write([WireRequest(opcode=Opcode.SASL_AUTH, key=b"PLAIN", value=credentials)])
            frame = read_frame(self._reader)
        except socket.timeout as e:
            raise ConnectionTimeoutError(
                f"Authentication with {self.host}:{self.port} timed out", self.host, self.port
            ) from e
        except EOFError as e:
            raise ConnectionClosedError(f"Connection closed during authentication: {e}") from e

        if frame.status == Status.AUTH_ERROR:
            raise AuthenticationError("Incorrect username or password", frame.status)
        if frame.status != Status.OK:
            raise AuthenticationError(f"Authentication failed: {frame.status.name}", frame.status)

        logger.debug("Authenticated as %s", self._username)

    # =========================================================================
    # I/O
    # =========================================================================

    def _write(self, requests: list[WireRequest]) -> None:
        if self._sock is None:
            raise TransportError(f"Connection to {self.host}:{self.port} is not open")
        self._sock.sendall(encode_requests(requests))

    def submit(self, requests: list[WireRequest]) -> None:
        """
        Write a batch of requests with one ``sendall``.

        Raises:
            TransportError: If the connection is unusable or the write fails.
        """
        with self._write_lock:
            if not self.usable:
                raise TransportError("Connection is closed or broken")
            try:
                self._write(requests)
            except OSError as e:
                self._broken = True
                raise TransportError(f"Failed to send {len(requests)} request(s): {e}") from e
        logger.debug("Submitted %d request(s) to %s:%s", len(requests), self.host, self.port)

    def receive(self, timeout: float | None = None) -> Frame:
        """
        Block until the next response frame arrives.

        Args:
            timeout: Seconds to wait; defaults to the configured request
                timeout, None waits forever.

        Raises:
            ConnectionClosedError: If the server closed the connection.
            ConnectionTimeoutError: If no frame arrived in time.
            TransportError: If reading from the socket failed.
            ProtocolError: If the server sent a malformed packet.
        """
        if timeout is None:
            timeout = self._request_timeout
        try:
            item = self._frames.get(timeout=timeout)
        except Empty:
            # A late frame would be attributed to the next batch.
            self._broken = True
            raise ConnectionTimeoutError(
                f"No response from {self.host}:{self.port} within {timeout:.3f}s",
                self.host,
                self.port,
            ) from None

        if isinstance(item, _ReaderFailure):
            self._frames.put(item)
            raise item.error
        return item

    def _read_loop(self) -> None:
        while True:
            try:
                frame = read_frame(self._reader)
            except EOFError as e:
                error: MemcacheError = ConnectionClosedError(str(e))
            except MemcacheError as e:
                error = e
            except (OSError, ValueError) as e:
                # ValueError: the file object was closed under us.
                error = TransportError(f"Failed to read from {self.host}:{self.port}: {e}")
            else:
                self._frames.put(frame)
                continue

            self._broken = True
            if not self._closed:
                logger.warning("Reader for %s:%s stopped: %s", self.host, self.port, error)
            self._frames.put(_ReaderFailure(error))
            return
