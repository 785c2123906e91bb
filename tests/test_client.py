# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Tests for the Client against an in-memory memcached."""

import gc

import pytest

from pymcbin import Client, connect
from pymcbin.exceptions import EncodeError, PoolClosedError
from pymcbin.pool import ConnectionPool
from pymcbin.protocol import Opcode, Status
from pymcbin.transcoder import BytesTranscoder

from tests.fakes import FakeConnection, FakeMemcached


@pytest.fixture
def server() -> FakeMemcached:
    return FakeMemcached()


@pytest.fixture
def pool(server: FakeMemcached) -> ConnectionPool:
    return ConnectionPool(lambda: FakeConnection(server), size=2, max_overflow=0, checkout_timeout_ms=100)


@pytest.fixture
def client(pool: ConnectionPool) -> Client:
    c = Client(pool=pool)
    yield c
    c.close()


class TestRetrieval:
    def test_set_then_get(self, client: Client) -> None:
        assert client.set("greeting", "hello").ok
        response = client.get("greeting")

        assert response.status is Status.OK
        assert response.value == "hello"
        assert response.key == b"greeting"
        assert response.cas > 0

    def test_typed_values(self, client: Client) -> None:
        client.set("bytes", b"\x00\x01")
        client.set("int", 42)
        client.set("doc", {"a": [1, 2]})

        assert client.get("bytes").value == b"\x00\x01"
        assert client.get("int").value == 42
        assert client.get("doc").value == {"a": [1, 2]}

    def test_get_missing(self, client: Client) -> None:
        response = client.get("missing")
        assert response.status is Status.KEY_NOT_FOUND
        assert not response.found

    def test_mget_with_miss(self, client: Client, server: FakeMemcached) -> None:
        client.set("a", "1")
        client.set("c", "3")

        with client.mget(["a", "b", "c"]) as responses:
            results = list(responses)

        assert [r.key for r in results] == [b"a", b"b", b"c"]
        assert [r.status for r in results] == [Status.OK, Status.KEY_NOT_FOUND, Status.OK]
        assert results[0].value == "1"
        assert results[2].value == "3"
        assert [r.opcode for r in server.received[-3:]] == [Opcode.GETQ, Opcode.GETQ, Opcode.GET]

    def test_mget_empty(self, client: Client, pool: ConnectionPool) -> None:
        assert list(client.mget([])) == []
        assert pool.in_use == 0

    def test_mget_transcode_error_isolated(self, client: Client, server: FakeMemcached) -> None:
        client.set("a", "1")
        client.set("c", "3")
        server.items[b"b"] = (b"junk", 0x77, 99)

        results = list(client.mget(["a", "b", "c"]))

        assert [r.status for r in results] == [Status.OK, Status.TRANSCODE_ERROR, Status.OK]


class TestStorage:
    def test_add_existing(self, client: Client) -> None:
        client.set("k", "v")
        assert client.add("k", "other").status is Status.KEY_EXISTS
        assert client.get("k").value == "v"

    def test_replace_missing(self, client: Client) -> None:
        assert client.replace("k", "v").status is Status.KEY_NOT_FOUND

    def test_cas_mismatch(self, client: Client) -> None:
        cas = client.set("k", "v").cas
        assert client.set("k", "new", cas=cas + 100).status is Status.KEY_EXISTS
        assert client.set("k", "new", cas=cas).ok

    def test_unknown_options_ignored(self, client: Client) -> None:
        assert client.set("k", "v", expires=10, initial_value=5).ok

    def test_unencodable_value_sends_nothing(self, client: Client, server: FakeMemcached) -> None:
        with pytest.raises(EncodeError):
            client.set("k", object())
        assert server.received == []

    def test_mset(self, client: Client, server: FakeMemcached) -> None:
        with client.mset({"a": 1, "b": "two", "c": [3]}) as responses:
            statuses = [r.status for r in responses]

        assert statuses == [Status.OK] * 3
        assert [r.opcode for r in server.received] == [Opcode.SETQ, Opcode.SETQ, Opcode.SET]
        assert client.get("c").value == [3]

    def test_mset_pairs(self, client: Client) -> None:
        assert len(list(client.mset([("a", 1), ("b", 2)]))) == 2

    def test_mset_encode_error_sends_nothing(self, client: Client, server: FakeMemcached) -> None:
        with pytest.raises(EncodeError):
            client.mset({"a": 1, "b": object()})
        assert server.received == []

    def test_append_prepend(self, client: Client) -> None:
        client.set("k", "mid")
        assert client.append("k", "-end").ok
        assert client.prepend("k", "start-").ok
        assert client.get("k").value == "start-mid-end"

    def test_append_missing(self, client: Client) -> None:
        assert client.append("k", "x").status is Status.ITEM_NOT_STORED

    def test_delete(self, client: Client) -> None:
        client.set("k", "v")
        assert client.delete("k").ok
        assert client.delete("k").status is Status.KEY_NOT_FOUND


class TestCounters:
    def test_increment_missing_key_uses_initial_value(self, client: Client) -> None:
        response = client.increment("counter", 5, initial_value=10)
        assert response.ok
        assert response.value == 10

    def test_increment_existing(self, client: Client) -> None:
        client.set("counter", 7)
        assert client.increment("counter", 5).value == 12

    def test_decrement_clamps_at_zero(self, client: Client) -> None:
        client.set("counter", 3)
        assert client.decrement("counter", 10).value == 0

    def test_non_numeric(self, client: Client) -> None:
        client.set("counter", "abc")
        response = client.increment("counter")
        assert response.status is Status.NON_NUMERIC_VALUE


class TestServer:
    def test_flush(self, client: Client) -> None:
        client.set("k", "v")
        assert client.flush().ok
        assert client.get("k").status is Status.KEY_NOT_FOUND

    def test_version(self, client: Client) -> None:
        assert client.version().value == FakeMemcached.VERSION

    def test_noop(self, client: Client) -> None:
        assert client.noop().ok

    def test_multi_request_mixed(self, client: Client) -> None:
        from pymcbin import builder
        from pymcbin.models import StoreOptions

        requests = [
            builder.store_request(Opcode.SET, "k", "v", StoreOptions(), client.transcoder),
            builder.get_request("k"),
            builder.delete_request("k"),
            builder.get_request("k"),
        ]
        results = list(client.multi_request(requests))

        assert [r.status for r in results] == [Status.OK, Status.OK, Status.OK, Status.KEY_NOT_FOUND]
        assert results[1].value == "v"


class TestLifecycle:
    def test_connections_returned(self, client: Client, pool: ConnectionPool) -> None:
        client.set("k", "v")
        client.get("k")
        list(client.mget(["k", "x"]))
        assert pool.in_use == 0

    def test_abandoned_mget_returns_connection(self, server: FakeMemcached) -> None:
        pool = ConnectionPool(lambda: FakeConnection(server), size=1, max_overflow=0, checkout_timeout_ms=200)
        client = Client(pool=pool)
        client.set("a", "x")

        for _ in client.mget(["a", "b", "c"]):
            break
        gc.collect()

        assert pool.in_use == 0
        assert client.get("a").value == "x"
        client.close()

    def test_context_manager_closes_pool(self, pool: ConnectionPool) -> None:
        with Client(pool=pool) as client:
            client.noop()
        assert pool.closed
        with pytest.raises(PoolClosedError):
            client.noop()

    def test_custom_transcoder(self, pool: ConnectionPool) -> None:
        client = Client(pool=pool, transcoder=BytesTranscoder())
        with pytest.raises(EncodeError):
            client.set("k", "str")

    def test_config_overrides(self, pool: ConnectionPool) -> None:
        client = Client(pool=pool, host="cache.internal", pool_size=3)
        assert client.config.host == "cache.internal"
        assert client.config.pool_size == 3

    def test_connect_with_credentials(self) -> None:
        client = connect("cache.internal", 11311, username="app", password="secret")
        assert client.config.auth_method == "plain"
        assert client.config.username == "app"
        assert client.config.port == 11311
        client.close()
