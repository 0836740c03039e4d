"""End-to-end tests against a real Redis server."""

import time
from collections.abc import Iterator

import pytest
import redis

from kvbind import ExpirationTime, Lookup, RedisClient, ResultKind, SetOpType
from tests.fixtures.containers import TEST_DB, ContainerInfo

pytestmark = pytest.mark.integration


@pytest.fixture
def kv(redis_server: ContainerInfo) -> Iterator[RedisClient]:
    with RedisClient(redis_server.address, db=TEST_DB) as client:
        yield client


@pytest.fixture
def raw(redis_server: ContainerInfo) -> Iterator[redis.Redis]:
    client = redis.Redis(host=redis_server.host, port=redis_server.port, db=TEST_DB)
    yield client
    client.close()


class TestStrings:
    @pytest.mark.parametrize(
        "value",
        [b"plain", b"", b"nul\x00inside", b"\xff\xfe not utf-8 \x80", "unicodé".encode()],
    )
    def test_round_trip(self, kv: RedisClient, value: bytes):
        assert kv.set(b"key\x00bin", value)
        assert kv.get(b"key\x00bin").value == Lookup(value, True)

    def test_missing_key(self, kv: RedisClient):
        result = kv.get("never-set")
        assert result.ok
        assert result.value == Lookup(b"", False)

    def test_set_if_not_exist_keeps_value(self, kv: RedisClient):
        assert kv.set("k", b"v1")
        result = kv.set("k", b"v2", op_type=SetOpType.IF_NOT_EXIST)
        assert result.kind is ResultKind.NEGATIVE
        assert result.error == "key already exists"
        assert kv.get("k").value == Lookup(b"v1", True)

    def test_set_if_exist_creates_nothing(self, kv: RedisClient):
        result = kv.set("k", b"v", op_type=SetOpType.IF_EXIST)
        assert result.kind is ResultKind.NEGATIVE
        assert result.error == "key does not exist"
        assert kv.exists("k").value is False

    def test_set_with_expiry(self, kv: RedisClient):
        assert kv.set("k", b"v", expire=ExpirationTime.after(100))
        assert 0 < kv.ttl("k").value <= 100

    def test_wrong_type(self, kv: RedisClient):
        assert kv.sadd("s", "x")
        result = kv.get("s")
        assert result.kind is ResultKind.PROTOCOL
        assert result.error.startswith("WRONGTYPE")

    def test_decode_responses(self, redis_server: ContainerInfo):
        with RedisClient(redis_server.address, db=TEST_DB, decode_responses=True) as kv:
            assert kv.set("k", "välue")
            assert kv.get("k").value == Lookup("välue", True)
            assert kv.get("missing").value == Lookup("", False)


class TestExpiry:
    def test_ttl_sentinels_pass_through(self, kv: RedisClient):
        assert kv.ttl("missing").value == -2
        kv.set("k", b"v")
        assert kv.ttl("k").value == -1

    def test_expire(self, kv: RedisClient):
        kv.set("k", b"v")
        assert kv.expire("k", 50)
        assert 0 < kv.ttl("k").value <= 50

    def test_expire_missing_key(self, kv: RedisClient):
        result = kv.expire("missing", 50)
        assert result.kind is ResultKind.NEGATIVE

    def test_past_expiry_is_rejected_locally(self, kv: RedisClient):
        kv.set("k", b"v")
        assert kv.expire("k", ExpirationTime.at(time.time() - 5)).kind is ResultKind.INVALID
        assert kv.set("k", b"w", expire=ExpirationTime.at(time.time() - 5)).kind is ResultKind.INVALID
        assert kv.get("k").value == Lookup(b"v", True)
        assert kv.ttl("k").value == -1

    def test_expire_at_is_idempotent(self, kv: RedisClient):
        kv.set("k", b"v")
        when = int(time.time()) + 600
        outcomes = [kv.expire_at("k", when) for _ in range(3)]
        assert all(outcome.ok for outcome in outcomes)
        assert len(set(outcomes)) == 1

    def test_persist(self, kv: RedisClient):
        kv.set("k", b"v", expire=60)
        assert kv.persist("k")
        assert kv.ttl("k").value == -1
        assert kv.persist("k").negative


class TestSets:
    @pytest.fixture(autouse=True)
    def _sets(self, kv: RedisClient):
        assert kv.sadd("A", "x", "y").value == 2
        assert kv.sadd("B", "y", "z").value == 2

    def test_sdiff(self, kv: RedisClient):
        assert set(kv.sdiff(["A", "B"]).value) == {b"x"}

    def test_sinter(self, kv: RedisClient):
        assert set(kv.sinter(["A", "B"]).value) == {b"y"}

    def test_sunion(self, kv: RedisClient):
        assert set(kv.sunion(["A", "B"]).value) == {b"x", b"y", b"z"}

    def test_store_variants(self, kv: RedisClient):
        assert kv.sdiff_store("D", ["A", "B"]).value == 1
        assert kv.sinter_store("I", ["A", "B"]).value == 1
        assert kv.sunion_store("U", ["A", "B"]).value == 3
        assert set(kv.smembers("I").value) == {b"y"}

    def test_membership(self, kv: RedisClient):
        assert kv.sismember("A", "x").value is True
        assert kv.sismember("A", "z").value is False
        assert kv.scard("A").value == 2
        assert kv.sadd("A", "x").value == 0
        assert kv.srem("A", "x").value == 1
        assert kv.scard("A").value == 1


class TestHashes:
    def test_field_alignment(self, kv: RedisClient):
        assert kv.hset("h", {"a": "1", "b": "2"})
        result = kv.hget("h", {"a": "", "b": "", "c": ""})
        assert result.ok
        assert result.value == {"a": b"1", "b": b"2", "c": b""}

    def test_binary_fields(self, kv: RedisClient, raw: redis.Redis):
        assert kv.hset(b"h", {b"\x00f": b"\xffv"})
        assert raw.hget(b"h", b"\x00f") == b"\xffv"

    def test_missing_hash(self, kv: RedisClient):
        assert kv.hget("nothing", ["a"]).value == {"a": b""}


class TestConnection:
    def test_select_db(self, kv: RedisClient, raw: redis.Redis):
        assert kv.select_db(TEST_DB)
        assert kv.set("k", b"v")
        assert raw.get("k") == b"v"

    def test_reconnect_after_disconnect(self, kv: RedisClient, raw: redis.Redis):
        assert kv.set("k", b"v")
        raw.client_kill_filter(_type="normal", skipme=True)

        assert kv.get("k").kind is ResultKind.CONNECTION
        assert not kv.connected
        # The next call reconnects (to the same database) and succeeds.
        assert kv.get("k").value == Lookup(b"v", True)

    def test_delete(self, kv: RedisClient):
        kv.set("a", b"1")
        kv.set("b", b"2")
        assert kv.delete("a", "b", "c").value == 2

    def test_ping(self, kv: RedisClient):
        assert kv.ping()
