"""Synchronous Redis client returning typed results.

Each operation builds a binary-safe command, runs it on the single managed
connection, and checks the reply against the one shape the command may
return. Operations never raise. They return a ``Result`` whose ``kind``
separates these cases:

- a failure to execute (CONNECTION, PROTOCOL, UNEXPECTED, INVALID);
- a command that ran but whose precondition did not hold (NEGATIVE).

A client instance is not thread-safe: the connection handle and
``last_error`` are updated without locking. Use one client per thread.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from kvbind import command
from kvbind.connection import DEFAULT_CONNECT_TIMEOUT, ConnectionManager, parse_address
from kvbind.exceptions import CommandError, ConfigurationError, TransportError
from kvbind.omit_exception import omit_exception
from kvbind.reply import ReplyKind, elements, expect_reply, unexpected
from kvbind.result import Lookup, Result, ResultKind
from kvbind.transport import RedisTransport
from kvbind.types import ExpirationTime, SetOpType

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from kvbind.command import Command
    from kvbind.reply import Reply
    from kvbind.transport import Transport
    from kvbind.types import AbsExpiryT, EncodableT, ExpiryT, KeyT

logger = logging.getLogger(__name__)

_SET_REJECTED = {
    SetOpType.ANYHOW: "unknown error",
    SetOpType.IF_NOT_EXIST: "key already exists",
    SetOpType.IF_EXIST: "key does not exist",
}


def _true(reply: Reply) -> bool:
    return True


def _nonzero(reply: Reply) -> bool:
    return bool(reply.value)


def _remaining_seconds(expire: ExpiryT | ExpirationTime) -> int:
    """Seconds for EXPIRE / SET EX. Non-positive values are rejected."""
    if isinstance(expire, ExpirationTime):
        seconds = expire.remaining_seconds()
    elif isinstance(expire, timedelta):
        seconds = int(expire.total_seconds())
    elif isinstance(expire, int) and not isinstance(expire, bool):
        seconds = expire
    else:
        msg = f"Invalid expire time {expire!r}"
        raise CommandError(msg)
    if seconds <= 0:
        msg = f"Invalid expire time: {seconds}s remaining"
        raise CommandError(msg)
    return seconds


def _unix_time(when: AbsExpiryT | ExpirationTime) -> int:
    """Timestamp for EXPIREAT. An ExpirationTime must not have elapsed yet."""
    if isinstance(when, ExpirationTime):
        now = time.time()
        if when.remaining_seconds(now) <= 0:
            msg = f"Invalid expire time: {when!r} has already elapsed"
            raise CommandError(msg)
        return when.unix_time(now)
    if isinstance(when, datetime):
        return int(when.timestamp())
    if isinstance(when, (int, float)) and not isinstance(when, bool):
        return int(when)
    msg = f"Invalid expire time {when!r}"
    raise CommandError(msg)


def _key_list(keys: KeyT | Iterable[KeyT]) -> list[KeyT]:
    # A lone key would otherwise be iterated byte by byte.
    if isinstance(keys, (bytes, str, memoryview)):
        return [keys]
    return list(keys)


class RedisClient:
    """Client for one Redis server reached through a single lazy connection.

    Args:
        address: ``host[:port]``; the port defaults to 6379.
        connect_timeout: Seconds to wait when establishing a connection.
        transport: Object with ``connect``/``execute``/``close``; defaults to a
            ``RedisTransport`` built from ``options``.
        log_failures: Log every failed operation at WARNING.
        db: Database selected on every (re)connect.
        **options: Passed to ``redis.connection.Connection`` (``socket_timeout``,
            ``decode_responses``, ``username``, ``password``, ...).

    Raises:
        ConfigurationError: For an invalid address, timeout or database index.
            Nothing is connected at construction time.

    Example::

        with RedisClient("localhost:6379") as client:
            client.set("greeting", b"hello", expire=60)
            value, exists = client.get("greeting").unwrap()
    """

    def __init__(
        self,
        address: str = "127.0.0.1:6379",
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        transport: Transport | None = None,
        log_failures: bool = False,
        db: int = 0,
        **options: Any,
    ) -> None:
        host, port = parse_address(address)
        if not connect_timeout or connect_timeout <= 0:
            msg = f"connect_timeout must be positive, got {connect_timeout!r}"
            raise ConfigurationError(msg)
        if isinstance(db, bool) or not isinstance(db, int) or db < 0:
            msg = f"db must be a non-negative integer, got {db!r}"
            raise ConfigurationError(msg)

        if transport is None:
            transport = RedisTransport(**options)
        self._empty: bytes | str = "" if options.get("decode_responses") else b""
        self._connection = ConnectionManager(transport, host, port, connect_timeout, db)

        self._last_error: str | None = None
        self._log_failures = log_failures
        self._logger = logger

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._connection.address} db={self._connection.db}>"

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    @property
    def last_error(self) -> str | None:
        """Message of the most recent failed call; overwritten, never accumulated."""
        return self._last_error

    @property
    def connected(self) -> bool:
        return self._connection.connected

    def ensure_connected(self) -> bool:
        """Connect now instead of on the first command."""
        if self._connection.ensure_connected():
            return True
        self._last_error = self._connection.last_error
        return False

    def close(self) -> None:
        """Release the connection. The client reconnects if used again."""
        self._connection.release()

    def __enter__(self) -> RedisClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _execute(self, cmd: Command) -> Reply:
        handle = self._connection.handle()
        try:
            reply = self._connection.transport.execute(handle, cmd.parts)
        except TransportError:
            self._connection.release()
            raise
        if reply is None:
            self._connection.release()
            msg = f"no reply to {cmd.name}"
            raise TransportError(msg)
        return reply

    # =========================================================================
    # Keys and expiry
    # =========================================================================

    @omit_exception
    def select_db(self, index: int) -> Result[bool]:
        """Switch database. The choice survives reconnects."""
        result = expect_reply(self._execute(command.select(index)), ReplyKind.STATUS, _true)
        if result.ok:
            self._connection.db = index
        return result

    def _expire_result(self, reply: Reply) -> Result[bool]:
        result = expect_reply(reply, ReplyKind.INTEGER)
        if not result.ok:
            return result
        if result.value == 1:
            return Result.success(True)
        return Result.failure(ResultKind.NEGATIVE, "key missing or timeout not set")

    @omit_exception
    def expire(self, key: KeyT, seconds: ExpiryT | ExpirationTime) -> Result[bool]:
        """Set a relative timeout. Non-positive timeouts are rejected locally."""
        return self._expire_result(self._execute(command.expire(key, _remaining_seconds(seconds))))

    @omit_exception
    def expire_at(self, key: KeyT, when: AbsExpiryT | ExpirationTime) -> Result[bool]:
        """Set an absolute expiry as a unix time, ``datetime`` or ``ExpirationTime``.

        Raw timestamps in the past are sent as is (Redis deletes the key). An
        ``ExpirationTime`` that has already elapsed is rejected as INVALID.
        """
        return self._expire_result(self._execute(command.expireat(key, _unix_time(when))))

    @omit_exception
    def ttl(self, key: KeyT) -> Result[int]:
        """Remaining time to live in seconds.

        Redis's sentinels are passed through unchanged: -1 for a key without
        expiry, -2 for a missing key.
        """
        return expect_reply(self._execute(command.key_command("TTL", key)), ReplyKind.INTEGER)

    @omit_exception
    def persist(self, key: KeyT) -> Result[bool]:
        result = expect_reply(self._execute(command.key_command("PERSIST", key)), ReplyKind.INTEGER)
        if not result.ok:
            return result
        if result.value == 1:
            return Result.success(True)
        return Result.failure(ResultKind.NEGATIVE, "key missing or has no timeout")

    @omit_exception
    def exists(self, key: KeyT) -> Result[bool]:
        return expect_reply(self._execute(command.key_command("EXISTS", key)), ReplyKind.INTEGER, _nonzero)

    @omit_exception
    def delete(self, *keys: KeyT) -> Result[int]:
        """Delete keys; the result is the number actually removed."""
        return expect_reply(self._execute(command.variadic("DEL", None, keys)), ReplyKind.INTEGER)

    @omit_exception
    def ping(self) -> Result[bool]:
        return expect_reply(self._execute(command.Command("PING")), ReplyKind.STATUS, _true)

    # =========================================================================
    # Strings
    # =========================================================================

    @omit_exception
    def set(
        self,
        key: KeyT,
        value: EncodableT,
        expire: ExpiryT | ExpirationTime | None = None,
        op_type: SetOpType = SetOpType.ANYHOW,
    ) -> Result[bool]:
        """Store ``value``, optionally with an expiry and an NX/XX condition.

        When the condition is not met, the result is NEGATIVE with "key
        already exists" for IF_NOT_EXIST or "key does not exist" for IF_EXIST.
        """
        ttl = None if expire is None else _remaining_seconds(expire)
        reply = self._execute(command.set_(key, value, ttl, op_type))
        if reply.kind is ReplyKind.NIL:
            return Result.failure(ResultKind.NEGATIVE, _SET_REJECTED[SetOpType(op_type)])
        return expect_reply(reply, ReplyKind.STATUS, _true)

    @omit_exception
    def get(self, key: KeyT) -> Result[Lookup]:
        """Fetch a value. A missing key is a success with ``exists=False``."""
        reply = self._execute(command.key_command("GET", key))
        if reply.kind is ReplyKind.NIL:
            return Result.success(Lookup(self._empty, False))
        return expect_reply(reply, ReplyKind.STRING, lambda r: Lookup(r.value, True))

    # =========================================================================
    # Sets
    # =========================================================================

    @omit_exception
    def sadd(self, key: KeyT, *members: EncodableT) -> Result[int]:
        """Add members; the result counts the ones that were new."""
        return expect_reply(self._execute(command.variadic("SADD", key, members)), ReplyKind.INTEGER)

    @omit_exception
    def srem(self, key: KeyT, *members: EncodableT) -> Result[int]:
        return expect_reply(self._execute(command.variadic("SREM", key, members)), ReplyKind.INTEGER)

    @omit_exception
    def scard(self, key: KeyT) -> Result[int]:
        return expect_reply(self._execute(command.key_command("SCARD", key)), ReplyKind.INTEGER)

    @omit_exception
    def sismember(self, key: KeyT, member: EncodableT) -> Result[bool]:
        return expect_reply(self._execute(command.sismember(key, member)), ReplyKind.INTEGER, _nonzero)

    @omit_exception
    def smembers(self, key: KeyT) -> Result[list]:
        return expect_reply(self._execute(command.key_command("SMEMBERS", key)), ReplyKind.ARRAY, elements)

    def _set_algebra(self, name: str, keys: KeyT | Sequence[KeyT]) -> Result[list]:
        cmd = command.variadic(name, None, _key_list(keys))
        return expect_reply(self._execute(cmd), ReplyKind.ARRAY, elements)

    def _set_algebra_store(self, name: str, dest: KeyT, keys: KeyT | Sequence[KeyT]) -> Result[int]:
        cmd = command.variadic(name, dest, _key_list(keys))
        return expect_reply(self._execute(cmd), ReplyKind.INTEGER)

    @omit_exception
    def sdiff(self, keys: Sequence[KeyT]) -> Result[list]:
        """Members of the first set that are in none of the others."""
        return self._set_algebra("SDIFF", keys)

    @omit_exception
    def sdiff_store(self, dest: KeyT, keys: Sequence[KeyT]) -> Result[int]:
        return self._set_algebra_store("SDIFFSTORE", dest, keys)

    @omit_exception
    def sinter(self, keys: Sequence[KeyT]) -> Result[list]:
        return self._set_algebra("SINTER", keys)

    @omit_exception
    def sinter_store(self, dest: KeyT, keys: Sequence[KeyT]) -> Result[int]:
        return self._set_algebra_store("SINTERSTORE", dest, keys)

    @omit_exception
    def sunion(self, keys: Sequence[KeyT]) -> Result[list]:
        return self._set_algebra("SUNION", keys)

    @omit_exception
    def sunion_store(self, dest: KeyT, keys: Sequence[KeyT]) -> Result[int]:
        return self._set_algebra_store("SUNIONSTORE", dest, keys)

    # =========================================================================
    # Hashes
    # =========================================================================

    @omit_exception
    def hget(self, key: KeyT, fields: Mapping[EncodableT, Any] | Iterable[EncodableT]) -> Result[dict]:
        """Fetch several hash fields at once with HMGET.

        ``fields`` may be a mapping (only its keys are used) or any iterable
        of field names. The result maps every requested field to its value,
        with missing fields mapped to an empty value.
        """
        names = command.ordered_fields(fields)
        if not names:
            msg = "hget needs at least one field"
            raise CommandError(msg)

        reply = self._execute(command.hmget(key, names))
        result = expect_reply(reply, ReplyKind.ARRAY)
        if not result.ok:
            return result
        if len(reply.value) != len(names):
            msg = f"invalid number of elements returned: expected {len(names)}, returned {len(reply.value)}"
            return Result.failure(ResultKind.UNEXPECTED, msg)

        filled: dict = {}
        for name, element in zip(names, reply.value, strict=True):
            if element.kind is ReplyKind.STRING:
                filled[name] = element.value
            elif element.kind is ReplyKind.NIL:
                filled[name] = self._empty
            elif element.kind is ReplyKind.ERROR:
                return Result.failure(ResultKind.PROTOCOL, element.value)
            else:
                return unexpected(element)
        return Result.success(filled)

    @omit_exception
    def hset(self, key: KeyT, mapping: Mapping[EncodableT, EncodableT]) -> Result[bool]:
        """Store several hash fields at once with HMSET."""
        if not mapping:
            msg = "hset needs at least one field"
            raise CommandError(msg)
        return expect_reply(self._execute(command.hmset(key, mapping)), ReplyKind.STATUS, _true)
