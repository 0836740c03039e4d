"""Transport adapter built on redis-py.

redis-py's ``Connection`` handles sockets, connect timeouts and request
packing. Its stock RESP2 parser returns status replies and bulk strings as
the same ``bytes`` type, so this module installs a parser subclass that keeps
the reply variant as a tagged ``Reply``.

Any object with the same ``connect``/``execute``/``close`` methods can be used
in place of ``RedisTransport``, which is how the tests script replies.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Protocol

from redis._parsers.resp2 import _RESP2Parser
from redis.backoff import NoBackoff
from redis.connection import Connection
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import InvalidResponse
from redis.retry import Retry

from kvbind.exceptions import ConfigurationError, TransportError, _transport_exceptions
from kvbind.reply import NIL, Reply, ReplyKind

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

SERVER_CLOSED_CONNECTION_ERROR = "Connection closed by server."

# Keywords RedisTransport.connect() sets itself, plus the ones that make
# redis-py run a handshake expecting its stock parser's replies
_RESERVED_OPTIONS = frozenset(
    {
        "host",
        "port",
        "socket_connect_timeout",
        "parser_class",
        "retry",
        "lib_name",
        "lib_version",
        "protocol",
        "client_name",
        "credential_provider",
    }
)


def _connection_keywords() -> frozenset[str]:
    """Keyword arguments accepted along ``Connection``'s constructor chain."""
    names: set[str] = set()
    for klass in Connection.__mro__:
        init = klass.__dict__.get("__init__")
        if init is None or klass is object:
            continue
        for name, param in inspect.signature(init).parameters.items():
            if param.kind in (param.POSITIONAL_OR_KEYWORD, param.KEYWORD_ONLY):
                names.add(name)
    names.discard("self")
    return frozenset(names)


class Transport(Protocol):
    """What the client needs from a transport."""

    def connect(self, host: str, port: int, timeout: float) -> Any: ...

    def execute(self, handle: Any, parts: Sequence[bytes]) -> Reply: ...

    def close(self, handle: Any) -> None: ...


class TaggedReplyParser(_RESP2Parser):
    """RESP2 parser that returns ``Reply`` values instead of plain Python types.

    Error replies are returned as ``Reply`` values rather than raised, so
    ``Connection.read_response()`` passes them through unchanged. Bulk strings
    go through the connection's encoder and are decoded only when
    ``decode_responses`` is set.
    """

    def _read_response(self, disable_decoding: bool = False) -> Reply:
        raw = self._buffer.readline()
        if not raw:
            raise RedisConnectionError(SERVER_CLOSED_CONNECTION_ERROR)

        marker, payload = raw[:1], raw[1:]

        if marker == b"-":
            text = payload.decode("utf-8", errors="replace")
            error = self.parse_error(text)
            # Server-side connection errors (e.g. max clients) tear down the link
            if isinstance(error, RedisConnectionError):
                raise error
            return Reply.error(text)
        if marker == b"+":
            return Reply.status(payload.decode("utf-8", errors="replace"))
        if marker == b":":
            return Reply.integer(int(payload))
        if marker == b"$":
            length = int(payload)
            if length == -1:
                return NIL
            data = self._buffer.read(length)
            if not disable_decoding:
                data = self.encoder.decode(data)
            return Reply.string(data)
        if marker == b"*":
            count = int(payload)
            if count == -1:
                return NIL
            return Reply.array([self._read_response(disable_decoding=disable_decoding) for _ in range(count)])

        msg = f"Protocol Error: {raw!r}"
        raise InvalidResponse(msg)


class RedisTransport:
    """Single-connection transport over ``redis.connection.Connection``.

    Options are passed through to ``Connection`` (``socket_timeout``,
    ``decode_responses``, ...). ``username`` and ``password`` are taken out
    and sent as an ordinary AUTH after connecting, because redis-py's own
    handshake expects its stock parser's reply types.

    Raises:
        ConfigurationError: For an option the transport sets itself, or one
            ``Connection`` does not accept.
    """

    def __init__(self, **options: Any) -> None:
        reserved = sorted(_RESERVED_OPTIONS.intersection(options))
        if reserved:
            msg = f"Options set by the transport cannot be overridden: {', '.join(reserved)}"
            raise ConfigurationError(msg)
        unknown = sorted(set(options) - _connection_keywords())
        if unknown:
            msg = f"Unknown connection options: {', '.join(unknown)}"
            raise ConfigurationError(msg)

        self._username = options.pop("username", None)
        self._password = options.pop("password", None)
        self._connection_options = options

    def connect(self, host: str, port: int, timeout: float) -> Connection:
        connection = Connection(
            host=host,
            port=port,
            socket_connect_timeout=timeout,
            parser_class=TaggedReplyParser,
            # No retries inside a call; the client reconnects on the next one.
            retry=Retry(NoBackoff(), 0),
            lib_name=None,
            lib_version=None,
            **self._connection_options,
        )
        try:
            connection.connect()
            if self._password is not None:
                args = [self._password] if self._username is None else [self._username, self._password]
                self._handshake(connection, "AUTH", *args)
        except TransportError:
            connection.disconnect()
            raise
        except (*_transport_exceptions, ValueError) as e:
            connection.disconnect()
            raise TransportError(str(e)) from e
        logger.debug("Connected to %s:%s", host, port)
        return connection

    def _handshake(self, connection: Connection, *args: Any) -> None:
        connection.send_command(*args)
        reply = connection.read_response()
        if reply.kind is not ReplyKind.STATUS:
            msg = f"{args[0]} failed: {reply.value if reply.kind is ReplyKind.ERROR else reply.kind}"
            raise TransportError(msg)

    def execute(self, handle: Connection, parts: Sequence[bytes]) -> Reply:
        try:
            handle.send_command(*parts)
            return handle.read_response()
        except _transport_exceptions as e:
            raise TransportError(str(e)) from e
        except ValueError as e:
            # Undecodable bulk string or malformed length line; the stream
            # position is unknown, so the connection is unusable.
            handle.disconnect()
            msg = f"Protocol Error: {e}"
            raise TransportError(msg) from e

    def close(self, handle: Connection) -> None:
        handle.disconnect()
