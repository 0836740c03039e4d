"""Exceptions for kvbind.

Only ``ConfigurationError`` escapes the client: it is raised by the
constructor. The other exceptions are raised internally and converted into a
failed ``Result`` at the client boundary, except ``CommandFailed``, which is
raised on request by ``Result.unwrap()``.
"""

from __future__ import annotations

import socket
from typing import TYPE_CHECKING

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import InvalidResponse as RedisInvalidResponse
from redis.exceptions import TimeoutError as RedisTimeoutError

if TYPE_CHECKING:
    from kvbind.result import Result

# Errors from redis-py or the socket layer that leave the connection in an
# unknown state. The transport turns these into TransportError.
_transport_exceptions = (
    socket.timeout,
    RedisConnectionError,
    RedisTimeoutError,
    RedisInvalidResponse,
    OSError,
)


class ConfigurationError(ValueError):
    """Raised when a client is constructed with an invalid address or option.

    Example:
        Rejecting a bad port::

            from kvbind import RedisClient
            from kvbind.exceptions import ConfigurationError

            try:
                RedisClient("localhost:70000")
            except ConfigurationError as e:
                logger.error("bad redis address: %s", e)
    """


class TransportError(ConnectionError):
    """Raised when a connection cannot be established or used.

    The client releases its connection handle whenever this is raised, so
    the next call reconnects.
    """


class CommandError(TypeError):
    """Raised when a command argument cannot be encoded for the wire."""


class CommandFailed(Exception):
    """Raised by ``Result.unwrap()`` when the call did not succeed.

    Attributes:
        result: The failed result.
    """

    def __init__(self, result: Result) -> None:
        self.result = result
        super().__init__(result.error)

    def __str__(self) -> str:
        return f"{self.result.kind}: {self.result.error}"
