"""Tagged reply values and the shared reply-kind check."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from kvbind.result import Result, ResultKind

if TYPE_CHECKING:
    from collections.abc import Callable


class ReplyKind(StrEnum):
    """RESP2 reply variants."""

    STATUS = "status"
    INTEGER = "integer"
    STRING = "string"
    NIL = "nil"
    ARRAY = "array"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Reply:
    """One reply as read off the wire.

    ``value`` depends on ``kind``: ``str`` for STATUS and ERROR, ``int`` for
    INTEGER, ``bytes`` (or ``str`` with ``decode_responses``) for STRING,
    ``list[Reply]`` for ARRAY and ``None`` for NIL.
    """

    kind: ReplyKind
    value: Any = None

    @classmethod
    def status(cls, text: str) -> Reply:
        return cls(ReplyKind.STATUS, text)

    @classmethod
    def integer(cls, value: int) -> Reply:
        return cls(ReplyKind.INTEGER, value)

    @classmethod
    def string(cls, value: bytes | str) -> Reply:
        return cls(ReplyKind.STRING, value)

    @classmethod
    def array(cls, elements: list[Reply]) -> Reply:
        return cls(ReplyKind.ARRAY, elements)

    @classmethod
    def error(cls, text: str) -> Reply:
        return cls(ReplyKind.ERROR, text)


NIL = Reply(ReplyKind.NIL)


def unexpected(reply: Reply) -> Result:
    return Result.failure(ResultKind.UNEXPECTED, f"unexpected reply type {reply.kind}")


def expect_reply(
    reply: Reply,
    kind: ReplyKind,
    extract: Callable[[Reply], Any] | None = None,
) -> Result:
    """Check that ``reply`` is of ``kind`` and map it to a Result.

    On a match the result carries ``extract(reply)``, or ``reply.value`` if no
    extractor is given. An ERROR reply becomes a PROTOCOL failure carrying the
    server's text verbatim. Any other kind is an UNEXPECTED failure.
    """
    if reply.kind is kind:
        return Result.success(extract(reply) if extract is not None else reply.value)
    if reply.kind is ReplyKind.ERROR:
        return Result.failure(ResultKind.PROTOCOL, reply.value)
    return unexpected(reply)


def elements(reply: Reply) -> list[Any]:
    """Flatten an ARRAY reply of bulk strings into their values."""
    return [element.value for element in reply.value]
