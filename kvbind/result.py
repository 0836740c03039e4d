"""Per-call result type returned by every client operation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, NamedTuple

from kvbind.exceptions import CommandFailed


class ResultKind(StrEnum):
    """How a call ended."""

    SUCCESS = "success"
    # Executed, but its precondition was not met (SET NX on an existing key,
    # EXPIRE on a missing key).
    NEGATIVE = "negative"
    # Rejected before anything was sent.
    INVALID = "invalid"
    CONNECTION = "connection"
    # The server answered with an error reply.
    PROTOCOL = "protocol"
    # The reply shape did not match the command.
    UNEXPECTED = "unexpected"


class Lookup(NamedTuple):
    """Value returned by ``get``. ``value`` is empty when ``exists`` is False."""

    value: bytes | str
    exists: bool


@dataclass(frozen=True)
class Result[T]:
    """Outcome of one client call.

    Truthiness follows success, so the boolean style reads naturally::

        result = client.set("k", b"v", op_type=SetOpType.IF_NOT_EXIST)
        if not result:
            logger.info("not stored: %s", result.error)

    Callers that want exceptions instead can use ``unwrap()``.
    """

    kind: ResultKind
    value: T | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: Any = True) -> Result[Any]:
        """A SUCCESS result carrying ``value``."""
        return cls(ResultKind.SUCCESS, value)

    @classmethod
    def failure(cls, kind: ResultKind, error: str) -> Result[Any]:
        """A result of any other kind, with ``error`` describing it."""
        return cls(kind, None, error)

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.SUCCESS

    @property
    def negative(self) -> bool:
        """True when the command ran but its precondition did not hold."""
        return self.kind is ResultKind.NEGATIVE

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> T:
        """Return the value, or raise ``CommandFailed`` for any other outcome."""
        if not self.ok:
            raise CommandFailed(self)
        return self.value  # type: ignore[return-value]
