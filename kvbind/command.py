"""Binary-safe command construction.

Commands are assembled from typed tokens rather than format strings. Every
token becomes one length-prefixed RESP argument, so keys and values may hold
arbitrary bytes, including NUL.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kvbind.exceptions import CommandError
from kvbind.types import SetOpType

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from kvbind.types import EncodableT, KeyT


def to_bytes(value: EncodableT) -> bytes:
    """Encode a key, value or field name. ``str`` is encoded as UTF-8."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode()
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    msg = f"expected bytes, str or memoryview, got {type(value).__name__}"
    raise CommandError(msg)


class Command:
    """An argument vector under construction.

    Example::

        Command("SET").binary(key).binary(value).text("EX").number(30).parts
    """

    __slots__ = ("_parts",)

    def __init__(self, name: str) -> None:
        self._parts: list[bytes] = [name.encode("ascii")]

    def text(self, flag: str) -> Command:
        """Append a protocol keyword such as ``NX`` or ``EX``."""
        self._parts.append(flag.encode("ascii"))
        return self

    def number(self, value: int) -> Command:
        """Append an integer argument as ASCII digits."""
        # bool is an int subclass; reject it like redis-py's Encoder does.
        if isinstance(value, bool) or not isinstance(value, int):
            msg = f"expected int, got {type(value).__name__}"
            raise CommandError(msg)
        self._parts.append(str(value).encode("ascii"))
        return self

    def binary(self, value: EncodableT) -> Command:
        """Append a key, value or field verbatim."""
        self._parts.append(to_bytes(value))
        return self

    def binaries(self, values: Iterable[EncodableT]) -> Command:
        for value in values:
            self.binary(value)
        return self

    @property
    def name(self) -> str:
        return self._parts[0].decode("ascii")

    @property
    def parts(self) -> tuple[bytes, ...]:
        return tuple(self._parts)

    def __len__(self) -> int:
        return len(self._parts)

    def __repr__(self) -> str:
        return f"Command({' '.join(repr(p) for p in self._parts)})"


# =============================================================================
# Fixed-arity commands
# =============================================================================


def select(index: int) -> Command:
    return Command("SELECT").number(index)


def expire(key: KeyT, seconds: int) -> Command:
    return Command("EXPIRE").binary(key).number(seconds)


def expireat(key: KeyT, unix_time: int) -> Command:
    return Command("EXPIREAT").binary(key).number(unix_time)


def key_command(name: str, key: KeyT) -> Command:
    """Single-key commands: TTL, GET, SCARD, SMEMBERS, PERSIST, EXISTS."""
    return Command(name).binary(key)


def sismember(key: KeyT, member: EncodableT) -> Command:
    return Command("SISMEMBER").binary(key).binary(member)


# =============================================================================
# Variadic commands
# =============================================================================


def variadic(name: str, primary: KeyT | None, rest: Iterable[EncodableT]) -> Command:
    """Build ``NAME [primary] rest...``.

    ``primary`` is the destination or set key when the command has one (SADD,
    SDIFFSTORE, ...); pass ``None`` for commands that only take a key list
    (SDIFF, SINTER, DEL).
    """
    command = Command(name)
    if primary is not None:
        command.binary(primary)
    return command.binaries(rest)


# =============================================================================
# Map-oriented commands
# =============================================================================


def ordered_fields(fields: Iterable[EncodableT]) -> list[EncodableT]:
    """Hash fields in the order they are sent.

    Ordering by the encoded bytes is deterministic, even for a mix of ``str``
    and ``bytes``. HMGET replies are zipped back onto this order.
    """
    return sorted(fields, key=to_bytes)


def hmget(key: KeyT, fields: Iterable[EncodableT]) -> Command:
    return Command("HMGET").binary(key).binaries(ordered_fields(fields))


def hmset(key: KeyT, mapping: Mapping[EncodableT, EncodableT]) -> Command:
    command = Command("HMSET").binary(key)
    for field in ordered_fields(mapping):
        command.binary(field).binary(mapping[field])
    return command


# =============================================================================
# SET
# =============================================================================

_SET_FLAGS = {
    SetOpType.ANYHOW: None,
    SetOpType.IF_NOT_EXIST: "NX",
    SetOpType.IF_EXIST: "XX",
}


def set_(key: KeyT, value: EncodableT, ttl: int | None, op_type: SetOpType) -> Command:
    """Build one of the six SET variants.

    ``ttl`` is the remaining lifetime in seconds, or ``None`` for no expiry.
    An ``op_type`` that is not a ``SetOpType`` raises ``CommandError``.
    """
    try:
        flag = _SET_FLAGS[SetOpType(op_type)]
    except (ValueError, TypeError):
        msg = f"unsupported op_type {op_type!r}"
        raise CommandError(msg) from None
    command = Command("SET").binary(key).binary(value)
    if ttl is not None:
        command.text("EX").number(ttl)
    if flag is not None:
        command.text(flag)
    return command
