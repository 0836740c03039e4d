"""Type aliases and value types for kvbind.

Key and expiry aliases match redis-py's ``redis.typing`` so values can be
passed through from code that already uses redis-py.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import IntEnum

# Key and value types - matches redis.typing.KeyT / EncodableT for binary data
type KeyT = bytes | str | memoryview
type EncodableT = bytes | str | memoryview

# Relative expiry - matches redis.typing.ExpiryT
type ExpiryT = int | timedelta

# Absolute expiry - matches redis.typing.AbsExpiryT
type AbsExpiryT = int | float | datetime


class SetOpType(IntEnum):
    """Conditional-write mode for SET."""

    ANYHOW = 0
    IF_NOT_EXIST = 1
    IF_EXIST = 2


@dataclass(frozen=True, slots=True)
class ExpirationTime:
    """An absolute deadline or a relative duration.

    Use the ``at()`` and ``after()`` constructors rather than building
    instances directly. Exactly one of ``deadline`` and ``duration`` is set.

    Example::

        ExpirationTime.after(timedelta(minutes=5)).remaining_seconds()  # 300
        ExpirationTime.at(time.time() - 1).remaining_seconds()  # <= 0
    """

    deadline: float | None = None
    duration: int | None = None

    @classmethod
    def at(cls, when: AbsExpiryT) -> ExpirationTime:
        """Expire at a unix timestamp or ``datetime``."""
        if isinstance(when, datetime):
            return cls(deadline=when.timestamp())
        return cls(deadline=float(when))

    @classmethod
    def after(cls, seconds: ExpiryT) -> ExpirationTime:
        """Expire a fixed number of seconds after the command is issued."""
        if isinstance(seconds, timedelta):
            seconds = int(seconds.total_seconds())
        return cls(duration=int(seconds))

    def remaining_seconds(self, now: float | None = None) -> int:
        """Whole seconds left, computed against the wall clock at call time."""
        if self.duration is not None:
            return self.duration
        if self.deadline is None:
            return 0
        if now is None:
            now = time.time()
        # Never round up: the key must not outlive the deadline.
        return math.floor(self.deadline - now)

    def unix_time(self, now: float | None = None) -> int:
        """The absolute expiry as an integer unix timestamp."""
        if self.deadline is not None:
            return int(self.deadline)
        if now is None:
            now = time.time()
        return int(now) + (self.duration or 0)
