from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

from kvbind.exceptions import CommandError, TransportError
from kvbind.result import Result, ResultKind

if TYPE_CHECKING:
    from collections.abc import Callable


def omit_exception(method: Callable[..., Result]) -> Callable[..., Result]:
    """Decorator that keeps exceptions from escaping a client operation.

    ``TransportError`` becomes a CONNECTION failure and ``CommandError`` an
    INVALID one. Every failed result, converted or returned directly, is
    recorded as the client's ``last_error``. It is also logged when the client
    was created with ``log_failures=True``.

    Usage:
        @omit_exception
        def get(self, key): ...
    """

    @functools.wraps(method)
    def _decorator(self: Any, *args: Any, **kwargs: Any) -> Result:
        try:
            result = method(self, *args, **kwargs)
        except TransportError as e:
            result = Result.failure(ResultKind.CONNECTION, str(e))
        except CommandError as e:
            result = Result.failure(ResultKind.INVALID, str(e))

        if not result.ok:
            self._last_error = result.error
            if self._log_failures:
                self._logger.warning("%s failed (%s): %s", method.__name__, result.kind, result.error)
        return result

    return _decorator
