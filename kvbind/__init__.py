VERSION = (1, 0, 0)
__version__ = ".".join(map(str, VERSION))

from kvbind.client import RedisClient  # noqa: E402
from kvbind.exceptions import CommandFailed, ConfigurationError  # noqa: E402
from kvbind.result import Lookup, Result, ResultKind  # noqa: E402
from kvbind.types import ExpirationTime, SetOpType  # noqa: E402

__all__ = [
    "CommandFailed",
    "ConfigurationError",
    "ExpirationTime",
    "Lookup",
    "RedisClient",
    "Result",
    "ResultKind",
    "SetOpType",
]
