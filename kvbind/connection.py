"""Address parsing and the lazily established connection handle."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from kvbind import command
from kvbind.exceptions import ConfigurationError, TransportError
from kvbind.reply import ReplyKind

if TYPE_CHECKING:
    from kvbind.transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_PORT = 6379
DEFAULT_CONNECT_TIMEOUT = 2.0


def parse_address(address: str) -> tuple[str, int]:
    """Split ``host[:port]`` into its parts.

    The port defaults to 6379 when omitted or empty (``"cache"`` or
    ``"cache:"``). IPv6 hosts must be bracketed: ``"[::1]:6379"``.

    Raises:
        ConfigurationError: If the host is empty or the port is not an integer
            in 1-65535.
    """
    if not isinstance(address, str):
        msg = f"Invalid address [{address!r}]"
        raise ConfigurationError(msg)

    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or (rest and not rest.startswith(":")):
            msg = f"Invalid address [{address}]"
            raise ConfigurationError(msg)
        port_text = rest[1:]
    else:
        host, sep, port_text = address.rpartition(":")
        if not sep:
            host, port_text = address, ""

    host = host.strip()
    if not host:
        msg = f"Invalid address [{address}]: missing host"
        raise ConfigurationError(msg)

    if not port_text:
        return host, DEFAULT_PORT
    try:
        port = int(port_text)
    except ValueError:
        msg = f"Invalid address [{address}]: port is not a number"
        raise ConfigurationError(msg) from None
    if not 0 < port <= 65535:
        msg = f"Invalid address [{address}]: port out of range"
        raise ConfigurationError(msg)
    return host, port


class ConnectionManager:
    """Owns one transport handle and replaces it after transport failures.

    There is no retry inside a call. A failure releases the handle, and the
    next call connects afresh.

    Attributes:
        host, port: Target server.
        timeout: Connect timeout in seconds.
        db: Database re-selected after every reconnect; updated by the client
            whenever SELECT succeeds.
        last_error: Message of the most recent connect failure.
    """

    def __init__(
        self,
        transport: Transport,
        host: str,
        port: int,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
        db: int = 0,
    ) -> None:
        self.transport = transport
        self.host = host
        self.port = port
        self.timeout = timeout
        self.db = db
        self.last_error: str | None = None
        self._handle: Any = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def connected(self) -> bool:
        return self._handle is not None

    def handle(self) -> Any:
        """Return the live handle, connecting first if there is none.

        Raises:
            TransportError: If the connection cannot be established.
        """
        if self._handle is not None:
            return self._handle

        try:
            handle = self.transport.connect(self.host, self.port, self.timeout)
        except TransportError as e:
            self.last_error = f"failed to connect to {self.address}: {e}"
            logger.warning("Failed to connect to %s: %s", self.address, e)
            raise TransportError(self.last_error) from e

        if self.db:
            self._select(handle)
        self._handle = handle
        return handle

    def _select(self, handle: Any) -> None:
        try:
            reply = self.transport.execute(handle, command.select(self.db).parts)
        except TransportError as e:
            self.transport.close(handle)
            self.last_error = f"failed to connect to {self.address}: {e}"
            raise TransportError(self.last_error) from e
        if reply.kind is not ReplyKind.STATUS:
            self.transport.close(handle)
            self.last_error = f"failed to select db {self.db} on {self.address}: {reply.value or reply.kind}"
            raise TransportError(self.last_error)

    def ensure_connected(self) -> bool:
        """Connect if needed. Returns False and sets ``last_error`` on failure."""
        try:
            self.handle()
        except TransportError:
            return False
        return True

    def release(self) -> None:
        """Close and drop the handle. Safe to call when not connected."""
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            self.transport.close(handle)
        except TransportError:
            logger.debug("Error closing connection to %s", self.address, exc_info=True)
        else:
            logger.debug("Released connection to %s", self.address)
