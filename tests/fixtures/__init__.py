"""Test fixtures for kvbind."""

from tests.fixtures.containers import ContainerInfo, redis_container, redis_server
from tests.fixtures.server import CannedServer, canned_server, closed_port
from tests.fixtures.transport import ScriptedTransport, client, transport

__all__ = [
    "CannedServer",
    "ContainerInfo",
    "ScriptedTransport",
    "canned_server",
    "client",
    "closed_port",
    "redis_container",
    "redis_server",
    "transport",
]
