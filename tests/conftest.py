"""Pytest configuration for kvbind tests."""

from tests.fixtures import (
    canned_server,
    client,
    closed_port,
    redis_container,
    redis_server,
    transport,
)

# Re-export fixtures so pytest can discover them
__all__ = [
    "canned_server",
    "client",
    "closed_port",
    "redis_container",
    "redis_server",
    "transport",
]
