"""Mock package for testing."""

from tests.mocks.fakes import (
    FakeConnector,
    FakeMetadata,
    FakeTransport,
    FakeWebSocket,
    wait_until,
)

__all__ = [
    "FakeTransport",
    "FakeMetadata",
    "FakeWebSocket",
    "FakeConnector",
    "wait_until",
]
