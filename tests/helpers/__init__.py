"""Test helper utilities for notification dispatcher tests."""

from .fake_transport import FakeTransport, FakeTransportProvider
from .payloads import full_payload, minimal_payload, without_path

__all__ = [
    "FakeTransport",
    "FakeTransportProvider",
    "full_payload",
    "minimal_payload",
    "without_path",
]
