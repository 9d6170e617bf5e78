"""
Test support utilities for stratum tests.

Builders and recording doubles that don't fit as pytest fixtures but are
useful across multiple test files.
"""

from tests._support.builders import (
    ClusterBuilder,
    FakeConnection,
    FakeCursor,
    RecordingSchemaAccessor,
)

__all__ = [
    "ClusterBuilder",
    "FakeConnection",
    "FakeCursor",
    "RecordingSchemaAccessor",
]
