"""Mock CKKS backend for testing without SEAL."""

from .mock_backend import (
    DriftingBackend,
    MockCiphertext,
    MockCKKSBackend,
    MockPlaintext,
    OpRecord,
)

__all__ = [
    "DriftingBackend",
    "MockCiphertext",
    "MockCKKSBackend",
    "MockPlaintext",
    "OpRecord",
]
