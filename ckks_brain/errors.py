"""
Error taxonomy for encrypted training.

Shape errors are caller mistakes and surface immediately. Level and scale
errors are raised only when the level coordinator cannot reconcile two
operands, which means the scheme parameters cannot support the requested
multiplicative depth.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CKKSBrainError(Exception):
    """Base exception for all ckks_brain errors.

    Attributes:
        message: Human-readable description.
        details: Structured metadata (sizes, levels). Never holds key material
            or decrypted values.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Shape Errors
# =============================================================================


class ShapeError(CKKSBrainError, ValueError):
    """A vector or matrix does not match the network dimensions."""

    def __init__(self, what: str, expected: int, actual: int):
        super().__init__(
            f"wrong number of {what}: expected {expected}, got {actual}",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class InputShapeError(ShapeError):
    """Input vector length differs from the network's input count."""

    def __init__(self, expected: int, actual: int):
        super().__init__("inputs", expected, actual)


class TargetShapeError(ShapeError):
    """Target vector length differs from the network's output count."""

    def __init__(self, expected: int, actual: int):
        super().__init__("target values", expected, actual)


class ContextShapeError(ShapeError):
    """A recurrent context vector is not exactly ``n_hiddens`` long."""

    def __init__(self, index: int, expected: int, actual: int):
        super().__init__(f"context units in context {index}", expected, actual)
        self.details["index"] = index
        self.index = index


# =============================================================================
# Scheme Errors
# =============================================================================


class ConfigurationError(CKKSBrainError, ValueError):
    """Scheme parameters are invalid or cannot support the requested work."""


class LevelMismatchError(CKKSBrainError, RuntimeError):
    """Two operands cannot be brought to a common modulus level."""

    def __init__(self, message: str, left: Optional[int] = None, right: Optional[int] = None):
        super().__init__(message, details={"left": left, "right": right})
        self.left = left
        self.right = right


class ScaleMismatchError(LevelMismatchError):
    """Two operands at the same level disagree on their encoding scale."""


class DepthExhaustedError(LevelMismatchError, ConfigurationError):
    """The modulus chain is used up.

    Raised when a rescale or modulus switch is requested at level 0. Use a
    larger ``mult_depth`` (and ring dimension), fewer epochs, or smaller
    pattern sets.
    """

    def __init__(self, operation: str, level: int = 0):
        LevelMismatchError.__init__(
            self,
            f"cannot {operation}: ciphertext is at level {level}, "
            "multiplicative depth of the scheme parameters exceeded",
            left=level,
        )
        self.operation = operation


# =============================================================================
# Backend Errors
# =============================================================================


class BackendUnavailableError(CKKSBrainError, RuntimeError):
    """The requested CKKS backend library is not installed."""


class SecretKeyUnavailableError(CKKSBrainError, RuntimeError):
    """Decryption was requested on a context that holds no secret key."""

    def __init__(self) -> None:
        super().__init__(
            "this context holds no secret key; decrypt with the key-holding "
            "context instead"
        )
