"""
Encrypted activation functions.

Sigmoid cannot be evaluated under CKKS, so the network uses the square as a
polynomial surrogate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .. import levels

if TYPE_CHECKING:
    from ..scalar import EncryptedScalar


class EncryptedActivation(ABC):
    """Base class for activations with a derivative usable in backpropagation."""

    @abstractmethod
    def forward(self, x: "EncryptedScalar") -> "EncryptedScalar":
        """Apply the activation to a pre-activation sum."""

    @abstractmethod
    def derivative(self, y: "EncryptedScalar") -> "EncryptedScalar":
        """Derivative expressed in terms of the activation output ``y``."""

    def mult_depth(self) -> int:
        return 1

    def __call__(self, x: "EncryptedScalar") -> "EncryptedScalar":
        return self.forward(x)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class EncryptedSquare(EncryptedActivation):
    """Square activation: f(x) = x^2.

    The input is relinearized and rescaled to a fresh single-level
    representation before squaring; the square itself is left pending.

    The derivative uses the sigmoid form ``(1 - y) * y`` rather than the
    square's own ``2x``, so the update rule is that of the classic sigmoid
    network evaluated on the surrogate's outputs.
    """

    def forward(self, x: "EncryptedScalar") -> "EncryptedScalar":
        return levels.canonicalize(x).square()

    def derivative(self, y: "EncryptedScalar") -> "EncryptedScalar":
        one = y.context.encrypt(1.0)
        return (one - y) * y
