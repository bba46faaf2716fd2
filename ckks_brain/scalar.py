"""
EncryptedScalar - one CKKS-encrypted real number with explicit level bookkeeping.

The modulus level, the scale and the ciphertext size are fields of the
scalar itself rather than something read back from the backend. Every
operation returns a new scalar; the level coordinator (``levels.py``) brings
operands into agreement before a backend operation runs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from . import levels
from .errors import DepthExhaustedError, ScaleMismatchError

if TYPE_CHECKING:
    from .context import CKKSTrainingContext


@dataclass(frozen=True)
class Plaintext:
    """An encoded (not encrypted) number, tied to the level it was encoded at."""
    value: float
    handle: Any
    level: int
    scale_bits: int


class EncryptedScalar:
    """A CKKS ciphertext holding one real number.

    Attributes:
        level: Rescales left in the modulus chain (0 = exhausted).
        scale_bits: log2 of the current scale. Equals the base scale for a
            fresh or rescaled scalar, twice that right after a product.
        size: Ciphertext components; 3 after a multiplication until relinearized.

    Example:
        >>> a, b = ctx.encrypt(0.5), ctx.encrypt(0.25)
        >>> c = a * b + a          # levels and scales are aligned automatically
        >>> ctx.decrypt(c)
        0.625...
    """

    def __init__(
        self,
        cipher: Any,
        context: "CKKSTrainingContext",
        level: int,
        scale_bits: int,
        size: int = 2,
    ):
        self._cipher = cipher
        self._context = context
        self._level = level
        self._scale_bits = scale_bits
        self._size = size

    @property
    def context(self) -> "CKKSTrainingContext":
        """The context that created this scalar."""
        return self._context

    @property
    def level(self) -> int:
        return self._level

    @property
    def scale_bits(self) -> int:
        return self._scale_bits

    @property
    def size(self) -> int:
        return self._size

    @property
    def needs_rescale(self) -> bool:
        """True while the scale is above the base scale (a pending product)."""
        return self._scale_bits > self._context.config.scale_bits

    @property
    def is_canonical(self) -> bool:
        """Relinearized and at the base scale; ready to be multiplied."""
        return self._size == 2 and not self.needs_rescale

    def _derive(self, cipher: Any, level: Optional[int] = None, scale_bits: Optional[int] = None,
                size: Optional[int] = None) -> "EncryptedScalar":
        return EncryptedScalar(
            cipher,
            self._context,
            self._level if level is None else level,
            self._scale_bits if scale_bits is None else scale_bits,
            self._size if size is None else size,
        )

    @property
    def _backend(self):
        return self._context.backend

    # -------------------------------------------------------------------------
    # Arithmetic Operations
    # -------------------------------------------------------------------------

    def add(self, other: "EncryptedScalar") -> "EncryptedScalar":
        """Add another encrypted scalar.

        Raises:
            ScaleMismatchError: If the scales cannot be reconciled.
        """
        a, b = levels.align_for_add(self, other)
        cipher = a._backend.add(a._cipher, b._cipher)
        return a._derive(cipher, size=max(a.size, b.size))

    def sub(self, other: "EncryptedScalar") -> "EncryptedScalar":
        a, b = levels.align_for_add(self, other)
        cipher = a._backend.sub(a._cipher, b._cipher)
        return a._derive(cipher, size=max(a.size, b.size))

    def mul(self, other: Union["EncryptedScalar", Plaintext, float, int]) -> "EncryptedScalar":
        """Multiply by another encrypted scalar or a cleartext number.

        Both operands are relinearized, rescaled and level-aligned first. The
        product is left pending (size 3, doubled scale) until the next
        operation that needs it canonical.
        """
        if not isinstance(other, EncryptedScalar):
            return self.mul_plain(other)
        a, b = levels.align_for_multiply(self, other)
        scale_bits = a.scale_bits + b.scale_bits
        levels.check_scale_budget(a, scale_bits, "multiply")
        cipher = a._backend.multiply(a._cipher, b._cipher)
        return a._derive(cipher, scale_bits=scale_bits, size=3)

    def mul_plain(self, value: Union[Plaintext, float, int]) -> "EncryptedScalar":
        """Multiply by a cleartext number, encoded at this scalar's level."""
        a = levels.canonicalize(self)
        plain = levels.plain_at(a, value)
        scale_bits = a.scale_bits + plain.scale_bits
        levels.check_scale_budget(a, scale_bits, "multiply")
        cipher = a._backend.multiply_plain(a._cipher, plain.handle)
        return a._derive(cipher, scale_bits=scale_bits)

    def square(self) -> "EncryptedScalar":
        a = levels.canonicalize(self)
        scale_bits = 2 * a.scale_bits
        levels.check_scale_budget(a, scale_bits, "square")
        cipher = a._backend.square(a._cipher)
        return a._derive(cipher, scale_bits=scale_bits, size=3)

    def neg(self) -> "EncryptedScalar":
        return self._derive(self._backend.negate(self._cipher))

    # -------------------------------------------------------------------------
    # CKKS-specific Operations
    # -------------------------------------------------------------------------

    def relinearize(self) -> "EncryptedScalar":
        """Bring a three-component product back to two components."""
        if self._size == 2:
            return self
        return self._derive(self._backend.relinearize(self._cipher), size=2)

    def rescale(self) -> "EncryptedScalar":
        """Divide the scale by one prime and drop one level.

        Relinearizes first when the ciphertext still has three components.

        Raises:
            DepthExhaustedError: At level 0.
            ScaleMismatchError: If the scalar is already at the base scale.
        """
        if self._level == 0:
            raise DepthExhaustedError("rescale", self._level)
        if not self.needs_rescale:
            raise ScaleMismatchError(
                f"nothing to rescale: scale is already 2^{self._scale_bits}",
                left=self._level,
            )
        x = self.relinearize()
        cipher = x._backend.rescale_to_next(x._cipher)
        return x._derive(
            cipher,
            level=x.level - 1,
            scale_bits=x.scale_bits - x._context.config.scale_bits,
        )

    def mod_switch(self) -> "EncryptedScalar":
        """Drop one level, keeping the scale.

        Raises:
            DepthExhaustedError: At level 0.
        """
        if self._level == 0:
            raise DepthExhaustedError("switch modulus", self._level)
        return self._derive(self._backend.mod_switch_to_next(self._cipher), level=self._level - 1)

    def mod_switch_to(self, level: int) -> "EncryptedScalar":
        x = self
        while x.level > level:
            x = x.mod_switch()
        return x

    # -------------------------------------------------------------------------
    # Decryption
    # -------------------------------------------------------------------------

    def decrypt(self) -> float:
        """Decrypt with the creating context (needs its secret key)."""
        return self._context.decrypt(self)

    # -------------------------------------------------------------------------
    # Python Operators
    # -------------------------------------------------------------------------

    def __add__(self, other: "EncryptedScalar") -> "EncryptedScalar":
        return self.add(other)

    def __sub__(self, other: "EncryptedScalar") -> "EncryptedScalar":
        return self.sub(other)

    def __mul__(self, other: Any) -> "EncryptedScalar":
        return self.mul(other)

    def __rmul__(self, other: Any) -> "EncryptedScalar":
        return self.mul(other)

    def __neg__(self) -> "EncryptedScalar":
        return self.neg()

    def __repr__(self) -> str:
        return (
            f"EncryptedScalar(level={self._level}, "
            f"scale=2^{self._scale_bits}, "
            f"size={self._size})"
        )


def encrypted_sum(terms: Iterable[EncryptedScalar]) -> EncryptedScalar:
    """Homomorphically add a non-empty sequence of scalars, left to right."""
    total: Optional[EncryptedScalar] = None
    for term in terms:
        total = term if total is None else total + term
    if total is None:
        raise ValueError("encrypted_sum() needs at least one term")
    return total
