"""
Level and scale coordination.

CKKS only combines ciphertexts that sit at the same modulus level and, for
addition, at the same scale. These helpers bring two scalars into agreement
with the cheapest sequence of relinearize, rescale and modulus-switch steps:

* multiplication: both operands are made canonical (relinearized, rescaled
  to the base scale), then the higher one is mod-switched down;
* addition: operands at equal scale are only level-aligned; otherwise the
  pending products are rescaled first. A scale mismatch that survives this
  is an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Tuple, Union

from .errors import DepthExhaustedError, LevelMismatchError, ScaleMismatchError

if TYPE_CHECKING:
    from .context import CKKSTrainingContext
    from .scalar import EncryptedScalar, Plaintext


def check_same_scheme(left: "CKKSTrainingContext", right: "CKKSTrainingContext") -> None:
    """Raise unless both contexts share parameters and keys."""
    if left is right or left.scheme_id == right.scheme_id:
        return
    raise LevelMismatchError(
        "operands were encrypted under different CKKS schemes "
        f"({left.scheme_id[:8]} vs {right.scheme_id[:8]})"
    )


def canonicalize(x: "EncryptedScalar") -> "EncryptedScalar":
    """Relinearize and rescale ``x`` down to the base scale."""
    x = x.relinearize()
    while x.needs_rescale:
        x = x.rescale()
    return x


def match_levels(a: "EncryptedScalar", b: "EncryptedScalar") -> Tuple["EncryptedScalar", "EncryptedScalar"]:
    """Mod-switch the higher operand down to the lower one's level."""
    if a.level > b.level:
        a = a.mod_switch_to(b.level)
    elif b.level > a.level:
        b = b.mod_switch_to(a.level)
    return a, b


def align_for_add(a: "EncryptedScalar", b: "EncryptedScalar") -> Tuple["EncryptedScalar", "EncryptedScalar"]:
    """Bring two addends to a common level and scale.

    Raises:
        ScaleMismatchError: If the scales still differ after rescaling.
        DepthExhaustedError: If a needed rescale or switch runs out of levels.
    """
    check_same_scheme(a.context, b.context)
    if a.scale_bits != b.scale_bits:
        a, b = canonicalize(a), canonicalize(b)
    a, b = match_levels(a, b)
    if a.scale_bits != b.scale_bits:
        raise ScaleMismatchError(
            f"cannot add scales 2^{a.scale_bits} and 2^{b.scale_bits}",
            left=a.level,
            right=b.level,
        )
    verify_levels(a, b)
    return a, b


def align_for_multiply(a: "EncryptedScalar", b: "EncryptedScalar") -> Tuple["EncryptedScalar", "EncryptedScalar"]:
    """Make both factors canonical and bring them to a common level."""
    check_same_scheme(a.context, b.context)
    a, b = match_levels(canonicalize(a), canonicalize(b))
    verify_levels(a, b)
    return a, b


def verify_levels(a: "EncryptedScalar", b: "EncryptedScalar") -> None:
    """Check the bookkeeping agrees, and with the backend when it reports levels."""
    if a.level != b.level:
        raise LevelMismatchError(
            f"operands at levels {a.level} and {b.level}", left=a.level, right=b.level
        )
    backend = a.context.backend
    for x in (a, b):
        reported = backend.level(x._cipher)
        if reported is not None and reported != x.level:
            raise LevelMismatchError(
                f"backend reports level {reported} for a scalar tracked at level {x.level}",
                left=x.level,
                right=reported,
            )


def check_scale_budget(x: "EncryptedScalar", scale_bits: int, operation: str) -> None:
    """Raise if a result at ``scale_bits`` would not fit the modulus left at ``x.level``."""
    if scale_bits >= x.context.config.modulus_bits(x.level):
        raise DepthExhaustedError(operation, x.level)


def plain_at(x: "EncryptedScalar", value: Union["Plaintext", float, int, Any]) -> "Plaintext":
    """Encode ``value`` at ``x``'s level, re-encoding a plaintext made elsewhere."""
    from .scalar import Plaintext

    if isinstance(value, Plaintext):
        if value.level == x.level:
            return value
        value = value.value
    return x.context.encode(float(value), x.level)


def levels_remaining(*scalars: "EncryptedScalar") -> int:
    """Lowest level among ``scalars``."""
    return min(s.level for s in scalars)
