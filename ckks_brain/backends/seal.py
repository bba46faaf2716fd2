"""
SealBackend - CKKS backend on Microsoft SEAL through TenSEAL.

Each encrypted scalar is a one-slot ``CKKSVector``. TenSEAL relinearizes,
rescales and mod-switches on its own (``auto_relin``, ``auto_rescale`` and
``auto_mod_switch`` stay enabled), so the level hooks here only have to keep
the handle; the engine's own level and scale bookkeeping stays authoritative
and TenSEAL is never asked to report a level.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, List, Optional

from ..errors import BackendUnavailableError, SecretKeyUnavailableError
from .base import CKKSBackend

if TYPE_CHECKING:
    from ..context import SchemeConfig

logger = logging.getLogger(__name__)

# TenSEAL is an optional extra and pulls in a large native library, so it is
# imported on first use only.
_ts: Any = None
_import_lock = threading.Lock()


def _import_tenseal() -> Any:
    global _ts
    if _ts is not None:
        return _ts
    with _import_lock:
        if _ts is None:
            try:
                import tenseal
            except ImportError as exc:
                raise BackendUnavailableError(
                    "TenSEAL is not installed. Install the SEAL backend with:\n"
                    "  pip install 'ckks-brain[seal]'"
                ) from exc
            _ts = tenseal
    return _ts


def is_available() -> bool:
    """Check whether TenSEAL can be imported."""
    try:
        _import_tenseal()
    except BackendUnavailableError:
        return False
    return True


class SealBackend(CKKSBackend):
    """TenSEAL implementation of the backend contract.

    Args:
        config: Scheme parameters. The coefficient modulus chain is
            ``config.coeff_mod_bits`` and the global scale ``2**config.scale_bits``.
        _context: Internal. An existing TenSEAL context, used by ``public_copy``.
    """

    name = "seal"

    def __init__(self, config: "SchemeConfig", *, _context: Any = None) -> None:
        super().__init__(config)
        ts = _import_tenseal()

        if _context is None:
            _context = ts.context(
                ts.SCHEME_TYPE.CKKS,
                poly_modulus_degree=config.poly_mod_degree,
                coeff_mod_bit_sizes=list(config.coeff_mod_bits),
            )
            _context.global_scale = 2 ** config.scale_bits
            _context.generate_relin_keys()
            logger.info(
                "Generated SEAL keys (N=%d, chain=%s)",
                config.poly_mod_degree,
                list(config.coeff_mod_bits),
            )

        _context.auto_relin = True
        _context.auto_rescale = True
        _context.auto_mod_switch = True
        self._ctx = _context
        self._secret_key = _context.secret_key() if _context.is_private() else None

    @property
    def has_secret_key(self) -> bool:
        return self._secret_key is not None

    @property
    def tenseal_context(self) -> Any:
        """The wrapped TenSEAL context."""
        return self._ctx

    # -------------------------------------------------------------------------
    # Encoding and Encryption
    # -------------------------------------------------------------------------

    def encode(self, value: float, level: int) -> Any:
        # TenSEAL encodes at the operand's level when the plaintext is used.
        return _ts.plain_tensor([float(value)])

    def decode(self, plain: Any) -> float:
        return float(_first(plain.tolist()))

    def encrypt(self, plain: Any) -> Any:
        return _ts.ckks_vector(self._ctx, plain.tolist())

    def decrypt(self, cipher: Any) -> Any:
        if self._secret_key is None:
            raise SecretKeyUnavailableError()
        return _ts.plain_tensor(cipher.decrypt(self._secret_key)[:1])

    # -------------------------------------------------------------------------
    # Arithmetic
    # -------------------------------------------------------------------------

    def add(self, left: Any, right: Any) -> Any:
        return left + right

    def sub(self, left: Any, right: Any) -> Any:
        return left - right

    def multiply(self, left: Any, right: Any) -> Any:
        return left * right

    def multiply_plain(self, cipher: Any, plain: Any) -> Any:
        return cipher * _first(plain.tolist())

    def square(self, cipher: Any) -> Any:
        return cipher.square()

    def negate(self, cipher: Any) -> Any:
        return cipher.neg()

    # -------------------------------------------------------------------------
    # Noise and Level Management
    # -------------------------------------------------------------------------

    def relinearize(self, cipher: Any) -> Any:
        return cipher

    def rescale_to_next(self, cipher: Any) -> Any:
        return cipher

    def mod_switch_to_next(self, cipher: Any) -> Any:
        return cipher

    def level(self, cipher: Any) -> Optional[int]:
        return None

    def public_copy(self) -> "SealBackend":
        public = self._ctx.copy()
        public.make_context_public()
        return SealBackend(self.config, _context=public)


def _first(values: List[float]) -> float:
    # plain_tensor.tolist() is flat for a one-slot vector
    return values[0]
