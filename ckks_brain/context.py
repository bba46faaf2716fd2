"""
CKKS Training Context - scheme parameters, keys and the encrypted-value factory.

A ``CKKSTrainingContext`` is the only place where cleartext becomes ciphertext
and back. The key holder keeps the full context; the party that trains gets
``make_public()``, which can encrypt and evaluate but never decrypt.
"""

from __future__ import annotations

import logging
import threading
import uuid
import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple, Union

import torch

from .backends import create_backend, resolve_backend_name
from .backends.base import CKKSBackend
from .errors import ConfigurationError, DepthExhaustedError

if TYPE_CHECKING:
    from .scalar import EncryptedScalar, Plaintext

logger = logging.getLogger(__name__)

# Largest total coefficient modulus (bits) for 128-bit classical security,
# per ring dimension (HomomorphicEncryption.org standard, as enforced by SEAL).
MAX_COEFF_BITS_128: Dict[int, int] = {
    1024: 27,
    2048: 54,
    4096: 109,
    8192: 218,
    16384: 438,
    32768: 881,
}

SECURITY_LEVELS = ("128_classic",)


@dataclass
class SchemeConfig:
    """CKKS parameters for encrypted training.

    The modulus chain is one 60-bit prime at each end and ``mult_depth``
    primes of ``scale_bits`` bits in between, so a fresh ciphertext sits at
    level ``mult_depth`` and every rescale divides by exactly the encoding
    scale.

    Attributes:
        poly_mod_degree: Ring dimension (power of 2).
        scale_bits: log2 of the encoding scale; also the size of every middle prime.
        mult_depth: Number of rescales a fresh ciphertext can undergo.
            One forward and backward pass over a single pattern consumes
            roughly ten levels, so training needs far more depth than inference.
        security_level: ``"128_classic"`` to enforce the standard bound on the
            chain length, None to disable the check (tests and experiments only).
    """
    poly_mod_degree: int = 32768
    scale_bits: int = 40
    mult_depth: int = 18
    security_level: Optional[str] = "128_classic"

    special_prime_bits = 60

    def __post_init__(self) -> None:
        n = self.poly_mod_degree
        if n < 1024 or n & (n - 1):
            raise ConfigurationError(f"poly_mod_degree must be a power of 2 >= 1024, got {n}")
        if not 20 <= self.scale_bits < self.special_prime_bits:
            raise ConfigurationError(
                f"scale_bits must be in [20, {self.special_prime_bits}), got {self.scale_bits}"
            )
        if self.mult_depth < 1:
            raise ConfigurationError(f"mult_depth must be >= 1, got {self.mult_depth}")

        if self.security_level is None:
            warnings.warn(
                "SchemeConfig security checks are disabled; these parameters "
                "may not provide 128-bit security.",
                stacklevel=3,
            )
        elif self.security_level not in SECURITY_LEVELS:
            raise ConfigurationError(
                f"unsupported security_level '{self.security_level}'; "
                f"use one of {SECURITY_LEVELS} or None"
            )
        elif self.total_coeff_bits > MAX_COEFF_BITS_128.get(n, 0):
            raise ConfigurationError(
                f"coefficient modulus of {self.total_coeff_bits} bits exceeds the "
                f"128-bit bound of {MAX_COEFF_BITS_128.get(n, 0)} bits for N={n}; "
                "use SchemeConfig.for_depth() or a larger poly_mod_degree"
            )

    @property
    def coeff_mod_bits(self) -> Tuple[int, ...]:
        middle_bits = tuple([self.scale_bits] * self.mult_depth)
        return (self.special_prime_bits,) + middle_bits + (self.special_prime_bits,)

    @property
    def total_coeff_bits(self) -> int:
        return sum(self.coeff_mod_bits)

    @property
    def max_level(self) -> int:
        """Level of a freshly encrypted scalar."""
        return self.mult_depth

    def modulus_bits(self, level: int) -> int:
        """Bits of the data modulus left at ``level``.

        A ciphertext's scale must stay below this, which is why a product of
        two fresh operands cannot be formed at level 0.
        """
        return self.special_prime_bits + self.scale_bits * level

    @classmethod
    def for_depth(cls, mult_depth: int, **kwargs: Any) -> "SchemeConfig":
        """Create the smallest 128-bit-secure config with ``mult_depth`` levels.

        Args:
            mult_depth: Number of rescales the computation needs.
            **kwargs: Overrides forwarded to __init__ (``scale_bits``,
                ``poly_mod_degree``, ``security_level``).

        Raises:
            DepthExhaustedError: If no supported ring dimension admits the chain.
        """
        mult_depth = max(1, mult_depth)
        scale_bits = kwargs.pop("scale_bits", 40)
        if "poly_mod_degree" not in kwargs:
            needed = 2 * cls.special_prime_bits + scale_bits * mult_depth
            fitting = [n for n, bound in sorted(MAX_COEFF_BITS_128.items()) if needed <= bound]
            if not fitting:
                raise DepthExhaustedError(f"fit {mult_depth} levels of {scale_bits} bits", level=mult_depth)
            kwargs["poly_mod_degree"] = fitting[0]
        return cls(scale_bits=scale_bits, mult_depth=mult_depth, **kwargs)


class CKKSTrainingContext:
    """Scheme parameters, key material and the encrypted-value factory.

    The backend (and with it the keys) is created lazily on first use.
    Pass ``backend=`` to inject an existing ``CKKSBackend`` or to pick one by
    name; otherwise the ``CKKS_BRAIN_BACKEND`` environment variable decides,
    defaulting to ``seal``.

    Example:
        >>> ctx = CKKSTrainingContext(SchemeConfig.for_depth(18))
        >>> x = ctx.encrypt(0.25)
        >>> engine_ctx = ctx.make_public()     # hand this to the trainer
        >>> ctx.decrypt(x * x)
        0.0625...
    """

    def __init__(
        self,
        config: Optional[SchemeConfig] = None,
        *,
        backend: Union[CKKSBackend, str, None] = None,
        scheme_id: Optional[str] = None,
    ):
        self.config = config or SchemeConfig()
        self.scheme_id = scheme_id or uuid.uuid4().hex
        self._init_lock = threading.Lock()
        if isinstance(backend, CKKSBackend):
            self._backend: Optional[CKKSBackend] = backend
            self._backend_name = backend.name
            self._initialized = True
        else:
            self._backend = None
            self._backend_name = resolve_backend_name(backend)
            self._initialized = False

    def _ensure_initialized(self) -> None:
        """Create the backend and generate keys on first use."""
        if self._initialized:
            return

        with self._init_lock:
            if self._initialized:
                return
            self._backend = create_backend(self.config, self._backend_name)
            logger.info("Initialized %r with config %s", self._backend, self.config)
            self._initialized = True

    @property
    def backend(self) -> CKKSBackend:
        """The underlying backend (created on first access)."""
        self._ensure_initialized()
        return self._backend

    @property
    def has_secret_key(self) -> bool:
        return self.backend.has_secret_key

    @property
    def max_level(self) -> int:
        return self.config.max_level

    # -------------------------------------------------------------------------
    # Encoding
    # -------------------------------------------------------------------------

    def encode(self, value: float, level: Optional[int] = None) -> "Plaintext":
        """Encode a cleartext number at ``level`` (default: the top of the chain)."""
        from .scalar import Plaintext

        if level is None:
            level = self.config.max_level
        handle = self.backend.encode(float(value), level)
        return Plaintext(float(value), handle, level, self.config.scale_bits)

    def decode(self, plain: "Plaintext") -> float:
        return self.backend.decode(plain.handle)

    # -------------------------------------------------------------------------
    # Encryption
    # -------------------------------------------------------------------------

    def encrypt(self, value: Union[float, "Plaintext"]) -> "EncryptedScalar":
        """Encrypt a number (or an already encoded plaintext) as a fresh scalar.

        Fresh scalars sit at the top of the modulus chain, at the base scale.
        """
        from .scalar import EncryptedScalar, Plaintext

        plain = value if isinstance(value, Plaintext) else self.encode(value)
        cipher = self.backend.encrypt(plain.handle)
        return EncryptedScalar(cipher, self, plain.level, plain.scale_bits)

    def encrypt_vector(self, values: Union[torch.Tensor, Sequence[float]]) -> List["EncryptedScalar"]:
        """Encrypt each element independently.

        Args:
            values: A 1-D tensor or sequence of numbers.
        """
        if isinstance(values, torch.Tensor):
            values = values.detach().to(dtype=torch.float64, device="cpu").reshape(-1).tolist()
        return [self.encrypt(float(v)) for v in values]

    def decrypt(self, scalar: "EncryptedScalar") -> float:
        """Decrypt a scalar created under this scheme.

        Raises:
            SecretKeyUnavailableError: If this context holds no secret key.
            LevelMismatchError: If the scalar belongs to another scheme.
        """
        from .levels import check_same_scheme

        check_same_scheme(self, scalar.context)
        plain = self.backend.decrypt(scalar._cipher)
        return self.backend.decode(plain)

    def decrypt_vector(self, scalars: Sequence["EncryptedScalar"]) -> torch.Tensor:
        return torch.tensor([self.decrypt(s) for s in scalars], dtype=torch.float64)

    # -------------------------------------------------------------------------
    # Key Management
    # -------------------------------------------------------------------------

    def make_public(self) -> "CKKSTrainingContext":
        """Return a context sharing parameters and public keys, without the secret key.

        Scalars created by either context can be combined.
        """
        public = CKKSTrainingContext(
            self.config,
            backend=self.backend.public_copy(),
            scheme_id=self.scheme_id,
        )
        logger.info("Derived public context for scheme %s", self.scheme_id[:8])
        return public

    @classmethod
    def for_depth(cls, depth: int, **kwargs: Any) -> "CKKSTrainingContext":
        """Create a context with at least ``depth`` levels.

        Args:
            depth: Number of rescales the computation needs.
            **kwargs: Additional arguments passed to __init__.
        """
        config = SchemeConfig.for_depth(depth)
        return cls(config, **kwargs)

    def __repr__(self) -> str:
        if not self._initialized:
            status = "not initialized"
        elif self._backend.has_secret_key:
            status = "private"
        else:
            status = "public"
        return (
            f"CKKSTrainingContext("
            f"backend='{self._backend_name}', "
            f"N={self.config.poly_mod_degree}, "
            f"depth={self.config.mult_depth}, "
            f"status={status})"
        )
