"""
CKKSBackend - contract between the training engine and a CKKS implementation.

The engine never touches scheme internals directly. Everything it needs from
the homomorphic library goes through this interface: encoding, encryption,
the elementary arithmetic set and the two level-dropping operations.

Handles returned by a backend (plaintexts and ciphertexts) are opaque to the
engine and must be treated as immutable: every operation returns a new handle.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..context import SchemeConfig


class CKKSBackend(ABC):
    """Abstract CKKS evaluator, encoder and key holder.

    Subclasses own the key material. A backend built from a key-generation
    step holds the secret key; ``public_copy()`` returns a backend that can
    encrypt and evaluate but not decrypt.

    Args:
        config: Scheme parameters the backend was (or will be) built with.
    """

    name: str = "abstract"

    def __init__(self, config: "SchemeConfig") -> None:
        self.config = config

    @property
    @abstractmethod
    def has_secret_key(self) -> bool:
        """Whether this backend can decrypt."""

    # -------------------------------------------------------------------------
    # Encoding and Encryption
    # -------------------------------------------------------------------------

    @abstractmethod
    def encode(self, value: float, level: int) -> Any:
        """Encode a real number at the configured scale and the given level."""

    @abstractmethod
    def decode(self, plain: Any) -> float:
        """Decode a plaintext handle back to a real number."""

    @abstractmethod
    def encrypt(self, plain: Any) -> Any:
        """Encrypt a plaintext handle with the public key."""

    @abstractmethod
    def decrypt(self, cipher: Any) -> Any:
        """Decrypt a ciphertext handle.

        Raises:
            SecretKeyUnavailableError: If the backend holds no secret key.
        """

    # -------------------------------------------------------------------------
    # Arithmetic
    # -------------------------------------------------------------------------

    @abstractmethod
    def add(self, left: Any, right: Any) -> Any:
        ...

    @abstractmethod
    def sub(self, left: Any, right: Any) -> Any:
        ...

    @abstractmethod
    def multiply(self, left: Any, right: Any) -> Any:
        """Ciphertext-ciphertext product (not relinearized, not rescaled)."""

    @abstractmethod
    def multiply_plain(self, cipher: Any, plain: Any) -> Any:
        """Ciphertext-plaintext product (not rescaled)."""

    @abstractmethod
    def square(self, cipher: Any) -> Any:
        ...

    @abstractmethod
    def negate(self, cipher: Any) -> Any:
        ...

    # -------------------------------------------------------------------------
    # Noise and Level Management
    # -------------------------------------------------------------------------

    @abstractmethod
    def relinearize(self, cipher: Any) -> Any:
        """Reduce a three-component product back to two components."""

    @abstractmethod
    def rescale_to_next(self, cipher: Any) -> Any:
        """Divide by the last prime of the chain, dropping one level and scale."""

    @abstractmethod
    def mod_switch_to_next(self, cipher: Any) -> Any:
        """Drop one level without touching the scale."""

    def level(self, cipher: Any) -> Optional[int]:
        """The backend's own view of a ciphertext's level.

        Returns None when the library does not expose it; the engine then
        relies on its own bookkeeping alone.
        """
        return None

    @abstractmethod
    def public_copy(self) -> "CKKSBackend":
        """Return a backend sharing parameters and public keys, without the secret key."""

    def __repr__(self) -> str:
        role = "private" if self.has_secret_key else "public"
        return f"{self.__class__.__name__}(name='{self.name}', {role})"
