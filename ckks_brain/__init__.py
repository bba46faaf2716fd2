"""
ckks-brain: neural network training on CKKS-encrypted data.

A small feed-forward (optionally Elman-recurrent) network whose inputs,
weights, activations and errors stay encrypted through both the forward and
the backward pass.

Quick Start:
    >>> import torch
    >>> import ckks_brain
    >>>
    >>> # 1. The key holder creates keys and encrypts the data
    >>> ctx = ckks_brain.CKKSTrainingContext(ckks_brain.SchemeConfig.for_depth(18))
    >>> patterns = [
    ...     ckks_brain.Pattern(ctx.encrypt_vector([0, 1]), ctx.encrypt_vector([1]), "0 xor 1"),
    ... ]
    >>>
    >>> # 2. The trainer only gets the public context
    >>> net = ckks_brain.FeedForward(ctx.make_public())
    >>> net.init(2, 2, 1, generator=torch.Generator().manual_seed(0))
    >>> errors = net.train(patterns, iterations=1, learning_rate=0.6, momentum=0.4)
    >>>
    >>> # 3. Only the key holder can read the result
    >>> ctx.decrypt(errors[-1])

Every multiplication consumes one level of the modulus chain; choose
``mult_depth`` for the number of patterns and epochs you intend to run.
"""

__version__ = "0.1.0"

# Core classes
from .context import CKKSTrainingContext, SchemeConfig
from .scalar import EncryptedScalar, Plaintext
from .trainer import Pattern, Prediction
from .errors import (
    CKKSBrainError,
    ShapeError,
    InputShapeError,
    TargetShapeError,
    ContextShapeError,
    ConfigurationError,
    LevelMismatchError,
    ScaleMismatchError,
    DepthExhaustedError,
    BackendUnavailableError,
    SecretKeyUnavailableError,
)

# Submodules
from . import backends
from . import nn
from .nn import FeedForward

__all__ = [
    # Version
    "__version__",
    # Core
    "CKKSTrainingContext",
    "SchemeConfig",
    "EncryptedScalar",
    "Plaintext",
    "FeedForward",
    "Pattern",
    "Prediction",
    # Errors
    "CKKSBrainError",
    "ShapeError",
    "InputShapeError",
    "TargetShapeError",
    "ContextShapeError",
    "ConfigurationError",
    "LevelMismatchError",
    "ScaleMismatchError",
    "DepthExhaustedError",
    "BackendUnavailableError",
    "SecretKeyUnavailableError",
    # Submodules
    "backends",
    "nn",
    # Utility
    "get_backend_info",
    "is_available",
]


def get_backend_info() -> dict:
    """Get information about the CKKS backend selected for new contexts.

    Returns:
        Dictionary with backend information.
    """
    from .backends import available_backends, resolve_backend_name
    from .backends.seal import is_available as seal_available

    name = resolve_backend_name()
    return {
        "backend": name,
        "available": seal_available() if name == "seal" else name in available_backends(),
        "registered": available_backends(),
    }


def is_available() -> bool:
    """Check if the selected CKKS backend is available.

    Returns:
        True if the backend is installed and ready.
    """
    return get_backend_info()["available"]
