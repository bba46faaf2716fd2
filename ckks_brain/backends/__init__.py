"""
CKKS backends.

Backends are looked up by name. ``seal`` (TenSEAL) ships with the package;
other implementations can be added with :func:`register_backend`.
"""

from __future__ import annotations

import importlib
import os
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple, Union

from ..errors import ConfigurationError
from .base import CKKSBackend

if TYPE_CHECKING:
    from ..context import SchemeConfig

BACKEND_ENV_VAR = "CKKS_BRAIN_BACKEND"
DEFAULT_BACKEND = "seal"

BackendFactory = Callable[["SchemeConfig"], CKKSBackend]

# name -> (module, attribute), resolved on first use
_LAZY_BACKENDS: Dict[str, Tuple[str, str]] = {
    "seal": ("ckks_brain.backends.seal", "SealBackend"),
}
_FACTORIES: Dict[str, BackendFactory] = {}


def register_backend(name: str, factory: BackendFactory) -> None:
    """Make a backend available under ``name``.

    Args:
        name: Lookup key, also accepted through ``CKKS_BRAIN_BACKEND``.
        factory: Callable taking a ``SchemeConfig`` and returning a
            ``CKKSBackend`` that holds freshly generated keys.
    """
    _FACTORIES[name.lower()] = factory


def available_backends() -> List[str]:
    return sorted(set(_LAZY_BACKENDS) | set(_FACTORIES))


def resolve_backend_name(name: Optional[str] = None) -> str:
    return (name or os.environ.get(BACKEND_ENV_VAR) or DEFAULT_BACKEND).lower()


def create_backend(config: "SchemeConfig", name: Optional[str] = None) -> CKKSBackend:
    """Build a key-holding backend for ``config``.

    Raises:
        ConfigurationError: If no backend is known under the resolved name.
        BackendUnavailableError: If the backend's library is not installed.
    """
    key = resolve_backend_name(name)
    factory: Union[BackendFactory, None] = _FACTORIES.get(key)
    if factory is None:
        if key not in _LAZY_BACKENDS:
            raise ConfigurationError(
                f"unknown CKKS backend '{key}'; available: {', '.join(available_backends())}"
            )
        module_name, attr = _LAZY_BACKENDS[key]
        factory = getattr(importlib.import_module(module_name), attr)
    return factory(config)


__all__ = [
    "BACKEND_ENV_VAR",
    "CKKSBackend",
    "available_backends",
    "create_backend",
    "register_backend",
    "resolve_backend_name",
]
