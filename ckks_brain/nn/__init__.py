"""
ckks_brain.nn - Encrypted network layers and state.
"""

from .activations import EncryptedActivation, EncryptedSquare
from .feedforward import FeedForward
from .state import ContextHistory, NetworkState

__all__ = [
    "EncryptedActivation",
    "EncryptedSquare",
    "FeedForward",
    "ContextHistory",
    "NetworkState",
]
