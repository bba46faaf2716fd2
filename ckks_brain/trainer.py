"""
Training and evaluation loops over encrypted patterns.

Nothing here decrypts. Epoch losses are summed homomorphically and returned
encrypted; a key-holding caller can inspect them through ``callback``.
"""

from __future__ import annotations

import logging
import warnings
from typing import TYPE_CHECKING, Any, Callable, List, NamedTuple, Optional, Sequence

from .scalar import EncryptedScalar, encrypted_sum

if TYPE_CHECKING:
    from .nn.feedforward import FeedForward

logger = logging.getLogger(__name__)

EpochCallback = Callable[[int, EncryptedScalar], Optional[bool]]

# Levels one update + back_propagate takes off the input weights.
LEVELS_PER_PATTERN = 10


class Pattern(NamedTuple):
    """One training example: encrypted inputs, encrypted targets, optional label."""
    inputs: Sequence[EncryptedScalar]
    targets: Sequence[EncryptedScalar]
    label: Optional[str] = None


class Prediction(NamedTuple):
    """Result of running one pattern through the network."""
    inputs: Sequence[EncryptedScalar]
    outputs: List[EncryptedScalar]
    targets: Sequence[EncryptedScalar]
    label: Optional[str]


def as_pattern(pattern: Any) -> Pattern:
    """Accept ``Pattern`` instances and plain ``(inputs, targets[, label])`` tuples."""
    if isinstance(pattern, Pattern):
        return pattern
    if len(pattern) not in (2, 3):
        raise ValueError(
            f"a pattern is (inputs, targets) or (inputs, targets, label), got {len(pattern)} items"
        )
    return Pattern(*pattern)


def train(
    network: "FeedForward",
    patterns: Sequence[Any],
    iterations: int,
    learning_rate: float,
    momentum: float,
    callback: Optional[EpochCallback] = None,
) -> List[EncryptedScalar]:
    """Run ``iterations`` epochs of online backpropagation.

    Each epoch runs ``update`` then ``back_propagate`` on every pattern in
    order and sums the per-pattern losses.

    Args:
        network: An initialized ``FeedForward``.
        patterns: ``Pattern`` objects or ``(inputs, targets)`` pairs.
        iterations: Number of epochs.
        learning_rate: Cleartext step size.
        momentum: Cleartext weight of the previous change.
        callback: Called as ``callback(epoch, loss)`` after every epoch.
            Returning ``False`` stops training.

    Returns:
        One encrypted loss per completed epoch.
    """
    if iterations < 0:
        raise ValueError(f"iterations must be >= 0, got {iterations}")
    patterns = [as_pattern(p) for p in patterns]

    needed = LEVELS_PER_PATTERN * iterations * len(patterns)
    if needed > network.levels_remaining:
        warnings.warn(
            f"training needs about {needed} levels but the weights have "
            f"{network.levels_remaining} left; expect DepthExhaustedError",
            stacklevel=2,
        )

    logger.info(
        "Training %r for %d epochs on %d patterns (lr=%g, momentum=%g)",
        network, iterations, len(patterns), learning_rate, momentum,
    )

    errors: List[EncryptedScalar] = []
    for epoch in range(iterations):
        losses = []
        for pattern in patterns:
            network.update(pattern.inputs)
            losses.append(network.back_propagate(pattern.targets, learning_rate, momentum))
        epoch_loss = encrypted_sum(losses) if losses else network.context.encrypt(0.0)
        errors.append(epoch_loss)

        logger.debug(
            "Epoch %d/%d done, weights at level %d",
            epoch + 1, iterations, network.levels_remaining,
        )
        if callback is not None and callback(epoch, epoch_loss) is False:
            logger.info("Training stopped by callback after %d epochs", epoch + 1)
            break

    logger.info("Training finished, %d levels left", network.levels_remaining)
    return errors


def test(network: "FeedForward", patterns: Sequence[Any]) -> List[Prediction]:
    """Run the forward pass on every pattern and collect the encrypted predictions."""
    results = []
    for pattern in (as_pattern(p) for p in patterns):
        outputs = network.update(pattern.inputs)
        logger.debug("Predicted pattern %s", pattern.label if pattern.label is not None else "<unlabeled>")
        results.append(Prediction(pattern.inputs, outputs, pattern.targets, pattern.label))
    return results
