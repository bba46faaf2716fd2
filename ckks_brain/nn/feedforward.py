"""
FeedForward - a single-hidden-layer network trained entirely on encrypted values.

With ``set_contexts`` the network becomes an Elman network: every hidden unit
additionally receives the hidden activations of the previous forward passes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence

import torch

from .. import levels
from ..errors import InputShapeError, TargetShapeError
from ..scalar import EncryptedScalar, encrypted_sum
from .activations import EncryptedActivation, EncryptedSquare
from .state import (
    INITIAL_CONTEXT_VALUE,
    ContextHistory,
    EncryptedMatrix,
    EncryptedVector,
    NetworkState,
    vector,
)

if TYPE_CHECKING:
    from ..context import CKKSTrainingContext
    from ..trainer import Prediction

logger = logging.getLogger(__name__)


class FeedForward:
    """Encrypted feed-forward (optionally recurrent) neural network.

    Weights, activations and errors are ``EncryptedScalar`` values throughout;
    the network never decrypts. Learning rate and momentum are public
    cleartext hyperparameters.

    Args:
        context: Context used to encrypt weights and constants. The public
            context from ``make_public()`` is enough.
        activation: Activation surrogate (default: ``EncryptedSquare``).

    Example:
        >>> net = FeedForward(engine_ctx).init(2, 2, 1, generator=torch.Generator().manual_seed(0))
        >>> errors = net.train(patterns, iterations=1, learning_rate=0.6, momentum=0.4)
    """

    def __init__(
        self,
        context: "CKKSTrainingContext",
        activation: Optional[EncryptedActivation] = None,
    ):
        self.context = context
        self.activation = activation or EncryptedSquare()
        self.state: Optional[NetworkState] = None
        self._contexts_set = False

    def __getattr__(self, name: str) -> Any:
        # Expose state fields (n_inputs, input_weights, contexts, ...) directly.
        state = self.__dict__.get("state")
        if state is not None and name in NetworkState.__dataclass_fields__:
            return getattr(state, name)
        if state is None and name in NetworkState.__dataclass_fields__:
            raise AttributeError(f"'{name}' is not available before init() is called")
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def _require_state(self) -> NetworkState:
        if self.state is None:
            raise RuntimeError("network is not initialized; call init() first")
        return self.state

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def init(
        self,
        inputs: int,
        hiddens: int,
        outputs: int,
        generator: Optional[torch.Generator] = None,
    ) -> "FeedForward":
        """Allocate encrypted state for ``inputs`` -> ``hiddens`` -> ``outputs``.

        A bias unit is added to the input and hidden layers. Weights are
        uniform in [-1, 1], drawn from ``generator``.

        Returns:
            self, for chaining.
        """
        self.state = NetworkState.allocate(self.context, inputs, hiddens, outputs, generator)
        self._contexts_set = False
        logger.info(
            "Initialized %d-%d-%d network (%d encrypted weights, level %d)",
            inputs, hiddens, outputs,
            self.state.n_inputs * self.state.n_hiddens + self.state.n_hiddens * self.state.n_outputs,
            self.levels_remaining,
        )
        return self

    def set_contexts(
        self,
        count: int,
        initial: Optional[Sequence[Sequence[EncryptedScalar]]] = None,
    ) -> None:
        """Turn the network into an Elman network with ``count`` context vectors.

        Args:
            count: Number of past hidden vectors to remember. Ignored when
                ``initial`` is given.
            initial: Explicit context vectors, most recent first, each of
                length ``n_hiddens``. Defaults to vectors of encrypted 0.5.

        Raises:
            ContextShapeError: If a vector in ``initial`` has the wrong length.
            RuntimeError: If contexts were already set for this network.
        """
        state = self._require_state()
        if self._contexts_set:
            raise RuntimeError("contexts are already set; the context count is fixed after the first call")
        if initial is None:
            if count < 0:
                raise ValueError(f"context count must be >= 0, got {count}")
            fill = vector(self.context, state.n_hiddens, INITIAL_CONTEXT_VALUE)
            initial = [fill] * count

        state.contexts = ContextHistory(initial, width=state.n_hiddens)
        self._contexts_set = True
        logger.info("Network uses %d context vectors", state.contexts.capacity)

    # -------------------------------------------------------------------------
    # Forward Pass
    # -------------------------------------------------------------------------

    def update(self, inputs: Sequence[EncryptedScalar]) -> List[EncryptedScalar]:
        """Run the forward pass and return the encrypted outputs.

        Updates the activation vectors and pushes the new hidden activations
        onto the context history.

        Raises:
            InputShapeError: If ``len(inputs) != n_inputs - 1``.
            DepthExhaustedError: If the weights have run out of levels.
        """
        state = self._require_state()
        inputs = list(inputs)
        if len(inputs) != state.n_inputs - 1:
            raise InputShapeError(state.n_inputs - 1, len(inputs))

        input_activations = inputs + [state.input_activations[-1]]

        # Raw context units are summed once and added to every hidden unit.
        context_terms = [c for entry in state.contexts for c in entry[:-1]]
        context_total = encrypted_sum(context_terms) if context_terms else None

        hidden_activations: EncryptedVector = []
        for i in range(state.n_hiddens - 1):
            total = _weighted_sum(input_activations, state.input_weights, i)
            if context_total is not None:
                total = total + context_total
            hidden_activations.append(self.activation(total))
        hidden_activations.append(state.hidden_activations[-1])

        output_activations = [
            self.activation(_weighted_sum(hidden_activations, state.output_weights, i))
            for i in range(state.n_outputs)
        ]

        state.input_activations = input_activations
        state.hidden_activations = hidden_activations
        state.output_activations = output_activations
        state.contexts.push(hidden_activations)
        return list(output_activations)

    predict = update

    # -------------------------------------------------------------------------
    # Backward Pass
    # -------------------------------------------------------------------------

    def back_propagate(
        self,
        targets: Sequence[EncryptedScalar],
        learning_rate: float,
        momentum: float,
    ) -> EncryptedScalar:
        """Update the weights from the last forward pass and return the encrypted loss.

        The loss is ``sum(0.5 * (target - output) ** 2)`` for the outputs of
        the preceding ``update`` call.

        Raises:
            TargetShapeError: If ``len(targets) != n_outputs``.
        """
        state = self._require_state()
        targets = list(targets)
        if len(targets) != state.n_outputs:
            raise TargetShapeError(state.n_outputs, len(targets))

        derivative = self.activation.derivative
        outputs = state.output_activations

        output_deltas = [derivative(o) * (t - o) for t, o in zip(targets, outputs)]

        hidden_deltas = []
        for i in range(state.n_hiddens):
            error = encrypted_sum(d * w for d, w in zip(output_deltas, state.output_weights[i]))
            hidden_deltas.append(derivative(state.hidden_activations[i]) * error)

        output_weights, output_changes = _apply_updates(
            state.hidden_activations, output_deltas,
            state.output_weights, state.output_changes,
            learning_rate, momentum,
        )
        input_weights, input_changes = _apply_updates(
            state.input_activations, hidden_deltas,
            state.input_weights, state.input_changes,
            learning_rate, momentum,
        )

        loss = encrypted_sum((t - o).square() * 0.5 for t, o in zip(targets, outputs))

        state.output_weights, state.output_changes = output_weights, output_changes
        state.input_weights, state.input_changes = input_weights, input_changes
        return loss

    # -------------------------------------------------------------------------
    # Training
    # -------------------------------------------------------------------------

    def train(
        self,
        patterns: Sequence[Any],
        iterations: int,
        learning_rate: float,
        momentum: float,
        callback: Optional[Callable[[int, EncryptedScalar], Optional[bool]]] = None,
    ) -> List[EncryptedScalar]:
        """Train on ``patterns``; see :func:`ckks_brain.trainer.train`."""
        from ..trainer import train

        return train(self, patterns, iterations, learning_rate, momentum, callback=callback)

    def test(self, patterns: Sequence[Any]) -> List["Prediction"]:
        """Predict every pattern; see :func:`ckks_brain.trainer.test`."""
        from ..trainer import test

        return test(self, patterns)

    @property
    def levels_remaining(self) -> int:
        """Lowest level among the weights; the depth left for further training."""
        state = self._require_state()
        return levels.levels_remaining(
            *(w for row in state.input_weights for w in row),
            *(w for row in state.output_weights for w in row),
        )

    def __repr__(self) -> str:
        if self.state is None:
            return "FeedForward(uninitialized)"
        s = self.state
        return (
            f"FeedForward(inputs={s.n_inputs - 1}, hiddens={s.n_hiddens - 1}, "
            f"outputs={s.n_outputs}, contexts={s.contexts.capacity}, "
            f"activation={self.activation!r})"
        )


def _weighted_sum(activations: EncryptedVector, weights: EncryptedMatrix, column: int) -> EncryptedScalar:
    return encrypted_sum(a * row[column] for a, row in zip(activations, weights))


def _apply_updates(
    activations: EncryptedVector,
    deltas: EncryptedVector,
    weights: EncryptedMatrix,
    changes: EncryptedMatrix,
    learning_rate: float,
    momentum: float,
):
    """New weight and change matrices for ``w += lr * change + momentum * previous``.

    ``change[i][j] = deltas[j] * activations[i]``. Terms whose cleartext
    coefficient is zero are skipped; multiplying a ciphertext by an encoded
    zero is rejected by SEAL.
    """
    new_weights: EncryptedMatrix = []
    new_changes: EncryptedMatrix = []
    for i, a in enumerate(activations):
        weight_row, change_row = [], []
        for j, d in enumerate(deltas):
            change = d * a
            w = weights[i][j]
            if learning_rate:
                w = w + change * learning_rate
            if momentum:
                w = w + changes[i][j] * momentum
            weight_row.append(w)
            change_row.append(change)
        new_weights.append(weight_row)
        new_changes.append(change_row)
    return new_weights, new_changes
