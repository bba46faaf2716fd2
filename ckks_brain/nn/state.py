"""
Network state: encrypted vectors, matrices and the recurrent context history.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Deque, Iterator, List, Optional, Sequence, Tuple

import torch

from ..errors import ContextShapeError, ShapeError

if TYPE_CHECKING:
    from ..context import CKKSTrainingContext
    from ..scalar import EncryptedScalar

EncryptedVector = List["EncryptedScalar"]
EncryptedMatrix = List[List["EncryptedScalar"]]

# Value held by every context unit before the first forward pass.
INITIAL_CONTEXT_VALUE = 0.5


def vector(context: "CKKSTrainingContext", size: int, fill: float) -> EncryptedVector:
    """``size`` slots holding one encryption of ``fill``.

    Scalars are immutable, so the slots can share a ciphertext.
    """
    value = context.encrypt(fill)
    return [value] * size


def matrix(context: "CKKSTrainingContext", rows: int, cols: int, fill: float) -> EncryptedMatrix:
    value = context.encrypt(fill)
    return [[value] * cols for _ in range(rows)]


def random_matrix(
    context: "CKKSTrainingContext",
    rows: int,
    cols: int,
    generator: Optional[torch.Generator] = None,
    low: float = -1.0,
    high: float = 1.0,
) -> EncryptedMatrix:
    """Independently encrypted uniform samples from ``[low, high)``.

    Args:
        generator: Random source for the cleartext samples. Pass a seeded
            ``torch.Generator`` for reproducible initial weights.
    """
    samples = torch.rand(rows, cols, generator=generator, dtype=torch.float64)
    samples = samples * (high - low) + low
    return [context.encrypt_vector(row) for row in samples]


class ContextHistory:
    """Fixed-capacity history of hidden activations, most recent first.

    Entries are stored as tuples. Pushing a new hidden vector drops the
    oldest one; a history of capacity 0 stays empty.
    """

    def __init__(self, vectors: Sequence[Sequence["EncryptedScalar"]] = (), width: Optional[int] = None):
        entries = [tuple(v) for v in vectors]
        if width is not None:
            for index, entry in enumerate(entries):
                if len(entry) != width:
                    raise ContextShapeError(index, width, len(entry))
        self._width = width
        self._ring: Deque[Tuple["EncryptedScalar", ...]] = deque(entries, maxlen=len(entries))

    @property
    def capacity(self) -> int:
        return self._ring.maxlen or 0

    def push(self, hidden: Sequence["EncryptedScalar"]) -> None:
        """Store ``hidden`` as the most recent entry."""
        if self._width is not None and len(hidden) != self._width:
            raise ContextShapeError(0, self._width, len(hidden))
        self._ring.appendleft(tuple(hidden))

    def __len__(self) -> int:
        return len(self._ring)

    def __getitem__(self, index: int) -> Tuple["EncryptedScalar", ...]:
        return self._ring[index]

    def __iter__(self) -> Iterator[Tuple["EncryptedScalar", ...]]:
        return iter(self._ring)

    def __repr__(self) -> str:
        return f"ContextHistory(capacity={self.capacity}, width={self._width})"


@dataclass
class NetworkState:
    """All encrypted state of a single-hidden-layer network.

    Sizes are bias-adjusted: ``n_inputs`` and ``n_hiddens`` count the bias
    unit, which always sits in the last slot of its activation vector.
    """
    n_inputs: int
    n_hiddens: int
    n_outputs: int
    input_activations: EncryptedVector
    hidden_activations: EncryptedVector
    output_activations: EncryptedVector
    input_weights: EncryptedMatrix
    output_weights: EncryptedMatrix
    input_changes: EncryptedMatrix
    output_changes: EncryptedMatrix
    contexts: ContextHistory

    @classmethod
    def allocate(
        cls,
        context: "CKKSTrainingContext",
        inputs: int,
        hiddens: int,
        outputs: int,
        generator: Optional[torch.Generator] = None,
    ) -> "NetworkState":
        """Fresh state: unit activations, random weights, zero changes, no contexts.

        Raises:
            ShapeError: If any layer size is not positive.
        """
        for what, size in (("inputs", inputs), ("hidden units", hiddens), ("outputs", outputs)):
            if size < 1:
                raise ShapeError(what, 1, size)

        n_inputs, n_hiddens, n_outputs = inputs + 1, hiddens + 1, outputs
        state = cls(
            n_inputs=n_inputs,
            n_hiddens=n_hiddens,
            n_outputs=n_outputs,
            input_activations=vector(context, n_inputs, 1.0),
            hidden_activations=vector(context, n_hiddens, 1.0),
            output_activations=vector(context, n_outputs, 1.0),
            input_weights=random_matrix(context, n_inputs, n_hiddens, generator),
            output_weights=random_matrix(context, n_hiddens, n_outputs, generator),
            input_changes=matrix(context, n_inputs, n_hiddens, 0.0),
            output_changes=matrix(context, n_hiddens, n_outputs, 0.0),
            contexts=ContextHistory(width=n_hiddens),
        )
        state.check_invariants()
        return state

    def check_invariants(self) -> None:
        """Raise ``ShapeError`` if any vector or matrix has drifted from the layer sizes."""
        _check_vector("input activations", self.input_activations, self.n_inputs)
        _check_vector("hidden activations", self.hidden_activations, self.n_hiddens)
        _check_vector("output activations", self.output_activations, self.n_outputs)
        for name, m, rows, cols in (
            ("input weight rows", self.input_weights, self.n_inputs, self.n_hiddens),
            ("input change rows", self.input_changes, self.n_inputs, self.n_hiddens),
            ("output weight rows", self.output_weights, self.n_hiddens, self.n_outputs),
            ("output change rows", self.output_changes, self.n_hiddens, self.n_outputs),
        ):
            _check_vector(name, m, rows)
            for row in m:
                _check_vector(f"columns in {name}", row, cols)
        for index, entry in enumerate(self.contexts):
            if len(entry) != self.n_hiddens:
                raise ContextShapeError(index, self.n_hiddens, len(entry))


def _check_vector(what: str, values: Sequence[object], expected: int) -> None:
    if len(values) != expected:
        raise ShapeError(what, expected, len(values))
