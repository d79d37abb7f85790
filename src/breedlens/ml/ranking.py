"""Result ranking: pair raw scores with labels and pick the best entries."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike

from breedlens.errors import ShapeMismatchError


@dataclass(frozen=True)
class Classification:
    """A single classification prediction.

    ``confidence`` is the raw model output at the winning index; no softmax
    is applied.
    """

    label: str
    confidence: float


class ResultRanker:
    """Selects the highest-scoring labels from a score vector."""

    def top_results(self, scores: ArrayLike, labels: Sequence[str], k: int = 1) -> list[Classification]:
        """Return up to ``k`` classifications sorted by descending score.

        Exact ties keep label-index order, so the first index wins.

        Raises:
            ShapeMismatchError: If the score and label counts differ or are zero.
            ValueError: If ``k`` is not positive.
        """
        if k < 1:
            raise ValueError(f"k must be positive, got {k}")

        values = np.asarray(scores, dtype=np.float32).reshape(-1)
        if values.size != len(labels):
            raise ShapeMismatchError(f"Got {values.size} scores for {len(labels)} labels")
        if values.size == 0:
            raise ShapeMismatchError("Cannot rank an empty score vector")

        order = np.argsort(-values, kind="stable")[:k]
        return [Classification(label=labels[int(i)], confidence=float(values[i])) for i in order]

    def top_result(self, scores: ArrayLike, labels: Sequence[str]) -> Classification:
        """Return the single best classification."""
        return self.top_results(scores, labels, k=1)[0]
