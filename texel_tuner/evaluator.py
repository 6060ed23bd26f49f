"""Linear tapered evaluation of decoded positions and its logistic error."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

from texel_tuner.data import NUM_PARAMS, WHITE, BLACK, DataPoint

if TYPE_CHECKING:
    from texel_tuner.params import ParameterVector


def sigmoid(x):
    x = np.clip(x, -60.0, 60.0)
    return 1.0 / (1.0 + np.exp(-x))


def evaluate(point: DataPoint, weights: ParameterVector) -> float:
    score = weights.sum_at(point.active[WHITE]) - weights.sum_at(point.active[BLACK])
    return score.interpolate(point.phase)


def squared_error(point: DataPoint, weights: ParameterVector, k: float) -> float:
    return float((point.result - sigmoid(k * evaluate(point, weights))) ** 2)


class FeatureBatch:
    """A run of data points flattened into parallel numpy arrays.

    Entry j of `ids`/`owners`/`signs` says that feature `ids[j]` counts
    `signs[j]` (+1 for White, -1 for Black) towards point `owners[j]`.
    Every pass over the batch is a handful of whole-array numpy calls.
    """

    def __init__(self, points: Sequence[DataPoint]):
        ids: list[int] = []
        owners: list[int] = []
        signs: list[float] = []

        for n, point in enumerate(points):
            for side, sign in ((WHITE, 1.0), (BLACK, -1.0)):
                active = point.active[side]
                ids.extend(active)
                owners.extend([n] * len(active))
                signs.extend([sign] * len(active))

        self.size = len(points)
        self.ids = np.array(ids, dtype=np.intp)
        self.owners = np.array(owners, dtype=np.intp)
        self.signs = np.array(signs, dtype=np.float64)
        self.phase = np.array([p.phase for p in points], dtype=np.float64)
        self.result = np.array([p.result for p in points], dtype=np.float64)

    def evaluate(self, weights: ParameterVector) -> np.ndarray:
        rows = weights.values[self.ids] * self.signs[:, None]
        mg = np.bincount(self.owners, weights=rows[:, 0], minlength=self.size)
        eg = np.bincount(self.owners, weights=rows[:, 1], minlength=self.size)
        return self.phase * mg + (1.0 - self.phase) * eg

    def error_sum(self, weights: ParameterVector, k: float) -> float:
        diff = self.result - sigmoid(k * self.evaluate(weights))
        return float(np.dot(diff, diff))

    def gradients(self, weights: ParameterVector, k: float) -> np.ndarray:
        """Summed error gradient as a (NUM_PARAMS, 2) array, before the -2k/N factor."""
        sigm = sigmoid(k * self.evaluate(weights))
        term = (self.result - sigm) * (1.0 - sigm) * sigm

        scale = term[self.owners] * self.signs
        phase = self.phase[self.owners]

        grad = np.empty((NUM_PARAMS, 2), dtype=np.float64)
        grad[:, 0] = np.bincount(self.ids, weights=scale * phase, minlength=NUM_PARAMS)
        grad[:, 1] = np.bincount(self.ids, weights=scale * (1.0 - phase), minlength=NUM_PARAMS)
        return grad
