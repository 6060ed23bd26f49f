"""Dense (mg, eg) weight storage indexed by feature id."""

from __future__ import annotations

from typing import Iterable

import numpy as np

from texel_tuner.data import NUM_PARAMS, DataPoint
from texel_tuner.evaluator import FeatureBatch
from texel_tuner.score import TaperedScore


def as_index(ids: Iterable[int]) -> np.ndarray:
    return np.fromiter(ids, dtype=np.intp)


class ParameterVector:
    """Dense weights, one (mg, eg) row per feature id."""

    def __init__(self, values: np.ndarray | None = None):
        if values is None:
            values = np.zeros((NUM_PARAMS, 2), dtype=np.float64)
        if values.shape != (NUM_PARAMS, 2):
            raise ValueError(f"expected shape {(NUM_PARAMS, 2)}, got {values.shape}")
        self.values = values

    def __getitem__(self, idx: int) -> TaperedScore:
        mg, eg = self.values[idx]
        return TaperedScore(float(mg), float(eg))

    def __setitem__(self, idx: int, score: TaperedScore) -> None:
        self.values[idx] = (score.mg, score.eg)

    def __add__(self, other: ParameterVector) -> ParameterVector:
        return ParameterVector(self.values + other.values)

    def __iadd__(self, other: ParameterVector) -> ParameterVector:
        self.values += other.values
        return self

    def add_scaled(self, other: ParameterVector | np.ndarray, scale: float) -> None:
        """In-place `self += scale * other`."""
        rhs = other.values if isinstance(other, ParameterVector) else other
        self.values += scale * rhs

    def copy(self) -> ParameterVector:
        return ParameterVector(self.values.copy())

    def sum_at(self, ids: Iterable[int]) -> TaperedScore:
        mg, eg = self.values[as_index(ids)].sum(axis=0)
        return TaperedScore(float(mg), float(eg))

    def gradients_batch(self, k: float, points: Iterable[DataPoint]) -> ParameterVector:
        """Summed error gradient over `points`; the -2k/N factor is left to the caller."""
        return ParameterVector(FeatureBatch(list(points)).gradients(self, k))
