"""Full-batch Adam tuner for the tapered linear evaluation.

Every dataset-wide pass (error probe or gradient) splits the data into one
contiguous chunk per worker, packed once into numpy arrays, runs the chunks
on a fresh thread pool and reduces the partial results in chunk order on the
calling thread. A worker exception is re-raised from `Future.result()`; there
is no zero fallback.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, TypeVar

import numpy as np

from texel_tuner.config import INITIAL_K, TuneConfig
from texel_tuner.data import Offset, DataPoint, load_records
from texel_tuner.evaluator import FeatureBatch
from texel_tuner.export import render_weights
from texel_tuner.params import ParameterVector
from texel_tuner.progress import log


T = TypeVar("T")

PIECE_VALUES = (100.0, 300.0, 300.0, 500.0, 900.0, 0.0)

B1 = 0.9
B2 = 0.999
EPS = 1e-8

K_DELTA = 1e-5
K_GOAL = 1e-6
# Fixed normalization of the finite-difference slope.
K_ERROR_SCALE = 5000.0


class CalibrationError(RuntimeError):
    """The bounded k search ran out of iterations."""


class Tuner:
    def __init__(self, threads: int, data: Iterable[DataPoint] | None = None):
        if threads < 1:
            raise ValueError("threads must be >= 1")
        self.threads = threads
        self.data: list[DataPoint] = list(data) if data is not None else []
        self.weights = ParameterVector()
        self.momentum = ParameterVector()
        self.velocity = ParameterVector()
        self._batches: list[FeatureBatch] = []
        self._packed_key: tuple[int, int] | None = None

    @classmethod
    def from_config(cls, config: TuneConfig) -> Tuner:
        config.validate()
        tuner = cls(config.threads)
        tuner.add_data(config.dataset, config.max_positions)
        return tuner

    def num_data_points(self) -> int:
        return len(self.data)

    def add_data(self, path: Path | str, max_positions: int | None = None) -> int:
        points = load_records(path, max_positions)
        self.data.extend(points)
        return len(points)

    def seed_weights(self) -> None:
        self.weights.values[:] = 0.0
        for kind, value in enumerate(PIECE_VALUES):
            start = Offset.PST + 64 * kind
            self.weights.values[start : start + 64] = value

    def export_weights(self) -> str:
        return render_weights(self.weights)

    def chunks(self) -> list[list[DataPoint]]:
        if not self.data:
            raise ValueError("no data points loaded")
        size = -(-len(self.data) // self.threads)
        return [self.data[i : i + size] for i in range(0, len(self.data), size)]

    def batches(self) -> list[FeatureBatch]:
        """One packed batch per chunk, rebuilt only when the data or thread count changes."""
        key = (len(self.data), self.threads)
        if self._packed_key != key:
            self._batches = [FeatureBatch(chunk) for chunk in self.chunks()]
            self._packed_key = key
        return self._batches

    def map_batches(self, fn: Callable[[FeatureBatch], T]) -> list[T]:
        batches = self.batches()
        with ThreadPoolExecutor(max_workers=self.threads) as pool:
            futures = [pool.submit(fn, batch) for batch in batches]
            return [future.result() for future in futures]

    def error(self, k: float) -> float:
        """Mean squared logistic error of the current weights."""
        weights = self.weights
        return sum(self.map_batches(lambda batch: batch.error_sum(weights, k))) / len(self.data)

    def gradients(self, k: float) -> ParameterVector:
        weights = self.weights
        partials = self.map_batches(lambda batch: batch.gradients(weights, k))
        total = ParameterVector()
        for partial in partials:
            total.values += partial
        return total

    def calibrate_k(self, initial_k: float = INITIAL_K, max_iterations: int | None = None) -> float:
        """Root-find the slope of error(k) by central differences.

        With `max_iterations=None` the search only stops on convergence.
        """
        k = initial_k
        slope = 1.0
        iterations = 0

        while abs(slope) > K_GOAL:
            if max_iterations is not None and iterations >= max_iterations:
                raise CalibrationError(
                    f"k search did not converge in {max_iterations} iterations (k={k:.6f} slope={slope:.3g})"
                )
            right = self.error(k + K_DELTA)
            left = self.error(k - K_DELTA)
            slope = (right - left) / (K_ERROR_SCALE * 2.0 * K_DELTA)
            log(f"k_probe k={k:.4f} decr={left:.5f} incr={right:.5f}")
            k -= slope
            iterations += 1

        log(f"k_search done: k={k:.6f} error={self.error(k):.5f} iters={iterations}")
        return k

    def run_epoch(self, k: float, rate: float) -> None:
        grad = self.gradients(k)
        adj = (-2.0 * k / len(self.data)) * grad.values

        m = self.momentum.values
        v = self.velocity.values
        m *= B1
        m += (1.0 - B1) * adj
        v *= B2
        v += (1.0 - B2) * adj * adj

        self.weights.add_scaled(m / (np.sqrt(v) + EPS), -rate)

    def train(self, k: float, epochs: int, rate: float, log_every: int = 100) -> float:
        """Run `epochs` Adam steps and return the final mean error."""
        if epochs < 0:
            raise ValueError("epochs must be >= 0")
        if log_every < 1:
            raise ValueError("log_every must be >= 1")

        error = None
        last_logged = 0
        timer = time.perf_counter()

        for epoch in range(1, epochs + 1):
            self.run_epoch(k, rate)

            if epoch % log_every == 0 or epoch == epochs:
                elapsed = time.perf_counter() - timer
                pps = len(self.data) * (epoch - last_logged) / max(elapsed, 1e-9)
                error = self.error(k)
                log(f"epoch={epoch} error={error:.5f} time={elapsed:.2f}s pos_per_sec={pps:.0f}")
                last_logged = epoch
                timer = time.perf_counter()

        return self.error(k) if error is None else error
