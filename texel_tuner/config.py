"""Run settings for a tuning session and their defaults."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any


THREADS = 6
EPOCHS = 5000
LRATE = 0.05
LOG_EVERY = 100
INITIAL_K = 0.009


@dataclass(frozen=True)
class TuneConfig:
    dataset: Path
    threads: int = THREADS
    epochs: int = EPOCHS
    learning_rate: float = LRATE
    log_every: int = LOG_EVERY
    initial_k: float = INITIAL_K
    k_max_iterations: int | None = None
    max_positions: int | None = None
    out: Path | None = None
    weights_out: Path | None = None

    def validate(self) -> None:
        if self.threads < 1:
            raise ValueError("threads must be >= 1")
        if self.epochs < 0:
            raise ValueError("epochs must be >= 0")
        if self.log_every < 1:
            raise ValueError("log_every must be >= 1")
        if self.k_max_iterations is not None and self.k_max_iterations < 1:
            raise ValueError("k_max_iterations must be >= 1")
        if self.max_positions is not None and self.max_positions < 1:
            raise ValueError("max_positions must be >= 1")

    def to_json(self) -> dict[str, Any]:
        return {k: str(v) if isinstance(v, Path) else v for k, v in asdict(self).items()}
