"""Midgame/endgame score pairs."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TaperedScore:
    """Midgame/endgame pair; every weight and gradient entry is one of these."""

    mg: float
    eg: float

    @classmethod
    def splat(cls, value: float) -> TaperedScore:
        return cls(value, value)

    def __add__(self, other: TaperedScore) -> TaperedScore:
        return TaperedScore(self.mg + other.mg, self.eg + other.eg)

    def __sub__(self, other: TaperedScore) -> TaperedScore:
        return TaperedScore(self.mg - other.mg, self.eg - other.eg)

    def __mul__(self, scale: float) -> TaperedScore:
        return TaperedScore(self.mg * scale, self.eg * scale)

    __rmul__ = __mul__

    def interpolate(self, phase: float) -> float:
        return phase * self.mg + (1.0 - phase) * self.eg
