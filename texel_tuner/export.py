"""Render tuned weights for pasting into an engine's evaluation source."""

from __future__ import annotations

from typing import Any

from texel_tuner.data import FAMILIES, FeatureFamily
from texel_tuner.params import ParameterVector
from texel_tuner.score import TaperedScore


PIECE_LABELS = ["Pawn", "Knight", "Bishop", "Rook", "Queen", "King"]
ROW_LEN = 8


def format_score(score: TaperedScore) -> str:
    return f"S({int(round(score.mg)):4d}, {int(round(score.eg)):4d})"


def format_rows(scores: list[TaperedScore], indent: str) -> list[str]:
    lines = []
    for off in range(0, len(scores), ROW_LEN):
        seg = ", ".join(format_score(s) for s in scores[off : off + ROW_LEN])
        lines.append(f"{indent}{seg},")
    return lines


def format_family(family: FeatureFamily, weights: ParameterVector) -> str:
    scores = [weights[i] for i in family.ids]
    lines = [f"// {family.name}"]

    if len(family.shape) == 3:
        lines.append("[")
        for i, label in enumerate(PIECE_LABELS):
            lines.append(f"    /* {label} */")
            lines.append("    [")
            lines.extend(format_rows(scores[64 * i : 64 * (i + 1)], " " * 8))
            lines.append("    ],")
        lines.append("]")
    elif family.size == 1:
        lines.append(format_score(scores[0]))
    else:
        lines.append("[")
        lines.extend(format_rows(scores, " " * 4))
        lines.append("]")

    return "\n".join(lines)


def render_weights(weights: ParameterVector) -> str:
    return "\n\n".join(format_family(family, weights) for family in FAMILIES) + "\n"


def weights_to_dict(weights: ParameterVector) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for family in FAMILIES:
        block = weights.values[family.offset : family.offset + family.size]
        out[family.name] = [[float(mg), float(eg)] for mg, eg in block.tolist()]
    return out
