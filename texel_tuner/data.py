"""Decode ` ce ` dataset records into sparse training examples.

A record looks like::

    rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1 ce 0.47

Only the piece placement, the side to move and the score after ` ce ` are
read. The score is from the side to move's point of view and is turned into
White's point of view here.

Each side's pieces are converted into feature ids of one shared feature
space: White's ranks are mirrored vertically, and a side whose king stands on
files e-h has its files mirrored horizontally, so the same conceptual feature
gets the same id for either color.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path

import chess

from texel_tuner.attacks import Attacks


WHITE = 0
BLACK = 1

PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING = range(6)
PIECE_CHARS = "PNBRQKpnbrqk"

PHASE_WEIGHTS = (0, 1, 1, 2, 4, 0)
TPHASE = 24.0

SCORE_SEPARATOR = " ce "


class Offset:
    PST = 0
    SEMI_OPEN = PST + 384
    FULL_OPEN = SEMI_OPEN + 8
    ISOLATED = FULL_OPEN + 8
    PASSED = ISOLATED + 8
    KNIGHT_MOBILITY = PASSED + 64
    BISHOP_MOBILITY = KNIGHT_MOBILITY + 9
    ROOK_MOBILITY = BISHOP_MOBILITY + 14
    QUEEN_MOBILITY = ROOK_MOBILITY + 15
    BISHOP_PAIR = QUEEN_MOBILITY + 28


NUM_PARAMS = Offset.BISHOP_PAIR + 1


@dataclass(frozen=True)
class FeatureFamily:
    name: str
    offset: int
    shape: tuple[int, ...]

    @property
    def size(self) -> int:
        n = 1
        for dim in self.shape:
            n *= dim
        return n

    @property
    def ids(self) -> range:
        return range(self.offset, self.offset + self.size)


# Declared in offset order; exporters walk this list.
FAMILIES = [
    FeatureFamily("pst", Offset.PST, (6, 8, 8)),
    FeatureFamily("semi_open", Offset.SEMI_OPEN, (8,)),
    FeatureFamily("full_open", Offset.FULL_OPEN, (8,)),
    FeatureFamily("isolated", Offset.ISOLATED, (8,)),
    FeatureFamily("passed", Offset.PASSED, (8, 8)),
    FeatureFamily("knight_mobility", Offset.KNIGHT_MOBILITY, (9,)),
    FeatureFamily("bishop_mobility", Offset.BISHOP_MOBILITY, (14,)),
    FeatureFamily("rook_mobility", Offset.ROOK_MOBILITY, (15,)),
    FeatureFamily("queen_mobility", Offset.QUEEN_MOBILITY, (28,)),
    FeatureFamily("bishop_pair", Offset.BISHOP_PAIR, (1,)),
]


class FormatError(ValueError):
    """A dataset record could not be decoded."""


@dataclass(frozen=True)
class DataPoint:
    active: tuple[tuple[int, ...], tuple[int, ...]]
    phase: float
    result: float


def build_rails() -> list[int]:
    rails = []
    for file in range(8):
        bb = 0
        if file > 0:
            bb |= chess.BB_FILES[file - 1]
        if file < 7:
            bb |= chess.BB_FILES[file + 1]
        rails.append(bb)
    return rails


def front_span(sq: int, side: int) -> int:
    """Squares strictly ahead of `sq` on its own and the adjacent files."""
    file = chess.square_file(sq)
    rank = chess.square_rank(sq)
    ranks = range(rank + 1, 8) if side == WHITE else range(0, rank)

    span = 0
    for f in range(max(file - 1, 0), min(file + 1, 7) + 1):
        for r in ranks:
            span |= chess.BB_SQUARES[chess.square(f, r)]
    return span


RAILS = build_rails()
SPANS = [[front_span(sq, side) for sq in chess.SQUARES] for side in (WHITE, BLACK)]


def parse_record(record: str) -> DataPoint:
    position, sep, score_field = record.partition(SCORE_SEPARATOR)
    if not sep:
        raise FormatError(f"missing '{SCORE_SEPARATOR.strip()}' score field")
    try:
        score = float(score_field.strip())
    except ValueError:
        raise FormatError(f"unparsable score {score_field.strip()!r}") from None
    if not math.isfinite(score):
        raise FormatError(f"non-finite score {score_field.strip()!r}")

    fields = position.split()
    if len(fields) < 2:
        raise FormatError("missing side to move")
    placement, stm = fields[0], fields[1]

    bbs = [[0] * 6 for _ in range(2)]
    occ = [0, 0]
    phase = 0.0

    rank, file = 7, 0
    for ch in placement:
        if ch == "/":
            rank -= 1
            file = 0
        elif ch in "12345678":
            file += int(ch)
        else:
            idx = PIECE_CHARS.find(ch)
            if idx < 0:
                raise FormatError(f"unrecognized board character {ch!r}")
            if not (0 <= rank <= 7 and 0 <= file <= 7):
                raise FormatError(f"piece {ch!r} placed off the board")

            side, kind = divmod(idx, 6)
            bit = chess.BB_SQUARES[chess.square(file, rank)]
            bbs[side][kind] |= bit
            occ[side] |= bit
            phase += PHASE_WEIGHTS[kind]
            file += 1

    black_to_move = stm[0] == "b"
    occupancy = occ[WHITE] | occ[BLACK]
    pawns = bbs[WHITE][PAWN] | bbs[BLACK][PAWN]

    active: tuple[list[int], list[int]] = ([], [])
    for side in (WHITE, BLACK):
        ids = active[side]
        own = bbs[side]

        kings = own[KING]
        ksq = chess.lsb(kings) if kings else chess.A1
        color_flip = 56 if side == WHITE else 0
        king_flip = 7 if chess.square_file(ksq) > 3 else 0
        flip = color_flip ^ king_flip

        if side == WHITE:
            threats = Attacks.black_pawn_setwise(bbs[BLACK][PAWN])
        else:
            threats = Attacks.white_pawn_setwise(bbs[WHITE][PAWN])
        safe = ~threats & chess.BB_ALL

        if chess.popcount(own[BISHOP]) > 1:
            ids.append(Offset.BISHOP_PAIR)

        for kind in range(6):
            for sq in chess.scan_forward(own[kind]):
                fsq = sq ^ flip
                ids.append(Offset.PST + 64 * kind + fsq)

                if kind == PAWN:
                    if not RAILS[chess.square_file(sq)] & own[PAWN]:
                        ids.append(Offset.ISOLATED + fsq % 8)
                    if not SPANS[side][sq] & bbs[side ^ 1][PAWN]:
                        ids.append(Offset.PASSED + fsq)
                elif kind == KNIGHT:
                    mob = chess.popcount(Attacks.knight(sq) & safe)
                    ids.append(Offset.KNIGHT_MOBILITY + mob)
                elif kind == BISHOP:
                    mob = chess.popcount(Attacks.bishop(sq, occupancy) & safe)
                    ids.append(Offset.BISHOP_MOBILITY + mob)
                elif kind == ROOK:
                    file_bb = chess.BB_FILES[chess.square_file(sq)]
                    if not file_bb & own[PAWN]:
                        ids.append(Offset.SEMI_OPEN + fsq % 8)
                    if not file_bb & pawns:
                        ids.append(Offset.FULL_OPEN + fsq % 8)
                    mob = chess.popcount(Attacks.rook(sq, occupancy) & safe)
                    ids.append(Offset.ROOK_MOBILITY + mob)
                elif kind == QUEEN:
                    mob = chess.popcount(Attacks.queen(sq, occupancy) & safe)
                    ids.append(Offset.QUEEN_MOBILITY + mob)

    result = 1.0 - score if black_to_move else score

    return DataPoint(
        active=(tuple(active[WHITE]), tuple(active[BLACK])),
        phase=min(phase, TPHASE) / TPHASE,
        result=result,
    )


def load_records(path: Path | str, max_positions: int | None = None) -> list[DataPoint]:
    """Parse every record of a dataset file, aborting on the first bad line."""
    path = Path(path)
    points: list[DataPoint] = []

    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                points.append(parse_record(line))
            except FormatError as exc:
                raise FormatError(f"{path}:{line_no}: {exc}") from exc
            if max_positions is not None and len(points) >= max_positions:
                break

    return points
