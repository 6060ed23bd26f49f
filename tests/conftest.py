import numpy as np
import pytest

from texel_tuner.data import NUM_PARAMS
from texel_tuner.params import ParameterVector


def expand_rank(rank: str) -> str:
    return "".join("." * int(ch) if ch.isdigit() else ch for ch in rank)


def compress_rank(rank: str) -> str:
    out = []
    empty = 0
    for ch in rank:
        if ch == ".":
            empty += 1
            continue
        if empty:
            out.append(str(empty))
            empty = 0
        out.append(ch)
    if empty:
        out.append(str(empty))
    return "".join(out)


def mirror_horizontal(record: str) -> str:
    """Reflect the board left-right; everything else is kept."""
    placement, rest = record.split(" ", 1)
    ranks = [compress_rank(expand_rank(r)[::-1]) for r in placement.split("/")]
    return "/".join(ranks) + " " + rest


def swap_colors(record: str) -> str:
    """Reflect the board top-bottom, swap piece colors and the side to move.

    The side-relative score after ` ce ` is kept, so the White-relative target
    becomes `1 - result`.
    """
    position, score = record.split(" ce ")
    fields = position.split()
    placement = "/".join(reversed(fields[0].split("/"))).swapcase()
    stm = "b" if fields[1] == "w" else "w"
    return " ".join([placement, stm] + fields[2:]) + " ce " + score


@pytest.fixture
def random_weights():
    rng = np.random.default_rng(1234)
    return ParameterVector(rng.normal(0.0, 50.0, size=(NUM_PARAMS, 2)))


VARIED_RECORDS = [
    "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1 ce 0.48",
    "r1bq1rk1/pp2bppp/2n1pn2/3p4/2PP4/2N1PN2/PP2BPPP/R2QKB1R w KQ - 0 8 ce 0.55",
    "8/5pk1/6p1/8/3R4/6P1/5PKP/2r5 w - - 0 40 ce 0.5",
    "2kr3r/ppp2ppp/2n5/2b1p3/4P1b1/2NP1N2/PPP2PPP/R1B1K2R w KQ - 2 10 ce 0.4",
    "6k1/5ppp/8/8/8/8/1P3PPP/6K1 b - - 0 30 ce 0.1",
    "4k3/8/8/3Q4/8/8/8/4K3 w - - 0 1 ce 1.0",
    "3q2k1/6pp/8/8/8/8/6PP/3R2K1 b - - 0 1 ce 0.7",
    "r3k2r/pbppqpb1/1pn3p1/7p/1N2pPn1/1PP4N/PB1P2PP/2QRKR2 w kq - 0 1 ce 0.3",
    "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1 ce 0.5",
    "r4rk1/1pp1qppp/p1np1n2/2b1p1B1/2B1P1b1/P1NP1N2/1PP1QPPP/R4RK1 w - - 0 10 ce 0.6",
    "8/8/8/8/4k3/8/4K3/8 w - - 0 1 ce 0.5",
    "1n2k3/8/8/8/8/8/8/4K3 b - - 0 1 ce 0.75",
]
