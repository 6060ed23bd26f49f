"""Attack lookups backed by python-chess' precomputed tables.

Squares are python-chess squares (a1 = 0, h8 = 63) and bitboards are plain
ints restricted to 64 bits.
"""

from __future__ import annotations

import chess


class Attacks:
    @staticmethod
    def knight(sq: int) -> int:
        return chess.BB_KNIGHT_ATTACKS[sq]

    @staticmethod
    def bishop(sq: int, occ: int) -> int:
        return chess.BB_DIAG_ATTACKS[sq][chess.BB_DIAG_MASKS[sq] & occ]

    @staticmethod
    def rook(sq: int, occ: int) -> int:
        return (
            chess.BB_RANK_ATTACKS[sq][chess.BB_RANK_MASKS[sq] & occ]
            | chess.BB_FILE_ATTACKS[sq][chess.BB_FILE_MASKS[sq] & occ]
        )

    @staticmethod
    def queen(sq: int, occ: int) -> int:
        return Attacks.bishop(sq, occ) | Attacks.rook(sq, occ)

    @staticmethod
    def white_pawn_setwise(pawns: int) -> int:
        return chess.shift_up_left(pawns) | chess.shift_up_right(pawns)

    @staticmethod
    def black_pawn_setwise(pawns: int) -> int:
        return chess.shift_down_left(pawns) | chess.shift_down_right(pawns)
