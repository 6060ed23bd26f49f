#!/usr/bin/env python3
"""Build a texel tuning dataset from one or more PGN sources.

Output is one record per line:
  <fen> ce <score>

score is the final game result from the side to move's perspective:
  win=1.0, draw=0.5, loss=0.0
"""

from __future__ import annotations

import argparse
import hashlib
import io
import random
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TextIO

import chess
import chess.pgn

from texel_tuner.data import SCORE_SEPARATOR
from texel_tuner.progress import log

RESULT_TO_WHITE_SCORE = {
    "1-0": 1.0,
    "0-1": 0.0,
    "1/2-1/2": 0.5,
}


@dataclass(frozen=True)
class BuildOptions:
    max_games: int = 0
    positions_per_game: int = 2
    min_ply: int = 12
    max_ply: int = 100
    seed: int = 42
    dedupe: bool = True


@dataclass
class BuildStats:
    parsed_games: int = 0
    kept_games: int = 0
    kept_positions: int = 0


def open_pgn_stream(path: Path) -> tuple[TextIO, subprocess.Popen | None]:
    if path.suffix == ".zst":
        proc = subprocess.Popen(
            ["zstd", "-dc", str(path)],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )
        if proc.stdout is None:
            raise RuntimeError("failed to open zstd stream")
        return io.TextIOWrapper(proc.stdout, encoding="utf-8", errors="replace"), proc

    return path.open("r", encoding="utf-8", errors="replace"), None


def should_keep_position(board: chess.Board, ply: int, min_ply: int, max_ply: int, was_capture: bool) -> bool:
    if ply < min_ply or ply > max_ply:
        return False
    if was_capture:
        return False
    if board.is_check():
        return False
    if board.is_game_over(claim_draw=True):
        return False
    return True


def fen_hash64(fen: str) -> int:
    return int.from_bytes(hashlib.blake2b(fen.encode("utf-8"), digest_size=8).digest(), "little")


def format_record(fen: str, score: float) -> str:
    return f"{fen}{SCORE_SEPARATOR}{score:.1f}"


def resolve_input_files(inputs: list[str]) -> list[Path]:
    files: list[Path] = []
    for item in inputs:
        p = Path(item)
        if p.is_dir():
            files.extend(sorted(p.glob("*.pgn")))
            files.extend(sorted(p.glob("*.pgn.zst")))
        elif p.is_file():
            files.append(p)
        else:
            raise FileNotFoundError(f"input path not found: {item}")

    if not files:
        raise FileNotFoundError("no PGN files resolved from --input")

    return sorted(set(files), key=lambda x: str(x))


def game_candidates(game: chess.pgn.Game, options: BuildOptions) -> list[tuple[str, float]]:
    white_score = RESULT_TO_WHITE_SCORE.get(game.headers.get("Result", "*"))
    if white_score is None:
        return []

    board = game.board()
    candidates: list[tuple[str, float]] = []

    for ply, move in enumerate(game.mainline_moves(), start=1):
        was_capture = board.is_capture(move)
        board.push(move)

        if not should_keep_position(board, ply, options.min_ply, options.max_ply, was_capture):
            continue

        side_score = white_score if board.turn == chess.WHITE else 1.0 - white_score
        candidates.append((board.fen(), side_score))

    return candidates


class RecordWriter:
    """Samples positions from PGN streams and writes them as dataset records.

    Sampling state (rng, dedupe set, counters) spans every stream added.
    """

    def __init__(self, out: IO[str], options: BuildOptions):
        self.out = out
        self.options = options
        self.rng = random.Random(options.seed)
        self.seen: set[int] | None = set() if options.dedupe else None
        self.stats = BuildStats()

    def limit_reached(self) -> bool:
        return self.options.max_games > 0 and self.stats.parsed_games >= self.options.max_games

    def add_game(self, game: chess.pgn.Game) -> int:
        self.stats.parsed_games += 1

        candidates = game_candidates(game, self.options)
        if not candidates:
            return 0

        wrote = 0
        sample_n = min(self.options.positions_per_game, len(candidates))
        for fen, score in self.rng.sample(candidates, sample_n):
            if self.seen is not None:
                h = fen_hash64(fen)
                if h in self.seen:
                    continue
                self.seen.add(h)

            self.out.write(format_record(fen, score) + "\n")
            wrote += 1

        if wrote:
            self.stats.kept_games += 1
            self.stats.kept_positions += wrote
        return wrote

    def add_stream(self, stream: TextIO) -> BuildStats:
        """Consume games until the stream ends or the game limit is hit."""
        src = BuildStats()

        while not self.limit_reached():
            game = chess.pgn.read_game(stream)
            if game is None:
                break

            wrote = self.add_game(game)
            src.parsed_games += 1
            if wrote:
                src.kept_games += 1
                src.kept_positions += wrote

            if self.stats.parsed_games % 2000 == 0:
                log(
                    "progress "
                    f"parsed_games={self.stats.parsed_games} kept_games={self.stats.kept_games} "
                    f"kept_positions={self.stats.kept_positions}"
                )

        return src


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Build texel tuning dataset from PGN")
    parser.add_argument(
        "--input",
        action="append",
        required=True,
        help="Input .pgn/.pgn.zst file or directory. Repeat for multiple sources.",
    )
    parser.add_argument("--output", required=True, help="Output dataset path")
    parser.add_argument(
        "--max-games",
        type=int,
        default=0,
        help="Global parsed game limit across all inputs (0 = no limit)",
    )
    parser.add_argument("--positions-per-game", type=int, default=2)
    parser.add_argument("--min-ply", type=int, default=12)
    parser.add_argument("--max-ply", type=int, default=100)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument(
        "--dedupe",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Deduplicate FENs globally (default: enabled)",
    )
    args = parser.parse_args(argv)

    options = BuildOptions(
        max_games=args.max_games,
        positions_per_game=args.positions_per_game,
        min_ply=args.min_ply,
        max_ply=args.max_ply,
        seed=args.seed,
        dedupe=args.dedupe,
    )

    out = Path(args.output)
    out.parent.mkdir(parents=True, exist_ok=True)
    src_files = resolve_input_files(args.input)

    with out.open("w", encoding="utf-8") as f_out:
        writer = RecordWriter(f_out, options)

        for src in src_files:
            log(f"source_start file={src}")

            text_stream, proc = open_pgn_stream(src)
            try:
                src_stats = writer.add_stream(text_stream)
            finally:
                if proc is not None:
                    proc.stdout.close()  # type: ignore[union-attr]
                    proc.wait(timeout=30)
                else:
                    text_stream.close()

            log(
                "source_done "
                f"file={src} parsed={src_stats.parsed_games} kept_games={src_stats.kept_games} "
                f"kept_positions={src_stats.kept_positions}"
            )

            if writer.limit_reached():
                break

    stats = writer.stats

    log(
        "Done. "
        f"sources={len(src_files)} parsed_games={stats.parsed_games} kept_games={stats.kept_games} "
        f"kept_positions={stats.kept_positions} output={out}"
    )


if __name__ == "__main__":
    main()
