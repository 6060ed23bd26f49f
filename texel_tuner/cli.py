#!/usr/bin/env python3
"""Texel tune the tapered evaluation weights against a ` ce ` dataset."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from texel_tuner.config import EPOCHS, INITIAL_K, LOG_EVERY, LRATE, THREADS, TuneConfig
from texel_tuner.data import NUM_PARAMS
from texel_tuner.export import weights_to_dict
from texel_tuner.progress import log
from texel_tuner.tuner import CalibrationError, Tuner


def run(config: TuneConfig) -> dict[str, Any]:
    tuner = Tuner.from_config(config)
    tuner.seed_weights()

    log(f"params={NUM_PARAMS}")
    log(f"positions={tuner.num_data_points()}")
    log("Optimising k...")

    k = tuner.calibrate_k(config.initial_k, config.k_max_iterations)
    log(f"k={k:.7f}")

    initial_error = tuner.error(k)
    final_error = tuner.train(k, config.epochs, config.learning_rate, config.log_every)

    text = tuner.export_weights()
    if config.weights_out is not None:
        config.weights_out.parent.mkdir(parents=True, exist_ok=True)
        config.weights_out.write_text(text, encoding="utf-8")
        log(f"Wrote weights: {config.weights_out}")
    else:
        print(text, flush=True)

    result = {
        "num_positions": tuner.num_data_points(),
        "num_params": NUM_PARAMS,
        "k": k,
        "initial_error": initial_error,
        "final_error": final_error,
        "config": config.to_json(),
        "weights": weights_to_dict(tuner.weights),
    }

    if config.out is not None:
        config.out.parent.mkdir(parents=True, exist_ok=True)
        config.out.write_text(json.dumps(result, indent=2) + "\n", encoding="utf-8")
        log(f"Wrote tuning result: {config.out}")

    return result


def parse_args(argv: list[str] | None = None) -> TuneConfig:
    parser = argparse.ArgumentParser(description="Texel tune tapered eval weights")
    parser.add_argument("--dataset", required=True, help="Dataset with '<fen> ce <score>' lines")
    parser.add_argument("--threads", type=int, default=THREADS)
    parser.add_argument("--epochs", type=int, default=EPOCHS)
    parser.add_argument("--lr", type=float, default=LRATE)
    parser.add_argument("--log-every", type=int, default=LOG_EVERY)
    parser.add_argument("--initial-k", type=float, default=INITIAL_K)
    parser.add_argument(
        "--k-max-iters",
        type=int,
        default=None,
        help="Give up on the k search after this many probes (default: no limit)",
    )
    parser.add_argument("--max-positions", type=int, default=None)
    parser.add_argument("--out", default=None, help="Optional JSON result path")
    parser.add_argument("--weights-out", default=None, help="Write the weight tables here instead of stdout")
    args = parser.parse_args(argv)

    config = TuneConfig(
        dataset=Path(args.dataset),
        threads=args.threads,
        epochs=args.epochs,
        learning_rate=args.lr,
        log_every=args.log_every,
        initial_k=args.initial_k,
        k_max_iterations=args.k_max_iters,
        max_positions=args.max_positions,
        out=Path(args.out) if args.out else None,
        weights_out=Path(args.weights_out) if args.weights_out else None,
    )
    try:
        config.validate()
    except ValueError as exc:
        parser.error(str(exc))
    return config


def main(argv: list[str] | None = None) -> None:
    config = parse_args(argv)
    try:
        run(config)
    except (ValueError, OSError, CalibrationError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
