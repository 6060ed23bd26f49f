import json

import pytest

from texel_tuner.cli import main, parse_args, run
from texel_tuner.config import EPOCHS, THREADS, TuneConfig
from texel_tuner.data import NUM_PARAMS


RECORDS = [
    "4k3/8/8/8/8/8/8/1N2K3 w - - 0 1 ce 1.0",
    "4k3/8/8/8/8/8/8/1N2K3 w - - 0 1 ce 0.5",
    "4k3/8/8/8/8/8/8/1N2K3 b - - 0 1 ce 0.0",
    "1n2k3/8/8/8/8/8/8/4K3 w - - 0 1 ce 0.0",
    "1n2k3/8/8/8/8/8/8/4K3 b - - 0 1 ce 0.5",
    "1n2k3/8/8/8/8/8/8/4K3 b - - 0 1 ce 1.0",
    "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1 ce 1.0",
    "4k3/8/8/8/8/8/4P3/4K3 b - - 0 1 ce 0.0",
    "4k3/4p3/8/8/8/8/8/4K3 b - - 0 1 ce 1.0",
    "4k3/4p3/8/8/8/8/8/4K3 w - - 0 1 ce 0.0",
]


@pytest.fixture
def dataset(tmp_path):
    path = tmp_path / "data.epd"
    path.write_text("\n".join(RECORDS) + "\n", encoding="utf-8")
    return path


def test_defaults(dataset) -> None:
    config = parse_args(["--dataset", str(dataset)])
    assert config.threads == THREADS
    assert config.epochs == EPOCHS
    assert config.k_max_iterations is None
    assert config.out is None


def test_run_writes_outputs(dataset, tmp_path, capsys) -> None:
    out = tmp_path / "results" / "tune.json"
    weights_out = tmp_path / "results" / "weights.txt"
    main(
        [
            "--dataset",
            str(dataset),
            "--threads",
            "2",
            "--epochs",
            "20",
            "--log-every",
            "10",
            "--out",
            str(out),
            "--weights-out",
            str(weights_out),
        ]
    )

    result = json.loads(out.read_text(encoding="utf-8"))
    assert result["num_positions"] == len(RECORDS)
    assert result["num_params"] == NUM_PARAMS
    # Pawn-up positions always win, so k alone cannot fit both materials.
    assert result["final_error"] < result["initial_error"]
    assert result["config"]["threads"] == 2
    assert result["config"]["dataset"] == str(dataset)
    assert len(result["weights"]["pst"]) == 384

    assert weights_out.read_text(encoding="utf-8").count("S(") == NUM_PARAMS

    logs = capsys.readouterr().out
    assert f"params={NUM_PARAMS}" in logs
    assert f"positions={len(RECORDS)}" in logs
    assert "k_search done" in logs
    assert "epoch=20 " in logs


def test_weights_go_to_stdout_by_default(dataset, capsys) -> None:
    run(TuneConfig(dataset=dataset, threads=1, epochs=0))
    assert "// bishop_pair" in capsys.readouterr().out


def test_max_positions(dataset) -> None:
    result = run(TuneConfig(dataset=dataset, threads=1, epochs=0, max_positions=3))
    assert result["num_positions"] == 3


def test_bad_record_exits_with_error(tmp_path, capsys) -> None:
    path = tmp_path / "bad.epd"
    path.write_text(RECORDS[0] + "\n4k3/8/8/8/8/8/8/4K2X w - - 0 1 ce 0.5\n", encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        main(["--dataset", str(path), "--threads", "1", "--epochs", "0"])
    assert exc.value.code == 1
    assert ":2:" in capsys.readouterr().err


def test_missing_dataset_exits_with_error(tmp_path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--dataset", str(tmp_path / "missing.epd"), "--epochs", "0"])
    assert exc.value.code == 1
    assert capsys.readouterr().err.startswith("error:")


def test_k_search_limit_exits_with_error(dataset) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--dataset", str(dataset), "--epochs", "0", "--k-max-iters", "1"])
    assert exc.value.code == 1


@pytest.mark.parametrize(
    "flag, value",
    [("--threads", "0"), ("--epochs", "-1"), ("--log-every", "0"), ("--k-max-iters", "0")],
)
def test_invalid_settings_are_usage_errors(dataset, flag: str, value: str) -> None:
    with pytest.raises(SystemExit) as exc:
        parse_args(["--dataset", str(dataset), flag, value])
    assert exc.value.code == 2
