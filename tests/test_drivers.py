import matplotlib

matplotlib.use("Agg")

from core.persistence import load_state
from data.generate_sample_data import generate
from drivers import run_comparison, run_streaming
from evaluation.online_vs_sgd import compare


def test_run_stream_quiet(tmp_path):
    csv = tmp_path / "basic.csv"
    generate(csv, n_samples=150, n_features=3, seed=0)

    result = run_streaming.run_stream(csv, bits=12, quiet=True, window_size=50)

    assert result["total_rows"] == 150
    assert result["model"].n_updates == 150
    assert result["final_metrics"].window_size == 50
    assert result["final_metrics"].accuracy is not None


def test_streaming_cli_saves_and_resumes(tmp_path, capsys):
    csv = tmp_path / "reg.csv"
    generate(csv, n_samples=120, n_features=3, task="regression", seed=1)
    state = tmp_path / "state" / "scinol.json"

    code = run_streaming.main([
        "--csv", str(csv), "--loss", "squared", "--bits", "10",
        "--print-every", "1000", "--save-state", str(state),
    ])
    assert code == 0
    assert state.exists()
    assert load_state(state).n_updates == 120

    code = run_streaming.main(["--csv", str(csv), "--load-state", str(state), "--print-every", "1000"])
    assert code == 0
    assert "DONE" in capsys.readouterr().out


def test_streaming_cli_missing_inputs(tmp_path, capsys):
    assert run_streaming.main(["--csv", str(tmp_path / "nope.csv")]) == 1
    csv = tmp_path / "basic.csv"
    generate(csv, n_samples=20, n_features=2, seed=0)
    assert run_streaming.main(["--csv", str(csv), "--load-state", str(tmp_path / "none.json")]) == 1
    assert "ERROR" in capsys.readouterr().err


def test_comparison_plot_is_saved(tmp_path):
    csv = tmp_path / "rescaled.csv"
    generate(csv, n_samples=120, n_features=3, feature_scales=[1e-2, 1.0, 1e2], seed=2)
    results = compare(csv, loss="hinge", bits=10, record_every=20)

    rows = run_comparison.summary_rows(results)
    assert rows[0] == ["Metric", "ScInOL", "SGD", "Batch"]
    assert any(row[0] == "ROC-AUC" for row in rows)

    out = tmp_path / "plot.png"
    run_comparison.plot_comparison(results, save_path=out)
    assert out.exists()


def test_comparison_cli(tmp_path):
    csv = tmp_path / "reg.csv"
    generate(csv, n_samples=80, n_features=2, task="regression", seed=3)
    code = run_comparison.main([
        "--csv", str(csv), "--loss", "squared", "--bits", "8",
        "--record-every", "20", "--save-plots", "--output-dir", str(tmp_path / "plots"),
    ])
    assert code == 0
    assert list((tmp_path / "plots").glob("*.png"))


def test_streaming_cli_rejects_corrupt_state(tmp_path, capsys):
    csv = tmp_path / "basic.csv"
    generate(csv, n_samples=20, n_features=2, seed=0)

    garbled = tmp_path / "garbled.json"
    garbled.write_text("{not json", encoding="utf-8")
    assert run_streaming.main(["--csv", str(csv), "--load-state", str(garbled)]) == 1

    foreign = tmp_path / "foreign.json"
    foreign.write_text('{"format": "vw", "version": 1}', encoding="utf-8")
    assert run_streaming.main(["--csv", str(csv), "--load-state", str(foreign)]) == 1

    assert capsys.readouterr().err.count("ERROR") == 2


def test_dashboard_reports_progressive_rmse(tmp_path, capsys):
    csv = tmp_path / "reg.csv"
    generate(csv, n_samples=40, n_features=2, task="regression", seed=4)
    run_streaming.run_stream(csv, bits=8, loss="squared", print_every=20)
    out = capsys.readouterr().out
    assert "progressive rmse" in out
