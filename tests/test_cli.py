import json
import logging

import numpy as np
import pytest

from pto.cli import build_parser, main
from pto.core.loads import BoundaryConditionError


@pytest.fixture(autouse=True)
def _release_warnings():
    yield
    logging.captureWarnings(False)


def _run(tmp_path, *extra):
    argv = [
        "--problem", "cantilever",
        "--nelx", "8", "--nely", "4",
        "--max-iter", "2",
        "--output-dir", str(tmp_path),
        "--quiet",
        *extra,
    ]
    return main(argv)


def test_compliance_run_writes_results(tmp_path):
    metadata = _run(tmp_path)

    out = tmp_path / metadata["run_id"]
    density = np.load(out / "density_field.npy")
    assert density.shape == (8, 4)

    history = json.loads((out / "history.json").read_text())
    assert len(history) == metadata["iterations"]
    assert set(history[0]) == {"iteration", "compliance", "volume", "change", "sigma_max", "target_material"}

    saved = json.loads((out / "metadata.json").read_text())
    assert saved["problem"] == "cantilever"
    assert saved["variant"] == "C"
    assert saved["mesh_shape"] == [8, 4]
    assert saved["volume_fraction_target"] == 0.4
    assert saved["status"] in ("converged", "exhausted")


def test_stress_run_with_plots(tmp_path):
    metadata = _run(tmp_path, "--variant", "stress", "--allowable-stress", "0.5", "--plot")
    out = tmp_path / metadata["run_id"]
    assert (out / "density.png").exists()
    assert (out / "history.png").exists()
    assert metadata["variant"] == "S"
    assert metadata["sigma_max_final"] > 0


def test_stress_variant_requires_allowable_stress(tmp_path):
    with pytest.raises(SystemExit):
        _run(tmp_path, "--variant", "stress")


def test_nelz_rejected_for_2d_problem(tmp_path):
    with pytest.raises(SystemExit):
        _run(tmp_path, "--nelz", "3")


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.problem == "cantilever"
    assert args.variant == "compliance"
    assert args.solver == "direct"
    assert args.plot is False


def test_stl_export_for_3d_problem(tmp_path):
    metadata = _run(
        tmp_path,
        "--problem", "cantilever_3d",
        "--nelx", "4", "--nely", "2", "--nelz", "2",
        "--volume-fraction", "0.5",
        "--stl", "--isovalue", "0.3",
    )
    out = tmp_path / metadata["run_id"]
    assert metadata["mesh_shape"] == [4, 2, 2]
    assert (out / "density.stl").stat().st_size > 84


def test_stl_export_skipped_for_2d_problem(tmp_path):
    metadata = _run(tmp_path, "--stl")
    assert not (tmp_path / metadata["run_id"] / "density.stl").exists()


def test_isovalue_out_of_range_is_a_usage_error(tmp_path):
    with pytest.raises(SystemExit):
        _run(tmp_path, "--stl", "--isovalue", "1.5")


def test_numerical_errors_are_not_usage_errors(tmp_path, monkeypatch):
    def fail(*args, **kwargs):
        raise ValueError("non-finite compliance")

    monkeypatch.setattr("pto.cli.optimize", fail)
    with pytest.raises(ValueError, match="non-finite"):
        _run(tmp_path)


def test_boundary_condition_errors_are_usage_errors(tmp_path, monkeypatch):
    def fail(*args, **kwargs):
        raise BoundaryConditionError("rigid-body motion is unrestrained")

    monkeypatch.setattr("pto.cli.optimize", fail)
    with pytest.raises(SystemExit) as excinfo:
        _run(tmp_path)
    assert excinfo.value.code == 2
