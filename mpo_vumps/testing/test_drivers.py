import os

import numpy as np
import pytest

import mpo_vumps.drivers as drivers
from mpo_vumps.models import quantum1d_ising, quantum1d_ising_energy
from mpo_vumps.params import Verbosity
from mpo_vumps.writer import Writer, unpickle


def quiet(**kwargs):
    return {"verbosity": Verbosity.SILENT, **kwargs}


def test_writer_without_directory(capsys):
    writer = Writer(headers=["a"])
    writer.write("hello")
    writer.write("hidden", verbose=False)
    writer.data_write(np.array([1., 2.]))
    assert writer.pickle({"x": 1}, 3) is None
    assert capsys.readouterr().out == "hello\n"


def test_writer_files(tmp_path):
    writer = Writer(str(tmp_path / "out"), headers=["A", "B"])
    writer.write("line", verbose=False)
    writer.data_write(np.array([1., 2.]))
    writer.data_write(np.array([3., 4.]))
    data = np.loadtxt(writer.data_file)
    assert data.shape == (2, 2)
    with open(writer.data_file) as f:
        assert f.readline() == "# [0] = A\n"
    with open(writer.console_file) as f:
        assert f.read() == "line\n"
    path = writer.pickle({"x": 1}, 3, name="thing")
    assert os.path.basename(path) == "thing_t3.pkl"
    assert unpickle(path) == {"x": 1}


def test_vumps_ising_output(tmp_path):
    outdir = str(tmp_path / "ising")
    result = drivers.vumps_ising(1., 2., 6, seed=60, out_directory=outdir,
                                 vumps_params=quiet(maxiter=4,
                                                    checkpoint_every=2))
    assert result.iteration == 4
    data = np.loadtxt(os.path.join(outdir, "data.txt"))
    assert data.shape == (4, 4)
    assert list(data[:, 0]) == [1, 2, 3, 4]
    assert data[-1, 1] == pytest.approx(result.lambda_.real)
    pickles = sorted(os.listdir(os.path.join(outdir, "pickles")))
    assert pickles == ["checkpoint_t2.pkl", "checkpoint_t4.pkl",
                       "result_t4.pkl"]
    saved = unpickle(os.path.join(outdir, "pickles", "result_t4.pkl"))
    assert saved.lambda_ == pytest.approx(result.lambda_)


def test_resume_from_checkpoint(tmp_path):
    outdir = str(tmp_path / "first")
    drivers.vumps_ising(1., 2., 6, seed=61, out_directory=outdir,
                        vumps_params=quiet(maxiter=4, checkpoint_every=2))
    checkpoint = os.path.join(outdir, "pickles", "checkpoint_t2.pkl")
    chk = unpickle(checkpoint)
    assert chk["state"].iteration == 2

    result = drivers.vumps_from_checkpoint(
        checkpoint, new_vumps_params={"maxiter": 60, "tol": 1E-8})
    assert result.converged
    assert result.iteration > 2
    exact = quantum1d_ising_energy(1., 2.)
    assert result.lambda_.real == pytest.approx(exact, abs=1E-8)


def test_heisenberg_driver():
    result = drivers.vumps_heisenberg(8, spin=1, period=2, seed=62,
                                      vumps_params=quiet(maxiter=15))
    assert result.mps.period() == 2
    assert result.lambda_.real/2 == pytest.approx(-1.401484, rel=2E-2)


def test_run_vumps_with_jax(jax_backend):
    result = drivers.run_vumps(quantum1d_ising(1., 2.), 4, jax_linalg=True,
                               seed=63,
                               vumps_params=quiet(which="smallestreal",
                                                  maxiter=3))
    assert result.iteration == 3
    assert result.lambda_.real < 0
