"""
Tests that the jax and numpy backends agree.
"""
import numpy as np
import pytest

import mpo_vumps.backend as backend
import mpo_vumps.jax_backend.contractions as jax_ct
import mpo_vumps.jax_backend.mps_linalg as jax_linalg
import mpo_vumps.models as models
import mpo_vumps.numpy_backend.contractions as np_ct
import mpo_vumps.numpy_backend.mps_linalg as np_linalg
from mpo_vumps.canonical import from_tensors, random_mps
from mpo_vumps.environment import (environments, leftenvironment,
                                   rightenvironment)
from mpo_vumps.testing.checks import check, random_complex


@pytest.fixture
def tensors(rng):
    d, chi, N = 2, 4, 3
    return {"A": random_complex((d, chi, chi), rng=rng),
            "B": random_complex((d, chi, chi), rng=rng),
            "C": random_complex((chi, chi), rng=rng),
            "W": random_complex((N, N, d, d), rng=rng),
            "GL": random_complex((chi, N, chi), rng=rng),
            "GR": random_complex((chi, N, chi), rng=rng)}


def test_mps_contractions(tensors):
    A, B, C = tensors["A"], tensors["B"], tensors["C"]
    assert check(jax_ct.leftmult(C, A), np_ct.leftmult(C, A))[0]
    assert check(jax_ct.rightmult(A, C), np_ct.rightmult(A, C))[0]
    assert check(jax_ct.XopL(A, B=B, X=C), np_ct.XopL(A, B=B, X=C))[0]
    assert check(jax_ct.XopR(A, B=B, X=C), np_ct.XopR(A, B=B, X=C))[0]
    assert check(jax_ct.proj(C, B[0]), np_ct.proj(C, B[0]))[0]


def test_mpo_contractions(tensors):
    A, B, C, W = tensors["A"], tensors["B"], tensors["C"], tensors["W"]
    GL, GR = tensors["GL"], tensors["GR"]
    assert check(jax_ct.mpo_XopL(GL, A, W, B), np_ct.mpo_XopL(GL, A, W, B))[0]
    assert check(jax_ct.mpo_XopR(GR, A, W, B), np_ct.mpo_XopR(GR, A, W, B))[0]
    assert check(jax_ct.apply_HAc(A, GL, W, GR),
                 np_ct.apply_HAc(A, GL, W, GR))[0]
    assert check(jax_ct.apply_Hc(C, GL, GR), np_ct.apply_Hc(C, GL, GR))[0]
    assert check(jax_ct.env_overlap(GL, C, GR),
                 np_ct.env_overlap(GL, C, GR))[0]


@pytest.mark.parametrize("method", ["polar", "qr", "qrpos"])
def test_orth(tensors, method):
    A = tensors["A"]
    Q, R = jax_linalg.leftorth(A, method)
    assert check(np_ct.rightmult(np.asarray(Q), np.asarray(R)), A)[0]
    L, Q = jax_linalg.rightorth(A, method)
    assert check(np_ct.leftmult(np.asarray(L), np.asarray(Q)), A)[0]
    if method != "qr":
        _, R_np = np_linalg.leftorth(A, method)
        assert check(R, R_np)[0]
        L_np, _ = np_linalg.rightorth(A, method)
        assert check(L, L_np)[0]


def test_svd(tensors):
    C = tensors["C"]
    _, S, _ = jax_linalg.svd(C)
    _, S_np, _ = np_linalg.svd(C)
    assert check(S, S_np)[0]


def test_set_backend(jax_backend):
    assert backend.ENVIRON_NAME == "jax"
    assert backend.ct.__name__ == "mpo_vumps.jax_backend.contractions"


def test_aklt_energy_with_jax(jax_backend):
    Sz, Sp, Sm = models.spin_matrices(0.5)
    A = np.array([np.sqrt(2/3)*Sp, -np.sqrt(1/3)*2*Sz, -np.sqrt(2/3)*Sm])
    mps = from_tensors([A])
    mpo = models.quantum1d_heisenberg(spin=1, L=1)
    _, _, lambda_ = environments(mpo, mps,
                                 env_params={"tol": 1E-12,
                                             "algorithm": "gmres"})
    assert complex(lambda_).real == pytest.approx(-4/3, abs=1E-9)


@pytest.mark.parametrize("algorithm", ["bicgstab", "gmres", "lgmres"])
def test_linear_solvers_with_jax(jax_backend, algorithm):
    mpo = models.quantum1d_ising(h=1.5)
    mps = random_mps(2, 6, seed=31)
    env_params = {"tol": 1E-12, "algorithm": algorithm}
    GL, lambda_L = leftenvironment(mpo, mps, env_params=env_params)
    GR, lambda_R = rightenvironment(mpo, mps, env_params=env_params)
    assert np.all(np.isfinite(np.asarray(GL[0])))
    assert np.all(np.isfinite(np.asarray(GR[0])))
    assert complex(lambda_L).real == pytest.approx(complex(lambda_R).real,
                                                   abs=1E-8)
