import numpy as np
import pytest

import mpo_vumps.numpy_backend.contractions as ct
import mpo_vumps.numpy_backend.mps_linalg as np_linalg
import mpo_vumps.params as params
from mpo_vumps.canonical import (canonicalize, diagonalize_c, from_tensors,
                                 random_mps, uniform_leftorth,
                                 uniform_rightorth)
from mpo_vumps.observables import fidelity
from mpo_vumps.testing.checks import (check, is_left_isometric,
                                      is_mixed_canonical, is_right_isometric)
from mpo_vumps.uniform_mps import normalize, repeat


@pytest.mark.parametrize("method", ["polar", "qr", "qrpos"])
@pytest.mark.parametrize("dtype", [np.float64, np.complex128])
def test_leftorth(method, dtype):
    A, = np_linalg.random_tensors([(3, 5, 4)], dtype=dtype, seed=1)
    Q, R = np_linalg.leftorth(A, method)
    assert Q.shape == A.shape
    assert is_left_isometric(Q)[0]
    assert check(ct.rightmult(Q, R), A)[0]


@pytest.mark.parametrize("method", ["polar", "qr", "qrpos"])
@pytest.mark.parametrize("dtype", [np.float64, np.complex128])
def test_rightorth(method, dtype):
    A, = np_linalg.random_tensors([(3, 4, 5)], dtype=dtype, seed=2)
    L, Q = np_linalg.rightorth(A, method)
    assert Q.shape == A.shape
    assert is_right_isometric(Q)[0]
    assert check(ct.leftmult(L, Q), A)[0]


def test_polar_factor_is_positive():
    A, = np_linalg.random_tensors([(2, 4, 4)], seed=3)
    _, R = np_linalg.leftorth(A, "polar")
    assert check(R, R.T.conj())[0]
    assert np.all(np.linalg.eigvalsh(R) > -1E-12)


def test_invalid_method():
    A, = np_linalg.random_tensors([(2, 3, 3)], seed=4)
    with pytest.raises(ValueError):
        np_linalg.leftorth(A, "lq")
    with pytest.raises(ValueError):
        np_linalg.rightorth(A, "svd")


def test_uniform_leftorth_gauge_equation():
    A = np_linalg.random_tensors([(2, 6, 6)], seed=5)
    AL, C, lam, eta = uniform_leftorth(A, tol=1E-12)
    assert eta < 1E-12
    assert is_left_isometric(AL[0])[0]
    assert check(ct.leftmult(C[0], A[0]), lam*ct.rightmult(AL[0], C[0]),
                 thresh=1E-9)[0]


def test_uniform_rightorth_gauge_equation():
    A = np_linalg.random_tensors([(2, 6, 6)], dtype=np.complex128, seed=6)
    AR, C, lam, eta = uniform_rightorth(A, tol=1E-12)
    assert eta < 1E-12
    assert is_right_isometric(AR[0])[0]
    assert check(ct.rightmult(A[0], C[0]), lam*ct.leftmult(C[0], AR[0]),
                 thresh=1E-9)[0]


def test_uniform_leftorth_nonconvergence_warns():
    A = np_linalg.random_tensors([(2, 8, 8)], seed=7)
    with pytest.warns(UserWarning, match="did not converge"):
        _, _, _, eta = uniform_leftorth(A, tol=1E-15, maxiter=1)
    assert eta > 0


@pytest.mark.parametrize("period", [1, 3])
@pytest.mark.parametrize("dtype", [np.float64, np.complex128])
@pytest.mark.parametrize("order", ["lr", "rl"])
def test_random_mps_is_canonical(period, dtype, order):
    cparams = params.canonical_params(order=order)
    mps = random_mps(2, 5, period=period, dtype=dtype, seed=8,
                     canonical_params=cparams)
    assert mps.period() == period
    assert mps.bond_dims() == [5]*period
    assert mps.dtype == dtype
    assert is_mixed_canonical(mps)[0]
    for C in mps.C:
        assert np.linalg.norm(C) == pytest.approx(1.)


def test_inhomogeneous_dimensions():
    mps = random_mps([2, 3], [4, 6], seed=9)
    assert mps.physical_dims() == [2, 3]
    assert mps.bond_dims() == [4, 6]
    assert mps.AL[0].shape == (2, 6, 4)
    assert mps.AL[1].shape == (3, 4, 6)
    assert is_mixed_canonical(mps)[0]


def test_mismatched_dimensions():
    with pytest.raises(ValueError):
        random_mps([2, 2], [4, 4, 4])


def test_canonicalize_is_idempotent():
    mps = random_mps(3, 6, period=2, seed=10)
    again = canonicalize(mps)
    assert is_mixed_canonical(again)[0]
    for w in range(2):
        s1 = np.linalg.svd(mps.C[w], compute_uv=False)
        s2 = np.linalg.svd(again.C[w], compute_uv=False)
        np.testing.assert_allclose(s1, s2, atol=1E-10)
    assert fidelity(mps, again) == pytest.approx(1.)


def test_diagonalize_c():
    mps = random_mps(2, 6, period=2, dtype=np.complex128, seed=11)
    diag = diagonalize_c(mps)
    assert is_mixed_canonical(diag)[0]
    for C in diag.C:
        off = C - np.diag(np.diag(C))
        assert np.linalg.norm(off) < 1E-12
        s = np.diag(C).real
        assert np.all(s >= 0)
        assert np.all(np.diff(s) <= 1E-14)
    assert fidelity(mps, diag) == pytest.approx(1.)


def test_canonicalize_with_diag_c():
    cparams = params.canonical_params(diag_c=True)
    mps = random_mps(2, 4, seed=12, canonical_params=cparams)
    C = mps.C[0]
    assert np.linalg.norm(C - np.diag(np.diag(C))) < 1E-12


def test_from_tensors_preserves_state():
    """
    A product state stays the same product state.
    """
    A = np.zeros((2, 1, 1))
    A[1, 0, 0] = 3.
    mps = from_tensors([A])
    assert abs(mps.AC[0][1, 0, 0]) == pytest.approx(1.)
    assert abs(mps.AC[0][0, 0, 0]) == pytest.approx(0.)


def test_repeat_and_normalize():
    mps = random_mps(2, 4, seed=13)
    doubled = repeat(mps, 2)
    assert doubled.period() == 2
    assert is_mixed_canonical(doubled)[0]
    scaled = mps._replace(C=[2*C for C in mps.C], AC=[3*A for A in mps.AC])
    unit = normalize(scaled)
    assert np.linalg.norm(unit.C[0]) == pytest.approx(1.)
    assert np.linalg.norm(unit.AC[0]) == pytest.approx(1.)
