import numpy as np
import pytest

import mpo_vumps.models as models
import mpo_vumps.numpy_backend.contractions as ct
from mpo_vumps.canonical import from_tensors, random_mps
from mpo_vumps.observables import (FIXEDPOINT_KINDS, correlation_length,
                                   entanglement_entropy, fidelity, fixedpoint,
                                   schmidt_values, transfer_eigs)
from mpo_vumps.testing.checks import check


def aklt_state():
    Sz, Sp, Sm = models.spin_matrices(0.5)
    A = np.array([np.sqrt(2/3)*Sp, -np.sqrt(1/3)*2*Sz, -np.sqrt(2/3)*Sm])
    return from_tensors([A])


def cell_transfer(mps, kind, X):
    top = mps.AL if kind[2] == "L" else mps.AR
    bottom = mps.AL if kind[3] == "L" else mps.AR
    if kind[0] == "l":
        for A, B in zip(top, bottom):
            X = ct.XopL(A, B=B.conj(), X=X)
    else:
        for A, B in zip(reversed(top), reversed(bottom)):
            X = ct.XopR(A, B=B.conj(), X=X)
    return X


@pytest.mark.parametrize("kind", FIXEDPOINT_KINDS)
@pytest.mark.parametrize("period", [1, 3])
def test_fixedpoints(kind, period):
    mps = random_mps(2, 4, period=period, dtype=np.complex128, seed=30)
    rho = fixedpoint(mps, kind)
    assert check(cell_transfer(mps, kind, rho), rho, thresh=1E-10)[0]


@pytest.mark.parametrize("gauges", ["LL", "LR", "RL", "RR"])
def test_fixedpoint_pairing(gauges):
    mps = random_mps(3, 5, period=2, seed=31)
    for w in range(2):
        l = fixedpoint(mps, "l_" + gauges, w)
        r = fixedpoint(mps, "r_" + gauges, w-1)
        assert ct.proj(l, r) == pytest.approx(1.)


def test_bad_fixedpoint_kind():
    mps = random_mps(2, 2, seed=32)
    with pytest.raises(ValueError):
        fixedpoint(mps, "l_XX")
    with pytest.raises(ValueError):
        transfer_eigs(mps, kind="left")


def test_transfer_eigs_dominant():
    mps = random_mps(2, 6, period=2, seed=33)
    vals, vecs = transfer_eigs(mps, howmany=3, kind="r_RR", tol=1E-12)
    assert vals[0] == pytest.approx(1.)
    assert np.all(np.abs(vals[1:]) <= 1. + 1E-10)
    rho = vecs[0] / np.trace(vecs[0]) * 6
    assert check(rho, np.eye(6), thresh=1E-8)[0]


def test_aklt():
    mps = aklt_state()
    assert schmidt_values(mps) == pytest.approx(np.full(2, 1/np.sqrt(2)))
    assert entanglement_entropy(mps) == pytest.approx(np.log(2))
    assert correlation_length(mps) == pytest.approx(1/np.log(3))


def test_product_state_has_no_correlations():
    A = np.array([1., 0.]).reshape((2, 1, 1))
    mps = from_tensors([A])
    assert entanglement_entropy(mps) == pytest.approx(0.)
    assert correlation_length(mps) == 0.


def test_fidelity():
    mps = random_mps(2, 4, seed=34)
    assert fidelity(mps, mps) == pytest.approx(1.)
    other = random_mps(2, 4, seed=35)
    assert fidelity(mps, other) < 1.


def test_product_state_fidelity():
    up = from_tensors([np.array([1., 0.]).reshape((2, 1, 1))])
    plus = from_tensors([np.array([1., 1.]).reshape((2, 1, 1))/np.sqrt(2)])
    assert fidelity(up, plus) == pytest.approx(1/np.sqrt(2))
