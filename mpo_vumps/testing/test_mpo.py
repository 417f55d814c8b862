import numpy as np
import pytest

import mpo_vumps.models as models
from mpo_vumps.mpo import InfJMpo, InfMpo


def two_site_matrix(mpo):
    """
    The operator of the open two-site chain cut from a Jordan MPO.
    """
    W = mpo.tensor(0)
    N = W.shape[0]
    d = W.shape[2]
    H = np.einsum("kab,kcd->acbd", W[0, :], W[:, N-1])
    return H.reshape((d*d, d*d))


def test_twosite_reproduces_hamiltonian(rng):
    d = 3
    h2 = rng.standard_normal((d*d, d*d))
    h2 = (h2 + h2.T).reshape((d, d, d, d))
    h1 = rng.standard_normal((d, d))
    mpo = InfJMpo.twosite(h2, h1)
    expected = (h2.reshape((d*d, d*d)) + np.kron(h1, np.eye(d))
                + np.kron(np.eye(d), h1))
    np.testing.assert_allclose(two_site_matrix(mpo), expected, atol=1E-12)


def test_ising_structure():
    mpo = models.quantum1d_ising(1., 0.5)
    assert mpo.triangular
    assert mpo.period() == 1
    assert mpo.bond_dims() == [3]
    assert mpo.physical_dims() == [2]
    assert mpo.is_identity_block(0)
    assert mpo.is_identity_block(2)
    assert mpo.is_zero_block(1)
    assert not mpo.is_identity_block(1)
    np.testing.assert_allclose(mpo.tensor(0)[0, 2], -0.5*models.sigZ())


def test_heisenberg_spectrum():
    """
    Two spin-1 sites coupled by S.S have total-spin energies -2, -1 and 1.
    """
    mpo = models.quantum1d_heisenberg(spin=1)
    vals = np.linalg.eigvalsh(two_site_matrix(mpo))
    expected = sorted([-2.]*1 + [-1.]*3 + [1.]*5)
    np.testing.assert_allclose(vals, expected, atol=1E-12)


def test_spin_matrices_commutator():
    Sz, Sp, Sm = models.spin_matrices(1.5)
    np.testing.assert_allclose(Sp @ Sm - Sm @ Sp, 2*Sz, atol=1E-12)
    with pytest.raises(ValueError):
        models.spin_matrices(0.3)


def test_unit_cell_and_repeat():
    mpo = models.quantum1d_ising(L=2)
    assert mpo.period() == 2
    assert mpo.tensor(3) is mpo.tensor(1)
    tripled = mpo.repeat(3)
    assert isinstance(tripled, InfJMpo)
    assert tripled.period() == 6


def test_slice_tensor():
    mpo = models.quantum1d_heisenberg(spin=1)
    N = mpo.bond_dims()[0]
    assert mpo.slice_tensor(0, rows=slice(0, 2), cols=[3]).shape == (2, 1,
                                                                     3, 3)
    assert mpo.slice_tensor(0, rows=[1]).shape == (1, N, 3, 3)
    assert mpo.slice_tensor(0).shape == (N, N, 3, 3)


def test_scalar_shift():
    mpo = models.quantum1d_ising(1., 0.5, L=2)
    shifted = mpo + 2.
    eye = np.eye(2)
    for w in range(2):
        np.testing.assert_allclose(shifted.tensor(w)[0, -1],
                                   mpo.tensor(w)[0, -1] + 2*eye)
    back = shifted - 2.
    np.testing.assert_allclose(back.tensor(0), mpo.tensor(0))
    renorm = mpo.renormalize(3.)
    np.testing.assert_allclose(renorm.tensor(1)[0, -1],
                               mpo.tensor(1)[0, -1] - 1.5*eye)
    per_site = mpo + [1., 2.]
    np.testing.assert_allclose(per_site.tensor(1)[0, -1],
                               mpo.tensor(1)[0, -1] + 2*eye)
    with pytest.raises(ValueError):
        mpo + [1., 2., 3.]


def test_jordan_validation():
    W = models.quantum1d_ising().tensor(0).copy()
    bad = W.copy()
    bad[2, 0] = np.eye(2)
    with pytest.raises(ValueError, match="upper triangular"):
        InfJMpo([bad])
    bad = W.copy()
    bad[0, 0] = 2*np.eye(2)
    with pytest.raises(ValueError, match="identity"):
        InfJMpo([bad])
    with pytest.raises(ValueError):
        InfJMpo([W[:, :2]])


def test_mpo_validation():
    with pytest.raises(ValueError):
        InfMpo([])
    with pytest.raises(ValueError):
        InfMpo([np.ones((2, 2, 2))])
    with pytest.raises(ValueError):
        InfMpo([np.ones((2, 2, 2, 3))])
    with pytest.raises(ValueError):
        InfMpo([np.ones((2, 3, 2, 2)), np.ones((2, 2, 2, 2))])
    mpo = InfMpo(np.ones((2, 2, 2, 2)))
    assert not mpo.triangular
    assert mpo.period() == 1


def test_classical_ising_is_symmetric():
    W = models.classical2d_ising(0.3).tensor(0)
    assert W.shape == (2, 2, 2, 2)
    np.testing.assert_allclose(W, W.transpose((2, 3, 0, 1)))
    np.testing.assert_allclose(W, W.transpose((1, 0, 3, 2)))
