import numpy as np
import pytest

import mpo_vumps.models as models


def test_pauli_algebra():
    X, Y, Z = models.sigX(), models.sigY(), models.sigZ()
    for P in (X, Y, Z):
        assert np.allclose(P @ P, np.eye(2))
    assert np.allclose(X @ Y, 1.0j*Z)


@pytest.mark.parametrize("spin", [0.5, 1, 1.5, 2])
def test_spin_matrices(spin):
    Sz, Sp, Sm = models.spin_matrices(spin)
    d = int(2*spin + 1)
    assert np.allclose(Sz @ Sp - Sp @ Sz, Sp)
    assert np.allclose(Sp @ Sm - Sm @ Sp, 2*Sz)
    casimir = Sz @ Sz + 0.5*(Sp @ Sm + Sm @ Sp)
    assert np.allclose(casimir, spin*(spin+1)*np.eye(d))


def test_spin_half_is_pauli():
    Sz, Sp, Sm = models.spin_matrices(0.5)
    assert np.allclose(2*Sz, models.sigZ())
    assert np.allclose(Sp + Sm, models.sigX())


@pytest.mark.parametrize("spin", [0, 0.3, -1])
def test_bad_spin(spin):
    with pytest.raises(ValueError):
        models.spin_matrices(spin)


def test_heisenberg_two_site_spectrum():
    """
    S.S of two spin-1/2 has a singlet at -3/4 and a triplet at 1/4.
    """
    H = models.H_heisenberg(spin=0.5).reshape((4, 4))
    assert np.allclose(np.linalg.eigvalsh(H), [-0.75, 0.25, 0.25, 0.25])


def test_ising_mpo_shapes():
    mpo = models.quantum1d_ising(L=3)
    assert mpo.period() == 3
    assert mpo.physical_dims() == [2, 2, 2]
    assert mpo.triangular


def test_ising_energies():
    assert models.quantum1d_ising_energy(1., 1.) == pytest.approx(-4/np.pi)
    assert models.quantum1d_ising_energy(1., 0.) == pytest.approx(-1.)
    assert models.quantum1d_ising_energy(0., 1.) == pytest.approx(-1.)


def test_classical_ising_limits():
    """
    At infinite temperature Z per site is 2; at low temperature the
    free energy approaches 2 beta J.
    """
    assert models.classical2d_ising_logz(0.) == pytest.approx(np.log(2))
    beta = 3.
    assert models.classical2d_ising_logz(beta) == pytest.approx(2*beta,
                                                               abs=1E-4)
    W = models.classical2d_ising(0.5).tensor(0)
    assert W.shape == (2, 2, 2, 2)
    assert np.allclose(W, W.transpose((1, 0, 3, 2)))
