"""
This module contains functions that return some particular matrix or operator,
notably including Pauli and spin matrices, and the MPOs of a few standard
models.
"""

import numpy as np
from scipy.integrate import quad

from mpo_vumps.mpo import InfJMpo, InfMpo

###############################################################################
# PAULI AND SPIN MATRICES
###############################################################################


def sigX(dtype=np.float64):
    """
    Pauli X matrix.
    """
    vals = [[0, 1],
            [1, 0]]
    return np.array(vals, dtype=dtype)


def sigY(dtype=np.complex128):
    """
    Pauli Y matrix.
    """
    vals = [[0, -1],
            [1, 0]]
    return 1.0j*np.array(vals, dtype=dtype)


def sigZ(dtype=np.float64):
    """
    Pauli Z matrix.
    """
    vals = [[1, 0],
            [0, -1]]
    return np.array(vals, dtype=dtype)


def spin_matrices(spin, dtype=np.float64):
    """
    The spin operators of a single spin, in the Sz eigenbasis ordered from
    m = spin down to m = -spin.

    PARAMETERS
    ----------
    spin (int or half-int): The spin quantum number.

    RETURNS
    -------
    Sz, Splus, Sminus (arrays, (2*spin+1, 2*spin+1))
    """
    d = int(round(2*spin)) + 1
    if d < 2 or not np.isclose(2*spin + 1, d):
        raise ValueError("spin must be a positive integer or half-integer; "
                         "got " + str(spin))
    m = spin - np.arange(d)
    Sz = np.diag(m).astype(dtype)
    Splus = np.zeros((d, d), dtype=dtype)
    for i in range(1, d):
        Splus[i-1, i] = np.sqrt(spin*(spin+1) - m[i]*(m[i]+1))
    Sminus = Splus.T.copy()
    return (Sz, Splus, Sminus)


###############################################################################
# HAMILTONIANS
###############################################################################
def _twosite(A, B):
    """
    A (x) B as a (d, d, d, d) two-site operator indexed
    (out_1, out_2, in_1, in_2).
    """
    d = A.shape[0]
    return np.kron(A, B).reshape((d, d, d, d))


def H_heisenberg(spin=1, J=1, dtype=np.float64):
    """
    The two-site term J * S.S of the spin-'spin' Heisenberg model, written
    with ladder operators so that it is real.
    """
    Sz, Sp, Sm = spin_matrices(spin, dtype=dtype)
    return J*(_twosite(Sz, Sz) + 0.5*(_twosite(Sp, Sm) + _twosite(Sm, Sp)))


def quantum1d_ising(J=1, h=1, L=1, dtype=np.float64):
    """
    The Jordan MPO of the transverse-field Ising chain
    H = -J sum_i X_i X_{i+1} - h sum_i Z_i, with unit cell L. At J = h the
    chain is critical with ground state energy density -4/pi.
    """
    X = sigX(dtype=dtype)
    Z = sigZ(dtype=dtype)
    return InfJMpo.twosite(-J*_twosite(X, X), -h*Z, period=L)


def quantum1d_heisenberg(spin=1, J=1, L=1, dtype=np.float64):
    """
    The Jordan MPO of the Heisenberg chain H = J sum_i S_i.S_{i+1}. For
    spin 1 the antiferromagnet (J > 0) has a gapped ground state with
    energy density -1.401484 J.
    """
    return InfJMpo.twosite(H_heisenberg(spin, J, dtype=dtype), period=L)


###############################################################################
# CLASSICAL PARTITION FUNCTIONS
###############################################################################
def classical2d_ising(beta, J=1, L=1):
    """
    The row-to-row transfer matrix of the 2D classical Ising model on the
    square lattice, Z = sum exp(beta J sum_<ij> s_i s_j), as a periodic MPO.
    Each site tensor carries one spin with the square root of the Boltzmann
    weight of each of its four bonds, so that the dominant eigenvalue per
    site is the partition function per site.
    """
    Q = np.array([[np.exp(beta*J), np.exp(-beta*J)],
                  [np.exp(-beta*J), np.exp(beta*J)]])
    S, U = np.linalg.eigh(Q)
    sqrtQ = U @ np.diag(np.sqrt(S)) @ U.T
    W = np.einsum("si,sj,sk,sl->ijkl", sqrtQ, sqrtQ, sqrtQ, sqrtQ)
    return InfMpo([W]*L)


def classical2d_ising_logz(beta, J=1):
    """
    Onsager's free energy of the 2D Ising model, as log Z per site.
    """
    K = beta*J
    k = 2*np.sinh(2*K) / np.cosh(2*K)**2

    def integrand(theta):
        return np.log((1 + np.sqrt(1 - (k*np.sin(theta))**2)) / 2)
    integral, _ = quad(integrand, 0, np.pi/2)
    return np.log(2*np.cosh(2*K)) + integral/np.pi


def quantum1d_ising_energy(J=1, h=1):
    """
    The exact ground state energy per site of quantum1d_ising(J, h), from
    its free-fermion dispersion.
    """
    def integrand(k):
        return np.sqrt(J**2 + h**2 - 2*J*h*np.cos(k))
    integral, _ = quad(integrand, -np.pi, np.pi)
    return -integral / (2*np.pi)
