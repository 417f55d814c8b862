"""
Transfer-matrix spectra and entanglement properties of uniform MPS.
"""
import numpy as np

import mpo_vumps.backend as backend
from mpo_vumps.eigsolve import eigsolve
from mpo_vumps.params import DEFAULT_TOL, Verbosity


FIXEDPOINT_KINDS = ("l_LL", "l_LR", "l_RL", "l_RR",
                    "r_LL", "r_LR", "r_RL", "r_RR")


def fixedpoint(mps, kind, w=None):
    """
    The fixed point of a transfer matrix of mps, as a (bra, ket) matrix.

    PARAMETERS
    ----------
    mps (UniformMps): A canonical state.
    kind (str): 'side_TopBottom', side 'l' or 'r', Top (ket) and Bottom
                (bra) 'L' or 'R' for the AL or AR tensors. E.g. 'l_RL' is
                the left fixed point of the transfer matrix with AR on top
                and AL below.
    w (int): Left fixed points live on the bond to the left of site w,
             right fixed points on the bond to its right. Defaults to the
             bond at the edge of the unit cell.

    RETURNS
    -------
    rho (array): Left and right fixed points of the same transfer matrix
                 on the same bond contract to one with ct.proj.
    """
    if kind not in FIXEDPOINT_KINDS:
        raise ValueError("Invalid fixed point type " + str(kind))
    L = mps.period()
    if w is None:
        w = 0 if kind[0] == "l" else L-1
    C_left = np.asarray(mps.C[(w-1) % L])
    C_right = np.asarray(mps.C[w % L])
    if kind == "l_LL":
        chi = mps.AL[w % L].shape[1]
        return np.eye(chi, dtype=mps.dtype)
    if kind == "l_RR":
        return C_left.T.conj() @ C_left
    if kind == "l_RL":
        return C_left
    if kind == "l_LR":
        return C_left.conj().T
    if kind == "r_RR":
        chi = mps.AR[w % L].shape[2]
        return np.eye(chi, dtype=mps.dtype)
    if kind == "r_LL":
        return (C_right @ C_right.T.conj()).T
    if kind == "r_RL":
        return C_right.conj()
    return C_right.T


def _tensors(mps, gauge):
    return mps.AL if gauge == "L" else mps.AR


def transfer_eigs(mps1, mps2=None, howmany=1, which="largestabs",
                  kind="r_RR", v0=None, tol=DEFAULT_TOL, maxiter=1000,
                  krylovdim=100, verbosity=Verbosity.SILENT):
    """
    Eigenpairs of the unit cell transfer matrix with mps1 on top (ket) and
    mps2 (mps1 by default) below.

    PARAMETERS
    ----------
    kind (str): As in fixedpoint; the side picks left or right
                eigenvectors, the letters the gauges of the two layers.
    v0 (array, optional): Starting vector, random by default.
    The remaining arguments are those of eigsolve.

    RETURNS
    -------
    vals (array): The eigenvalues.
    vecs (list): The eigenvectors as (bra, ket) matrices.
    """
    if kind not in FIXEDPOINT_KINDS:
        raise ValueError("Invalid transfer matrix type " + str(kind))
    if mps2 is None:
        mps2 = mps1
    ct = backend.ct
    top = _tensors(mps1, kind[2])
    bottom = _tensors(mps2, kind[3])

    if kind[0] == "l":
        def matvec(X):
            for A, B in zip(top, bottom):
                X = ct.XopL(A, B=B.conj(), X=X)
            return X
        shape = (bottom[0].shape[1], top[0].shape[1])
    else:
        def matvec(X):
            for A, B in zip(reversed(top), reversed(bottom)):
                X = ct.XopR(A, B=B.conj(), X=X)
            return X
        shape = (bottom[-1].shape[2], top[-1].shape[2])

    if v0 is None:
        rng = np.random.default_rng()
        v0 = rng.standard_normal(shape).astype(
            np.result_type(mps1.dtype, mps2.dtype))
    vecs, vals, _ = eigsolve(matvec, v0, howmany, which, tol=tol,
                             maxiter=maxiter, krylovdim=krylovdim,
                             verbosity=verbosity)
    return (vals, vecs)


def fidelity(mps1, mps2):
    """
    The fidelity per unit cell of two states: the magnitude of the dominant
    eigenvalue of their mixed transfer matrix.
    """
    vals, _ = transfer_eigs(mps1, mps2, 1, "largestabs", kind="l_LL",
                            krylovdim=30, maxiter=500)
    return float(np.abs(vals[0]))


def correlation_length(mps):
    """
    The correlation length in sites, from the two largest-magnitude
    eigenvalues of the unit cell transfer matrix.
    """
    vals, _ = transfer_eigs(mps, mps, 2, "largestabs", kind="r_RR")
    vals = np.abs(vals)
    if vals.size < 2 or vals[1] == 0:
        return 0.
    return -mps.period() / np.log(vals[1] / vals[0])


def schmidt_values(mps, w=0):
    """
    The Schmidt coefficients across the bond to the right of site w, in
    descending order.
    """
    _, S, _ = backend.mps_linalg.svd(mps.C[w % mps.period()])
    S = np.asarray(S)
    return S / np.linalg.norm(S)


def entanglement_entropy(mps, w=0):
    """
    The von Neumann entropy of a half-infinite chain cut to the right of
    site w.
    """
    p = schmidt_values(mps, w)**2
    p = p[p > 0]
    return float(-np.sum(p*np.log(p)))
