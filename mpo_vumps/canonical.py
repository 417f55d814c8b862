"""
Gauge fixing of uniform MPS: the iterative computation of AL, AR and C from
a set of raw (or stale) site tensors, and the gauge transformation that
makes C diagonal.
"""
import warnings

import numpy as np

import mpo_vumps.backend as backend
import mpo_vumps.params as params
from mpo_vumps.eigsolve import eigsolve
from mpo_vumps.params import Verbosity
from mpo_vumps.uniform_mps import UniformMps
import mpo_vumps.numpy_backend.mps_linalg as np_linalg


###############################################################################
# Fixed points of the mixed transfer matrices.
###############################################################################
def _left_gauge_fixedpoint(A, AL, C, tol, method):
    """
    Refines the left gauge transform by finding the dominant left
    eigenvector of the transfer matrix with A on top and AL below, then
    keeping its positive factor.
    """
    ct = backend.ct

    def matvec(X):
        for A_w, AL_w in zip(A, AL):
            X = ct.XopL(A_w, B=AL_w.conj(), X=X)
        return X

    vecs, _, _ = eigsolve(matvec, np.asarray(C), 1, "largestabs", tol=tol,
                          verbosity=Verbosity.SILENT)
    _, C = backend.mps_linalg.leftorth(vecs[0], method)
    return C / backend.mps_linalg.norm(C)


def _right_gauge_fixedpoint(A, AR, C, tol, method):
    """
    The mirror of _left_gauge_fixedpoint. The right eigenvector is stored
    (bra, ket) and is therefore the transpose of C.
    """
    ct = backend.ct

    def matvec(X):
        for A_w, AR_w in zip(reversed(A), reversed(AR)):
            X = ct.XopR(A_w, B=AR_w.conj(), X=X)
        return X

    vecs, _, _ = eigsolve(matvec, np.asarray(C).T, 1, "largestabs", tol=tol,
                          verbosity=Verbosity.SILENT)
    C, _ = backend.mps_linalg.rightorth(vecs[0].T, method)
    return C / backend.mps_linalg.norm(C)


###############################################################################
# Uniform orthogonalization.
###############################################################################
def uniform_leftorth(A, C=None, tol=params.DEFAULT_TOL, maxiter=1000,
                     method="polar", verbosity=Verbosity.WARN):
    """
    Finds left isometries AL[w] and gauge transforms C[w] with
    C[w-1] A[w] = lambda_w AL[w] C[w] over the unit cell.

    PARAMETERS
    ----------
    A (list of arrays): The (d, chiL, chiR) site tensors.
    C (array, optional): Initial guess for the transform on the bond to the
                         left of site 0. The identity by default.
    tol (float): Threshold on the distance between successive C.
    maxiter (int): Maximum number of sweeps.
    method (str): 'polar', 'qr' or 'qrpos'.

    RETURNS
    -------
    AL (list), C (list): C[w] lives to the right of site w, unit norm.
    lambda (float): The norm picked up per unit cell.
    eta (float): The final distance between successive C.
    """
    linalg = backend.mps_linalg
    L = len(A)
    if C is None:
        chi = A[0].shape[1]
        C = np.eye(chi, dtype=A[0].dtype)
    C = C / linalg.norm(C)
    AL = [None]*L
    Cs = [None]*L
    lambdas = np.ones(L)
    eta = np.inf
    for iteration in range(1, maxiter+1):
        if iteration > 2 and iteration % 2 == 1:
            C = _left_gauge_fixedpoint(A, AL, C, max(eta/10, tol), method)
        C_old = C
        for w in range(L):
            AL[w], C = linalg.leftorth(backend.ct.leftmult(C, A[w]), method)
            lambdas[w] = linalg.norm(C)
            C = C / lambdas[w]
            Cs[w] = C
        eta = float(linalg.norm(C - C_old))
        if eta < tol:
            break
    else:
        if verbosity >= Verbosity.WARN:
            warnings.warn("uniform_leftorth did not converge: eta = %e after "
                          "%d iterations." % (eta, maxiter))
    if verbosity > Verbosity.WARN:
        print("uniform_leftorth: eta = %e, lambda = %e" % (eta,
                                                           np.prod(lambdas)))
    return (AL, Cs, np.prod(lambdas), eta)


def uniform_rightorth(A, C=None, tol=params.DEFAULT_TOL, maxiter=1000,
                      method="polar", verbosity=Verbosity.WARN):
    """
    Finds right isometries AR[w] and gauge transforms C[w] with
    A[w] C[w] = lambda_w C[w-1] AR[w] over the unit cell. Arguments and
    returns mirror uniform_leftorth; the initial C lives on the bond to the
    right of the last site.
    """
    linalg = backend.mps_linalg
    L = len(A)
    if C is None:
        chi = A[-1].shape[2]
        C = np.eye(chi, dtype=A[-1].dtype)
    C = C / linalg.norm(C)
    AR = [None]*L
    Cs = [None]*L
    lambdas = np.ones(L)
    eta = np.inf
    for iteration in range(1, maxiter+1):
        if iteration > 2 and iteration % 2 == 1:
            C = _right_gauge_fixedpoint(A, AR, C, max(eta/10, tol), method)
        C_old = C
        for w in reversed(range(L)):
            C, AR[w] = linalg.rightorth(backend.ct.rightmult(A[w], C), method)
            lambdas[w] = linalg.norm(C)
            C = C / lambdas[w]
            Cs[(w-1) % L] = C
        eta = float(linalg.norm(C - C_old))
        if eta < tol:
            break
    else:
        if verbosity >= Verbosity.WARN:
            warnings.warn("uniform_rightorth did not converge: eta = %e after "
                          "%d iterations." % (eta, maxiter))
    if verbosity > Verbosity.WARN:
        print("uniform_rightorth: eta = %e, lambda = %e" % (eta,
                                                            np.prod(lambdas)))
    return (AR, Cs, np.prod(lambdas), eta)


###############################################################################
# Canonical forms.
###############################################################################
def canonicalize(mps, canonical_params=None):
    """
    Computes the mixed canonical form of mps.

    PARAMETERS
    ----------
    mps (UniformMps): With order 'lr', mps.AL is used as the state (it need
                      not be isometric); with order 'rl', mps.AR. mps.C is
                      used as the initial guess of the second gauge fixing.
    canonical_params (dict): Formed by params.canonical_params().

    RETURNS
    -------
    A new UniformMps satisfying AL[w] C[w] = AC[w] = C[w-1] AR[w].
    """
    if canonical_params is None:
        canonical_params = params.canonical_params()
    p = params.canonical_params(**canonical_params)
    kwargs = {"tol": p["tol"], "maxiter": p["maxiter"],
              "method": p["method"], "verbosity": p["verbosity"]}
    C0 = mps.C[-1]
    if p["order"] == "rl":
        AR, _, _, _ = uniform_rightorth(mps.AR, **kwargs)
        AL, C, _, _ = uniform_leftorth(AR, C0, **kwargs)
    else:
        AL, _, _, _ = uniform_leftorth(mps.AL, **kwargs)
        AR, C, _, _ = uniform_rightorth(AL, C0, **kwargs)

    AC = list(mps.AC)
    new_mps = UniformMps(AL, AR, C, AC)
    if p["diag_c"]:
        new_mps = diagonalize_c(new_mps)
    if p["compute_ac"]:
        AC = [backend.ct.rightmult(AL_w, C_w)
              for AL_w, C_w in zip(new_mps.AL, new_mps.C)]
        new_mps = new_mps._replace(AC=AC)
    return new_mps


def diagonalize_c(mps):
    """
    Gauge transforms mps so that every C[w] is diagonal and non-negative,
    with the singular values sorted in descending order. The physical state
    is unchanged.
    """
    ct = backend.ct
    AL = list(mps.AL)
    AR = list(mps.AR)
    C = list(mps.C)
    AC = list(mps.AC)
    L = mps.period()
    for w in range(L):
        ww = (w+1) % L
        U, S, Vh = backend.mps_linalg.svd(C[w])
        C[w] = np.diag(np.asarray(S)).astype(mps.dtype)
        AL[w] = ct.rightmult(AL[w], U)
        AL[ww] = ct.leftmult(U.T.conj(), AL[ww])
        AR[w] = ct.rightmult(AR[w], Vh.T.conj())
        AR[ww] = ct.leftmult(Vh, AR[ww])
    for w in range(L):
        AC[w] = ct.rightmult(AL[w], C[w])
    return UniformMps(AL, AR, C, AC)


###############################################################################
# Construction.
###############################################################################
def from_tensors(A, canonical_params=None):
    """
    The canonical uniform MPS described by the list of site tensors A.
    """
    A = list(A)
    C = [np.eye(A_w.shape[2], dtype=A_w.dtype) for A_w in A]
    raw = UniformMps(A, A, C, A)
    return canonicalize(raw, canonical_params)


def random_mps(d, chi, period=1, dtype=np.float64, seed=None,
               canonical_params=None):
    """
    A random canonical uniform MPS.

    PARAMETERS
    ----------
    d (int or list): Physical dimension(s), one per site if a list.
    chi (int or list): Bond dimension(s); chi[w] is the bond to the right
                       of site w.
    period (int): Unit cell length, used when d and chi are both ints.
    dtype: Data dtype of tensors.
    seed: Passed to numpy.random.default_rng.
    """
    if np.isscalar(d):
        d = [d]*(period if np.isscalar(chi) else len(chi))
    if np.isscalar(chi):
        chi = [chi]*len(d)
    if len(d) != len(chi):
        raise ValueError("Physical and bond dimensions must have the same "
                         "length; got " + str(len(d)) + " and "
                         + str(len(chi)))
    shapes = [(d[w], chi[w-1], chi[w]) for w in range(len(d))]
    A = np_linalg.random_tensors(shapes, dtype=dtype, seed=seed)
    return from_tensors(A, canonical_params)
