"""
Effective Hamiltonians of the centre-site tensors AC[w] and bond matrices
C[w], and their extremal eigenvectors.
"""
import functools
import warnings

import mpo_vumps.backend as backend
import mpo_vumps.params as params
from mpo_vumps.eigsolve import eigsolve
from mpo_vumps.params import Verbosity


def _sites(mpo, mps, sites):
    L = mps.period()
    if mpo.period() != L:
        raise ValueError("periodicity of mpo (" + str(mpo.period())
                         + ") should be equal to that of the mps ("
                         + str(L) + ")")
    if sites is None:
        return range(L)
    return [w % L for w in sites]


def AC_hamiltonian(mpo, mps, GL, GR, sites=None):
    """
    The effective Hamiltonians of the centre sites.

    PARAMETERS
    ----------
    mpo: The operator.
    mps (UniformMps): The state; fixes the unit cell.
    GL, GR (lists): Environments, as returned by environment.environments.
    sites (iterable, optional): The sites to build; all by default.

    RETURNS
    -------
    H_AC (dict): H_AC[w] is a function of AC[w] alone, contracting
                 GL[w], W[w] and GR[w+1] around it.
    """
    L = mps.period()
    return {w: functools.partial(_apply_HAc, GL=GL[w], W=mpo.tensor(w),
                                 GR=GR[(w+1) % L])
            for w in _sites(mpo, mps, sites)}


def C_hamiltonian(mpo, mps, GL, GR, sites=None):
    """
    The effective Hamiltonians of the bond matrices: H_C[w] acts on C[w],
    contracting GL[w+1] and GR[w+1] around it.
    """
    L = mps.period()
    return {w: functools.partial(_apply_Hc, GL=GL[(w+1) % L],
                                 GR=GR[(w+1) % L])
            for w in _sites(mpo, mps, sites)}


def _apply_HAc(A_C, GL, W, GR):
    return backend.ct.apply_HAc(A_C, GL, W, GR)


def _apply_Hc(C, GL, GR):
    return backend.ct.apply_Hc(C, GL, GR)


def _minimize(H, x0, which, krylov_params, name):
    if krylov_params is None:
        krylov_params = params.krylov_params()
    p = params.krylov_params(**krylov_params)
    vecs, vals, flag = eigsolve(H, x0, 1, which, tol=p["tol"],
                                maxiter=p["maxiter"],
                                krylovdim=p["krylovdim"],
                                verbosity=p["verbosity"])
    if flag and p["verbosity"] >= Verbosity.WARN:
        warnings.warn(name + " eigensolve did not converge.")
    return (vecs[0], vals[0], flag)


def minimize_HAc(H_AC, A_C, which="largestabs", krylov_params=None):
    """
    The extremal eigenpair of one centre-site Hamiltonian, selected by
    'which' and started from A_C.

    RETURNS
    -------
    A_C (array): The unit-norm eigenvector, shaped like the input.
    value: Its eigenvalue.
    flag (int): Nonzero if the eigensolver did not converge.
    """
    return _minimize(H_AC, A_C, which, krylov_params, "HAc")


def minimize_Hc(H_C, C, which="largestabs", krylov_params=None):
    """
    The extremal eigenpair of one bond Hamiltonian; see minimize_HAc.
    """
    return _minimize(H_C, C, which, krylov_params, "Hc")
