"""
Bundles of hyperparameters for the various solvers. Each function takes an
explicit set of keyword arguments, validates them, and returns a dict;
misspelled option names are therefore a TypeError and bad values a
ValueError, both raised before any solve begins.
"""
from enum import IntEnum

import numpy as np


class Verbosity(IntEnum):
    SILENT = 0
    WARN = 1
    CONV = 2
    ITER = 3
    DETAIL = 4
    DIAGNOSTICS = 5


DEFAULT_TOL = float(np.finfo(np.float64).eps)**(3/4)

DECOMPOSITION_METHODS = ("polar", "qr", "qrpos")
GAUGE_ORDERS = ("lr", "rl")
LINEAR_SOLVERS = ("bicgstab", "gmres", "lgmres")
MULTI_AC_MODES = ("parallel", "sequential")
WHICH_SELECTORS = ("largestabs", "lm", "largestreal", "lr", "largestimag",
                   "li", "smallestabs", "sm", "smallestreal", "sr",
                   "smallestimag", "si")


def _check_positive(name, value):
    if not value > 0:
        raise ValueError(name + " must be positive; got " + str(value))


def _check_member(name, value, allowed):
    if value not in allowed:
        raise ValueError(name + " must be one of " + str(allowed) + "; got "
                         + str(value))


def _check_which(which):
    if isinstance(which, str):
        _check_member("which", which.lower(), WHICH_SELECTORS)
    elif not np.isscalar(which) or isinstance(which, bool):
        raise ValueError("which must be a selector string or a number; got "
                         + str(which))


def krylov_params(tol=1E-10, maxiter=100, krylovdim=20,
                  verbosity=Verbosity.WARN):
    """
    Bundles parameters for the Krylov-Schur (ARPACK) eigensolver. These
    control the expense of minimizing the effective Hamiltonians.

    PARAMETERS
    ----------
    tol (float): Convergence threshold of the eigensolve.
    maxiter (int): Maximum number of Arnoldi restarts.
    krylovdim (int): Size of the Krylov subspace.
    verbosity (Verbosity): Diagnostics are emitted at WARN and above.
    """
    _check_positive("tol", tol)
    _check_positive("maxiter", maxiter)
    _check_positive("krylovdim", krylovdim)
    return {"tol": tol, "maxiter": int(maxiter), "krylovdim": int(krylovdim),
            "verbosity": Verbosity(verbosity)}


def canonical_params(tol=DEFAULT_TOL, maxiter=1000, method="polar",
                     order="lr", diag_c=False, compute_ac=True,
                     verbosity=Verbosity.WARN):
    """
    Bundles parameters for the gauge canonicalization of a uniform MPS.

    PARAMETERS
    ----------
    tol (float): Threshold on the change of C between sweeps.
    maxiter (int): Maximum number of sweeps around the unit cell.
    method (str): 'polar', 'qr' or 'qrpos'; the factorization used to
                  extract the isometric part at each site.
    order (str): 'lr' computes AL first and derives AR from it; 'rl' does
                 the reverse.
    diag_c (bool): Gauge transform so that each C is diagonal.
    compute_ac (bool): Recompute AC = AL @ C at the end.
    verbosity (Verbosity): Diagnostics are emitted at WARN and above.
    """
    _check_positive("tol", tol)
    _check_positive("maxiter", maxiter)
    _check_member("method", method, DECOMPOSITION_METHODS)
    _check_member("order", order, GAUGE_ORDERS)
    return {"tol": tol, "maxiter": int(maxiter), "method": method,
            "order": order, "diag_c": bool(diag_c),
            "compute_ac": bool(compute_ac), "verbosity": Verbosity(verbosity)}


def environment_params(tol=DEFAULT_TOL, maxiter=500, algorithm="bicgstab",
                       verbosity=Verbosity.WARN):
    """
    Bundles parameters for the linear solves that find the environments.

    PARAMETERS
    ----------
    tol (float): Relative residual threshold of the linear solve.
    maxiter (int): Iteration budget of the linear solve.
    algorithm (str): 'bicgstab', 'gmres' or 'lgmres'.
    verbosity (Verbosity): Diagnostics are emitted at WARN and above.
    """
    _check_positive("tol", tol)
    _check_positive("maxiter", maxiter)
    _check_member("algorithm", algorithm, LINEAR_SOLVERS)
    return {"tol": tol, "maxiter": int(maxiter), "algorithm": algorithm,
            "verbosity": Verbosity(verbosity)}


def vumps_params(tol=1E-10, miniter=5, maxiter=100,
                 verbosity=Verbosity.ITER, which="largestabs",
                 dynamical_tols=True, tol_min=1E-12, tol_max=1E-6,
                 eigs_tolfactor=1E-4, canonical_tolfactor=1E-8,
                 environments_tolfactor=1E-4, multi_ac="parallel",
                 dynamical_multi_ac=False, tol_multi_ac=np.inf,
                 checkpoint_every=None):
    """
    Bundles parameters for the VUMPS outer loop.

    PARAMETERS
    ----------
    tol (float): Convergence threshold on the gauge mismatch eta.
    miniter (int): Convergence is only declared after this many
                   iterations.
    maxiter (int): Maximum number of outer iterations.
    verbosity (Verbosity): Output level; inner solvers run at two levels
                           below this.
    which (str or number): Eigenvalue selector of the local eigenproblems.
    dynamical_tols (bool): If True, each inner tolerance is rescheduled
                           every iteration as
                           clamp(tol_min, eta * factor, tol_max / iter).
    tol_min, tol_max (float): Floor and (shrinking) ceiling of the inner
                              tolerances.
    eigs_tolfactor, canonical_tolfactor, environments_tolfactor (float):
                   The per-solver factors.
    multi_ac (str): 'parallel' updates all sites each iteration,
                    'sequential' one site per iteration.
    dynamical_multi_ac (bool): Switch to 'sequential' once eta drops below
                               tol_multi_ac.
    checkpoint_every (int or None): Pickle the run every this many
                                    iterations.
    """
    _check_positive("tol", tol)
    if miniter < 0:
        raise ValueError("miniter must be non-negative; got " + str(miniter))
    _check_positive("maxiter", maxiter)
    _check_which(which)
    _check_positive("tol_min", tol_min)
    _check_positive("tol_max", tol_max)
    if tol_min > tol_max:
        raise ValueError("tol_min must not exceed tol_max; got "
                         + str((tol_min, tol_max)))
    _check_positive("eigs_tolfactor", eigs_tolfactor)
    _check_positive("canonical_tolfactor", canonical_tolfactor)
    _check_positive("environments_tolfactor", environments_tolfactor)
    _check_member("multi_ac", multi_ac, MULTI_AC_MODES)
    _check_positive("tol_multi_ac", tol_multi_ac)
    if checkpoint_every is not None:
        _check_positive("checkpoint_every", checkpoint_every)
    if isinstance(which, str):
        which = which.lower()
    return {"tol": tol, "miniter": int(miniter), "maxiter": int(maxiter),
            "verbosity": Verbosity(verbosity), "which": which,
            "dynamical_tols": bool(dynamical_tols), "tol_min": tol_min,
            "tol_max": tol_max, "eigs_tolfactor": eigs_tolfactor,
            "canonical_tolfactor": canonical_tolfactor,
            "environments_tolfactor": environments_tolfactor,
            "multi_ac": multi_ac,
            "dynamical_multi_ac": bool(dynamical_multi_ac),
            "tol_multi_ac": tol_multi_ac,
            "checkpoint_every": checkpoint_every}


def inner_verbosity(verbosity):
    """
    Inner solvers report two levels below the outer loop.
    """
    return Verbosity(max(int(verbosity) - 2, Verbosity.SILENT))
