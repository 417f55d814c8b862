"""
A uniform interface to the ARPACK eigensolvers of scipy.sparse.linalg.
Operators may be matrices, LinearOperators, or functions acting on
arbitrarily shaped (or list-structured) tensors; eigenvectors are handed
back in the shape of the starting vector.
"""
import warnings

import numpy as np
from scipy.sparse.linalg import (LinearOperator, ArpackNoConvergence, eigs,
                                 eigsh)

from mpo_vumps.params import Verbosity
import mpo_vumps.numpy_backend.mps_linalg as np_linalg


WHICH_CODES = {"largestabs": "LM", "lm": "LM",
               "largestreal": "LR", "lr": "LR",
               "largestimag": "LI", "li": "LI",
               "smallestabs": "SM", "sm": "SM",
               "smallestreal": "SR", "sr": "SR",
               "smallestimag": "SI", "si": "SI"}

# eigsh names its real-part selectors after the (real) algebraic order.
HERMITIAN_CODES = {"LM": "LM", "SM": "SM", "LR": "LA", "SR": "SA"}


###############################################################################
# Flattening of structured vectors.
###############################################################################
def vectorize(v):
    """
    Flattens v, which is either an array or a list/tuple of arrays, into a
    single 1D numpy array.
    """
    if isinstance(v, (list, tuple)):
        return np.concatenate([np.ravel(np.asarray(x)) for x in v])
    return np.ravel(np.asarray(v))


def devectorize(vec, template):
    """
    Reverses vectorize, using template for the shapes.
    """
    if isinstance(template, (list, tuple)):
        out = []
        start = 0
        for x in template:
            shape = np.shape(x)
            size = int(np.prod(shape))
            out.append(vec[start:start + size].reshape(shape))
            start += size
        return out
    return vec.reshape(np.shape(template))


def sparse_solver_op(func, template, dtype, *args, **kwargs):
    """
    A LinearOperator is returned that applies func(x), in
    preparation for interface with a sparse solver.

    The solver will input a flattened x, but func will usually expect
    a higher-rank object. The necessary structure is taken from template.

    *args and **kwargs are passed to func.
    """
    n = vectorize(template).size

    def solver_interface(x):
        x = devectorize(x, template)
        new_x = func(x, *args, **kwargs)
        return np.array(vectorize(new_x))
    op = LinearOperator((n, n), matvec=solver_interface, dtype=dtype)
    return op


def _as_linear_operator(operator, v0, vec0):
    """
    Wraps operator as a LinearOperator of the appropriate dtype, found by
    probing it once with v0.
    """
    if isinstance(operator, LinearOperator):
        probe = operator.matvec(vec0)
        dtype = np.result_type(vec0.dtype, probe.dtype)
        return LinearOperator(operator.shape, matvec=operator.matvec,
                              dtype=dtype)
    if callable(operator):
        probe = vectorize(operator(v0))
        dtype = np.result_type(vec0.dtype, probe.dtype)
        return sparse_solver_op(operator, v0, dtype)
    mat = np.asarray(operator)
    if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
        raise ValueError("operator must be square; got shape "
                         + str(mat.shape))
    if mat.shape[0] != vec0.size:
        raise ValueError("operator of size " + str(mat.shape[0])
                         + " does not match v0 of size " + str(vec0.size))
    dtype = np.result_type(vec0.dtype, mat.dtype)
    return LinearOperator(mat.shape, matvec=lambda x: mat @ x, dtype=dtype)


def parse_which(which):
    """
    Returns (code, sigma): an ARPACK selector and, for numeric selectors,
    the target value.
    """
    if isinstance(which, str):
        try:
            return (WHICH_CODES[which.lower()], None)
        except KeyError:
            raise ValueError("Invalid eigenvalue selector " + which) from None
    if np.isscalar(which) and not isinstance(which, bool):
        return ("SIGMA", which)
    raise ValueError("Invalid eigenvalue selector " + str(which))


###############################################################################
# Solvers.
###############################################################################
def _sort(vals, vecs, code, sigma):
    if code == "SIGMA":
        sortidx = np.abs(vals - sigma).argsort()
        return vals[sortidx], vecs[:, sortidx]
    return np_linalg.sortby(vals, vecs, mode=code)


def dense_eigs(op, n, howmany, code, sigma, is_symmetric):
    """
    Materializes op and diagonalizes it. Used for problems too small for
    ARPACK and for eigenvalues closest to a numeric target.
    """
    mat = op.matmat(np.eye(n, dtype=op.dtype))
    if is_symmetric:
        vals, vecs = np.linalg.eigh(mat)
    else:
        vals, vecs = np.linalg.eig(mat)
    vals, vecs = _sort(vals, vecs, code, sigma)
    return vals[:howmany], vecs[:, :howmany]


def _pad_with_guess(op, vals, vecs, vec0, howmany):
    """
    Completes a partial ARPACK result with the (normalized) starting vector
    and its Rayleigh quotient.
    """
    missing = howmany - vals.size
    guess = (vec0 / np.linalg.norm(vec0)).astype(op.dtype)
    rayleigh = np.vdot(guess, op.matvec(guess))
    vals = np.concatenate([vals, np.full(missing, rayleigh)])
    guesses = np.tile(guess[:, None], (1, missing))
    vecs = np.concatenate([vecs.reshape((guess.size, -1)), guesses], axis=1)
    return vals, vecs


def _fix_phase(vec, real_input):
    """
    Normalizes vec and rotates it so that its largest entry is real; the
    result is cast to real if the input was real and the imaginary part is
    negligible.
    """
    vec = vec / np.linalg.norm(vec)
    if not np.iscomplexobj(vec):
        return vec
    pivot = vec[np.argmax(np.abs(vec))]
    vec = vec * (np.abs(pivot) / pivot)
    if real_input and np.linalg.norm(vec.imag) < 1E-10:
        vec = vec.real
    return vec


def eigsolve(operator, v0, howmany=1, which="largestabs", tol=1E-10,
             maxiter=100, krylovdim=20, is_symmetric=False,
             verbosity=Verbosity.WARN):
    """
    Find a few eigenpairs of the linear map 'operator' with the
    Krylov-Schur (implicitly restarted Arnoldi/Lanczos) method of ARPACK.

    PARAMETERS
    ----------
    operator : A square matrix, a scipy LinearOperator, or a function
               mapping objects shaped like v0 to objects shaped like v0.
    v0       : Starting vector; an array of any shape or a list/tuple of
               arrays. Fixes the problem dimension.
    howmany (int): Number of eigenpairs. Clamped (with a warning) to the
                   problem dimension.
    which    : 'largestabs'/'lm', 'largestreal'/'lr', 'largestimag'/'li',
               'smallestabs'/'sm', 'smallestreal'/'sr',
               'smallestimag'/'si', or a number, in which case the
               eigenvalues closest to it are found.
    tol (float): Convergence threshold.
    maxiter (int): Maximum number of restarts.
    krylovdim (int): Krylov subspace dimension. Clamped (with a warning) to
                     the problem dimension.
    is_symmetric (bool): Use the Lanczos variant for Hermitian operators.
    verbosity (Verbosity): Warnings are emitted at WARN and above.

    RETURNS
    -------
    vectors : A list of howmany unit-norm eigenvectors shaped like v0.
    values  : The eigenvalues, sorted according to 'which'.
    flag (int): 0 if every requested pair converged, otherwise the number
                of pairs that did not.
    """
    code, sigma = parse_which(which)
    vec0 = vectorize(v0)
    n = vec0.size
    op = _as_linear_operator(operator, v0, vec0)
    real_input = not np.iscomplexobj(vec0) and not np.issubdtype(
        op.dtype, np.complexfloating)

    if howmany > n:
        if verbosity >= Verbosity.WARN:
            warnings.warn("requested %d out of %d eigenvalues." % (howmany, n))
        howmany = n
    if krylovdim > n:
        krylovdim = n
        if verbosity >= Verbosity.WARN:
            warnings.warn("Krylov subspace dimension is larger than total "
                          "number of eigenvalues, reducing Krylov dimension "
                          "to %d." % n)

    if is_symmetric and code not in HERMITIAN_CODES:
        is_symmetric = False

    if np.linalg.norm(vec0) == 0:
        start = None
    else:
        start = vec0.astype(op.dtype)

    flag = 0
    if howmany > n - 2:
        ncv = None
    else:
        ncv = min(max(krylovdim, 2*howmany + 1, howmany + 2), n)

    arpack_limit = n if is_symmetric else n - 1
    if code == "SIGMA" or howmany >= arpack_limit:
        vals, vecs = dense_eigs(op, n, howmany, code, sigma, is_symmetric)
    else:
        try:
            if is_symmetric:
                vals, vecs = eigsh(op, k=howmany,
                                   which=HERMITIAN_CODES[code], tol=tol,
                                   v0=start, ncv=ncv, maxiter=maxiter)
            else:
                vals, vecs = eigs(op, k=howmany, which=code, tol=tol,
                                  v0=start, ncv=ncv, maxiter=maxiter)
        except ArpackNoConvergence as err:
            vals = np.asarray(err.eigenvalues)
            vecs = np.asarray(err.eigenvectors)
            flag = howmany - vals.size
            if start is None:
                start = np.random.default_rng().standard_normal(n)
            vals, vecs = _pad_with_guess(op, vals, vecs, start, howmany)
        vals, vecs = _sort(vals, vecs, code, sigma)

    if real_input and np.allclose(vals.imag, 0):
        vals = vals.real
    vectors = [devectorize(_fix_phase(vecs[:, i], real_input), v0)
               for i in range(howmany)]
    if flag == 0 and verbosity > Verbosity.WARN:
        print("eigsolve converged.")
    return (vectors, vals, flag)
