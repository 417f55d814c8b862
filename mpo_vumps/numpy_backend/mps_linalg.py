"""
Functions that operate upon MPS tensors as if they were matrices.
These functions are not necessarily backend-agnostic.
"""
import numpy as np
import scipy as sp
import scipy.linalg


def random_tensors(shapes, dtype=np.float64, seed=None):
    """
    Returns a list of Gaussian random tensors, one for (and with) each shape
    in shapes. A random seed may optionally be specified; otherwise fresh
    entropy from the system is used.

    PARAMETERS
    ----------
    shapes: A list of input shapes.
    seed (default None) : The random seed, or a numpy Generator.
    dtype : dtype of tensors.

    RETURNS
    -------
    tensors : A list of random tensors of the given dtype, one respectively
              for each shape.
    """
    rng = np.random.default_rng(seed)
    tensors = []
    for shape in shapes:
        tensor = rng.standard_normal(shape)
        if np.issubdtype(dtype, np.complexfloating):
            tensor = tensor + 1.0j*rng.standard_normal(shape)
        tensors.append(tensor.astype(dtype))
    return tensors


def sortby(es, vecs, mode="LM"):
    """
    The vector 'es' is sorted,
    and the i's in 'vecs[:, i]' are sorted in the same way. This is done
    by returning new, sorted arrays (not in place). 'Mode' may be 'LM'/'SM'
    (largest/smallest magnitude first), 'LR'/'SR' (largest/smallest real
    part first) or 'LI'/'SI' (largest/smallest imaginary part first).
    """
    if mode == "LM":
        sortidx = np.abs(es).argsort()[::-1]
    elif mode == "SM":
        sortidx = np.abs(es).argsort()
    elif mode == "LR":
        sortidx = (es.real).argsort()[::-1]
    elif mode == "SR":
        sortidx = (es.real).argsort()
    elif mode == "LI":
        sortidx = (es.imag).argsort()[::-1]
    elif mode == "SI":
        sortidx = (es.imag).argsort()
    else:
        raise ValueError("Invalid sort mode " + str(mode))
    essorted = es[sortidx]
    vecsorted = vecs[:, sortidx]
    return essorted, vecsorted


def fuse_left(A):
    """
    Joins the left bond with the physical index.
    """
    oldshp = A.shape
    d, chiL, chiR = oldshp
    A = A.reshape(d*chiL, chiR)
    return A


def unfuse_left(A, shp):
    """
    Reverses fuse_left.
    """
    return A.reshape(shp)


def fuse_right(A):
    """
    Joins the right bond with the physical index.
    """
    oldshp = A.shape
    d, chiL, chiR = oldshp
    A = A.transpose((1, 0, 2)).reshape((chiL, d*chiR))
    return A


def unfuse_right(A, shp):
    """
    Reverses fuse_right.
    """
    d, chiL, chiR = shp
    A = A.reshape((chiL, d, chiR)).transpose((1, 0, 2))
    return A


def norm(A):
    return np.linalg.norm(A)


def svd(A):
    return np.linalg.svd(A, full_matrices=False)


###############################################################################
# QR
###############################################################################
def qrpos(A):
    """
    Computes the QR decomposition of the matrix A, with the phase of R fixed
    so as to have a non-negative main diagonal.

    PARAMETERS
    ----------
    A (array-like): An (M, N) matrix with M >= N.

    RETURNS
    -------
    Q, R: An (M, N) isometry and an upper triangular (N x N) matrix with a
          non-negative main diagonal such that A = Q @ R.
    """
    Q, R = np.linalg.qr(A)
    diag = np.diag(R)
    absdiag = np.abs(diag)
    phases = np.where(absdiag > 0, diag / np.where(absdiag > 0, absdiag, 1),
                      1)
    Q = Q*phases
    R = phases.conj()[:, None] * R
    return (Q, R)


def lqpos(A):
    """
    Computes the LQ decomposition of the matrix A, with the phase of L fixed
    so as to have a non-negative main diagonal.

    RETURNS
    -------
    L, Q:  A lower-triangular (M x M) matrix with a non-negative
           main-diagonal, and an (M, N) matrix with orthonormal rows such
           that A = L @ Q.
    """
    Qdag, Ldag = qrpos(A.T.conj())
    Q = Qdag.T.conj()
    L = Ldag.T.conj()
    return (L, Q)


def polar(a, side="right", compute_p=False):
    """
    Compute the polar decomposition. This is a transcription of the
    SciPy code - check scipy.linalg.polar for documentation.
    """
    if side not in ['right', 'left']:
        raise ValueError("must be either 'right' or 'left'")
    a = np.asarray(a)
    if a.ndim != 2:
        raise ValueError("must be a 2-D array.")

    w, s, vh = np.linalg.svd(a, full_matrices=False)
    u = w @ vh
    p = 0.
    if compute_p:
        if side == 'right':
            # a = up
            p = (vh.T.conj() * s) @ vh
        elif side == 'left':
            # a = pu
            p = (w * s) @ (w.T.conj())
    return u, p


def leftorth(A, method="polar"):
    """
    Factors A = Q @ R with Q a left isometry. A may be a (d, chiL, chiR) MPS
    tensor, whose left bond and physical index are fused, or a matrix.

    PARAMETERS
    ----------
    A (array-like): The tensor to factor.
    method (str): 'polar' (R positive semidefinite), 'qr' (arbitrary phase)
                  or 'qrpos' (R with a non-negative diagonal).

    RETURNS
    -------
    Q, R: Q has the shape of A, R is (chiR, chiR).
    """
    shp = A.shape
    if len(shp) == 3:
        mat = fuse_left(A)
    else:
        mat = A
    if method == "polar":
        Q, R = polar(mat, side="right", compute_p=True)
    elif method == "qr":
        Q, R = np.linalg.qr(mat)
    elif method == "qrpos":
        Q, R = qrpos(mat)
    else:
        raise ValueError("Invalid decomposition method " + str(method))
    if len(shp) == 3:
        Q = unfuse_left(Q, shp)
    return (Q, R)


def rightorth(A, method="polar"):
    """
    Factors A = L @ Q with Q a right isometry. A may be a (d, chiL, chiR)
    MPS tensor, whose right bond and physical index are fused, or a matrix.

    RETURNS
    -------
    L, Q: L is (chiL, chiL), Q has the shape of A.
    """
    shp = A.shape
    if len(shp) == 3:
        mat = fuse_right(A)
    else:
        mat = A
    if method == "polar":
        Q, L = polar(mat, side="left", compute_p=True)
    elif method == "qr":
        Qdag, Ldag = np.linalg.qr(mat.T.conj())
        Q = Qdag.T.conj()
        L = Ldag.T.conj()
    elif method == "qrpos":
        L, Q = lqpos(mat)
    else:
        raise ValueError("Invalid decomposition method " + str(method))
    if len(shp) == 3:
        Q = unfuse_right(Q, shp)
    return (L, Q)


def null_space(A):
    return sp.linalg.null_space(A)


def left_null_space(A_L):
    """
    Return the tensor N_L spanning the null space of A_L^dag, reshaped into
    a (d, chiL, d*chiL - chiR) MPS tensor, so that XopL(A_L, N_L.conj())
    vanishes.
    """
    d, chiL, chiR = A_L.shape
    ALdag = fuse_left(A_L).T.conj()
    NLm = null_space(ALdag)
    NL = NLm.reshape((d, chiL, NLm.shape[1]))
    return NL
