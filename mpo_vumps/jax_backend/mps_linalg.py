"""
Jax implementations of the matrix-level MPS functions in
mpo_vumps.numpy_backend.mps_linalg. Decomposition selectors are resolved
outside of jit; the decompositions themselves are jitted.
"""
from functools import partial

import jax
import jax.numpy as jnp


jax.config.update("jax_enable_x64", True)


@jax.jit
def fuse_left(A):
    """
    Joins the left bond with the physical index.
    """
    d, chiL, chiR = A.shape
    return A.reshape((d*chiL, chiR))


@partial(jax.jit, static_argnums=(1,))
def unfuse_left(A, shp):
    """
    Reverses fuse_left.
    """
    return A.reshape(shp)


@jax.jit
def fuse_right(A):
    """
    Joins the right bond with the physical index.
    """
    d, chiL, chiR = A.shape
    return A.transpose((1, 0, 2)).reshape((chiL, d*chiR))


@partial(jax.jit, static_argnums=(1,))
def unfuse_right(A, shp):
    """
    Reverses fuse_right.
    """
    d, chiL, chiR = shp
    return A.reshape((chiL, d, chiR)).transpose((1, 0, 2))


@jax.jit
def norm(A):
    return jnp.linalg.norm(A)


@jax.jit
def svd(A):
    return jnp.linalg.svd(A, full_matrices=False)


###############################################################################
# QR
###############################################################################
@jax.jit
def qrpos(A):
    """
    QR decomposition of the matrix A with the phase of R fixed so as to
    have a non-negative main diagonal.
    """
    Q, R = jnp.linalg.qr(A)
    diag = jnp.diag(R)
    absdiag = jnp.abs(diag)
    phases = jnp.where(absdiag > 0, diag / jnp.where(absdiag > 0, absdiag, 1),
                       1)
    Q = Q*phases
    R = phases.conj()[:, None] * R
    return (Q, R)


@jax.jit
def lqpos(A):
    """
    LQ decomposition of the matrix A with the phase of L fixed so as to
    have a non-negative main diagonal.
    """
    Qdag, Ldag = qrpos(A.T.conj())
    return (Ldag.T.conj(), Qdag.T.conj())


@jax.jit
def qr(A):
    return jnp.linalg.qr(A)


@jax.jit
def polar_right(a):
    """
    a = u p with u an isometry and p positive semidefinite.
    """
    w, s, vh = jnp.linalg.svd(a, full_matrices=False)
    u = w @ vh
    p = (vh.T.conj() * s) @ vh
    return u, p


@jax.jit
def polar_left(a):
    """
    a = p u with u an isometry and p positive semidefinite.
    """
    w, s, vh = jnp.linalg.svd(a, full_matrices=False)
    u = w @ vh
    p = (w * s) @ (w.T.conj())
    return u, p


def leftorth(A, method="polar"):
    """
    Factors A = Q @ R with Q a left isometry; see the numpy backend.
    """
    shp = A.shape
    mat = fuse_left(A) if len(shp) == 3 else A
    if method == "polar":
        Q, R = polar_right(mat)
    elif method == "qr":
        Q, R = qr(mat)
    elif method == "qrpos":
        Q, R = qrpos(mat)
    else:
        raise ValueError("Invalid decomposition method " + str(method))
    if len(shp) == 3:
        Q = unfuse_left(Q, tuple(shp))
    return (Q, R)


def rightorth(A, method="polar"):
    """
    Factors A = L @ Q with Q a right isometry; see the numpy backend.
    """
    shp = A.shape
    mat = fuse_right(A) if len(shp) == 3 else A
    if method == "polar":
        Q, L = polar_left(mat)
    elif method == "qr":
        Qdag, Ldag = qr(mat.T.conj())
        Q = Qdag.T.conj()
        L = Ldag.T.conj()
    elif method == "qrpos":
        L, Q = lqpos(mat)
    else:
        raise ValueError("Invalid decomposition method " + str(method))
    if len(shp) == 3:
        Q = unfuse_right(Q, tuple(shp))
    return (L, Q)
