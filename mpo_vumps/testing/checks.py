"""
Predicates and generators shared by the test modules.
"""
import numpy as np

import mpo_vumps.numpy_backend.contractions as ct


def random_rng(shp, low=0, high=1.0, rng=None):
    if rng is None:
        rng = np.random.default_rng()
    return (high - low) * rng.random(shp) + low


def random_complex(shp, real_low=-1.0, real_high=1.0, imag_low=-1.0,
                   imag_high=1.0, rng=None):
    """
    Return a randomized complex array of shape shp.
    """
    realpart = random_rng(shp, low=real_low, high=real_high, rng=rng)
    imagpart = 1.0j * random_rng(shp, low=imag_low, high=imag_high, rng=rng)
    return realpart + imagpart


def check(lhs, rhs, thresh=1E-8):
    """
    Passes if lhs and rhs agree to thresh in the Frobenius norm.
    """
    err = np.linalg.norm(np.asarray(lhs) - np.asarray(rhs))
    return (err < thresh, err)


def is_left_isometric(A_L, thresh=1E-8):
    contracted = ct.XopL(A_L)
    eye = np.eye(contracted.shape[0], dtype=A_L.dtype)
    return check(contracted, eye, thresh=thresh)


def is_right_isometric(A_R, thresh=1E-8):
    contracted = ct.XopR(A_R)
    eye = np.eye(contracted.shape[0], dtype=A_R.dtype)
    return check(contracted, eye, thresh=thresh)


def is_mixed_canonical(mps, thresh=1E-8):
    """
    Passes if every AL is a left isometry, every AR a right isometry, and
    AL[w] C[w] = AC[w] = C[w-1] AR[w] throughout the unit cell.
    """
    L = mps.period()
    err = 0.
    for w in range(L):
        err += is_left_isometric(mps.AL[w], thresh)[1]
        err += is_right_isometric(mps.AR[w], thresh)[1]
        err += check(ct.rightmult(mps.AL[w], mps.C[w]), mps.AC[w])[1]
        err += check(ct.leftmult(mps.C[(w-1) % L], mps.AR[w]), mps.AC[w])[1]
    return (err < thresh, err)
