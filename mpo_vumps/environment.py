"""
Left and right environments of an MPO sandwiched between two uniform MPS,
and their momentum-twisted (quasiparticle) generalization.

For a Jordan MPO the environments are assembled block by block along the
triangular structure; the identity channels, whose transfer matrix has a
unit eigenvalue, are regularized so that the extensive energy is extracted
as lambda instead of accumulating in the environment. For a generic MPO
the environments are the dominant eigenvectors of the transfer matrix.
"""
import warnings

import numpy as np
from scipy.sparse.linalg import bicgstab, gmres, lgmres

import mpo_vumps.backend as backend
import mpo_vumps.params as params
from mpo_vumps.eigsolve import eigsolve, sparse_solver_op
from mpo_vumps.observables import fixedpoint
from mpo_vumps.params import Verbosity


LINEAR_SOLVERS = {"bicgstab": bicgstab, "gmres": gmres, "lgmres": lgmres}

LAMBDA_TOL = float(np.finfo(np.float64).eps)**(1/3)


###############################################################################
# Helpers.
###############################################################################
def call_solver(func, rhs, x0, env_params, dtype=None, name="environment"):
    """
    Solves func(x) = rhs for x with the sparse solver selected by
    env_params["algorithm"]. A nonzero info code whose x nonetheless meets
    the residual tolerance (e.g. a bicgstab breakdown on an already solved
    system) is cleared to 0; otherwise it is reported by a warning and the
    best available x is returned anyway.
    """
    if dtype is None:
        dtype = np.result_type(np.asarray(rhs).dtype)
    op = sparse_solver_op(func, rhs, dtype)
    b = np.ravel(np.asarray(rhs)).astype(dtype)
    if x0 is not None:
        x0 = np.ravel(np.asarray(x0)).astype(dtype)
        if x0.shape != b.shape:
            x0 = None
    solver = LINEAR_SOLVERS[env_params["algorithm"]]
    x, info = solver(op, b, x0=x0, rtol=env_params["tol"], atol=0.,
                     maxiter=env_params["maxiter"])
    if info != 0:
        resid = np.linalg.norm(op.matvec(x) - b)
        if resid <= env_params["tol"]*max(np.linalg.norm(b), 1.):
            info = 0
    if info != 0 and env_params["verbosity"] >= Verbosity.WARN:
        warnings.warn(name + " solution failed with code: " + str(info))
    return (x.reshape(np.shape(rhs)), info)


def _env_params(env_params):
    if env_params is None:
        return params.environment_params()
    return params.environment_params(**env_params)


def _block(G, i):
    if G is None:
        return None
    return np.asarray(G)[:, i, :]


def transfer_left(GL, mpo, A1, A2, first_rows=None, last_cols=None):
    """
    Applies one unit cell of the MPO transfer matrix, with A1 above and A2
    below, to the left environment GL. The first MPO tensor may be
    restricted to the auxiliary rows first_rows, the last to last_cols.
    """
    L = len(A1)
    for w in range(L):
        rows = first_rows if w == 0 else None
        cols = last_cols if w == L-1 else None
        W = mpo.slice_tensor(w, rows, cols)
        GL = backend.ct.mpo_XopL(GL, A1[w], W, A2[w].conj())
    return GL


def transfer_right(GR, mpo, A1, A2, first_rows=None, last_cols=None):
    """
    The mirror of transfer_left; the unit cell is traversed from its last
    site to its first.
    """
    L = len(A1)
    for w in reversed(range(L)):
        rows = first_rows if w == 0 else None
        cols = last_cols if w == L-1 else None
        W = mpo.slice_tensor(w, rows, cols)
        GR = backend.ct.mpo_XopR(GR, A1[w], W, A2[w].conj())
    return GR


###############################################################################
# Jordan MPO environments.
###############################################################################
def _jordan_leftenvironment(mpo, mps1, mps2, GL, env_params):
    ct = backend.ct
    A1, A2 = mps1.AL, mps2.AL
    L = mpo.period()
    N = mpo.bond_dims()[-1]
    fp_left = fixedpoint(mps1, "l_LL")
    fp_right = fixedpoint(mps1, "r_LL")
    fp_right = fp_right / ct.proj(fp_left, fp_right)
    old = None if GL is None else GL[0]

    blocks = [None]*N
    blocks[0] = fp_left
    lambda_ = 0.
    for i in range(1, N):
        X = np.stack([np.asarray(b) for b in blocks[:i]], axis=1)
        rhs = transfer_left(X, mpo, A1, A2, first_rows=slice(0, i),
                            last_cols=[i])[:, 0, :]

        def Tdiag(x, i=i):
            return transfer_left(x[:, None, :], mpo, A1, A2, first_rows=[i],
                                 last_cols=[i])[:, 0, :]

        if mpo.is_zero_block(i):
            blocks[i] = rhs
        elif mpo.is_identity_block(i):
            if i < N-1 and env_params["verbosity"] >= Verbosity.WARN:
                warnings.warn("MPO channel " + str(i) + " is an additional "
                              "identity channel; regularizing it as if it "
                              "were the only degenerate one.")
            lambda_ = ct.proj(rhs, fp_right)
            rhs = rhs - lambda_*fp_left

            def op(x, Tdiag=Tdiag):
                return x - Tdiag(x) + ct.proj(x, fp_right)*fp_left
            x, _ = call_solver(op, rhs, _block(old, i), env_params,
                               name="GL")
            blocks[i] = x - ct.proj(x, fp_right)*fp_left
        else:
            def op(x, Tdiag=Tdiag):
                return x - Tdiag(x)
            blocks[i], _ = call_solver(op, rhs, _block(old, i), env_params,
                                       name="GL")

    GLs = [np.stack([np.asarray(b) for b in blocks], axis=1)]
    for w in range(L-1):
        GLs.append(ct.mpo_XopL(GLs[w], A1[w], mpo.tensor(w), A2[w].conj()))
    return (GLs, lambda_)


def _jordan_rightenvironment(mpo, mps1, mps2, GR, env_params):
    ct = backend.ct
    A1, A2 = mps1.AR, mps2.AR
    L = mpo.period()
    N = mpo.bond_dims()[-1]
    fp_right = fixedpoint(mps1, "r_RR")
    fp_left = fixedpoint(mps1, "l_RR")
    fp_left = fp_left / ct.proj(fp_left, fp_right)
    old = None if GR is None else GR[0]

    blocks = [None]*N
    blocks[N-1] = fp_right
    lambda_ = 0.
    for i in range(N-2, -1, -1):
        X = np.stack([np.asarray(b) for b in blocks[i+1:]], axis=1)
        rhs = transfer_right(X, mpo, A1, A2, first_rows=[i],
                             last_cols=slice(i+1, N))[:, 0, :]

        def Tdiag(x, i=i):
            return transfer_right(x[:, None, :], mpo, A1, A2, first_rows=[i],
                                  last_cols=[i])[:, 0, :]

        if mpo.is_zero_block(i):
            blocks[i] = rhs
        elif mpo.is_identity_block(i):
            if i > 0 and env_params["verbosity"] >= Verbosity.WARN:
                warnings.warn("MPO channel " + str(i) + " is an additional "
                              "identity channel; regularizing it as if it "
                              "were the only degenerate one.")
            lambda_ = ct.proj(rhs, fp_left)
            rhs = rhs - lambda_*fp_right

            def op(x, Tdiag=Tdiag):
                return x - Tdiag(x) + ct.proj(x, fp_left)*fp_right
            x, _ = call_solver(op, rhs, _block(old, i), env_params,
                               name="GR")
            blocks[i] = x - ct.proj(x, fp_left)*fp_right
        else:
            def op(x, Tdiag=Tdiag):
                return x - Tdiag(x)
            blocks[i], _ = call_solver(op, rhs, _block(old, i), env_params,
                                       name="GR")

    GRs = [None]*L
    GRs[0] = np.stack([np.asarray(b) for b in blocks], axis=1)
    for w in range(L-1, 0, -1):
        GRs[w] = ct.mpo_XopR(GRs[(w+1) % L], A1[w], mpo.tensor(w),
                             A2[w].conj())
    return (GRs, lambda_)


###############################################################################
# Generic MPO environments.
###############################################################################
def _initial_environment(chi_bra, N, chi_ket, dtype):
    eye = np.eye(chi_bra, chi_ket, dtype=dtype)
    return eye[:, None, :] * np.ones(N, dtype=dtype)[None, :, None]


def _generic_leftenvironment(mpo, mps1, mps2, GL, env_params):
    A1, A2 = mps1.AL, mps2.AL
    L = mpo.period()
    if GL is None:
        GL0 = _initial_environment(A2[0].shape[1], mpo.bond_dims()[-1],
                                   A1[0].shape[1], mps1.dtype)
    else:
        GL0 = np.asarray(GL[0])

    def matvec(X):
        return transfer_left(X, mpo, A1, A2)
    vecs, vals, flag = eigsolve(matvec, GL0, 1, "largestabs",
                                tol=env_params["tol"],
                                maxiter=env_params["maxiter"],
                                verbosity=env_params["verbosity"])
    if flag and env_params["verbosity"] >= Verbosity.WARN:
        warnings.warn("GL eigensolve did not converge.")
    GLs = [vecs[0]]
    for w in range(L-1):
        GLs.append(backend.ct.mpo_XopL(GLs[w], A1[w], mpo.tensor(w),
                                       A2[w].conj()))
    return (GLs, vals[0])


def _generic_rightenvironment(mpo, mps1, mps2, GR, env_params):
    A1, A2 = mps1.AR, mps2.AR
    L = mpo.period()
    if GR is None:
        GR0 = _initial_environment(A2[-1].shape[2], mpo.bond_dims()[-1],
                                   A1[-1].shape[2], mps1.dtype)
    else:
        GR0 = np.asarray(GR[0])

    def matvec(X):
        return transfer_right(X, mpo, A1, A2)
    vecs, vals, flag = eigsolve(matvec, GR0, 1, "largestabs",
                                tol=env_params["tol"],
                                maxiter=env_params["maxiter"],
                                verbosity=env_params["verbosity"])
    if flag and env_params["verbosity"] >= Verbosity.WARN:
        warnings.warn("GR eigensolve did not converge.")
    GRs = [None]*L
    GRs[0] = vecs[0]
    for w in range(L-1, 0, -1):
        GRs[w] = backend.ct.mpo_XopR(GRs[(w+1) % L], A1[w], mpo.tensor(w),
                                     A2[w].conj())
    return (GRs, vals[0])


###############################################################################
# Interface.
###############################################################################
def _check_periods(mpo, mps1, mps2):
    if mpo.period() != mps1.period() or mps2.period() != mps1.period():
        raise ValueError("periodicity of mpo (" + str(mpo.period())
                         + ") should be equal to that of the mps ("
                         + str(mps1.period()) + ", " + str(mps2.period())
                         + ")")


def leftenvironment(mpo, mps1, mps2=None, GL=None, env_params=None):
    """
    Computes the left environments GL[w] (on the bond to the left of site
    w, indexed (bra, mpo, ket)) of mpo between mps1 (ket) and mps2 (bra,
    mps1 by default), both in the left gauge.

    PARAMETERS
    ----------
    mpo (InfMpo or InfJMpo): The operator.
    mps1, mps2 (UniformMps): Ket and bra states.
    GL (list, optional): Environments of a previous call, used as initial
                         guesses.
    env_params (dict): Formed by params.environment_params().

    RETURNS
    -------
    GL (list): One environment per unit cell site.
    lambda_: For a Jordan MPO, the expectation value per unit cell
             extracted from the last identity channel; otherwise the
             dominant eigenvalue of the unit cell transfer matrix.
    """
    if mps2 is None:
        mps2 = mps1
    _check_periods(mpo, mps1, mps2)
    env_params = _env_params(env_params)
    if mpo.triangular:
        return _jordan_leftenvironment(mpo, mps1, mps2, GL, env_params)
    return _generic_leftenvironment(mpo, mps1, mps2, GL, env_params)


def rightenvironment(mpo, mps1, mps2=None, GR=None, env_params=None):
    """
    The mirror of leftenvironment, with both states in the right gauge.
    GR[w] lives on the bond to the left of site w and contains sites >= w.
    """
    if mps2 is None:
        mps2 = mps1
    _check_periods(mpo, mps1, mps2)
    env_params = _env_params(env_params)
    if mpo.triangular:
        return _jordan_rightenvironment(mpo, mps1, mps2, GR, env_params)
    return _generic_rightenvironment(mpo, mps1, mps2, GR, env_params)


def environments(mpo, mps1, mps2=None, GL=None, GR=None, env_params=None):
    """
    Both environments, and the mean lambda of the two sides. A warning is
    issued if the two estimates of lambda disagree. Environments of a
    generic MPO are normalized so that GL[w] and GR[w] contract to one
    through the centre bond.

    RETURNS
    -------
    GL, GR (lists), lambda_
    """
    if mps2 is None:
        mps2 = mps1
    env_params = _env_params(env_params)
    GL, lambda_L = leftenvironment(mpo, mps1, mps2, GL, env_params)
    GR, lambda_R = rightenvironment(mpo, mps1, mps2, GR, env_params)
    lambda_ = (lambda_L + lambda_R) / 2
    if not np.isclose(lambda_L, lambda_R, rtol=LAMBDA_TOL, atol=LAMBDA_TOL):
        if env_params["verbosity"] >= Verbosity.WARN:
            warnings.warn("lambdas disagree (%s, %s)" % (lambda_L, lambda_R))

    if not mpo.triangular:
        L = mpo.period()
        for w in range(L):
            C1 = mps1.C[(w-1) % L]
            C2 = mps2.C[(w-1) % L]
            overlap = backend.ct.env_overlap(GL[w], C1, GR[w], C2.conj())
            GL[w] = GL[w] / overlap
    return (GL, GR, lambda_)


def expectation_value(mps, mpo, GL=None, GR=None, env_params=None):
    """
    The expectation value of mpo per unit cell in the normalized state mps:
    lambda for a Jordan MPO, and the product over the unit cell of
    <AC[w]| H_AC[w] |AC[w]> with normalized environments otherwise.
    """
    GL, GR, lambda_ = environments(mpo, mps, mps, GL, GR, env_params)
    if mpo.triangular:
        return lambda_
    L = mps.period()
    E = 1.
    for w in range(L):
        AC_ = backend.ct.apply_HAc(mps.AC[w], GL[w], mpo.tensor(w),
                                   GR[(w+1) % L])
        E = E * np.vdot(np.asarray(mps.AC[w]), np.asarray(AC_))
    return E


###############################################################################
# Quasiparticle environments.
###############################################################################
def _check_quasi(mpo, B, mps):
    if not mpo.triangular:
        raise ValueError("Quasiparticle environments need a Jordan MPO.")
    if len(B) != mps.period() or mpo.period() != mps.period():
        raise ValueError("B, mpo and mps must share the unit cell.")


def leftquasienvironment(mpo, B, p, mps, GL, GR=None, env_params=None):
    """
    The left environments of an excitation with momentum p (per unit cell)
    and tensors B[w], living on the bonds to the left of each site. The ket
    carries B somewhere to the left (AL before it, AR after it); the bra
    is AL throughout:

        GBL[w+1] = exp(-i p / L) (GL[w] TB[w] + GBL[w] T_RL[w]).

    B should be in the left gauge (XopL(AL, B) = 0), so that the identity
    channel starts at zero. At zero momentum the identity channels are
    degenerate and are regularized with the fixed points of the mixed
    transfer matrix T_RL.

    RETURNS
    -------
    GBL (list): One (bra, mpo, ket) tensor per site.
    """
    _check_quasi(mpo, B, mps)
    env_params = _env_params(env_params)
    ct = backend.ct
    L = mps.period()
    expP = np.exp(-1j*p)
    phase = np.exp(-1j*p/L)
    regularize = np.isclose(expP, 1.)
    N = mpo.bond_dims()[-1]
    AL, AR = mps.AL, mps.AR
    fp_left = fixedpoint(mps, "l_RL")
    fp_right = fixedpoint(mps, "r_RL")
    fp_right = fp_right / ct.proj(fp_left, fp_right)

    # GBL[0] starts out as the source term of one unit cell.
    GBL = [None]*L
    source = np.zeros(np.shape(GL[0]), dtype=np.complex128)
    for w in range(L):
        W = mpo.tensor(w)
        source = phase * (ct.mpo_XopL(GL[w], B[w], W, AL[w].conj())
                          + ct.mpo_XopL(source, AR[w], W, AL[w].conj()))
    source = np.asarray(source)

    blocks = [None]*N
    for i in range(N):
        rhs = source[:, i, :]
        if i > 0:
            X = np.stack(blocks[:i], axis=1)
            rhs = rhs + expP*np.asarray(
                transfer_left(X, mpo, AR, AL, first_rows=slice(0, i),
                              last_cols=[i])[:, 0, :])

        def Tdiag(x, i=i):
            return transfer_left(x[:, None, :], mpo, AR, AL, first_rows=[i],
                                 last_cols=[i])[:, 0, :]

        if mpo.is_zero_block(i):
            blocks[i] = rhs
            continue
        if regularize and mpo.is_identity_block(i):
            rhs = rhs - ct.proj(rhs, fp_right)*fp_left

            def op(x, Tdiag=Tdiag):
                return x - expP*(Tdiag(x) - ct.proj(x, fp_right)*fp_left)
        else:
            def op(x, Tdiag=Tdiag):
                return x - expP*Tdiag(x)
        x, _ = call_solver(op, rhs, None, env_params, dtype=np.complex128,
                           name="GBL")
        blocks[i] = np.asarray(x)

    GBL[0] = np.stack(blocks, axis=1)
    for w in range(L-1):
        W = mpo.tensor(w)
        GBL[w+1] = phase * (ct.mpo_XopL(GL[w], B[w], W, AL[w].conj())
                            + ct.mpo_XopL(GBL[w], AR[w], W, AL[w].conj()))
    return GBL


def rightquasienvironment(mpo, B, p, mps, GL, GR, env_params=None):
    """
    The mirror of leftquasienvironment: the ket carries B somewhere to the
    right (AL before it), the bra is AR throughout, and

        GBR[w] = exp(+i p / L) (TB[w] GR[w+1] + T_LR[w] GBR[w+1]).

    B should be in the left gauge; at zero momentum identity channels are
    regularized with the fixed points of T_LR.
    """
    _check_quasi(mpo, B, mps)
    env_params = _env_params(env_params)
    ct = backend.ct
    L = mps.period()
    expP = np.exp(1j*p)
    phase = np.exp(1j*p/L)
    regularize = np.isclose(expP, 1.)
    N = mpo.bond_dims()[-1]
    AL, AR = mps.AL, mps.AR
    fp_right = fixedpoint(mps, "r_LR")
    fp_left = fixedpoint(mps, "l_LR")
    fp_left = fp_left / ct.proj(fp_left, fp_right)

    GBR = [None]*L
    source = np.zeros(np.shape(GR[0]), dtype=np.complex128)
    for w in reversed(range(L)):
        W = mpo.tensor(w)
        GR_next = GR[(w+1) % L]
        source = phase * (ct.mpo_XopR(GR_next, B[w], W, AR[w].conj())
                          + ct.mpo_XopR(source, AL[w], W, AR[w].conj()))
    source = np.asarray(source)

    blocks = [None]*N
    for i in range(N-1, -1, -1):
        rhs = source[:, i, :]
        if i < N-1:
            X = np.stack(blocks[i+1:], axis=1)
            rhs = rhs + expP*np.asarray(
                transfer_right(X, mpo, AL, AR, first_rows=[i],
                               last_cols=slice(i+1, N))[:, 0, :])

        def Tdiag(x, i=i):
            return transfer_right(x[:, None, :], mpo, AL, AR,
                                  first_rows=[i], last_cols=[i])[:, 0, :]

        if mpo.is_zero_block(i):
            blocks[i] = rhs
            continue
        if regularize and mpo.is_identity_block(i):
            rhs = rhs - ct.proj(rhs, fp_left)*fp_right

            def op(x, Tdiag=Tdiag):
                return x - expP*(Tdiag(x) - ct.proj(x, fp_left)*fp_right)
        else:
            def op(x, Tdiag=Tdiag):
                return x - expP*Tdiag(x)
        x, _ = call_solver(op, rhs, None, env_params, dtype=np.complex128,
                           name="GBR")
        blocks[i] = np.asarray(x)

    GBR[0] = np.stack(blocks, axis=1)
    for w in range(L-1, 0, -1):
        W = mpo.tensor(w)
        ww = (w+1) % L
        GBR[w] = phase * (ct.mpo_XopR(GR[ww], B[w], W, AR[w].conj())
                          + ct.mpo_XopR(GBR[ww], AL[w], W, AR[w].conj()))
    return GBR
