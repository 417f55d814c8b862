"""
Variational Uniform Matrix Product States: the outer fixed-point loop.

Each iteration replaces the centre tensors AC and C by extremal eigenvectors
of their effective Hamiltonians, rebuilds a canonical state from them,
recomputes the environments and measures the gauge mismatch eta. The
tolerances of the inner solvers follow eta down as the run converges.
"""
from typing import NamedTuple

import numpy as np

import mpo_vumps.backend as backend
import mpo_vumps.benchmark as benchmark
import mpo_vumps.params as params
from mpo_vumps.canonical import canonicalize
from mpo_vumps.environment import environments
from mpo_vumps.heff import (AC_hamiltonian, C_hamiltonian, minimize_HAc,
                            minimize_Hc)
from mpo_vumps.params import Verbosity
from mpo_vumps.uniform_mps import UniformMps
from mpo_vumps.writer import Writer


class VumpsState(NamedTuple):
    """
    The part of the loop configuration that changes between iterations.
    iteration counts completed iterations.
    """
    iteration: int
    eta: float
    eigs_tol: float
    canonical_tol: float
    environments_tol: float
    multi_ac: str


class VumpsResult(NamedTuple):
    mps: UniformMps
    lambda_: complex
    GL: list
    GR: list
    eta: float
    iteration: int
    converged: bool


##########################################################################
# Functions to handle output.
##########################################################################
def ostr(string):
    """
    Truncates to two decimal places.
    """
    return '{:1.2e}'.format(string)


def estr(lambda_):
    lambda_ = complex(lambda_)
    if abs(lambda_.imag) < np.finfo(np.float64).eps**(3/4) * abs(lambda_):
        return '{:<0.15f}'.format(lambda_.real)
    return '{:<0.15f} {:+0.15f}i'.format(lambda_.real, lambda_.imag)


def output(writer, label, iteration, lambda_, eta, dt, verbose=True):
    """
    Does the actual outputting: a console line, and a row of the data file.
    """
    outstr = "%s %4d:\tE = %s\terror = %0.4e\t(%s s)" % (
        label, iteration, estr(lambda_), eta, ostr(dt))
    writer.write(outstr, verbose=verbose)


def data_output(writer, iteration, lambda_, eta):
    lambda_ = complex(lambda_)
    writer.data_write(np.array([iteration, lambda_.real, lambda_.imag, eta]))


def make_writer(outdir=None):
    """
    Initialize the Writer. Creates a directory in the appropriate place, and
    an output file with headers hardcoded here as 'headers'. The Writer,
    defined in writer.py, remembers the directory and will append to this
    file as the simulation proceeds. It can also be used to pickle data,
    notably checkpoints and the final state.

    PARAMETERS
    ----------
    outdir (string): Path to the directory where output is to be saved. This
                     directory will be created if it does not yet exist.
                     Otherwise any contents with filename collisions during
                     the simulation will be overwritten. If None, the
                     Writer only prints.

    OUTPUT
    ------
    writer (writer.Writer): The Writer.
    """
    data_headers = ["N", "Re(E)", "Im(E)", "eta"]
    return Writer(outdir, headers=data_headers)


###############################################################################
# Tolerances.
###############################################################################
def initial_state(vumps_params, eigs_params, canonical_params, env_params):
    """
    The state before the first iteration. With dynamical tolerances every
    inner solver starts at the geometric mean of tol_min and tol_max;
    otherwise at its own configured tolerance.
    """
    if vumps_params["dynamical_tols"]:
        tol = np.sqrt(vumps_params["tol_min"] * vumps_params["tol_max"])
        tols = (tol, tol, tol)
    else:
        tols = (eigs_params["tol"], canonical_params["tol"],
                env_params["tol"])
    return VumpsState(0, np.inf, *tols, vumps_params["multi_ac"])


def _between(lower, value, upper):
    return max(lower, min(value, upper))


def update_tols(vumps_params, state, iteration, eta):
    """
    Records iteration and eta in a new state and, with dynamical
    tolerances, reschedules the inner tolerances as
    clamp(tol_min, eta * factor, tol_max / iteration).
    """
    p = vumps_params
    new = state._replace(iteration=iteration, eta=eta)
    if p["dynamical_tols"]:
        ceiling = p["tol_max"] / iteration
        new = new._replace(
            eigs_tol=_between(p["tol_min"], eta*p["eigs_tolfactor"],
                              ceiling),
            canonical_tol=_between(p["tol_min"],
                                   eta*p["canonical_tolfactor"], ceiling),
            environments_tol=_between(p["tol_min"],
                                      eta*p["environments_tolfactor"],
                                      ceiling))
        if p["verbosity"] > Verbosity.ITER:
            print("Updated subalgorithm tolerances: (%e,\t%e,\t%e)"
                  % (new.eigs_tol, new.canonical_tol, new.environments_tol))
    if p["dynamical_multi_ac"]:
        if eta < p["tol_multi_ac"]:
            new = new._replace(multi_ac="sequential")
        else:
            new = new._replace(multi_ac="parallel")
    return new


def _inner_params(state, vumps_params, eigs_params, canonical_params,
                  env_params):
    verbosity = params.inner_verbosity(vumps_params["verbosity"])
    eigs = {**eigs_params, "tol": state.eigs_tol, "verbosity": verbosity}
    canon = {**canonical_params, "tol": state.canonical_tol,
             "verbosity": verbosity}
    env = {**env_params, "tol": state.environments_tol,
           "verbosity": verbosity}
    return (eigs, canon, env)


###############################################################################
# The update steps.
###############################################################################
def update_sites(state, iteration, L):
    """
    All sites in parallel mode; the single site iteration % L in sequential
    mode.
    """
    if state.multi_ac == "sequential":
        return [iteration % L]
    return list(range(L))


def update_AC(mpo, mps, GL, GR, sites, which, eigs_params):
    """
    New centre-site tensors at the given sites, keyed by site.
    """
    H_AC = AC_hamiltonian(mpo, mps, GL, GR, sites)
    AC = {}
    for w in sites:
        AC[w], _, _ = minimize_HAc(H_AC[w], mps.AC[w], which, eigs_params)
    return AC


def update_C(mpo, mps, GL, GR, sites, which, eigs_params):
    """
    New bond matrices at the given sites, keyed by site.
    """
    H_C = C_hamiltonian(mpo, mps, GL, GR, sites)
    C = {}
    for w in sites:
        C[w], _, _ = minimize_Hc(H_C[w], mps.C[w], which, eigs_params)
    return C


def update_mps(mps, AC, C, canonical_params):
    """
    Replaces AL at each updated site by the isometry closest to AC C^dag,
    Q_AC Q_C^dag with Q the isometric polar factors, and restores the
    canonical form.
    """
    linalg = backend.mps_linalg
    AL = list(mps.AL)
    for w in AC:
        Q_AC, _ = linalg.leftorth(AC[w], "polar")
        Q_C, _ = linalg.leftorth(C[w], "polar")
        AL[w] = backend.ct.rightmult(Q_AC, Q_C.T.conj())
    raw = UniformMps(AL, AL, list(mps.C), list(mps.AC))
    return canonicalize(raw, canonical_params)


def convergence(mpo, mps, GL, GR):
    """
    The largest, over the unit cell, distance between the normalized
    H_AC[w] AC[w] and H_C[w-1] C[w-1] AR[w]. eta vanishes exactly at a
    fixed point.

    Each effective Hamiltonian is shifted by s = 1 + |<AC|H_AC|AC>|
    + |<C|H_C|C>| before it is applied, and its image is divided by the
    shifted Rayleigh quotient. Eigenvectors are unchanged by the shift,
    which keeps the comparison well defined when an eigenvalue is zero.
    """
    norm = backend.mps_linalg.norm
    L = mps.period()
    H_AC = AC_hamiltonian(mpo, mps, GL, GR)
    H_C = C_hamiltonian(mpo, mps, GL, GR)
    eta = np.zeros(L)
    for w in range(L):
        ww = (w-1) % L
        AC = np.asarray(mps.AC[w])
        C = np.asarray(mps.C[ww])
        HAC = np.asarray(H_AC[w](mps.AC[w]))
        HC = np.asarray(H_C[ww](mps.C[ww]))
        lam_AC = np.vdot(AC, HAC) / np.vdot(AC, AC)
        lam_C = np.vdot(C, HC) / np.vdot(C, C)
        shift = 1. + abs(lam_AC) + abs(lam_C)

        AC_ = (HAC + shift*AC) / (lam_AC + shift)
        AC_ = AC_ / norm(AC_)
        C_ = (HC + shift*C) / (lam_C + shift)
        C_ = C_ / norm(C_)

        eta[w] = norm(AC_ - np.asarray(backend.ct.leftmult(C_, mps.AR[w])))
    return float(np.amax(eta))

###############################################################################
# Main loop and friends.
###############################################################################
def _bundle(vumps_params, eigs_params, canonical_params, env_params):
    if vumps_params is None:
        vumps_params = {}
    if eigs_params is None:
        eigs_params = {}
    if canonical_params is None:
        canonical_params = {}
    if env_params is None:
        env_params = {}
    return (params.vumps_params(**vumps_params),
            params.krylov_params(**eigs_params),
            params.canonical_params(**canonical_params),
            params.environment_params(**env_params))


def fixedpoint(mpo, mps, vumps_params=None, eigs_params=None,
               canonical_params=None, env_params=None, writer=None):
    """
    Find the fixed point of the uniform MPS mps under the MPO mpo using
    Variational Uniform Matrix Product States. For a Hamiltonian in
    Jordan form with which='smallestreal' this is the ground state.

    PARAMETERS
    ----------
    mpo (InfMpo or InfJMpo): The operator, of the same period as mps.
    mps (UniformMps): The initial state; its bond dimensions are kept.

    The following arguments are bundled together by initialization functions
    in mpo_vumps.params. The verbosity of the inner solvers is always that
    of vumps_params, two levels down, and their tolerances are managed by
    the loop when vumps_params["dynamical_tols"] is True.

    vumps_params (dict)    : Formed by 'vumps_params'.
    eigs_params (dict)     : Formed by 'krylov_params'.
    canonical_params (dict): Formed by 'canonical_params'.
    env_params (dict)      : Formed by 'environment_params'.
    writer (Writer)        : Output handler; console only if None.

    RETURNS
    -------
    VumpsResult(mps, lambda_, GL, GR, eta, iteration, converged)
    """
    if mpo.period() != mps.period():
        raise ValueError("periodicity of mpo (" + str(mpo.period())
                         + ") should be equal to that of the mps ("
                         + str(mps.period()) + ")")
    all_params = _bundle(vumps_params, eigs_params, canonical_params,
                         env_params)
    vumps_params = all_params[0]
    if writer is None:
        writer = make_writer()

    state = initial_state(*all_params)
    _, canon, env = _inner_params(state, *all_params)
    if vumps_params["verbosity"] >= Verbosity.CONV:
        writer.write("---- VUMPS ----")
    writer.write("Linalg backend: " + backend.ENVIRON_NAME, verbose=False)

    mps = canonicalize(mps, canon)
    GL, GR, lambda_ = environments(mpo, mps, env_params=env)
    return vumps_work(mpo, mps, GL, GR, lambda_, state, *all_params, writer)


def vumps_work(mpo, mps, GL, GR, lambda_, state, vumps_params, eigs_params,
               canonical_params, env_params, writer):
    """
    Main work loop for vumps. Runs iterations state.iteration + 1 through
    vumps_params["maxiter"]. Should be accessed via fixedpoint, or via
    drivers.vumps_from_checkpoint to resume a run.
    """
    p = vumps_params
    verbosity = p["verbosity"]
    which = p["which"]
    checkpoint_every = p["checkpoint_every"]
    L = mps.period()

    t_total = benchmark.tick()
    eta = state.eta
    iteration = state.iteration
    converged = False
    for iteration in range(state.iteration + 1, p["maxiter"] + 1):
        t_iter = benchmark.tick()
        eigs, canon, env = _inner_params(state, p, eigs_params,
                                         canonical_params, env_params)
        sites = update_sites(state, iteration, L)

        AC = update_AC(mpo, mps, GL, GR, sites, which, eigs)
        C = update_C(mpo, mps, GL, GR, sites, which, eigs)
        mps = update_mps(mps, AC, C, canon)

        GL, GR, lambda_ = environments(mpo, mps, GL=GL, GR=GR, env_params=env)
        eta = convergence(mpo, mps, GL, GR)
        data_output(writer, iteration, lambda_, eta)

        if iteration > p["miniter"] and eta < p["tol"]:
            converged = True
            dt = benchmark.tock(t_total, dat=mps.C)
            output(writer, "Conv", iteration, lambda_, eta, dt,
                   verbose=verbosity >= Verbosity.CONV)
            break
        state = update_tols(p, state, iteration, eta)
        dt = benchmark.tock(t_iter, dat=mps.C)
        output(writer, "Iter", iteration, lambda_, eta, dt,
               verbose=verbosity >= Verbosity.ITER)

        if checkpoint_every is not None and iteration % checkpoint_every == 0:
            writer.write("Checkpointing...",
                         verbose=verbosity >= Verbosity.DETAIL)
            to_pickle = {"mpo": mpo, "mps": mps, "GL": GL, "GR": GR,
                         "lambda_": lambda_, "state": state,
                         "vumps_params": p, "eigs_params": eigs_params,
                         "canonical_params": canonical_params,
                         "env_params": env_params}
            writer.pickle(to_pickle, iteration, name="checkpoint")
    else:
        dt = benchmark.tock(t_total)
        output(writer, "MaxIter", iteration, lambda_, eta, dt,
               verbose=verbosity >= Verbosity.WARN)

    if converged and verbosity >= Verbosity.CONV or (
            not converged and verbosity >= Verbosity.WARN):
        writer.write("---------------")
    result = VumpsResult(mps, lambda_, GL, GR, eta, iteration, converged)
    writer.pickle(result, iteration, name="result")
    return result
