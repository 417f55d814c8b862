"""
Interface functions for VUMPS.
"""
import os
from importlib import reload

import numpy as np

import mpo_vumps.backend as backend
import mpo_vumps.models as models
import mpo_vumps.params as params
import mpo_vumps.vumps as vumps
from mpo_vumps.canonical import random_mps
from mpo_vumps.writer import unpickle


def set_backend(jax_linalg):
    """
    Selects the jax or numpy linear algebra backend for every subsequent
    call.
    """
    if jax_linalg:
        os.environ["LINALG_BACKEND"] = "jax"
    else:
        os.environ["LINALG_BACKEND"] = "numpy"
    reload(backend)


def run_vumps(mpo, bond_dimension, out_directory=None, jax_linalg=False,
              dtype=np.float64, seed=None, vumps_params=None,
              eigs_params=None, canonical_params=None, env_params=None):
    """
    Performs a vumps simulation of the MPO mpo from a random initial state.

    PARAMETERS
    ----------
    mpo (InfMpo or InfJMpo): The operator to be simulated.
    bond_dimension (int or list): Bond dimension(s) of the MPS.
    out_directory (string) : Output is saved here. The directory is created
                             if it doesn't exist. Console only if None.
    jax_linalg (bool)   : Determines whether Jax or numpy code is used in
                          the contractions and factorizations.
    dtype               : Data type of the initial state.
    seed                : Seed of the initial state.
    vumps_params (dict)    : Hyperparameters for the vumps solver. Formed
                             by 'vumps_params'.
    eigs_params (dict)     : Hyperparameters for the eigensolves of the
                             effective Hamiltonians. Formed by
                             'krylov_params()'.
    canonical_params (dict): Formed by 'canonical_params()'.
    env_params (dict)      : Hyperparameters for the linear solves that
                             find the environments. Formed by
                             'environment_params()'.

    RETURNS
    -------
    vumps.VumpsResult
    """
    set_backend(jax_linalg)
    writer = vumps.make_writer(out_directory)
    mps = random_mps(mpo.physical_dims(), bond_dimension,
                     period=mpo.period(), dtype=dtype, seed=seed)
    return vumps.fixedpoint(mpo, mps, vumps_params=vumps_params,
                            eigs_params=eigs_params,
                            canonical_params=canonical_params,
                            env_params=env_params, writer=writer)


def vumps_ising(J, h, bond_dimension, period=1, **kwargs):
    """
    Performs a vumps simulation of the transverse-field Ising model,
    H = -J XX - h Z, for its ground state. Remaining arguments are those
    of run_vumps.
    """
    mpo = models.quantum1d_ising(J, h, L=period)
    kwargs["vumps_params"] = {"which": "smallestreal",
                              **(kwargs.get("vumps_params") or {})}
    return run_vumps(mpo, bond_dimension, **kwargs)


def vumps_heisenberg(bond_dimension, spin=1, J=1, period=1, **kwargs):
    """
    Performs a vumps simulation of the Heisenberg model, H = J S.S, for its
    ground state. Remaining arguments are those of run_vumps.
    """
    mpo = models.quantum1d_heisenberg(spin, J, L=period)
    kwargs["vumps_params"] = {"which": "smallestreal",
                              **(kwargs.get("vumps_params") or {})}
    return run_vumps(mpo, bond_dimension, **kwargs)


def vumps_from_checkpoint(checkpoint_path, out_directory=None,
                          new_vumps_params=None, new_eigs_params=None,
                          new_canonical_params=None, new_env_params=None,
                          jax_linalg=False):
    """
    Continues a vumps simulation from a checkpoint pickled by
    vumps.vumps_work. New parameters are merged into the saved ones and
    revalidated.

    PARAMETERS
    ----------
    checkpoint_path (string): Path to the checkpoint .pkl file.
    """
    set_backend(jax_linalg)
    writer = vumps.make_writer(out_directory)
    chk = unpickle(checkpoint_path)

    vumps_params = chk["vumps_params"]
    if new_vumps_params is not None:
        vumps_params = {**vumps_params, **new_vumps_params}

    eigs_params = chk["eigs_params"]
    if new_eigs_params is not None:
        eigs_params = {**eigs_params, **new_eigs_params}

    canonical_params = chk["canonical_params"]
    if new_canonical_params is not None:
        canonical_params = {**canonical_params, **new_canonical_params}

    env_params = chk["env_params"]
    if new_env_params is not None:
        env_params = {**env_params, **new_env_params}

    out = vumps.vumps_work(chk["mpo"], chk["mps"], chk["GL"], chk["GR"],
                           chk["lambda_"], chk["state"],
                           params.vumps_params(**vumps_params),
                           params.krylov_params(**eigs_params),
                           params.canonical_params(**canonical_params),
                           params.environment_params(**env_params),
                           writer)
    return out
