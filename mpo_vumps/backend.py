"""
Selects the linear algebra backend from os.environ["LINALG_BACKEND"].
Modules that need contractions or matrix factorizations import `ct` and
`mps_linalg` from here; drivers.set_backend reloads them.
"""
import os
import importlib


try:
    ENVIRON_NAME = os.environ["LINALG_BACKEND"]
except KeyError:
    ENVIRON_NAME = "numpy"

if ENVIRON_NAME not in ("numpy", "jax"):
    raise ValueError("Unknown LINALG_BACKEND " + ENVIRON_NAME
                     + "; expected 'numpy' or 'jax'.")


BACKEND_DIR_NAME = "mpo_vumps." + ENVIRON_NAME + "_backend."
MPS_LINALG_NAME = BACKEND_DIR_NAME + "mps_linalg"
CONTRACTIONS_NAME = BACKEND_DIR_NAME + "contractions"


mps_linalg = importlib.import_module(MPS_LINALG_NAME)
ct = importlib.import_module(CONTRACTIONS_NAME)
